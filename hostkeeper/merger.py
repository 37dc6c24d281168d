"""
Gabungkan base entries dengan custom domain override

Custom domain yang aktif selalu menang kalau domainnya sama.
"""

import logging
from typing import Iterable, List, Sequence, Tuple

from hostkeeper.models import CustomDomainEntry, HostEntry, is_ipv4

logger = logging.getLogger(__name__)


def merge_entries(base: Iterable[HostEntry], overrides: Iterable[CustomDomainEntry]) -> List[HostEntry]:
    """
    Merge base + override, dedup berdasarkan domain

    Args:
        base: List of (ip, domain) dari cache
        overrides: Custom domain entries (yang non-aktif atau tanpa IPv4 valid dilewati)

    Returns:
        List of (ip, domain): urutan base dulu, lalu domain override yang baru
    """
    domain_map = {}

    for ip, domain in base:
        domain_map[domain] = ip

    overridden = 0
    for entry in overrides:
        if not entry.is_active:
            continue
        if not is_ipv4(entry.ip):
            logger.warning(f"Skipping custom domain {entry.domain}: no usable IP ({entry.ip!r})")
            continue
        if entry.domain in domain_map and domain_map[entry.domain] != entry.ip:
            overridden += 1
        domain_map[entry.domain] = entry.ip

    if overridden:
        logger.debug(f"{overridden} base entries overridden by custom domains")

    return [(ip, domain) for domain, ip in domain_map.items()]


def split_entries(entries: Sequence[HostEntry], base_domains: Iterable[str]) -> Tuple[List[HostEntry], List[HostEntry]]:
    """Pisahkan hasil merge jadi (base, custom) berdasarkan daftar base domain"""
    base_set = set(base_domains)
    base = [entry for entry in entries if entry[1] in base_set]
    custom = [entry for entry in entries if entry[1] not in base_set]
    return base, custom
