"""
Handler untuk halaman sites.ipaddress.com (scrape HTML)
Dipakai sebagai pilihan terakhir kalau semua DoH provider gagal
"""

import re
import logging
from typing import Optional

import requests

from hostkeeper.models import is_ipv4

logger = logging.getLogger(__name__)

# Halaman domain menautkan setiap alamat IPv4 ke /ipv4/<ip>
IPV4_LINK_PATTERN = re.compile(r'/ipv4/((?:\d{1,3}\.){3}\d{1,3})')
IPV4_PATTERN = re.compile(r'\b(?:\d{1,3}\.){3}\d{1,3}\b')


def build_request(provider: dict, domain: str) -> dict:
    return {
        'url': provider['url'].format(domain=domain),
        'params': None,
        'headers': dict(provider.get('headers') or {}),
    }


def parse_answer(response: requests.Response) -> Optional[str]:
    """
    Cari IPv4 pertama di halaman

    Link /ipv4/<ip> diprioritaskan; kalau tidak ada, pakai IPv4 pertama
    yang muncul di teks halaman.
    """
    content = response.text or ''

    for pattern in (IPV4_LINK_PATTERN, IPV4_PATTERN):
        for match in pattern.finditer(content):
            ip = match.group(1) if pattern.groups else match.group(0)
            if is_ipv4(ip):
                return ip

    logger.debug(f"No IPv4 address found on {response.url}")
    return None
