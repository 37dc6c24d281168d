"""
Custom Domain Registry
Kelola domain tambahan dari user (override untuk base domain)

Features:
1. Upsert: domain yang sudah ada di-update di tempat, tidak diduplikasi
2. Resolve otomatis lewat DNSResolver kalau IP tidak diberikan
3. Migrasi format lama (object keyed by domain) ke format list
4. Entri non-aktif tetap disimpan untuk audit
"""

import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from hostkeeper.dns_resolver import DNSResolver
from hostkeeper.models import (
    RESOLVE_DNS,
    RESOLVE_MANUAL,
    RESOLVE_MIGRATED,
    CustomDomainEntry,
    format_timestamp,
    is_ipv4,
    is_valid_domain,
    utcnow,
)
from hostkeeper.storage import KeyValueStore

logger = logging.getLogger(__name__)

CUSTOM_DOMAINS_KEY = "custom_domains"


class StorageShape(Enum):
    EMPTY = "empty"
    LEGACY_OBJECT = "legacy-object"
    CURRENT_ARRAY = "current-array"


def migrate_legacy_entry(key: str, value, now: str) -> CustomDomainEntry:
    """
    Convert satu value format lama ke CustomDomainEntry

    Semua entri hasil migrasi aktif. Value tanpa IPv4 yang valid tetap
    disimpan; merge_entries tidak akan menyajikannya.
    """
    value = value if isinstance(value, dict) else {}
    domain = value.get('domain') or key
    ip = value.get('ip') or ''
    added_at = value.get('addedAt') or now

    if not is_ipv4(ip):
        logger.warning(f"Legacy custom domain {domain} has no usable IP ({ip!r}), it will not be served")

    return CustomDomainEntry(
        domain=domain,
        ip=ip,
        added_at=added_at,
        resolved_at=added_at,
        standard_ip=ip or None,
        optimized_ip=ip or None,
        resolve_method=RESOLVE_MIGRATED,
        is_active=True,
    )


def _unique(entries: Iterable[CustomDomainEntry]) -> List[CustomDomainEntry]:
    """Satu entri per domain; entri belakangan menimpa di posisi yang pertama"""
    by_domain = {}
    for entry in entries:
        by_domain[entry.domain] = entry
    return list(by_domain.values())


def decode_custom_domains(raw, now: str) -> Tuple[StorageShape, List[CustomDomainEntry]]:
    """
    Decode dokumen `custom_domains` dari storage

    Args:
        raw: Dokumen mentah (None, list, atau dict format lama)
        now: Timestamp pengganti untuk addedAt yang kosong

    Returns:
        (shape, entries)

    Raises:
        ValueError/KeyError/TypeError kalau dokumen tidak bisa dibaca
    """
    if raw is None:
        return StorageShape.EMPTY, []

    if isinstance(raw, list):
        return StorageShape.CURRENT_ARRAY, _unique(CustomDomainEntry.from_dict(item) for item in raw)

    if isinstance(raw, dict):
        entries = [migrate_legacy_entry(key, value, now) for key, value in raw.items()]
        return StorageShape.LEGACY_OBJECT, _unique(entries)

    raise ValueError(f"Unrecognized custom_domains document: {type(raw).__name__}")


class CustomDomainRegistry:
    """CRUD atas dokumen `custom_domains`"""

    def __init__(
        self,
        store: KeyValueStore,
        resolver: DNSResolver,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.resolver = resolver
        self.clock = clock

    def _now(self) -> str:
        return format_timestamp(self.clock())

    def _save(self, entries: List[CustomDomainEntry]) -> None:
        self.store.put(CUSTOM_DOMAINS_KEY, [entry.to_dict() for entry in entries])

    def _read(self) -> List[CustomDomainEntry]:
        """Load + migrasi; error storage/decode diteruskan ke caller"""
        raw = self.store.get(CUSTOM_DOMAINS_KEY)
        shape, entries = decode_custom_domains(raw, self._now())

        if shape is StorageShape.LEGACY_OBJECT:
            logger.info("Found old format data, migrating...")
            try:
                self._save(entries)
                logger.info(f"Migrated {len(entries)} domains to new format")
            except Exception as e:
                logger.error(f"Error saving migrated custom domains: {e}")

        return entries

    def list(self) -> List[CustomDomainEntry]:
        """Semua custom domain (aktif dan non-aktif); [] kalau data tidak bisa dibaca"""
        try:
            return self._read()
        except Exception as e:
            logger.error(f"Error getting custom domains: {e}")
            return []

    def active(self) -> List[CustomDomainEntry]:
        return [entry for entry in self.list() if entry.is_active]

    def get(self, domain: str) -> Optional[CustomDomainEntry]:
        domain = domain.strip().lower()
        for entry in self.list():
            if entry.domain == domain:
                return entry
        return None

    def add(self, domain: str, ip: Optional[str] = None) -> Optional[CustomDomainEntry]:
        """
        Tambah atau update custom domain

        Args:
            domain: Nama domain
            ip: (optional) IP yang dipakai; kalau kosong di-resolve lewat DNS

        Returns:
            Entri yang disimpan (is_update=True kalau domain sudah ada),
            atau None kalau resolve/penyimpanan gagal

        Raises:
            ValueError: format domain atau IP tidak valid
        """
        domain = (domain or '').strip().lower()
        if not is_valid_domain(domain):
            raise ValueError(f"Invalid domain format: {domain!r}")
        if ip is not None and not is_ipv4(ip):
            raise ValueError(f"Invalid IPv4 address: {ip!r}")

        logger.info(f"Adding custom domain: {domain}")

        if ip is None:
            resolved = self.resolver.resolve_ip(domain)
            if not resolved:
                logger.error(f"Failed to resolve domain: {domain}")
                return None
            ip = standard_ip = optimized_ip = resolved
            resolve_method = RESOLVE_DNS
        else:
            # Resolve standar hanya untuk perbandingan; gagal tidak masalah
            standard_ip = self.resolver.resolve_ip(domain)
            optimized_ip = ip
            resolve_method = RESOLVE_MANUAL

        now = self._now()
        entry = CustomDomainEntry(
            domain=domain,
            ip=ip,
            added_at=now,
            resolved_at=now,
            standard_ip=standard_ip,
            optimized_ip=optimized_ip,
            resolve_method=resolve_method,
            is_active=True,
        )

        try:
            entries = self._read()
            existing_index = next(
                (i for i, existing in enumerate(entries) if existing.domain == domain), None
            )

            if existing_index is not None:
                entry.added_at = entries[existing_index].added_at or now
                entries[existing_index] = entry
                entry.is_update = True
                logger.info(f"Updated existing custom domain: {domain}")
            else:
                entries.append(entry)
                logger.info(f"Added new custom domain: {domain}")

            self._save(entries)
        except Exception as e:
            logger.error(f"Error adding custom domain {domain}: {e}")
            return None

        logger.info(f"Custom domain {domain} -> {ip} saved successfully")
        return entry

    def add_many(self, domains: Iterable) -> dict:
        """
        Tambah banyak domain sekaligus

        Args:
            domains: List of domain (str) atau dict {'domain': ..., 'ip': ...}

        Returns:
            Dict ringkasan: added, failed, results, errors
        """
        results = []
        errors = []

        for item in domains:
            if isinstance(item, dict):
                domain, ip = item.get('domain'), item.get('ip')
            else:
                domain, ip = item, None

            if not domain or not isinstance(domain, str):
                errors.append({'domain': domain or 'unknown', 'error': 'Domain is required'})
                continue

            try:
                entry = self.add(domain, ip)
            except ValueError as e:
                errors.append({'domain': domain, 'error': str(e)})
                continue

            if entry:
                results.append({'domain': entry.domain, 'status': 'updated' if entry.is_update else 'success'})
            else:
                errors.append({'domain': domain, 'error': 'Failed to add domain'})

        logger.info(f"Batch add completed: {len(results)} added, {len(errors)} failed")
        return {
            'added': len(results),
            'failed': len(errors),
            'results': results,
            'errors': errors,
        }

    def set_active(self, domain: str, active: bool) -> bool:
        domain = domain.strip().lower()
        try:
            entries = self._read()
            for entry in entries:
                if entry.domain == domain:
                    entry.is_active = active
                    self._save(entries)
                    logger.info(f"Custom domain {domain} {'activated' if active else 'deactivated'}")
                    return True
        except Exception as e:
            logger.error(f"Error updating custom domain {domain}: {e}")
            return False

        logger.info(f"Custom domain not found: {domain}")
        return False

    def remove(self, domain: str) -> bool:
        domain = domain.strip().lower()
        try:
            entries = self._read()
            filtered = [entry for entry in entries if entry.domain != domain]

            if len(filtered) < len(entries):
                self._save(filtered)
                logger.info(f"Removed custom domain: {domain}")
                return True
        except Exception as e:
            logger.error(f"Error removing custom domain {domain}: {e}")
            return False

        logger.info(f"Custom domain not found: {domain}")
        return False

    def clear(self) -> int:
        """Hapus semua custom domain; return jumlah yang dihapus"""
        try:
            count = len(self._read())
            if count == 0:
                return 0
            self.store.delete(CUSTOM_DOMAINS_KEY)
        except Exception as e:
            logger.error(f"Error clearing custom domains: {e}")
            return 0

        logger.info(f"Cleared {count} custom domains")
        return count
