"""
Cache Store - snapshot hasil resolve base domain

Features:
- Baca snapshot dari key/value store, cek umur terhadap hard TTL
- Refresh (batch resolve) kalau snapshot kosong, kadaluarsa, atau diminta
- Merge-write: lastUpdated per domain hanya berubah kalau IP berubah
- Soft TTL terpisah untuk refresh terjadwal (tidak memblokir read)
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from hostkeeper.batch_scheduler import BatchScheduler
from hostkeeper.config import cache_thresholds
from hostkeeper.models import (
    MULTIPLE_DNS_PROVIDER,
    CacheSnapshot,
    DomainRecord,
    HostEntry,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from hostkeeper.storage import KeyValueStore

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "domain_data"


class CacheStore:
    """Pemilik snapshot `domain_data`"""

    def __init__(
        self,
        store: KeyValueStore,
        scheduler: BatchScheduler,
        base_domains: Sequence[str],
        hard_ttl: timedelta = timedelta(hours=6),
        soft_ttl: timedelta = timedelta(hours=1),
        version: str = "1.0.0",
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            store: Key/value store untuk snapshot
            scheduler: BatchScheduler untuk refresh
            base_domains: Daftar base domain (urutan dipakai untuk output)
            hard_ttl: Umur maksimum snapshot sebelum read harus refetch
            soft_ttl: Umur snapshot sebelum refresh terjadwal dijalankan
            version: Versi yang ditulis ke snapshot baru
            clock: Sumber waktu (UTC, timezone-aware)
        """
        self.store = store
        self.scheduler = scheduler
        self.base_domains = list(base_domains)
        self.hard_ttl = hard_ttl
        self.soft_ttl = soft_ttl
        self.version = version
        self.clock = clock

    @classmethod
    def from_config(cls, config: dict, store: KeyValueStore, scheduler: BatchScheduler) -> 'CacheStore':
        hard_ttl, soft_ttl = cache_thresholds(config)
        return cls(
            store,
            scheduler,
            config.get('domains', []),
            hard_ttl=hard_ttl,
            soft_ttl=soft_ttl,
            version=str(config.get('settings', {}).get('version', '1.0.0')),
        )

    def load_snapshot(self) -> Optional[CacheSnapshot]:
        """Load snapshot; None kalau tidak ada, gagal dibaca, atau rusak"""
        try:
            data = self.store.get(SNAPSHOT_KEY)
        except Exception as e:
            logger.error(f"Error loading cache snapshot: {e}")
            return None

        if data is None:
            return None

        skipped: List[str] = []
        try:
            snapshot = CacheSnapshot.from_dict(data, skipped)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring malformed cache snapshot: {e}")
            return None

        if skipped:
            logger.warning(f"Dropped {len(skipped)} invalid cache records: {', '.join(skipped)}")
        return snapshot

    def is_fresh(self, snapshot: Optional[CacheSnapshot], now: Optional[datetime] = None) -> bool:
        """Snapshot valid untuk read: ada isinya dan umurnya < hard TTL"""
        if snapshot is None or not snapshot.records:
            return False
        age = snapshot.age(now or self.clock())
        return age is not None and age < self.hard_ttl

    def needs_refresh(self, snapshot: Optional[CacheSnapshot] = None) -> bool:
        """Soft TTL check untuk refresh terjadwal"""
        if snapshot is None:
            snapshot = self.load_snapshot()
        if snapshot is None or not snapshot.records:
            return True
        age = snapshot.age(self.clock())
        return age is None or age >= self.soft_ttl

    def read(self, force_refresh: bool = False) -> List[HostEntry]:
        """
        Ambil entri base domain

        Args:
            force_refresh: Abaikan cache dan resolve ulang semua domain

        Returns:
            List of (ip, domain) sesuai urutan base domain
        """
        try:
            snapshot = self.load_snapshot()

            if not force_refresh and self.is_fresh(snapshot):
                entries = [
                    (snapshot.records[domain].ip, domain)
                    for domain in self.base_domains
                    if domain in snapshot.records
                ]
                age = snapshot.age(self.clock())
                logger.info(
                    f"Loaded {len(entries)} entries from cache "
                    f"(age: {round(age.total_seconds() / 60)} minutes)"
                )
                return entries

            if force_refresh:
                logger.info("Force refresh requested, fetching new data...")
            else:
                logger.info("Cache expired or invalid, fetching new data...")
        except Exception as e:
            logger.error(f"Error reading cache, falling back to fresh resolution: {e}")

        try:
            return self.refresh()
        except Exception as e:
            logger.error(f"Fallback refresh failed: {e}")
            return []

    def refresh(self) -> List[HostEntry]:
        """Resolve ulang semua base domain dan simpan (write-through)"""
        resolved = self.scheduler.resolve_all(self.base_domains)
        entries = [(ip, domain) for domain, ip in resolved]
        self.write(entries, self.scheduler.stats.get('response_times'))
        return entries

    def write(self, entries: Sequence[HostEntry], response_times: Optional[Dict[str, float]] = None) -> None:
        """
        Merge entri baru ke snapshot dan simpan dalam satu put

        Args:
            entries: List of (ip, domain)
            response_times: (optional) durasi resolve per domain, informasional
        """
        now = self.clock()
        current_time = format_timestamp(now)
        response_times = response_times or {}

        snapshot = self.load_snapshot() or CacheSnapshot(version=self.version)
        changed = 0
        rejected = 0

        for ip, domain in entries:
            old = snapshot.records.get(domain)
            has_changed = old is None or old.ip != ip

            last_updated = current_time
            if not has_changed:
                previous = parse_timestamp(old.last_updated)
                if previous is not None and previous <= now:
                    last_updated = old.last_updated

            try:
                snapshot.records[domain] = DomainRecord(
                    domain=domain,
                    ip=ip,
                    last_updated=last_updated,
                    last_checked=current_time,
                    response_time=round(float(response_times.get(domain, 0.0)), 3),
                    provider=MULTIPLE_DNS_PROVIDER,
                    resolved=True,
                )
            except ValueError as e:
                logger.warning(f"Rejected cache record: {e}")
                rejected += 1
                continue

            if has_changed:
                changed += 1

        snapshot.last_updated = current_time
        snapshot.update_count += 1

        try:
            self.store.put(SNAPSHOT_KEY, snapshot.to_dict())
        except Exception as e:
            logger.error(f"Error updating hosts data: {e}")
            return

        logger.info(
            f"Updated {len(snapshot.records)} domains in cache "
            f"({changed} changed, {rejected} rejected, update #{snapshot.update_count})"
        )

    def refresh_domain(self, domain: str) -> Optional[DomainRecord]:
        """
        Resolve ulang satu domain dan simpan ke snapshot

        lastUpdated snapshot tidak diubah; itu tetap menandai refresh penuh terakhir.
        """
        resolution = self.scheduler.resolver.resolve(domain)
        if not resolution:
            return None

        now = self.clock()
        current_time = format_timestamp(now)
        snapshot = self.load_snapshot() or CacheSnapshot(version=self.version)

        old = snapshot.records.get(domain)
        last_updated = current_time
        if old is not None and old.ip == resolution.ip:
            previous = parse_timestamp(old.last_updated)
            if previous is not None and previous <= now:
                last_updated = old.last_updated

        record = DomainRecord(
            domain=domain,
            ip=resolution.ip,
            last_updated=last_updated,
            last_checked=current_time,
            response_time=round(resolution.response_time, 3),
            provider=resolution.provider,
            resolved=True,
        )
        snapshot.records[domain] = record
        snapshot.update_count += 1

        try:
            self.store.put(SNAPSHOT_KEY, snapshot.to_dict())
        except Exception as e:
            logger.error(f"Error saving data for domain {domain}: {e}")
            return None

        return record

    def clear(self) -> bool:
        try:
            self.store.delete(SNAPSHOT_KEY)
        except Exception as e:
            logger.error(f"Error clearing cache: {e}")
            return False
        logger.info("Cache cleared")
        return True

    def reset(self) -> List[HostEntry]:
        """Hapus snapshot lalu resolve ulang dari nol"""
        logger.info("Clearing cache data...")
        self.clear()
        logger.info("Fetching new data...")
        return self.refresh()

    def status(self) -> dict:
        snapshot = self.load_snapshot()
        if snapshot is None:
            return {'cached': False, 'message': 'No cache data found'}

        now = self.clock()
        age = snapshot.age(now)
        age_minutes = round(age.total_seconds() / 60) if age is not None else None
        hard_minutes = self.hard_ttl.total_seconds() / 60

        return {
            'cached': True,
            'lastUpdated': snapshot.last_updated,
            'ageMinutes': age_minutes,
            'isValid': self.is_fresh(snapshot, now),
            'needsRefresh': self.needs_refresh(snapshot),
            'validUntilMinutes': max(0, round(hard_minutes - age_minutes)) if age_minutes is not None else 0,
            'domainCount': len(snapshot.records),
            'updateCount': snapshot.update_count,
            'version': snapshot.version,
        }
