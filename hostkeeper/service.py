"""
HostsService - satu objek yang memiliki seluruh state hosts-keeper

Dibuat sekali saat startup (from_config), lalu dipakai oleh CLI atau
collaborator lain. State hanya berubah lewat method eksplisit di sini.
"""

import time
import uuid
import logging
from pathlib import Path
from typing import List, Optional

from hostkeeper.batch_scheduler import BatchScheduler
from hostkeeper.cache_store import CacheStore
from hostkeeper.custom_domains import CustomDomainRegistry
from hostkeeper.dns_resolver import DNSResolver
from hostkeeper.hosts_formatter import format_hosts_file, format_hosts_json
from hostkeeper.merger import merge_entries
from hostkeeper.models import CustomDomainEntry, HostEntry, format_timestamp
from hostkeeper.storage import FileStore, KeyValueStore

logger = logging.getLogger(__name__)


class HostsService:

    def __init__(
        self,
        cache: CacheStore,
        registry: CustomDomainRegistry,
        resolver: DNSResolver,
        hosts_settings: Optional[dict] = None,
    ):
        self.cache = cache
        self.registry = registry
        self.resolver = resolver
        self.hosts_settings = hosts_settings or {}

    @classmethod
    def from_config(cls, config: dict, store: Optional[KeyValueStore] = None) -> 'HostsService':
        """
        Rakit semua komponen dari config

        Args:
            config: Hasil load_config()
            store: (optional) store pengganti; default FileStore di settings.data_dir
        """
        if store is None:
            data_dir = config.get('settings', {}).get('data_dir', 'data')
            store = FileStore(str(Path(data_dir)))

        resolver = DNSResolver.from_config(config)
        scheduler = BatchScheduler.from_config(config, resolver)
        cache = CacheStore.from_config(config, store, scheduler)
        registry = CustomDomainRegistry(store, resolver)
        return cls(cache, registry, resolver, config.get('hosts', {}))

    # ---- read operations ----

    def get_base_hosts(self, force_refresh: bool = False) -> List[HostEntry]:
        return self.cache.read(force_refresh)

    def get_complete_hosts(self, force_refresh: bool = False) -> List[HostEntry]:
        """Base entries + custom domain aktif (custom menang kalau domain sama)"""
        try:
            logger.info(
                f"Fetching complete hosts data (base + custom)"
                f"{' with force refresh' if force_refresh else ''}"
            )
            base_entries = self.cache.read(force_refresh)
            logger.info(f"Base entries: {len(base_entries)}")

            custom_domains = self.registry.list()
            logger.info(f"Custom entries: {len([cd for cd in custom_domains if cd.is_active])}")

            all_entries = merge_entries(base_entries, custom_domains)
            logger.info(f"Total entries after deduplication: {len(all_entries)}")
            return all_entries
        except Exception as e:
            logger.error(f"Error getting complete hosts data: {e}")
            return self.get_base_hosts(force_refresh)

    def render_hosts(self, force_refresh: bool = False, include_custom: bool = True) -> str:
        if include_custom:
            entries = self.get_complete_hosts(force_refresh)
        else:
            entries = self.get_base_hosts(force_refresh)

        return format_hosts_file(
            entries,
            tz_name=self.hosts_settings.get('timezone', 'Asia/Shanghai'),
            width=int(self.hosts_settings.get('ip_column_width', 30)),
        )

    def render_json(self, force_refresh: bool = False) -> dict:
        entries = self.get_complete_hosts(force_refresh)
        return format_hosts_json(
            entries,
            self.cache.base_domains,
            cache_status='refreshed' if force_refresh else 'cached',
        )

    # ---- cache management ----

    def refresh(self) -> List[HostEntry]:
        logger.info("Manual cache refresh requested")
        return self.cache.refresh()

    def scheduled_refresh(self, always: bool = False) -> Optional[List[HostEntry]]:
        """
        Dipanggil oleh cron/timer

        Refresh hanya kalau snapshot melewati soft TTL (atau always=True).
        Return None kalau refresh dilewati.
        """
        if not always and not self.cache.needs_refresh():
            logger.info("Cache is within the soft refresh window, skipping scheduled refresh")
            return None

        logger.info("Running scheduled refresh...")
        try:
            entries = self.cache.refresh()
        except Exception as e:
            logger.error(f"Error in scheduled task: {e}")
            return None
        logger.info(f"Scheduled task completed successfully with {len(entries)} entries")
        return entries

    def reset(self) -> List[HostEntry]:
        try:
            return self.cache.reset()
        except Exception as e:
            logger.error(f"Error resetting hosts data: {e}")
            return []

    def cache_status(self) -> dict:
        return self.cache.status()

    def clear_cache(self) -> bool:
        return self.cache.clear()

    # ---- custom domain optimization ----

    def optimize_domain(self, domain: str) -> Optional[CustomDomainEntry]:
        """Resolve ulang domain lalu simpan sebagai custom domain"""
        new_ip = self.resolver.resolve_ip(domain)
        if not new_ip:
            logger.error(f"Failed to resolve domain {domain}")
            return None
        return self.registry.add(domain, new_ip)

    def optimize_all(self) -> dict:
        """
        Refresh semua base domain lalu resolve ulang setiap custom domain

        Kegagalan refresh base domain tidak menghentikan proses custom domain.

        Returns:
            Dict laporan: jumlah sukses/gagal, detail per domain, durasi
        """
        request_id = uuid.uuid4().hex[:12]
        start_time = time.time()

        logger.info("=" * 60)
        logger.info(f"Optimize all domains [{request_id}]")
        logger.info("=" * 60)

        base_start = time.time()
        base_entries: List[HostEntry] = []
        try:
            base_entries = self.cache.refresh()
            logger.info(f"[{request_id}] Base domains refreshed: {len(base_entries)} entries")
        except Exception as e:
            logger.error(f"[{request_id}] Base domain refresh failed, continuing with custom domains: {e}")
        base_duration = time.time() - base_start

        custom_start = time.time()
        custom_domains = self.registry.list()
        results = []
        errors = []

        for i, current in enumerate(custom_domains, 1):
            domain = current.domain
            domain_start = time.time()
            logger.info(f"[{request_id}] Optimizing custom domain {i}/{len(custom_domains)}: {domain} (current IP: {current.ip})")

            try:
                new_ip = self.resolver.resolve_ip(domain)
                duration = round(time.time() - domain_start, 3)

                if not new_ip:
                    errors.append({'domain': domain, 'error': 'DNS resolution failed', 'oldIp': current.ip, 'duration': duration})
                    logger.error(f"[{request_id}] ✗ {domain} DNS resolution failed")
                    continue

                updated = self.registry.add(domain, new_ip)
                if updated:
                    results.append({
                        'domain': domain,
                        'status': 'success',
                        'oldIp': current.ip,
                        'newIp': new_ip,
                        'updated': current.ip != new_ip,
                        'duration': duration,
                    })
                    logger.info(f"[{request_id}] ✓ {domain}: {current.ip} -> {new_ip}")
                else:
                    errors.append({'domain': domain, 'error': 'Update failed', 'oldIp': current.ip, 'newIp': new_ip, 'duration': duration})
                    logger.error(f"[{request_id}] ✗ {domain} resolved but could not be saved")
            except Exception as e:
                duration = round(time.time() - domain_start, 3)
                errors.append({'domain': domain, 'error': str(e), 'oldIp': current.ip, 'duration': duration})
                logger.error(f"[{request_id}] ✗ {domain} optimization error: {e}")

        custom_duration = time.time() - custom_start
        total_duration = time.time() - start_time

        logger.info("=" * 60)
        logger.info(f"[{request_id}] Base domains: {len(base_entries)}")
        logger.info(f"[{request_id}] Custom domains optimized: {len(results)}")
        logger.info(f"[{request_id}] Custom domains failed: {len(errors)}")
        logger.info(f"[{request_id}] Time elapsed: {total_duration:.1f}s")
        logger.info("=" * 60)

        return {
            'success': True,
            'requestId': request_id,
            'optimized': len(base_entries) + len(results),
            'failed': len(errors),
            'baseDomains': len(base_entries),
            'customDomains': {
                'total': len(custom_domains),
                'optimized': len(results),
                'failed': len(errors),
            },
            'results': results,
            'errors': errors,
            'timestamp': format_timestamp(self.cache.clock()),
            'performance': {
                'totalDuration': round(total_duration, 3),
                'baseDuration': round(base_duration, 3),
                'customDuration': round(custom_duration, 3),
            },
        }

    def diagnose_custom_domains(self) -> List[dict]:
        """Bandingkan resolve standar sekarang dengan data custom domain yang tersimpan"""
        tests = []
        for entry in self.registry.list():
            standard_ip = self.resolver.resolve_ip(entry.domain)
            tests.append({
                'domain': entry.domain,
                'standardResolution': standard_ip or 'resolution failed',
                'resolvedIp': standard_ip,
                'matchesStored': standard_ip == entry.ip,
                'storedInfo': entry.to_dict(),
            })
        return tests
