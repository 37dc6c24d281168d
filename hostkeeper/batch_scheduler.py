"""
Batch resolution untuk daftar domain

Domain diproses per batch: semua domain dalam satu batch di-resolve
bersamaan, batch berikutnya baru mulai setelah batch sebelumnya selesai
dan jeda singkat (menghindari rate limit provider).
"""

import time
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, Tuple

from hostkeeper.dns_resolver import DNSResolver

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
BATCH_DELAY = 2.0  # seconds between batches


class BatchScheduler:

    def __init__(
        self,
        resolver: DNSResolver,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.resolver = resolver
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.sleep = sleep
        self.stats = self._empty_stats(0)

    @classmethod
    def from_config(cls, config: dict, resolver: DNSResolver) -> 'BatchScheduler':
        settings = config.get('scheduler', {})
        return cls(
            resolver,
            batch_size=int(settings.get('batch_size', BATCH_SIZE)),
            batch_delay=float(settings.get('batch_delay', BATCH_DELAY)),
        )

    @staticmethod
    def _empty_stats(total: int) -> dict:
        return {
            'total': total,
            'resolved': 0,
            'failed': 0,
            'batches': 0,
            'failed_domains': [],
            'providers': defaultdict(int),
            'response_times': {},
        }

    def _resolve_batch(self, batch: Sequence[str]) -> List[Tuple[str, str]]:
        results = []
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = [executor.submit(self.resolver.resolve, domain) for domain in batch]

            # Hasil dikumpulkan sesuai urutan input, bukan urutan selesai
            for domain, future in zip(batch, futures):
                try:
                    resolution = future.result()
                except Exception as e:
                    logger.error(f"Exception resolving {domain}: {e}")
                    resolution = None

                if resolution:
                    results.append((domain, resolution.ip))
                    self.stats['resolved'] += 1
                    self.stats['providers'][resolution.provider] += 1
                    self.stats['response_times'][domain] = resolution.response_time
                    logger.info(f"Domain: {domain}, IP: {resolution.ip}")
                else:
                    self.stats['failed'] += 1
                    self.stats['failed_domains'].append(domain)
                    logger.info(f"Domain: {domain}, IP: -")

        return results

    def resolve_all(self, domains: Sequence[str]) -> List[Tuple[str, str]]:
        """
        Resolve semua domain per batch

        Args:
            domains: List of domains

        Returns:
            List of (domain, ip) untuk domain yang berhasil di-resolve saja
        """
        domains = list(domains)
        self.stats = self._empty_stats(len(domains))
        total_batches = (len(domains) + self.batch_size - 1) // self.batch_size
        start_time = time.time()
        results: List[Tuple[str, str]] = []

        logger.info(f"Starting batch processing for {len(domains)} domains")

        for i in range(0, len(domains), self.batch_size):
            batch = domains[i:i + self.batch_size]
            logger.info(f"Processing batch {i // self.batch_size + 1}/{total_batches}")

            results.extend(self._resolve_batch(batch))
            self.stats['batches'] += 1

            if i + self.batch_size < len(domains):
                self.sleep(self.batch_delay)

        elapsed = time.time() - start_time
        logger.info(
            f"Total entries found: {len(results)}/{len(domains)} "
            f"({self.stats['failed']} failed, {elapsed:.1f}s)"
        )
        if self.stats['failed_domains']:
            logger.warning(f"Unresolved this cycle: {', '.join(self.stats['failed_domains'])}")

        return results
