#!/usr/bin/env python3
"""
DNS Resolver berbasis DNS-over-HTTPS dengan multi-provider fallback
Provider dicoba berurutan; provider pertama yang memberi A record menang
"""

import time
import logging
import importlib
from typing import Callable, Iterable, List, NamedTuple, Optional

import requests

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    domain: str
    ip: str
    provider: str
    response_time: float


class DNSProvider:
    """Satu entri provider dari config beserta handler module-nya"""

    def __init__(self, config: dict, handler):
        self.config = config
        self.name = config.get('name') or config.get('handler', 'unknown')
        self.handler = handler

    def build_request(self, domain: str) -> dict:
        return self.handler.build_request(self.config, domain)

    def parse_answer(self, response: requests.Response) -> Optional[str]:
        return self.handler.parse_answer(response)

    def __repr__(self):
        return f"DNSProvider({self.name!r})"


def load_provider(config: dict) -> Optional[DNSProvider]:
    """Dinamis load handler module berdasarkan nama di config"""
    handler_name = config.get('handler')
    try:
        module = importlib.import_module(f"hostkeeper.providers.{handler_name}")
        return DNSProvider(config, module)
    except Exception as e:
        logger.error(f"Gagal memuat handler '{handler_name}' untuk provider {config.get('name')}: {e}")
        return None


def load_providers(configs: Iterable[dict]) -> List[DNSProvider]:
    providers = []
    for config in configs:
        provider = load_provider(config)
        if provider:
            providers.append(provider)
    return providers


class DNSResolver:
    """
    Resolver DoH dengan features:
    - Multiple providers (automatic fallback, urutan tetap)
    - Timeout per request + deadline per provider
    - Retry dengan exponential backoff untuk error sementara
    - Stateless antar panggilan (kecuali HTTP session)
    """

    def __init__(
        self,
        providers: Iterable,
        request_timeout: float = 5.0,
        attempt_timeout: float = 8.0,
        retries: int = 2,
        backoff: float = 0.5,
        backoff_factor: float = 1.5,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            providers: List of DNSProvider atau dict config provider
            request_timeout: Timeout per HTTP request (seconds)
            attempt_timeout: Deadline untuk semua percobaan ke satu provider (seconds)
            retries: Jumlah retry tambahan per provider
            backoff: Delay sebelum retry pertama (seconds)
            backoff_factor: Pengali delay untuk retry berikutnya
        """
        self.providers: List[DNSProvider] = []
        for provider in providers:
            if not isinstance(provider, DNSProvider):
                provider = load_provider(provider)
            if provider:
                self.providers.append(provider)

        self.request_timeout = request_timeout
        self.attempt_timeout = attempt_timeout
        self.retries = retries
        self.backoff = backoff
        self.backoff_factor = backoff_factor
        self.session = session or requests.Session()
        self.sleep = sleep
        self.clock = clock

    @classmethod
    def from_config(cls, config: dict, session: Optional[requests.Session] = None) -> 'DNSResolver':
        settings = config.get('resolver', {})
        return cls(
            providers=config.get('providers', []),
            request_timeout=float(settings.get('request_timeout', 5.0)),
            attempt_timeout=float(settings.get('attempt_timeout', 8.0)),
            retries=int(settings.get('retries', 2)),
            backoff=float(settings.get('backoff', 0.5)),
            backoff_factor=float(settings.get('backoff_factor', 1.5)),
            session=session,
        )

    def _query_provider(self, provider: DNSProvider, domain: str) -> Optional[str]:
        """
        Query satu provider dengan retry

        Deadline (attempt_timeout) membatasi kapan percobaan boleh dimulai dan
        timeout yang diberikan ke requests. Timeout requests berlaku untuk
        connect dan jeda antar paket, bukan total transfer: server yang
        mengirim body sangat lambat bisa melewati deadline. Response seperti
        itu tetap dipakai, tapi tidak ada retry yang dimulai setelah deadline.

        Returns:
            IPv4 address atau None (gagal / tidak ada jawaban)
        """
        request = provider.build_request(domain)
        deadline = self.clock() + self.attempt_timeout
        delay = self.backoff
        last_error = None

        for attempt in range(self.retries + 1):
            remaining = deadline - self.clock()
            if remaining <= 0:
                last_error = "Timeout (deadline reached)"
                break

            try:
                response = self.session.get(
                    request['url'],
                    params=request.get('params'),
                    headers=request.get('headers'),
                    timeout=min(self.request_timeout, remaining),
                )
            except requests.exceptions.Timeout:
                last_error = "Timeout"
            except requests.exceptions.RequestException as e:
                last_error = f"HTTP error: {e}"
            else:
                if response.status_code == 429 or response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                elif not response.ok:
                    logger.debug(f"✗ {domain} via {provider.name} - HTTP {response.status_code}")
                    return None
                else:
                    return provider.parse_answer(response)

            # Exponential backoff untuk retry
            if attempt < self.retries:
                if self.clock() + delay >= deadline:
                    last_error = f"{last_error} (deadline reached)"
                    break
                self.sleep(delay)
                delay *= self.backoff_factor

        logger.debug(f"✗ {domain} via {provider.name} - {last_error}")
        return None

    def resolve(self, domain: str) -> Optional[Resolution]:
        """
        Resolve single domain lewat semua provider secara berurutan

        Returns:
            Resolution (ip + provider yang menjawab), atau None kalau semua gagal
        """
        start = self.clock()

        for provider in self.providers:
            try:
                ip = self._query_provider(provider, domain)
            except Exception as e:
                logger.error(f"Error with DNS provider {provider.name} for {domain}: {e}")
                ip = None

            if ip:
                elapsed = self.clock() - start
                logger.debug(f"✓ {domain} → {ip} via {provider.name} ({elapsed:.2f}s)")
                return Resolution(domain, ip, provider.name, elapsed)

            logger.debug(f"Failed to resolve {domain} via {provider.name}")

        logger.warning(f"Failed to resolve {domain} from all DNS providers")
        return None

    def resolve_ip(self, domain: str) -> Optional[str]:
        resolution = self.resolve(domain)
        return resolution.ip if resolution else None


if __name__ == "__main__":
    import sys
    from hostkeeper.config import load_config

    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    resolver = DNSResolver.from_config(load_config())
    for name in sys.argv[1:] or ["github.com", "api.github.com"]:
        result = resolver.resolve(name)
        if result:
            print(f"  {result.domain}: {result.ip} ({result.provider}, {result.response_time:.2f}s)")
        else:
            print(f"  {name}: not found")
