"""
Pytest configuration and shared fixtures for hosts-keeper tests.

Nothing here touches the network: HTTP sessions are mocks, clocks and
sleeps are injected.
"""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests

from hostkeeper.dns_resolver import Resolution
from hostkeeper.storage import MemoryStore

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


class FakeClock:
    """Settable UTC clock"""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 15, 8, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class StubResolver:
    """DNSResolver stand-in driven by a {domain: ip} mapping"""

    def __init__(self, answers=None, provider="Cloudflare DNS"):
        self.answers = dict(answers or {})
        self.provider = provider
        self.calls = []

    def resolve(self, domain):
        self.calls.append(domain)
        ip = self.answers.get(domain)
        if isinstance(ip, Exception):
            raise ip
        if not ip:
            return None
        return Resolution(domain, ip, self.provider, 0.05)

    def resolve_ip(self, domain):
        resolution = self.resolve(domain)
        return resolution.ip if resolution else None


class BrokenStore(MemoryStore):
    """MemoryStore yang bisa dibuat gagal per operasi"""

    def __init__(self, fail_get=False, fail_put=False, fail_delete=False, **kwargs):
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.fail_delete = fail_delete
        self.puts = 0
        super().__init__(**kwargs)

    def get(self, key):
        if self.fail_get:
            raise OSError("storage unavailable")
        return super().get(key)

    def put(self, key, value):
        if self.fail_put:
            raise OSError("storage unavailable")
        self.puts += 1
        super().put(key, value)

    def delete(self, key):
        if self.fail_delete:
            raise OSError("storage unavailable")
        super().delete(key)


def make_response(status_code=200, json_data=None, text="", url="https://dns.test/"):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.url = url
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


def dns_json(ip, record_type=1):
    return {
        "Status": 0,
        "Answer": [
            {"name": "github.com", "type": 5, "TTL": 60, "data": "github.map.fastly.net."},
            {"name": "github.com", "type": record_type, "TTL": 60, "data": ip},
        ],
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def stub_resolver():
    return StubResolver()
