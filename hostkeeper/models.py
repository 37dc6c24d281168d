"""
Data model untuk cache snapshot dan custom domain

Dokumen yang disimpan memakai nama field camelCase supaya data lama tetap
bisa dibaca apa adanya.
"""

import re
import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

# (ip, domain)
HostEntry = Tuple[str, str]

RESOLVE_MANUAL = 'manual'
RESOLVE_DNS = 'dns'
RESOLVE_MIGRATED = 'migrated'
RESOLVE_METHODS = (RESOLVE_MANUAL, RESOLVE_DNS, RESOLVE_MIGRATED)

MULTIPLE_DNS_PROVIDER = 'multiple-dns'

_IPV4_RE = re.compile(r'^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$')
_DOMAIN_RE = re.compile(r'^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def is_ipv4(value) -> bool:
    """Check dotted-quad IPv4 syntax (0-255 per octet)"""
    if not isinstance(value, str) or not _IPV4_RE.match(value):
        return False
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_valid_domain(value) -> bool:
    return isinstance(value, str) and bool(_DOMAIN_RE.match(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC dengan presisi milidetik, contoh: 2024-01-01T08:00:00.000Z"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value) -> Optional[datetime]:
    """Parse ISO-8601 timestamp; None kalau kosong atau tidak valid"""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class DomainRecord:
    """Hasil resolve terakhir untuk satu base domain"""

    domain: str
    ip: str
    last_updated: str
    last_checked: str
    response_time: float = 0.0
    provider: str = MULTIPLE_DNS_PROVIDER
    resolved: bool = True

    def __post_init__(self):
        if not is_ipv4(self.ip):
            raise ValueError(f"Invalid IPv4 address for {self.domain}: {self.ip!r}")
        updated = parse_timestamp(self.last_updated)
        checked = parse_timestamp(self.last_checked)
        if updated and checked and checked < updated:
            raise ValueError(f"lastChecked is older than lastUpdated for {self.domain}")

    def to_dict(self) -> dict:
        return {
            'ip': self.ip,
            'lastUpdated': self.last_updated,
            'lastChecked': self.last_checked,
            'responseTime': self.response_time,
            'provider': self.provider,
            'resolved': self.resolved,
        }

    @classmethod
    def from_dict(cls, domain: str, data: dict) -> 'DomainRecord':
        last_updated = data.get('lastUpdated') or data.get('resolvedAt') or ''
        return cls(
            domain=domain,
            ip=data.get('ip', ''),
            last_updated=last_updated,
            last_checked=data.get('lastChecked') or last_updated,
            response_time=float(data.get('responseTime') or 0.0),
            provider=data.get('provider') or MULTIPLE_DNS_PROVIDER,
            resolved=bool(data.get('resolved', data.get('isOptimized', True))),
        )


@dataclass
class CacheSnapshot:
    records: Dict[str, DomainRecord] = field(default_factory=dict)
    last_updated: Optional[str] = None
    update_count: int = 0
    version: str = '1.0.0'

    def to_dict(self) -> dict:
        return {
            'domain_data': {domain: record.to_dict() for domain, record in self.records.items()},
            'lastUpdated': self.last_updated,
            'updateCount': self.update_count,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: dict, skipped: Optional[List[str]] = None) -> 'CacheSnapshot':
        """
        Bangun snapshot dari dokumen storage

        Record yang tidak valid dibuang; domain-nya dicatat di `skipped`.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot document must be an object, got {type(data).__name__}")

        domain_data = data.get('domain_data') or {}
        if not isinstance(domain_data, dict):
            raise ValueError(f"domain_data must be an object, got {type(domain_data).__name__}")

        records = {}
        for domain, raw in domain_data.items():
            try:
                records[domain] = DomainRecord.from_dict(domain, raw)
            except (ValueError, TypeError, AttributeError):
                if skipped is not None:
                    skipped.append(domain)

        return cls(
            records=records,
            last_updated=data.get('lastUpdated'),
            update_count=int(data.get('updateCount') or 0),
            version=data.get('version') or 'unknown',
        )

    def age(self, now: datetime):
        """Umur snapshot (timedelta) atau None kalau lastUpdated tidak ada"""
        updated = parse_timestamp(self.last_updated)
        if updated is None:
            return None
        return now - updated


@dataclass
class CustomDomainEntry:
    """Override domain yang ditambahkan user"""

    domain: str
    ip: str
    added_at: str
    resolved_at: str
    standard_ip: Optional[str] = None
    optimized_ip: Optional[str] = None
    resolve_method: str = RESOLVE_MANUAL
    is_active: bool = True
    # hanya untuk hasil add(), tidak disimpan
    is_update: bool = field(default=False, compare=False)

    def to_dict(self) -> dict:
        return {
            'domain': self.domain,
            'ip': self.ip,
            'addedAt': self.added_at,
            'resolvedAt': self.resolved_at,
            'standardIp': self.standard_ip,
            'optimizedIp': self.optimized_ip,
            'resolveMethod': self.resolve_method,
            'isActive': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CustomDomainEntry':
        added_at = data.get('addedAt') or ''
        return cls(
            domain=data['domain'],
            ip=data.get('ip') or '',
            added_at=added_at,
            resolved_at=data.get('resolvedAt') or added_at,
            standard_ip=data.get('standardIp'),
            optimized_ip=data.get('optimizedIp'),
            resolve_method=data.get('resolveMethod') or RESOLVE_MANUAL,
            # entri lama tanpa isActive dianggap aktif
            is_active=data.get('isActive') is not False,
        )

    def host_entry(self) -> HostEntry:
        return (self.ip, self.domain)
