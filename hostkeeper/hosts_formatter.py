"""
Render daftar (ip, domain) ke format /etc/hosts dan JSON
Format baris: <ip rata kiri 30 kolom><domain>
"""

import os
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hostkeeper.merger import split_entries
from hostkeeper.models import HostEntry, format_timestamp, utcnow

logger = logging.getLogger(__name__)

HOSTS_TEMPLATE = """# GitHub hosts
# Keeps GitHub reachable: copy the lines below into your hosts file
#

{content}

# data updated at: {update_time}
"""

IP_COLUMN_WIDTH = 30


def display_time(moment: datetime, tz_name: str) -> str:
    """Timestamp untuk footer, contoh: 1/15/2024, 16:30:00"""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone {tz_name!r}, using UTC")
        tz = timezone.utc
    local = moment.astimezone(tz)
    return f"{local.month}/{local.day}/{local.year}, {local.strftime('%H:%M:%S')}"


def format_hosts_file(
    entries: Iterable[HostEntry],
    now: Optional[datetime] = None,
    tz_name: str = "Asia/Shanghai",
    width: int = IP_COLUMN_WIDTH,
) -> str:
    """
    Render entries ke teks hosts file

    Args:
        entries: List of (ip, domain)
        now: Waktu update (default: sekarang)
        tz_name: Time zone untuk timestamp di footer
        width: Lebar kolom IP

    Returns:
        Isi hosts file
    """
    content = "\n".join(f"{ip.ljust(width)}{domain}" for ip, domain in entries)
    update_time = display_time(now or utcnow(), tz_name)
    return HOSTS_TEMPLATE.format(content=content, update_time=update_time)


def format_hosts_json(
    entries: Sequence[HostEntry],
    base_domains: Iterable[str],
    cache_status: str = "cached",
    now: Optional[datetime] = None,
) -> dict:
    base, custom = split_entries(entries, base_domains)
    return {
        'entries': [list(entry) for entry in entries],
        'total': len(entries),
        'base': [list(entry) for entry in base],
        'custom': [list(entry) for entry in custom],
        'timestamp': format_timestamp(now or utcnow()),
        'cacheStatus': cache_status,
    }


def write_hosts_file(content: str, output_file: str) -> None:
    """Tulis hosts file, buat direktori kalau belum ada"""
    directory = os.path.dirname(output_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        f.write(content)

    logger.info(f"Berhasil menulis hosts file ke {output_file}")
