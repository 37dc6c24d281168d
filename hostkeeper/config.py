"""
Konfigurasi hosts-keeper
Load config.yml dan gabungkan dengan nilai default
"""

import os
import sys
import copy
import yaml
import logging
from pathlib import Path
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_ENV = "HOSTKEEPER_CONFIG"
DATA_DIR_ENV = "HOSTKEEPER_DATA_DIR"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

GITHUB_DOMAINS = [
    "alive.github.com",
    "api.github.com",
    "assets-cdn.github.com",
    "avatars.githubusercontent.com",
    "avatars0.githubusercontent.com",
    "avatars1.githubusercontent.com",
    "avatars2.githubusercontent.com",
    "avatars3.githubusercontent.com",
    "avatars4.githubusercontent.com",
    "avatars5.githubusercontent.com",
    "camo.githubusercontent.com",
    "central.github.com",
    "cloud.githubusercontent.com",
    "codeload.github.com",
    "collector.github.com",
    "desktop.githubusercontent.com",
    "favicons.githubusercontent.com",
    "gist.github.com",
    "github-cloud.s3.amazonaws.com",
    "github-com.s3.amazonaws.com",
    "github-production-release-asset-2e65be.s3.amazonaws.com",
    "github-production-repository-file-5c1aeb.s3.amazonaws.com",
    "github-production-user-asset-6210df.s3.amazonaws.com",
    "github.blog",
    "github.com",
    "github.community",
    "github.githubassets.com",
    "github.global.ssl.fastly.net",
    "github.io",
    "github.map.fastly.net",
    "githubstatus.com",
    "live.github.com",
    "media.githubusercontent.com",
    "objects.githubusercontent.com",
    "pipelines.actions.githubusercontent.com",
    "raw.githubusercontent.com",
    "user-images.githubusercontent.com",
    "vscode.dev",
    "education.github.com",
    "private-user-images.githubusercontent.com",
]

DEFAULT_CONFIG = {
    'settings': {
        'data_dir': 'data',
        'version': '1.0.0',
    },
    'resolver': {
        'request_timeout': 5.0,
        'attempt_timeout': 8.0,
        'retries': 2,
        'backoff': 0.5,
        'backoff_factor': 1.5,
    },
    'scheduler': {
        'batch_size': 5,
        'batch_delay': 2.0,
    },
    'cache': {
        'hard_ttl_hours': 6,
        'soft_ttl_hours': 1,
    },
    'hosts': {
        'timezone': 'Asia/Shanghai',
        'ip_column_width': 30,
    },
    'providers': [
        {
            'name': 'Cloudflare DNS',
            'url': 'https://1.1.1.1/dns-query',
            'handler': 'dns_json',
            'headers': {'Accept': 'application/dns-json'},
        },
        {
            'name': 'Google DNS',
            'url': 'https://dns.google/resolve',
            'handler': 'dns_json',
            'headers': {'Accept': 'application/dns-json'},
        },
        {
            'name': 'IPAddress.com',
            'url': 'https://sites.ipaddress.com/{domain}',
            'handler': 'ipaddress_html',
            'headers': {'User-Agent': BROWSER_USER_AGENT},
        },
    ],
    'domains': GITHUB_DOMAINS,
}


def merge_config(base: dict, override: dict) -> dict:
    """
    Gabungkan override ke base secara rekursif

    Dict digabung per key, nilai lain (termasuk list) diganti utuh.
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Load konfigurasi dari file YAML

    Args:
        config_path: Path ke config file. Default: $HOSTKEEPER_CONFIG atau config.yml

    Returns:
        Dict konfigurasi lengkap (default + isi file)
    """
    path = Path(config_path or os.getenv(CONFIG_ENV) or "config.yml")

    if not path.exists():
        logger.info(f"Config file {path} not found, using built-in defaults")
        config = copy.deepcopy(DEFAULT_CONFIG)
    else:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError("top-level YAML value must be a mapping")
            config = merge_config(DEFAULT_CONFIG, loaded)
            logger.info(f"Konfigurasi berhasil dimuat dari {path}")
        except Exception as e:
            logger.error(f"Gagal memuat konfigurasi {path}: {e}")
            sys.exit(1)

    data_dir = os.getenv(DATA_DIR_ENV)
    if data_dir:
        config['settings']['data_dir'] = data_dir

    hard, soft = cache_thresholds(config)
    if soft >= hard:
        logger.warning(
            f"cache.soft_ttl_hours ({soft}) is not shorter than cache.hard_ttl_hours ({hard}); "
            "proactive refreshes will never run before reads start blocking"
        )

    return config


def cache_thresholds(config: dict):
    """Return (hard_ttl, soft_ttl) as timedelta"""
    cache = config.get('cache', {})
    hard = timedelta(hours=float(cache.get('hard_ttl_hours', 6)))
    soft = timedelta(hours=float(cache.get('soft_ttl_hours', 1)))
    return hard, soft
