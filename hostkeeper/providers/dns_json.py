"""
Handler untuk DNS-over-HTTPS JSON API (Cloudflare, Google)
Format response: application/dns-json
"""

import logging
from typing import Optional

import requests

from hostkeeper.models import is_ipv4

logger = logging.getLogger(__name__)

A_RECORD = 1


def build_request(provider: dict, domain: str) -> dict:
    """
    Build request untuk DoH JSON endpoint

    Args:
        provider: Dictionary konfigurasi provider
            - url: Endpoint DoH (contoh: https://dns.google/resolve)
            - headers: (optional) header tambahan

    Returns:
        Dict dengan url, params, headers untuk requests
    """
    headers = {'Accept': 'application/dns-json'}
    headers.update(provider.get('headers') or {})
    return {
        'url': provider['url'].format(domain=domain),
        'params': {'name': domain, 'type': 'A'},
        'headers': headers,
    }


def parse_answer(response: requests.Response) -> Optional[str]:
    """
    Ambil A record pertama dari response DoH JSON

    Returns:
        IPv4 address, atau None kalau tidak ada A record yang valid
    """
    try:
        data = response.json()
    except ValueError:
        logger.debug(f"Response from {response.url} is not JSON")
        return None

    if not isinstance(data, dict):
        return None

    for answer in data.get('Answer') or []:
        if not isinstance(answer, dict) or answer.get('type') != A_RECORD:
            continue
        ip = answer.get('data')
        if is_ipv4(ip):
            return ip

    return None
