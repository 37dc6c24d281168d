#!/usr/bin/env python3
"""
hosts-keeper command line

Contoh:
    hostkeeper hosts --output data/hosts
    hostkeeper scheduled            # untuk cron, refresh kalau lewat soft TTL
    hostkeeper add example.com --ip 1.2.3.4
"""

import sys
import json
import logging
import argparse
from typing import List, Optional

from hostkeeper.config import load_config
from hostkeeper.hosts_formatter import write_hosts_file
from hostkeeper.service import HostsService

logger = logging.getLogger(__name__)

ACTIONS = [
    'hosts', 'json', 'status', 'refresh', 'scheduled', 'reset', 'clear-cache',
    'list', 'add', 'remove', 'clear', 'activate', 'deactivate',
    'optimize', 'optimize-all', 'diagnose',
]
TARGET_ACTIONS = {'add', 'remove', 'activate', 'deactivate', 'optimize'}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hostkeeper',
        description='Resolve GitHub domains via DNS-over-HTTPS and publish a hosts file'
    )
    parser.add_argument(
        'action',
        choices=ACTIONS,
        help='Action to perform'
    )
    parser.add_argument(
        'target',
        nargs='*',
        help='Domain(s) for add/remove/activate/deactivate/optimize'
    )
    parser.add_argument('--config', help='Path to config.yml (default: $HOSTKEEPER_CONFIG or ./config.yml)')
    parser.add_argument('--refresh', action='store_true', help='Ignore the cache and resolve again')
    parser.add_argument('--no-custom', action='store_true', help='Only base domains in hosts output')
    parser.add_argument('--ip', help='Explicit IP for add (single domain only)')
    parser.add_argument('--output', help='Write hosts/json output to this file instead of stdout')
    parser.add_argument('--always', action='store_true', help='scheduled: refresh even inside the soft window')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    return parser


def _emit(content: str, output: Optional[str]) -> None:
    if output:
        write_hosts_file(content, output)
    else:
        print(content)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def run(args, service: HostsService) -> int:
    """Jalankan satu action; return exit code"""
    action = args.action

    if action in TARGET_ACTIONS and not args.target:
        print(f"Error: domain required for {action}")
        return 1

    if action == 'hosts':
        _emit(service.render_hosts(args.refresh, include_custom=not args.no_custom), args.output)

    elif action == 'json':
        _emit(json.dumps(service.render_json(args.refresh), indent=2, ensure_ascii=False), args.output)

    elif action == 'status':
        _print_json(service.cache_status())

    elif action == 'refresh':
        entries = service.refresh()
        print(f"Cache refreshed: {len(entries)} entries")

    elif action == 'scheduled':
        entries = service.scheduled_refresh(always=args.always)
        if entries is None:
            print("Scheduled refresh skipped")
        else:
            print(f"Scheduled refresh completed: {len(entries)} entries")

    elif action == 'reset':
        entries = service.reset()
        print(f"Reset completed: {len(entries)} entries")
        return 0 if entries else 1

    elif action == 'clear-cache':
        if not service.clear_cache():
            print("Failed to clear cache")
            return 1
        print("Cache cleared")

    elif action == 'list':
        domains = service.registry.list()
        if not domains:
            print("No custom domains")
        for cd in domains:
            flag = '' if cd.is_active else ' (inactive)'
            print(f"  {cd.ip.ljust(16)}{cd.domain} [{cd.resolve_method}]{flag}")

    elif action == 'add':
        if args.ip and len(args.target) > 1:
            print("Error: --ip can only be used with a single domain")
            return 1
        if len(args.target) == 1:
            try:
                entry = service.registry.add(args.target[0], args.ip)
            except ValueError as e:
                print(f"Error: {e}")
                return 1
            if not entry:
                print(f"Failed to add domain or resolve IP: {args.target[0]}")
                return 1
            verb = 'updated' if entry.is_update else 'added'
            print(f"Domain {entry.domain} {verb}: {entry.ip}")
        else:
            report = service.registry.add_many(args.target)
            _print_json(report)
            return 0 if not report['failed'] else 1

    elif action == 'remove':
        failed = [domain for domain in args.target if not service.registry.remove(domain)]
        for domain in failed:
            print(f"Domain not found: {domain}")
        return 1 if failed else 0

    elif action in ('activate', 'deactivate'):
        active = action == 'activate'
        failed = [domain for domain in args.target if not service.registry.set_active(domain, active)]
        for domain in failed:
            print(f"Domain not found: {domain}")
        return 1 if failed else 0

    elif action == 'clear':
        count = service.registry.clear()
        print(f"Cleared {count} custom domains")

    elif action == 'optimize':
        failed = False
        for domain in args.target:
            entry = service.optimize_domain(domain)
            if entry:
                print(f"  {domain}: {entry.ip}")
            else:
                print(f"  {domain}: failed to resolve")
                failed = True
        return 1 if failed else 0

    elif action == 'optimize-all':
        report = service.optimize_all()
        _print_json(report)
        return 0 if not report['failed'] else 1

    elif action == 'diagnose':
        _print_json(service.diagnose_custom_domains())

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = load_config(args.config)
    service = HostsService.from_config(config)
    return run(args, service)


if __name__ == "__main__":
    sys.exit(main())
