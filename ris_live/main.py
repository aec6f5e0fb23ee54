#!/usr/bin/env python3
"""
RIS Live - stream and filter the RIPE RIS Live BGP firehose

Usage examples:
ris-live listen --as-path 3356,1299 --format json
ris-live listen --file capture.json --prefix 192.0.2.0/24 --count 10
ris-live config --validate
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from ris_live.filters import load_filter_file
from ris_live.models import RisMessage
from ris_live.pipeline.ingestion import RisLive
from ris_live.utils.config import ConfigManager
from ris_live.utils.logging import setup_logging, LoggingTimer
from ris_live.utils.error_handling import (
    handle_errors, ErrorFormatter, ValidationError, validate_common_args,
    print_success, print_warning, print_error
)

logger = logging.getLogger('ris-live.main')


def setup_app_logging(config_manager: ConfigManager, verbose: bool = False, quiet: bool = False):
    """Configure logging for the application"""
    level = None
    if quiet:
        level = 'WARNING'
    elif verbose:
        level = 'DEBUG'

    setup_logging(config_manager.get_config().logging, level=level, console_colors=True)


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma separated CLI value; None means not given"""
    if value is None:
        return None
    return [item.strip() for item in value.split(',') if item.strip()]


def format_message(message: RisMessage, index: int, output_format: str) -> str:
    """Render one record for stdout"""
    if output_format == 'json':
        return json.dumps(message.to_dict())

    data = message.data
    if data is None:
        return f"Message({index}): {message.type}"
    path = ' '.join(str(asn) for asn in data.digested_path)
    return (f"Message({index}): Peer/ASN -> {data.peer}/{data.peer_asn} "
            f"Prefix1: {data.first_prefix() or ''} Path: {path}")


@handle_errors('ris-live.listen')
def cmd_listen(args, config_manager: ConfigManager):
    """Stream records from RIS Live and print the ones matching the filter"""
    config = config_manager.get_config()

    config_manager.update_stream_config(
        url=args.url,
        file=args.file,
        client=args.client,
        buffer_size=args.buffer,
        connect_timeout=args.timeout,
        on_digest_error='drop' if args.drop_undigestable else None,
    )

    if args.filter_file:
        config.filters = load_filter_file(args.filter_file)

    config_manager.update_filter_config(
        as_path=_split_list(args.as_path),
        invalid_transit_as=_split_list(args.invalid_transit),
        origins=_split_list(args.origin),
        prefixes=_split_list(args.prefix),
    )

    risfilter = config.filters.to_filter()
    session = RisLive(config.stream, risfilter, apply_filter=True)

    printed = 0
    with LoggingTimer(logger, f"streaming from {session.source.describe()}"):
        for message in session.messages():
            print(format_message(message, printed, args.format), flush=True)
            printed += 1
            if args.count and printed >= args.count:
                break

    if session.error is not None:
        raise session.error

    if not session.done:
        # Stopped early on --count; the producer thread is a daemon
        print_success(f"Printed {printed} records")
        return 0

    if printed == 0 and session.stats.last_error:
        print_warning(f"No records received: {session.stats.last_error}",
                      "Check the feed URL, network connectivity or the local file path")
        return 1

    print_success(f"Stream finished: {printed} records printed")
    if args.stats:
        print(session.stats.to_summary(), file=sys.stderr)
    return 0


@handle_errors('ris-live.config')
def cmd_config(args, config_manager: ConfigManager):
    """Show or validate the effective configuration"""
    config_manager.print_config()

    if not args.validate:
        return 0

    issues = config_manager.validate_config()
    if issues:
        for issue in issues:
            print_error(issue)
        return 1

    print_success("Configuration is valid")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser"""
    parent_parser = argparse.ArgumentParser(add_help=False)
    verbose_group = parent_parser.add_mutually_exclusive_group()
    verbose_group.add_argument('-v', '--verbose', action='store_true',
                               help='Enable debug logging')
    verbose_group.add_argument('-q', '--quiet', action='store_true',
                               help='Only log warnings and errors')
    parent_parser.add_argument('--config', metavar='PATH',
                               help='Configuration file (JSON)')

    parser = argparse.ArgumentParser(
        prog='ris-live',
        description='Stream and filter BGP updates from the RIPE RIS Live firehose',
        parents=[parent_parser]
    )
    parser.add_argument('--version', action='version', version='ris-live 0.1.0')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    listen_parser = subparsers.add_parser('listen', parents=[parent_parser],
                                          help='Stream records and print matches')
    listen_parser.add_argument('--url', help='RIS Live firehose URL')
    listen_parser.add_argument('--file', help='Read records from a local JSON file instead')
    listen_parser.add_argument('--client', help='Client name sent to RIS Live')
    listen_parser.add_argument('--buffer', type=int, help='Output queue capacity')
    listen_parser.add_argument('--timeout', type=float, help='Connect timeout in seconds')
    listen_parser.add_argument('--as-path', metavar='ASN,...',
                               help='AS path fragment to match, e.g. 3356,1299')
    listen_parser.add_argument('--invalid-transit', metavar='ASN,...',
                               help='AS numbers that must not appear in transit')
    listen_parser.add_argument('--origin', metavar='VALUE,...',
                               help='Origin values to match')
    listen_parser.add_argument('--prefix', metavar='CIDR,...',
                               help='Prefixes whose more-specifics are matched')
    listen_parser.add_argument('--filter-file', help='YAML/JSON file with filter criteria')
    listen_parser.add_argument('--count', type=int, help='Stop after N matching records')
    listen_parser.add_argument('--format', choices=['summary', 'json'], default='summary',
                               help='Output format (default: summary)')
    listen_parser.add_argument('--drop-undigestable', action='store_true',
                               help='Skip records with a malformed AS path instead of stopping')
    listen_parser.add_argument('--stats', action='store_true',
                               help='Print session statistics at the end')

    config_parser = subparsers.add_parser('config', parents=[parent_parser],
                                          help='Show the effective configuration')
    config_parser.add_argument('--validate', action='store_true',
                               help='Validate the configuration')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config_manager = ConfigManager(args.config)
    setup_app_logging(config_manager, args.verbose, args.quiet)

    try:
        args = validate_common_args(args)
    except ValidationError as e:
        print(ErrorFormatter.format_error(e), file=sys.stderr)
        return 1

    command_functions = {
        'listen': cmd_listen,
        'config': cmd_config,
    }

    return command_functions[args.command](args, config_manager)


if __name__ == '__main__':
    sys.exit(main())
