#!/usr/bin/env python3
"""
Plugin Mitigator - Command-line entry point

Runs one mitigation pass against a WordPress installation on disk, using
the SQLite option store for cooldowns and the active plugin list.

Usage:
    # Pass over the installation in the current directory
    python main.py

    # Explicit WordPress root, ignoring cooldowns, with debug output
    python main.py --abspath /var/www/html --force --debug

    # Show the plugin list as the host would render it
    python main.py --abspath /var/www/html --list

Exit status: 0 nothing cleaned, 2 something cleaned, 1 configuration error.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from pathlib import Path
from typing import List, Optional

EXIT_CLEAN = 0
EXIT_ERROR = 1
EXIT_CLEANED = 2


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Plugin Mitigator - neutralize known malicious WordPress plugins",
        epilog="Examples:\n"
               "  python main.py --abspath /var/www/html\n"
               "  python main.py --abspath /var/www/html --force --debug\n"
               "  python main.py --abspath /var/www/html --list\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--abspath', '-a',
        type=str,
        help='WordPress root directory (default: from config, then ".")'
    )

    parser.add_argument(
        '--plugins-dir',
        type=str,
        help='Plugins directory (default: <abspath>/wp-content/plugins)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='YAML configuration file'
    )

    parser.add_argument(
        '--db',
        type=str,
        help='SQLite option store path'
    )

    parser.add_argument(
        '--profiles',
        type=str,
        help='Extra YAML profile catalog layered on the built-in one'
    )

    parser.add_argument(
        '--force', '-f',
        action='store_true',
        help='Ignore the full-pass and family-sweep cooldowns'
    )

    parser.add_argument(
        '--list', '-l',
        action='store_true',
        help='Print the plugin list after visibility enforcement and exit'
    )

    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable logging output'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level while debug is on (default: from config)'
    )

    return parser.parse_args(argv)


def setup_signal_handlers() -> None:
    """Exit quietly on SIGINT/SIGTERM."""
    def signal_handler(signum: int, frame: object) -> None:
        from plugin_mitigator.utils.logger import get_logger
        logger = get_logger("main")
        logger.info(f"Received {signal.Signals(signum).name}, stopping")
        sys.exit(EXIT_ERROR)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    from plugin_mitigator.core import build_mitigator
    from plugin_mitigator.database import Repository
    from plugin_mitigator.host import LocalWordPressHost
    from plugin_mitigator.utils import MitigatorError, init_config
    from plugin_mitigator.utils.logger import get_logger, setup_logging

    try:
        config = init_config(Path(args.config) if args.config else None)
        config.apply_overrides({
            "paths.abspath": args.abspath,
            "paths.plugins_dir": args.plugins_dir,
            "database.path": args.db,
            "profiles.file": args.profiles,
            "logging.level": args.log_level,
            "logging.debug": True if args.debug else None,
        })
    except MitigatorError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        debug=bool(config.get("logging.debug", False)),
        level=config.get("logging.level", "INFO"),
        log_file=config.get("logging.file"),
        format_type=config.get("logging.format", "pretty"),
    )
    logger = get_logger("main")
    setup_signal_handlers()

    try:
        store = Repository(config.get("database.path"))
        host = LocalWordPressHost(config.plugins_dir, store)
        mitigator = build_mitigator(config, host, store)
    except MitigatorError as e:
        logger.error(f"Startup failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.list:
        plugins = mitigator.on_plugin_list(host.list_all_plugins())
        print(json.dumps(plugins, indent=2, sort_keys=True))
        return EXIT_CLEAN

    summary = mitigator.orchestrator.run_pass(force=args.force)
    print(json.dumps(summary.to_dict(), indent=2))

    if not summary.ran:
        logger.info("Pass skipped (cooldown active or not permitted)")

    return EXIT_CLEANED if summary.anything_cleaned else EXIT_CLEAN


if __name__ == "__main__":
    sys.exit(main())
