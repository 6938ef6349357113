#!/usr/bin/env python3
"""
Janitarr - Entry Point
Run with: python -m janitarr
"""

import argparse
import os
import signal
import sys
from typing import List, Optional

from . import __version__
from .activity import LogType
from .automation import format_cycle_result, format_scan_results
from .automation.formatter import RULE
from .config import Config
from .core import JanitarrCore
from .logger import Logger

SHUTDOWN_TIMEOUT = 30.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="janitarr",
        description="Janitarr - Automated search for missing and upgradeable media"
    )
    parser.add_argument("--config", "-c", type=str, default="/config/config.json",
                        help="Path to configuration file")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug logging")
    parser.add_argument("--version", "-v", action="version",
                        version=f"Janitarr v{__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Run the scheduler and web server")
    start.add_argument("--host", type=str, default="0.0.0.0",
                       help="Web server host")
    start.add_argument("--port", "-p", type=int, default=8080,
                       help="Web server port")

    run = sub.add_parser("run", help="Run one automation cycle and exit")
    run.add_argument("--dry-run", action="store_true",
                     help="Plan and log searches without triggering them")

    sub.add_parser("scan", help="Detect missing and cutoff-unmet items without searching")
    sub.add_parser("status", help="Show schedule, servers and the last cycle")

    logs = sub.add_parser("logs", help="Show recent activity log entries")
    logs.add_argument("--limit", "-n", type=int, default=50,
                      help="Number of entries to show")
    logs.add_argument("--type", choices=LogType.ALL, default=None,
                      help="Only show entries of this type")
    return parser


def cmd_start(core: JanitarrCore, args, log) -> int:
    from .web import WebServer

    def signal_handler(signum, frame):
        log.info("🛑 Shutting down Janitarr...")
        core.shutdown(SHUTDOWN_TIMEOUT)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if core.config.get_schedule_config().enabled:
        core.start_scheduler()
        log.info("⏰ Scheduler started")
    else:
        log.info("⏸️  Scheduling disabled, manual triggers only")

    log.info(f"🌐 Starting web server on http://{args.host}:{args.port}")
    server = WebServer(core)
    server.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def cmd_run(core: JanitarrCore, args, log) -> int:
    try:
        result = core.run_cycle(dry_run=args.dry_run)
    except Exception as e:
        log.error(f"❌ Cycle failed: {e}")
        return 1
    print(format_cycle_result(result))
    return 1 if result.failed else 0


def cmd_scan(core: JanitarrCore, args, log) -> int:
    results = core.scan()
    print(format_scan_results(results))
    return 0 if all(r.ok for r in results.values()) else 1


def cmd_status(core: JanitarrCore, args, log) -> int:
    schedule = core.config.get_schedule_config()
    servers = core.config.to_dict()["servers"]
    last_cycle = core.get_logs(limit=1, log_type=LogType.CYCLE_END)

    print("Janitarr status:")
    print(RULE)
    print("Schedule:")
    print(f"  Enabled:    {'yes' if schedule.enabled else 'no'}")
    print(f"  Interval:   {schedule.interval_hours:g} hours")
    if last_cycle:
        stamp = last_cycle[0].timestamp.strftime('%Y-%m-%d %H:%M:%S')
        print(f"  Last cycle: {stamp} ({last_cycle[0].message})")
    else:
        print("  Last cycle: never")

    print("")
    print(f"Servers ({len(servers)} configured):")
    for server in servers:
        state = "" if server["enabled"] else " [disabled]"
        print(f"  {server['name']} ({server['type']}) {server['url']}{state}")
    print(RULE)
    return 0


def cmd_logs(core: JanitarrCore, args, log) -> int:
    entries = core.get_logs(limit=args.limit, log_type=args.type)
    if not entries:
        print("No activity logged yet.")
        return 0
    for entry in reversed(entries):
        stamp = entry.timestamp.strftime('%Y-%m-%d %H:%M:%S') if entry.timestamp else '-'
        server = f" [{entry.server_name}]" if entry.server_name else ""
        print(f"{stamp} | {entry.type:<11} |{server} {entry.message}")
    return 0


COMMANDS = {
    'start': cmd_start,
    'run': cmd_run,
    'scan': cmd_scan,
    'status': cmd_status,
    'logs': cmd_logs,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_dir = os.path.join(os.path.dirname(os.path.abspath(args.config)), "logs")
    logger = Logger(log_dir=log_dir, debug=args.debug)
    log = logger.get_logger("main")

    if args.command == 'start':
        log.info("=" * 60)
        log.info(f"🧹 Janitarr v{__version__} Starting...")
        log.info(f"⏰ Timezone: {os.environ.get('TZ', 'UTC')}")
        log.info("=" * 60)

    config = Config(args.config)
    if not config.list_enabled_servers():
        log.warning("📋 No servers configured - add Radarr/Sonarr servers to the config file")

    core = JanitarrCore(config, logger)
    return COMMANDS[args.command](core, args, log)


if __name__ == "__main__":
    sys.exit(main())
