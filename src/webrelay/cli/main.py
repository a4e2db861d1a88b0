"""
Command line interface.
"""

import argparse
import asyncio
import copy
import logging
import sys

import yaml

from ..infra.config import DEFAULT_CONFIG_PATH, get_default_config, load_config, save_config
from .doctor import collect_doctor_report
from .relay_host import run_relay

logger = logging.getLogger(__name__)


def _configure_logging(args, config) -> None:
    log_level = args.log_level or (config.get("logging") or {}).get("level") or "INFO"
    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def cmd_run(args):
    """Run the relay in the foreground."""
    config = load_config(args.config)
    _configure_logging(args, config)
    try:
        asyncio.run(run_relay(config, echo=args.echo))
    except ValueError as e:
        logger.error("Cannot start web relay: %s", e)
        sys.exit(1)


def cmd_config(args):
    """Config management."""
    if args.show:
        config = copy.deepcopy(load_config(args.config))
        web = config.get("web_channel") or {}
        if web.get("secret"):
            web["secret"] = "***"
        print(yaml.dump(config, default_flow_style=False, allow_unicode=True))
    elif args.init:
        save_config(get_default_config(), args.config)
        print(f"Config initialized: {args.config or DEFAULT_CONFIG_PATH}")
    else:
        print("Use --show to print the config, --init to write the default config")


def cmd_doctor(args):
    """Run environment checks."""
    items = collect_doctor_report(config_path=args.config)

    level_order = {"ERROR": 0, "WARN": 1, "OK": 2}
    items = sorted(items, key=lambda x: (level_order.get(x.level, 9), x.title))

    ok = sum(1 for x in items if x.level == "OK")
    warn = sum(1 for x in items if x.level == "WARN")
    err = sum(1 for x in items if x.level == "ERROR")

    print(f"Doctor: OK={ok} WARN={warn} ERROR={err}")
    for item in items:
        prefix = {"OK": "✓", "WARN": "!", "ERROR": "✗"}.get(item.level, "-")
        print(f"{prefix} [{item.level}] {item.title}: {item.details}")
        if item.hint:
            print(f"    Hint: {item.hint}")

    if err:
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webrelay",
        description="webrelay - polling relay between the web chat UI and the agent host",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--config", type=str, help="Config file path")
    parser.add_argument("--log-level", type=str,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    parser_run = subparsers.add_parser("run", help="Run the relay in the foreground")
    parser_run.add_argument("--echo", action="store_true", help="Answer every message with its echo")
    parser_run.set_defaults(func=cmd_run)

    parser_config = subparsers.add_parser("config", help="Config management")
    parser_config.add_argument("--show", action="store_true", help="Print the current config")
    parser_config.add_argument("--init", action="store_true", help="Write the default config")
    parser_config.set_defaults(func=cmd_config)

    parser_doctor = subparsers.add_parser("doctor", help="Check config and web UI reachability")
    parser_doctor.set_defaults(func=cmd_doctor)

    return parser


def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
