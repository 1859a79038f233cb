"""
Command line tool for batchline subscribers.

Usage:
    # List the recognized subscriber options
    python -m batchline describe

    # Build and print a subscriber's blueprint
    python -m batchline blueprint myapp.subscribers:OrderSubscriber
    python -m batchline blueprint myapp.subscribers:OrderSubscriber --config env.yaml --json

    # Start a subscriber and run until SIGINT/SIGTERM
    python -m batchline run myapp.subscribers:OrderSubscriber --config env.yaml

The subscriber's module is imported before anything else, so sources it
registers at import time are available. A .env file in the working
directory is loaded first; BATCHLINE_CONFIG names the environment file when
--config is not given.
"""

import argparse
import asyncio
import importlib
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from config.environment import YamlEnvironment, set_environment
from core.errors import SubscriberError
from core.logging import log_subscriber_startup, setup_logging
from core.utils import json_serializer
from batchline.blueprint import SUBSCRIBER_SCHEMA, build_blueprint
from batchline.child_spec import child_spec

logger = logging.getLogger(__name__)


def load_subscriber(target: str) -> type:
    """Import a subscriber class from "package.module:ClassName".

    Raises:
        ValueError: If target is not in module:Class form or the class is missing
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected MODULE:CLASS, got '{target}'")

    module = importlib.import_module(module_name)
    subscriber: Any = module
    for part in attr.split("."):
        try:
            subscriber = getattr(subscriber, part)
        except AttributeError:
            raise ValueError(f"{module_name} has no attribute '{attr}'") from None
    return subscriber


def _build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m batchline",
        description="Batchline subscriber tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("describe", help="List the recognized subscriber options")

    blueprint_parser = subparsers.add_parser("blueprint", help="Build and print a blueprint")
    blueprint_parser.add_argument("subscriber", help="Subscriber class as MODULE:CLASS")
    blueprint_parser.add_argument("--config", type=Path, help="Environment YAML file")
    blueprint_parser.add_argument("--json", action="store_true", help="Output JSON")

    run_parser = subparsers.add_parser("run", help="Start a subscriber")
    run_parser.add_argument("subscriber", help="Subscriber class as MODULE:CLASS")
    run_parser.add_argument("--config", type=Path, help="Environment YAML file")
    run_parser.add_argument("--json-logs", action="store_true", help="Log JSON to stdout")

    return parser


def _apply_config(path: Optional[Path]) -> None:
    if path is not None:
        set_environment(YamlEnvironment(path))


def _cmd_describe(args: argparse.Namespace) -> int:
    print(SUBSCRIBER_SCHEMA.docs())
    return 0


def _cmd_blueprint(args: argparse.Namespace) -> int:
    _apply_config(args.config)
    blueprint = build_blueprint(load_subscriber(args.subscriber))
    options = blueprint.to_options()

    if args.json:
        print(json.dumps(options, default=json_serializer, indent=2))
    else:
        for key, value in options.items():
            print(f"{key}: {json_serializer(value) if isinstance(value, type) else value}")
    return 0


async def _run_worker(worker: Any) -> None:
    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("Received signal, initiating graceful shutdown", extra={"signal": sig.name})
        loop.create_task(worker.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    await worker.run()


def _cmd_run(args: argparse.Namespace) -> int:
    _apply_config(args.config)
    blueprint = build_blueprint(load_subscriber(args.subscriber))
    spec = child_spec(blueprint)

    setup_logging(
        json_format=args.json_logs,
        console_level=logging.DEBUG if args.verbose else logging.INFO,
        subscriber_id=str(spec.id),
    )
    log_subscriber_startup(logger, spec.id, blueprint.to_options())

    worker = spec.start_child()
    if not callable(getattr(worker, "run", None)):
        print(f"✗ Adapter for {spec.id} does not provide a runnable process", file=sys.stderr)
        return 1

    asyncio.run(_run_worker(worker))
    return 0


COMMANDS = {
    "describe": _cmd_describe,
    "blueprint": _cmd_blueprint,
    "run": _cmd_run,
}


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    parser = _build_cli_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command != "run":
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(levelname)s: %(message)s",
        )

    try:
        return COMMANDS[args.command](args)
    except SubscriberError as e:
        print(f"✗ {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError, ImportError) as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
