#!/usr/bin/env python3
"""
Command-line interface for the cargo real-time pipeline.

Usage:
    uv run python cli.py [--log-level LEVEL] command [options]

Commands:
    demo        Walk a shipment through its lifecycle, or run a random burst
    simulate    Publish N random events through a fresh session
    test        Run the test suite
    serve       Start the API server

Examples:
    uv run python cli.py demo lifecycle
    uv run python cli.py --log-level DEBUG simulate --count 30 --seed 7
    uv run python cli.py test -k dispatcher -x
    uv run python cli.py serve --port 9000
"""

import argparse
import asyncio
import logging
import subprocess
import sys

import uvicorn

from common.config import get_settings

DEMOS = ("lifecycle", "simulation", "all")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )


def run_demo(scenario: str) -> None:
    from realtime.demo import run_shipment_lifecycle_demo, run_simulation_demo

    if scenario in ("lifecycle", "all"):
        asyncio.run(run_shipment_lifecycle_demo())
    if scenario in ("simulation", "all"):
        asyncio.run(run_simulation_demo())


def run_simulation(count: int, seed: int) -> None:
    from realtime.demo import run_simulation_demo

    asyncio.run(run_simulation_demo(count=count, seed=seed))


def run_tests(pytest_args: list[str]) -> int:
    """Run pytest with the current interpreter. Returns its exit code."""
    return subprocess.call([sys.executable, "-m", "pytest", *pytest_args])


def run_server(host: str, port: int, reload: bool, log_level: str) -> None:
    print(f"Serving the real-time API at http://{host}:{port} (docs at /docs)")
    uvicorn.run("api.main:app", host=host, port=port, reload=reload, log_level=log_level.lower())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargo-realtime",
        description="Cargo real-time pipeline: notifications, live metrics and email delivery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Set CARGO_* environment variables (or a .env file) to change capacities and email settings.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level for this run (defaults to CARGO_LOG_LEVEL)",
    )

    commands = parser.add_subparsers(dest="command", help="Command to run")

    demo = commands.add_parser("demo", help="Run a scripted demo")
    demo.add_argument("scenario", choices=DEMOS, help="Which demo to run")

    simulate = commands.add_parser("simulate", help="Publish random events through a fresh session")
    simulate.add_argument("--count", type=int, default=20, help="Number of events to publish")
    simulate.add_argument("--seed", type=int, default=42, help="Seed for the event generator")

    # No options of its own (not even -h), so everything after "test" reaches pytest
    commands.add_parser("test", help="Run the test suite; extra arguments are passed to pytest", add_help=False)

    serve = commands.add_parser("serve", help="Start the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Restart on code changes")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)
    if extras and args.command != "test":
        parser.error(f"unrecognized arguments: {' '.join(extras)}")
    log_level = args.log_level or get_settings().log_level

    if args.command == "demo":
        configure_logging(log_level)
        run_demo(args.scenario)
    elif args.command == "simulate":
        configure_logging(log_level)
        run_simulation(args.count, args.seed)
    elif args.command == "test":
        return run_tests(extras)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload, log_level)
    else:
        parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
