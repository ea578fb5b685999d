"""
Conformance run entry point.

Run with:
    python -m tck --network local
    python -m tck --network testnet --suite smoke -x

Arguments not recognized here are passed through to pytest.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import pytest

from tck.core.config import get_settings
from tck.core.exceptions import ConfigurationError
from tck.core.logging import get_logger, setup_logging

logger = get_logger("runner")

CONFORMANCE_DIR = Path(__file__).resolve().parent.parent / "conformance_tests"

SUITES = {
    "all": None,
    "smoke": "smoke",
    "workflow": "workflow",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m tck",
        description="Run the conformance suite against a running SUT.",
    )
    parser.add_argument(
        "--network",
        choices=["local", "testnet"],
        default=os.environ.get("NETWORK", "local"),
        help="Target network (default: $NETWORK or local)",
    )
    parser.add_argument(
        "--suite",
        choices=sorted(SUITES),
        default="all",
        help="Restrict the run to one marker group",
    )
    return parser


def pytest_args(suite: str, extra: list[str]) -> list[str]:
    args = [str(CONFORMANCE_DIR)]
    marker = SUITES[suite]
    if marker:
        args += ["-m", marker]
    return args + extra


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args, extra = parser.parse_known_args(argv)

    # Settings are read from the environment, so the choice must land there first
    os.environ["NETWORK"] = args.network
    get_settings.cache_clear()
    settings = get_settings()
    setup_logging(settings)

    try:
        settings.require_operator_credentials()
    except ConfigurationError as e:
        logger.error(e.message)
        return 2

    logger.info(
        f"Running {args.suite} conformance tests on {settings.network} "
        f"against {settings.json_rpc_server_url}"
    )
    return int(pytest.main(pytest_args(args.suite, extra)))


if __name__ == "__main__":
    sys.exit(main())
