"""
Run one summary job from the command line.

    python -m summary daily
    python -m summary monthly

Intended to be invoked by an external scheduler (cron, EventBridge, a
Kubernetes CronJob). Exits 1 when the job fails.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from config.settings import get_settings
from services.location_store import get_location_store
from summary.aggregator import SUMMARY_CONFIGS
from summary.jobs import run_summary_job
from telemetry.service import initialize_telemetry


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m summary",
        description="Build a location summary for the configured device and email it.",
    )
    parser.add_argument("variant", choices=sorted(SUMMARY_CONFIGS), help="Summary window to report on")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    settings = get_settings()
    initialize_telemetry(settings)

    result = asyncio.run(run_summary_job(args.variant, settings, get_location_store()))
    print(json.dumps(result.to_dict()))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
