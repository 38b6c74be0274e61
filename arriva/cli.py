"""CLI for one-shot ingestion runs (cron / scheduler entry point)."""

import argparse
import json
import logging
import sys

from arriva.app import build_pipeline, configure_logging
from arriva.config import load_config
from arriva.ingestion.pipeline import PipelineState
from arriva.models import create_db_engine, create_session_factory, init_db

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Fetch the arrivals board once and notify subscribers of status changes"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full flights payload instead of a summary",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    config = load_config()
    configure_logging(args.verbose or config.debug)

    engine = create_db_engine(config.database)
    init_db(engine)
    pipeline = build_pipeline(config, create_session_factory(engine))

    result = pipeline.run_once()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Source: {result.source} ({result.state.value})")
        print(f"Flights: {len(result.flights)}")
        print(f"Status changes: {len(result.status_changes)}")
        if result.dispatch:
            summary = result.dispatch.to_dict()
            print(f"Notifications: {summary['sent']} sent, {summary['failed']} failed")
            for channel, reason in summary["skipped_channels"].items():
                print(f"  {channel} disabled: {reason}")
        if result.error:
            print(f"Error: {result.error}", file=sys.stderr)

    # Non-zero so schedulers can alert on a broken board
    return 1 if result.state == PipelineState.FALLBACK else 0


if __name__ == "__main__":
    sys.exit(main())
