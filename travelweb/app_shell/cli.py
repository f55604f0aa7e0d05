import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from travelweb.adapters.clock import SystemClock
from travelweb.api.deps import Settings, build_segment_store
from travelweb.components.estimator import (
    EstimatorConfig,
    QueryEstimatesInput,
    QueryStatsInput,
    build_estimator_config,
    run_query_estimates,
    run_query_stats,
)
from travelweb.components.ingestion import (
    BatchEventInput,
    EventIngestionService,
    IngestionConfig,
    RecordBatchInput,
    SegmentStorePort,
    build_ingestion_config,
    resolve_time_range,
    run_record_batch,
)
from travelweb.rules.loader import load_rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


@dataclass
class CliContext:
    store: SegmentStorePort
    ingestion_config: IngestionConfig
    estimator_config: EstimatorConfig

    @property
    def ingestion(self) -> EventIngestionService:
        return EventIngestionService(
            store=self.store, time_port=SystemClock(), config=self.ingestion_config
        )


def get_context(settings: Settings | None = None) -> CliContext:
    settings = settings or Settings()
    if not settings.rules_path.exists():
        logger.error("Rules file %s not found.", settings.rules_path)
        sys.exit(1)

    rules = load_rules(settings.rules_path)
    return CliContext(
        store=build_segment_store(settings, rules),
        ingestion_config=build_ingestion_config(rules.aggregation),
        estimator_config=build_estimator_config(rules.aggregation),
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def handle_stats(ctx: CliContext, args: argparse.Namespace) -> int:
    output = run_query_stats(
        QueryStatsInput(time_range=resolve_time_range(args.range, ctx.ingestion_config)),
        source=ctx.ingestion,
        config=ctx.estimator_config,
    )
    if not output.success or output.stats is None:
        logger.error("Statistics query failed: %s", "; ".join(e.message for e in output.errors))
        return 1
    _print_json(output.stats.to_dict())
    return 0


def handle_estimates(ctx: CliContext, args: argparse.Namespace) -> int:
    output = run_query_estimates(
        QueryEstimatesInput(
            time_range=resolve_time_range(args.range, ctx.ingestion_config),
            video_id=args.video_id,
            platform=args.platform,
        ),
        source=ctx.ingestion,
        config=ctx.estimator_config,
    )
    if not output.success or output.estimates is None:
        logger.error("Estimates query failed: %s", "; ".join(e.message for e in output.errors))
        return 1
    _print_json(output.estimates.to_dict())
    return 0


def load_batch_file(path: Path) -> list[BatchEventInput]:
    """
    Read events to replay.

    Accepts a batch list [{type, data}, ...] or a per-type export
    {"click": [records], "return": [records]}.
    """
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    if isinstance(payload, dict):
        return [
            BatchEventInput(type=event_type, data=record)
            for event_type, records in payload.items()
            if isinstance(records, list)
            for record in records
        ]
    if isinstance(payload, list):
        return [
            BatchEventInput(type=str(item.get("type", "")), data=item.get("data"))
            for item in payload
            if isinstance(item, dict)
        ]
    raise ValueError(f"Unsupported batch file shape in {path}")


def handle_ingest(ctx: CliContext, args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.exists():
        logger.error("Batch file %s not found.", path)
        return 1
    try:
        events = load_batch_file(path)
    except (ValueError, json.JSONDecodeError) as e:
        logger.error("Cannot read %s: %s", path, e)
        return 1

    output = run_record_batch(
        RecordBatchInput(events=tuple(events)),
        store=ctx.store,
        time_port=SystemClock(),
        config=ctx.ingestion_config,
    )
    _print_json(
        {
            "accepted": output.accepted,
            "rejected": output.rejected,
            "results": [r.to_dict() for r in output.results],
        }
    )
    return 0 if output.rejected == 0 else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Travelweb engagement CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # stats
    stats_parser = subparsers.add_parser("stats", help="External video statistics")
    stats_parser.add_argument("--range", help="7d, 30d or 90d (default from rules)")

    # estimates
    estimates_parser = subparsers.add_parser("estimates", help="Completion-rate estimates")
    estimates_parser.add_argument("--range", help="7d, 30d or 90d (default from rules)")
    estimates_parser.add_argument("--video-id", help="Only this video")
    estimates_parser.add_argument("--platform", help="Only this platform (aliases accepted)")

    # ingest
    ingest_parser = subparsers.add_parser("ingest", help="Replay a JSON batch file")
    ingest_parser.add_argument("file", help="Path to batch JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    ctx = get_context()

    if args.command == "stats":
        return handle_stats(ctx, args)
    if args.command == "estimates":
        return handle_estimates(ctx, args)
    if args.command == "ingest":
        return handle_ingest(ctx, args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
