"""
Command-line entry point.

Runs engine operations against a JSON fixture of persistence tables
(``{"segments": [...], "users": [...], "ab_exposures": [...], ...}``).

Usage:
    python -m segengine.runtime evaluate --data tables.json --context context.json
    python -m segengine.runtime overlap --data tables.json mobile_users us_users
    python -m segengine.runtime analyze --data tables.json exp_1 mobile_users
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import structlog

from segengine.core.config import EngineConfig
from segengine.core.exceptions import SegEngineError
from segengine.persistence.client import InMemoryPersistence
from segengine.runtime.logging import configure_logging
from segengine.segmentation.engine import SegmentationEngine
from segengine.segmentation.models import UserContext

logger = structlog.get_logger()


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="segengine", description=__doc__.splitlines()[1])
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--json-logs", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)

    evaluate = commands.add_parser("evaluate", help="List segments a context belongs to")
    evaluate.add_argument("--data", required=True, help="JSON file of table name -> rows")
    evaluate.add_argument("--context", required=True, help="JSON file holding a user context")
    evaluate.add_argument("--with-presets", action="store_true", help="Install common segments")

    overlap = commands.add_parser("overlap", help="Pairwise member overlap of segments")
    overlap.add_argument("--data", required=True)
    overlap.add_argument("segment_ids", nargs="+")

    analyze = commands.add_parser("analyze", help="Experiment results within a segment")
    analyze.add_argument("--data", required=True)
    analyze.add_argument("experiment_id")
    analyze.add_argument("segment_id")

    return parser


async def run_command(args: argparse.Namespace) -> Any:
    """Execute one CLI command and return a JSON-serializable result."""
    persistence = InMemoryPersistence(_read_json(args.data))
    config = EngineConfig.from_env(fail_on_load_error=True)

    async with SegmentationEngine(persistence, config) as engine:
        match args.command:
            case "evaluate":
                if args.with_presets:
                    await engine.install_common_segments()
                context = UserContext.model_validate(_read_json(args.context))
                return {"segments": sorted(engine.evaluate_user_segments(context))}
            case "overlap":
                return await engine.get_segment_overlap(args.segment_ids)
            case "analyze":
                results = await engine.analyze_segment_performance(
                    args.experiment_id, args.segment_id
                )
                return results.to_dict()
            case _:
                raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, json_output=args.json_logs)

    try:
        result = asyncio.run(run_command(args))
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(130)
    except (SegEngineError, OSError, ValueError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        sys.exit(1)

    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    sys.exit(0)


if __name__ == "__main__":
    main()
