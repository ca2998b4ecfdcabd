"""
Main entry point for the TalentFlow command line.

Every command goes through the endpoint dispatcher (and so through the
simulated transport), exactly as the UI layer would.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from pydantic import BaseModel
from sqlalchemy.engine import make_url

from talentflow.api.dispatcher import EndpointDispatcher
from talentflow.api.schemas import CandidateStage
from talentflow.api.transport import SimulatedTransport
from talentflow.config import Settings, get_settings
from talentflow.db.store import CollectionStore
from talentflow.errors import TalentFlowError
from talentflow.optimistic import CandidateBoard, JobBoard


def setup_logging(settings: Settings | None = None) -> None:
    """Configure application logging."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(prog="talentflow")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--no-latency", action="store_true", help="Disable simulated latency")
    parser.add_argument("--no-failures", action="store_true", help="Disable simulated write failures")

    commands = parser.add_subparsers(dest="command", required=True)

    list_jobs = commands.add_parser("list-jobs", help="List jobs")
    list_jobs.add_argument("--search", default="")
    list_jobs.add_argument("--status", choices=["all", "active", "archived"], default="all")
    list_jobs.add_argument("--page", type=int, default=1)
    list_jobs.add_argument("--page-size", type=int, default=10)
    list_jobs.add_argument("--sort", default="order")

    create_job = commands.add_parser("create-job", help="Create a job")
    create_job.add_argument("--title", required=True)
    create_job.add_argument("--slug", default=None)
    create_job.add_argument("--description", default=None)
    create_job.add_argument("--tag", dest="tags", action="append", default=[])

    reorder_job = commands.add_parser("reorder-job", help="Move a job within its page")
    reorder_job.add_argument("--job-id", type=int, required=True)
    reorder_job.add_argument("--to-index", type=int, required=True)
    reorder_job.add_argument("--page", type=int, default=1)

    list_candidates = commands.add_parser("list-candidates", help="List candidates")
    list_candidates.add_argument("--search", default="")
    list_candidates.add_argument("--stage", choices=["all", *(s.value for s in CandidateStage)], default="all")
    list_candidates.add_argument("--page", type=int, default=1)
    list_candidates.add_argument("--page-size", type=int, default=1000)

    create_candidate = commands.add_parser("create-candidate", help="Create a candidate")
    create_candidate.add_argument("--name", required=True)
    create_candidate.add_argument("--email", required=True)
    create_candidate.add_argument("--job-id", type=int, required=True)

    move_candidate = commands.add_parser("move-candidate", help="Move a candidate to another stage")
    move_candidate.add_argument("--id", type=int, required=True)
    move_candidate.add_argument("--stage", choices=[s.value for s in CandidateStage], required=True)

    timeline = commands.add_parser("timeline", help="Show a candidate's timeline")
    timeline.add_argument("--id", type=int, required=True)

    get_assessment = commands.add_parser("get-assessment", help="Show a job's assessment")
    get_assessment.add_argument("--job-id", type=int, required=True)

    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides: dict[str, Any] = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.no_latency:
        overrides.update(
            latency_min_ms=0,
            latency_max_ms=0,
            high_volume_latency_min_ms=0,
            high_volume_latency_max_ms=0,
        )
    if args.no_failures:
        overrides.update(write_failure_rate=0.0, reorder_failure_rate=0.0)
    return settings.model_copy(update=overrides) if overrides else settings


def _ensure_database_dir(database_url: str) -> None:
    database = make_url(database_url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


async def _execute(args: argparse.Namespace, dispatcher: EndpointDispatcher) -> Any:
    if args.command == "list-jobs":
        return await dispatcher.list_jobs(
            search=args.search,
            status=args.status,
            page=args.page,
            page_size=args.page_size,
            sort=args.sort,
        )
    if args.command == "create-job":
        fields: dict[str, Any] = {"title": args.title, "tags": args.tags}
        if args.slug:
            fields["slug"] = args.slug
        if args.description:
            fields["description"] = args.description
        return await dispatcher.create_job(**fields)
    if args.command == "reorder-job":
        board = JobBoard(dispatcher)
        await board.load(page=args.page)
        await board.move(args.job_id, args.to_index)
        return board.view
    if args.command == "list-candidates":
        return await dispatcher.list_candidates(
            search=args.search,
            stage=args.stage,
            page=args.page,
            page_size=args.page_size,
        )
    if args.command == "create-candidate":
        return await dispatcher.create_candidate(name=args.name, email=args.email, job_id=args.job_id)
    if args.command == "move-candidate":
        board = CandidateBoard(dispatcher)
        await board.load()
        await board.move(args.id, args.stage)
        return board.get(args.id)
    if args.command == "timeline":
        return await dispatcher.get_candidate_timeline(args.id)
    if args.command == "get-assessment":
        return await dispatcher.get_assessment(args.job_id)
    raise ValueError(f"Unknown command: {args.command}")


async def run_command(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    """
    Run one command against the configured store.

    Returns:
        Process exit code.
    """
    out = out or sys.stdout
    args = build_parser().parse_args(argv)
    settings = _settings_for(args)
    logger = logging.getLogger(__name__)

    _ensure_database_dir(settings.database_url)
    store = CollectionStore.from_url(settings.database_url, echo=settings.debug)
    try:
        await store.create_all()
        dispatcher = EndpointDispatcher(store, transport=SimulatedTransport.from_settings(settings))
        try:
            result = await _execute(args, dispatcher)
        except TalentFlowError as exc:
            logger.debug(f"{args.command} failed: {exc.message}")
            payload = {"error": type(exc).__name__, "status": exc.status_code, "message": exc.message}
            if exc.details:
                payload["details"] = exc.details
            print(json.dumps(payload, default=str), file=out)
            return 1
        print(json.dumps(_jsonable(result), indent=2, default=str), file=out)
        return 0
    finally:
        await store.dispose()


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        sys.exit(asyncio.run(run_command(sys.argv[1:])))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
