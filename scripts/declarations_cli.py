#!/usr/bin/env python3
"""
Operator CLI for the waste-declaration pipeline.

Every command runs in one transaction (commit on success, rollback on any
error).  Commands that talk to the registry need ``registry.adapter`` in
the configuration or ``--registry-adapter module:factory``.

Usage:
    python3 scripts/declarations_cli.py [--config PATH] [--database-url URL] <command>

Commands:
    init-db             Create all pipeline tables.
    detect              Detect late weight tickets, create declarations.
    trigger-late        Queue a late-ticket job when late lines exist.
    schedule-monthly    Queue first/monthly receival jobs for last month.
    process-jobs        Drain pending jobs.
    approve ID          Approve one declaration and submit it.
    resolve-sessions    Poll every pending session.
    list                List declarations, newest first.
    run                 Run the polling scheduler until interrupted.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import replace

from declaration_config import get_active_config
from declaration_config.schema import PipelineConfig
from declaration_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from declaration_kernel.domain.types import DeclarationStatus
from declaration_kernel.logging_config import configure_logging
from declaration_kernel.registry.client import RegistrySessions, load_registry_adapter
from declaration_kernel.selectors.declaration_selector import DeclarationSelector

from declaration_batch.orchestrator import PipelineOrchestrator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Waste-declaration pipeline operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", help="YAML configuration file (default: DECLARATION_CONFIG or built-in).")
    parser.add_argument("--database-url", help="Override database.url / DATABASE_URL.")
    parser.add_argument("--registry-adapter", help="Override registry.adapter (module:factory).")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create all pipeline tables.")
    sub.add_parser("detect", help="Detect late weight tickets.")
    sub.add_parser("trigger-late", help="Queue a late-ticket job if needed.")
    sub.add_parser("schedule-monthly", help="Queue monthly jobs for the previous month.")
    sub.add_parser("process-jobs", help="Drain pending jobs.")
    approve = sub.add_parser("approve", help="Approve one declaration.")
    approve.add_argument("declaration_id")
    sub.add_parser("resolve-sessions", help="Poll pending sessions.")
    listing = sub.add_parser("list", help="List declarations.")
    listing.add_argument(
        "--status", choices=[s.value for s in DeclarationStatus], default=None,
    )
    listing.add_argument("--limit", type=int, default=50)
    listing.add_argument("--offset", type=int, default=0)
    sub.add_parser("run", help="Run the polling scheduler.")
    return parser.parse_args(argv)


def _config(args: argparse.Namespace) -> PipelineConfig:
    config = get_active_config(args.config)
    if args.database_url:
        config = replace(config, database=replace(config.database, url=args.database_url))
    if args.registry_adapter:
        config = replace(config, registry=replace(config.registry, adapter=args.registry_adapter))
    return config


def _registry(config: PipelineConfig) -> RegistrySessions | None:
    if not config.registry.adapter:
        return None
    return load_registry_adapter(config.registry.adapter)


def _print(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()
    config = _config(args)
    init_engine_from_url(config.database.url, echo=config.database.echo)

    if args.command == "init-db":
        create_tables()
        print("Tables created.")
        return EXIT_OK

    registry = _registry(config)
    orchestrator = PipelineOrchestrator(config, registry=registry)

    if args.command in ("approve", "resolve-sessions") and registry is None:
        print(
            "error: no registry adapter configured (registry.adapter or --registry-adapter)",
            file=sys.stderr,
        )
        return EXIT_USAGE

    if args.command == "run":
        scheduler = orchestrator.create_scheduler(get_session_factory())
        scheduler.start()
        try:
            while scheduler.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop()
        return EXIT_OK

    with session_scope() as session:
        if args.command == "detect":
            summary = orchestrator.detector(session).detect_and_create_for_late_weight_tickets()
            _print({
                "cutoff": summary.cutoff.format(),
                "lines_scanned": summary.lines_scanned,
                "created": list(summary.created),
                "superseded": list(summary.superseded),
                "unchanged": list(summary.unchanged),
                "skipped": [list(k) for k in summary.skipped_keys],
            })
        elif args.command == "trigger-late":
            job = orchestrator.job_scheduler(session).trigger_late_declarations()
            _print({"job_id": job.job_id if job else None})
        elif args.command == "schedule-monthly":
            jobs = orchestrator.job_scheduler(session).schedule_monthly_jobs()
            _print([{"job_id": j.job_id, "job_type": j.job_type.value, "period": j.period.format()} for j in jobs])
        elif args.command == "process-jobs":
            summary = orchestrator.job_scheduler(session).process_pending_jobs()
            _print({
                "processed": summary.processed,
                "completed": list(summary.completed),
                "errored": list(summary.errored),
                "details": summary.details,
            })
        elif args.command == "approve":
            result = orchestrator.approval_service(session).approve(args.declaration_id)
            _print({
                "success": result.success,
                "message": result.message,
                "declaration_id": result.declaration_id,
                "error_code": result.error_code,
                "session_id": result.session_id,
            })
            return EXIT_OK if result.success else EXIT_FAILURE
        elif args.command == "resolve-sessions":
            resolutions = orchestrator.session_resolver(session).process_pending_sessions()
            _print([
                {"session_id": r.session_id, "outcome": r.outcome.value, "errors": list(r.errors)}
                for r in resolutions
            ])
        elif args.command == "list":
            status = DeclarationStatus(args.status) if args.status else None
            declarations = DeclarationSelector(session).list_declarations(
                status=status, limit=args.limit, offset=args.offset,
            )
            _print([
                {
                    "id": d.declaration_id,
                    "waste_stream_number": d.waste_stream_number,
                    "period": d.period,
                    "type": d.declaration_type.value,
                    "status": d.status.value,
                    "total_weight": d.total_weight,
                    "total_shipments": d.total_shipments,
                    "errors": list(d.errors) if d.errors else None,
                }
                for d in declarations
            ])
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
