"""
gla-sync command line.

    gla-sync init-db
    gla-sync jobs
    gla-sync schedule update_all_products
    gla-sync cancel update_all_products
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from gla_sync.config import get_settings
from gla_sync.db.client import close_db_pool
from gla_sync.db.schema import apply_schema
from gla_sync.hooks import HookRegistry
from gla_sync.jobs.batched import AbstractBatchedJob
from gla_sync.jobs.registry import JobRegistry, build_job_registry
from gla_sync.jobs.scheduler import PostgresActionScheduler
from gla_sync.kernel.errors import GlaError
from gla_sync.merchant_center.client import ContentApiClient
from gla_sync.monitoring.logging import configure_logging
from gla_sync.products.repository import PostgresProductRepository

logger = structlog.get_logger()


def _build_registry(scheduler: PostgresActionScheduler) -> JobRegistry:
    settings = get_settings()
    return build_job_registry(
        settings,
        scheduler=scheduler,
        hooks=HookRegistry(),
        repository=PostgresProductRepository(),
        merchant_center=ContentApiClient(settings),
    )


async def _schedule(job_name: str) -> int:
    registry = _build_registry(PostgresActionScheduler())
    scheduled = await registry.get(job_name).schedule()
    print("scheduled" if scheduled else "not scheduled (already running or preconditions not met)")
    return 0 if scheduled else 1


async def _cancel(job_name: str) -> int:
    scheduler = PostgresActionScheduler()
    job = _build_registry(scheduler).get(job_name)
    hooks = [job.process_item_hook]
    if isinstance(job, AbstractBatchedJob):
        hooks.insert(0, job.create_batch_hook)
    canceled = 0
    for hook in hooks:
        canceled += await scheduler.cancel_all(hook)
    print(f"canceled {canceled} pending action(s)")
    return 0


async def _run_command(args: argparse.Namespace) -> int:
    try:
        if args.command == "init-db":
            await apply_schema()
            return 0
        if args.command == "jobs":
            for name in _build_registry(PostgresActionScheduler()).names():
                print(name)
            return 0
        if args.command == "schedule":
            return await _schedule(args.job)
        if args.command == "cancel":
            return await _cancel(args.job)
    finally:
        await close_db_pool()
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="gla-sync", description="Batched Merchant Center sync jobs")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create the scheduled_action and product tables")
    sub.add_parser("jobs", help="List registered jobs")
    schedule = sub.add_parser("schedule", help="Start a run of a job")
    schedule.add_argument("job", help="Job name, e.g. update_all_products")
    cancel = sub.add_parser("cancel", help="Cancel pending actions of a job")
    cancel.add_argument("job", help="Job name")
    args = parser.parse_args(argv)

    configure_logging(get_settings())
    try:
        return asyncio.run(_run_command(args))
    except GlaError as exc:
        logger.error("Command failed", command=args.command, **exc.to_log_dict())
        return 1


if __name__ == "__main__":
    sys.exit(main())
