#!/usr/bin/env python3
"""Mediad AutoDirector - free text in, workflows out.

Single entry point for the application.

Usage:
    python mediad.py --serve                 # HTTP API (PORT, default 10000)
    python mediad.py --plan "screenshot cnn.com and email it to a@b.com"
    python mediad.py --run  "screenshot cnn.com and email it to a@b.com"
    python mediad.py --sweep                 # sweep every job type once
    python mediad.py --sweep monitors        # sweep one job type
    python mediad.py --orchestrator          # periodic sweeps (headless)
    python mediad.py --status                # capability readiness
    python mediad.py --version
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta

from autodirector import __version__
from autodirector.core.config import get_config, validate_config
from autodirector.core.logging import get_logger, setup_logging

SWEEP_CHOICES = ["all", "monitors", "briefings", "competitor_watches", "job_alerts"]


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    parser = argparse.ArgumentParser(
        description="Mediad AutoDirector - free text in, workflows out"
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--plan", metavar="TEXT", help="Print the plan for TEXT and exit")
    parser.add_argument("--run", metavar="TEXT", help="Plan TEXT, run it, print the record")
    parser.add_argument(
        "--sweep",
        nargs="?",
        const="all",
        choices=SWEEP_CHOICES,
        help="Sweep persisted jobs once (default: all types)",
    )
    parser.add_argument(
        "--orchestrator",
        action="store_true",
        help="Run periodic sweeps (headless mode)",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show service readiness report and exit",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.version:
        print(f"Mediad AutoDirector v{__version__}")
        return 0

    config = get_config()
    debug = args.debug or config.debug
    setup_logging(
        log_dir=config.log_path,
        console_level=logging.DEBUG if debug else logging.INFO,
    )
    logger = get_logger("main")
    logger.info(f"Mediad AutoDirector v{__version__} starting...")

    issues = validate_config(config)
    for issue in issues:
        if issue.startswith("CRITICAL:"):
            logger.error(f"Configuration: {issue}")
        else:
            logger.warning(f"Configuration issue: {issue}")

    from autodirector.engine.runtime import build_runtime

    runtime = build_runtime(config)
    runtime.registry.log_status()

    if args.status:
        report = runtime.registry.readiness_report()
        print(f"\nMediad AutoDirector v{__version__} - Service Readiness\n")
        print(report.summary)
        if issues:
            print(f"\nConfiguration issues ({len(issues)}):")
            for issue in issues:
                print(f"  ! {issue}")
        print()
        return 0

    if args.plan is not None:
        plan = asyncio.run(runtime.planner.plan(args.plan))
        print(json.dumps(plan.to_dict(), indent=2))
        return 0 if plan.steps else 2

    if args.run is not None:
        plan = asyncio.run(runtime.planner.plan(args.run))
        if plan.is_empty:
            logger.error("Could not understand the request; nothing to run")
            return 2
        record = asyncio.run(runtime.executor.run(plan))
        print(json.dumps(record.to_dict(), indent=2))
        return 0 if record.status.value == "done" else 1

    if args.sweep is not None:
        from autodirector.store.jobs import JobType

        if args.sweep == "all":
            results = asyncio.run(runtime.sweeps.sweep_all())
        else:
            job_type = JobType(args.sweep)
            results = {job_type.value: asyncio.run(runtime.sweeps.sweep(job_type))}
        print(json.dumps({k: r.to_dict() for k, r in results.items()}, indent=2))
        return 0

    if args.orchestrator:
        logger.info("Starting orchestrator (headless)...")
        from autodirector.autonomous.orchestrator import Orchestrator

        orchestrator = Orchestrator()
        orchestrator.register_task(
            "sweep_all",
            lambda: asyncio.run(runtime.sweeps.sweep_all()),
            timedelta(minutes=max(1, config.sweep_interval_minutes)),
        )
        orchestrator.run_headless()
        return 0

    if args.serve:
        import uvicorn

        from autodirector.api.app import create_app

        app = create_app(runtime)
        logger.info(f"Serving on port {config.port}")
        uvicorn.run(app, host="0.0.0.0", port=config.port, log_level="debug" if debug else "info")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
