"""Simple CLI entry point for the pipeline worker."""

from __future__ import annotations

import argparse
import os
import signal
import sys
from typing import Iterable, Optional

from voxnotes.config import QUEUE_BACKEND, WORKER_IDLE_SLEEP, logger
from voxnotes.db import init_db
from voxnotes.jobs import JobWorker, WorkerConfig, build_pipeline


def parse_queue_names(raw: Optional[str], from_flags: Optional[Iterable[str]]) -> Optional[list[str]]:
    names: list[str] = []
    for value in list((raw or "").split(",")) + list(from_flags or []):
        value = value.strip()
        if value and value not in names:
            names.append(value)
    return names or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="voxnotes pipeline worker")
    parser.add_argument(
        "--queue",
        action="append",
        dest="queues",
        help="Queue to drain (can repeat). Defaults to 'default' plus every registered job type.",
    )
    parser.add_argument(
        "--idle-sleep",
        type=float,
        default=None,
        help="Delay in seconds after an empty poll.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process at most one job then exit.",
    )
    parser.add_argument(
        "--max-jobs",
        type=int,
        default=os.environ.get("JOB_MAX_JOBS"),
        help="Stop worker after processing N jobs (useful for debugging).",
    )
    parser.add_argument(
        "--backend",
        choices=("redis", "database"),
        default=QUEUE_BACKEND,
        help="Work queue backend.",
    )
    return parser


def build_config(argv: list[str]) -> tuple[WorkerConfig, str]:
    args = build_parser().parse_args(argv)
    queues = parse_queue_names(os.environ.get("WORKER_QUEUES"), args.queues)
    config = WorkerConfig(
        queues=queues,
        idle_sleep=float(args.idle_sleep if args.idle_sleep is not None else WORKER_IDLE_SLEEP),
        run_once=bool(args.once),
        max_jobs=int(args.max_jobs) if args.max_jobs else None,
    )
    return config, args.backend


def install_signal_handlers(worker: JobWorker) -> None:
    def _signal_handler(signum: int, _frame: object) -> None:
        logger.info(
            "Signal received",
            extra={"signal": signum, "current_job_id": worker.current_job_id},
        )
        worker.request_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _signal_handler)


def main(argv: Optional[list[str]] = None) -> int:
    config, backend = build_config(sys.argv[1:] if argv is None else argv)
    init_db()
    pipeline = build_pipeline(backend=backend)
    queue_service = pipeline.queue_service
    queue_service.registry.freeze()
    worker = JobWorker(queue_service, queue_service.registry, config)
    install_signal_handlers(worker)
    worker.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
