"""Command-line entry point — reload feeds once or on a fixed interval."""

from __future__ import annotations

import json
import logging
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feedcore.config import load_config
from feedcore.jobs import run_reload

logger = logging.getLogger("feedcore")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def _build_scheduler(config) -> BlockingScheduler:
    """Create a scheduler that reloads all feeds on the configured interval."""
    scheduler = BlockingScheduler()
    scheduler.add_job(
        run_reload,
        trigger=IntervalTrigger(minutes=config.reload_interval_minutes),
        args=[config],
        id="reload",
        name="Reload all feeds",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def main() -> None:
    """Load config, set up logging, reload, and keep reloading if asked to."""
    config = load_config()
    _setup_logging(config.log_level, config.log_format)

    logger.info(
        "feedcore starting (db=%s, urls=%s, interval=%d min)",
        config.database_path,
        config.urls_path,
        config.reload_interval_minutes,
    )

    result = run_reload(config)
    logger.info("Initial reload: %s", result)

    if config.reload_interval_minutes <= 0:
        return

    scheduler = _build_scheduler(config)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler shutting down")


if __name__ == "__main__":
    main()
