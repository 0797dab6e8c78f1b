"""Cadence daemon - nightly ranged-task rollover, series materialization and streak checks."""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .adapters.clock import SystemClock
from .config import Config, load_config
from .core.streaks import CelebrationKind
from .ports.persistence import PersistenceError
from .workflows import get_backend, load_board, materialize_all, rollover_ranged, streak_check

logger = logging.getLogger(__name__)


def run_rollover(config: Config) -> None:
    """Move yesterday's unfinished ranged tasks onto today."""
    try:
        backend = get_backend(config)
        rollover_ranged(load_board(backend), backend, SystemClock())
    except PersistenceError as e:
        logger.error(f"Rollover failed: {e}")


def run_materialize(config: Config) -> None:
    """Top up every recurring series."""
    logger.info("Materializing recurring series")
    try:
        backend = get_backend(config)
        board = load_board(backend)
        materialize_all(board, backend, SystemClock(), config.horizon_policy())
    except PersistenceError as e:
        logger.error(f"Materialization failed: {e}")


def run_streak_check(config: Config) -> None:
    """Record day-streak milestones."""
    try:
        backend = get_backend(config)
        celebration = streak_check(
            load_board(backend),
            backend,
            SystemClock(),
            config.celebration_milestones,
            config.day_streak_lookback_days,
        )
    except PersistenceError as e:
        logger.error(f"Streak check failed: {e}")
        return
    if celebration.kind is CelebrationKind.CELEBRATE:
        logger.info(f"{celebration.milestone}-day streak reached")


def _parse_time(value: str) -> tuple[int, int]:
    hour, minute = map(int, value.split(":"))
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(value)
    return hour, minute


def setup_scheduler(config: Config | None = None) -> BlockingScheduler:
    """Set up the nightly jobs."""
    if config is None:
        config = load_config()

    scheduler = BlockingScheduler(timezone=config.timezone or "UTC")

    jobs = [
        ("rollover_ranged", config.rollover_time, run_rollover),
        ("materialize_series", config.materialize_time, run_materialize),
        ("streak_check", config.streak_check_time, run_streak_check),
    ]
    for job_id, at, func in jobs:
        if not at:
            continue
        try:
            hour, minute = _parse_time(at)
        except ValueError:
            logger.warning(f"Invalid time format for {job_id}: {at}")
            continue
        scheduler.add_job(func, CronTrigger(hour=hour, minute=minute), args=[config], id=job_id)
        logger.info(f"Scheduled {job_id} at {hour:02d}:{minute:02d}")

    return scheduler


def run_daemon(config: Config | None = None) -> None:
    """Run the scheduler in the foreground."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )
    config = config or load_config()
    scheduler = setup_scheduler(config)
    logger.info("Starting Cadence daemon...")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Cadence daemon stopped")
