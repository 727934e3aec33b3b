"""Metric log helpers for search, rate limiting and maintenance sweeps."""

from __future__ import annotations

from skill_registry.observability.logger import get_logger

logger = get_logger("metrics")


def log_search_metrics(
    query_tokens: int,
    rounds: int,
    final_window: int,
    candidates_seen: int,
    confirmed: int,
    returned: int,
    duration_ms: float,
) -> None:
    logger.info(
        "search_metrics",
        query_tokens=query_tokens,
        rounds=rounds,
        final_window=final_window,
        candidates_seen=candidates_seen,
        confirmed=confirmed,
        returned=returned,
        duration_ms=round(duration_ms, 2),
    )


def log_rate_limit_denied(kind: str, scope: str, limit: int, reset_at: int) -> None:
    logger.warning("rate_limit_denied", kind=kind, scope=scope, limit=limit, reset_at=reset_at)


def log_sweep_batch(task: str, stats: dict, is_done: bool, dry_run: bool) -> None:
    logger.info("sweep_batch", task=task, is_done=is_done, dry_run=dry_run, **stats)
