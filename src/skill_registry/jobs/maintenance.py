"""Paginated maintenance sweeps that reschedule themselves one page at a time.

Each handler processes a single page of items, folds its tallies into the
task state and enqueues the next page until the cursor is exhausted. Runs
can be resumed by enqueueing a task with a saved cursor and state.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable
from datetime import datetime

from skill_registry.config.constants import (
    MAX_NOMINATION_THRESHOLD,
    MAX_README_BYTES,
    MAX_REPORTED_NOMINATIONS,
    MAX_SAMPLE_SLUGS,
    MAX_SWEEP_BATCH_SIZE,
    MIN_README_BYTES,
    TARGET_SKILL,
    TARGET_USER,
)
from skill_registry.config.settings import Settings
from skill_registry.exceptions import ConflictError, NotFoundError
from skill_registry.jobs.scheduler import BatchTask
from skill_registry.models.domain import (
    AuditAction,
    Item,
    ModerationReason,
    ModerationStatus,
    QualityAssessment,
    QualityDecision,
    TrustTier,
    User,
    utcnow,
)
from skill_registry.observability.logger import get_logger
from skill_registry.observability.metrics import log_sweep_batch
from skill_registry.protocols.blob_store import BlobStore
from skill_registry.protocols.scheduler import Scheduler
from skill_registry.quality.evaluator import QualityEvaluator
from skill_registry.quality.signals import compute_quality_signals
from skill_registry.registry.service import decode_document, owner_trust_tier
from skill_registry.storage.sqlite_audit_log import SQLiteAuditLog
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore

logger = get_logger("maintenance")

QUALITY_SWEEP = "quality-sweep"
NOMINATION_SWEEP = "nomination-sweep"
EMBEDDING_OWNER_BACKFILL = "embedding-owner-backfill"


def clamp_int(value: int | None, default: int, low: int, high: int) -> int:
    if value is None:
        return default
    return max(low, min(high, int(value)))


def empty_cleanup_stats() -> dict[str, int]:
    return {
        "scanned": 0,
        "evaluated": 0,
        "rejected": 0,
        "deleted": 0,
        "missing_latest_version": 0,
        "missing_version": 0,
        "missing_readme": 0,
        "missing_storage_blob": 0,
        "skipped_large_readme": 0,
    }


def tally_owner(owners: dict, owner_user_id: str, handle: str | None, slug: str) -> None:
    entry = owners.setdefault(
        owner_user_id, {"user_id": owner_user_id, "handle": handle, "count": 0, "sample_slugs": []}
    )
    entry["count"] += 1
    if len(entry["sample_slugs"]) < MAX_SAMPLE_SLUGS and slug not in entry["sample_slugs"]:
        entry["sample_slugs"].append(slug)


def select_nominations(owners: dict, threshold: int) -> list[dict]:
    flagged = [entry for entry in owners.values() if entry["count"] >= threshold]
    flagged.sort(key=lambda entry: entry["count"], reverse=True)
    return flagged


class MaintenanceJobs:
    def __init__(
        self,
        store: SQLiteRegistryStore,
        audit: SQLiteAuditLog,
        blobs: BlobStore,
        evaluator: QualityEvaluator,
        scheduler: Scheduler,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._audit = audit
        self._blobs = blobs
        self._evaluator = evaluator
        self._scheduler = scheduler
        self._settings = settings
        self._clock = clock
        self.runs: dict[str, dict] = {}
        # run_id -> (cursor, state) as of the last completed page
        self._checkpoints: dict[str, tuple[str | None, dict]] = {}

        scheduler.register(QUALITY_SWEEP, self.run_cleanup_batch, self._record_failure)
        scheduler.register(NOMINATION_SWEEP, self.run_nomination_batch, self._record_failure)
        scheduler.register(
            EMBEDDING_OWNER_BACKFILL, self.run_embedding_owner_batch, self._record_failure
        )

    def _start(self, name: str, actor: User | None, params: dict, stats: dict) -> str:
        run_id = str(uuid.uuid4())
        self.runs[run_id] = {
            "run_id": run_id,
            "task": name,
            "status": "running",
            "params": params,
            "stats": dict(stats),
            "nominations": [],
            "cursor": None,
            "error": None,
            "started_by": actor.user_id if actor else None,
        }
        state = {"run_id": run_id, "params": params, "stats": stats, "owners": {}, "trust": {}}
        self._checkpoints[run_id] = (None, copy.deepcopy(state))
        self._evict_finished_runs()
        self._scheduler.enqueue(BatchTask(name=name, state=state))
        logger.info("maintenance_started", task=name, run_id=run_id, **params)
        return run_id

    def _evict_finished_runs(self) -> None:
        excess = len(self.runs) - self._settings.maintenance_max_runs
        if excess <= 0:
            return
        finished = [rid for rid, run in self.runs.items() if run["status"] != "running"]
        for run_id in finished[:excess]:
            del self.runs[run_id]
            self._checkpoints.pop(run_id, None)

    def _continue_or_finish(self, task: BatchTask, cursor: str | None, is_done: bool) -> bool:
        run_id = task.state["run_id"]
        run = self.runs.get(run_id)
        if run is not None:
            run["stats"] = dict(task.state["stats"])
            run["cursor"] = cursor
            if not is_done:
                self._checkpoints[run_id] = (cursor, copy.deepcopy(task.state))
        if not is_done:
            self._scheduler.enqueue(BatchTask(name=task.name, cursor=cursor, state=task.state))
        return is_done

    def _record_failure(self, task: BatchTask, error: Exception) -> None:
        run = self.runs.get(task.state.get("run_id"))
        if run is None:
            return
        run["status"] = "failed"
        run["cursor"] = task.cursor
        run["error"] = str(error)
        logger.warning(
            "maintenance_failed", task=task.name, run_id=run["run_id"], cursor=task.cursor
        )

    def resume_run(self, run_id: str) -> None:
        """Re-enqueue a failed run from the page that failed."""
        run = self.runs.get(run_id)
        if run is None:
            raise NotFoundError(f"Maintenance run {run_id} not found")
        if run["status"] != "failed":
            raise ConflictError(f"Maintenance run {run_id} is {run['status']}, not failed")
        cursor, state = self._checkpoints[run_id]
        run["status"] = "running"
        run["error"] = None
        run["stats"] = dict(state["stats"])
        self._scheduler.enqueue(BatchTask(name=run["task"], cursor=cursor, state=copy.deepcopy(state)))
        logger.info("maintenance_resumed", task=run["task"], run_id=run_id, cursor=cursor)

    # Quality cleanup

    def start_quality_sweep(
        self,
        actor: User | None = None,
        dry_run: bool = True,
        batch_size: int | None = None,
        max_readme_bytes: int | None = None,
        nomination_threshold: int | None = None,
    ) -> str:
        s = self._settings
        params = {
            "dry_run": dry_run,
            "batch_size": clamp_int(batch_size, s.sweep_batch_size, 1, MAX_SWEEP_BATCH_SIZE),
            "max_readme_bytes": clamp_int(
                max_readme_bytes, s.sweep_max_readme_bytes, MIN_README_BYTES, MAX_README_BYTES
            ),
            "nomination_threshold": clamp_int(
                nomination_threshold, s.sweep_nomination_threshold, 1, MAX_NOMINATION_THRESHOLD
            ),
        }
        return self._start(QUALITY_SWEEP, actor, params, empty_cleanup_stats())

    async def run_cleanup_batch(self, task: BatchTask) -> None:
        params = task.state["params"]
        stats = task.state["stats"]
        page = await self._store.list_items_page(task.cursor, params["batch_size"])
        now = self._clock()

        for item in page.items:
            stats["scanned"] += 1
            if item.soft_deleted_at is not None:
                continue
            readme = await self._load_readme(item, params["max_readme_bytes"], stats)
            if readme is None:
                continue
            stats["evaluated"] += 1

            owner_id = item.owner_user_id
            if owner_id not in task.state["trust"]:
                owner = await self._store.get_user(owner_id)
                tier = await owner_trust_tier(self._store, self._settings, owner, now)
                task.state["trust"][owner_id] = {
                    "tier": tier.value,
                    "handle": owner.handle if owner else None,
                }
            owner_trust = task.state["trust"][owner_id]

            signals = compute_quality_signals(readme, item.summary)
            result = self._evaluator.evaluate(signals, TrustTier(owner_trust["tier"]), 0)
            if result.decision is not QualityDecision.REJECT:
                continue

            stats["rejected"] += 1
            tally_owner(task.state["owners"], owner_id, owner_trust["handle"], item.slug)
            if params["dry_run"]:
                continue

            assessment = QualityAssessment(
                decision=result.decision,
                score=result.score,
                reason=result.reason,
                trust_tier=TrustTier(owner_trust["tier"]),
                similar_recent_count=0,
                signals=signals,
                evaluated_at=now,
            )
            if await self._apply_quality_delete(item.item_id, assessment):
                stats["deleted"] += 1

        log_sweep_batch(task.name, stats, page.is_done, params["dry_run"])
        if self._continue_or_finish(task, page.cursor, page.is_done):
            nominations = select_nominations(task.state["owners"], params["nomination_threshold"])
            if not params["dry_run"]:
                await self._nominate_all(nominations, "quality_sweep")
            self._finish(task, nominations)

    async def _load_readme(self, item: Item, max_bytes: int, stats: dict) -> str | None:
        if not item.latest_version_id:
            stats["missing_latest_version"] += 1
            return None
        version = await self._store.get_version(item.latest_version_id)
        if version is None:
            stats["missing_version"] += 1
            return None
        primary = version.primary_document()
        if primary is None:
            stats["missing_readme"] += 1
            return None
        if primary.size > max_bytes:
            stats["skipped_large_readme"] += 1
            return None
        data = await self._blobs.get(primary.storage_id)
        if data is None:
            stats["missing_storage_blob"] += 1
            return None
        return decode_document(data)

    async def _apply_quality_delete(self, item_id: str, assessment: QualityAssessment) -> bool:
        # Re-read: the item may have been deleted since the page was fetched.
        item = await self._store.get_item(item_id)
        if item is None or item.soft_deleted_at is not None:
            return False
        item.soft_deleted_at = assessment.evaluated_at
        item.moderation_status = ModerationStatus.HIDDEN
        item.moderation_reason = ModerationReason.QUALITY_REJECTED.value
        item.moderation_notes = assessment.reason
        item.quality = assessment
        await self._store.update_item(item)
        await self._audit.append(
            AuditAction.SKILL_DELETE_QUALITY.value,
            TARGET_SKILL,
            item.item_id,
            actor_user_id=item.owner_user_id,
            metadata={
                "slug": item.slug,
                "score": assessment.score,
                "reason": assessment.reason,
                "trust_tier": assessment.trust_tier.value,
                "signals": assessment.signals.to_dict(),
            },
        )
        return True

    # Nominations

    def start_nomination_sweep(
        self,
        actor: User | None = None,
        batch_size: int | None = None,
        nomination_threshold: int | None = None,
    ) -> str:
        s = self._settings
        params = {
            "batch_size": clamp_int(batch_size, s.sweep_batch_size, 1, MAX_SWEEP_BATCH_SIZE),
            "nomination_threshold": clamp_int(
                nomination_threshold, s.sweep_nomination_threshold, 1, MAX_NOMINATION_THRESHOLD
            ),
        }
        stats = {"scanned": 0, "users_flagged": 0, "nominations_created": 0, "nominations_existing": 0}
        return self._start(NOMINATION_SWEEP, actor, params, stats)

    async def run_nomination_batch(self, task: BatchTask) -> None:
        params = task.state["params"]
        stats = task.state["stats"]
        page = await self._store.list_items_page(task.cursor, params["batch_size"])

        for item in page.items:
            stats["scanned"] += 1
            if item.soft_deleted_at is None:
                continue
            if item.moderation_reason != ModerationReason.QUALITY_REJECTED.value:
                continue
            owner_id = item.owner_user_id
            if owner_id not in task.state["trust"]:
                owner = await self._store.get_user(owner_id)
                task.state["trust"][owner_id] = {"handle": owner.handle if owner else None}
            tally_owner(task.state["owners"], owner_id, task.state["trust"][owner_id]["handle"], item.slug)

        log_sweep_batch(task.name, stats, page.is_done, dry_run=False)
        if self._continue_or_finish(task, page.cursor, page.is_done):
            nominations = select_nominations(task.state["owners"], params["nomination_threshold"])
            stats["users_flagged"] = len(nominations)
            created = await self._nominate_all(nominations, "nomination_sweep")
            stats["nominations_created"] = created
            stats["nominations_existing"] = len(nominations) - created
            self._finish(task, nominations)

    async def _nominate_all(self, nominations: list[dict], source: str) -> int:
        created = 0
        for nomination in nominations:
            if await self.nominate_user(nomination, source):
                created += 1
        return created

    async def nominate_user(self, nomination: dict, source: str) -> bool:
        """Record a ban nomination unless one already exists. Never bans."""
        action = AuditAction.USER_BAN_NOMINATION.value
        existing = await self._audit.find_first(TARGET_USER, nomination["user_id"], action)
        if existing is not None:
            return False
        await self._audit.append(
            action,
            TARGET_USER,
            nomination["user_id"],
            actor_user_id=None,
            metadata={
                "source": source,
                "handle": nomination["handle"],
                "rejected_count": nomination["count"],
                "sample_slugs": nomination["sample_slugs"],
            },
        )
        logger.warning(
            "user_nominated_for_ban",
            user_id=nomination["user_id"],
            rejected_count=nomination["count"],
        )
        return True

    # Embedding owner backfill

    def start_embedding_owner_backfill(
        self, actor: User | None = None, batch_size: int | None = None
    ) -> str:
        params = {
            "batch_size": clamp_int(batch_size, self._settings.sweep_batch_size, 1, MAX_SWEEP_BATCH_SIZE)
        }
        return self._start(EMBEDDING_OWNER_BACKFILL, actor, params, {"scanned": 0, "updated": 0})

    async def run_embedding_owner_batch(self, task: BatchTask) -> None:
        stats = task.state["stats"]
        page = await self._store.list_items_page(task.cursor, task.state["params"]["batch_size"])
        for item in page.items:
            stats["scanned"] += 1
            stats["updated"] += await self._store.set_embedding_owner(item.item_id, item.owner_user_id)
        log_sweep_batch(task.name, stats, page.is_done, dry_run=False)
        if self._continue_or_finish(task, page.cursor, page.is_done):
            self._finish(task, [])

    def _finish(self, task: BatchTask, nominations: list[dict]) -> None:
        run = self.runs.get(task.state["run_id"])
        if run is None:
            return
        self._checkpoints.pop(run["run_id"], None)
        run["status"] = "done"
        run["stats"] = dict(task.state["stats"])
        run["nominations"] = nominations[:MAX_REPORTED_NOMINATIONS]
        logger.info("maintenance_finished", task=task.name, run_id=run["run_id"], **run["stats"])
