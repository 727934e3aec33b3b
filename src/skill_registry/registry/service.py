"""Skill lifecycle orchestration: publish, delete, restore, reclaim and badges.

The service is the only writer that touches the item store, the slug ledger,
the embedding index and the audit log together. Each operation checks the
ledger before it claims a slug, and every delete path leaves the slug
reserved for the owner it was taken from.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from skill_registry.config.constants import TARGET_SKILL, TARGET_SLUG
from skill_registry.config.settings import Settings
from skill_registry.exceptions import (
    BlobMissingError,
    InputError,
    NotFoundError,
    PermissionDeniedError,
    PublishThrottledError,
    QualityRejectedError,
    SlugReservedError,
    SlugTakenError,
    VersionExistsError,
)
from skill_registry.models.domain import (
    AuditAction,
    Badge,
    CandidateEmbedding,
    Item,
    ItemVersion,
    ModerationReason,
    ModerationStatus,
    QualityAssessment,
    QualityDecision,
    ReservedSlug,
    TrustTier,
    User,
    VersionFile,
    Visibility,
    is_publicly_visible,
    utcnow,
)
from skill_registry.observability.logger import get_logger
from skill_registry.protocols.blob_store import BlobStore
from skill_registry.protocols.embedder import Embedder
from skill_registry.protocols.embedding_index import EmbeddingIndex
from skill_registry.quality.evaluator import QualityEvaluator
from skill_registry.quality.signals import compute_quality_signals
from skill_registry.quality.similarity import count_similar_recent
from skill_registry.quality.trust import get_trust_tier
from skill_registry.slugs.ledger import SlugReservationLedger
from skill_registry.slugs.validation import normalize_slug, validate_version
from skill_registry.storage.sqlite_audit_log import SQLiteAuditLog
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore

logger = get_logger("registry_service")

# Items counted when deciding whether an owner has enough history to be trusted.
_TRUST_HISTORY_LIMIT = 60


@dataclass
class PublishFile:
    path: str
    content: bytes
    content_type: str | None = None


@dataclass
class PublishRequest:
    slug: str
    version: str
    files: list[PublishFile]
    display_name: str | None = None
    summary: str | None = None
    changelog: str = ""


@dataclass
class PublishOutcome:
    item: Item
    version: ItemVersion
    created: bool
    quality: QualityAssessment


@dataclass
class ReclaimOutcome:
    action: str
    slug: str
    item_id: str | None = None
    previous_owner_user_id: str | None = None
    metadata: dict = field(default_factory=dict)


async def owner_trust_tier(
    store: SQLiteRegistryStore, settings: Settings, user: User | None, now: datetime
) -> TrustTier:
    if user is None or user.deleted_at is not None:
        return TrustTier.LOW
    history = await store.list_owner_items(user.user_id, limit=_TRUST_HISTORY_LIMIT)
    return get_trust_tier(now - user.created_at, len(history), settings)


def decode_document(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class RegistryService:
    def __init__(
        self,
        store: SQLiteRegistryStore,
        ledger: SlugReservationLedger,
        audit: SQLiteAuditLog,
        blobs: BlobStore,
        embedder: Embedder,
        index: EmbeddingIndex,
        evaluator: QualityEvaluator,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._audit = audit
        self._blobs = blobs
        self._embedder = embedder
        self._index = index
        self._evaluator = evaluator
        self._settings = settings
        self._clock = clock

    # Publish

    async def publish_version(self, actor: User, request: PublishRequest) -> PublishOutcome:
        slug = normalize_slug(request.slug)
        version = validate_version(request.version)
        primary = self._primary_file(request.files)
        now = self._clock()

        item = await self._store.get_item_by_slug(slug)
        stale: Item | None = None
        if item is not None and item.owner_user_id != actor.user_id:
            if item.soft_deleted_at is None:
                raise SlugTakenError(f'Slug "{slug}" is already taken by another publisher.')
            stale, item = item, None

        await self._ledger.check_cooldown_for_new_item(slug, actor.user_id)

        if item is not None and await self._store.get_version_by_number(item.item_id, version):
            raise VersionExistsError(f'Version {version} of "{slug}" already exists.')

        trust_tier = await owner_trust_tier(self._store, self._settings, actor, now)
        if item is None and trust_tier is TrustTier.LOW:
            await self._check_new_item_rate(actor, now)

        summary = (request.summary or "").strip() or (item.summary if item else None)
        readme = decode_document(primary.content)
        assessment = await self._assess(actor, readme, summary, trust_tier, now, item)
        if assessment.decision is QualityDecision.REJECT:
            logger.info(
                "publish_rejected_quality",
                slug=slug,
                owner=actor.user_id,
                score=assessment.score,
                reason=assessment.reason,
            )
            raise QualityRejectedError(assessment.reason, assessment.score)

        display_name = (request.display_name or "").strip() or (item.display_name if item else slug)
        embed_text = "\n".join(p for p in (display_name, summary, readme) if p)
        vector = (await self._embedder.embed_texts([embed_text[: self._settings.embedding_max_chars]]))[0]

        # Released only once the version is certain to land.
        await self._ledger.enforce_cooldown_for_new_item(slug, actor.user_id)
        if stale is not None:
            await self._purge_for_reuse(stale, actor)

        created = item is None
        if item is None:
            item = Item(
                item_id=str(uuid.uuid4()),
                slug=slug,
                display_name=display_name,
                owner_user_id=actor.user_id,
                summary=summary,
                created_at=now,
                updated_at=now,
            )
            await self._store.insert_item(item)

        files = [await self._store_file(f) for f in request.files]
        item_version = ItemVersion(
            version_id=str(uuid.uuid4()),
            item_id=item.item_id,
            version=version,
            changelog=request.changelog,
            files=files,
            created_at=now,
        )
        await self._store.insert_version(item_version)

        await self._supersede_embeddings(item.item_id)
        embedding = CandidateEmbedding(
            embedding_id=str(uuid.uuid4()),
            item_id=item.item_id,
            version_id=item_version.version_id,
            owner_user_id=item.owner_user_id,
            visibility=(
                Visibility.LATEST_APPROVED
                if Badge.REDACTION_APPROVED in item.badges
                else Visibility.LATEST
            ),
            vector=vector,
        )
        await self._store.insert_embedding(embedding)
        await self._index.add_safe(embedding.embedding_id, vector, embedding.visibility)

        item.display_name = display_name
        item.summary = summary
        item.latest_version_id = item_version.version_id
        item.quality = assessment
        if item.soft_deleted_at is not None:
            item.soft_deleted_at = None
            item.moderation_status = ModerationStatus.ACTIVE
            item.moderation_reason = None
        await self._store.update_item(item)

        logger.info(
            "version_published",
            slug=slug,
            version=version,
            item_id=item.item_id,
            created=created,
            score=assessment.score,
        )
        return PublishOutcome(item=item, version=item_version, created=created, quality=assessment)

    @staticmethod
    def _primary_file(files: list[PublishFile]) -> PublishFile:
        if not files:
            raise InputError("At least one file is required.")
        paths = [f.path for f in files]
        if len(set(paths)) != len(paths):
            raise InputError("File paths must be unique.")
        probe = ItemVersion(
            version_id="",
            item_id="",
            version="",
            changelog="",
            files=[VersionFile(path=f.path, size=0, storage_id="", sha256="") for f in files],
        )
        primary = probe.primary_document()
        if primary is None:
            raise InputError("A SKILL.md file is required.")
        return next(f for f in files if f.path == primary.path)

    async def _store_file(self, upload: PublishFile) -> VersionFile:
        storage_id = await self._blobs.put(upload.content)
        return VersionFile(
            path=upload.path,
            size=len(upload.content),
            storage_id=storage_id,
            sha256=storage_id,
            content_type=upload.content_type,
        )

    async def _check_new_item_rate(self, actor: User, now: datetime) -> None:
        cap = self._settings.low_trust_new_items_per_hour
        recent = await self._store.list_owner_items(
            actor.user_id, limit=cap + 1, since=now - timedelta(hours=1)
        )
        if len(recent) >= cap:
            logger.warning("publish_throttled", owner=actor.user_id, recent=len(recent), cap=cap)
            raise PublishThrottledError(
                f"New accounts may create at most {cap} skills per hour. Try again later."
            )

    async def _assess(
        self,
        actor: User,
        readme: str,
        summary: str | None,
        trust_tier: TrustTier,
        now: datetime,
        current: Item | None,
    ) -> QualityAssessment:
        signals = compute_quality_signals(readme, summary)
        recent_texts = await self._recent_documents(actor, now, current)
        similar = count_similar_recent(
            readme, recent_texts, self._settings.near_duplicate_threshold
        )
        result = self._evaluator.evaluate(signals, trust_tier, similar)
        return QualityAssessment(
            decision=result.decision,
            score=result.score,
            reason=result.reason,
            trust_tier=trust_tier,
            similar_recent_count=similar,
            signals=signals,
            evaluated_at=now,
        )

    async def _recent_documents(
        self, actor: User, now: datetime, current: Item | None
    ) -> list[str]:
        recent = await self._store.list_owner_items(
            actor.user_id,
            limit=self._settings.similar_max_candidates,
            since=now - timedelta(hours=self._settings.similar_window_hours),
        )
        texts: list[str] = []
        for other in recent:
            if current is not None and other.item_id == current.item_id:
                continue
            text = await self.read_primary_document(other)
            if text:
                texts.append(text)
        return texts

    async def read_primary_document(self, item: Item) -> str | None:
        if not item.latest_version_id:
            return None
        version = await self._store.get_version(item.latest_version_id)
        if version is None:
            return None
        primary = version.primary_document()
        if primary is None:
            return None
        data = await self._blobs.get(primary.storage_id)
        return decode_document(data) if data is not None else None

    async def _supersede_embeddings(self, item_id: str) -> None:
        for embedding in await self._store.list_item_embeddings(item_id):
            if not embedding.visibility.is_latest:
                continue
            archived = embedding.visibility.superseded()
            await self._store.set_embedding_visibility(embedding.embedding_id, archived)
            await self._index.set_visibility_safe(embedding.embedding_id, archived)

    async def _purge_for_reuse(self, stale: Item, actor: User) -> None:
        embeddings = await self._store.list_item_embeddings(stale.item_id)
        await self._index.remove_safe([e.embedding_id for e in embeddings])
        await self._store.delete_item_hard(stale.item_id)
        await self._audit.append(
            AuditAction.SKILL_PURGE_SLUG_REUSE.value,
            TARGET_SKILL,
            stale.item_id,
            actor_user_id=actor.user_id,
            metadata={"slug": stale.slug, "previous_owner_user_id": stale.owner_user_id},
        )
        logger.info("stale_item_purged", slug=stale.slug, item_id=stale.item_id)

    # Delete and restore

    async def _require_item(self, slug: str) -> Item:
        item = await self._store.get_item_by_slug(normalize_slug(slug))
        if item is None:
            raise NotFoundError(f'Skill "{slug}" not found.')
        return item

    async def delete_item(self, actor: User, slug: str, hard: bool = False) -> Item:
        item = await self._require_item(slug)
        if item.owner_user_id != actor.user_id and not actor.is_admin:
            raise PermissionDeniedError("Only the owner or an admin can delete this skill.")

        now = self._clock()
        if hard:
            embeddings = await self._store.list_item_embeddings(item.item_id)
            await self._index.remove_safe([e.embedding_id for e in embeddings])
            await self._store.delete_item_hard(item.item_id)
            action = AuditAction.SKILL_HARD_DELETE
        else:
            item.soft_deleted_at = now
            item.moderation_reason = ModerationReason.OWNER_DELETED.value
            await self._store.update_item(item)
            action = AuditAction.SKILL_DELETE

        reservation = await self._ledger.reserve_for_delete(item.slug, item.owner_user_id)
        await self._audit.append(
            action.value,
            TARGET_SKILL,
            item.item_id,
            actor_user_id=actor.user_id,
            metadata={"slug": item.slug, "reserved_until": reservation.expires_at.isoformat()},
        )
        logger.info("item_deleted", slug=item.slug, hard=hard, actor=actor.user_id)
        return item

    async def restore_item(self, actor: User, slug: str) -> Item:
        item = await self._require_item(slug)
        if item.soft_deleted_at is None:
            return item
        is_owner = item.owner_user_id == actor.user_id
        if not (is_owner or actor.is_admin):
            raise PermissionDeniedError("Only the owner or an admin can restore this skill.")
        moderated = item.moderation_reason in (
            ModerationReason.QUALITY_REJECTED.value,
            ModerationReason.SLUG_RECLAIMED.value,
        )
        if moderated and not actor.is_admin:
            raise PermissionDeniedError("This skill was removed by moderation; contact an admin.")

        reservation = await self._ledger.get_active(item.slug)
        if (
            reservation is not None
            and reservation.original_owner_user_id != item.owner_user_id
            and reservation.expires_at > self._clock()
            and not actor.is_admin
        ):
            raise SlugReservedError(
                f'Slug "{item.slug}" is reserved for another owner until '
                f"{reservation.expires_at.isoformat()}."
            )

        item.soft_deleted_at = None
        item.moderation_status = ModerationStatus.ACTIVE
        item.moderation_reason = ModerationReason.ADMIN_RESTORED.value if actor.is_admin else None
        await self._store.update_item(item)
        await self._ledger.release_for_owner(item.slug, item.owner_user_id)
        await self._audit.append(
            AuditAction.SKILL_RESTORE.value,
            TARGET_SKILL,
            item.item_id,
            actor_user_id=actor.user_id,
            metadata={"slug": item.slug},
        )
        logger.info("item_restored", slug=item.slug, actor=actor.user_id)
        return item

    # Admin

    async def reclaim_slug(
        self,
        actor: User,
        slug: str,
        rightful_owner_user_id: str,
        transfer_in_place: bool = False,
        reason: str | None = None,
    ) -> ReclaimOutcome:
        if not actor.is_admin:
            raise PermissionDeniedError("Admin role required.")
        slug = normalize_slug(slug)
        rightful = await self._store.get_user(rightful_owner_user_id)
        if rightful is None or rightful.deleted_at is not None:
            raise NotFoundError(f"User {rightful_owner_user_id} not found.")

        item = await self._store.get_item_by_slug(slug)
        if item is not None and item.owner_user_id == rightful.user_id:
            return ReclaimOutcome(action="already_owned", slug=slug, item_id=item.item_id)

        if transfer_in_place:
            if item is None:
                return ReclaimOutcome(action="missing", slug=slug)
            return await self._transfer(actor, item, rightful, reason)

        previous_owner = None
        if item is not None:
            previous_owner = item.owner_user_id
            if item.soft_deleted_at is None:
                item.soft_deleted_at = self._clock()
                item.moderation_reason = ModerationReason.SLUG_RECLAIMED.value
                item.moderation_notes = reason
                await self._store.update_item(item)

        await self._ledger.upsert_for_rightful_owner(slug, rightful.user_id, reason)
        await self._audit.append(
            AuditAction.SLUG_RECLAIM.value,
            TARGET_SLUG,
            slug,
            actor_user_id=actor.user_id,
            metadata={
                "rightful_owner_user_id": rightful.user_id,
                "previous_owner_user_id": previous_owner,
                "reason": reason,
            },
        )
        logger.info("slug_reclaimed", slug=slug, rightful_owner=rightful.user_id)
        return ReclaimOutcome(
            action="reserved",
            slug=slug,
            item_id=item.item_id if item else None,
            previous_owner_user_id=previous_owner,
        )

    async def _transfer(
        self, actor: User, item: Item, rightful: User, reason: str | None
    ) -> ReclaimOutcome:
        previous_owner = item.owner_user_id
        item.owner_user_id = rightful.user_id
        await self._store.update_item(item)
        moved = await self._store.set_embedding_owner(item.item_id, rightful.user_id)
        await self._ledger.release_all(item.slug)
        await self._audit.append(
            AuditAction.SLUG_RECLAIM_TRANSFER.value,
            TARGET_SKILL,
            item.item_id,
            actor_user_id=actor.user_id,
            metadata={
                "slug": item.slug,
                "previous_owner_user_id": previous_owner,
                "rightful_owner_user_id": rightful.user_id,
                "embeddings_moved": moved,
                "reason": reason,
            },
        )
        logger.info("ownership_transferred", slug=item.slug, to=rightful.user_id, embeddings=moved)
        return ReclaimOutcome(
            action="ownership_transferred",
            slug=item.slug,
            item_id=item.item_id,
            previous_owner_user_id=previous_owner,
            metadata={"embeddings_moved": moved},
        )

    async def set_badges(self, actor: User, slug: str, badges: set[Badge]) -> Item:
        if not actor.is_admin:
            raise PermissionDeniedError("Admin role required.")
        item = await self._require_item(slug)
        was_approved = Badge.REDACTION_APPROVED in item.badges
        item.badges = set(badges)
        await self._store.update_item(item)

        if was_approved != (Badge.REDACTION_APPROVED in item.badges):
            await self._sync_approval_visibility(item.item_id, not was_approved)

        await self._audit.append(
            AuditAction.SKILL_BADGES.value,
            TARGET_SKILL,
            item.item_id,
            actor_user_id=actor.user_id,
            metadata={"slug": item.slug, "badges": sorted(b.value for b in item.badges)},
        )
        return item

    async def _sync_approval_visibility(self, item_id: str, approved: bool) -> None:
        mapping = (
            {Visibility.LATEST: Visibility.LATEST_APPROVED, Visibility.ARCHIVED: Visibility.ARCHIVED_APPROVED}
            if approved
            else {Visibility.LATEST_APPROVED: Visibility.LATEST, Visibility.ARCHIVED_APPROVED: Visibility.ARCHIVED}
        )
        for embedding in await self._store.list_item_embeddings(item_id):
            target = mapping.get(embedding.visibility)
            if target is None:
                continue
            await self._store.set_embedding_visibility(embedding.embedding_id, target)
            await self._index.set_visibility_safe(embedding.embedding_id, target)

    # Reads

    async def get_public_item(self, slug: str) -> tuple[Item, ItemVersion | None]:
        item = await self._require_item(slug)
        if not is_publicly_visible(item):
            raise NotFoundError(f'Skill "{slug}" not found.')
        version = (
            await self._store.get_version(item.latest_version_id) if item.latest_version_id else None
        )
        return item, version

    async def read_file(self, slug: str, path: str) -> tuple[VersionFile, bytes]:
        _, version = await self.get_public_item(slug)
        if version is None:
            raise NotFoundError(f'Skill "{slug}" has no published version.')
        match = next((f for f in version.files if f.path == path), None)
        if match is None:
            raise NotFoundError(f'File "{path}" not found in {slug}@{version.version}.')
        data = await self._blobs.get(match.storage_id)
        if data is None:
            raise BlobMissingError(f"Blob {match.storage_id} for {slug}/{path} is missing.")
        return match, data

    async def active_reservation(self, slug: str) -> ReservedSlug | None:
        return await self._ledger.get_active(normalize_slug(slug))
