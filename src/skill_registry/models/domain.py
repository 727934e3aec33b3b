"""Core domain objects used throughout the system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from skill_registry.config.constants import PRIMARY_DOCUMENT_NAMES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Visibility(str, Enum):
    """Search visibility of an embedding."""

    LATEST = "latest"
    LATEST_APPROVED = "latest-approved"
    ARCHIVED = "archived"
    ARCHIVED_APPROVED = "archived-approved"
    DEPRECATED = "deprecated"

    @property
    def is_latest(self) -> bool:
        return self in (Visibility.LATEST, Visibility.LATEST_APPROVED)

    def superseded(self) -> Visibility:
        if self is Visibility.LATEST_APPROVED:
            return Visibility.ARCHIVED_APPROVED
        if self is Visibility.LATEST:
            return Visibility.ARCHIVED
        return self


SEARCHABLE_VISIBILITIES = frozenset({Visibility.LATEST, Visibility.LATEST_APPROVED})


class ModerationStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    REMOVED = "removed"


class ModerationFlag(str, Enum):
    SUSPICIOUS = "flagged.suspicious"
    BLOCKED_MALWARE = "blocked.malware"

    @property
    def blocks_visibility(self) -> bool:
        return self.value.startswith("blocked.")


class Badge(str, Enum):
    HIGHLIGHTED = "highlighted"
    REDACTION_APPROVED = "redactionApproved"


class TrustTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    TRUSTED = "trusted"


class QualityDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ModerationReason(str, Enum):
    QUALITY_REJECTED = "quality.rejected"
    OWNER_DELETED = "owner.deleted"
    SLUG_RECLAIMED = "slug.reclaimed"
    ADMIN_RESTORED = "admin.restored"


class AuditAction(str, Enum):
    SKILL_DELETE = "skill.delete"
    SKILL_HARD_DELETE = "skill.delete.hard"
    SKILL_RESTORE = "skill.restore"
    SKILL_DELETE_QUALITY = "skill.delete.quality"
    SKILL_PURGE_SLUG_REUSE = "skill.purge.slug-reuse"
    SKILL_BADGES = "skill.badges"
    SLUG_RECLAIM = "slug.reclaim"
    SLUG_RECLAIM_TRANSFER = "slug.reclaim.transfer"
    USER_BAN_NOMINATION = "user.ban.nomination.quality-spam"


@dataclass
class User:
    user_id: str
    handle: str
    role: UserRole = UserRole.USER
    created_at: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


@dataclass
class QualitySignals:
    body_length: int
    word_count: int
    unique_word_ratio: float
    heading_count: int
    bullet_count: int
    template_marker_hits: int
    generic_summary_flag: bool
    non_latin_char_count: int

    def to_dict(self) -> dict:
        return {
            "body_length": self.body_length,
            "word_count": self.word_count,
            "unique_word_ratio": self.unique_word_ratio,
            "heading_count": self.heading_count,
            "bullet_count": self.bullet_count,
            "template_marker_hits": self.template_marker_hits,
            "generic_summary_flag": self.generic_summary_flag,
            "non_latin_char_count": self.non_latin_char_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> QualitySignals:
        return cls(**data)


@dataclass(frozen=True)
class QualityResult:
    decision: QualityDecision
    score: float
    reason: str
    threshold: float


@dataclass
class QualityAssessment:
    decision: QualityDecision
    score: float
    reason: str
    trust_tier: TrustTier
    similar_recent_count: int
    signals: QualitySignals
    evaluated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.value,
            "score": self.score,
            "reason": self.reason,
            "trust_tier": self.trust_tier.value,
            "similar_recent_count": self.similar_recent_count,
            "signals": self.signals.to_dict(),
            "evaluated_at": self.evaluated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> QualityAssessment:
        return cls(
            decision=QualityDecision(data["decision"]),
            score=data["score"],
            reason=data["reason"],
            trust_tier=TrustTier(data["trust_tier"]),
            similar_recent_count=data["similar_recent_count"],
            signals=QualitySignals.from_dict(data["signals"]),
            evaluated_at=datetime.fromisoformat(data["evaluated_at"]),
        )


@dataclass
class Item:
    item_id: str
    slug: str
    display_name: str
    owner_user_id: str
    summary: str | None = None
    latest_version_id: str | None = None
    badges: set[Badge] = field(default_factory=set)
    moderation_status: ModerationStatus = ModerationStatus.ACTIVE
    moderation_reason: str | None = None
    moderation_notes: str | None = None
    moderation_flags: set[ModerationFlag] = field(default_factory=set)
    quality: QualityAssessment | None = None
    soft_deleted_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


def is_publicly_visible(item: Item) -> bool:
    if item.soft_deleted_at is not None:
        return False
    if item.moderation_status is not ModerationStatus.ACTIVE:
        return False
    return not any(flag.blocks_visibility for flag in item.moderation_flags)


@dataclass
class VersionFile:
    path: str
    size: int
    storage_id: str
    sha256: str
    content_type: str | None = None


@dataclass
class ItemVersion:
    version_id: str
    item_id: str
    version: str
    changelog: str
    files: list[VersionFile]
    created_at: datetime = field(default_factory=utcnow)
    soft_deleted_at: datetime | None = None

    def primary_document(self) -> VersionFile | None:
        for f in self.files:
            if f.path.lower() in PRIMARY_DOCUMENT_NAMES:
                return f
        return None


@dataclass
class CandidateEmbedding:
    embedding_id: str
    item_id: str
    version_id: str
    owner_user_id: str
    visibility: Visibility
    vector: list[float] | None = None


@dataclass
class SearchResult:
    item: Item
    version: ItemVersion | None
    score: float


@dataclass
class RateLimitRecord:
    scope_key: str
    window_start: int
    count: int
    limit: int
    version: int = 0


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # epoch milliseconds


@dataclass
class ReservedSlug:
    reservation_id: str
    slug: str
    original_owner_user_id: str
    deleted_at: datetime
    expires_at: datetime
    released_at: datetime | None = None
    reason: str | None = None

    @property
    def is_active(self) -> bool:
        return self.released_at is None


@dataclass
class AuditEntry:
    entry_id: str
    actor_user_id: str | None
    action: str
    target_type: str
    target_id: str
    metadata: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Page:
    items: list
    cursor: str | None
    is_done: bool
