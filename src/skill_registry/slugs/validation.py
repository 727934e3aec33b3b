"""Slug and version string validation."""

from __future__ import annotations

from skill_registry.config.constants import SEMVER_RE, SLUG_RE
from skill_registry.exceptions import InvalidSlugError, InvalidVersionError


def normalize_slug(raw: str | None) -> str:
    slug = (raw or "").strip().lower()
    if not slug:
        raise InvalidSlugError("Slug is required.")
    if not SLUG_RE.match(slug):
        raise InvalidSlugError(
            f'Slug "{slug}" must be 1-64 characters of a-z, 0-9 and "-", '
            "and may not start or end with a hyphen."
        )
    return slug


def validate_version(raw: str | None) -> str:
    version = (raw or "").strip()
    if not SEMVER_RE.match(version):
        raise InvalidVersionError(f'Version "{version}" is not a valid semantic version.')
    return version
