"""Reservation ledger that keeps deleted slugs for their previous owner.

A slug moves from unreserved to reserved when its item is deleted, and to
released when its owner republishes, the cooldown lapses and someone else
claims it, or an admin re-points it. Every mutation runs in one write
transaction and finishes by releasing all other active rows, so a slug never
keeps more than one live reservation.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from skill_registry.exceptions import SlugReservedError
from skill_registry.models.domain import ReservedSlug, utcnow
from skill_registry.observability.logger import get_logger
from skill_registry.storage.sqlite_reservation_store import (
    ReservationTransaction,
    SQLiteReservationStore,
)

logger = get_logger("slug_ledger")


class SlugReservationLedger:
    def __init__(
        self,
        store: SQLiteReservationStore,
        cooldown: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._cooldown = cooldown
        self._clock = clock

    async def list_active(self, slug: str) -> list[ReservedSlug]:
        return await self._store.list_active(slug)

    async def get_active(self, slug: str) -> ReservedSlug | None:
        active = await self._store.list_active(slug, limit=1)
        return active[0] if active else None

    async def release_duplicates(
        self,
        tx: ReservationTransaction,
        slug: str,
        active: list[ReservedSlug],
        keep_id: str | None,
        released_at: datetime,
    ) -> int:
        stale = [r for r in active if r.reservation_id != keep_id]
        for reservation in stale:
            reservation.released_at = released_at
            await tx.update(reservation)
        if keep_id is not None and stale:
            logger.warning(
                "reserved_slug_duplicates_collapsed",
                slug=slug,
                kept=keep_id,
                released=len(stale),
            )
        return len(stale)

    async def reserve_for_delete(self, slug: str, owner_user_id: str) -> ReservedSlug:
        """Hold the slug for owner_user_id for the cooldown period.

        An active reservation pointing at someone else came from a reclaim
        and is left untouched.
        """
        async with self._store.transaction() as tx:
            now = self._clock()
            active = await tx.list_active(slug)
            latest = active[0] if active else None

            if latest is not None:
                if latest.original_owner_user_id == owner_user_id:
                    latest.deleted_at = now
                    latest.expires_at = now + self._cooldown
                    latest.released_at = None
                    await tx.update(latest)
                await self.release_duplicates(tx, slug, active, latest.reservation_id, now)
                logger.info(
                    "slug_reservation_kept",
                    slug=slug,
                    owner=latest.original_owner_user_id,
                    expires_at=latest.expires_at.isoformat(),
                )
                return latest

            reservation = ReservedSlug(
                reservation_id=str(uuid.uuid4()),
                slug=slug,
                original_owner_user_id=owner_user_id,
                deleted_at=now,
                expires_at=now + self._cooldown,
            )
            await tx.insert(reservation)
        logger.info("slug_reserved", slug=slug, owner=owner_user_id)
        return reservation

    async def upsert_for_rightful_owner(
        self, slug: str, rightful_owner_user_id: str, reason: str | None = None
    ) -> ReservedSlug:
        async with self._store.transaction() as tx:
            now = self._clock()
            active = await tx.list_active(slug)
            latest = active[0] if active else None

            if latest is not None:
                latest.original_owner_user_id = rightful_owner_user_id
                latest.deleted_at = now
                latest.expires_at = now + self._cooldown
                latest.reason = reason or latest.reason
                latest.released_at = None
                await tx.update(latest)
                reservation = latest
            else:
                reservation = ReservedSlug(
                    reservation_id=str(uuid.uuid4()),
                    slug=slug,
                    original_owner_user_id=rightful_owner_user_id,
                    deleted_at=now,
                    expires_at=now + self._cooldown,
                    reason=reason,
                )
                await tx.insert(reservation)

            await self.release_duplicates(tx, slug, active, reservation.reservation_id, now)
        logger.info("slug_reservation_repointed", slug=slug, owner=rightful_owner_user_id)
        return reservation

    def _raise_if_held_by_other(
        self, slug: str, latest: ReservedSlug, user_id: str, now: datetime
    ) -> None:
        if latest.expires_at > now and latest.original_owner_user_id != user_id:
            raise SlugReservedError(
                f'Slug "{slug}" is reserved for its previous owner until '
                f"{latest.expires_at.isoformat()}. Please choose a different slug."
            )

    async def check_cooldown_for_new_item(self, slug: str, user_id: str) -> None:
        """Raise SlugReservedError if another owner still holds the slug. Writes nothing."""
        latest = await self.get_active(slug)
        if latest is not None:
            self._raise_if_held_by_other(slug, latest, user_id, self._clock())

    async def enforce_cooldown_for_new_item(self, slug: str, user_id: str) -> None:
        """Raise SlugReservedError if another owner still holds the slug, else release it."""
        async with self._store.transaction() as tx:
            now = self._clock()
            active = await tx.list_active(slug)
            if not active:
                return
            latest = active[0]
            self._raise_if_held_by_other(slug, latest, user_id, now)
            latest.released_at = now
            await tx.update(latest)
            await self.release_duplicates(tx, slug, active, latest.reservation_id, now)
        logger.info("slug_reservation_released", slug=slug, claimed_by=user_id)

    async def release_for_owner(self, slug: str, owner_user_id: str) -> int:
        """Release active reservations held by owner_user_id. Others stay in place."""
        released = 0
        async with self._store.transaction() as tx:
            now = self._clock()
            for reservation in await tx.list_active(slug):
                if reservation.original_owner_user_id == owner_user_id:
                    reservation.released_at = now
                    await tx.update(reservation)
                    released += 1
        return released

    async def release_all(self, slug: str) -> int:
        async with self._store.transaction() as tx:
            now = self._clock()
            active = await tx.list_active(slug)
            for reservation in active:
                reservation.released_at = now
                await tx.update(reservation)
        return len(active)
