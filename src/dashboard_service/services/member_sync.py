"""Membership synchronization service.

Rubric returns every membership on each call, so each pass diffs the full
dump against local rows keyed by lower-cased email. The default pass is
additive only: existing members are refreshed solely by the on-demand
update pass, so hand edits survive scheduled syncs.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.config import Settings, get_settings
from dashboard_service.infrastructure.clients.rubric import RubricClient, RubricMember
from dashboard_service.infrastructure.database.models import (
    Member,
    MembershipPayment,
    MembershipResponse,
)
from dashboard_service.services.settings_cache import SettingsCache, SyncSettings
from shared.clock import utcnow
from shared.constants import PAYMENT_STATUS_COMPLETED, PAYMENT_STATUS_PENDING

logger = structlog.get_logger()

ClientFactory = Callable[[SyncSettings], RubricClient]


@dataclass
class NewMember:
    """A member row created by the add pass."""

    id: int
    email: str
    fullname: str


@dataclass
class FullSyncResult:
    """Outcome of add, payments and responses run over one fetch."""

    new_members: list[NewMember] = field(default_factory=list)
    payments_added: int = 0
    responses_added: int = 0
    duration_seconds: float = 0.0


class MemberSyncService:
    """Service for reconciling Rubric memberships into the members tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings_cache: SettingsCache,
        client_factory: ClientFactory | None = None,
        app_settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.settings_cache = settings_cache
        self.client_factory = client_factory or RubricClient.from_settings
        self.app_settings = app_settings or get_settings()

    async def fetch_members(self) -> list[RubricMember]:
        """Fetch the full membership dump with the configured credentials."""
        async with self.session_factory() as session:
            sync_settings = await self.settings_cache.get(session)
        async with self.client_factory(sync_settings) as client:
            return await client.fetch_members()

    async def full_sync(self) -> FullSyncResult:
        """
        Run the add, payments and responses passes over a single fetch.

        Existing members are not updated; see :meth:`update_existing_members`.
        """
        started = time.monotonic()
        members = await self.fetch_members()

        result = FullSyncResult()
        result.new_members = await self.add_new_members(members)
        result.payments_added = await self.sync_payments(members)
        result.responses_added = await self.sync_responses(members)
        result.duration_seconds = round(time.monotonic() - started, 2)

        logger.info(
            "Member sync completed",
            fetched=len(members),
            new_members=len(result.new_members),
            payments_added=result.payments_added,
            responses_added=result.responses_added,
            duration_seconds=result.duration_seconds,
        )
        return result

    async def add_new_members(self, members: list[RubricMember] | None = None) -> list[NewMember]:
        """Insert members whose email is not stored yet. Never touches existing rows."""
        if members is None:
            members = await self.fetch_members()

        async with self.session_factory() as session:
            stored = await session.execute(select(func.lower(Member.email)))
            known = set(stored.scalars())

            rows: list[dict[str, Any]] = []
            for member in members:
                if member.email in known:
                    continue
                known.add(member.email)
                rows.append(
                    {
                        "fullname": member.fullname,
                        "email": member.email,
                        "phonenumber": member.phonenumber,
                        "membership_id": member.membership_id,
                        "membership_type": member.membership_type,
                        "price_paid": member.price_paid,
                        "payment_method": member.payment_method,
                        "is_valid": member.is_valid,
                        "created_at": member.created_at,
                        "updated_at": utcnow(),
                    }
                )

            if not rows:
                logger.info("No new members to insert")
                return []

            await session.execute(insert(Member), rows)
            await session.commit()

            emails = [row["email"] for row in rows]
            created = await session.execute(
                select(Member.id, Member.email, Member.fullname).where(Member.email.in_(emails))
            )
            by_email = {row.email: NewMember(row.id, row.email, row.fullname) for row in created}

        logger.info("Inserted new members", count=len(rows))
        return [by_email[email] for email in emails if email in by_email]

    async def update_existing_members(self, members: list[RubricMember] | None = None) -> int:
        """
        Refresh the mutable fields of every stored member found in Rubric.

        Updates run in batches, each in its own session, with a bounded
        number of batches in flight.

        Returns:
            Number of member rows updated

        Raises:
            ExceptionGroup: If any batch fails; the remaining batches are
                cancelled before this returns.
        """
        if members is None:
            members = await self.fetch_members()

        email_to_id = await self._email_to_id()
        updates: list[tuple[int, dict[str, Any]]] = []
        seen: set[int] = set()
        now = utcnow()
        for member in members:
            member_id = email_to_id.get(member.email)
            if member_id is None or member_id in seen:
                continue
            seen.add(member_id)
            updates.append(
                (
                    member_id,
                    {
                        "fullname": member.fullname,
                        "phonenumber": member.phonenumber,
                        "membership_id": member.membership_id,
                        "membership_type": member.membership_type,
                        "price_paid": member.price_paid,
                        "payment_method": member.payment_method,
                        "is_valid": member.is_valid,
                        "updated_at": now,
                    },
                )
            )

        batch_size = self.app_settings.member_update_batch_size
        batches = [updates[i:i + batch_size] for i in range(0, len(updates), batch_size)]
        semaphore = asyncio.Semaphore(self.app_settings.member_update_concurrency)

        async def run_batch(batch: list[tuple[int, dict[str, Any]]]) -> None:
            async with semaphore:
                async with self.session_factory() as session:
                    for member_id, values in batch:
                        await session.execute(
                            update(Member).where(Member.id == member_id).values(**values)
                        )
                    await session.commit()
            logger.debug("Updated member batch", size=len(batch))

        # A failed batch cancels the batches still waiting or in flight.
        async with asyncio.TaskGroup() as group:
            for batch in batches:
                group.create_task(run_batch(batch))

        logger.info("Updated existing members", count=len(updates), batches=len(batches))
        return len(updates)

    async def sync_payments(self, members: list[RubricMember] | None = None) -> int:
        """Insert one payment per unseen (member, transaction) pair."""
        if members is None:
            members = await self.fetch_members()

        email_to_id = await self._email_to_id()

        async with self.session_factory() as session:
            existing = await session.execute(
                select(MembershipPayment.member_id, MembershipPayment.transaction_id)
            )
            seen = {(row.member_id, row.transaction_id) for row in existing}

            rows = []
            for member in members:
                member_id = email_to_id.get(member.email)
                if member_id is None:
                    continue
                key = (member_id, member.membership_id)
                if key in seen:
                    continue
                seen.add(key)
                rows.append(
                    {
                        "member_id": member_id,
                        "amount": member.price_paid,
                        "method": member.payment_method,
                        "status": (
                            PAYMENT_STATUS_COMPLETED if member.is_valid else PAYMENT_STATUS_PENDING
                        ),
                        "transaction_id": member.membership_id,
                        "created_at": member.created_at,
                    }
                )

            if not rows:
                logger.info("No new membership payments to insert")
                return 0

            await session.execute(insert(MembershipPayment), rows)
            await session.commit()

        logger.info("Inserted membership payments", count=len(rows))
        return len(rows)

    async def sync_responses(self, members: list[RubricMember] | None = None) -> int:
        """Store the form responses of members that have none stored yet."""
        if members is None:
            members = await self.fetch_members()

        email_to_id = await self._email_to_id()

        async with self.session_factory() as session:
            existing = await session.execute(select(MembershipResponse.member_id).distinct())
            answered = set(existing.scalars())

            rows = []
            for member in members:
                member_id = email_to_id.get(member.email)
                if member_id is None or not member.responses or member_id in answered:
                    continue
                answered.add(member_id)
                rows.append(
                    {
                        "member_id": member_id,
                        "responses": member.responses,
                        "created_at": member.created_at,
                    }
                )

            if not rows:
                logger.info("No new membership responses to insert")
                return 0

            await session.execute(insert(MembershipResponse), rows)
            await session.commit()

        logger.info("Inserted membership responses", count=len(rows))
        return len(rows)

    async def _email_to_id(self) -> dict[str, int]:
        async with self.session_factory() as session:
            result = await session.execute(select(Member.id, Member.email))
            return {row.email.lower(): row.id for row in result}
