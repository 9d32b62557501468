from __future__ import annotations

import json
from datetime import date
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from hirelink.core.config import get_settings
from hirelink.schemas.messages import HireOfferPayload
from hirelink.services import hires as hire_rules
from hirelink.services.errors import (
    InvalidStateTransitionError,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    StorageFailureError,
)
from hirelink.services.memory_store import InMemoryRepository
from hirelink.services.payloads import payload_document, preview_text, validate_date_range
from hirelink.services.receipts import dedupe_message_ids
from hirelink.services.records import MachineCredentialRecord
from hirelink.services.threads import ParticipantPair, canonical_pair

_MESSAGE_COLUMNS = """
    m.id as message_id,
    m.conversation_id,
    m.sender_id,
    m.receiver_id,
    m.variant::text as variant,
    m.payload,
    m.is_read,
    m.read_at,
    m.created_at
"""

_HIRE_COLUMNS = """
    h.id as hire_id,
    h.employer_id,
    h.employee_id,
    h.job_title,
    h.start_date,
    h.end_date,
    h.status,
    h.message_id,
    h.conversation_id,
    h.rejection_reason,
    h.accepted_at,
    h.rejected_at,
    h.ended_at,
    h.created_at,
    h.updated_at
"""

_EMPLOYMENT_COLUMNS = """
    u.id as user_id,
    u.employment_status,
    u.employer_id,
    u.employed_start_date,
    u.employed_end_date
"""

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError)


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def get_machine_credentials(self, module_id: str) -> list[MachineCredentialRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              m.id::text as module_db_id,
              m.module_id,
              m.scopes,
              mc.key_hash
            from modules m
            join module_credentials mc on mc.module_id = m.id
            where m.module_id = $1
              and m.enabled = true
              and mc.is_active = true
              and mc.revoked_at is null
              and (mc.expires_at is null or mc.expires_at > now())
            """,
            module_id,
        )
        return [
            MachineCredentialRecord(
                module_db_id=row["module_db_id"],
                module_id=row["module_id"],
                scopes=list(row["scopes"] or []),
                key_hash=row["key_hash"],
            )
            for row in rows
        ]

    async def get_participant_contact(self, *, user_id: int) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            "select id as user_id, role, email, display_name from users where id = $1",
            user_id,
        )
        return dict(row) if row else None

    async def resolve_conversation(self, *, participant_a: int, participant_b: int) -> dict[str, Any]:
        pair = canonical_pair(participant_a, participant_b)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    return await self._resolve_conversation(conn, pair)
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError("participant not found") from exc
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to resolve conversation") from exc

    async def list_conversations(self, *, participant_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              c.id as conversation_id,
              case when c.participant_low = $1 then c.participant_high else c.participant_low end as counterpart_id,
              c.created_at,
              last.id as last_message_id,
              last.variant::text as last_message_variant,
              last.payload as last_payload,
              last.created_at as last_message_at,
              (
                select count(*)
                from messages u
                where u.conversation_id = c.id
                  and u.receiver_id = $1
                  and u.is_read = false
              ) as unread_count
            from conversations c
            left join lateral (
              select m.id, m.variant, m.payload, m.created_at
              from messages m
              where m.conversation_id = c.id
              order by m.created_at desc, m.id desc
              limit 1
            ) last on true
            where $1 in (c.participant_low, c.participant_high)
            order by coalesce(last.created_at, c.created_at) desc, c.id desc
            limit $2 offset $3
            """,
            participant_id,
            limit,
            offset,
        )
        summaries = []
        for row in rows:
            payload = self._decode_json(row["last_payload"]) if row["last_payload"] is not None else None
            summaries.append(
                {
                    "conversation_id": row["conversation_id"],
                    "counterpart_id": row["counterpart_id"],
                    "last_message_id": row["last_message_id"],
                    "last_message_variant": row["last_message_variant"],
                    "preview": preview_text(row["last_message_variant"], payload),
                    "last_message_at": row["last_message_at"],
                    "unread_count": int(row["unread_count"]),
                    "created_at": row["created_at"],
                }
            )
        return summaries

    async def list_messages(
        self,
        *,
        conversation_id: int,
        participant_id: int,
        after_message_id: int | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            member = await conn.fetchval(
                """
                select 1
                from conversations
                where id = $1
                  and $2 in (participant_low, participant_high)
                """,
                conversation_id,
                participant_id,
            )
            if member is None:
                raise RepositoryNotFoundError("conversation not found")
            rows = await conn.fetch(
                f"""
                select {_MESSAGE_COLUMNS}
                from messages m
                where m.conversation_id = $1
                  and ($2::bigint is null or m.id > $2)
                order by m.created_at asc, m.id asc
                limit $3
                """,
                conversation_id,
                after_message_id,
                limit,
            )
        return [self._message_row_to_dict(row) for row in rows]

    async def append_messages(self, *, sender_id: int, receiver_id: int, payloads: list[Any]) -> dict[str, Any]:
        pair = canonical_pair(sender_id, receiver_id)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    conversation = await self._resolve_conversation(conn, pair)
                    messages = [
                        await self._insert_message(
                            conn,
                            conversation_id=conversation["conversation_id"],
                            sender_id=sender_id,
                            receiver_id=receiver_id,
                            payload=payload,
                        )
                        for payload in payloads
                    ]
                    return {"conversation": conversation, "messages": messages}
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError("participant not found") from exc
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to append messages") from exc

    async def mark_seen(self, *, viewer_id: int, message_ids: list[int]) -> dict[str, Any]:
        unique_ids = dedupe_message_ids(message_ids)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    accepted = await conn.fetch(
                        """
                        select id
                        from messages
                        where id = any($1::bigint[])
                          and receiver_id = $2
                        order by id
                        for update
                        """,
                        unique_ids,
                        viewer_id,
                    )
                    updated = await conn.fetch(
                        f"""
                        update messages m
                        set is_read = true,
                            read_at = now()
                        where m.id = any($1::bigint[])
                          and m.receiver_id = $2
                          and m.is_read = false
                        returning {_MESSAGE_COLUMNS}
                        """,
                        unique_ids,
                        viewer_id,
                    )
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to mark messages seen") from exc

        return {
            "accepted_ids": [row["id"] for row in accepted],
            "updated": sorted((self._message_row_to_dict(row) for row in updated), key=lambda row: row["message_id"]),
        }

    async def create_hire_offer(
        self,
        *,
        employer_id: int,
        employee_id: int,
        offer: HireOfferPayload,
        extras: list[Any],
    ) -> dict[str, Any]:
        pair = canonical_pair(employer_id, employee_id)
        validate_date_range(offer.start_date, offer.end_date)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    conversation = await self._resolve_conversation(conn, pair)
                    current = await conn.fetchrow(
                        f"""
                        select {_HIRE_COLUMNS}
                        from hires h
                        where h.employer_id = $1
                          and h.employee_id = $2
                          and h.status in ('pending', 'accepted', 'active')
                        order by h.created_at desc, h.id desc
                        limit 1
                        for update
                        """,
                        employer_id,
                        employee_id,
                    )
                    if current is not None:
                        return self._resolve_open_offer(conversation, dict(current), offer)

                    hire = await conn.fetchrow(
                        f"""
                        insert into hires (
                          employer_id, employee_id, job_title, start_date, end_date, status, conversation_id
                        )
                        values ($1, $2, $3, $4, $5, 'pending', $6)
                        returning {_HIRE_COLUMNS.replace("h.", "")}
                        """,
                        employer_id,
                        employee_id,
                        offer.job_title,
                        offer.start_date,
                        offer.end_date,
                        conversation["conversation_id"],
                    )
                    offer_row = await self._insert_message(
                        conn,
                        conversation_id=conversation["conversation_id"],
                        sender_id=employer_id,
                        receiver_id=employee_id,
                        payload=offer.model_copy(update={"hire_id": hire["hire_id"]}),
                    )
                    messages = [offer_row]
                    for payload in extras:
                        messages.append(
                            await self._insert_message(
                                conn,
                                conversation_id=conversation["conversation_id"],
                                sender_id=employer_id,
                                receiver_id=employee_id,
                                payload=payload,
                            )
                        )
                    hire = await conn.fetchrow(
                        f"""
                        update hires
                        set message_id = $2
                        where id = $1
                        returning {_HIRE_COLUMNS.replace("h.", "")}
                        """,
                        hire["hire_id"],
                        offer_row["message_id"],
                    )
                    return {"conversation": conversation, "hire": dict(hire), "messages": messages, "replayed": False}
        except pg_exc.UniqueViolationError:
            # A concurrent offer for the same pair won the open-hire index.
            return await self._replay_after_conflict(employer_id=employer_id, employee_id=employee_id, offer=offer)
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError("participant not found") from exc
        except pg_exc.CheckViolationError as exc:
            raise RepositoryConflictError(str(exc)) from exc
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to create hire offer") from exc

    async def accept_hire(self, *, employee_id: int, employer_id: int) -> dict[str, Any]:
        canonical_pair(employer_id, employee_id)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    hire = hire_rules.pick_pending_hire(
                        await self._lock_pair_hires(conn, employer_id=employer_id, employee_id=employee_id),
                        action="accept",
                    )
                    hire_rules.validate_hire_transition(from_status=hire["status"], to_status="accepted")
                    updated = await conn.fetchrow(
                        f"""
                        update hires
                        set status = 'accepted',
                            accepted_at = now(),
                            updated_at = now()
                        where id = $1
                        returning {_HIRE_COLUMNS.replace("h.", "")}
                        """,
                        hire["hire_id"],
                    )
                    projection = hire_rules.hired_projection(dict(updated))
                    employment = await self._write_projection(conn, user_id=employee_id, projection=projection)
                    seen = await self._mark_offer_read(conn, hire)
                    return {"hire": dict(updated), "employment": employment, "seen": seen}
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to accept hire") from exc

    async def decline_hire(self, *, employee_id: int, employer_id: int, reason: str) -> dict[str, Any]:
        canonical_pair(employer_id, employee_id)
        return await self._reject_pending(employer_id=employer_id, employee_id=employee_id, reason=reason, action="decline")

    async def withdraw_hire(self, *, employer_id: int, employee_id: int, reason: str) -> dict[str, Any]:
        canonical_pair(employer_id, employee_id)
        return await self._reject_pending(employer_id=employer_id, employee_id=employee_id, reason=reason, action="withdraw")

    async def end_hire(self, *, hire_id: int, employer_id: int, status: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        f"""
                        select {_HIRE_COLUMNS}
                        from hires h
                        where h.id = $1
                          and h.employer_id = $2
                        for update
                        """,
                        hire_id,
                        employer_id,
                    )
                    if row is None:
                        raise RepositoryNotFoundError("hire not found")
                    hire_rules.validate_hire_transition(from_status=row["status"], to_status=status)
                    updated = await conn.fetchrow(
                        f"""
                        update hires
                        set status = $2,
                            ended_at = now(),
                            updated_at = now()
                        where id = $1
                        returning {_HIRE_COLUMNS.replace("h.", "")}
                        """,
                        hire_id,
                        status,
                    )
                    employment = await self._lock_projection(conn, user_id=row["employee_id"])
                    if hire_rules.projection_held_by(employment, employer_id=employer_id):
                        employment = await self._write_projection(
                            conn,
                            user_id=row["employee_id"],
                            projection=hire_rules.available_projection(),
                        )
                    return {"hire": dict(updated), "employment": employment}
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to end hire") from exc

    async def list_hires(
        self,
        *,
        participant_id: int,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_HIRE_COLUMNS}
            from hires h
            where $1 in (h.employer_id, h.employee_id)
              and ($2::text is null or h.status = $2)
            order by h.created_at desc, h.id desc
            limit $3 offset $4
            """,
            participant_id,
            status,
            limit,
            offset,
        )
        return [dict(row) for row in rows]

    async def get_employment(self, *, user_id: int, today: date) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    projection = await self._lock_projection(conn, user_id=user_id)
                    if hire_rules.projection_expired(projection, today=today):
                        projection = await self._expire_employment(conn, projection=projection, today=today)
                    return projection
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to read employment") from exc

    async def reconcile_expired_employment(self, *, today: date, limit: int) -> list[int]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    rows = await conn.fetch(
                        f"""
                        select {_EMPLOYMENT_COLUMNS}
                        from users u
                        where u.employment_status = 'hired'
                          and u.employed_end_date < $1
                        order by u.id
                        limit $2
                        for update skip locked
                        """,
                        today,
                        limit,
                    )
                    for row in rows:
                        await self._expire_employment(conn, projection=dict(row), today=today)
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to reconcile employment") from exc
        return [row["user_id"] for row in rows]

    async def insert_notification(
        self,
        *,
        user_id: int,
        notifier_id: int | None,
        type: str,
        title: str,
        message: str,
        reference_id: int | None = None,
        reference_type: str | None = None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                insert into notifications (
                  user_id, notifier_id, type, title, message, reference_id, reference_type
                )
                values ($1, $2, $3, $4, $5, $6, $7)
                returning
                  id as notification_id, user_id, notifier_id, type, title, message,
                  reference_id, reference_type, is_read, created_at
                """,
                user_id,
                notifier_id,
                type,
                title,
                message,
                reference_id,
                reference_type,
            )
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError("failed to insert notification") from exc
        return dict(row)

    async def list_unread_notifications(self, *, user_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              id as notification_id, user_id, notifier_id, type, title, message,
              reference_id, reference_type, is_read, created_at
            from notifications
            where user_id = $1
              and is_read = false
            order by created_at desc, id desc
            limit $2 offset $3
            """,
            user_id,
            limit,
            offset,
        )
        return [dict(row) for row in rows]

    async def mark_notification_read(self, *, notification_id: int, user_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            update notifications
            set is_read = true
            where id = $1
              and user_id = $2
            returning
              id as notification_id, user_id, notifier_id, type, title, message,
              reference_id, reference_type, is_read, created_at
            """,
            notification_id,
            user_id,
        )
        if row is None:
            raise RepositoryNotFoundError("notification not found")
        return dict(row)

    async def _resolve_conversation(self, conn: asyncpg.Connection, pair: ParticipantPair) -> dict[str, Any]:
        select_sql = """
            select id as conversation_id, participant_low, participant_high, created_at
            from conversations
            where participant_low = $1
              and participant_high = $2
        """
        row = await conn.fetchrow(select_sql, pair.low, pair.high)
        if row is not None:
            return dict(row)

        row = await conn.fetchrow(
            """
            insert into conversations (participant_low, participant_high)
            values ($1, $2)
            on conflict (participant_low, participant_high) do nothing
            returning id as conversation_id, participant_low, participant_high, created_at
            """,
            pair.low,
            pair.high,
        )
        if row is None:
            row = await conn.fetchrow(select_sql, pair.low, pair.high)
        if row is None:
            raise RepositoryConflictError("conversation insert conflicted but no row is visible")
        return dict(row)

    async def _insert_message(
        self,
        conn: asyncpg.Connection,
        *,
        conversation_id: int,
        sender_id: int,
        receiver_id: int,
        payload: Any,
    ) -> dict[str, Any]:
        row = await conn.fetchrow(
            f"""
            insert into messages as m (conversation_id, sender_id, receiver_id, variant, payload)
            values ($1, $2, $3, $4::message_variant, $5::jsonb)
            returning {_MESSAGE_COLUMNS}
            """,
            conversation_id,
            sender_id,
            receiver_id,
            payload.variant,
            json.dumps(payload_document(payload)),
        )
        return self._message_row_to_dict(row)

    async def _lock_pair_hires(
        self,
        conn: asyncpg.Connection,
        *,
        employer_id: int,
        employee_id: int,
    ) -> list[dict[str, Any]]:
        rows = await conn.fetch(
            f"""
            select {_HIRE_COLUMNS}
            from hires h
            where h.employer_id = $1
              and h.employee_id = $2
            order by h.created_at desc, h.id desc
            for update
            """,
            employer_id,
            employee_id,
        )
        return [dict(row) for row in rows]

    async def _reject_pending(self, *, employer_id: int, employee_id: int, reason: str, action: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    hire = hire_rules.pick_pending_hire(
                        await self._lock_pair_hires(conn, employer_id=employer_id, employee_id=employee_id),
                        action=action,
                    )
                    hire_rules.validate_hire_transition(from_status=hire["status"], to_status="rejected")
                    updated = await conn.fetchrow(
                        f"""
                        update hires
                        set status = 'rejected',
                            rejection_reason = $2,
                            rejected_at = now(),
                            updated_at = now()
                        where id = $1
                        returning {_HIRE_COLUMNS.replace("h.", "")}
                        """,
                        hire["hire_id"],
                        reason,
                    )
                    # Withdrawals leave the offer unread.
                    seen = await self._mark_offer_read(conn, hire) if action == "decline" else []
                    return {"hire": dict(updated), "seen": seen}
        except _DRIVER_ERRORS as exc:
            raise StorageFailureError(f"failed to {action} hire") from exc

    async def _mark_offer_read(self, conn: asyncpg.Connection, hire: dict[str, Any]) -> list[dict[str, Any]]:
        if hire["message_id"] is None:
            return []
        rows = await conn.fetch(
            f"""
            update messages m
            set is_read = true,
                read_at = now()
            where m.id = $1
              and m.receiver_id = $2
              and m.is_read = false
            returning {_MESSAGE_COLUMNS}
            """,
            hire["message_id"],
            hire["employee_id"],
        )
        return [self._message_row_to_dict(row) for row in rows]

    async def _replay_after_conflict(
        self,
        *,
        employer_id: int,
        employee_id: int,
        offer: HireOfferPayload,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            conversation = await self._resolve_conversation(conn, canonical_pair(employer_id, employee_id))
            current = await conn.fetchrow(
                f"""
                select {_HIRE_COLUMNS}
                from hires h
                where h.employer_id = $1
                  and h.employee_id = $2
                  and h.status in ('pending', 'accepted', 'active')
                order by h.created_at desc, h.id desc
                limit 1
                """,
                employer_id,
                employee_id,
            )
        if current is None:
            raise RepositoryConflictError("concurrent hire offer conflicted but no open hire is visible")
        return self._resolve_open_offer(conversation, dict(current), offer)

    @staticmethod
    def _resolve_open_offer(
        conversation: dict[str, Any],
        current: dict[str, Any],
        offer: HireOfferPayload,
    ) -> dict[str, Any]:
        if hire_rules.is_same_offer(
            current,
            job_title=offer.job_title,
            start_date=offer.start_date,
            end_date=offer.end_date,
        ):
            return {"conversation": conversation, "hire": current, "messages": [], "replayed": True}
        raise InvalidStateTransitionError(
            f"an open hire already exists for this employer and worker (status {current['status']})"
        )

    async def _lock_projection(self, conn: asyncpg.Connection, *, user_id: int) -> dict[str, Any]:
        row = await conn.fetchrow(
            f"""
            select {_EMPLOYMENT_COLUMNS}
            from users u
            where u.id = $1
            for update
            """,
            user_id,
        )
        if row is None:
            raise RepositoryNotFoundError("participant not found")
        return dict(row)

    async def _write_projection(
        self,
        conn: asyncpg.Connection,
        *,
        user_id: int,
        projection: dict[str, Any],
    ) -> dict[str, Any]:
        row = await conn.fetchrow(
            f"""
            update users u
            set employment_status = $2,
                employer_id = $3,
                employed_start_date = $4,
                employed_end_date = $5
            where u.id = $1
            returning {_EMPLOYMENT_COLUMNS}
            """,
            user_id,
            projection["employment_status"],
            projection["employer_id"],
            projection["employed_start_date"],
            projection["employed_end_date"],
        )
        if row is None:
            raise RepositoryNotFoundError("participant not found")
        return dict(row)

    async def _expire_employment(
        self,
        conn: asyncpg.Connection,
        *,
        projection: dict[str, Any],
        today: date,
    ) -> dict[str, Any]:
        await conn.execute(
            """
            update hires
            set status = 'completed',
                ended_at = now(),
                updated_at = now()
            where employee_id = $1
              and employer_id = $2
              and status in ('accepted', 'active')
              and end_date < $3
            """,
            projection["user_id"],
            projection["employer_id"],
            today,
        )
        return await self._write_projection(
            conn,
            user_id=projection["user_id"],
            projection=hire_rules.available_projection(),
        )

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("HL_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _decode_json(value: Any) -> Any:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return {}
        return value

    @classmethod
    def _message_row_to_dict(cls, row: asyncpg.Record) -> dict[str, Any]:
        message = dict(row)
        message["payload"] = cls._decode_json(message["payload"]) or {}
        return message


@lru_cache
def get_repository() -> PostgresRepository | InMemoryRepository:
    settings = get_settings()
    if settings.storage_backend == "memory":
        return InMemoryRepository()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )
