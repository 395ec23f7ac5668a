"""
SQLAlchemy (async) implementations of the integration and item stores.

Timestamps are stored as naive UTC and come back timezone-aware.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, delete, update, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from database.database import create_session_factory
from database.models import Integration, BriefItem, utcnow
from ..config import URGENCY_ORDER, get_brief_settings
from ..errors import DuplicateItemError, PersistenceError
from ..models import BriefItemCreate, BriefItemRecord, IntegrationRecord, ItemType, Urgency
from .crypto import TokenCipher

logger = logging.getLogger(__name__)


def _to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dialect_insert(dialect_name: str):
    """Dialect-specific INSERT supporting ON CONFLICT DO UPDATE."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceError(f"Upsert is not supported on {dialect_name}")
    return insert


class SqlIntegrationStore:
    """
    Integration rows keyed by (user_id, provider).
    """

    def __init__(self, engine: AsyncEngine, cipher: Optional[TokenCipher] = None):
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self.cipher = cipher or TokenCipher(get_brief_settings().token_encryption_key)

    def _to_record(self, row: Integration) -> IntegrationRecord:
        return IntegrationRecord(
            id=row.id,
            user_id=row.user_id,
            provider=row.provider,
            access_token=self.cipher.decrypt(row.access_token),
            refresh_token=self.cipher.decrypt(row.refresh_token),
            token_expires_at=_from_db_time(row.token_expires_at),
            config=row.config or {},
            is_active=row.is_active,
            created_at=_from_db_time(row.created_at),
            updated_at=_from_db_time(row.updated_at),
        )

    async def get(self, user_id: str, provider: str) -> Optional[IntegrationRecord]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Integration).where(
                    and_(
                        Integration.user_id == user_id,
                        Integration.provider == provider,
                    )
                )
            )
            row = result.scalar_one_or_none()
            return self._to_record(row) if row else None

    async def list_for_user(self, user_id: str) -> List[IntegrationRecord]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Integration)
                .where(Integration.user_id == user_id)
                .order_by(Integration.provider)
            )
            return [self._to_record(row) for row in result.scalars().all()]

    async def list_active_user_ids(self) -> List[str]:
        """All users with at least one active integration."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Integration.user_id)
                .where(Integration.is_active == True)  # noqa: E712
                .distinct()
            )
            return [row[0] for row in result.fetchall()]

    async def upsert(self, record: IntegrationRecord) -> IntegrationRecord:
        """
        Insert the integration or replace tokens, config and is_active in one statement.
        """
        insert = _dialect_insert(self.engine.dialect.name)
        now = utcnow()
        stmt = insert(Integration).values(
            user_id=record.user_id,
            provider=record.provider,
            access_token=self.cipher.encrypt(record.access_token),
            refresh_token=self.cipher.encrypt(record.refresh_token),
            token_expires_at=_to_db_time(record.token_expires_at),
            config=record.config or {},
            is_active=record.is_active,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "provider"],
            set_={
                "access_token": stmt.excluded.access_token,
                "refresh_token": stmt.excluded.refresh_token,
                "token_expires_at": stmt.excluded.token_expires_at,
                "config": stmt.excluded.config,
                "is_active": stmt.excluded.is_active,
                "updated_at": now,
            },
        )

        async with self.session_factory() as db:
            try:
                await db.execute(stmt)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(
                    f"Failed to save {record.provider} integration for user {record.user_id}: {e}"
                ) from e

        saved = await self.get(record.user_id, record.provider)
        if saved is None:
            raise PersistenceError(f"{record.provider} integration vanished after upsert for user {record.user_id}")
        return saved

    async def update_tokens(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: Optional[str],
        token_expires_at: Optional[datetime],
    ) -> Optional[IntegrationRecord]:
        """
        Store refreshed tokens. is_active and config are left as they are, so a
        concurrent disconnect is never undone.
        """
        stmt = (
            update(Integration)
            .where(
                and_(
                    Integration.user_id == user_id,
                    Integration.provider == provider,
                )
            )
            .values(
                access_token=self.cipher.encrypt(access_token),
                refresh_token=self.cipher.encrypt(refresh_token),
                token_expires_at=_to_db_time(token_expires_at),
                updated_at=utcnow(),
            )
        )

        async with self.session_factory() as db:
            try:
                result = await db.execute(stmt)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(
                    f"Failed to update {provider} tokens for user {user_id}: {e}"
                ) from e

        if result.rowcount == 0:
            return None
        return await self.get(user_id, provider)

    async def deactivate(self, user_id: str, provider: str) -> bool:
        """Mark an integration inactive. Tokens are retained."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Integration).where(
                    and_(
                        Integration.user_id == user_id,
                        Integration.provider == provider,
                    )
                )
            )
            row = result.scalar_one_or_none()
            if not row:
                return False

            row.is_active = False
            row.updated_at = utcnow()
            await db.commit()
            return True


class SqlItemStore:
    """
    Brief items keyed by id, deduplicated on (user_id, source, external_id).
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = create_session_factory(engine)

    @staticmethod
    def _to_record(row: BriefItem) -> BriefItemRecord:
        return BriefItemRecord(
            id=row.id,
            user_id=row.user_id,
            type=ItemType(row.type),
            source=row.source,
            urgency=Urgency(row.urgency),
            text=row.text,
            metadata=row.metadata_ or {},
            external_id=row.external_id,
            external_url=row.external_url,
            created_at=_from_db_time(row.created_at),
            processed_at=_from_db_time(row.processed_at),
        )

    async def find_by_external_id(
        self, user_id: str, external_id: str, source: str
    ) -> Optional[BriefItemRecord]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(BriefItem).where(
                    and_(
                        BriefItem.user_id == user_id,
                        BriefItem.external_id == external_id,
                        BriefItem.source == source,
                    )
                )
            )
            row = result.scalar_one_or_none()
            return self._to_record(row) if row else None

    async def create(self, item: BriefItemCreate) -> BriefItemRecord:
        urgency = Urgency(item.urgency)
        row = BriefItem(
            user_id=item.user_id,
            type=ItemType(item.type).value,
            source=item.source,
            urgency=urgency.value,
            urgency_rank=URGENCY_ORDER[urgency.value],
            text=item.text,
            metadata_=item.metadata,
            external_id=item.external_id,
            external_url=item.external_url,
            created_at=utcnow(),
            processed_at=_to_db_time(item.processed_at),
        )

        async with self.session_factory() as db:
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if item.external_id:
                    raise DuplicateItemError(item.user_id, item.source, item.external_id) from e
                raise PersistenceError(f"Failed to create brief item for user {item.user_id}: {e}") from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Failed to create brief item for user {item.user_id}: {e}") from e

            return self._to_record(row)

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[BriefItemRecord]:
        """Items for a user, most urgent first, newest first within a tier."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(BriefItem)
                .where(BriefItem.user_id == user_id)
                .order_by(BriefItem.urgency_rank, BriefItem.created_at.desc())
                .limit(limit)
            )
            return [self._to_record(row) for row in result.scalars().all()]

    async def delete(self, user_id: str, item_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                delete(BriefItem).where(
                    and_(
                        BriefItem.id == item_id,
                        BriefItem.user_id == user_id,
                    )
                )
            )
            await db.commit()
            return result.rowcount > 0
