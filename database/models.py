"""
Database models for the Morning Brief pipeline
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, JSON, UniqueConstraint, Index

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Integration(Base):
    """
    Connected work provider (Slack, GitHub, Jira, Google Calendar) for a user.
    One row per (user_id, provider); reconnecting replaces the tokens.
    """
    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_integrations_user_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # slack, github, jira, calendar

    # OAuth tokens (Fernet-encrypted when TOKEN_ENCRYPTION_KEY is set)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    token_expires_at = Column(DateTime)

    # Provider specific settings (e.g. Jira base_url)
    config = Column(JSON, default=dict)

    # Disconnect only flips this flag, tokens are kept for audit
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class BriefItem(Base):
    """
    A "needs attention" item in a user's morning brief.
    Immutable once created; the user may delete it.
    """
    __tablename__ = "brief_items"
    __table_args__ = (
        # Natural key used for deduplication across runs (NULL external ids never collide)
        UniqueConstraint("user_id", "source", "external_id", name="uq_brief_items_natural_key"),
        # "All items for user ordered by urgency tier then recency"
        Index("ix_brief_items_user_rank_created", "user_id", "urgency_rank", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False)

    type = Column(String(20), nullable=False, default="item")  # item, calendar
    source = Column(String(20), nullable=False)  # slack, github, jira, calendar, generic...
    urgency = Column(String(20), nullable=False)  # urgent, attention, followup, org, fyi
    urgency_rank = Column(Integer, nullable=False, default=5)

    text = Column(Text, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)

    external_id = Column(String(255))
    external_url = Column(String(1000))

    created_at = Column(DateTime, default=utcnow)
    processed_at = Column(DateTime)
