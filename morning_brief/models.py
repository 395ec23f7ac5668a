"""
Pydantic models for the Morning Brief pipeline.

Shared shapes passed between adapters, the classifier, the aggregator and the stores.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Provider(str, Enum):
    """Supported work providers."""
    SLACK = "slack"
    GITHUB = "github"
    JIRA = "jira"
    CALENDAR = "calendar"
    SEARCH = "search"


class Urgency(str, Enum):
    """Urgency tiers, most urgent first in URGENCY_ORDER."""
    URGENT = "urgent"
    ATTENTION = "attention"
    FOLLOWUP = "followup"
    FYI = "fyi"
    ORG = "org"


class ItemType(str, Enum):
    """Brief item kinds."""
    ITEM = "item"
    CALENDAR = "calendar"


class SourceMode(str, Enum):
    """Where generation pulls signals from."""
    INTEGRATIONS = "integrations"
    MOCK = "mock"
    UNIFIED_SEARCH = "unified_search"


# =============================================================================
# OAuth / Integration Models
# =============================================================================

class TokenResponse(BaseModel):
    """Token payload returned by code exchange and refresh."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds

    def expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if not self.expires_in:
            return None
        return (now or utc_now()) + timedelta(seconds=self.expires_in)


class IntegrationRecord(BaseModel):
    """A user's connection to one provider."""
    id: Optional[int] = None
    user_id: str
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# Signal Models
# =============================================================================

class UrgencyFactors(BaseModel):
    """Situational factors the classifier maps to a tier."""
    blocking_count: Optional[int] = None
    days_waiting: Optional[int] = None
    sprint_risk: Optional[bool] = None
    due_date: Optional[datetime] = None
    is_follow_up: Optional[bool] = None
    is_org_signal: Optional[bool] = None


class RawSignal(BaseModel):
    """Provider output normalized to a common shape."""
    source: str
    text: str
    external_id: Optional[str] = None
    source_url: Optional[str] = None
    raw_timestamp: Optional[datetime] = None
    provider_metadata: Dict[str, Any] = Field(default_factory=dict)
    item_type: ItemType = ItemType.ITEM
    factors: UrgencyFactors = Field(default_factory=UrgencyFactors)
    # Fixed tier for signals that bypass the classifier (calendar summary, search hits)
    urgency: Optional[Urgency] = None


# =============================================================================
# Brief Item Models
# =============================================================================

class BriefItemCreate(BaseModel):
    """Candidate item built from a classified signal."""
    user_id: str
    type: ItemType = ItemType.ITEM
    source: str
    urgency: Urgency
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    external_id: Optional[str] = None
    external_url: Optional[str] = None
    processed_at: Optional[datetime] = None


class BriefItemRecord(BriefItemCreate):
    """Persisted brief item."""
    id: str
    created_at: datetime

    class Config:
        from_attributes = True
