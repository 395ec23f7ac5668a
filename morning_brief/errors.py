"""
Error taxonomy for the Morning Brief pipeline.

Only AuthError reaches a caller (the OAuth callback handler). Everything else is
recovered inside the pipeline: a failed refresh falls back to the stored token,
a failed provider is skipped for the run, a failed item is skipped.
"""

from typing import Optional


class BriefError(Exception):
    """Base class for pipeline errors."""


class AuthError(BriefError):
    """Invalid or expired OAuth state, or a rejected authorization code."""


class TokenRefreshError(BriefError):
    """Provider refused (or does not support) refreshing an access token."""


class ProviderFetchError(BriefError):
    """A provider API call failed or returned an error payload."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class IntegrationNotFoundError(BriefError):
    """No active integration exists for (user, provider)."""

    def __init__(self, user_id: str, provider: str):
        super().__init__(f"{provider} integration not found or inactive for user {user_id}")
        self.user_id = user_id
        self.provider = provider


class PersistenceError(BriefError):
    """A single store operation failed."""


class DuplicateItemError(PersistenceError):
    """An item with the same (user_id, source, external_id) already exists."""

    def __init__(self, user_id: str, source: str, external_id: Optional[str]):
        super().__init__(f"Brief item {source}/{external_id} already exists for user {user_id}")
        self.user_id = user_id
        self.source = source
        self.external_id = external_id
