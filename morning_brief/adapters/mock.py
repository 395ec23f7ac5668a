"""
Fixture-backed adapters for demos and local development.

The real provider adapters run unchanged against in-memory fixture clients, so mock
briefs go through the same factor derivation, classification and dedup as live ones.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..clients.jira_client import ASSIGNED_OPEN_ISSUES_JQL
from ..models import IntegrationRecord, RawSignal, TokenResponse, utc_now
from .base import Clock, OAuthCredentials, ProviderAdapter
from .calendar import CalendarAdapter
from .github import GitHubAdapter
from .jira import JiraAdapter
from .slack import SlackAdapter

logger = logging.getLogger(__name__)

MOCK_ACCESS_TOKEN = "mock-access-token"
MOCK_JIRA_BASE_URL = "https://company.atlassian.net"

MOCK_SLACK_THREADS = [
    {
        "channel": "C123456",
        "thread_ts": "1234567890.123456",
        "messages": [
            {"text": "Hey, we need your decision on event sourcing vs CQRS for the payment service. The team is blocked.",
             "ts": "1234567890.123456", "user": "U111111"},
            {"text": "Marcus and two engineers have been waiting 3 days for this.",
             "ts": "1234567891.123456", "user": "U222222", "thread_ts": "1234567890.123456"},
            {"text": "This is blocking the sprint milestone.",
             "ts": "1234567892.123456", "user": "U333333", "thread_ts": "1234567890.123456"},
            {"text": "Can we get an update today?",
             "ts": "1234567893.123456", "user": "U111111", "thread_ts": "1234567890.123456"},
        ],
    },
    {
        # Creator plus one reply, filtered out as noise
        "channel": "C789012",
        "thread_ts": "1234567800.123456",
        "messages": [
            {"text": "Design doc review needed for the new feature",
             "ts": "1234567800.123456", "user": "U444444"},
            {"text": "Sarah shared this yesterday, unread",
             "ts": "1234567801.123456", "user": "U555555", "thread_ts": "1234567800.123456"},
        ],
    },
]


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def mock_pull_requests(now: datetime) -> List[Dict[str, Any]]:
    return [
        {
            "id": 12345,
            "number": 42,
            "title": "Add payment service architecture",
            "updated_at": _iso(now - timedelta(days=1)),
            "html_url": "https://github.com/company/repo/pull/42",
            "additions": 150,
            "deletions": 30,
            "changed_files": 12,
            "requested_reviewers": [{"login": "you"}],
        },
        {
            "id": 12346,
            "number": 43,
            "title": "Fix authentication bug",
            "updated_at": _iso(now - timedelta(days=4)),
            "html_url": "https://github.com/company/repo/pull/43",
            "additions": 25,
            "deletions": 10,
            "changed_files": 3,
            "requested_reviewers": [],
        },
    ]


def mock_jira_issues(now: datetime) -> List[Dict[str, Any]]:
    def issue(issue_id, key, summary, status, priority, updated_days, due_days=None):
        return {
            "id": issue_id,
            "key": key,
            "fields": {
                "summary": summary,
                "status": {"name": status},
                "priority": {"name": priority},
                "updated": _iso(now - timedelta(days=updated_days)),
                "duedate": (now + timedelta(days=due_days)).date().isoformat() if due_days is not None else None,
            },
        }

    return [
        issue("10001", "PROJ-123", "Payment service architecture decision", "In Progress", "High", 3, 2),
        issue("10002", "PROJ-124", "API rate limiting implementation", "To Do", "Medium", 1, 5),
        issue("10003", "PROJ-125", "Database migration script", "Done", "Low", 7),
    ]


def mock_calendar_events(day_start: datetime) -> List[Dict[str, Any]]:
    schedule = [
        (timedelta(hours=9, minutes=30), "Standup", "Zoom"),
        (timedelta(hours=10), "Sprint Planning", "Conference Room A"),
        (timedelta(hours=11, minutes=30), "1:1 with Sarah", "Her desk"),
        (timedelta(hours=13), "Focus Time", None),
        (timedelta(hours=14, minutes=30), "1:1 with Manager", "Manager office"),
    ]
    return [
        {
            "id": f"event{i}",
            "summary": summary,
            "start": {"dateTime": (day_start + offset).isoformat()},
            "location": location,
        }
        for i, (offset, summary, location) in enumerate(schedule, start=1)
    ]


# =============================================================================
# Fixture clients (same surface as the HTTP clients the adapters use)
# =============================================================================

class MockSlackClient:
    def __init__(self, threads: List[Dict[str, Any]]):
        self.threads = threads

    async def list_conversations(self, **kwargs) -> List[Dict[str, Any]]:
        channels = []
        for thread in self.threads:
            if thread["channel"] not in [c["id"] for c in channels]:
                channels.append({"id": thread["channel"]})
        return channels

    async def get_channel_history(self, channel_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return [
            {**thread["messages"][0], "reply_count": len(thread["messages"]) - 1}
            for thread in self.threads
            if thread["channel"] == channel_id
        ][:limit]

    async def get_thread_replies(self, channel_id: str, thread_ts: str, limit: int = 100) -> List[Dict[str, Any]]:
        for thread in self.threads:
            if thread["channel"] == channel_id and thread["thread_ts"] == thread_ts:
                return thread["messages"][:limit]
        return []


class MockGitHubClient:
    def __init__(self, pull_requests: List[Dict[str, Any]]):
        self.pull_requests = {pr["number"]: pr for pr in pull_requests}

    async def get_user(self) -> Dict[str, Any]:
        return {"login": "you"}

    async def search_review_requests(self, login: str, per_page: int = 50) -> List[Dict[str, Any]]:
        return [
            {
                "number": number,
                "pull_request": {},
                "repository_url": "https://api.github.com/repos/company/repo",
            }
            for number in self.pull_requests
        ][:per_page]

    async def get_pr(self, owner: str, repo: str, pr_number: int) -> Dict[str, Any]:
        return self.pull_requests[pr_number]


class MockJiraClient:
    def __init__(self, issues: List[Dict[str, Any]], base_url: str = MOCK_JIRA_BASE_URL):
        self.issues = issues
        self.base_url = base_url

    async def search_issues(self, jql: str = ASSIGNED_OPEN_ISSUES_JQL, max_results: int = 50) -> List[Dict[str, Any]]:
        return self.issues[:max_results]

    def browse_url(self, issue_key: str) -> str:
        return f"{self.base_url}/browse/{issue_key}"


class MockCalendarClient:
    async def list_events(self, time_min: datetime, time_max: datetime, calendar_id: str = "primary"):
        return mock_calendar_events(time_min)


# =============================================================================
# Adapter wrapper
# =============================================================================

class MockAdapter:
    """
    Runs a real adapter against fixture clients with a synthetic integration,
    so it is active whether or not the user connected anything.
    """

    requires_integration = False

    def __init__(self, inner: ProviderAdapter):
        self.inner = inner
        self.provider = inner.provider

    def get_auth_url(self, state: str) -> str:
        return self.inner.get_auth_url(state)

    async def exchange_code(self, code: str) -> TokenResponse:
        return TokenResponse(access_token=MOCK_ACCESS_TOKEN)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        return TokenResponse(access_token=MOCK_ACCESS_TOKEN, refresh_token=refresh_token)

    async def fetch_signals(
        self, user_id: str, integration: Optional[IntegrationRecord] = None
    ) -> List[RawSignal]:
        synthetic = IntegrationRecord(
            user_id=user_id,
            provider=self.provider,
            access_token=MOCK_ACCESS_TOKEN,
            config={"base_url": MOCK_JIRA_BASE_URL},
        )
        return await self.inner.fetch_signals(user_id, synthetic)


def build_mock_adapters(clock: Clock = utc_now, timezone_name: Optional[str] = None) -> Dict[str, MockAdapter]:
    """Mock chat, code review, issue tracker and calendar adapters keyed by provider."""
    credentials = OAuthCredentials(client_id="mock", client_secret="mock", redirect_uri="")

    adapters = [
        SlackAdapter(credentials, client_factory=lambda token: MockSlackClient(MOCK_SLACK_THREADS), clock=clock),
        GitHubAdapter(credentials, client_factory=lambda token: MockGitHubClient(mock_pull_requests(clock())), clock=clock),
        JiraAdapter(
            credentials,
            default_base_url=MOCK_JIRA_BASE_URL,
            client_factory=lambda token, base_url: MockJiraClient(mock_jira_issues(clock()), base_url),
            clock=clock,
        ),
        CalendarAdapter(
            credentials,
            timezone_name=timezone_name,
            client_factory=lambda token: MockCalendarClient(),
            clock=clock,
        ),
    ]
    logger.info("Using mock adapters for brief generation")
    return {adapter.provider: MockAdapter(adapter) for adapter in adapters}
