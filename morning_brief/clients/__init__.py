"""
Provider API clients for the Morning Brief.

Each client handles API calls to its provider:
- Slack: Web API for conversations and threads
- GitHub: REST API for review requests and pull requests
- Jira: REST API for assigned issues
- Calendar: Google Calendar API for today's events
- Search: unified search backend
"""

from .slack_client import SlackClient, get_slack_client
from .github_client import GitHubClient, get_github_client
from .jira_client import JiraClient, get_jira_client
from .calendar_client import CalendarClient, get_calendar_client
from .search_client import SearchClient

__all__ = [
    # Slack
    "SlackClient",
    "get_slack_client",
    # GitHub
    "GitHubClient",
    "get_github_client",
    # Jira
    "JiraClient",
    "get_jira_client",
    # Calendar
    "CalendarClient",
    "get_calendar_client",
    # Unified search
    "SearchClient",
]
