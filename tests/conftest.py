"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import os

# Settings are read once per process, so the environment must be set up
# before anything from lgtm_bot is imported.
os.environ.setdefault("GITHUB_TOKEN", "test-token")
os.environ.setdefault("GITHUB_WEBHOOK_SECRET", "test_secret")
os.environ.setdefault("MAX_RETRIES", "1")
os.environ.setdefault("LOG_JSON_FORMAT", "false")

from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest
import structlog
from fastapi.testclient import TestClient

from lgtm_bot.main import create_app
from lgtm_bot.models import GitHubLabel
from lgtm_bot.plugins.registry import PluginClient


class FakeGitHubClient:
    """In-memory GitHub client that records every call."""

    def __init__(
        self,
        labels: Optional[List[str]] = None,
        member: bool = True,
        labels_error: Optional[Exception] = None,
        assign_error: Optional[Exception] = None,
        member_error: Optional[Exception] = None,
        add_label_error: Optional[Exception] = None,
        remove_label_error: Optional[Exception] = None,
        comment_error: Optional[Exception] = None,
    ):
        self.labels = list(labels or [])
        self.member = member
        self.labels_error = labels_error
        self.assign_error = assign_error
        self.member_error = member_error
        self.add_label_error = add_label_error
        self.remove_label_error = remove_label_error
        self.comment_error = comment_error
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def called(self, name: str) -> List[Tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    @property
    def comments(self) -> List[str]:
        return [args[3] for args in self.called("create_comment")]

    async def is_member(self, org: str, user: str) -> bool:
        self.calls.append(("is_member", (org, user)))
        if self.member_error:
            raise self.member_error
        return self.member

    async def get_issue_labels(self, org: str, repo: str, number: int) -> List[GitHubLabel]:
        self.calls.append(("get_issue_labels", (org, repo, number)))
        if self.labels_error:
            raise self.labels_error
        return [GitHubLabel(name=name) for name in self.labels]

    async def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        self.calls.append(("add_label", (org, repo, number, label)))
        if self.add_label_error:
            raise self.add_label_error
        self.labels.append(label)

    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        self.calls.append(("remove_label", (org, repo, number, label)))
        if self.remove_label_error:
            raise self.remove_label_error
        self.labels.remove(label)

    async def assign_issue(self, org: str, repo: str, number: int, logins: List[str]) -> None:
        self.calls.append(("assign_issue", (org, repo, number, logins)))
        if self.assign_error:
            raise self.assign_error

    async def create_comment(self, org: str, repo: str, number: int, body: str) -> None:
        self.calls.append(("create_comment", (org, repo, number, body)))
        if self.comment_error:
            raise self.comment_error


@pytest.fixture
def fake_github() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def plugin_client(fake_github: FakeGitHubClient) -> PluginClient:
    return PluginClient(github_client=fake_github, logger=structlog.get_logger("tests"))


@pytest.fixture
def client(fake_github: FakeGitHubClient) -> Generator[TestClient, None, None]:
    """Test client whose plugins talk to the fake GitHub client."""
    app = create_app(client_factory=lambda installation_id: fake_github)
    with TestClient(app) as test_client:
        yield test_client


def _user(login: str, user_id: int) -> Dict[str, Any]:
    return {"login": login, "id": user_id, "type": "User"}


@pytest.fixture
def sample_repository() -> Dict[str, Any]:
    return {
        "id": 111,
        "name": "repo",
        "full_name": "owner/repo",
        "private": False,
        "owner": _user("owner", 1),
        "html_url": "https://github.com/owner/repo"
    }


@pytest.fixture
def sample_pull_request() -> Dict[str, Any]:
    return {
        "id": 123456789,
        "number": 42,
        "state": "open",
        "title": "Add new feature",
        "body": "This PR adds a new feature to the application.",
        "user": _user("author", 2),
        "assignees": [_user("reviewer", 3)],
        "html_url": "https://github.com/owner/repo/pull/42",
        "draft": False,
        "merged": False
    }


@pytest.fixture
def issue_comment_payload(sample_repository: Dict[str, Any]) -> Dict[str, Any]:
    """issue_comment webhook for a comment on an open pull request."""
    return {
        "action": "created",
        "issue": {
            "number": 42,
            "state": "open",
            "title": "Add new feature",
            "body": "This PR adds a new feature to the application.",
            "user": _user("author", 2),
            "assignees": [_user("reviewer", 3)],
            "labels": [],
            "html_url": "https://github.com/owner/repo/pull/42",
            "pull_request": {"url": "https://api.github.com/repos/owner/repo/pulls/42"}
        },
        "comment": {
            "id": 555,
            "body": "/lgtm",
            "user": _user("reviewer", 3),
            "html_url": "https://github.com/owner/repo/pull/42#issuecomment-555"
        },
        "repository": sample_repository,
        "sender": _user("reviewer", 3),
        "installation": {"id": 987654}
    }


@pytest.fixture
def review_payload(
    sample_repository: Dict[str, Any],
    sample_pull_request: Dict[str, Any]
) -> Dict[str, Any]:
    """pull_request_review webhook for an approving review."""
    return {
        "action": "submitted",
        "review": {
            "id": 777,
            "body": "Looks great",
            "user": _user("reviewer", 3),
            "state": "approved",
            "html_url": "https://github.com/owner/repo/pull/42#pullrequestreview-777"
        },
        "pull_request": sample_pull_request,
        "repository": sample_repository,
        "sender": _user("reviewer", 3),
        "installation": {"id": 987654}
    }
