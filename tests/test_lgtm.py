"""
Tests for the LGTM Plugin

Covers command detection, the self-approval guard, assignment enforcement
and label toggling.
"""

import pytest

from lgtm_bot.models import (
    GenericCommentAction,
    GenericCommentEvent,
    GitHubPullRequest,
    GitHubRepository,
    GitHubReview,
    GitHubUser,
    ReviewEvent,
)
from lgtm_bot.plugins.lgtm import LGTMConfig, LGTMPlugin, review_intent
from lgtm_bot.plugins.registry import PluginRegistry
from lgtm_bot.plugins import lgtm
from lgtm_bot.services.errors import GitHubAPIError, GitHubMissingUsersError

REPO = GitHubRepository(
    id=111,
    name="repo",
    full_name="owner/repo",
    owner=GitHubUser(login="owner", id=1),
)

MUTATIONS = ("add_label", "remove_label", "assign_issue")


def comment_event(
    body: str,
    commenter: str = "reviewer",
    assignees=("reviewer",),
    action: GenericCommentAction = GenericCommentAction.CREATED,
    is_pr: bool = True,
    state: str = "open",
) -> GenericCommentEvent:
    return GenericCommentEvent(
        action=action,
        is_pr=is_pr,
        issue_state=state,
        user=GitHubUser(login=commenter),
        issue_author=GitHubUser(login="author"),
        repo=REPO,
        number=42,
        assignees=[GitHubUser(login=login) for login in assignees],
        body=body,
        html_url="https://github.com/owner/repo/pull/42#issuecomment-1",
    )


def review_event(state: str, reviewer: str = "reviewer", assignees=("reviewer",)) -> ReviewEvent:
    return ReviewEvent(
        action="submitted",
        review=GitHubReview(
            id=7,
            body="",
            user=GitHubUser(login=reviewer),
            state=state,
            html_url="https://github.com/owner/repo/pull/42#pullrequestreview-7",
        ),
        pull_request=GitHubPullRequest(
            id=1,
            number=42,
            state="open",
            user=GitHubUser(login="author"),
            assignees=[GitHubUser(login=login) for login in assignees],
        ),
        repo=REPO,
    )


@pytest.fixture
def plugin() -> LGTMPlugin:
    return LGTMPlugin(LGTMConfig())


class TestCommentIntent:
    """Which comment bodies are lgtm commands."""

    @pytest.mark.parametrize("body", [
        "/lgtm",
        "/LGTM",
        "/lgtm   ",
        "/lgtm no-issue",
        "Nice work!\n/lgtm\nthanks",
    ])
    def test_lgtm(self, body):
        assert LGTMConfig().comment_intent(body) is True

    @pytest.mark.parametrize("body", ["/lgtm cancel", "/LGTM CANCEL", "oops\n/lgtm cancel  "])
    def test_cancel(self, body):
        assert LGTMConfig().comment_intent(body) is False

    @pytest.mark.parametrize("body", [
        "",
        "lgtm",
        "/lgtm please",
        "I think /lgtm is fine",
        "/lgtmcancel",
        "> /lgtm",
    ])
    def test_not_a_command(self, body):
        assert LGTMConfig().comment_intent(body) is None

    def test_lgtm_wins_over_cancel(self):
        assert LGTMConfig().comment_intent("/lgtm cancel\n/lgtm") is True


class TestReviewIntent:

    def test_approved(self):
        assert review_intent("approved") is True

    def test_changes_requested(self):
        assert review_intent("changes_requested") is False

    @pytest.mark.parametrize("state", ["commented", "dismissed", "pending"])
    def test_other_states_ignored(self, state):
        assert review_intent(state) is None


class TestCommentFiltering:
    """Comment events that never reach intent extraction."""

    @pytest.mark.parametrize("event", [
        comment_event("/lgtm", is_pr=False),
        comment_event("/lgtm", state="closed"),
        comment_event("/lgtm", action=GenericCommentAction.EDITED),
        comment_event("/lgtm", action=GenericCommentAction.DELETED),
        comment_event("just a comment"),
    ])
    async def test_no_calls(self, plugin, plugin_client, fake_github, event):
        await plugin.handle_generic_comment(plugin_client, event)

        assert fake_github.calls == []


class TestSelfApproval:

    async def test_author_cannot_lgtm_own_pr(self, plugin, plugin_client, fake_github):
        await plugin.handle_generic_comment(
            plugin_client, comment_event("/lgtm", commenter="author", assignees=())
        )

        assert [name for name, _ in fake_github.calls] == ["create_comment"]
        assert "cannot LGTM your own PR" in fake_github.comments[0]
        assert fake_github.comments[0].startswith("@author: ")

    async def test_author_cannot_approve_own_pr_by_review(self, plugin, plugin_client, fake_github):
        await plugin.handle_review(plugin_client, review_event("approved", reviewer="author"))

        assert [name for name, _ in fake_github.calls] == ["create_comment"]
        assert "cannot LGTM your own PR" in fake_github.comments[0]

    async def test_author_may_cancel(self, plugin, plugin_client, fake_github):
        fake_github.labels = ["lgtm"]

        await plugin.handle_generic_comment(
            plugin_client, comment_event("/lgtm cancel", commenter="author", assignees=("author",))
        )

        assert fake_github.called("remove_label") == [("owner", "repo", 42, "lgtm")]
        assert fake_github.comments == []


class TestAssignment:

    async def test_assigns_commenter_who_is_not_assignee(self, plugin, plugin_client, fake_github):
        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm", assignees=()))

        assert fake_github.called("assign_issue") == [("owner", "repo", 42, ["reviewer"])]
        assert fake_github.called("add_label") == [("owner", "repo", 42, "lgtm")]

    async def test_existing_assignee_not_reassigned(self, plugin, plugin_client, fake_github):
        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm"))

        assert fake_github.called("assign_issue") == []

    async def test_non_member_told_about_org(self, plugin, plugin_client, fake_github):
        fake_github.assign_error = GitHubMissingUsersError(["reviewer"])
        fake_github.member = False

        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm", assignees=()))

        assert fake_github.called("is_member") == [("owner", "reviewer")]
        assert len(fake_github.comments) == 1
        comment = fake_github.comments[0]
        assert "changing LGTM is restricted to assignees, and only owner org members may be assigned issues." in comment
        assert fake_github.called("get_issue_labels") == []
        assert fake_github.called("add_label") == []

    async def test_membership_lookup_failure_uses_generic_message(self, plugin, plugin_client, fake_github):
        fake_github.assign_error = GitHubAPIError("boom", status_code=500)
        fake_github.member_error = GitHubAPIError("also boom", status_code=502)

        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm", assignees=()))

        assert "assigning you to the PR failed." in fake_github.comments[0]
        assert fake_github.called("add_label") == []

    async def test_member_with_unrelated_failure_uses_generic_message(self, plugin, plugin_client, fake_github):
        fake_github.assign_error = GitHubAPIError("boom", status_code=500)
        fake_github.member = True

        await plugin.handle_review(plugin_client, review_event("changes_requested", assignees=()))

        assert "changing LGTM is restricted to assignees, and assigning you to the PR failed." in fake_github.comments[0]
        assert fake_github.called("remove_label") == []

    async def test_comment_failure_propagates(self, plugin, plugin_client, fake_github):
        fake_github.assign_error = GitHubAPIError("boom", status_code=500)
        fake_github.comment_error = GitHubAPIError("cannot comment", status_code=403)

        with pytest.raises(GitHubAPIError, match="cannot comment"):
            await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm", assignees=()))


class TestLabelToggle:

    async def test_adds_missing_label(self, plugin, plugin_client, fake_github):
        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm"))

        assert fake_github.called("add_label") == [("owner", "repo", 42, "lgtm")]
        assert fake_github.called("remove_label") == []

    async def test_removes_present_label(self, plugin, plugin_client, fake_github):
        fake_github.labels = ["lgtm", "kind/bug"]

        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm cancel"))

        assert fake_github.called("remove_label") == [("owner", "repo", 42, "lgtm")]
        assert fake_github.called("add_label") == []

    @pytest.mark.parametrize("labels, body", [
        (["lgtm"], "/lgtm"),
        ([], "/lgtm cancel"),
    ])
    async def test_no_op_when_state_matches(self, plugin, plugin_client, fake_github, labels, body):
        fake_github.labels = list(labels)

        await plugin.handle_generic_comment(plugin_client, comment_event(body))

        assert fake_github.called("add_label") == []
        assert fake_github.called("remove_label") == []

    async def test_review_approval_adds_label(self, plugin, plugin_client, fake_github):
        await plugin.handle_review(plugin_client, review_event("APPROVED"))

        assert fake_github.called("add_label") == [("owner", "repo", 42, "lgtm")]

    async def test_review_changes_requested_removes_label(self, plugin, plugin_client, fake_github):
        fake_github.labels = ["lgtm"]

        await plugin.handle_review(plugin_client, review_event("changes_requested"))

        assert fake_github.called("remove_label") == [("owner", "repo", 42, "lgtm")]

    @pytest.mark.parametrize("state", ["commented", "dismissed"])
    async def test_review_without_verdict_makes_no_calls(self, plugin, plugin_client, fake_github, state):
        await plugin.handle_review(plugin_client, review_event(state))

        assert fake_github.calls == []

    async def test_label_query_failure_assumes_absent(self, plugin, plugin_client, fake_github):
        fake_github.labels = ["lgtm"]
        fake_github.labels_error = GitHubAPIError("unavailable", status_code=503)

        await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm"))

        assert fake_github.called("add_label") == [("owner", "repo", 42, "lgtm")]

    async def test_add_label_failure_propagates(self, plugin, plugin_client, fake_github):
        fake_github.add_label_error = GitHubAPIError("forbidden", status_code=403)

        with pytest.raises(GitHubAPIError):
            await plugin.handle_generic_comment(plugin_client, comment_event("/lgtm"))

    async def test_custom_label_name(self, plugin_client, fake_github):
        custom = LGTMPlugin(LGTMConfig(label="approved-by-reviewer"))

        await custom.handle_generic_comment(plugin_client, comment_event("/lgtm"))

        assert fake_github.called("add_label") == [("owner", "repo", 42, "approved-by-reviewer")]


class TestRegistration:

    def test_registers_both_handlers(self):
        registry = PluginRegistry()

        lgtm.register(registry, LGTMConfig())

        assert "lgtm" in registry.generic_comment_handlers
        assert "lgtm" in registry.review_event_handlers

    def test_help(self):
        registry = PluginRegistry()
        lgtm.register(registry, LGTMConfig())

        plugin_help = registry.plugin_help()["lgtm"]

        assert "'lgtm' (Looks Good To Me)" in plugin_help.description
        assert len(plugin_help.commands) == 1
        command = plugin_help.commands[0]
        assert command.usage == "/lgtm [cancel]"
        assert command.featured is True
        assert command.examples == ["/lgtm", "/lgtm cancel"]
        assert "PR author" in command.who_can_use
