"""Tests for EventClassifier — discriminants, rendering, mentions, malformed input."""

import copy

import pytest

from ghbridge.config import ChannelMap
from ghbridge.domain.classifier import PULL_REQUEST_ACTIONS, EventClassifier
from ghbridge.domain.mentions import MentionDirectory
from ghbridge.domain.models import EventKind

PR_CHANNEL = 101
REVIEW_CHANNEL = 102
WORKFLOW_CHANNEL = 103

JACQUES_MENTION = "<@123456789012345678>"


def _pr_payload(action="opened", title="Fix bug", number=42, **extra):
    payload = {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "title": title,
            "html_url": f"https://github.com/acme/api/pull/{number}",
            "user": {"login": "alice"},
            "head": {"ref": "fix/bug"},
            "base": {"ref": "main"},
            "merged": False,
        },
        "repository": {"full_name": "acme/api"},
        "sender": {"login": "alice"},
    }
    payload.update(extra)
    return payload


def _review_payload(reviewer="jacqu3sk"):
    payload = _pr_payload(action="review_requested")
    payload["requested_reviewer"] = {"login": reviewer}
    payload["sender"] = {"login": "bob"}
    return payload


def _workflow_payload(action="completed", **run):
    workflow_run = {
        "name": "CI",
        "status": "completed",
        "conclusion": "success",
        "html_url": "https://github.com/acme/api/actions/runs/7",
    }
    workflow_run.update(run)
    return {
        "action": action,
        "workflow_run": workflow_run,
        "repository": {"full_name": "acme/api"},
    }


@pytest.fixture
def classifier():
    channels = ChannelMap(
        pull_request=PR_CHANNEL,
        review_requested=REVIEW_CHANNEL,
        workflow_run=WORKFLOW_CHANNEL,
    )
    return EventClassifier(channels, MentionDirectory({"jacqu3sk": JACQUES_MENTION}))


# ---------------------------------------------------------------------------
# Pull requests
# ---------------------------------------------------------------------------

class TestPullRequest:
    def test_opened_scenario(self, classifier):
        routed = classifier.classify("pull_request", _pr_payload("opened", title="Fix bug"))
        assert routed.kind is EventKind.PULL_REQUEST
        assert routed.channel_id == PR_CHANNEL
        assert "opened" in routed.body
        assert "Fix bug" in routed.body
        assert "#42" in routed.body
        assert "`alice`" in routed.body
        assert "`fix/bug` → `main`" in routed.body
        assert routed.mentions == ()

    @pytest.mark.parametrize("action", sorted(PULL_REQUEST_ACTIONS))
    def test_every_known_action_goes_to_pr_channel(self, classifier, action):
        routed = classifier.classify("pull_request", _pr_payload(action))
        assert routed.kind is EventKind.PULL_REQUEST
        assert routed.action == action
        assert routed.channel_id == PR_CHANNEL

    def test_merged_close_is_labelled(self, classifier):
        payload = _pr_payload("closed")
        payload["pull_request"]["merged"] = True
        routed = classifier.classify("pull_request", payload)
        assert "closed (merged)" in routed.body

    def test_author_falls_back_to_sender(self, classifier):
        payload = _pr_payload()
        del payload["pull_request"]["user"]
        payload["sender"] = {"login": "carol"}
        routed = classifier.classify("pull_request", payload)
        assert "`carol`" in routed.body

    def test_payload_cannot_forge_mentions(self, classifier):
        payload = _pr_payload(title="<@&555> @everyone @here look")
        payload["pull_request"]["head"]["ref"] = "<@42>"
        payload["pull_request"]["user"]["login"] = "<@!7>"
        routed = classifier.classify("pull_request", payload)
        assert "<@" not in routed.body
        assert "@everyone" not in routed.body
        assert "@here" not in routed.body
        assert "look" in routed.body
        assert routed.mentions == ()

    def test_unknown_action_is_unrecognized(self, classifier):
        routed = classifier.classify("pull_request", _pr_payload("labeled"))
        assert routed.kind is EventKind.UNRECOGNIZED
        assert not routed.routable

    def test_dev_role_pinged_on_opened_only(self):
        channels = ChannelMap(pull_request=1, review_requested=2, workflow_run=3)
        c = EventClassifier(channels, MentionDirectory(), dev_role_mention="<@&555>")
        opened = c.classify("pull_request", _pr_payload("opened"))
        assert opened.body.startswith("<@&555> ")
        assert opened.mentions == ("<@&555>",)

        closed = c.classify("pull_request", _pr_payload("closed"))
        assert "<@&555>" not in closed.body
        assert closed.mentions == ()


# ---------------------------------------------------------------------------
# Review requests
# ---------------------------------------------------------------------------

class TestReviewRequested:
    def test_known_reviewer_is_mentioned_once(self, classifier):
        routed = classifier.classify("pull_request", _review_payload("jacqu3sk"))
        assert routed.kind is EventKind.REVIEW_REQUESTED
        assert routed.channel_id == REVIEW_CHANNEL
        assert routed.body.count(JACQUES_MENTION) == 1
        assert routed.mentions == (JACQUES_MENTION,)
        assert "`bob` requested a review from" in routed.body

    def test_unknown_reviewer_rendered_by_name(self, classifier):
        routed = classifier.classify("pull_request", _review_payload("unknown_user"))
        assert routed.kind is EventKind.REVIEW_REQUESTED
        assert "unknown_user" in routed.body
        assert JACQUES_MENTION not in routed.body
        assert routed.mentions == ()

    def test_lookup_is_case_sensitive(self, classifier):
        routed = classifier.classify("pull_request", _review_payload("Jacqu3sk"))
        assert routed.mentions == ()
        assert "`Jacqu3sk`" in routed.body

    def test_pr_context_matches_pull_request_rendering(self, classifier):
        review = classifier.classify("pull_request", _review_payload())
        pr = classifier.classify("pull_request", _pr_payload())
        context = pr.body.split("\n", 1)[1]
        assert review.body.endswith(context)

    def test_mention_in_title_does_not_duplicate_ping(self, classifier):
        payload = _review_payload("jacqu3sk")
        payload["pull_request"]["title"] = f"cc {JACQUES_MENTION} please"
        routed = classifier.classify("pull_request", payload)
        assert routed.body.count(JACQUES_MENTION) == 1
        assert routed.mentions == (JACQUES_MENTION,)
        assert "please" in routed.body

    def test_team_review_request(self, classifier):
        payload = _pr_payload(action="review_requested")
        payload["requested_team"] = {"name": "backend", "slug": "backend"}
        routed = classifier.classify("pull_request", payload)
        assert routed.kind is EventKind.REVIEW_REQUESTED
        assert "team `backend`" in routed.body
        assert routed.mentions == ()

    def test_missing_reviewer_and_team_is_unrecognized(self, classifier):
        payload = _pr_payload(action="review_requested")
        routed = classifier.classify("pull_request", payload)
        assert routed.kind is EventKind.UNRECOGNIZED


# ---------------------------------------------------------------------------
# Workflow runs
# ---------------------------------------------------------------------------

class TestWorkflowRun:
    def test_completed(self, classifier):
        routed = classifier.classify("workflow_run", _workflow_payload(conclusion="failure"))
        assert routed.kind is EventKind.WORKFLOW_RUN
        assert routed.channel_id == WORKFLOW_CHANNEL
        assert "**CI**" in routed.body
        assert "`completed`" in routed.body
        assert "`failure`" in routed.body
        assert "actions/runs/7" in routed.body

    def test_missing_conclusion_is_unknown(self, classifier):
        routed = classifier.classify("workflow_run", _workflow_payload(conclusion=None))
        assert "result `unknown`" in routed.body

    def test_missing_link(self, classifier):
        routed = classifier.classify("workflow_run", _workflow_payload(html_url=None))
        assert routed.kind is EventKind.WORKFLOW_RUN
        assert routed.body.endswith(".")

    def test_in_progress_not_notified(self, classifier):
        routed = classifier.classify("workflow_run", _workflow_payload(action="in_progress"))
        assert routed.kind is EventKind.UNRECOGNIZED


# ---------------------------------------------------------------------------
# Static routing policy and malformed input
# ---------------------------------------------------------------------------

class TestRoutingPolicy:
    def test_channel_depends_only_on_discriminant(self, classifier):
        a = _pr_payload(title="Route me to workflows please", number=1)
        b = copy.deepcopy(a)
        b["pull_request"]["title"] = "workflow_run"
        b["repository"]["full_name"] = "other/repo"
        assert classifier.classify("pull_request", a).channel_id == classifier.classify(
            "pull_request", b
        ).channel_id == PR_CHANNEL

    @pytest.mark.parametrize("event_name", ["push", "issues", "ping", "", "PULL_REQUEST"])
    def test_other_events_unrecognized(self, classifier, event_name):
        routed = classifier.classify(event_name, _pr_payload())
        assert routed.kind is EventKind.UNRECOGNIZED
        assert routed.channel_id == 0


class TestMalformed:
    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            "text",
            {},
            {"action": "opened"},
            {"action": "opened", "pull_request": "nope", "repository": {"full_name": "a/b"}},
            {"action": 7, "pull_request": {}},
        ],
    )
    def test_never_raises(self, classifier, payload):
        routed = classifier.classify("pull_request", payload)
        assert routed.kind is EventKind.UNRECOGNIZED

    def test_missing_title(self, classifier):
        payload = _pr_payload()
        del payload["pull_request"]["title"]
        routed = classifier.classify("pull_request", payload)
        assert routed.kind is EventKind.UNRECOGNIZED
        assert "title" in routed.reason

    def test_missing_repository(self, classifier):
        payload = _workflow_payload()
        del payload["repository"]
        assert classifier.classify("workflow_run", payload).kind is EventKind.UNRECOGNIZED

    def test_bad_event_does_not_affect_next(self, classifier):
        assert classifier.classify("pull_request", {"action": "opened"}).kind is EventKind.UNRECOGNIZED
        assert classifier.classify("pull_request", _pr_payload()).kind is EventKind.PULL_REQUEST
