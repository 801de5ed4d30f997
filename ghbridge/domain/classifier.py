"""Event classifier — GitHub webhook payload to RoutedEvent.

Pure domain logic, no framework dependencies. The destination channel is a
static function of the event kind; payload content only affects the text.
"""

import sys
from typing import Any, List, Mapping, Optional, Sequence

from ghbridge.config import ChannelMap
from ghbridge.domain.mentions import MentionDirectory
from ghbridge.domain.models import EventKind, RoutedEvent


def _log(msg: str):
    print(msg, file=sys.stderr)


PULL_REQUEST_ACTIONS = frozenset({
    "opened",
    "reopened",
    "synchronize",
    "closed",
    "edited",
    "ready_for_review",
    "converted_to_draft",
})
REVIEW_REQUESTED_ACTIONS = frozenset({"review_requested"})
WORKFLOW_RUN_ACTIONS = frozenset({"completed"})


class _MissingField(Exception):
    pass


def _plain(value: str) -> str:
    """Break chat mention syntax in payload text so it renders literally."""
    return (
        value.replace("<@", "<\u200b@")
        .replace("@everyone", "@\u200beveryone")
        .replace("@here", "@\u200bhere")
    )


def _dig(data: Any, path: Sequence[str]) -> Any:
    current = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def _text(data: Any, *path: str, default: Optional[str] = None) -> str:
    """Return a scalar field as mention-safe text; raise _MissingField when absent and no default."""
    value = _dig(data, path)
    if value is None or isinstance(value, (Mapping, list, tuple)) or str(value).strip() == "":
        if default is None:
            raise _MissingField(".".join(path))
        return default
    return _plain(str(value).strip())


class EventClassifier:
    """Maps (event name, payload) to a RoutedEvent."""

    def __init__(
        self,
        channels: ChannelMap,
        mentions: MentionDirectory,
        dev_role_mention: Optional[str] = None,
    ):
        channels.validate()
        self._channels = channels
        self._mentions = mentions
        self._dev_role_mention = dev_role_mention or None

    def channel_for(self, kind: EventKind) -> int:
        if kind is EventKind.PULL_REQUEST:
            return self._channels.pull_request
        if kind is EventKind.REVIEW_REQUESTED:
            return self._channels.review_requested
        if kind is EventKind.WORKFLOW_RUN:
            return self._channels.workflow_run
        return 0

    @staticmethod
    def kind_of(event_name: str, action: str) -> EventKind:
        """Resolve the discriminant. Unknown names or actions are UNRECOGNIZED."""
        if event_name == "pull_request":
            if action in REVIEW_REQUESTED_ACTIONS:
                return EventKind.REVIEW_REQUESTED
            if action in PULL_REQUEST_ACTIONS:
                return EventKind.PULL_REQUEST
        elif event_name == "workflow_run":
            if action in WORKFLOW_RUN_ACTIONS:
                return EventKind.WORKFLOW_RUN
        return EventKind.UNRECOGNIZED

    def classify(self, event_name: str, payload: Any) -> RoutedEvent:
        """Classify one webhook delivery. Never raises on bad input."""
        if not isinstance(payload, Mapping):
            return RoutedEvent.ignored(reason="payload is not an object")
        action = payload.get("action")
        if not isinstance(action, str):
            action = ""

        kind = self.kind_of(event_name or "", action)
        try:
            if kind is EventKind.PULL_REQUEST:
                return self._pull_request(action, payload)
            if kind is EventKind.REVIEW_REQUESTED:
                return self._review_requested(action, payload)
            if kind is EventKind.WORKFLOW_RUN:
                return self._workflow_run(action, payload)
        except _MissingField as e:
            _log(f"[classifier] {event_name}/{action}: missing field {e}, ignoring")
            return RoutedEvent.ignored(action, reason=f"missing field {e}")
        return RoutedEvent.ignored(action, reason=f"unhandled event {event_name!r}/{action!r}")

    # -- per-kind rendering --

    @staticmethod
    def _pr_context(payload: Mapping[str, Any]) -> str:
        pr = payload.get("pull_request")
        number = _text(pr, "number")
        title = _text(pr, "title")
        author = _text(pr, "user", "login", default="") or _text(payload, "sender", "login")
        lines = [f"**#{number} {title}** by `{author}`"]
        head = _text(pr, "head", "ref", default="")
        base = _text(pr, "base", "ref", default="")
        if head and base:
            lines.append(f"`{head}` → `{base}`")
        url = _text(pr, "html_url", default="")
        if url:
            lines.append(url)
        return "\n".join(lines)

    def _pull_request(self, action: str, payload: Mapping[str, Any]) -> RoutedEvent:
        repo = _text(payload, "repository", "full_name")
        context = self._pr_context(payload)

        label = action
        if action == "closed" and _dig(payload, ("pull_request", "merged")) is True:
            label = "closed (merged)"

        mentions: List[str] = []
        prefix = ""
        if action == "opened" and self._dev_role_mention:
            mentions.append(self._dev_role_mention)
            prefix = f"{self._dev_role_mention} "

        body = f"{prefix}PR {label} in **{repo}**:\n{context}"
        return RoutedEvent(
            kind=EventKind.PULL_REQUEST,
            action=action,
            channel_id=self.channel_for(EventKind.PULL_REQUEST),
            body=body,
            mentions=tuple(mentions),
        )

    def _review_requested(self, action: str, payload: Mapping[str, Any]) -> RoutedEvent:
        repo = _text(payload, "repository", "full_name")
        requester = _text(payload, "sender", "login", default="someone")
        context = self._pr_context(payload)

        mentions: List[str] = []
        reviewer_login = _text(payload, "requested_reviewer", "login", default="")
        if reviewer_login:
            token = self._mentions.resolve(reviewer_login)
            if token:
                reviewer = token
                mentions.append(token)
            else:
                reviewer = f"`{reviewer_login}`"
        else:
            team = _text(payload, "requested_team", "name", default="") or _text(
                payload, "requested_team", "slug"
            )
            reviewer = f"team `{team}`"

        body = f"`{requester}` requested a review from {reviewer} in **{repo}**:\n{context}"
        return RoutedEvent(
            kind=EventKind.REVIEW_REQUESTED,
            action=action,
            channel_id=self.channel_for(EventKind.REVIEW_REQUESTED),
            body=body,
            mentions=tuple(mentions),
        )

    def _workflow_run(self, action: str, payload: Mapping[str, Any]) -> RoutedEvent:
        repo = _text(payload, "repository", "full_name")
        run = payload.get("workflow_run")
        name = _text(run, "name")
        status = _text(run, "status", default="unknown")
        conclusion = _text(run, "conclusion", default="unknown")
        url = _text(run, "html_url", default="")

        body = (
            f"Workflow run **{name}** in **{repo}** {action} "
            f"with status `{status}` and result `{conclusion}`"
        )
        body += f":\n{url}" if url else "."
        return RoutedEvent(
            kind=EventKind.WORKFLOW_RUN,
            action=action,
            channel_id=self.channel_for(EventKind.WORKFLOW_RUN),
            body=body,
        )
