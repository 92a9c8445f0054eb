"""Boundary models for the GitHub webhook payloads we understand.

Only the fields needed for normalization are declared. Everything is
optional so that sparse deliveries fall back to placeholders instead of
failing; fields with the wrong JSON type fail validation.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class GitHubEventKind(StrEnum):
    """Value of the X-GitHub-Event header."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"
    UNKNOWN = "unknown"

    @classmethod
    def from_header(cls, value: str | None) -> "GitHubEventKind":
        """Map a header value onto a known kind, defaulting to UNKNOWN."""
        try:
            return cls(value or "")
        except ValueError:
            return cls.UNKNOWN


class PullRequestAction(StrEnum):
    """Inner ``action`` values of pull_request deliveries that we record."""

    OPENED = "opened"
    SYNCHRONIZE = "synchronize"
    CLOSED = "closed"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubUser(_Payload):
    login: str | None = None


class Pusher(_Payload):
    name: str | None = None
    email: str | None = None


class CommitAuthor(_Payload):
    name: str | None = None
    email: str | None = None


class HeadCommit(_Payload):
    id: str | None = None
    author: CommitAuthor | None = None


class BranchRef(_Payload):
    ref: str | None = None


class PullRequest(_Payload):
    number: int | None = None
    merged: bool | None = None
    user: GitHubUser | None = None
    merged_by: GitHubUser | None = None
    head: BranchRef | None = None
    base: BranchRef | None = None


class PushPayload(_Payload):
    """Body of a ``push`` delivery."""

    ref: str | None = None
    pusher: Pusher | None = None
    head_commit: HeadCommit | None = None

    @property
    def branch(self) -> str:
        """Branch name with the ``refs/heads/`` prefix removed."""
        return (self.ref or "").replace("refs/heads/", "")

    @property
    def author(self) -> str | None:
        """Pusher name, falling back to the head commit author."""
        if self.pusher and self.pusher.name:
            return self.pusher.name
        if self.head_commit and self.head_commit.author and self.head_commit.author.name:
            return self.head_commit.author.name
        return None


class PullRequestPayload(_Payload):
    """Body of a ``pull_request`` delivery."""

    action: str | None = None
    pull_request: PullRequest | None = None

    @property
    def is_merged(self) -> bool:
        return bool(self.pull_request and self.pull_request.merged)

    @property
    def opener(self) -> str | None:
        pr = self.pull_request
        if pr and pr.user and pr.user.login:
            return pr.user.login
        return None

    @property
    def merger(self) -> str | None:
        pr = self.pull_request
        if pr and pr.merged_by and pr.merged_by.login:
            return pr.merged_by.login
        return self.opener

    @property
    def head_ref(self) -> str | None:
        pr = self.pull_request
        return pr.head.ref if pr and pr.head else None

    @property
    def base_ref(self) -> str | None:
        pr = self.pull_request
        return pr.base.ref if pr and pr.base else None
