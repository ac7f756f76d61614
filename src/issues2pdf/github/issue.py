from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class GithubUser:
    login: str
    avatar_url: str


@dataclass(frozen=True)
class GithubLabel:
    """
    A label as attached to an issue. The color is six hex digits without a
    leading '#'.
    """

    name: str
    color: str


@dataclass(frozen=True)
class GithubIssue:
    """
    Represents an Issue or PR as returned by the REST issues endpoint, which
    lists both. Records are read-only snapshots; the timestamps are kept in
    their ISO 8601 form and only parsed for display.
    """

    id: int
    number: int
    title: str
    body: str
    state: str
    created_at: str
    updated_at: str
    user: GithubUser
    labels: Tuple[GithubLabel, ...] = ()
    pull_request: bool = False

    @property
    def label_names(self) -> Tuple[str, ...]:
        return tuple(label.name for label in self.labels)

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GithubIssue":
        user = data.get("user") or {}
        return cls(
            id=data["id"],
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=data["state"].lower(),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            user=GithubUser(
                login=user.get("login", "(unknown)"),
                avatar_url=user.get("avatar_url", ""),
            ),
            labels=tuple(
                GithubLabel(name=label["name"], color=label.get("color", ""))
                for label in data.get("labels") or []
            ),
            pull_request="pull_request" in data,
        )
