"""Shared fixtures and fakes for the issues2pdf tests."""

import json
from typing import Any, Dict, Iterable, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from issues2pdf.github.issue import GithubIssue


def make_issue_json(
    number: int,
    title: Optional[str] = None,
    body: Optional[str] = "Something is broken.",
    state: str = "open",
    labels: Iterable[str] = (),
    pull_request: bool = False,
) -> Dict[str, Any]:
    data = {
        "id": 1000 + number,
        "number": number,
        "title": title if title is not None else f"Issue {number}",
        "body": body,
        "state": state,
        "created_at": "2024-01-05T10:00:00Z",
        "updated_at": "2024-02-10T12:30:00Z",
        "user": {"login": "octocat", "avatar_url": "https://example.com/a.png"},
        "labels": [{"name": name, "color": "d73a4a"} for name in labels],
    }
    if pull_request:
        data["pull_request"] = {"url": f"https://api.github.com/pulls/{number}"}
    return data


def make_issue(number: int, **kwargs: Any) -> GithubIssue:
    return GithubIssue.from_json(make_issue_json(number, **kwargs))


def make_response(
    status_code: int = 200,
    json_data: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps([] if json_data is None else json_data).encode("utf-8")
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    response.url = "https://api.github.com/repos/owner/repo/issues"
    return response


class FakeSession:
    """
    Stands in for requests.Session, replaying scripted responses in order and
    recording every request.
    """

    def __init__(self, responses: Iterable[requests.Response]):
        self.responses: List[requests.Response] = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Any = None):
        self.calls.append({"url": url, "params": dict(params or {})})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {url} {params}")
        return self.responses.pop(0)

    def close(self) -> None:
        self.closed = True

    @property
    def pages(self) -> List[int]:
        return [call["params"]["page"] for call in self.calls]


@pytest.fixture
def sleeps() -> List[float]:
    return []
