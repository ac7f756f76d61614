"""Tests for paginated, rate limit aware issue fetching."""

import pytest
from hypothesis import given, settings, strategies as st

from conftest import FakeSession, make_issue_json, make_response
from issues2pdf.errors import (
    GithubAPIError,
    InvalidRepositoryFormat,
    RetriesExhausted,
)
from issues2pdf.github.api import GithubAPI, fetch_issues
from issues2pdf.github.repo import Credentials

NOW = 1_700_000_000


def make_api(session, sleeps, **kwargs):
    kwargs.setdefault("request_delay", 0.1)
    return GithubAPI(
        token="secret",
        session=session,
        sleep=sleeps.append,
        clock=lambda: float(NOW),
        **kwargs,
    )


def paged_responses(total, per_page, headers=None):
    items = [make_issue_json(n) for n in range(1, total + 1)]
    pages = [items[i : i + per_page] for i in range(0, total, per_page)]
    return [make_response(json_data=page, headers=headers) for page in pages] + [
        make_response(json_data=[])
    ]


# Any number of issues split over any page size comes back complete and in order
@settings(max_examples=50, deadline=None)
@given(
    total=st.integers(min_value=0, max_value=120),
    per_page=st.integers(min_value=1, max_value=30),
)
def test_pagination_returns_every_issue_in_page_order(total, per_page):
    session = FakeSession(paged_responses(total, per_page))
    sleeps = []
    api = make_api(session, sleeps, per_page=per_page)

    issues = api.fetch_issues("owner/repo")

    assert [i.number for i in issues] == list(range(1, total + 1))
    assert len({i.id for i in issues}) == total
    pages_needed = -(-total // per_page)
    assert session.pages == list(range(1, pages_needed + 2))
    assert all(call["params"]["per_page"] == per_page for call in session.calls)


class TestRequests:
    def test_requests_all_states_from_the_issues_endpoint(self, sleeps):
        session = FakeSession([make_response(json_data=[])])
        make_api(session, sleeps).fetch_issues("a/b")

        assert session.calls == [
            {
                "url": "https://api.github.com/repos/a/b/issues",
                "params": {"state": "all", "per_page": 100, "page": 1},
            }
        ]

    def test_session_sends_bearer_token_and_json_accept_header(self):
        api = GithubAPI(token="abc123")
        headers = api._request_session().headers
        assert headers["Authorization"] == "Bearer abc123"
        assert headers["Accept"] == "application/vnd.github.v3+json"
        api.close()

    def test_session_without_token_sends_no_authorization(self):
        api = GithubAPI(token=None)
        assert "Authorization" not in api._request_session().headers
        api.close()

    def test_per_page_override_from_environment(self, monkeypatch):
        monkeypatch.setenv("_ISSUES2PDF_PER_PAGE_OVERRIDE", "7")
        assert GithubAPI(token="x").per_page == 7

    def test_inter_request_delay_after_every_page(self, sleeps):
        session = FakeSession(paged_responses(3, 1))
        make_api(session, sleeps, per_page=1, request_delay=0.25).fetch_issues("a/b")
        assert sleeps == [0.25, 0.25, 0.25]

    def test_pull_requests_are_kept_and_flagged(self, sleeps):
        page = [make_issue_json(1), make_issue_json(2, pull_request=True)]
        session = FakeSession([make_response(json_data=page), make_response(json_data=[])])
        issues = make_api(session, sleeps).fetch_issues("a/b")
        assert [i.pull_request for i in issues] == [False, True]

    def test_null_body_becomes_empty_string(self, sleeps):
        page = [make_issue_json(1, body=None)]
        session = FakeSession([make_response(json_data=page), make_response(json_data=[])])
        assert make_api(session, sleeps).fetch_issues("a/b")[0].body == ""


class TestRepositoryValidation:
    @pytest.mark.parametrize("repo", ["notaslash", "a/b/c", "/b", "a/", "", "/"])
    def test_malformed_repo_fails_without_network_call(self, repo):
        session = FakeSession([])
        with pytest.raises(InvalidRepositoryFormat):
            fetch_issues(Credentials(repo=repo, token="x"), session=session)
        assert session.calls == []

    def test_well_formed_repo_proceeds_to_request(self):
        session = FakeSession([make_response(json_data=[])])
        result = fetch_issues(
            Credentials(repo="a/b", token="x"), session=session, sleep=lambda s: None
        )
        assert result == []
        assert len(session.calls) == 1
        assert session.closed

    def test_credentials_repr_hides_token(self):
        assert "hunter2" not in repr(Credentials(repo="a/b", token="hunter2"))


class TestRateLimits:
    def test_backs_off_and_retries_same_page(self, sleeps):
        session = FakeSession(
            [
                # quota nearly gone, reset in 30s
                make_response(
                    json_data=[make_issue_json(1)],
                    headers={"X-RateLimit-Remaining": "1", "X-RateLimit-Reset": str(NOW + 30)},
                ),
                # secondary rate limit on page 2
                make_response(403, json_data={"message": "slow down"}, headers={"Retry-After": "5"}),
                # quota at zero, reset already passed
                make_response(
                    json_data=[make_issue_json(2)],
                    headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(NOW - 10)},
                ),
                # primary rate limit on page 3
                make_response(
                    429,
                    json_data={"message": "rate limited"},
                    headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(NOW + 2)},
                ),
                make_response(json_data=[]),
            ]
        )

        issues = make_api(session, sleeps).fetch_issues("a/b")

        assert [i.number for i in issues] == [1, 2]
        assert session.pages == [1, 2, 2, 3, 3]
        assert sleeps == pytest.approx([30.1, 0.1, 5.0, 0.1, 0.1, 2.1])

    def test_plenty_of_quota_only_waits_the_fixed_delay(self, sleeps):
        session = FakeSession(
            [
                make_response(
                    json_data=[make_issue_json(1)],
                    headers={"X-RateLimit-Remaining": "4000", "X-RateLimit-Reset": str(NOW + 3000)},
                ),
                make_response(json_data=[]),
            ]
        )
        make_api(session, sleeps).fetch_issues("a/b")
        assert sleeps == [0.1]

    def test_retry_after_wins_over_reset(self, sleeps):
        session = FakeSession(
            [
                make_response(
                    403,
                    headers={"Retry-After": "3", "X-RateLimit-Reset": str(NOW + 600)},
                ),
                make_response(json_data=[]),
            ]
        )
        make_api(session, sleeps).fetch_issues("a/b")
        assert sleeps == [3.0]

    def test_exceeding_retry_ceiling_raises(self, sleeps):
        session = FakeSession([make_response(429, headers={"Retry-After": "1"})] * 4)

        with pytest.raises(RetriesExhausted) as excinfo:
            make_api(session, sleeps).fetch_issues("a/b")

        assert excinfo.value.status_code == 429
        assert len(session.calls) == 4
        assert sleeps == [1.0, 1.0, 1.0]

    def test_retry_counter_is_shared_across_pages(self, sleeps):
        limited = make_response(403, headers={"Retry-After": "1"})
        session = FakeSession(
            [
                limited,
                make_response(json_data=[make_issue_json(1)]),
                limited,
                make_response(json_data=[make_issue_json(2)]),
                limited,
                make_response(json_data=[make_issue_json(3)]),
                limited,
            ]
        )
        with pytest.raises(RetriesExhausted):
            make_api(session, sleeps).fetch_issues("a/b")

    def test_max_retries_is_configurable(self, sleeps):
        session = FakeSession(
            [make_response(429, headers={"Retry-After": "1"})] * 5 + [make_response(json_data=[])]
        )
        assert make_api(session, sleeps, max_retries=5).fetch_issues("a/b") == []

    def test_forbidden_without_rate_limit_hint_is_not_retried(self, sleeps):
        session = FakeSession([make_response(403, json_data={"message": "Forbidden"})])

        with pytest.raises(GithubAPIError) as excinfo:
            make_api(session, sleeps).fetch_issues("a/b")

        assert not isinstance(excinfo.value, RetriesExhausted)
        assert excinfo.value.status_code == 403
        assert sleeps == []


class TestErrors:
    def test_other_errors_abort_immediately(self, sleeps):
        session = FakeSession([make_response(404, json_data={"message": "Not Found"})])

        with pytest.raises(GithubAPIError) as excinfo:
            make_api(session, sleeps).fetch_issues("a/b")

        assert excinfo.value.status_code == 404
        assert len(session.calls) == 1
        assert sleeps == []

    def test_failure_after_some_pages_returns_nothing(self, sleeps):
        session = FakeSession(
            [
                make_response(json_data=[make_issue_json(1)]),
                make_response(500, json_data={"message": "boom"}),
            ]
        )
        with pytest.raises(GithubAPIError):
            make_api(session, sleeps).fetch_issues("a/b")

    def test_non_list_payload_is_an_error(self, sleeps):
        session = FakeSession([make_response(json_data={"message": "weird"})])
        with pytest.raises(GithubAPIError):
            make_api(session, sleeps).fetch_issues("a/b")

    def test_malformed_issue_is_an_error(self, sleeps):
        session = FakeSession([make_response(json_data=[{"title": "no number"}])])
        with pytest.raises(GithubAPIError):
            make_api(session, sleeps).fetch_issues("a/b")

    def test_non_json_response_is_an_error(self, sleeps):
        response = make_response()
        response._content = b"<html>maintenance</html>"
        session = FakeSession([response])

        with pytest.raises(GithubAPIError) as excinfo:
            make_api(session, sleeps).fetch_issues("a/b")

        assert excinfo.value.status_code == 200
        assert "maintenance" in str(excinfo.value)
