import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests

from issues2pdf.errors import GithubAPIError, RetriesExhausted
from issues2pdf.github.issue import GithubIssue
from issues2pdf.github.repo import Credentials, GithubRepo
from issues2pdf.logger import get_logger

logger: logging.Logger

RATE_LIMIT_STATUS_CODES = (403, 429)


class FetchState(Enum):
    REQUESTING = "requesting"
    WAITING = "waiting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class FetchProgress:
    """
    Bookkeeping for a single fetch. The retry counter is shared by every page
    of the fetch, not reset per page.
    """

    state: FetchState = FetchState.REQUESTING
    page: int = 1
    retries: int = 0
    issues: List[GithubIssue] = field(default_factory=list)
    waits: List[float] = field(default_factory=list)
    resume: FetchState = FetchState.REQUESTING
    error: Optional[Exception] = None

    @property
    def done(self) -> bool:
        return self.state in (FetchState.SUCCEEDED, FetchState.FAILED)

    def wait(self, *durations: float, then: FetchState) -> None:
        self.waits = list(durations)
        self.resume = then
        self.state = FetchState.WAITING

    def fail(self, error: Exception) -> None:
        self.error = error
        self.state = FetchState.FAILED


def _int_header(response: requests.Response, name: str) -> Optional[int]:
    value = response.headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@dataclass
class GithubAPI:
    """
    Handles REST API requests for a repository's issues.

    Pages are requested strictly one after another, since the rate limit
    headers of each response decide how long to wait before the next one.
    """

    token: Optional[str] = None
    per_page: int = 100
    request_delay: float = 0.1
    reset_buffer: float = 0.1
    max_retries: int = 3
    timeout: float = 30
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.time
    session: Optional[requests.Session] = None

    _ENDPOINT = "https://api.github.com"

    def __post_init__(self):
        global logger
        logger = get_logger()
        self._total_pages_fetched = 0

        # For testing
        per_page_override = os.environ.get("_ISSUES2PDF_PER_PAGE_OVERRIDE", None)
        if per_page_override:
            self.per_page = int(per_page_override)

    def _request_session(self) -> requests.Session:
        if self.session is None:
            self.session = requests.Session()
            self.session.headers.update({"Accept": "application/vnd.github.v3+json"})
            if self.token:
                self.session.headers.update({"Authorization": f"Bearer {self.token}"})
        return self.session

    def close(self) -> None:
        if self.session:
            self.session.close()

    def _get_page(self, repo: GithubRepo, page: int) -> requests.Response:
        params: Dict[str, Any] = {
            "state": "all",
            "per_page": self.per_page,
            "page": page,
        }
        response = self._request_session().get(
            f"{self._ENDPOINT}/repos/{repo.owner}/{repo.name}/issues",
            params=params,
            timeout=self.timeout,
        )
        self._total_pages_fetched += 1
        return response

    def _seconds_until_reset(self, response: requests.Response) -> Optional[float]:
        reset_at = _int_header(response, "X-RateLimit-Reset")
        if reset_at is None:
            return None
        return max(reset_at - self.clock(), 0) + self.reset_buffer

    def _request(self, repo: GithubRepo, progress: FetchProgress) -> None:
        response = self._get_page(repo, progress.page)

        if response.status_code in RATE_LIMIT_STATUS_CODES:
            self._rate_limited(response, progress)
            return

        if not response.ok:
            progress.fail(
                GithubAPIError(
                    f"GitHub API error {response.status_code}: {response.text[:500]}",
                    status_code=response.status_code,
                )
            )
            return

        try:
            batch = response.json()
        except ValueError:
            progress.fail(
                GithubAPIError(
                    f"Expected JSON from the issues endpoint, got: {response.text[:500]}",
                    status_code=response.status_code,
                )
            )
            return
        if not isinstance(batch, list):
            progress.fail(
                GithubAPIError(f"Expected a list of issues, got: {str(batch)[:500]}")
            )
            return
        if not batch:
            progress.state = FetchState.SUCCEEDED
            return

        try:
            progress.issues.extend(GithubIssue.from_json(i) for i in batch)
        except (KeyError, TypeError, AttributeError) as e:
            progress.fail(GithubAPIError(f"Unexpected issue data on page {progress.page}: {e!r}"))
            return

        remaining = _int_header(response, "X-RateLimit-Remaining")
        logger.info(
            f"Fetched issues page. page={progress.page}, page_count={len(batch)}, total_count={len(progress.issues)}, total_requests_made={self._total_pages_fetched}, rate_limit_remaining={remaining if remaining is not None else '-'}"
        )
        progress.page += 1

        waits = []
        if remaining is not None and remaining <= 1:
            reset_wait = self._seconds_until_reset(response)
            if reset_wait is not None:
                logger.warning(
                    f"Rate limit nearly exhausted. Waiting {reset_wait:.1f} seconds..."
                )
                waits.append(reset_wait)
        # Fixed spacing between pages for the secondary rate limit
        waits.append(self.request_delay)
        progress.wait(*waits, then=FetchState.REQUESTING)

    def _rate_limited(self, response: requests.Response, progress: FetchProgress) -> None:
        progress.retries += 1
        if progress.retries > self.max_retries:
            progress.fail(
                RetriesExhausted(self.max_retries, status_code=response.status_code)
            )
            return

        retry_after = _int_header(response, "Retry-After")
        if retry_after is not None and retry_after > 0:
            logger.warning(
                f"Secondary rate limit hit. Waiting {retry_after} seconds... (retry {progress.retries}/{self.max_retries})"
            )
            progress.wait(float(retry_after), then=FetchState.RETRYING)
            return

        reset_wait = self._seconds_until_reset(response)
        if reset_wait is not None:
            logger.warning(
                f"Rate limit exceeded. Waiting {reset_wait:.1f} seconds... (retry {progress.retries}/{self.max_retries})"
            )
            progress.wait(reset_wait, then=FetchState.RETRYING)
            return

        # A 403 without any rate limit hint is a plain permission error
        progress.fail(
            GithubAPIError(
                f"GitHub API error {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        )

    def _wait(self, progress: FetchProgress) -> None:
        for duration in progress.waits:
            if duration > 0:
                self.sleep(duration)
        progress.waits = []
        progress.state = progress.resume

    def _fetch_repo(self, repo: GithubRepo) -> List[GithubIssue]:
        """
        Runs the fetch state machine until it succeeds or fails. Nothing is
        returned unless every page was retrieved.
        """
        progress = FetchProgress()
        while not progress.done:
            if progress.state is FetchState.REQUESTING:
                self._request(repo, progress)
            elif progress.state is FetchState.WAITING:
                self._wait(progress)
            elif progress.state is FetchState.RETRYING:
                logger.info(f"Retrying issues page {progress.page}")
                progress.state = FetchState.REQUESTING

        if progress.state is FetchState.FAILED:
            logger.error(f"Fetch failed on page {progress.page}: {progress.error}")
            raise progress.error
        return list(progress.issues)

    def fetch_issues(self, repo_name: str) -> List[GithubIssue]:
        """
        Entry point for fetching a repo's issues, open and closed, in the
        order the API returns them.
        """
        repo = GithubRepo.parse(repo_name)
        logger.info(f"Initiating fetch for repo: {repo.full_name}")
        issues = self._fetch_repo(repo)
        logger.info(
            f"Retrieved {len(issues)} issues for repo {repo.full_name} in {self._total_pages_fetched} requests"
        )
        return issues


def fetch_issues(credentials: Credentials, **settings: Any) -> List[GithubIssue]:
    """
    Fetch every issue of ``credentials.repo``. The repository name is validated
    before a client is created, so a malformed name never reaches the network.
    """
    credentials.repository()
    api = GithubAPI(token=credentials.token, **settings)
    try:
        return api.fetch_issues(credentials.repo)
    finally:
        api.close()
