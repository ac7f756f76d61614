import datetime
import os
import re
from typing import Iterable, Optional

from issues2pdf import templates_pdf
from issues2pdf.errors import EmptyInput
from issues2pdf.github.issue import GithubIssue
from issues2pdf.logger import get_logger
from issues2pdf.render.pdf import render, render_single

SLUG_TITLE_LENGTH = 30


def single_issue_filename(issue: GithubIssue) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", issue.title[:SLUG_TITLE_LENGTH], flags=re.I)
    return templates_pdf.SINGLE_ISSUE_FILENAME.format(number=issue.number, slug=slug)


def batch_filename(today: Optional[datetime.date] = None) -> str:
    if today is None:
        today = datetime.datetime.now(datetime.timezone.utc).date()
    return templates_pdf.BATCH_FILENAME.format(date=today.isoformat())


def _write(path: str, data: bytes) -> str:
    get_logger().info(f"Writing to file: {path}")
    with open(path, "wb") as out:
        out.write(data)
    return path


def generate_single_issue_pdf(
    issue: GithubIssue, hide_metadata: bool = False, output_dir: str = "."
) -> str:
    """
    Write one issue to its own PDF in ``output_dir`` and return the path.
    """
    data = render_single(issue, hide_metadata=hide_metadata)
    return _write(os.path.join(output_dir, single_issue_filename(issue)), data)


def generate_all_issues_pdf(
    issues: Iterable[GithubIssue],
    hide_metadata: bool = False,
    output_dir: str = ".",
    output_path: Optional[str] = None,
) -> str:
    """
    Write all given issues into one PDF and return the path. Without an
    explicit ``output_path`` the file is named after today's date.
    """
    issues = list(issues)
    if not issues:
        raise EmptyInput()
    data = render(issues, hide_metadata=hide_metadata)
    if output_path is None:
        output_path = os.path.join(output_dir, batch_filename())
    return _write(output_path, data)
