#!/usr/bin/env python
# coding: utf-8
import argparse
import logging
import os
import pprint
import sys
from collections import defaultdict
from typing import List, Optional

import requests

from issues2pdf import __version__
from issues2pdf.errors import Issues2PDFError, OutputPathError
from issues2pdf.export import (
    batch_filename,
    generate_all_issues_pdf,
    generate_single_issue_pdf,
)
from issues2pdf.github.api import GithubAPI
from issues2pdf.github.issue import GithubIssue
from issues2pdf.github.repo import Credentials
from issues2pdf.logger import init_logger, logger
from issues2pdf.views import IssueView, label_counts, state_counts

ENV_GITHUB_TOKEN = "GITHUB_ACCESS_TOKEN"
GITHUB_ACCESS_TOKEN_PATHS = [
    os.path.expanduser(os.path.join("~", ".config", "issues2pdf", "token")),
    os.path.expanduser(os.path.join("~", ".github-token")),
]

DESCRIPTION = """Export Github repository issues to PDF documents.

Example: issues2pdf octocat/Hello-World exports/

Credentials are resolved in the following order:

- A `{token}` environment variable.
- An API token stored in ~/.config/issues2pdf/token or ~/.github-token.

To access private repositories, you'll need a token with the full "repo" oauth
scope.

By default, open issues and pull requests are exported into a single file
named github-issues-<date>.pdf. Use --state, --label and --issue to narrow the
selection, or --multiple-files to write one PDF per issue.
""".format(
    token=ENV_GITHUB_TOKEN
)


def parse_args(args: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "repo",
        help='Github repo to export, in format "owner/repo_name".',
        type=str,
        action="store",
    )
    parser.add_argument(
        "output_path",
        help="PDF file, or directory (created if missing), to write the export to. Paths without a .pdf suffix are directories. Defaults to the current directory.",
        type=str,
        action="store",
        nargs="?",
        default=".",
    )
    parser.add_argument(
        "--multiple-files",
        help="Treat the given path as a directory and create one file per issue, named 'issue-{number}-{title}.pdf'.",
        action="store_true",
        dest="use_multiple_files",
    )
    parser.add_argument(
        "--hide-metadata",
        help="Leave out author, labels, status and dates, exporting only titles and bodies.",
        action="store_true",
        dest="hide_metadata",
    )
    parser.add_argument(
        "--state",
        help="Which issues to export. Default is 'open'.",
        choices=["open", "closed", "all"],
        default="open",
        dest="state",
    )
    parser.add_argument(
        "--label",
        help="Only export issues carrying this label. Can be given multiple times, issues must carry every label.",
        action="append",
        default=[],
        dest="labels",
    )
    parser.add_argument(
        "--issue",
        help="Only export the issue with this number. Can be given multiple times.",
        action="append",
        type=int,
        default=[],
        dest="numbers",
    )
    parser.add_argument(
        "--no-prs",
        help="Don't include pull requests in the export.",
        action="store_false",
        dest="include_prs",
    )
    parser.add_argument(
        "--per-page",
        help="Issues requested per page. Default is 100, the API maximum.",
        type=int,
        default=100,
        dest="per_page",
    )
    parser.add_argument(
        "--request-delay",
        help="Seconds to wait between page requests. Default is 0.1.",
        type=float,
        default=0.1,
        dest="request_delay",
    )
    parser.add_argument(
        "--max-retries",
        help="Rate limited requests to retry before giving up. Default is 3.",
        type=int,
        default=3,
        dest="max_retries",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        help="Log debug output.",
        action="store_true",
        dest="verbose",
    )
    parser.add_argument(
        "--version", action="version", version="issues2pdf {}".format(__version__)
    )
    return parser.parse_args(args)


def build_view(args: argparse.Namespace) -> IssueView:
    return IssueView(
        state=None if args.state == "all" else args.state,
        labels=frozenset(args.labels),
        numbers=frozenset(args.numbers),
        include_prs=args.include_prs,
    )


def is_directory_target(output_path: str) -> bool:
    """
    An existing directory, a path ending in a separator, or a path without a
    .pdf suffix names the directory the batch file is written into.
    """
    if os.path.isdir(output_path):
        return True
    if output_path.endswith((os.sep, "/")):
        return True
    return not output_path.lower().endswith(".pdf")


def export_issues_to_pdf_files(
    issues: List[GithubIssue],
    output_path: str,
    use_multiple_files: bool,
    hide_metadata: bool,
) -> List[str]:
    """
    Given already-filtered issues, write them out as PDF and return the
    written paths.
    """
    if use_multiple_files:
        paths = []
        for issue in issues:
            try:
                paths.append(
                    generate_single_issue_pdf(
                        issue, hide_metadata=hide_metadata, output_dir=output_path
                    )
                )
            except Exception:
                logger.info(
                    f"Couldn't process issue #{issue.number} due to exceptions, skipping",
                    exc_info=True,
                )
        return paths

    if is_directory_target(output_path):
        if os.path.exists(output_path) and not os.path.isdir(output_path):
            raise OutputPathError(output_path, "Output path is not a directory")
        os.makedirs(output_path, exist_ok=True)
        output_path = os.path.join(output_path, batch_filename())
    return [
        generate_all_issues_pdf(
            issues, hide_metadata=hide_metadata, output_path=output_path
        )
    ]


def log_issue_counts(issues: List[GithubIssue]) -> None:
    counts = {
        "PRs": defaultdict(int),
        "issues": defaultdict(int),
        "total": len(issues),
    }
    for issue in issues:
        kind = "PRs" if issue.pull_request else "issues"
        counts[kind][issue.state] += 1
        counts[kind]["total"] += 1
    counts["PRs"] = dict(counts["PRs"])
    counts["issues"] = dict(counts["issues"])
    counts["states"] = state_counts(issues)
    counts["labels"] = {label.name: count for label, count in label_counts(issues)}
    logger.info(f"Retrieved issue counts: \n{pprint.pformat(counts)}")


def get_environment_token() -> Optional[str]:
    try:
        logger.info(f"Looking for token in envvar {ENV_GITHUB_TOKEN}")
        token = os.environ[ENV_GITHUB_TOKEN]
        logger.info("Using token from environment")
        return token
    except KeyError:
        for path in GITHUB_ACCESS_TOKEN_PATHS:
            logger.info(f"Looking for token in file: {path}")
            if os.path.exists(path):
                logger.info(f"Using token from file: {path}")
                with open(path, "r") as f:
                    token = f.read().strip()
                    return token
    return None


def run(args: argparse.Namespace) -> int:
    token = get_environment_token()
    if not token:
        print(
            "No Github access token found, exiting. Use issues2pdf --help to see options for providing a token."
        )
        return 1
    credentials = Credentials(repo=args.repo, token=token)
    credentials.repository()

    if args.use_multiple_files:
        if os.path.exists(args.output_path) and not os.path.isdir(args.output_path):
            raise OutputPathError(args.output_path, "Output path is not a directory")
        logger.info(f"Creating output directory: {args.output_path}")
        os.makedirs(args.output_path, exist_ok=True)

    gh = GithubAPI(
        token=credentials.token,
        per_page=args.per_page,
        request_delay=args.request_delay,
        max_retries=args.max_retries,
    )
    try:
        issues = gh.fetch_issues(credentials.repo)
    finally:
        gh.close()
    log_issue_counts(issues)

    view = build_view(args)
    selected = list(view.apply(issues))
    if not selected:
        logger.info("No issues match the selection, exiting without writing to file")
        return 0

    logger.info(f"Converting {len(selected)} issues to PDF")
    export_issues_to_pdf_files(
        selected,
        output_path=args.output_path,
        use_multiple_files=args.use_multiple_files,
        hide_metadata=args.hide_metadata,
    )
    logger.info("Done.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    global logger
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logger = init_logger("issues2pdf", level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        return run(args)
    except (Issues2PDFError, requests.RequestException) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
