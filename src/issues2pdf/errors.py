from typing import Optional


class Issues2PDFError(Exception):
    """
    Base class for every error raised by issues2pdf.
    """


class InvalidRepositoryFormat(Issues2PDFError, ValueError):
    def __init__(self, repo_name: str):
        super().__init__(
            f"Invalid repository format: {repo_name!r}. Please use format: owner/repository"
        )
        self.repo_name = repo_name


class GithubAPIError(Issues2PDFError):
    """
    A request to the Github API failed and won't be retried.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetriesExhausted(GithubAPIError):
    def __init__(self, retries: int, status_code: Optional[int] = None):
        super().__init__(
            f"Maximum retry attempts exceeded while fetching issues (retries={retries})",
            status_code=status_code,
        )
        self.retries = retries


class EmptyInput(Issues2PDFError, ValueError):
    def __init__(self):
        super().__init__("No issues to generate PDF from")


class IssueRenderError(Issues2PDFError):
    """
    Rendering a single issue failed. In batch mode these are collected on the
    document instead of being raised.
    """

    def __init__(self, number: int, cause: Exception):
        super().__init__(f"Couldn't render issue #{number}: {cause}")
        self.number = number
        self.cause = cause


class OutputPathError(Issues2PDFError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
