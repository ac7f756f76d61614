from dataclasses import dataclass

from issues2pdf.errors import InvalidRepositoryFormat


@dataclass(frozen=True)
class GithubRepo:
    """
    Root object identifying a repo.
    """

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.full_name}"

    @classmethod
    def parse(cls, repo_name: str) -> "GithubRepo":
        parts = repo_name.split("/")
        if len(parts) != 2 or not all(parts):
            raise InvalidRepositoryFormat(repo_name)
        owner, name = parts
        return cls(owner=owner, name=name)


@dataclass(frozen=True)
class Credentials:
    """
    A repository in "owner/name" form and the access token used to read it.
    The token is never inspected, only forwarded.
    """

    repo: str
    token: str

    def repository(self) -> GithubRepo:
        return GithubRepo.parse(self.repo)

    def __repr__(self) -> str:
        return f"Credentials(repo={self.repo!r}, token=***)"
