"""
Filtered views over a fetched issue list.

An IssueView is an immutable snapshot of what the user picked: which state
tab is active, which labels are required and which issues were explicitly
selected. Applying it never mutates the issues.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from issues2pdf.github.issue import GithubIssue, GithubLabel

STATES = ("open", "closed")


@dataclass(frozen=True)
class IssueView:
    state: Optional[str] = "open"
    labels: FrozenSet[str] = field(default_factory=frozenset)
    numbers: FrozenSet[int] = field(default_factory=frozenset)
    include_prs: bool = True

    def __post_init__(self):
        if self.state is not None and self.state not in STATES:
            raise ValueError(f"Unknown issue state: {self.state!r}")

    def matches(self, issue: GithubIssue) -> bool:
        if self.state is not None and issue.state != self.state:
            return False
        if not self.include_prs and issue.pull_request:
            return False
        if self.numbers and issue.number not in self.numbers:
            return False
        return self.labels.issubset(issue.label_names)

    def apply(self, issues: Iterable[GithubIssue]) -> Tuple[GithubIssue, ...]:
        return tuple(issue for issue in issues if self.matches(issue))


def state_counts(issues: Iterable[GithubIssue]) -> Dict[str, int]:
    counts = {state: 0 for state in STATES}
    for issue in issues:
        counts[issue.state] = counts.get(issue.state, 0) + 1
    return counts


def label_counts(issues: Iterable[GithubIssue]) -> List[Tuple[GithubLabel, int]]:
    """
    Every distinct label name with the number of issues carrying it, in the
    order the labels are first seen.
    """
    counts: "OrderedDict[str, Tuple[GithubLabel, int]]" = OrderedDict()
    for issue in issues:
        for label in issue.labels:
            first_seen, count = counts.get(label.name, (label, 0))
            counts[label.name] = (first_seen, count + 1)
    return list(counts.values())
