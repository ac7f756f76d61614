from issues2pdf.render.pdf import IssueDocument, render, render_issues, render_single
from issues2pdf.render.plaintext import markdown_to_plain_text

__all__ = [
    "IssueDocument",
    "markdown_to_plain_text",
    "render",
    "render_issues",
    "render_single",
]
