import re
import textwrap
from typing import Iterable, List, Optional

from dateutil.parser import parse as dateutil_parse
from fpdf import FPDF

from issues2pdf import __version__, templates_pdf
from issues2pdf.errors import EmptyInput, IssueRenderError
from issues2pdf.github.issue import GithubIssue
from issues2pdf.logger import get_logger
from issues2pdf.render.plaintext import BULLET, markdown_to_plain_text

PDF_ENCODING = "windows-1252"

CODE_FENCE = re.compile(r"^```[\s\S]*```$")
CODE_FENCE_OPEN = re.compile(r"^```(\w+)?\n?")
CODE_FENCE_CLOSE = re.compile(r"```$")


def format_date(value: str) -> str:
    """
    Format an ISO 8601 timestamp as e.g. "Jan 5, 2024". The date is taken as
    written, without converting to the local timezone.
    """
    try:
        date = dateutil_parse(value)
    except (ValueError, OverflowError):
        return value
    return f"{date:%b} {date.day}, {date.year}"


def pdf_text(text: str) -> str:
    # Core fonts only cover windows-1252, anything else is replaced by "?"
    text = text.replace("\r", "").replace("\t", "    ")
    return text.encode(PDF_ENCODING, errors="replace").decode(PDF_ENCODING)


def is_code_block(paragraph: str) -> bool:
    return (
        paragraph.startswith("    ")
        or paragraph.startswith("\t")
        or bool(CODE_FENCE.match(paragraph))
    )


class IssueDocument(FPDF):
    """
    An A4 document laid out one issue at a time. Positions are in millimetres
    and text is drawn on its baseline, so the cursor always points at the
    baseline of the next line.
    """

    MARGIN = 20
    LINE_HEIGHT = 7
    TITLE_GAP = 5
    BLOCK_GAP = 3
    CODE_GAP = 6
    INDENT = 5

    FONT = "helvetica"
    CODE_FONT = "courier"
    TITLE_SIZE = 16
    META_SIZE = 10
    BODY_SIZE = 12

    def __init__(self, compress: bool = True):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.core_fonts_encoding = PDF_ENCODING
        self.set_auto_page_break(False)
        self.set_compression(compress)
        self.set_creator(f"issues2pdf {__version__}")
        self.rendered_issues: List[int] = []
        self.failed_issues: List[IssueRenderError] = []

    @property
    def printable_width(self) -> float:
        return self.w - 2 * self.MARGIN

    @property
    def bottom(self) -> float:
        return self.h - self.MARGIN

    def _fitting_prefix_length(self, word: str, width: float) -> int:
        cut = 1
        while cut < len(word) and self.get_string_width(word[: cut + 1]) <= width:
            cut += 1
        return cut

    def split_text_to_size(self, text: str, width: float) -> List[str]:
        """
        Word wrap text for the current font. Explicit newlines are kept and
        words wider than a whole line are broken by characters.
        """
        lines = []
        for raw_line in pdf_text(text).split("\n"):
            current: Optional[str] = None
            for word in raw_line.split(" "):
                candidate = word if current is None else f"{current} {word}"
                if self.get_string_width(candidate) <= width:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                while len(word) > 1 and self.get_string_width(word) > width:
                    cut = self._fitting_prefix_length(word, width)
                    lines.append(word[:cut])
                    word = word[cut:]
                current = word
            lines.append(current or "")
        return lines

    def _draw_lines(self, lines: List[str], x: float, y: float) -> float:
        for i, line in enumerate(lines):
            self.text(x, y + i * self.LINE_HEIGHT, line)
        return len(lines) * self.LINE_HEIGHT

    def _add_code_block(self, paragraph: str, y: float) -> float:
        code = CODE_FENCE_CLOSE.sub("", CODE_FENCE_OPEN.sub("", paragraph))
        code = textwrap.dedent(code).strip("\n")

        self.set_font(self.CODE_FONT, "", self.BODY_SIZE)
        lines = self.split_text_to_size(code, self.printable_width - 2 * self.INDENT)
        height = len(lines) * self.LINE_HEIGHT

        self.set_fill_color(245, 245, 245)
        self.rect(
            self.MARGIN - 2,
            y - self.LINE_HEIGHT + 2,
            self.printable_width + 4,
            height + 2,
            style="F",
        )
        self._draw_lines(lines, self.MARGIN + self.INDENT, y)
        self.set_font(self.FONT, "", self.BODY_SIZE)
        return y + height + self.CODE_GAP

    def _add_paragraph(self, paragraph: str, y: float) -> float:
        if is_code_block(paragraph):
            return self._add_code_block(paragraph, y)

        if paragraph.startswith(BULLET):
            lines = self.split_text_to_size(
                paragraph, self.printable_width - 2 * self.INDENT
            )
            return y + self._draw_lines(lines, self.MARGIN + self.INDENT, y) + self.BLOCK_GAP

        if paragraph == "---":
            self.set_draw_color(200, 200, 200)
            self.line(self.MARGIN, y, self.w - self.MARGIN, y)
            return y + self.LINE_HEIGHT

        lines = self.split_text_to_size(paragraph.strip(), self.printable_width)
        return y + self._draw_lines(lines, self.MARGIN, y) + self.BLOCK_GAP

    def _add_metadata(self, issue: GithubIssue, y: float) -> float:
        self.set_font(self.FONT, "", self.META_SIZE)
        opened_by = templates_pdf.OPENED_BY.format(
            login=issue.user.login, date=format_date(issue.created_at)
        )
        y += self._draw_lines(
            self.split_text_to_size(opened_by, self.printable_width), self.MARGIN, y
        )

        if issue.labels:
            y += self.BLOCK_GAP
            labels = templates_pdf.LABELS.format(labels=", ".join(issue.label_names))
            y += self._draw_lines(
                self.split_text_to_size(labels, self.printable_width), self.MARGIN, y
            )
            y += self.BLOCK_GAP

        status = templates_pdf.STATUS.format(state=issue.state.capitalize())
        last_updated = templates_pdf.LAST_UPDATED.format(
            date=format_date(issue.updated_at)
        )
        y += self._draw_lines([pdf_text(status), pdf_text(last_updated)], self.MARGIN, y)
        return y

    def add_issue(
        self, issue: GithubIssue, hide_metadata: bool = False, new_page: bool = False
    ) -> float:
        """
        Lay out one issue starting at the top of the current page, or of a new
        page if ``new_page`` is set. Returns the final cursor position.
        """
        if new_page:
            self.add_page()
        y = float(self.MARGIN)

        self.set_font(self.FONT, "B", self.TITLE_SIZE)
        title = templates_pdf.TITLE.format(number=issue.number, title=issue.title)
        y += self._draw_lines(
            self.split_text_to_size(title, self.printable_width), self.MARGIN, y
        )
        y += self.TITLE_GAP

        if not hide_metadata:
            y = self._add_metadata(issue, y)

        self.set_font(self.FONT, "", self.BODY_SIZE)
        body = (
            markdown_to_plain_text(issue.body)
            if issue.body
            else templates_pdf.NO_DESCRIPTION
        )

        for paragraph in body.split("\n\n"):
            if not paragraph.strip():
                continue
            if y > self.bottom:
                self.add_page()
                y = float(self.MARGIN)
                # Font state doesn't reliably survive a page break
                self.set_font(self.FONT, "", self.BODY_SIZE)
            y = self._add_paragraph(paragraph, y)

        return y


def render_issues(
    issues: Iterable[GithubIssue],
    hide_metadata: bool = False,
    isolate_failures: bool = True,
    compress: bool = True,
) -> IssueDocument:
    """
    Lay out every issue into a single document, each issue starting on its
    own page.

    With ``isolate_failures`` an issue that fails to render is logged and
    recorded in ``document.failed_issues`` and the remaining issues are still
    rendered. Otherwise the first failure propagates.
    """
    issues = list(issues)
    if not issues:
        raise EmptyInput()

    logger = get_logger()
    document = IssueDocument(compress=compress)
    document.add_page()
    for index, issue in enumerate(issues):
        try:
            document.add_issue(issue, hide_metadata=hide_metadata, new_page=index > 0)
        except Exception as e:
            if not isolate_failures:
                raise
            logger.warning(
                f"Couldn't render issue #{issue.number} due to exceptions, skipping",
                exc_info=True,
            )
            document.failed_issues.append(IssueRenderError(issue.number, e))
        else:
            document.rendered_issues.append(issue.number)

    logger.info(
        f"Rendered {len(document.rendered_issues)} issues on {document.page_no()} pages, {len(document.failed_issues)} failed"
    )
    return document


def render(issues: Iterable[GithubIssue], hide_metadata: bool = False) -> bytes:
    return bytes(render_issues(issues, hide_metadata=hide_metadata).output())


def render_single(issue: GithubIssue, hide_metadata: bool = False) -> bytes:
    document = render_issues([issue], hide_metadata=hide_metadata, isolate_failures=False)
    return bytes(document.output())
