"""Split a survey's questions into pages.

Page breaks are stored as markers saying "a new page starts before question
N" (1-based). Pages are derived from those markers on demand and never
persisted. The functions here only read the sequences they are given and
build new ``Page`` objects, so they are safe to call from concurrent
requests against the same survey snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class Boundary:
    """Minimal page-break shape used for the implicit leading page."""

    before: int
    title: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Page:
    number: int
    title: Optional[str] = None
    description: Optional[str] = None
    questions: list = field(default_factory=list)
    page_count: int = 1

    @property
    def untitled(self) -> bool:
        return not self.title

    @property
    def is_first(self) -> bool:
        return self.number == 1

    @property
    def is_last(self) -> bool:
        return self.number == self.page_count


def sort_page_breaks(page_breaks: Sequence[Any]) -> list:
    # sorted() is stable: breaks sharing a position keep their input order
    return sorted(page_breaks, key=lambda pb: pb.before)


def paginate(questions: Sequence[Any], page_breaks: Sequence[Any]) -> list[Page]:
    """Return the pages of a survey, in order.

    Every question lands on exactly one page. A break at position 1 defines
    the first page; otherwise an untitled first page is implied. Breaks that
    share a position produce empty pages for all but the last of them, and a
    break past the final question produces an empty trailing page.
    """
    questions = list(questions)
    breaks: list[Any] = sort_page_breaks(page_breaks)

    if not breaks:
        return [Page(number=1, questions=questions, page_count=1)]

    if breaks[0].before != 1:
        breaks.insert(0, Boundary(before=1))

    total = len(questions)
    count = len(breaks)
    pages = []
    for i, page_break in enumerate(breaks):
        first = page_break.before - 1
        if i + 1 < count:
            last = breaks[i + 1].before - 2
        else:
            last = total - 1
        page_questions = questions[first : last + 1] if first <= last else []
        pages.append(
            Page(
                number=i + 1,
                title=page_break.title,
                description=page_break.description,
                questions=page_questions,
                page_count=count,
            )
        )
    return pages


def page_count(questions: Sequence[Any], page_breaks: Sequence[Any]) -> int:
    return len(paginate(questions, page_breaks))


def get_page(
    questions: Sequence[Any], page_breaks: Sequence[Any], number: int
) -> Optional[Page]:
    """Return page ``number`` (1-based), or None when there is no such page.

    Callers probe speculative page numbers, so out-of-range is not an error.
    """
    pages = paginate(questions, page_breaks)
    if number < 1 or number > len(pages):
        return None
    return pages[number - 1]


def flatten_items(questions: Sequence[Any], page_breaks: Sequence[Any]) -> list:
    """Interleave page breaks with questions in document order.

    Used by the editor, which shows the whole survey on one screen. Breaks
    are inserted from the highest position down so earlier insert positions
    stay valid.
    """
    items = list(questions)
    for page_break in reversed(sort_page_breaks(page_breaks)):
        items.insert(page_break.before - 1, page_break)
    return items


__all__ = [
    "Boundary",
    "Page",
    "flatten_items",
    "get_page",
    "page_count",
    "paginate",
    "sort_page_breaks",
]
