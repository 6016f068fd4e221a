"""Summaries of the responses collected for a survey."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .models import Survey, SurveyQuestion, SurveyResponse
from .question_types import QuestionType


@dataclass
class QuestionSummary:
    question: SurveyQuestion
    responses: int = 0
    # text questions
    answers: list[str] = field(default_factory=list)
    # multiple choice: choice -> count, in choice order
    counts: dict[str, int] = field(default_factory=dict)
    # likert: scale value -> count
    histogram: dict[int, int] = field(default_factory=dict)
    mean: Optional[float] = None

    @property
    def type(self) -> str:
        return self.question.type


def responses_for(survey: Survey, *, sender=None):
    """Responses to ``survey``, optionally only those solicited by ``sender``."""
    qs = SurveyResponse.objects.filter(survey=survey)
    if sender is not None:
        qs = qs.filter(solicitation__sender=sender)
    return qs


def _likert_value(raw: Any) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def summarize(question: SurveyQuestion, answers: Iterable[Any]) -> QuestionSummary:
    summary = QuestionSummary(question=question)
    qtype = question.question_type
    if qtype == QuestionType.MULTIPLE_CHOICE:
        summary.counts = {choice: 0 for choice in question.choices or []}
    elif qtype == QuestionType.LIKERT:
        summary.histogram = {value: 0 for value in question.scale()}

    total = 0
    for raw in answers:
        if raw in (None, "", []):
            continue
        if qtype == QuestionType.TEXT:
            summary.answers.append(str(raw))
        elif qtype == QuestionType.MULTIPLE_CHOICE:
            # answers that are no longer a choice (question edited) are dropped
            if not isinstance(raw, str) or raw not in summary.counts:
                continue
            summary.counts[raw] += 1
        else:
            value = _likert_value(raw)
            if value is None or value not in summary.histogram:
                continue
            summary.histogram[value] += 1
            total += value
        summary.responses += 1

    if qtype == QuestionType.LIKERT and summary.responses:
        summary.mean = total / summary.responses
    return summary


def aggregate(survey: Survey, responses: Iterable[SurveyResponse] | None = None) -> list[QuestionSummary]:
    """Summarize responses per question, in question order."""
    if responses is None:
        responses = responses_for(survey)
    rows = [r.answers or {} for r in responses]
    return [
        summarize(question, (row.get(str(question.id)) for row in rows))
        for question in survey.question_list()
    ]
