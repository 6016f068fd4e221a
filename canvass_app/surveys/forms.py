from __future__ import annotations

import re
from typing import Any

from django import forms
from django.contrib.auth import get_user_model
from django.db.models import Q
from django.http import QueryDict

from .models import Category, Survey, SurveyQuestion, row_copies
from .question_types import QuestionType

User = get_user_model()

_ROW_KEY = re.compile(r"^(?P<prefix>[a-z_]+)-(?P<num>\d+)-(?P<field>\w+)$")


class SurveyForm(forms.ModelForm):
    category = forms.ModelChoiceField(
        queryset=Category.objects.all(), required=False, empty_label="Miscellaneous"
    )

    class Meta:
        model = Survey
        fields = ["title", "description", "instructions", "category", "private"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 3}),
            "instructions": forms.Textarea(attrs={"rows": 3}),
        }


def _ordered_rows(data: QueryDict, prefix: str) -> list[tuple[tuple[int, int], dict[str, Any]]]:
    rows: dict[int, dict[str, Any]] = {}
    for key in data.keys():
        match = _ROW_KEY.match(key)
        if not match or match.group("prefix") != prefix:
            continue
        num = int(match.group("num"))
        field = match.group("field")
        values = data.getlist(key)
        rows.setdefault(num, {})[field] = values if field == "choices" and len(values) > 1 else values[-1]

    def sort_key(num: int, row: dict[str, Any]) -> tuple[int, int]:
        try:
            return int(row.get("position")), num
        except (TypeError, ValueError):
            return num, num

    return sorted(((sort_key(num, row), row) for num, row in rows.items()), key=lambda item: item[0])


def parse_nested_rows(data: QueryDict, prefix: str) -> list[dict[str, Any]]:
    """Collect ``<prefix>-<n>-<field>`` inputs into one dict per row.

    Rows come back in ascending ``n``, which is the order they appear in the
    editor. A row may carry ``position`` to move it; ties keep ``n`` order.
    """
    return [row for _, row in _ordered_rows(data, prefix)]


def parse_page_break_rows(data: QueryDict) -> list[dict[str, Any]]:
    """Page-break rows placed by where they sit among the question rows.

    Questions and page breaks share one row numbering in the editor, so a
    break's ``before`` is one past the questions that end up above it.
    Removed and duplicated rows above a break move it along with them.
    """
    questions = _ordered_rows(data, "questions")
    placed = []
    for key, row in _ordered_rows(data, "page_breaks"):
        above = sum(row_copies(question) for question_key, question in questions if question_key < key)
        placed.append({**row, "before": above + 1})
    return placed


class ShareForm(forms.Form):
    recipients = forms.CharField(
        widget=forms.Textarea(attrs={"rows": 2}),
        help_text="Usernames or e-mail addresses, separated by commas or new lines.",
    )
    message = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)

    def __init__(self, *args, sender=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.sender = sender

    def clean_recipients(self):
        raw = self.cleaned_data.get("recipients") or ""
        names = [n.strip() for n in re.split(r"[,\n]", raw) if n.strip()]
        if not names:
            raise forms.ValidationError("Name at least one recipient.")
        users = []
        unknown = []
        for name in names:
            user = User.objects.filter(Q(username__iexact=name) | Q(email__iexact=name)).first()
            if user is None:
                unknown.append(name)
            elif self.sender is not None and user.pk == self.sender.pk:
                raise forms.ValidationError("You cannot send a survey to yourself.")
            elif user not in users:
                users.append(user)
        if unknown:
            raise forms.ValidationError(f"Unknown users: {', '.join(unknown)}")
        return users


def collect_answers(
    questions: list[SurveyQuestion], data: QueryDict
) -> tuple[dict[str, Any], dict[int, str]]:
    """Read ``q_<id>`` inputs for each question.

    Returns the answers keyed by question id (as a string, matching the JSON
    storage) and a mapping of question id -> error message.
    """
    answers: dict[str, Any] = {}
    errors: dict[int, str] = {}
    for question in questions:
        raw = (data.get(f"q_{question.id}") or "").strip()
        if not raw:
            continue
        qtype = question.question_type
        if qtype == QuestionType.MULTIPLE_CHOICE and raw not in (question.choices or []):
            errors[question.id] = "Select one of the listed choices."
            continue
        if qtype == QuestionType.LIKERT:
            try:
                value = int(raw)
            except ValueError:
                errors[question.id] = "Select a value on the scale."
                continue
            if value not in question.scale():
                errors[question.id] = "Select a value on the scale."
                continue
            answers[str(question.id)] = value
            continue
        answers[str(question.id)] = raw
    return answers, errors
