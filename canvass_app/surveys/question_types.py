"""Closed registry of question variants.

Every question in a survey is one of three variants. ``QuestionType`` is the
single source of truth for that set and converts between the three forms a
variant travels in: a symbolic name (which in Python is also its string form,
e.g. ``"text_question"``) and a small integer index into the fixed order
``[TEXT, MULTIPLE_CHOICE, LIKERT]``.

Form submissions carry the type as an untyped string and serializers send it
back out as a string; fast paths may store the integer. Both resolve through
here so the two representations cannot drift apart.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from django.core.exceptions import ImproperlyConfigured
from django.db import models

logger = logging.getLogger(__name__)


class UnknownQuestionType(ValueError):
    """Raised when a value does not name one of the known question variants."""


class QuestionType(models.TextChoices):
    TEXT = "text_question", "Text"
    MULTIPLE_CHOICE = "multiple_choice_question", "Multiple choice"
    LIKERT = "likert_question", "Likert scale"

    def to_symbol(self) -> str:
        return self.value

    def to_string(self) -> str:
        return self.value

    def to_index(self) -> int:
        return _ORDER.index(self)

    def __eq__(self, other: object) -> bool:
        # bool is an int subclass but never a valid index
        if isinstance(other, bool):
            return False
        if isinstance(other, int):
            return self.to_index() == other
        if isinstance(other, str):
            return str.__eq__(self, other)
        return False

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return str.__hash__(self)

    @classmethod
    def from_index(cls, index: int) -> "QuestionType":
        if isinstance(index, bool) or not isinstance(index, int):
            raise UnknownQuestionType(f"Unknown question type index: {index!r}")
        if index < 0 or index >= len(_ORDER):
            raise UnknownQuestionType(f"Unknown question type index: {index}")
        return _ORDER[index]

    @classmethod
    def from_string(cls, name: str) -> "QuestionType":
        """Resolve a symbolic name such as ``"likert_question"``.

        CamelCase class names (``"LikertQuestion"``) are accepted too, since
        older form markup posts those.
        """
        if not isinstance(name, str):
            raise UnknownQuestionType(f"Unknown question type: {name!r}")
        key = _underscore(name.strip())
        for member in _ORDER:
            if member.value == key:
                return member
        logger.warning("Rejected unknown question type %r", name)
        raise UnknownQuestionType(f"Unknown question type: {name!r}")

    @classmethod
    def resolve(cls, value: Any) -> "QuestionType":
        """Normalize any supported reference to a variant into a member.

        Accepts a member, a string/symbol, an integer index, a question model
        class (including the per-variant proxies) or a question instance.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        if isinstance(value, int):
            return cls.from_index(value)
        if isinstance(value, type):
            variant = getattr(value, "variant", None)
            if variant is None:
                raise UnknownQuestionType(f"{value.__name__} is not a question variant")
            return cls.resolve(variant)
        question_type = getattr(value, "type", None)
        if question_type:
            return cls.resolve(question_type)
        raise UnknownQuestionType(f"Cannot resolve a question type from {value!r}")


_ORDER: list[QuestionType] = [
    QuestionType.TEXT,
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.LIKERT,
]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _underscore(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def model_for(value: Any):
    """Return the proxy model class for a question variant."""
    from .models import LikertQuestion, MultipleChoiceQuestion, TextQuestion

    table = {
        QuestionType.TEXT: TextQuestion,
        QuestionType.MULTIPLE_CHOICE: MultipleChoiceQuestion,
        QuestionType.LIKERT: LikertQuestion,
    }
    missing = set(_ORDER) - set(table)
    if missing:
        raise ImproperlyConfigured(f"Question variants without a model: {sorted(missing)}")
    return table[QuestionType.resolve(value)]


__all__ = ["QuestionType", "UnknownQuestionType", "model_for"]
