from __future__ import annotations

import logging
from typing import Any, Iterable

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import F, Max, Q
from django.utils import timezone

from .pagination import Page, flatten_items, get_page, paginate
from .question_types import QuestionType, model_for

User = get_user_model()
logger = logging.getLogger(__name__)

TRUTHY = {"on", "true", "1", "yes"}


def _flag(value: Any) -> bool:
    return str(value or "").strip().lower() in TRUTHY


def row_copies(row: dict[str, Any]) -> int:
    """How many questions one submitted editor row turns into."""
    if _flag(row.get("_ignore")) or _flag(row.get("_destroy")):
        return 0
    return 2 if _flag(row.get("_duplicate")) else 1


class SurveyError(Exception):
    """Raised for survey state transitions that are not allowed."""


class Category(models.Model):
    DEFAULT_SLUG = "miscellaneous"

    name = models.CharField(max_length=100)
    slug = models.SlugField(unique=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    @classmethod
    def default(cls) -> "Category":
        category, _ = cls.objects.get_or_create(
            slug=cls.DEFAULT_SLUG, defaults={"name": "Miscellaneous"}
        )
        return category


class SurveyQuerySet(models.QuerySet):
    def public(self):
        return self.filter(private=False)

    def viewable_by(self, user):
        """Public surveys, plus the user's own and those solicited to them."""
        if user is None or not user.is_authenticated:
            return self.public()
        return self.filter(
            Q(private=False) | Q(owner=user) | Q(solicitations__recipient=user)
        ).distinct()

    def posted(self, flag: bool = True):
        if flag:
            return self.filter(posted_at__isnull=False)
        return self.public().filter(posted_at__isnull=True)

    def top(self, count: int = 30):
        return self.public().filter(draft=False).order_by("-responses_count", "-id")[:count]


class Survey(models.Model):
    DEFAULT_TITLE = "Untitled Survey"
    TITLE_MIN_CHARS = 8
    TITLE_MAX_CHARS = 150
    DESCRIPTION_MIN_CHARS = 20
    PER_PAGE = 10

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="surveys")
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="surveys",
    )
    title = models.CharField(max_length=TITLE_MAX_CHARS)
    description = models.TextField(blank=True)
    instructions = models.TextField(blank=True)
    draft = models.BooleanField(default=False)
    private = models.BooleanField(default=False)
    # Set once the owner opens the survey to every signed-in user
    posted_at = models.DateTimeField(null=True, blank=True)
    responses_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SurveyQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        label = "unsaved survey" if self.pk is None else f"survey {self.pk}"
        return f"{label}: '{self.title}'"

    def clean(self):
        super().clean()
        errors = {}
        title = (self.title or "").strip()
        if not title:
            errors["title"] = "Title is required."
        elif len(title) < self.TITLE_MIN_CHARS:
            errors["title"] = f"Title must be at least {self.TITLE_MIN_CHARS} characters."
        elif len(title) > self.TITLE_MAX_CHARS:
            errors["title"] = f"Title must be at most {self.TITLE_MAX_CHARS} characters."
        if not self.draft:
            description = (self.description or "").strip()
            if len(description) < self.DESCRIPTION_MIN_CHARS:
                errors["description"] = (
                    f"Description must be at least {self.DESCRIPTION_MIN_CHARS} characters."
                )
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self.category_id is None:
            self.category = Category.default()
        super().save(*args, **kwargs)

    # -------------------- Questions and pages --------------------

    def question_list(self) -> list["SurveyQuestion"]:
        return list(self.questions.all())

    def page_break_list(self) -> list["SurveyPageBreak"]:
        return list(self.page_breaks.all())

    def questions_count(self) -> int:
        return self.questions.count()

    def pages(self) -> list[Page]:
        return paginate(self.question_list(), self.page_break_list())

    def page(self, number: int) -> Page | None:
        return get_page(self.question_list(), self.page_break_list(), number)

    def page_count(self) -> int:
        return len(self.pages())

    def items(self) -> list:
        """Questions and page breaks in one flat list, for the editor."""
        return flatten_items(self.question_list(), self.page_break_list())

    def insert_page_break(
        self, *, before: int, title: str = "", description: str = ""
    ) -> "SurveyPageBreak":
        """Start a new page just before question ``before`` (1-based).

        ``before`` may exceed the number of questions, which gives an empty
        page at the end. Order among breaks at the same position is creation
        order.
        """
        page_break = SurveyPageBreak(
            survey=self,
            before=before,
            title=title or "",
            description=description or "",
        )
        page_break.save()
        return page_break

    @transaction.atomic
    def replace_questions(self, rows: Iterable[dict[str, Any]]) -> list["SurveyQuestion"]:
        """Replace every question with the submitted rows, in order.

        Questions belong to this survey alone, so rebuilding them is simpler
        than matching edited rows to stored ones after reordering and type
        changes. Indices are reassigned 1..N.
        """
        self.questions.all().delete()
        created: list[SurveyQuestion] = []
        for row in rows:
            for _ in range(row_copies(row)):
                model = model_for(row.get("type") or QuestionType.TEXT)
                question = model(
                    survey=self,
                    type=model.variant,
                    index=len(created) + 1,
                    **question_fields(row),
                )
                question.full_clean(exclude=["survey"])
                question.save()
                created.append(question)
        logger.info("Replaced questions of survey %s (%d questions)", self.pk, len(created))
        return created

    @transaction.atomic
    def replace_page_breaks(self, rows: Iterable[dict[str, Any]]) -> list["SurveyPageBreak"]:
        self.page_breaks.all().delete()
        created = []
        for row in rows:
            if _flag(row.get("_ignore")) or _flag(row.get("_destroy")):
                continue
            raw_before = row.get("before", row.get("index"))
            try:
                before = int(raw_before)
            except (TypeError, ValueError):
                raise ValidationError({"before": f"Invalid page break position: {raw_before!r}"})
            created.append(
                self.insert_page_break(
                    before=before,
                    title=(row.get("title") or "").strip(),
                    description=(row.get("description") or "").strip(),
                )
            )
        return created

    # -------------------- Lifecycle --------------------

    @classmethod
    @transaction.atomic
    def draft_survey_for(cls, user) -> "Survey":
        """Return a fresh draft for ``user`` to edit, discarding older drafts."""
        cls.objects.filter(owner=user, draft=True).delete()
        survey = cls.objects.create(owner=user, draft=True, title=cls.DEFAULT_TITLE)
        TextQuestion.objects.create(survey=survey, content=SurveyQuestion.DEFAULT_CONTENT)
        return survey

    def is_blank(self) -> bool:
        """True when the survey holds nothing but placeholder content."""
        if self.title and self.title != self.DEFAULT_TITLE:
            return False
        if self.description or self.instructions:
            return False
        return all(question.is_blank() for question in self.questions.all())

    def is_posted(self) -> bool:
        return self.posted_at is not None

    def is_used(self) -> bool:
        """Whether the survey was ever sent to anyone or answered."""
        return self.solicitations.exists() or self.responses.exists()

    def post(self) -> None:
        if self.is_posted():
            raise SurveyError("already posted")
        if self.private:
            raise SurveyError("private surveys cannot be posted")
        if self.draft:
            raise SurveyError("draft surveys cannot be posted")
        self.posted_at = timezone.now()
        self.save(update_fields=["posted_at", "updated_at"])
        logger.info("Posted survey %s", self.pk)

    @transaction.atomic
    def clone(self, owner) -> "Survey":
        """Deep-copy this survey, its questions and page breaks for ``owner``."""
        copy = Survey.objects.create(
            owner=owner,
            category=self.category,
            title=self.title,
            description=self.description,
            instructions=self.instructions,
            draft=self.draft,
            private=self.private,
        )
        SurveyQuestion.objects.bulk_create(
            [
                SurveyQuestion(
                    survey=copy,
                    type=q.type,
                    index=q.index,
                    content=q.content,
                    choices=list(q.choices or []),
                    scale_min=q.scale_min,
                    scale_max=q.scale_max,
                    label_min=q.label_min,
                    label_mid=q.label_mid,
                    label_max=q.label_max,
                )
                for q in self.questions.all()
            ]
        )
        SurveyPageBreak.objects.bulk_create(
            [
                SurveyPageBreak(
                    survey=copy,
                    before=pb.before,
                    title=pb.title,
                    description=pb.description,
                )
                for pb in self.page_breaks.all()
            ]
        )
        logger.info("Cloned survey %s as %s for user %s", self.pk, copy.pk, owner.pk)
        return copy

    def record_response(self) -> None:
        Survey.objects.filter(pk=self.pk).update(responses_count=F("responses_count") + 1)
        self.refresh_from_db(fields=["responses_count"])

    def is_listed_by(self, user) -> bool:
        if not user.is_authenticated:
            return False
        return UserListedSurvey.objects.filter(user=user, survey=self).exists()

    def is_favorite_of(self, user) -> bool:
        if not user.is_authenticated:
            return False
        return UserFavoriteSurvey.objects.filter(user=user, survey=self).exists()


def question_fields(row: dict[str, Any]) -> dict[str, Any]:
    """Map a submitted question row onto model field values."""
    fields: dict[str, Any] = {"content": (row.get("content") or "").strip()}
    question_type = QuestionType.resolve(row.get("type") or QuestionType.TEXT)
    if question_type == QuestionType.MULTIPLE_CHOICE:
        raw = row.get("choices") or []
        if isinstance(raw, str):
            raw = raw.splitlines()
        fields["choices"] = [str(c).strip() for c in raw if str(c).strip()]
    elif question_type == QuestionType.LIKERT:
        for key, field in (("min", "scale_min"), ("max", "scale_max")):
            value = row.get(key, row.get(field))
            if value not in (None, ""):
                try:
                    fields[field] = int(value)
                except (TypeError, ValueError):
                    raise ValidationError({field: f"Invalid scale value: {value!r}"})
        for label in ("label_min", "label_mid", "label_max"):
            fields[label] = (row.get(label) or "").strip()
    return fields


class SurveyQuestion(models.Model):
    DEFAULT_CONTENT = "Untitled Question"

    # Set on the per-variant proxies below
    variant: QuestionType | None = None

    survey = models.ForeignKey(Survey, on_delete=models.CASCADE, related_name="questions")
    type = models.CharField(
        max_length=40, choices=QuestionType.choices, default=QuestionType.TEXT
    )
    index = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)]
    )
    content = models.TextField(blank=True, default="")
    # Multiple choice
    choices = models.JSONField(default=list, blank=True)
    # Likert
    scale_min = models.IntegerField(default=1)
    scale_max = models.IntegerField(default=5)
    label_min = models.CharField(max_length=100, blank=True, default="")
    label_mid = models.CharField(max_length=100, blank=True, default="")
    label_max = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["index", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["survey", "index"], name="unique_question_index_per_survey"
            )
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.index}. {self.content}"

    @property
    def question_type(self) -> QuestionType:
        return QuestionType.resolve(self.type)

    def is_blank(self) -> bool:
        return not self.content or self.content == self.DEFAULT_CONTENT

    def scale(self) -> list[int]:
        return list(range(self.scale_min, self.scale_max + 1))

    def clean(self):
        super().clean()
        if self.question_type == QuestionType.LIKERT and self.scale_min >= self.scale_max:
            raise ValidationError({"scale_max": "The scale maximum must exceed the minimum."})
        if self.question_type == QuestionType.MULTIPLE_CHOICE and not isinstance(
            self.choices, list
        ):
            raise ValidationError({"choices": "Choices must be a list."})

    def save(self, *args, **kwargs):
        if self.variant is not None:
            self.type = self.variant
        if self.index is None:
            last = self.survey.questions.aggregate(last=Max("index"))["last"]
            self.index = (last or 0) + 1
        super().save(*args, **kwargs)


class VariantManager(models.Manager):
    def __init__(self, variant: QuestionType):
        super().__init__()
        self.variant = variant

    def get_queryset(self):
        return super().get_queryset().filter(type=self.variant)


class TextQuestion(SurveyQuestion):
    variant = QuestionType.TEXT
    objects = VariantManager(QuestionType.TEXT)

    class Meta:
        proxy = True


class MultipleChoiceQuestion(SurveyQuestion):
    variant = QuestionType.MULTIPLE_CHOICE
    objects = VariantManager(QuestionType.MULTIPLE_CHOICE)

    class Meta:
        proxy = True


class LikertQuestion(SurveyQuestion):
    variant = QuestionType.LIKERT
    objects = VariantManager(QuestionType.LIKERT)

    class Meta:
        proxy = True


class SurveyPageBreak(models.Model):
    survey = models.ForeignKey(Survey, on_delete=models.CASCADE, related_name="page_breaks")
    # 1-based index of the first question on the new page
    before = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    title = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["before", "id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(before__gte=1),
                name="surveypagebreak_before_positive",
            )
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"page break before {self.before}: {self.title}"

    def clean(self):
        super().clean()
        if not isinstance(self.before, int) or isinstance(self.before, bool) or self.before < 1:
            raise ValidationError(
                {"before": "Page breaks are placed before a question position (1 or more)."}
            )

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class UserSurveyLink(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="%(class)s_links")
    survey = models.ForeignKey(Survey, on_delete=models.CASCADE, related_name="%(class)s_links")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True

    @classmethod
    def toggle(cls, user, survey: Survey) -> bool:
        """Add or remove the link; returns True when the link now exists."""
        deleted, _ = cls.objects.filter(user=user, survey=survey).delete()
        if deleted:
            return False
        cls.objects.create(user=user, survey=survey)
        return True


class UserListedSurvey(UserSurveyLink):
    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "survey"], name="unique_listed_survey")
        ]


class UserFavoriteSurvey(UserSurveyLink):
    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "survey"], name="unique_favorite_survey")
        ]


class Solicitation(models.Model):
    """A request from ``sender`` asking ``recipient`` to fill out a survey."""

    survey = models.ForeignKey(Survey, on_delete=models.CASCADE, related_name="solicitations")
    sender = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="solicitations_sent"
    )
    recipient = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="solicitations_received"
    )
    message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["survey", "sender", "recipient"],
                name="one_solicitation_per_recipient",
            )
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.sender} -> {self.recipient}: {self.survey_id}"


class SurveyResponse(models.Model):
    survey = models.ForeignKey(Survey, on_delete=models.CASCADE, related_name="responses")
    respondent = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="survey_responses",
    )
    solicitation = models.ForeignKey(
        Solicitation,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="responses",
    )
    # question id (as string) -> answer
    answers = models.JSONField(default=dict)
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["submitted_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["survey", "respondent"],
                name="one_response_per_user_per_survey",
            )
        ]
