import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


QUESTION_TYPE_CHOICES = [
    ("text_question", "Text"),
    ("multiple_choice_question", "Multiple choice"),
    ("likert_question", "Likert scale"),
]


def _id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                _id(),
                ("name", models.CharField(max_length=100)),
                ("slug", models.SlugField(unique=True)),
            ],
            options={"ordering": ["name"], "verbose_name_plural": "categories"},
        ),
        migrations.CreateModel(
            name="Survey",
            fields=[
                _id(),
                ("title", models.CharField(max_length=150)),
                ("description", models.TextField(blank=True)),
                ("instructions", models.TextField(blank=True)),
                ("draft", models.BooleanField(default=False)),
                ("private", models.BooleanField(default=False)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("responses_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="surveys",
                        to="surveys.category",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="surveys",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="SurveyQuestion",
            fields=[
                _id(),
                (
                    "type",
                    models.CharField(
                        choices=QUESTION_TYPE_CHOICES,
                        default="text_question",
                        max_length=40,
                    ),
                ),
                (
                    "index",
                    models.PositiveIntegerField(
                        blank=True,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("content", models.TextField(blank=True, default="")),
                ("choices", models.JSONField(blank=True, default=list)),
                ("scale_min", models.IntegerField(default=1)),
                ("scale_max", models.IntegerField(default=5)),
                ("label_min", models.CharField(blank=True, default="", max_length=100)),
                ("label_mid", models.CharField(blank=True, default="", max_length=100)),
                ("label_max", models.CharField(blank=True, default="", max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "survey",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="questions",
                        to="surveys.survey",
                    ),
                ),
            ],
            options={"ordering": ["index", "id"]},
        ),
        migrations.CreateModel(
            name="TextQuestion",
            fields=[],
            options={"proxy": True, "indexes": [], "constraints": []},
            bases=("surveys.surveyquestion",),
        ),
        migrations.CreateModel(
            name="MultipleChoiceQuestion",
            fields=[],
            options={"proxy": True, "indexes": [], "constraints": []},
            bases=("surveys.surveyquestion",),
        ),
        migrations.CreateModel(
            name="LikertQuestion",
            fields=[],
            options={"proxy": True, "indexes": [], "constraints": []},
            bases=("surveys.surveyquestion",),
        ),
        migrations.CreateModel(
            name="SurveyPageBreak",
            fields=[
                _id(),
                (
                    "before",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "survey",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="page_breaks",
                        to="surveys.survey",
                    ),
                ),
            ],
            options={
                "ordering": ["before", "id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("before__gte", 1)),
                        name="surveypagebreak_before_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="UserListedSurvey",
            fields=[
                _id(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "survey",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="userlistedsurvey_links",
                        to="surveys.survey",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="userlistedsurvey_links",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "survey"), name="unique_listed_survey"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="UserFavoriteSurvey",
            fields=[
                _id(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "survey",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="userfavoritesurvey_links",
                        to="surveys.survey",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="userfavoritesurvey_links",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "survey"), name="unique_favorite_survey"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Solicitation",
            fields=[
                _id(),
                ("message", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("responded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="solicitations_received",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="solicitations_sent",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "survey",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="solicitations",
                        to="surveys.survey",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("survey", "sender", "recipient"),
                        name="one_solicitation_per_recipient",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="SurveyResponse",
            fields=[
                _id(),
                ("answers", models.JSONField(default=dict)),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "respondent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="survey_responses",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "solicitation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="responses",
                        to="surveys.solicitation",
                    ),
                ),
                (
                    "survey",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="responses",
                        to="surveys.survey",
                    ),
                ),
            ],
            options={
                "ordering": ["submitted_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("survey", "respondent"),
                        name="one_response_per_user_per_survey",
                    )
                ],
            },
        ),
    ]
