import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Max, Q
from django.shortcuts import get_object_or_404
from rest_framework import permissions, serializers, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from canvass_app.surveys.models import (
    Category,
    Survey,
    SurveyPageBreak,
    SurveyQuestion,
)
from canvass_app.surveys.permissions import can_edit_survey, can_view_survey
from canvass_app.surveys.question_types import QuestionType, UnknownQuestionType, model_for

logger = logging.getLogger(__name__)


class QuestionTypeField(serializers.Field):
    """Question type as its registry string; accepts strings, names and indices."""

    default_error_messages = {"unknown": "Unknown question type: {value!r}."}

    def to_representation(self, value):
        return QuestionType.resolve(value).to_string()

    def to_internal_value(self, data):
        try:
            return QuestionType.resolve(data)
        except UnknownQuestionType:
            self.fail("unknown", value=data)


class QuestionSerializer(serializers.ModelSerializer):
    type = QuestionTypeField(required=False)

    class Meta:
        model = SurveyQuestion
        fields = [
            "id",
            "index",
            "type",
            "content",
            "choices",
            "scale_min",
            "scale_max",
            "label_min",
            "label_mid",
            "label_max",
        ]
        # indices are always assigned by the survey, 1..N in order
        read_only_fields = ["id", "index"]


class PageBreakSerializer(serializers.ModelSerializer):
    class Meta:
        model = SurveyPageBreak
        fields = ["id", "before", "title", "description"]
        read_only_fields = ["id"]


class SurveySerializer(serializers.ModelSerializer):
    owner = serializers.CharField(source="owner.username", read_only=True)
    category = serializers.SlugRelatedField(
        slug_field="slug", queryset=Category.objects.all(), required=False, allow_null=True
    )
    questions_count = serializers.IntegerField(source="questions.count", read_only=True)

    class Meta:
        model = Survey
        fields = [
            "id",
            "owner",
            "category",
            "title",
            "description",
            "instructions",
            "draft",
            "private",
            "posted_at",
            "responses_count",
            "questions_count",
            "created_at",
        ]
        read_only_fields = ["posted_at", "responses_count", "created_at"]

    def validate(self, attrs):
        # Run the model's own rules on a probe carrying the merged values
        probe = Survey(
            title=attrs.get("title", getattr(self.instance, "title", "")),
            description=attrs.get("description", getattr(self.instance, "description", "")),
            draft=attrs.get("draft", getattr(self.instance, "draft", False)),
        )
        try:
            probe.clean()
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.message_dict)
        return attrs


def serialize_page(page):
    return {
        "number": page.number,
        "title": page.title,
        "description": page.description,
        "untitled": page.untitled,
        "questions": QuestionSerializer(page.questions, many=True).data,
    }


def serialize_item(item):
    if isinstance(item, SurveyPageBreak):
        return {"kind": "page_break", **PageBreakSerializer(item).data}
    return {"kind": "question", **QuestionSerializer(item).data}


class OwnerOrViewerPermission(permissions.BasePermission):
    """Object-level permission that mirrors the HTML views.

    - SAFE methods require can_view_survey
    - Unsafe methods require can_edit_survey
    """

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return can_view_survey(request.user, obj)
        return can_edit_survey(request.user, obj)


class SurveyViewSet(viewsets.ModelViewSet):
    serializer_class = SurveySerializer
    permission_classes = [permissions.IsAuthenticated, OwnerOrViewerPermission]

    def get_queryset(self):
        user = self.request.user
        # published surveys the user may see, plus their own drafts
        return (
            Survey.objects.filter(
                Q(owner=user)
                | Q(draft=False, private=False)
                | Q(draft=False, solicitations__recipient=user)
            )
            .distinct()
            .select_related("owner", "category")
        )

    def get_object(self):
        """Fetch without scoping to the queryset, then run object permissions.

        Authenticated users get 403 rather than 404 on surveys they cannot use.
        """
        lookup_url_kwarg = self.lookup_url_kwarg or self.lookup_field
        obj = get_object_or_404(
            Survey.objects.select_related("owner", "category"),
            **{self.lookup_field: self.kwargs.get(lookup_url_kwarg)},
        )
        self.check_object_permissions(self.request, obj)
        return obj

    def perform_create(self, serializer):
        survey = serializer.save(owner=self.request.user)
        logger.info("User %s created survey %s via API", self.request.user.pk, survey.pk)

    @action(detail=True, methods=["get"])
    def pages(self, request, pk=None):
        survey = self.get_object()
        return Response([serialize_page(page) for page in survey.pages()])

    @action(detail=True, methods=["get"])
    def items(self, request, pk=None):
        survey = self.get_object()
        return Response([serialize_item(item) for item in survey.items()])

    @action(detail=True, methods=["get", "post"])
    def questions(self, request, pk=None):
        survey = self.get_object()
        if request.method == "GET":
            return Response(QuestionSerializer(survey.question_list(), many=True).data)

        serializer = QuestionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        model = model_for(data.pop("type", QuestionType.TEXT))
        index = (survey.questions.aggregate(last=Max("index"))["last"] or 0) + 1
        question = model(survey=survey, type=model.variant, index=index, **data)
        try:
            question.full_clean(exclude=["survey"])
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.message_dict)
        question.save()
        logger.info("Added %s question %s to survey %s", model.variant, question.pk, survey.pk)
        return Response(QuestionSerializer(question).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="page-breaks")
    def page_breaks(self, request, pk=None):
        survey = self.get_object()
        serializer = PageBreakSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        page_break = survey.insert_page_break(**serializer.validated_data)
        return Response(PageBreakSerializer(page_break).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def healthcheck(request):
    return Response({"status": "ok"})
