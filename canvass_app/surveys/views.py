from __future__ import annotations

import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied, ValidationError
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.http import Http404, HttpRequest, HttpResponse, JsonResponse, QueryDict
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.views.decorators.http import require_http_methods
from django_ratelimit.decorators import ratelimit

from .aggregation import aggregate, responses_for
from .forms import (
    ShareForm,
    SurveyForm,
    collect_answers,
    parse_nested_rows,
    parse_page_break_rows,
)
from .models import (
    Category,
    Solicitation,
    Survey,
    SurveyQuestion,
    SurveyResponse,
    UserFavoriteSurvey,
    UserListedSurvey,
)
from .permissions import (
    can_clone_survey,
    can_edit_survey,
    can_post_survey,
    can_respond_to_survey,
    can_share_survey,
    can_view_survey,
    require_can_edit,
    require_can_respond,
    require_can_view,
)
from .question_types import QuestionType, UnknownQuestionType

logger = logging.getLogger(__name__)

SAVE_SUBMITS = {"save_and_close", "save_and_send"}
EDIT_SUBMITS = {"update"} | SAVE_SUBMITS

# filter key -> (queryset builder, empty-state message)
LIST_FILTERS = {
    "authored": (
        lambda user: Survey.objects.filter(owner=user),
        "Looks like you haven't written any surveys yet.",
    ),
    "listed": (
        lambda user: Survey.objects.filter(userlistedsurvey_links__user=user),
        "Looks like you haven't listed any surveys yet.",
    ),
    "favorite": (
        lambda user: Survey.objects.filter(userfavoritesurvey_links__user=user),
        "Looks like you haven't favorited any surveys yet.",
    ),
}


def _wants_json(request: HttpRequest) -> bool:
    return (
        request.headers.get("x-requested-with") == "XMLHttpRequest"
        or "application/json" in request.headers.get("accept", "")
    )


def _has_rows(data: QueryDict, prefix: str) -> bool:
    return any(key.startswith(f"{prefix}-") for key in data.keys())


def _is_blank_submission(data: QueryDict) -> bool:
    """True when the editor posted nothing but placeholder content."""
    if (data.get("title") or "").strip() not in ("", Survey.DEFAULT_TITLE):
        return False
    if (data.get("description") or "").strip() or (data.get("instructions") or "").strip():
        return False
    return all(
        (row.get("content") or "").strip() in ("", SurveyQuestion.DEFAULT_CONTENT)
        for row in parse_nested_rows(data, "questions")
    )


@require_http_methods(["GET"])
def survey_list(request: HttpRequest) -> HttpResponse:
    user = request.user
    selected = request.GET.get("s", "")
    empty_message = "Oops, we couldn't find any surveys."
    sign_in_required = False

    surveys = Survey.objects.viewable_by(user).filter(draft=False)
    if selected in LIST_FILTERS:
        builder, empty_message = LIST_FILTERS[selected]
        if user.is_authenticated:
            surveys = builder(user).filter(draft=False)
        else:
            sign_in_required = True
            surveys = Survey.objects.none()
            empty_message = "You must be signed in to use this feature."

    category = request.GET.get("category")
    if category:
        surveys = surveys.filter(category__slug=category)

    query = (request.GET.get("q") or "").strip()
    if query:
        surveys = surveys.filter(Q(title__icontains=query) | Q(description__icontains=query))
        empty_message = f"Sorry, we couldn't find any surveys matching '{query}'."

    surveys = surveys.select_related("owner", "category").order_by("-created_at", "-id")
    page_obj = Paginator(surveys, Survey.PER_PAGE).get_page(request.GET.get("page"))
    return render(
        request,
        "surveys/list.html",
        {
            "surveys": page_obj,
            "page_obj": page_obj,
            "selected": selected,
            "category": category,
            "categories": Category.objects.all(),
            "query": query,
            "empty_message": empty_message,
            "sign_in_required": sign_in_required,
            "top_surveys": Survey.objects.top(10),
        },
    )


@login_required
@require_http_methods(["GET", "POST"])
def survey_new(request: HttpRequest) -> HttpResponse:
    survey = Survey.draft_survey_for(request.user)
    return redirect("surveys:edit", pk=survey.pk)


@require_http_methods(["GET"])
def survey_detail(request: HttpRequest, pk: int) -> HttpResponse:
    survey = get_object_or_404(Survey.objects.select_related("owner", "category"), pk=pk)
    if not can_view_survey(request.user, survey):
        messages.error(request, "You are not allowed to access this survey.")
        return redirect("surveys:list")

    try:
        number = int(request.GET.get("page", 1))
    except ValueError:
        raise Http404("No such page")
    pages = survey.pages()
    page = pages[number - 1] if 1 <= number <= len(pages) else None
    if page is None:
        raise Http404("No such page")

    user = request.user
    return render(
        request,
        "surveys/detail.html",
        {
            "survey": survey,
            "page": page,
            "pages": pages,
            "can_edit": can_edit_survey(user, survey),
            "can_clone": can_clone_survey(user, survey),
            "can_post": can_post_survey(user, survey),
            "can_share": can_share_survey(user, survey),
            "can_respond": can_respond_to_survey(user, survey),
            "is_listed": survey.is_listed_by(user),
            "is_favorite": survey.is_favorite_of(user),
        },
    )


def _render_editor(request: HttpRequest, survey: Survey, form: SurveyForm, status: int = 200):
    return render(
        request,
        "surveys/edit.html",
        {
            "survey": survey,
            "form": form,
            "items": survey.items(),
            "question_types": QuestionType.choices,
        },
        status=status,
    )


@login_required
@require_http_methods(["GET", "POST"])
def survey_edit(request: HttpRequest, pk: int) -> HttpResponse:
    survey = get_object_or_404(Survey, pk=pk)

    if request.method == "GET":
        wants_clone = bool(request.GET.get("clone"))
        if not can_edit_survey(request.user, survey) or wants_clone:
            # someone else's survey, or an explicit copy: edit a clone instead
            if not can_clone_survey(request.user, survey):
                raise PermissionDenied("You are not allowed to access this survey.")
            copy = survey.clone(request.user)
            messages.info(request, "You are now editing your own copy of this survey.")
            return redirect("surveys:edit", pk=copy.pk)
        if survey.is_used():
            # answers refer to the old questions, so edits go into a new version
            copy = survey.clone(request.user)
            messages.info(
                request,
                "This survey has already been sent, so your changes go into a new copy.",
            )
            return redirect("surveys:edit", pk=copy.pk)
        return _render_editor(request, survey, SurveyForm(instance=survey))

    require_can_edit(request.user, survey)
    submit = request.POST.get("submit") or "update"

    if submit == "cancel":
        title = survey.title
        survey.delete()
        messages.info(request, f"You deleted '{title}'.")
        return redirect("surveys:list")

    if submit not in EDIT_SUBMITS:
        logger.warning("Unexpected submit key %r for survey %s", submit, survey.pk)
        if _wants_json(request):
            return JsonResponse({"status": "error", "errors": {"submit": submit}}, status=400)
        messages.error(request, "Unexpected form action.")
        return redirect("surveys:edit", pk=survey.pk)

    if survey.is_used():
        # a stale editor must not rewrite questions that stored answers point to
        logger.warning("Refused edit of used survey %s by user %s", survey.pk, request.user.pk)
        if _wants_json(request):
            return JsonResponse(
                {"status": "error", "errors": {"__all__": ["This survey has already been sent."]}},
                status=409,
            )
        messages.error(
            request,
            "This survey has already been sent. Your changes were not saved; edit the new copy instead.",
        )
        return redirect("surveys:edit", pk=survey.pk)

    if submit in SAVE_SUBMITS:
        if _is_blank_submission(request.POST):
            # a blank survey is taken to be a mistake: drop it without complaint
            survey.delete()
            return redirect("surveys:list")
        survey.draft = False
    form = SurveyForm(request.POST, instance=survey)
    errors: dict = {}
    if form.is_valid():
        try:
            with transaction.atomic():
                survey = form.save()
                if _has_rows(request.POST, "questions"):
                    survey.replace_questions(parse_nested_rows(request.POST, "questions"))
                if _has_rows(request.POST, "page_breaks"):
                    survey.replace_page_breaks(parse_page_break_rows(request.POST))
        except ValidationError as exc:
            errors = exc.message_dict if hasattr(exc, "error_dict") else {"__all__": exc.messages}
        except UnknownQuestionType as exc:
            errors = {"type": [str(exc)]}
    else:
        errors = form.errors.get_json_data()

    if _wants_json(request):
        if errors:
            return JsonResponse({"status": "error", "errors": errors}, status=400)
        return JsonResponse({"status": "ok"})

    if errors:
        messages.error(request, "There were some problems saving your survey.")
        survey.refresh_from_db()
        return _render_editor(request, survey, form, status=400)

    if submit in SAVE_SUBMITS:
        if submit == "save_and_send":
            return redirect("surveys:share", pk=survey.pk)
        messages.success(request, "Survey saved.")
        return redirect("surveys:detail", pk=survey.pk)

    return redirect("surveys:edit", pk=survey.pk)


def _toggle(request: HttpRequest, pk: int, link_model, key: str, added_text: str, removed_text: str):
    survey = get_object_or_404(Survey, pk=pk)
    require_can_view(request.user, survey)
    added = link_model.toggle(request.user, survey)
    if _wants_json(request):
        return JsonResponse({"survey_id": survey.pk, key: added})
    text = added_text if added else removed_text
    messages.success(request, text.format(title=survey.title))
    return redirect("surveys:detail", pk=survey.pk)


@login_required
@require_http_methods(["POST"])
def survey_toggle_listed(request: HttpRequest, pk: int) -> HttpResponse:
    return _toggle(
        request,
        pk,
        UserListedSurvey,
        "listed",
        "You've added '{title}' to your listed surveys.",
        "You've removed '{title}' from your listed surveys.",
    )


@login_required
@require_http_methods(["POST"])
def survey_toggle_favorite(request: HttpRequest, pk: int) -> HttpResponse:
    return _toggle(
        request,
        pk,
        UserFavoriteSurvey,
        "favorite",
        "You've added '{title}' to your favorites.",
        "You've removed '{title}' from your favorites.",
    )


@login_required
@require_http_methods(["POST"])
def survey_post(request: HttpRequest, pk: int) -> HttpResponse:
    survey = get_object_or_404(Survey, pk=pk)
    if not can_post_survey(request.user, survey):
        messages.error(request, "You don't have permission to post this survey.")
        return redirect("surveys:detail", pk=survey.pk)
    survey.post()
    messages.success(request, "Your survey is now open to everyone.")
    return redirect("surveys:detail", pk=survey.pk)


@login_required
@require_http_methods(["GET", "POST"])
def survey_share(request: HttpRequest, pk: int) -> HttpResponse:
    survey = get_object_or_404(Survey, pk=pk)
    require_can_edit(request.user, survey)
    if survey.draft:
        messages.error(request, "Save your survey before sending it.")
        return redirect("surveys:edit", pk=survey.pk)

    if request.method == "POST":
        form = ShareForm(request.POST, sender=request.user)
        if form.is_valid():
            sent = 0
            for recipient in form.cleaned_data["recipients"]:
                _, created = Solicitation.objects.get_or_create(
                    survey=survey,
                    sender=request.user,
                    recipient=recipient,
                    defaults={"message": form.cleaned_data["message"]},
                )
                sent += int(created)
            logger.info("User %s sent survey %s to %d users", request.user.pk, survey.pk, sent)
            messages.success(request, f"Survey sent to {sent} user{'s' if sent != 1 else ''}.")
            return redirect("surveys:detail", pk=survey.pk)
    else:
        form = ShareForm(sender=request.user)

    solicitations = survey.solicitations.select_related("recipient").filter(sender=request.user)
    return render(
        request,
        "surveys/share.html",
        {"survey": survey, "form": form, "solicitations": solicitations},
    )


@login_required
@require_http_methods(["GET", "POST"])
@ratelimit(key="user_or_ip", rate="10/m", block=True)
def survey_respond(request: HttpRequest, pk: int) -> HttpResponse:
    survey = get_object_or_404(Survey, pk=pk)
    require_can_respond(request.user, survey)
    if SurveyResponse.objects.filter(survey=survey, respondent=request.user).exists():
        messages.info(request, "You have already responded to this survey.")
        return redirect("surveys:detail", pk=survey.pk)

    errors: dict[int, str] = {}
    if request.method == "POST":
        answers, errors = collect_answers(survey.question_list(), request.POST)
        if not errors:
            solicitation = Solicitation.objects.filter(
                survey=survey, recipient=request.user
            ).first()
            try:
                with transaction.atomic():
                    SurveyResponse.objects.create(
                        survey=survey,
                        respondent=request.user,
                        solicitation=solicitation,
                        answers=answers,
                    )
                    if solicitation is not None:
                        Solicitation.objects.filter(pk=solicitation.pk).update(
                            responded_at=timezone.now()
                        )
                    survey.record_response()
            except IntegrityError:
                messages.error(request, "You have already responded to this survey.")
                return redirect("surveys:detail", pk=survey.pk)
            messages.success(request, "Thank you for your response.")
            return redirect("surveys:detail", pk=survey.pk)

    return render(
        request,
        "surveys/respond.html",
        {"survey": survey, "pages": survey.pages(), "errors": errors, "data": request.POST},
        status=400 if errors else 200,
    )


@login_required
@require_http_methods(["GET"])
def survey_results(request: HttpRequest, pk: int) -> HttpResponse:
    survey = get_object_or_404(Survey, pk=pk)
    require_can_edit(request.user, survey)
    mine_only = request.GET.get("scope") == "mine"
    responses = responses_for(survey, sender=request.user if mine_only else None)
    return render(
        request,
        "surveys/results.html",
        {
            "survey": survey,
            "summaries": aggregate(survey, responses),
            "total": responses.count(),
            "mine_only": mine_only,
        },
    )
