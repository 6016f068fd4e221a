from __future__ import annotations

import pytest
from django.contrib.auth.models import User
from django.urls import reverse

from canvass_app.surveys.models import (
    Category,
    LikertQuestion,
    MultipleChoiceQuestion,
    Solicitation,
    Survey,
    SurveyPageBreak,
    SurveyQuestion,
    SurveyResponse,
    TextQuestion,
    UserListedSurvey,
)

DESCRIPTION = "A description that is long enough."


@pytest.fixture
def users(db):
    owner = User.objects.create_user(username="owner", email="owner@example.com", password="x")
    friend = User.objects.create_user(username="friend", email="friend@example.com", password="x")
    outsider = User.objects.create_user(username="outsider", password="x")
    return owner, friend, outsider


@pytest.fixture
def survey(users):
    owner, _, _ = users
    s = Survey.objects.create(owner=owner, title="Team lunch poll", description=DESCRIPTION)
    TextQuestion.objects.create(survey=s, content="Any allergies?")
    MultipleChoiceQuestion.objects.create(survey=s, content="Where?", choices=["Pizza", "Sushi"])
    LikertQuestion.objects.create(survey=s, content="How hungry?", scale_min=1, scale_max=5)
    s.insert_page_break(before=3, title="Appetite")
    return s


def login(client, user):
    client.force_login(user)


# -------------------- index --------------------


def test_index_lists_public_surveys_only(client, users, survey):
    owner, friend, outsider = users
    hidden = Survey.objects.create(owner=owner, title="Hidden thoughts", private=True)
    Survey.objects.create(owner=owner, title="Draft in progress", draft=True)
    res = client.get(reverse("surveys:list"))
    assert res.status_code == 200
    assert {s.title for s in res.context["surveys"]} == {"Team lunch poll"}

    login(client, owner)
    res = client.get(reverse("surveys:list"))
    assert hidden in list(res.context["surveys"])


def test_index_filters(client, users, survey):
    owner, friend, _ = users
    other = Survey.objects.create(
        owner=friend, title="Weekend plans poll", category=Category.objects.create(name="Fun", slug="fun")
    )
    UserListedSurvey.objects.create(user=owner, survey=other)

    login(client, owner)
    res = client.get(reverse("surveys:list"), {"s": "authored"})
    assert [s.pk for s in res.context["surveys"]] == [survey.pk]
    res = client.get(reverse("surveys:list"), {"s": "listed"})
    assert [s.pk for s in res.context["surveys"]] == [other.pk]
    res = client.get(reverse("surveys:list"), {"s": "favorite"})
    assert list(res.context["surveys"]) == []
    assert "favorited" in res.context["empty_message"]
    res = client.get(reverse("surveys:list"), {"category": "fun"})
    assert [s.pk for s in res.context["surveys"]] == [other.pk]
    res = client.get(reverse("surveys:list"), {"q": "lunch"})
    assert [s.pk for s in res.context["surveys"]] == [survey.pk]


def test_index_personal_filter_requires_sign_in(client, survey):
    res = client.get(reverse("surveys:list"), {"s": "authored"})
    assert res.status_code == 200
    assert res.context["sign_in_required"]
    assert list(res.context["surveys"]) == []


def test_index_paginates(client, users):
    owner, _, _ = users
    for i in range(Survey.PER_PAGE + 2):
        Survey.objects.create(owner=owner, title=f"Numbered survey {i}")
    res = client.get(reverse("surveys:list"))
    assert len(res.context["surveys"]) == Survey.PER_PAGE
    res = client.get(reverse("surveys:list"), {"page": 2})
    assert len(res.context["surveys"]) == 2


# -------------------- detail --------------------


def test_detail_renders_requested_page(client, survey):
    res = client.get(reverse("surveys:detail", args=[survey.pk]))
    assert res.status_code == 200
    assert res.context["page"].number == 1
    assert len(res.context["page"].questions) == 2

    res = client.get(reverse("surveys:detail", args=[survey.pk]), {"page": 2})
    assert res.context["page"].title == "Appetite"
    assert b"How hungry?" in res.content


@pytest.mark.parametrize("page", ["3", "0", "abc"])
def test_detail_missing_page_is_404(client, survey, page):
    res = client.get(reverse("surveys:detail", args=[survey.pk]), {"page": page})
    assert res.status_code == 404


def test_private_detail_redirects_strangers(client, users, survey):
    _, friend, outsider = users
    survey.private = True
    survey.save()
    login(client, outsider)
    res = client.get(reverse("surveys:detail", args=[survey.pk]))
    assert res.status_code == 302
    assert res["Location"] == reverse("surveys:list")

    Solicitation.objects.create(survey=survey, sender=survey.owner, recipient=friend)
    login(client, friend)
    res = client.get(reverse("surveys:detail", args=[survey.pk]))
    assert res.status_code == 200


# -------------------- new / edit --------------------


def test_new_creates_draft_and_redirects(client, users):
    owner, _, _ = users
    login(client, owner)
    res = client.get(reverse("surveys:new"))
    draft = Survey.objects.get(owner=owner, draft=True)
    assert res.status_code == 302
    assert res["Location"] == reverse("surveys:edit", args=[draft.pk])


def test_new_requires_login(client, db):
    res = client.get(reverse("surveys:new"))
    assert res.status_code == 302
    assert "/accounts/login/" in res["Location"]


def test_edit_renders_items(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    res = client.get(reverse("surveys:edit", args=[survey.pk]))
    assert res.status_code == 200
    assert len(res.context["items"]) == 4


def test_edit_by_non_owner_clones(client, users, survey):
    _, friend, _ = users
    login(client, friend)
    res = client.get(reverse("surveys:edit", args=[survey.pk]))
    copy = Survey.objects.get(owner=friend)
    assert res["Location"] == reverse("surveys:edit", args=[copy.pk])
    assert copy.questions.count() == 3


def test_edit_used_survey_clones(client, users, survey):
    owner, friend, _ = users
    Solicitation.objects.create(survey=survey, sender=owner, recipient=friend)
    login(client, owner)
    res = client.get(reverse("surveys:edit", args=[survey.pk]))
    assert res.status_code == 302
    assert Survey.objects.filter(owner=owner).count() == 2


def editor_post(survey, submit="update", **extra):
    data = {
        "title": "Team lunch poll v2",
        "description": DESCRIPTION,
        "instructions": "",
        "submit": submit,
        "questions-1-type": "text_question",
        "questions-1-content": "Any allergies?",
        "questions-3-type": "likert_question",
        "questions-3-content": "How hungry?",
        "questions-3-min": "1",
        "questions-3-max": "10",
        "questions-4-type": "multiple_choice_question",
        "questions-4-content": "Where?",
        "questions-4-choices": "Pizza\nSushi\nTacos",
        "page_breaks-2-title": "Second",
    }
    data.update(extra)
    return data


def test_update_replaces_questions_and_breaks(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    res = client.post(reverse("surveys:edit", args=[survey.pk]), editor_post(survey))
    assert res.status_code == 302
    assert res["Location"] == reverse("surveys:edit", args=[survey.pk])
    survey.refresh_from_db()
    assert survey.title == "Team lunch poll v2"
    questions = survey.question_list()
    assert [q.type for q in questions] == [
        "text_question",
        "likert_question",
        "multiple_choice_question",
    ]
    assert questions[2].choices == ["Pizza", "Sushi", "Tacos"]
    assert [(pb.before, pb.title) for pb in survey.page_break_list()] == [(2, "Second")]


def test_update_with_unknown_type_keeps_old_questions(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    data = editor_post(survey, **{"questions-1-type": "essay_question"})
    res = client.post(reverse("surveys:edit", args=[survey.pk]), data)
    assert res.status_code == 400
    survey.refresh_from_db()
    assert survey.title == "Team lunch poll"
    assert survey.questions.count() == 3


def test_ajax_update_returns_json(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    res = client.post(
        reverse("surveys:edit", args=[survey.pk]),
        editor_post(survey),
        HTTP_X_REQUESTED_WITH="XMLHttpRequest",
    )
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}

    res = client.post(
        reverse("surveys:edit", args=[survey.pk]),
        editor_post(survey, title="short"),
        HTTP_X_REQUESTED_WITH="XMLHttpRequest",
    )
    assert res.status_code == 400
    assert res.json()["status"] == "error"


def test_save_and_close_publishes_draft(client, users):
    owner, _, _ = users
    login(client, owner)
    draft = Survey.draft_survey_for(owner)
    res = client.post(reverse("surveys:edit", args=[draft.pk]), editor_post(draft, "save_and_close"))
    assert res["Location"] == reverse("surveys:detail", args=[draft.pk])
    draft.refresh_from_db()
    assert not draft.draft


def test_save_and_close_discards_blank_draft(client, users):
    owner, _, _ = users
    login(client, owner)
    draft = Survey.draft_survey_for(owner)
    res = client.post(
        reverse("surveys:edit", args=[draft.pk]),
        {
            "title": Survey.DEFAULT_TITLE,
            "description": "",
            "submit": "save_and_close",
            "questions-1-type": "text_question",
            "questions-1-content": "Untitled Question",
        },
    )
    assert res["Location"] == reverse("surveys:list")
    assert not Survey.objects.filter(pk=draft.pk).exists()


def test_cancel_deletes_survey(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    res = client.post(reverse("surveys:edit", args=[survey.pk]), {"submit": "cancel"})
    assert res["Location"] == reverse("surveys:list")
    assert not Survey.objects.filter(pk=survey.pk).exists()


def test_post_to_edit_by_non_owner_is_forbidden(client, users, survey):
    _, friend, _ = users
    login(client, friend)
    res = client.post(reverse("surveys:edit", args=[survey.pk]), {"submit": "cancel"})
    assert res.status_code == 403
    assert Survey.objects.filter(pk=survey.pk).exists()


def editor_rows(items):
    """Item fields numbered the way the editor template numbers them."""
    data = {}
    for num, item in enumerate(items, start=1):
        if isinstance(item, SurveyPageBreak):
            data[f"page_breaks-{num}-title"] = item.title
            continue
        data[f"questions-{num}-type"] = item.type
        data[f"questions-{num}-content"] = item.content
        if item.type == "multiple_choice_question":
            data[f"questions-{num}-choices"] = "\n".join(item.choices)
        elif item.type == "likert_question":
            data[f"questions-{num}-min"] = str(item.scale_min)
            data[f"questions-{num}-max"] = str(item.scale_max)
    return data


@pytest.mark.parametrize(
    "flag, pages, before",
    [
        ("_destroy", [["Where?"], ["How hungry?"]], 2),
        ("_duplicate", [["Any allergies?", "Any allergies?", "Where?"], ["How hungry?"]], 4),
    ],
)
def test_page_break_follows_edits_above_it(client, users, survey, flag, pages, before):
    owner, _, _ = users
    login(client, owner)
    url = reverse("surveys:edit", args=[survey.pk])
    items = client.get(url).context["items"]
    data = {"title": survey.title, "description": DESCRIPTION, "submit": "update"}
    data.update(editor_rows(items))
    data[f"questions-1-{flag}"] = "1"
    res = client.post(url, data)
    assert res.status_code == 302
    assert [[q.content for q in page.questions] for page in survey.pages()] == pages
    assert [(pb.before, pb.title) for pb in survey.page_break_list()] == [(before, "Appetite")]


def test_post_to_used_survey_keeps_answered_questions(client, users, survey):
    owner, friend, _ = users
    answered = survey.question_list()[0]
    solicitation = Solicitation.objects.create(survey=survey, sender=owner, recipient=friend)
    SurveyResponse.objects.create(
        survey=survey,
        respondent=friend,
        solicitation=solicitation,
        answers={str(answered.pk): "Peanuts"},
    )
    login(client, owner)
    url = reverse("surveys:edit", args=[survey.pk])

    res = client.post(url, editor_post(survey))
    assert res.status_code == 302
    assert res["Location"] == url
    assert SurveyQuestion.objects.filter(pk=answered.pk).exists()
    survey.refresh_from_db()
    assert survey.title == "Team lunch poll"

    res = client.post(url, editor_post(survey), HTTP_X_REQUESTED_WITH="XMLHttpRequest")
    assert res.status_code == 409
    assert res.json()["status"] == "error"
    assert survey.questions.count() == 3
    assert Survey.objects.filter(owner=owner).count() == 1


def test_unknown_editor_action_is_rejected(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    res = client.post(
        reverse("surveys:edit", args=[survey.pk]),
        editor_post(survey, "add_question"),
        HTTP_X_REQUESTED_WITH="XMLHttpRequest",
    )
    assert res.status_code == 400
    survey.refresh_from_db()
    assert survey.title == "Team lunch poll"


# -------------------- listing, posting, sharing --------------------


def test_toggle_listed_json(client, users, survey):
    _, friend, _ = users
    login(client, friend)
    url = reverse("surveys:toggle_listed", args=[survey.pk])
    res = client.post(url, HTTP_X_REQUESTED_WITH="XMLHttpRequest")
    assert res.json() == {"survey_id": survey.pk, "listed": True}
    res = client.post(url, HTTP_X_REQUESTED_WITH="XMLHttpRequest")
    assert res.json()["listed"] is False


def test_toggle_favorite_redirects(client, users, survey):
    _, friend, _ = users
    login(client, friend)
    res = client.post(reverse("surveys:toggle_favorite", args=[survey.pk]))
    assert res.status_code == 302
    assert survey.is_favorite_of(friend)


def test_post_survey(client, users, survey):
    owner, friend, _ = users
    login(client, friend)
    client.post(reverse("surveys:post", args=[survey.pk]))
    survey.refresh_from_db()
    assert not survey.is_posted()

    login(client, owner)
    client.post(reverse("surveys:post", args=[survey.pk]))
    survey.refresh_from_db()
    assert survey.is_posted()


def test_share_creates_solicitations(client, users, survey):
    owner, friend, outsider = users
    login(client, owner)
    res = client.post(
        reverse("surveys:share", args=[survey.pk]),
        {"recipients": "FRIEND@example.com, outsider", "message": "Please answer"},
    )
    assert res.status_code == 302
    assert set(survey.solicitations.values_list("recipient__username", flat=True)) == {
        "friend",
        "outsider",
    }


def test_share_rejects_unknown_users(client, users, survey):
    owner, _, _ = users
    login(client, owner)
    res = client.post(reverse("surveys:share", args=[survey.pk]), {"recipients": "nobody"})
    assert res.status_code == 200
    assert "recipients" in res.context["form"].errors
    assert not survey.solicitations.exists()


# -------------------- responding and results --------------------


def test_respond_records_answers(client, users, survey):
    owner, friend, _ = users
    solicitation = Solicitation.objects.create(survey=survey, sender=owner, recipient=friend)
    text, mc, likert = survey.question_list()
    login(client, friend)
    res = client.get(reverse("surveys:respond", args=[survey.pk]))
    assert res.status_code == 200
    assert len(res.context["pages"]) == 2

    res = client.post(
        reverse("surveys:respond", args=[survey.pk]),
        {f"q_{text.id}": "None", f"q_{mc.id}": "Sushi", f"q_{likert.id}": "4"},
    )
    assert res.status_code == 302
    response = SurveyResponse.objects.get(survey=survey, respondent=friend)
    assert response.answers == {str(text.id): "None", str(mc.id): "Sushi", str(likert.id): 4}
    assert response.solicitation == solicitation
    survey.refresh_from_db()
    assert survey.responses_count == 1
    solicitation.refresh_from_db()
    assert solicitation.responded_at is not None

    # a second attempt is turned away
    res = client.post(reverse("surveys:respond", args=[survey.pk]), {f"q_{text.id}": "again"})
    assert res.status_code == 302
    assert SurveyResponse.objects.filter(survey=survey).count() == 1


def test_respond_validates_answers(client, users, survey):
    _, friend, _ = users
    survey.post()
    _, mc, likert = survey.question_list()
    login(client, friend)
    res = client.post(
        reverse("surveys:respond", args=[survey.pk]),
        {f"q_{mc.id}": "Burgers", f"q_{likert.id}": "11"},
    )
    assert res.status_code == 400
    assert set(res.context["errors"]) == {mc.id, likert.id}
    assert not SurveyResponse.objects.exists()


def test_owner_and_unsolicited_users_cannot_respond(client, users, survey):
    owner, _, outsider = users
    login(client, owner)
    assert client.get(reverse("surveys:respond", args=[survey.pk])).status_code == 403
    login(client, outsider)
    assert client.get(reverse("surveys:respond", args=[survey.pk])).status_code == 403


def test_results_owner_only(client, users, survey):
    owner, friend, _ = users
    _, mc, _ = survey.question_list()
    SurveyResponse.objects.create(survey=survey, respondent=friend, answers={str(mc.id): "Pizza"})

    login(client, friend)
    assert client.get(reverse("surveys:results", args=[survey.pk])).status_code == 403

    login(client, owner)
    res = client.get(reverse("surveys:results", args=[survey.pk]))
    assert res.status_code == 200
    assert res.context["total"] == 1
    assert res.context["summaries"][1].counts == {"Pizza": 1, "Sushi": 0}

    res = client.get(reverse("surveys:results", args=[survey.pk]), {"scope": "mine"})
    assert res.context["total"] == 0
