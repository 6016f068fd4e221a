from __future__ import annotations

from django.core.exceptions import PermissionDenied

from .models import Solicitation, Survey


def is_owner(user, survey: Survey) -> bool:
    if not user.is_authenticated:
        return False
    return survey.owner_id == getattr(user, "id", None)


def is_solicited(user, survey: Survey) -> bool:
    if not user.is_authenticated:
        return False
    return Solicitation.objects.filter(survey=survey, recipient=user).exists()


def can_view_survey(user, survey: Survey) -> bool:
    # public surveys are open to visitors; private ones to the owner and recipients
    if not survey.private:
        return True
    return is_owner(user, survey) or is_solicited(user, survey)


def can_edit_survey(user, survey: Survey) -> bool:
    return is_owner(user, survey)


def can_clone_survey(user, survey: Survey) -> bool:
    return user.is_authenticated and can_view_survey(user, survey)


def can_post_survey(user, survey: Survey) -> bool:
    return (
        can_edit_survey(user, survey)
        and not survey.is_posted()
        and not survey.private
        and not survey.draft
    )


def can_share_survey(user, survey: Survey) -> bool:
    return can_edit_survey(user, survey) and not survey.draft


def can_respond_to_survey(user, survey: Survey) -> bool:
    # owners preview their surveys; they do not answer them
    if not user.is_authenticated or survey.draft or is_owner(user, survey):
        return False
    return survey.is_posted() or is_solicited(user, survey)


def require_can_view(user, survey: Survey) -> None:
    if not can_view_survey(user, survey):
        raise PermissionDenied("You are not allowed to access this survey.")


def require_can_edit(user, survey: Survey) -> None:
    if not can_edit_survey(user, survey):
        raise PermissionDenied("You do not have permission to edit this survey.")


def require_can_respond(user, survey: Survey) -> None:
    if not can_respond_to_survey(user, survey):
        raise PermissionDenied("You cannot respond to this survey.")
