from django.conf import settings
from django.contrib.admin import AdminSite
from django.contrib.admin.apps import AdminConfig
from django.urls import reverse_lazy


def survey_activity():
    """Headline counts shown above the model list on the admin index."""
    # imported here: this module is loaded with INSTALLED_APPS, before models are ready
    from canvass_app.surveys.models import Solicitation, Survey, SurveyResponse

    surveys = Survey.objects.all()
    return [
        ("Published surveys", surveys.filter(draft=False).count()),
        ("Drafts in progress", surveys.filter(draft=True).count()),
        ("Posted to everyone", surveys.filter(posted_at__isnull=False).count()),
        ("Unanswered requests", Solicitation.objects.filter(responded_at__isnull=True).count()),
        ("Responses", SurveyResponse.objects.count()),
    ]


class CanvassAdminSite(AdminSite):
    site_header = f"{settings.BRAND_TITLE} administration"
    site_title = settings.BRAND_TITLE
    index_title = "Surveys and respondents"
    index_template = "admin/canvass_index.html"
    site_url = reverse_lazy("surveys:list")

    def has_permission(self, request):  # type: ignore[override]
        # superusers only; staff accounts get nothing here
        return bool(request.user.is_active and request.user.is_superuser)

    def index(self, request, extra_context=None):
        extra_context = {"activity": survey_activity(), **(extra_context or {})}
        return super().index(request, extra_context)


class CanvassAdminConfig(AdminConfig):
    default_site = "canvass_app.admin.CanvassAdminSite"
