import logging

from django.contrib import messages
from django.contrib.auth import login
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django.shortcuts import redirect, render

from canvass_app.surveys.models import (
    Solicitation,
    Survey,
    SurveyResponse,
    UserFavoriteSurvey,
    UserListedSurvey,
)

from .forms import SignupForm

logger = logging.getLogger(__name__)


def home(request):
    return render(request, "core/home.html", {"top_surveys": Survey.objects.top(5)})


def healthz(request):
    """Lightweight health endpoint for load balancers and readiness probes.
    Returns 200 OK without auth or redirects.
    """
    return HttpResponse("ok", content_type="text/plain")


@login_required
def profile(request):
    user = request.user
    stats = {
        "surveys_owned": Survey.objects.filter(owner=user, draft=False).count(),
        "surveys_posted": Survey.objects.filter(owner=user).posted().count(),
        "surveys_listed": UserListedSurvey.objects.filter(user=user).count(),
        "surveys_favorited": UserFavoriteSurvey.objects.filter(user=user).count(),
        "responses_submitted": SurveyResponse.objects.filter(respondent=user).count(),
        "solicitations_sent": Solicitation.objects.filter(sender=user).count(),
    }
    pending = (
        Solicitation.objects.filter(recipient=user, responded_at__isnull=True)
        .select_related("survey", "sender")
    )
    return render(request, "core/profile.html", {"stats": stats, "pending": pending})


def signup(request):
    if request.method == "POST":
        form = SignupForm(request.POST)
        if form.is_valid():
            user = form.save()
            # Several AUTHENTICATION_BACKENDS are configured, so login() needs one named
            login(request, user, backend="django.contrib.auth.backends.ModelBackend")
            logger.info("New account %s", user.pk)
            messages.success(request, "Welcome! Your account is ready.")
            return redirect("core:home")
    else:
        form = SignupForm()
    return render(request, "registration/signup.html", {"form": form})
