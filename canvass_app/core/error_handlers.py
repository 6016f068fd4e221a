"""Error page views wired up as handler403/404/500."""

import logging

from django.http import HttpRequest, HttpResponse, HttpResponseNotFound, HttpResponseServerError
from django.shortcuts import render

logger = logging.getLogger(__name__)


def custom_permission_denied_view(request: HttpRequest, exception=None) -> HttpResponse:
    logger.info("Permission denied for %s on %s", request.user, request.path)
    return render(request, "403.html", {"reason": str(exception or "")}, status=403)


def custom_page_not_found_view(request: HttpRequest, exception=None) -> HttpResponse:
    return HttpResponseNotFound(render(request, "404.html").content)


def custom_server_error_view(request: HttpRequest) -> HttpResponse:
    # no request context here: context processors may be what failed
    return HttpResponseServerError(render(None, "500.html").content)
