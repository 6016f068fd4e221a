from django.contrib import admin
from django.contrib.auth import views as auth_views
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    path("", RedirectView.as_view(pattern_name="core:home", permanent=False)),
    path("admin/", admin.site.urls),
    # Auth routes (explicit to avoid include conflicts)
    path(
        "accounts/login/",
        auth_views.LoginView.as_view(template_name="registration/login.html"),
        name="login",
    ),
    path("accounts/logout/", auth_views.LogoutView.as_view(), name="logout"),
    path("", include("canvass_app.core.urls")),
    path("surveys/", include("canvass_app.surveys.urls")),
    path("api/", include("canvass_app.api.urls")),
]

# Custom error handlers
handler403 = "canvass_app.core.error_handlers.custom_permission_denied_view"
handler404 = "canvass_app.core.error_handlers.custom_page_not_found_view"
handler500 = "canvass_app.core.error_handlers.custom_server_error_view"
