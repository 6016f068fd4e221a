from django.urls import path

from . import views

app_name = "surveys"

urlpatterns = [
    path("", views.survey_list, name="list"),
    path("new/", views.survey_new, name="new"),
    path("<int:pk>/", views.survey_detail, name="detail"),
    path("<int:pk>/edit/", views.survey_edit, name="edit"),
    path("<int:pk>/listed/", views.survey_toggle_listed, name="toggle_listed"),
    path("<int:pk>/favorite/", views.survey_toggle_favorite, name="toggle_favorite"),
    path("<int:pk>/post/", views.survey_post, name="post"),
    path("<int:pk>/share/", views.survey_share, name="share"),
    path("<int:pk>/respond/", views.survey_respond, name="respond"),
    path("<int:pk>/results/", views.survey_results, name="results"),
]
