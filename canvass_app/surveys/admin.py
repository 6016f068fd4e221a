from django.contrib import admin

from .models import (
    Category,
    Solicitation,
    Survey,
    SurveyPageBreak,
    SurveyQuestion,
    SurveyResponse,
)


class SurveyQuestionInline(admin.TabularInline):
    model = SurveyQuestion
    extra = 0
    fields = ("index", "type", "content")


class SurveyPageBreakInline(admin.TabularInline):
    model = SurveyPageBreak
    extra = 0
    fields = ("before", "title")


@admin.register(Survey)
class SurveyAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "category", "draft", "private", "posted_at", "responses_count")
    list_filter = ("draft", "private", "category")
    search_fields = ("title", "description", "owner__username")
    inlines = [SurveyQuestionInline, SurveyPageBreakInline]


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Solicitation)
class SolicitationAdmin(admin.ModelAdmin):
    list_display = ("survey", "sender", "recipient", "created_at", "responded_at")


@admin.register(SurveyResponse)
class SurveyResponseAdmin(admin.ModelAdmin):
    list_display = ("survey", "respondent", "submitted_at")
    readonly_fields = ("answers",)
