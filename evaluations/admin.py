from django.contrib import admin

from .models import CaptainEvaluation, CaptainFeedback, VolunteerEvaluation


@admin.register(VolunteerEvaluation)
class VolunteerEvaluationAdmin(admin.ModelAdmin):
    list_display = ("id", "volunteer", "captain", "event", "team", "rating", "created_at")
    list_filter = ("event",)
    search_fields = ("volunteer__username", "captain__username", "event__title")


@admin.register(CaptainEvaluation)
class CaptainEvaluationAdmin(admin.ModelAdmin):
    list_display = ("id", "captain", "admin", "event", "team", "overall_rating", "promotion_ready")
    list_filter = ("event", "promotion_ready")


@admin.register(CaptainFeedback)
class CaptainFeedbackAdmin(admin.ModelAdmin):
    list_display = ("id", "captain", "volunteer", "event", "team", "overall_rating", "created_at")
    list_filter = ("event",)
