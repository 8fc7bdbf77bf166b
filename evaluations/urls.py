from django.urls import path

from .views import EvaluationStatsView, ReceivedEvaluationsView, SubmitEvaluationView

urlpatterns = [
    path("", SubmitEvaluationView.as_view(), name="evaluation-submit"),
    path("stats/me/", EvaluationStatsView.as_view(), name="evaluation-stats-me"),
    path("stats/<int:user_id>/", EvaluationStatsView.as_view(), name="evaluation-stats"),
    path("received/me/", ReceivedEvaluationsView.as_view(), name="evaluation-received-me"),
    path("received/<int:user_id>/", ReceivedEvaluationsView.as_view(), name="evaluation-received"),
]
