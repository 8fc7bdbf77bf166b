from django.urls import path
from .views import (
    EventListCreateView,
    EventDetailView,
    EventStatusView,
    EventOccupancyView,
    EventImageUploadView,
    RegisterEventView,
    CancelRegistrationView,
    EventRegistrationsView,
    ConfirmRegistrationView,
    EventTeamListCreateView,
    TeamDetailView,
    JoinTeamView,
    LeaveTeamView,
    RemoveTeamMemberView,
    SetTeamCaptainView,
    MyTeamsView,
    EventTermsView,
    TermsQuestionCreateView,
    TermsQuestionDetailView,
    MyTermsAnswersView,
)

urlpatterns = [
    # Events
    path("", EventListCreateView.as_view(), name="event-list"),
    path("<int:pk>/", EventDetailView.as_view(), name="event-detail"),
    path("<int:pk>/status/", EventStatusView.as_view(), name="event-status"),
    path("<int:pk>/occupancy/", EventOccupancyView.as_view(), name="event-occupancy"),
    path("<int:pk>/image/", EventImageUploadView.as_view(), name="event-image"),

    # Registrations
    path("<int:event_id>/register/", RegisterEventView.as_view(), name="event-register"),
    path("<int:event_id>/cancel/", CancelRegistrationView.as_view(), name="event-cancel-registration"),
    path("<int:event_id>/registrations/", EventRegistrationsView.as_view(), name="event-registrations"),
    path("registrations/<int:reg_id>/confirm/", ConfirmRegistrationView.as_view(), name="registration-confirm"),

    # Terms
    path("<int:event_id>/terms/", EventTermsView.as_view(), name="event-terms"),
    path("<int:event_id>/terms/questions/", TermsQuestionCreateView.as_view(), name="event-terms-questions"),
    path("<int:event_id>/terms/answers/", MyTermsAnswersView.as_view(), name="event-terms-answers"),
    path("terms/questions/<int:question_id>/", TermsQuestionDetailView.as_view(), name="terms-question-detail"),

    # Teams
    path("<int:event_id>/teams/", EventTeamListCreateView.as_view(), name="event-teams"),
    path("teams/mine/", MyTeamsView.as_view(), name="my-teams"),
    path("teams/<int:team_id>/", TeamDetailView.as_view(), name="team-detail"),
    path("teams/<int:team_id>/join/", JoinTeamView.as_view(), name="team-join"),
    path("teams/<int:team_id>/leave/", LeaveTeamView.as_view(), name="team-leave"),
    path("teams/<int:team_id>/captain/", SetTeamCaptainView.as_view(), name="team-set-captain"),
    path("teams/members/<int:member_id>/", RemoveTeamMemberView.as_view(), name="team-member-remove"),
]
