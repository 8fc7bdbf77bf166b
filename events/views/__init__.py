from .events import (
    EventListCreateView,
    EventDetailView,
    EventStatusView,
    EventOccupancyView,
    EventImageUploadView,
)
from .registrations import (
    RegisterEventView,
    CancelRegistrationView,
    EventRegistrationsView,
    ConfirmRegistrationView,
)
from .teams import (
    EventTeamListCreateView,
    TeamDetailView,
    JoinTeamView,
    LeaveTeamView,
    RemoveTeamMemberView,
    SetTeamCaptainView,
    MyTeamsView,
)
from .terms import (
    EventTermsView,
    TermsQuestionCreateView,
    TermsQuestionDetailView,
    MyTermsAnswersView,
)
