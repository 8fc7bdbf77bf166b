from django.db import InterfaceError, OperationalError
from django.http import Http404
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger("crew.core")


# -------------------------------------------------------------------
# Engine error taxonomy
# -------------------------------------------------------------------
class CrewError(APIException):
    """
    Base class for every business-rule failure raised by the engine.

    Each subclass carries a stable `default_code` so API clients can branch
    on `code` instead of parsing messages.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be completed."
    default_code = "crew_error"


class Unauthorized(CrewError):
    """Caller lacks row or action permission. Surfaced as-is, never retried."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."
    default_code = "unauthorized"


class ValidationError(CrewError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "validation_error"


class CapacityExceeded(CrewError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "No seats left."
    default_code = "capacity_exceeded"


class DuplicateEvaluation(CrewError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This evaluation was already submitted."
    default_code = "duplicate_evaluation"


class NotEligible(CrewError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not eligible to submit this evaluation."
    default_code = "not_eligible"


class NotAllowed(CrewError):
    """Role or state precondition not met."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This action is not allowed in the current state."
    default_code = "not_allowed"


class EventFinalized(NotAllowed):
    """Structural mutation attempted on a completed event."""
    default_detail = "The event is completed; its teams and members are read-only."
    default_code = "event_finalized"


class ConsistencyWarning:
    """
    A detected mismatch between Team.captain_id and the active captain
    membership row. Non-fatal: it is reported, never raised and never
    repaired automatically.
    """

    def __init__(self, team_id, captain_id, member_captain_ids):
        self.team_id = team_id
        self.captain_id = captain_id
        self.member_captain_ids = list(member_captain_ids)

    @property
    def message(self):
        if self.captain_id is None:
            return (
                f"Team {self.team_id} has no captain pointer but active captain "
                f"member(s) {self.member_captain_ids}."
            )
        return (
            f"Team {self.team_id} points to captain {self.captain_id}, who is not "
            f"an active captain member (active captain members: {self.member_captain_ids})."
        )

    def as_dict(self):
        return {
            "team_id": self.team_id,
            "captain_id": self.captain_id,
            "member_captain_ids": self.member_captain_ids,
            "message": self.message,
        }

    def __repr__(self):
        return f"<ConsistencyWarning team={self.team_id} captain={self.captain_id}>"


# -------------------------------------------------------------------
# DRF handler
# -------------------------------------------------------------------
def custom_exception_handler(exc, context):
    """
    Wrap DRF + engine exceptions into a consistent response format.

    Success responses (2xx) are not touched.
    Only errors come through here.
    """
    if isinstance(exc, (OperationalError, InterfaceError)):
        # Store connectivity: every mutation is transactional, so a retry is safe
        logger.error("Entity store unavailable: %s", exc)
        return Response(
            {
                "success": False,
                "status_code": status.HTTP_503_SERVICE_UNAVAILABLE,
                "code": "store_unavailable",
                "retriable": True,
                "errors": {"detail": "Service temporarily unavailable. Please retry."},
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    response = drf_exception_handler(exc, context)

    if response is not None:
        return Response(
            {
                "success": False,
                "status_code": response.status_code,
                "code": "not_found" if isinstance(exc, Http404) else getattr(exc, "default_code", "error"),
                "errors": response.data,
            },
            status=response.status_code,
        )

    # Unhandled exceptions -> 500
    logger.exception("Unhandled API exception", exc_info=exc)

    return Response(
        {
            "success": False,
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "code": "server_error",
            "errors": {"detail": "Internal server error."},
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
