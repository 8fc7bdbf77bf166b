# events/terms.py
"""
Per-event participation terms and their questionnaire.

An event may carry one terms text plus ordered questions (single choice,
multiple choice or free text). While the terms are active and required,
`membership.register` only opens a registration for a volunteer who accepts
them and answers every required question; the answers are stored next to
the registration. Questions are retired rather than deleted so answers
already given keep their question.
"""
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404

from core.exceptions import NotAllowed, ValidationError
from . import datetime_utils
from .membership import ensure_not_finalized, lock_event
from .models import Event, EventTerms, TermsQuestion, TermsQuestionOption, TermsResponse
from .policies import CrewPolicy, enforce

logger = logging.getLogger("crew.events")

CHOICE_TYPES = (TermsQuestion.TYPE_SINGLE_CHOICE, TermsQuestion.TYPE_MULTIPLE_CHOICE)


def _ensure_editable(event: Event):
    ensure_not_finalized(event)
    if event.status == Event.STATUS_CANCELLED:
        raise NotAllowed("Cancelled events cannot be edited")


def active_terms(event):
    return EventTerms.objects.filter(event=event, is_active=True).first()


def active_questions(event):
    return (
        TermsQuestion.objects.filter(event=event, is_active=True)
        .prefetch_related("options")
        .order_by("order", "id")
    )


# ─────────────────────────────────────────────────────────────
# Management (event managers)
# ─────────────────────────────────────────────────────────────

def set_terms(event_id, actor, content, is_required=True, is_active=True) -> EventTerms:
    """Create or replace the event's terms text."""
    content = (content or "").strip()
    if not content:
        raise ValidationError({"content": "Terms text is required."})

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_edit_event(actor, event))
        _ensure_editable(event)

        terms, created = EventTerms.objects.update_or_create(
            event=event,
            defaults={
                "content": content,
                "is_required": is_required,
                "is_active": is_active,
                "created_by": actor,
            },
        )
        logger.info(
            f"Event terms {'created' if created else 'updated'}: event={event.id}, "
            f"required={is_required}, active={is_active}, actor={getattr(actor, 'id', 'system')}"
        )

    return terms


def add_question(event_id, actor, text, question_type=TermsQuestion.TYPE_MULTIPLE_CHOICE,
                 is_required=True, allow_multiple=False, options=()) -> TermsQuestion:
    """
    Append a question. Choice questions need at least one option; each option
    is a dict with `text` and an optional `value`.
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError({"text": "Question text is required."})
    if question_type not in dict(TermsQuestion.TYPE_CHOICES):
        raise ValidationError({"question_type": f"Invalid question type: {question_type}"})

    option_rows = []
    for index, option in enumerate(options or (), start=1):
        option_text = (option.get("text") or "").strip()
        if not option_text:
            raise ValidationError({"options": "Option text is required."})
        value = (option.get("value") or option_text).strip()[:100]
        option_rows.append((option_text, value, index))

    if question_type in CHOICE_TYPES and not option_rows:
        raise ValidationError({"options": "Choice questions need at least one option."})
    if question_type == TermsQuestion.TYPE_TEXT and option_rows:
        raise ValidationError({"options": "Text questions do not take options."})

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_edit_event(actor, event))
        _ensure_editable(event)

        order = TermsQuestion.objects.filter(event=event).count() + 1
        question = TermsQuestion.objects.create(
            event=event,
            text=text,
            question_type=question_type,
            is_required=is_required,
            allow_multiple=allow_multiple and question_type == TermsQuestion.TYPE_MULTIPLE_CHOICE,
            order=order,
        )
        TermsQuestionOption.objects.bulk_create([
            TermsQuestionOption(question=question, text=option_text, value=value, order=index)
            for option_text, value, index in option_rows
        ])
        logger.info(f"Terms question added: event={event.id}, question={question.id}, type={question_type}")

    return question


def retire_question(question_id, actor) -> TermsQuestion:
    event_id = (
        TermsQuestion.objects.filter(pk=question_id).values_list("event_id", flat=True).first()
    )
    if event_id is None:
        get_object_or_404(TermsQuestion, pk=question_id)

    with transaction.atomic():
        event = lock_event(event_id)
        enforce(CrewPolicy.can_edit_event(actor, event))
        _ensure_editable(event)

        question = TermsQuestion.objects.select_for_update().get(pk=question_id)
        if question.is_active:
            question.is_active = False
            question.save(update_fields=["is_active"])
            logger.info(f"Terms question retired: event={event.id}, question={question.id}")

    return question


# ─────────────────────────────────────────────────────────────
# Answers (registration)
# ─────────────────────────────────────────────────────────────

def clean_answers(event, answers):
    """
    Validate answers against the event's active questions.

    `answers` is a list of {"question_id", "selected_options", "text_response"}.
    Returns [(question, option_ids, text)] for the questions answered, or
    raises ValidationError keyed by question id.
    """
    questions = {q.id: q for q in active_questions(event)}
    errors = {}
    by_question = {}

    for answer in answers or ():
        question_id = answer.get("question_id")
        question = questions.get(question_id)
        if question is None:
            errors[str(question_id)] = "Unknown question for this event."
            continue
        if question_id in by_question:
            errors[str(question_id)] = "Answered more than once."
            continue

        if question.takes_text:
            text = (answer.get("text_response") or "").strip()
            if not text and question.is_required:
                errors[str(question_id)] = "A text answer is required."
                continue
            by_question[question_id] = (question, [], text)
            continue

        selected = list(answer.get("selected_options") or [])
        valid_ids = {option.id for option in question.options.all() if option.is_active}
        unknown = [option_id for option_id in selected if option_id not in valid_ids]
        if unknown:
            errors[str(question_id)] = f"Unknown options: {unknown}."
        elif len(set(selected)) != len(selected):
            errors[str(question_id)] = "An option was selected more than once."
        elif len(selected) > 1 and not question.accepts_many:
            errors[str(question_id)] = "Only one option may be selected."
        elif not selected and question.is_required:
            errors[str(question_id)] = "Select at least one option."
        else:
            by_question[question_id] = (question, selected, "")

    for question_id, question in questions.items():
        if question.is_required and question_id not in by_question and str(question_id) not in errors:
            errors[str(question_id)] = f"'{question.text}' is required."

    if errors:
        raise ValidationError({"answers": errors})
    return list(by_question.values())


def record_answers(event, user_id, cleaned):
    """Upsert the caller's answers. Runs inside the registration transaction."""
    now = datetime_utils.now()
    for question, option_ids, text in cleaned:
        TermsResponse.objects.update_or_create(
            user_id=user_id,
            question=question,
            defaults={
                "event": event,
                "selected_options": option_ids,
                "text_response": text,
                "responded_at": now,
            },
        )
    if cleaned:
        logger.info(f"Terms answers recorded: event={event.id}, user={user_id}, answers={len(cleaned)}")


def answers_for(event_id, user_id):
    return (
        TermsResponse.objects.filter(event_id=event_id, user_id=user_id)
        .select_related("question")
        .order_by("question__order", "question_id")
    )
