# events/tests/test_terms.py
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import EventFinalized, NotAllowed, Unauthorized, ValidationError
from events import membership, terms
from events.models import Event, EventRegistration, TermsQuestion, TermsResponse
from .base import CrewTestMixin


class TermsFixtureMixin(CrewTestMixin):
    def setUp(self):
        self.make_users()
        self.event = self.make_event()
        terms.set_terms(self.event.id, self.admin, "Wear closed shoes and follow the team captain.")
        self.area = terms.add_question(
            self.event.id,
            self.admin,
            "Which area do you prefer?",
            question_type=TermsQuestion.TYPE_MULTIPLE_CHOICE,
            allow_multiple=True,
            options=[{"text": "Kitchen", "value": "kitchen"}, {"text": "Grill"}, {"text": "Desserts"}],
        )
        self.shirt = terms.add_question(
            self.event.id,
            self.admin,
            "Shirt size",
            question_type=TermsQuestion.TYPE_SINGLE_CHOICE,
            options=[{"text": "S"}, {"text": "M"}, {"text": "L"}],
        )
        self.allergies = terms.add_question(
            self.event.id,
            self.admin,
            "Any allergies?",
            question_type=TermsQuestion.TYPE_TEXT,
            is_required=False,
        )

    def option_ids(self, question):
        return [option.id for option in question.options.order_by("order")]

    def valid_answers(self):
        return [
            {"question_id": self.area.id, "selected_options": self.option_ids(self.area)[:2]},
            {"question_id": self.shirt.id, "selected_options": self.option_ids(self.shirt)[1:2]},
        ]


class RegisterWithTermsTest(TermsFixtureMixin, TestCase):
    def test_registration_requires_accepting_terms(self):
        with self.assertRaises(NotAllowed):
            membership.register(self.event.id, self.v1.id, answers=self.valid_answers())

        self.assertFalse(EventRegistration.objects.filter(event=self.event).exists())

    def test_accepted_terms_are_recorded_with_answers(self):
        reg = membership.register(
            self.event.id, self.v1.id, terms_accepted=True, answers=self.valid_answers()
        )

        self.assertTrue(reg.terms_accepted)
        self.assertIsNotNone(reg.terms_accepted_at)
        answer = TermsResponse.objects.get(user=self.v1, question=self.area)
        self.assertEqual(answer.selected_options, self.option_ids(self.area)[:2])
        self.assertEqual(answer.event_id, self.event.id)

    def test_missing_required_answer_is_rejected(self):
        answers = self.valid_answers()[:1]

        with self.assertRaises(ValidationError) as ctx:
            membership.register(self.event.id, self.v1.id, terms_accepted=True, answers=answers)

        self.assertIn(str(self.shirt.id), ctx.exception.detail["answers"])
        self.assertFalse(EventRegistration.objects.filter(event=self.event).exists())
        self.assertFalse(TermsResponse.objects.exists())

    def test_single_choice_takes_one_option(self):
        answers = self.valid_answers()
        answers[1]["selected_options"] = self.option_ids(self.shirt)[:2]

        with self.assertRaises(ValidationError):
            membership.register(self.event.id, self.v1.id, terms_accepted=True, answers=answers)

    def test_option_from_another_question_is_rejected(self):
        answers = self.valid_answers()
        answers[1]["selected_options"] = self.option_ids(self.area)[:1]

        with self.assertRaises(ValidationError):
            membership.register(self.event.id, self.v1.id, terms_accepted=True, answers=answers)

    def test_optional_text_answer_is_stored(self):
        answers = self.valid_answers() + [
            {"question_id": self.allergies.id, "text_response": "Peanuts"}
        ]

        membership.register(self.event.id, self.v1.id, terms_accepted=True, answers=answers)

        self.assertEqual(
            TermsResponse.objects.get(user=self.v1, question=self.allergies).text_response, "Peanuts"
        )

    def test_cancel_clears_acceptance(self):
        membership.register(self.event.id, self.v1.id, terms_accepted=True, answers=self.valid_answers())

        reg = membership.cancel_registration(self.event.id, self.v1.id)

        self.assertFalse(reg.terms_accepted)
        self.assertIsNone(reg.terms_accepted_at)
        with self.assertRaises(NotAllowed):
            membership.register(self.event.id, self.v1.id)

    def test_retired_question_is_no_longer_required(self):
        terms.retire_question(self.shirt.id, self.admin)

        reg = membership.register(
            self.event.id, self.v1.id, terms_accepted=True, answers=self.valid_answers()[:1]
        )

        self.assertTrue(reg.terms_accepted)

    def test_optional_terms_do_not_gate(self):
        terms.set_terms(self.event.id, self.admin, "Photos may be taken.", is_required=False)

        reg = membership.register(self.event.id, self.v1.id)

        self.assertFalse(reg.terms_accepted)
        self.assertEqual(reg.status, EventRegistration.STATUS_PENDING)

    def test_inactive_terms_do_not_gate(self):
        terms.set_terms(self.event.id, self.admin, "Old terms", is_active=False)

        reg = membership.register(self.event.id, self.v1.id)

        self.assertFalse(reg.terms_accepted)


class ManageTermsTest(TermsFixtureMixin, TestCase):
    def test_volunteer_cannot_edit_terms(self):
        with self.assertRaises(Unauthorized):
            terms.set_terms(self.event.id, self.v1, "My own rules")

    def test_choice_question_needs_options(self):
        with self.assertRaises(ValidationError):
            terms.add_question(self.event.id, self.admin, "Pick one", TermsQuestion.TYPE_SINGLE_CHOICE)

    def test_questions_are_appended_in_order(self):
        self.assertEqual(
            [q.id for q in terms.active_questions(self.event)],
            [self.area.id, self.shirt.id, self.allergies.id],
        )
        self.assertEqual(self.allergies.order, 3)

    def test_completed_event_terms_are_read_only(self):
        Event.objects.filter(pk=self.event.pk).update(status=Event.STATUS_COMPLETED)

        with self.assertRaises(EventFinalized):
            terms.set_terms(self.event.id, self.admin, "Changed")
        with self.assertRaises(EventFinalized):
            terms.retire_question(self.area.id, self.admin)


class TermsApiTestCase(TermsFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def auth(self, user):
        self.client.force_authenticate(user=user)

    def test_volunteer_reads_terms_and_questions(self):
        self.auth(self.v1)

        resp = self.client.get(reverse("event-terms", args=[self.event.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertTrue(data["terms"]["is_required"])
        self.assertEqual([q["id"] for q in data["questions"]], [self.area.id, self.shirt.id, self.allergies.id])
        self.assertEqual(len(data["questions"][0]["options"]), 3)

    def test_register_without_accepting_is_not_allowed(self):
        self.auth(self.v1)

        resp = self.client.post(reverse("event-register", args=[self.event.id]), {}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.json()["code"], "not_allowed")

    def test_register_with_answers_then_read_them_back(self):
        self.auth(self.v1)

        resp = self.client.post(
            reverse("event-register", args=[self.event.id]),
            {"terms_accepted": True, "answers": self.valid_answers()},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.json()["terms_accepted"])

        resp = self.client.get(reverse("event-terms-answers", args=[self.event.id]))
        self.assertEqual({a["question"] for a in resp.json()}, {self.area.id, self.shirt.id})

    def test_admin_adds_and_retires_a_question(self):
        self.auth(self.admin)

        resp = self.client.post(
            reverse("event-terms-questions", args=[self.event.id]),
            {"text": "Bringing a car?", "question_type": "single_choice",
             "options": [{"text": "Yes"}, {"text": "No"}]},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        question_id = resp.json()["id"]

        resp = self.client.delete(reverse("terms-question-detail", args=[question_id]))

        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(TermsQuestion.objects.get(pk=question_id).is_active)
