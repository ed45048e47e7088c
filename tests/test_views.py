#!/usr/bin/env python3
"""
Unit tests for the exam screen view models
"""

import unittest
import sys
import os

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fakes import FakeBackend, FakeCamera, FakeClock, make_exam
from hr_portal.models.session_state import ExamConfig, SubmissionResult
from hr_portal.services.attempt_store import MemoryAttemptStore
from hr_portal.services.exam_session import ExamSessionController
from hr_portal.services.proctoring import FrameAnalysis
from hr_portal.views import exam_view, instructions_view
from hr_portal.views.components import question_card, sidebar, timer


class TestComponents(unittest.TestCase):
    """Timer, navigator and question card"""

    def test_timer(self):
        view = timer.render(125)
        self.assertEqual(view["display"], "02:05")
        self.assertFalse(view["warning"])
        self.assertEqual(view["label"], "2 minutes and 5 seconds remaining")
        self.assertTrue(timer.render(59)["warning"])

    def test_sidebar(self):
        questions = make_exam(count=3).questions
        view = sidebar.render(questions, {"q1": 0, "q3": 1}, current_index=2)

        self.assertEqual(view["answered"], 2)
        self.assertEqual(view["unanswered"], 1)
        self.assertEqual([item["state"] for item in view["items"]], ["answered", "open", "current"])
        self.assertEqual(sidebar.render([], {}, 0)["progress"], 0)

    def test_question_card_hides_answer(self):
        question = make_exam(count=1).questions[0]
        card = question_card.render(question, question_number=1, total=1, saved_answer=2)

        self.assertNotIn("correct_answer_index", card)
        self.assertNotIn("correctAnswerIndex", card)
        self.assertEqual(card["heading"], "Question 1: Question text 1")
        self.assertEqual([c["selected"] for c in card["choices"]], [False, False, True, False])


class TestInstructionsView(unittest.TestCase):
    def test_rules_follow_config(self):
        exam = make_exam(duration=30, count=5)
        view = instructions_view.render(exam, ExamConfig(max_violations=2, ai_proctoring_enabled=False))

        self.assertEqual(view["duration"], "30 minutes")
        self.assertEqual(view["questions"], "5 multiple-choice")
        self.assertTrue(any("After 2 rule violation(s)" in rule for rule in view["rules"]))
        self.assertFalse(any("AI proctor" in rule for rule in view["rules"]))


class TestExamView(unittest.IsolatedAsyncioTestCase):
    """Exam screen built from a live controller"""

    async def asyncSetUp(self):
        self.backend = FakeBackend(exam=make_exam(duration=10, count=2))
        self.controller = ExamSessionController(
            exam_id="exam-1",
            user_id=1,
            backend=self.backend,
            store=MemoryAttemptStore(),
            camera_factory=FakeCamera,
            analyzer=lambda frame: FrameAnalysis(False, "Secure"),
            clock=FakeClock(),
            timers=False,
        )

    async def test_loading(self):
        view = exam_view.render(self.controller)
        self.assertTrue(view["loading"])
        self.assertNotIn("header", view)

    async def test_active_screen(self):
        await self.controller.start()
        self.controller.select_answer("q1", 1)
        view = exam_view.render(self.controller)

        self.assertEqual(view["status"], "active")
        self.assertEqual(view["header"]["proctoring"], "AI Proctor: Secure")
        self.assertEqual(view["header"]["timer"]["display"], "10:00")
        self.assertFalse(view["header"]["show_violations"])
        self.assertEqual(view["card"]["selected"], 1)
        self.assertEqual(view["controls"]["next_label"], "Next")
        self.assertFalse(view["controls"]["previous_enabled"])
        self.assertNotIn("confirm", view)

        self.controller.next_question()
        view = exam_view.render(self.controller)
        self.assertEqual(view["controls"]["next_label"], "Submit Exam")
        self.assertEqual(view["controls"]["position"], "Question 2 of 2")

    async def test_confirm_mentions_unanswered(self):
        await self.controller.start()
        self.controller.request_submit()
        view = exam_view.render(self.controller)
        self.assertTrue(view["confirm"]["message"].startswith("You have 2 unanswered question(s)."))

    async def test_violation_modal(self):
        await self.controller.start()
        await self.controller.report_event("visibility_hidden")
        view = exam_view.render(self.controller)

        self.assertEqual(view["violation"]["title"], "Exam Rule Violation")
        self.assertEqual(view["header"]["violations"], 1)
        self.assertEqual(view["header"]["max_violations"], 3)

    async def test_manual_result_shows_score(self):
        self.backend.result = SubmissionResult(score=90, status="Passed")
        await self.controller.start()
        await self.controller.confirm_submit()

        result = exam_view.render(self.controller)["result"]
        self.assertEqual(result, {"mode": "manual", "score": 90, "status": "Passed"})

    async def test_forced_result_hides_score(self):
        await self.controller.start()
        for _ in range(3):
            await self.controller.report_event("fullscreen_exit")

        result = exam_view.render(self.controller)["result"]
        self.assertEqual(result, {"mode": "violation"})


if __name__ == '__main__':
    unittest.main()
