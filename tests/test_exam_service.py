#!/usr/bin/env python3
"""
Unit tests for the exam helper functions and models
"""

import unittest
import sys
import os

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError

from fakes import make_exam
from hr_portal.models.question_model import Assignment, Exam, Question
from hr_portal.models.session_state import AttemptSnapshot, ExamConfig, SubmissionResult
from hr_portal.models.user_model import Role, User
from hr_portal.services.exam_service import (
    count_unanswered,
    format_time,
    restore_remaining,
    result_message,
)


class TestRestoreRemaining(unittest.TestCase):
    """Resume arithmetic"""

    def test_elapsed_whole_seconds_charged(self):
        snapshot = AttemptSnapshot(time_left=600, start_time=1_000_000)
        self.assertEqual(restore_remaining(snapshot, 1_000_000), 600)
        self.assertEqual(restore_remaining(snapshot, 1_000_999), 600)
        self.assertEqual(restore_remaining(snapshot, 1_001_000), 599)
        self.assertEqual(restore_remaining(snapshot, 1_300_000), 300)

    def test_never_negative(self):
        snapshot = AttemptSnapshot(time_left=10, start_time=0)
        self.assertEqual(restore_remaining(snapshot, 3_600_000), 0)

    def test_clock_behind_snapshot(self):
        snapshot = AttemptSnapshot(time_left=10, start_time=5_000)
        self.assertEqual(restore_remaining(snapshot, 1_000), 10)


class TestFormatting(unittest.TestCase):
    """Timer text and result toast"""

    def test_format_time(self):
        self.assertEqual(format_time(0), "00:00")
        self.assertEqual(format_time(59), "00:59")
        self.assertEqual(format_time(600), "10:00")
        self.assertEqual(format_time(3599), "59:59")
        self.assertEqual(format_time(-5), "00:00")

    def test_result_message(self):
        self.assertEqual(
            result_message(SubmissionResult(score=80.0, status="Passed")),
            "Exam submitted! Your score: 80%. Status: Passed",
        )
        self.assertEqual(
            result_message(SubmissionResult(score=66.5, status="Failed")),
            "Exam submitted! Your score: 66.5%. Status: Failed",
        )
        self.assertTrue(SubmissionResult(score=80, status="Passed").passed)

    def test_count_unanswered(self):
        exam = make_exam(count=3)
        self.assertEqual(count_unanswered(exam, {}), 3)
        self.assertEqual(count_unanswered(exam, {"q1": 0, "q3": 2}), 1)


class TestModels(unittest.TestCase):
    """Validation rules on the wire models"""

    def test_question_validation(self):
        with self.assertRaises(ValidationError):
            Question(id="q1", text="Only one", options=["A"], correct_answer_index=0)
        with self.assertRaises(ValidationError):
            Question(id="q1", text="Out of range", options=["A", "B"], correct_answer_index=2)

    def test_question_public_dict_hides_answer(self):
        question = Question.model_validate(
            {"id": "q1", "text": "Pick", "options": ["A", "B"], "correctAnswerIndex": 1}
        )
        self.assertEqual(question.public_dict(), {"id": "q1", "text": "Pick", "options": ["A", "B"]})

    def test_exam_from_backend_payload(self):
        exam = Exam.model_validate({
            "id": "e1",
            "title": "Onboarding",
            "duration": 15,
            "questions": [{"id": "q1", "text": "Pick", "options": ["A", "B"], "correctAnswerIndex": 0}],
            "assignedTo": {"roles": ["Applicant"], "departments": [], "users": []},
            "dueDate": "2026-12-01",
        })
        self.assertEqual(exam.duration_seconds, 900)
        self.assertIsNone(exam.get_question("q2"))
        self.assertEqual(exam.due_date, "2026-12-01")

        with self.assertRaises(ValidationError):
            Exam(id="e1", title="Zero", duration=0)

    def test_assignment(self):
        user = User(id=3, name="Dana", email="dana@example.com", role=Role.EMPLOYEE, department="Sales")
        self.assertTrue(Assignment(departments=["Sales"]).includes(user))
        self.assertTrue(Assignment(users=[3]).includes(user))
        self.assertFalse(Assignment(roles=[Role.APPLICANT]).includes(user))

    def test_snapshot_record_uses_storage_names(self):
        snapshot = AttemptSnapshot(answers={"q1": 2}, time_left=120, start_time=42)
        self.assertEqual(snapshot.to_record(), {"answers": {"q1": 2}, "timeLeft": 120, "startTime": 42})
        with self.assertRaises(ValidationError):
            AttemptSnapshot(time_left=-1)

    def test_exam_config_aliases(self):
        cfg = ExamConfig.model_validate({
            "passingScore": 80,
            "aiProctoringEnabled": False,
            "proctoringSensitivity": "Strict",
            "maxViolations": 5,
        })
        self.assertEqual(cfg.max_violations, 5)
        self.assertFalse(cfg.ai_proctoring_enabled)
        with self.assertRaises(ValidationError):
            ExamConfig.model_validate({"proctoringSensitivity": "Paranoid"})


if __name__ == '__main__':
    unittest.main()
