"""
views/instructions_view.py — pre-exam instructions screen

Shown before every attempt: duration, question count, the rules the
proctored session enforces, and the start button.
"""

from __future__ import annotations

from hr_portal.models.question_model import Exam
from hr_portal.models.session_state import ExamConfig

RULES = [
    "Ensure you have a stable internet connection and a working webcam.",
    "This is a timed exam. It will submit automatically when time runs out.",
    "Do not refresh the page or use the browser's back/forward buttons.",
    "Switching to other tabs or applications is not permitted and will be flagged.",
    "Leaving full-screen mode is not permitted and will be flagged.",
    "Copying and pasting text is disabled.",
]


def render(exam: Exam, exam_config: ExamConfig) -> dict:
    rules = list(RULES)
    if exam_config.ai_proctoring_enabled:
        rules.append("Your webcam will be reviewed periodically by an AI proctor.")
    rules.append(
        f"After {exam_config.max_violations} rule violation(s) your exam is "
        "submitted automatically."
    )
    return {
        "exam_id": exam.id,
        "title": exam.title,
        "topic": exam.topic,
        "duration": f"{exam.duration} minutes",
        "questions": f"{len(exam.questions)} multiple-choice",
        "passing_score": exam_config.passing_score,
        "rules": rules,
        "start_label": "Start Exam",
    }
