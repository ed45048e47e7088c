"""
services/exam_service.py

Pure helpers for the exam-taking flow.
Plain Python functions: no UI code, no global state changes, no grading
(scores are always computed by the backend).
"""

from typing import Dict

from hr_portal.models.question_model import Exam
from hr_portal.models.session_state import AttemptSnapshot, SubmissionResult


def restore_remaining(snapshot: AttemptSnapshot, now_ms: int) -> int:
    """
    Re-derive the remaining seconds of a persisted attempt.

    Elapsed time comes from the wall clock (now - snapshot.start_time), so
    ticks missed while the process or tab was suspended are still charged.

    Args:
        snapshot: Persisted progress record.
        now_ms:   Current epoch millis.

    Returns:
        max(0, time_left - elapsed whole seconds).
    """
    elapsed = max(0, (now_ms - snapshot.start_time) // 1000)
    return max(0, snapshot.time_left - elapsed)


def format_time(seconds: int) -> str:
    """MM:SS display of a countdown. Negative input shows 00:00."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def count_unanswered(exam: Exam, answers: Dict[str, int]) -> int:
    return sum(1 for q in exam.questions if q.id not in answers)


def result_message(result: SubmissionResult) -> str:
    """Toast text shown after a normal (confirmed) submission."""
    score = int(result.score) if float(result.score).is_integer() else result.score
    return f"Exam submitted! Your score: {score}%. Status: {result.status}"
