"""
views/components/question_card.py

Card for the question currently on screen.
Only the candidate-facing projection of the question is rendered; the
correct index never leaves the server.
"""

from __future__ import annotations

from typing import Optional

from hr_portal.models.question_model import Question


def render(
    question: Question,
    question_number: int,
    total: int,
    saved_answer: Optional[int] = None,
) -> dict:
    """
    Args:
        question:        Question to show
        question_number: 1-based position for display
        total:           Number of questions in the exam
        saved_answer:    Previously selected option index, if any

    Returns:
        Card view model with per-option "selected" flags.
    """
    card = question.public_dict()
    card["number"] = question_number
    card["total"] = total
    card["heading"] = f"Question {question_number}: {question.text}"
    card["selected"] = saved_answer
    card["choices"] = [
        {"index": i, "text": option, "selected": saved_answer == i}
        for i, option in enumerate(question.options)
    ]
    return card
