"""
views/components/sidebar.py

Progress summary and question navigator.

State per question:
  - current:  on screen
  - answered: an option is selected
  - open:     not answered yet
"""

from __future__ import annotations

from typing import Dict, List

from hr_portal.models.question_model import Question


def render(questions: List[Question], answers: Dict[str, int], current_index: int) -> dict:
    total = len(questions)
    answered = sum(1 for q in questions if q.id in answers)

    items = []
    for idx, q in enumerate(questions):
        if idx == current_index:
            state = "current"
        elif q.id in answers:
            state = "answered"
        else:
            state = "open"
        items.append({"index": idx, "id": q.id, "number": idx + 1, "state": state})

    return {
        "answered": answered,
        "unanswered": total - answered,
        "total": total,
        "progress": answered / total if total > 0 else 0,
        "items": items,
    }
