"""
views/exam_view.py — exam-taking screen

Layout (view model consumed by the front end):
  - header     : title, topic, AI proctor status, violations, timer
  - navigator  : question grid + progress
  - card       : current question, prev / next, submit on the last question
  - modals     : submit confirmation, rule violation, result

State source:
  - ExamSessionController.state (AttemptState)
  - ExamSessionController.exam  (Exam)
"""

from __future__ import annotations

from hr_portal.models.session_state import SessionStatus, SubmissionMode
from hr_portal.services.exam_service import count_unanswered
from hr_portal.services.exam_session import ExamSessionController
from hr_portal.views.components import question_card as qcard
from hr_portal.views.components import sidebar as nav
from hr_portal.views.components import timer as tmr

CONFIRM_TITLE = "Submit Your Exam?"
CONFIRM_MESSAGE = (
    "Are you sure you want to submit your answers? "
    "You will not be able to change them afterwards."
)


def render(controller: ExamSessionController) -> dict:
    """Exam screen view model."""
    state = controller.state
    exam = controller.exam

    view = {
        "exam_id": controller.exam_id,
        "status": state.status.value,
        "submitting": state.status == SessionStatus.SUBMITTING,
    }

    # ── Session guard ────────────────────────────────────────────────────────
    if exam is None:
        view["loading"] = state.status == SessionStatus.LOADING
        return view

    questions = exam.questions
    total = len(questions)
    current_idx = max(0, min(state.current_index, total - 1)) if total else 0

    # ── Header ───────────────────────────────────────────────────────────────
    view["header"] = {
        "title": exam.title,
        "topic": exam.topic,
        "proctoring": f"AI Proctor: {state.proctoring_status.value}",
        "violations": state.violations,
        "max_violations": controller.max_violations,
        "show_violations": state.violations > 0,
        "timer": tmr.render(state.time_left),
    }

    # ── Navigator ────────────────────────────────────────────────────────────
    view["navigator"] = nav.render(questions, state.answers, current_idx)

    # ── Question card ────────────────────────────────────────────────────────
    if total:
        current_q = questions[current_idx]
        view["card"] = qcard.render(
            question=current_q,
            question_number=current_idx + 1,
            total=total,
            saved_answer=state.answers.get(current_q.id),
        )
        is_last = current_idx == total - 1
        view["controls"] = {
            "previous_enabled": current_idx > 0,
            "next_label": "Submit Exam" if is_last else "Next",
            "position": f"Question {current_idx + 1} of {total}",
            "submit_enabled": state.status == SessionStatus.ACTIVE,
        }

    # ── Modals ───────────────────────────────────────────────────────────────
    if state.confirming:
        unanswered = count_unanswered(exam, state.answers)
        message = CONFIRM_MESSAGE
        if unanswered:
            message = f"You have {unanswered} unanswered question(s). " + message
        view["confirm"] = {"title": CONFIRM_TITLE, "message": message, "confirm_text": "Submit"}

    if state.violation_message:
        view["violation"] = {"title": "Exam Rule Violation", "message": state.violation_message}

    if state.submission is not None:
        result = {"mode": state.submission_mode.value}
        # Auto-submitted attempts show the notice only, not the score summary.
        if state.submission_mode == SubmissionMode.MANUAL:
            result["score"] = state.submission.score
            result["status"] = state.submission.status
        view["result"] = result

    return view
