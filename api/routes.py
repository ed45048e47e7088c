"""
api/routes.py — FastAPI endpoints
"""

import asyncio
import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

import api.session as session
from hr_portal.models.session_state import ExamConfig
from hr_portal.models.user_model import Role, User
from hr_portal.services.api_client import BackendError, UnauthorizedError
from hr_portal.services.assistant import AssistantSession, build_context_block
from hr_portal.services.exam_session import NOT_ASSIGNED_MESSAGE, ExamSessionController, SessionBlocked
from hr_portal.views import exam_view, instructions_view
from hr_portal.views.router import View, ViewRouter

logger = logging.getLogger(__name__)

router = APIRouter()
views = ViewRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class LoginBody(BaseModel):
    token: str = Field(..., description="Bearer token issued by the backend")

class AnswerBody(BaseModel):
    question_id: str
    option_index: int

class NavigateBody(BaseModel):
    direction: Optional[Literal["previous", "next"]] = None
    index: Optional[int] = None

class EventBody(BaseModel):
    kind: str = Field(..., description="fullscreen_exit, visibility_hidden, context_menu, copy or paste")

class ChatBody(BaseModel):
    message: str
    include_leave_data: bool = Field(False, description="Attach the leave requests as a context block")


# ── Helpers ──────────────────────────────────────────────────────────────────

def _state(request: Request) -> dict[str, Any]:
    state = session.get_session(request.state.session_id)
    if state is None:
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")
    return state


def _require(state: dict[str, Any], view: View) -> User:
    user = state["auth"].current_user
    if user is None:
        raise HTTPException(status_code=401, detail="Not logged in.")
    try:
        return views.require(view, user)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))


def _controller(state: dict[str, Any]) -> ExamSessionController:
    controller = state["exam"]
    if controller is None:
        raise HTTPException(status_code=404, detail="No active exam.")
    return controller


def _discard(state: dict[str, Any], controller: ExamSessionController) -> None:
    if state["exam"] is controller:
        state["exam"] = None


def _backend_failure(e: BackendError) -> HTTPException:
    if isinstance(e, UnauthorizedError):
        return HTTPException(status_code=401, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


def _exam_screen(state: dict[str, Any], controller: ExamSessionController) -> dict:
    view = exam_view.render(controller)
    view["notifications"] = state["notifier"].drain()
    return view


def _user_dict(user: User) -> dict:
    return user.model_dump(mode="json", by_alias=True)


# ── Auth ─────────────────────────────────────────────────────────────────────

@router.post("/api/login")
async def login(body: LoginBody, request: Request):
    state = _state(request)
    auth = state["auth"]
    if auth.is_authenticated:
        auth.logout()
    try:
        user = await auth.login(body.token.strip())
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except BackendError as e:
        raise _backend_failure(e)
    return {"ok": True, "user": _user_dict(user), "dashboard": views.resolve(View.DASHBOARD, user).screen}


@router.post("/api/logout")
async def logout(request: Request):
    _state(request)["auth"].logout()
    return {"ok": True}


@router.get("/api/me")
async def me(request: Request):
    user = _require(_state(request), View.DASHBOARD)
    return _user_dict(user)


@router.get("/api/view/{view}")
async def resolve_view(view: str, request: Request):
    state = _state(request)
    user = _require(state, View.DASHBOARD)
    try:
        target = View(view)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown view: {view}")
    resolution = views.resolve(target, user)
    return {"view": resolution.view.value, "screen": resolution.screen, "allowed": resolution.allowed}


# ── Exam ─────────────────────────────────────────────────────────────────────

@router.get("/api/exams/{exam_id}/instructions")
async def exam_instructions(exam_id: str, request: Request):
    state = _state(request)
    user = _require(state, View.PRE_EXAM_INSTRUCTIONS)
    client = state["client"]
    try:
        exam = await client.get_exam(exam_id)
    except BackendError as e:
        raise _backend_failure(e)
    if not exam.assigned_to.includes(user):
        raise HTTPException(status_code=403, detail=NOT_ASSIGNED_MESSAGE)
    try:
        exam_config = await client.get_exam_config()
    except UnauthorizedError as e:
        raise _backend_failure(e)
    except BackendError as e:
        logger.warning(f"Exam config unavailable, using defaults: {e}")
        exam_config = ExamConfig()
    return instructions_view.render(exam, exam_config)


@router.post("/api/exams/{exam_id}/start")
async def start_exam(exam_id: str, request: Request):
    state = _state(request)
    user = _require(state, View.EXAM_TAKING)

    previous = state["exam"]
    if previous is not None:
        previous.close()
        state["exam"] = None

    controller = ExamSessionController(
        exam_id=exam_id,
        user_id=user.id,
        backend=state["client"],
        store=state["attempts"],
        notifier=state["notifier"],
        assignee=user,
    )
    # Installed before the camera wait so a logout or a second start can close it.
    state["exam"] = controller
    try:
        await controller.start()
    except SessionBlocked as e:
        _discard(state, controller)
        raise HTTPException(status_code=409, detail=e.message)
    except PermissionError as e:
        _discard(state, controller)
        raise HTTPException(status_code=403, detail=str(e))
    return _exam_screen(state, controller)


@router.get("/api/exam/state")
async def exam_state(request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    return _exam_screen(state, _controller(state))


@router.post("/api/exam/answer")
async def select_answer(body: AnswerBody, request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    try:
        controller.select_answer(body.question_id, body.option_index)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "answered_count": len(controller.state.answers)}


@router.post("/api/exam/navigate")
async def navigate(body: NavigateBody, request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    if body.direction == "previous":
        controller.previous_question()
    elif body.direction == "next":
        controller.next_question()
    elif body.index is not None:
        controller.go_to(body.index)
    else:
        raise HTTPException(status_code=422, detail="Give a direction or an index.")
    return _exam_screen(state, controller)


@router.post("/api/exam/event")
async def exam_event(body: EventBody, request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    try:
        outcome = await controller.report_event(body.kind)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"result": outcome, "violations": controller.state.violations, "status": controller.state.status.value}


@router.post("/api/exam/acknowledge")
async def acknowledge_violation(request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    controller.acknowledge_violation()
    return _exam_screen(state, controller)


@router.post("/api/exam/submit")
async def request_submit(request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    controller.request_submit()
    return _exam_screen(state, controller)


@router.post("/api/exam/cancel")
async def cancel_submit(request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    controller.cancel_submit()
    return _exam_screen(state, controller)


@router.post("/api/exam/confirm")
async def confirm_submit(request: Request):
    state = _state(request)
    _require(state, View.EXAM_TAKING)
    controller = _controller(state)
    result = await controller.confirm_submit()
    if result is not None:
        try:
            await state["auth"].refresh()
        except BackendError as e:
            logger.warning(f"User refresh after submission failed: {e}")
    view = _exam_screen(state, controller)
    view["submitted"] = result is not None
    return view


# ── AI assistant ─────────────────────────────────────────────────────────────

@router.post("/api/assistant/chat")
async def assistant_chat(body: ChatBody, request: Request):
    state = _state(request)
    user = _require(state, View.DASHBOARD)
    # Applicants chat with the onboarding assistant on their dashboard.
    if user.role != Role.APPLICANT:
        user = _require(state, View.AI_ASSISTANT)
    if not body.message.strip():
        raise HTTPException(status_code=422, detail="Message is empty.")

    context = None
    if body.include_leave_data:
        _require(state, View.LEAVE_REQUESTS)
        try:
            leave_requests = await state["client"].get_leave_requests()
        except BackendError as e:
            raise _backend_failure(e)
        context = build_context_block("Leave Requests", leave_requests)

    assistant: Optional[AssistantSession] = state["assistant"]
    if assistant is None or assistant.user.id != user.id:
        assistant = AssistantSession(user)
        state["assistant"] = assistant

    chunks = assistant.stream(body.message, context)
    try:
        first = await asyncio.to_thread(next, chunks, "")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    def _reply():
        if first:
            yield first
        yield from chunks

    return StreamingResponse(_reply(), media_type="text/plain")


@router.post("/api/assistant/reset")
async def assistant_reset(request: Request):
    state = _state(request)
    _require(state, View.DASHBOARD)
    if state["assistant"] is not None:
        state["assistant"].reset()
    return {"ok": True}
