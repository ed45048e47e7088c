"""
services/api_client.py

Async client for the HR REST backend (httpx).

Owns bearer-token attachment and 401 handling: an unauthorized response runs
the registered on_unauthorized callback (session invalidation) before raising.
Every request uses config.REQUEST_TIMEOUT, so a hung backend surfaces as a
BackendError instead of leaving a screen loading forever.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from config import BACKEND_URL, REQUEST_TIMEOUT
from hr_portal.models.question_model import Exam
from hr_portal.models.session_state import ExamConfig, SubmissionResult
from hr_portal.models.user_model import User

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnauthorizedError(BackendError):
    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(message, status_code=401)


class BackendClient:
    def __init__(
        self,
        base_url: str = BACKEND_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._token: Optional[str] = None
        self._on_unauthorized: List[Callable[[], None]] = []

    # ── Auth plumbing ─────────────────────────────────────────────────────────

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    @property
    def token(self) -> Optional[str]:
        return self._token

    def on_unauthorized(self, callback: Callable[[], None]) -> None:
        self._on_unauthorized.append(callback)

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {e}")
            raise BackendError("The server took too long to respond.") from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError("Could not reach the server.") from e

        if response.status_code == 401:
            logger.warning(f"{method} {path} -> 401, invalidating session")
            for callback in list(self._on_unauthorized):
                callback()
            raise UnauthorizedError()

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(f"{method} {path} -> {response.status_code}: {detail}")
            raise BackendError(detail, status_code=response.status_code)

        if not response.content:
            return None
        return response.json()

    # ── Endpoints ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> User:
        data = await self._request("GET", f"/users/{user_id}")
        return _parse(User, data)

    async def get_exams(self) -> List[Exam]:
        data = await self._request("GET", "/exams")
        return [_parse(Exam, item) for item in data or []]

    async def get_exam(self, exam_id: str) -> Exam:
        data = await self._request("GET", f"/exams/{exam_id}")
        return _parse(Exam, data)

    async def submit_exam(self, user_id: int, exam_id: str, answers: Dict[str, int]) -> SubmissionResult:
        data = await self._request(
            "POST",
            f"/exams/{exam_id}/submissions",
            json={"userId": user_id, "answers": answers},
        )
        return _parse(SubmissionResult, data)

    async def get_exam_config(self) -> ExamConfig:
        data = await self._request("GET", "/exam-config")
        return _parse(ExamConfig, data)

    async def get_leave_requests(self) -> List[dict]:
        data = await self._request("GET", "/leave-requests")
        return list(data or [])

    async def aclose(self) -> None:
        await self._client.aclose()


def _parse(model, data):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Malformed {model.__name__} payload: {e}")
        raise BackendError(f"The server returned an invalid {model.__name__}.") from e


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("message") or body)
    return str(body)
