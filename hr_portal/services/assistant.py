"""
services/assistant.py

AI HR assistant chat.

Each browser session owns one AssistantSession; the transcript lives on that
object and goes away with it (logout, session expiry). Nothing is shared at
module level, so one user's conversation can never leak into another's.
"""

import json
import logging
from typing import Any, Iterator, List, Optional

from openai import OpenAI, APIError

from config import MODEL_NAME
from hr_portal.models.user_model import Role, User
from hr_portal.services.proctoring import make_client

logger = logging.getLogger(__name__)

STREAM_FAILED_REPLY = "Sorry, I encountered an error. Please try again."

_GENERAL_PROMPT = """You are the company's AI HR Assistant, designed to provide expert-level support.

**Your Persona:**
- **Professional & Friendly:** Maintain a helpful, polite, and professional tone at all times.
- **Data-Driven:** Base your answers on the context provided. If no context is given for a data-heavy question, state that you need the relevant data to answer accurately.
- **Concise & Clear:** Use markdown lists and bold text to improve readability.
- **Secure & Confidential:** Never invent personal employee data or sensitive information. Do not provide financial advice or personal opinions.

**Core Capabilities:**
1. **General HR Queries:** Answer questions about standard company policies.
2. **Contextual Data Analysis:** When a message includes a '[CONTEXT BLOCK]', you MUST use that data for your analysis. Preface the analysis with "Based on the provided data...".

**Analytical Functions (activated by a [CONTEXT BLOCK]):**
- Leave analysis and forecasting: scheduling conflicts, periods of high absence, departmental trends.
- Sentiment analysis of anonymous employee feedback.
- Exam performance analysis: pass rates, average scores, low-performing exams.
- Attrition risk analysis from sick leave, failed exams and login activity.
- Personal data queries: the user's own leave balance or exam history."""

_ADMIN_DIRECTIVES = """

**Admin Role Directives:**
- You are assisting an Admin user, {name}. They have full access to all HR data.
- Provide company-wide insights by default. If the admin asks about a specific department, narrow your focus accordingly."""

_EMPLOYEE_DIRECTIVES = """

**Employee Role Directives:**
- You are assisting an Employee, {name}, from the '{department}' department.
- Your access is limited. You MUST scope your answers to the user's personal data or their department's data. Do not reveal information about other departments or employees."""

_ONBOARDING_PROMPT = """You are the company's friendly and helpful AI Onboarding Assistant.
Your role is to assist newly approved applicants with their questions about the onboarding process.
Common topics include required documentation, company culture, dress code, what to expect on the first day, and who their point of contact is.
Provide encouraging, clear, and concise answers. Maintain a positive and welcoming tone.
Do not answer questions outside the scope of onboarding. If asked an unrelated question, politely steer the conversation back to onboarding topics."""


def system_prompt_for(user: User) -> str:
    if user.role == Role.APPLICANT:
        return _ONBOARDING_PROMPT
    prompt = _GENERAL_PROMPT
    if user.role == Role.ADMIN:
        prompt += _ADMIN_DIRECTIVES.format(name=user.name)
    elif user.role == Role.EMPLOYEE:
        prompt += _EMPLOYEE_DIRECTIVES.format(name=user.name, department=user.department)
    return prompt


def build_context_block(label: str, data: Any) -> str:
    """Wrap fetched data so the model treats it as analysis input."""
    payload = json.dumps(data, ensure_ascii=False, default=str, indent=2)
    return f"[CONTEXT BLOCK: {label}]\n{payload}\n[END CONTEXT BLOCK]"


class AssistantSession:
    def __init__(self, user: User, client: Optional[OpenAI] = None):
        self.user = user
        self._client = client
        self.history: List[dict] = []

    @property
    def client(self) -> Optional[OpenAI]:
        if self._client is None:
            self._client = make_client()
        return self._client

    def reset(self) -> None:
        self.history.clear()

    def _messages(self, content: str) -> List[dict]:
        return (
            [{"role": "system", "content": system_prompt_for(self.user)}]
            + self.history
            + [{"role": "user", "content": content}]
        )

    def stream(self, message: str, context: Optional[str] = None) -> Iterator[str]:
        """
        Send a message and yield the reply as it streams in.

        The exchange is added to the transcript only once the reply completed,
        so an interrupted stream leaves the history unchanged.

        Raises:
            ValueError:   empty message.
            RuntimeError: no OpenAI client or the API call failed.
        """
        message = message.strip()
        if not message:
            raise ValueError("Message is empty.")
        client = self.client
        if client is None:
            raise RuntimeError("The AI assistant is not configured.")

        content = f"{context}\n\n{message}" if context else message
        try:
            chunks = client.chat.completions.create(
                model=MODEL_NAME,
                messages=self._messages(content),
                stream=True,
            )
        except APIError as e:
            logger.error(f"Assistant request failed: {e}")
            raise RuntimeError("The AI assistant is unavailable right now.") from e

        parts: List[str] = []
        try:
            for chunk in chunks:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    yield delta
        except APIError as e:
            # Reply ends with an apology; transcript unchanged.
            logger.error(f"Assistant stream interrupted: {e}")
            yield STREAM_FAILED_REPLY if not parts else "\n\n" + STREAM_FAILED_REPLY
            return

        self.history.append({"role": "user", "content": content})
        self.history.append({"role": "assistant", "content": "".join(parts)})
