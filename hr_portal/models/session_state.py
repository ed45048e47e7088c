"""
models/session_state.py

State models for one exam attempt.
Pydantic BaseModel based: (de)serialization of the persisted snapshot and type
safety for the in-memory attempt. No UI code.
"""

import time
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

import config


def now_millis() -> int:
    return int(time.time() * 1000)


class AttemptSnapshot(BaseModel):
    """
    Persisted progress record, stored under exam-progress-{userId}-{examId}.

    Attributes:
        answers:    {question id: selected option index}. Unanswered questions absent.
        time_left:  Seconds remaining at the time of the write.
        start_time: Epoch millis when this snapshot was written. Resume logic
                    derives elapsed time from it, never from counted ticks.
    """
    model_config = ConfigDict(populate_by_name=True)

    answers: Dict[str, int] = Field(
        default_factory=dict,
        description="Selected option index per question id"
    )
    time_left: int = Field(
        ...,
        ge=0,
        alias="timeLeft",
        description="Seconds remaining when written"
    )
    start_time: int = Field(
        default_factory=now_millis,
        alias="startTime",
        description="Epoch millis of the write"
    )

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


class SessionStatus(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    FINISHED = "finished"
    BLOCKED = "blocked"
    CLOSED = "closed"


class ProctoringStatus(str, Enum):
    INITIALIZING = "Initializing..."
    SECURE = "Secure"
    ANALYZING = "Analyzing..."


class SubmissionMode(str, Enum):
    MANUAL = "manual"
    TIME_UP = "time_up"
    VIOLATION = "violation"


class ViolationKind(str, Enum):
    TAB_SWITCH = "tab_switch"
    FULLSCREEN_EXIT = "fullscreen_exit"
    AI_FLAG = "ai_flag"


class Violation(BaseModel):
    kind: ViolationKind
    reason: str
    detected_at: int = Field(default_factory=now_millis)


class SubmissionResult(BaseModel):
    """Server-computed outcome. The client never grades locally."""
    score: float = Field(..., ge=0, le=100)
    status: str = Field(..., pattern="^(Passed|Failed)$")

    @property
    def passed(self) -> bool:
        return self.status == "Passed"


class ExamConfig(BaseModel):
    """Organisation-wide exam policy, editable by admins on the backend."""
    model_config = ConfigDict(populate_by_name=True)

    passing_score: float = Field(config.PASSING_SCORE, ge=0, le=100, alias="passingScore")
    ai_proctoring_enabled: bool = Field(True, alias="aiProctoringEnabled")
    proctoring_sensitivity: str = Field(
        "Moderate",
        pattern="^(Strict|Moderate|Lenient)$",
        alias="proctoringSensitivity",
    )
    max_violations: int = Field(config.MAX_VIOLATIONS, ge=1, alias="maxViolations")


class AttemptState(BaseModel):
    """
    In-memory state of the running attempt.

    Attributes:
        answers:            Selected option index per question id.
        time_left:          Seconds remaining. Never negative.
        violations:         Monotonic within the attempt; never persisted.
        current_index:      Question shown (0-based).
        status:             Lifecycle of the session.
        proctoring_status:  Label for the AI proctor indicator.
        confirming:         Submit confirmation prompt is open.
        violation_message:  Reason shown in the violation modal, None when closed.
        submission:         Outcome once the attempt has been submitted.
        submission_mode:    How the attempt ended.
    """

    answers: Dict[str, int] = Field(default_factory=dict)
    time_left: int = Field(default=0, ge=0)
    violations: int = Field(default=0, ge=0)
    current_index: int = Field(default=0, ge=0)
    status: SessionStatus = SessionStatus.LOADING
    proctoring_status: ProctoringStatus = ProctoringStatus.INITIALIZING
    confirming: bool = False
    violation_message: Optional[str] = None
    submission: Optional[SubmissionResult] = None
    submission_mode: Optional[SubmissionMode] = None

    model_config = {"validate_assignment": True}
