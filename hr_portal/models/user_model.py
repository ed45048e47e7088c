"""
models/user_model.py

HR user record as returned by the backend.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    ADMIN = "Admin"
    EMPLOYEE = "Employee"
    APPLICANT = "Applicant"


class ExamStatus(str, Enum):
    PASSED = "Passed"
    FAILED = "Failed"
    PENDING = "Pending"


class ExamResult(BaseModel):
    """One line of a user's exam history."""
    id: str
    name: str
    date: str
    score: float = 0.0
    status: ExamStatus = ExamStatus.PENDING


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    email: str
    role: Role
    status: str = "Active"
    department: str = "N/A"
    phone: Optional[str] = None
    last_login: Optional[str] = Field(None, alias="lastLogin")
    exam_history: List[ExamResult] = Field(default_factory=list, alias="examHistory")
