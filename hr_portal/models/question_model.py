from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hr_portal.models.user_model import Role, User


class Question(BaseModel):
    """
    Multiple-choice exam question as served by the HR backend.

    The correct index travels with the question because the backend shares one
    exam document between admin and candidate screens. Candidate-facing views
    must go through public_dict(), which never carries it.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Question identifier, unique within the exam"
    )
    text: str = Field(
        ...,
        min_length=1,
        description="Prompt text"
    )
    options: List[str] = Field(
        ...,
        description="Ordered option strings"
    )
    correct_answer_index: int = Field(
        ...,
        alias="correctAnswerIndex",
        ge=0,
        description="Index into options of the correct answer (graded server-side)"
    )

    @field_validator('options')
    @classmethod
    def validate_options_length(cls, v: List[str]) -> List[str]:
        """A question needs at least two options."""
        if len(v) < 2:
            raise ValueError("A question requires at least 2 options.")
        return v

    @model_validator(mode='after')
    def validate_answer_in_options(self) -> 'Question':
        if self.correct_answer_index >= len(self.options):
            raise ValueError(
                f"correctAnswerIndex {self.correct_answer_index} is outside options ({len(self.options)})."
            )
        return self

    def public_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "options": list(self.options)}


class Assignment(BaseModel):
    """Who an exam is assigned to. Any matching rule assigns the user."""
    roles: List[Role] = Field(default_factory=list)
    departments: List[str] = Field(default_factory=list)
    users: List[int] = Field(default_factory=list)

    def includes(self, user: User) -> bool:
        return (
            user.role in self.roles
            or user.department in self.departments
            or user.id in self.users
        )


class Exam(BaseModel):
    """Exam definition. Immutable for the duration of an attempt."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    topic: str = ""
    questions: List[Question] = Field(default_factory=list)
    duration: int = Field(
        ...,
        gt=0,
        description="Total duration in minutes"
    )
    assigned_to: Assignment = Field(default_factory=Assignment, alias="assignedTo")
    scheduled_date: Optional[str] = Field(None, alias="scheduledDate")
    due_date: Optional[str] = Field(None, alias="dueDate")
    start_time: Optional[str] = Field(None, alias="startTime")

    @property
    def duration_seconds(self) -> int:
        return self.duration * 60

    def get_question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None
