"""
views/router.py

Role-aware view dispatch.

Each view is declared once with the roles allowed to open it; resolve() does
the single authorization check. Views a role may not open fall back to that
role's dashboard.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from hr_portal.models.user_model import Role, User


class View(str, Enum):
    DASHBOARD = "dashboard"
    AI_ASSISTANT = "ai-assistant"
    USER_MANAGEMENT = "user-management"
    LEAVE_REQUESTS = "leave-requests"
    LEAVE_LEDGER = "leave-ledger"
    EXAM_MANAGEMENT = "exam-management"
    PRE_EXAM_INSTRUCTIONS = "pre-exam-instructions"
    EXAM_TAKING = "exam-taking"
    PROFILE_SETTINGS = "profile-settings"
    SETTINGS = "settings"
    REPORTS = "reports"
    MY_EXAMS = "my-exams"
    CREATE_ANNOUNCEMENT = "create-announcement"


ALL_ROLES: FrozenSet[Role] = frozenset(Role)
_STAFF = frozenset({Role.ADMIN, Role.EMPLOYEE})
_CANDIDATES = frozenset({Role.EMPLOYEE, Role.APPLICANT})
_ADMIN = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class Route:
    view: View
    required_roles: FrozenSet[Role]

    def allows(self, user: User) -> bool:
        return user.role in self.required_roles


ROUTES: Dict[View, Route] = {
    route.view: route
    for route in (
        Route(View.DASHBOARD, ALL_ROLES),
        Route(View.AI_ASSISTANT, _STAFF),
        Route(View.USER_MANAGEMENT, _ADMIN),
        Route(View.LEAVE_REQUESTS, _STAFF),
        Route(View.LEAVE_LEDGER, _STAFF),
        Route(View.EXAM_MANAGEMENT, _ADMIN),
        Route(View.CREATE_ANNOUNCEMENT, _ADMIN),
        Route(View.PRE_EXAM_INSTRUCTIONS, _CANDIDATES),
        Route(View.EXAM_TAKING, _CANDIDATES),
        Route(View.MY_EXAMS, _CANDIDATES),
        Route(View.REPORTS, _STAFF),
        Route(View.PROFILE_SETTINGS, ALL_ROLES),
        Route(View.SETTINGS, ALL_ROLES),
    )
}

# Dashboards differ per role; the view name stays the same.
DASHBOARDS: Dict[Role, str] = {
    Role.ADMIN: "admin-dashboard",
    Role.EMPLOYEE: "employee-dashboard",
    Role.APPLICANT: "applicant-dashboard",
}


@dataclass(frozen=True)
class Resolution:
    view: View
    screen: str
    allowed: bool


class ViewRouter:
    def __init__(self, routes: Optional[Dict[View, Route]] = None):
        self.routes = routes or ROUTES

    def resolve(self, view: View, user: User) -> Resolution:
        """Return the screen to show; disallowed views fall back to the dashboard."""
        route = self.routes.get(view)
        if route is not None and route.allows(user):
            screen = DASHBOARDS[user.role] if view == View.DASHBOARD else view.value
            return Resolution(view, screen, True)
        return Resolution(View.DASHBOARD, DASHBOARDS[user.role], False)

    def require(self, view: View, user: Optional[User]) -> User:
        """Like resolve(), but raises instead of falling back."""
        if user is None:
            raise PermissionError("Not logged in.")
        if not self.resolve(view, user).allowed:
            raise PermissionError(f"{user.role.value} users cannot open {view.value}.")
        return user
