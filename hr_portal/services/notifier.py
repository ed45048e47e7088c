"""
services/notifier.py

Outbox between the exam controller and the browser.
The front end polls /api/exam/state, which drains it: toasts, modal alerts
and host commands (fullscreen enter/exit) are delivered once each.
"""

import threading
from typing import List, Literal

from pydantic import BaseModel

REQUEST_FULLSCREEN = "request_fullscreen"
EXIT_FULLSCREEN = "exit_fullscreen"


class Toast(BaseModel):
    message: str
    kind: Literal["success", "error", "info"] = "success"


class Alert(BaseModel):
    title: str
    message: str


class Notifier:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._toasts: List[Toast] = []
        self._alerts: List[Alert] = []
        self._commands: List[str] = []

    def toast(self, message: str, kind: str = "success") -> None:
        with self._lock:
            self._toasts.append(Toast(message=message, kind=kind))

    def alert(self, title: str, message: str) -> None:
        with self._lock:
            self._alerts.append(Alert(title=title, message=message))

    def command(self, name: str) -> None:
        with self._lock:
            self._commands.append(name)

    def drain(self) -> dict:
        with self._lock:
            out = {
                "toasts": [t.model_dump() for t in self._toasts],
                "alerts": [a.model_dump() for a in self._alerts],
                "commands": list(self._commands),
            }
            self._toasts.clear()
            self._alerts.clear()
            self._commands.clear()
        return out

    @property
    def toasts(self) -> List[Toast]:
        with self._lock:
            return list(self._toasts)

    @property
    def commands(self) -> List[str]:
        with self._lock:
            return list(self._commands)
