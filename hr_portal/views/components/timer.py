"""
views/components/timer.py

Countdown display for the exam header.
Under one minute the timer switches to its warning style.
"""

from hr_portal.services.exam_service import format_time

_WARNING_SECONDS = 60


def render(time_left: int) -> dict:
    """
    Args:
        time_left: Remaining seconds (never negative in the attempt state).

    Returns:
        {"display": "MM:SS", "seconds", "warning", "label"} for the header.
    """
    remaining = max(0, int(time_left))
    minutes, seconds = divmod(remaining, 60)
    return {
        "display": format_time(remaining),
        "seconds": remaining,
        "warning": remaining < _WARNING_SECONDS,
        "label": f"{minutes} minutes and {seconds} seconds remaining",
    }
