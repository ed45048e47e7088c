"""
services/exam_session.py

Controller for one timed, proctored exam attempt.

Lifecycle:
  start()  : load exam -> restore or create progress -> camera -> fullscreen,
             listeners and timers armed
  active   : 1s countdown, 5s auto-save, 20s AI frame review run as asyncio
             tasks; answers persist synchronously; anti-cheat events count
             violations
  submit() : single flight. Timers and listeners are torn down before the
             network call; success clears the stored progress, failure
             re-arms the UI for a retry and keeps the progress

Progress is persisted with a wall-clock timestamp so resuming always charges
the real elapsed time, whatever happened to the timers in between.
"""

import asyncio
import functools
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

import config
from hr_portal.models.question_model import Exam
from hr_portal.models.session_state import (
    AttemptSnapshot,
    AttemptState,
    ExamConfig,
    ProctoringStatus,
    SessionStatus,
    SubmissionMode,
    SubmissionResult,
    Violation,
    ViolationKind,
)
from hr_portal.models.user_model import User
from hr_portal.services.api_client import BackendClient, BackendError
from hr_portal.services.attempt_store import AttemptStore, progress_key
from hr_portal.services.camera import CameraError, CameraFailure, open_camera
from hr_portal.services.exam_service import restore_remaining, result_message
from hr_portal.services.notifier import EXIT_FULLSCREEN, REQUEST_FULLSCREEN, Notifier
from hr_portal.services.proctoring import FrameAnalysis, analyze_frame, make_client

logger = logging.getLogger(__name__)

# ── Anti-cheat events reported by the exam screen ────────────────────────────
EVENT_FULLSCREEN_EXIT = "fullscreen_exit"
EVENT_VISIBILITY_HIDDEN = "visibility_hidden"
SUPPRESSED_EVENTS = frozenset({"context_menu", "copy", "paste"})

FULLSCREEN_EXIT_REASON = "You have exited full-screen mode. This is against the exam rules."
TAB_SWITCH_REASON = "You have switched to another tab or window. Please remain on the exam page."

TERMINATED_MESSAGE = "Exam terminated due to multiple rule violations. Your answers have been submitted."
TIME_UP_MESSAGE = "Time's up! Your exam has been submitted automatically."
SUBMIT_FAILED_MESSAGE = "There was an error submitting your exam."
LOAD_FAILED_MESSAGE = "Failed to load the exam."
RESTORED_MESSAGE = "Exam progress restored."
CLOSED_MESSAGE = "The exam was closed before it started."
NOT_ASSIGNED_MESSAGE = "This exam is not assigned to you."


class SessionBlocked(RuntimeError):
    """The attempt cannot start; control goes back to the caller."""

    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title
        self.message = message


class ExamSessionController:
    def __init__(
        self,
        exam_id: str,
        user_id: int,
        backend: BackendClient,
        store: AttemptStore,
        notifier: Optional[Notifier] = None,
        camera_factory: Callable = open_camera,
        analyzer: Optional[Callable[[str], FrameAnalysis]] = None,
        exam_config: Optional[ExamConfig] = None,
        clock: Callable[[], float] = time.time,
        timers: bool = True,
        assignee: Optional[User] = None,
        on_finish: Optional[Callable[["ExamSessionController"], None]] = None,
        tick_seconds: float = config.TICK_SECONDS,
        autosave_seconds: float = config.AUTOSAVE_SECONDS,
        proctor_seconds: float = config.PROCTOR_INTERVAL_SECONDS,
    ):
        self.exam_id = exam_id
        self.user_id = user_id
        self.key = progress_key(user_id, exam_id)
        self.backend = backend
        self.store = store
        self.notifier = notifier or Notifier()
        self.exam: Optional[Exam] = None
        self.exam_config = exam_config
        self.assignee = assignee
        self.state = AttemptState()
        self.violation_log: List[Violation] = []

        self._camera_factory = camera_factory
        self._analyzer = analyzer
        self._clock = clock
        self._timers_enabled = timers
        self._on_finish = on_finish
        self._intervals = {
            "tick": tick_seconds,
            "autosave": autosave_seconds,
            "proctor": proctor_seconds,
        }

        self._camera = None
        self._closed = False
        self._listening = False
        self._analyzing = False
        self._tasks: List[asyncio.Task] = []
        self._generation = 0

    # ── Status ────────────────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self.state.status == SessionStatus.ACTIVE

    @property
    def is_submitting(self) -> bool:
        return self.state.status == SessionStatus.SUBMITTING

    @property
    def is_done(self) -> bool:
        return self.state.status in (SessionStatus.FINISHED, SessionStatus.BLOCKED, SessionStatus.CLOSED)

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def max_violations(self) -> int:
        cfg = self.exam_config or ExamConfig()
        return cfg.max_violations

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ══════════════════════════════════════════════════════════════════════════
    # Initialisation
    # ══════════════════════════════════════════════════════════════════════════

    async def start(self) -> None:
        """
        Load the exam and bring the attempt to the active state.

        Raises:
            SessionBlocked: the exam could not be loaded or no working camera
                            is available. on_finish has already been called.
            PermissionError: the exam is not assigned to the assignee.
        """
        if self.state.status != SessionStatus.LOADING:
            raise RuntimeError("Exam session already started.")
        logger.info(f"Starting exam {self.exam_id} for user {self.user_id}")

        try:
            self.exam = await self.backend.get_exam(self.exam_id)
        except BackendError as e:
            logger.error(f"Exam {self.exam_id} could not be loaded: {e}")
            self.notifier.toast(LOAD_FAILED_MESSAGE, "error")
            self._block()
            raise SessionBlocked("Exam Unavailable", LOAD_FAILED_MESSAGE) from e
        if self.assignee is not None and not self.exam.assigned_to.includes(self.assignee):
            logger.warning(f"Exam {self.exam_id} is not assigned to user {self.assignee.id}")
            self._block()
            raise PermissionError(NOT_ASSIGNED_MESSAGE)

        if self.exam_config is None:
            try:
                self.exam_config = await self.backend.get_exam_config()
            except BackendError as e:
                logger.warning(f"Exam config unavailable, using defaults: {e}")
                self.exam_config = ExamConfig()
        self._check_open()
        if self._analyzer is None:
            self._analyzer = functools.partial(
                analyze_frame,
                client=make_client(),
                sensitivity=self.exam_config.proctoring_sensitivity,
            )

        self._restore_or_init()

        if self.state.time_left == 0:
            logger.info(f"Exam {self.exam_id}: stored attempt already expired, submitting")
            self.state.status = SessionStatus.ACTIVE
            await self.submit(SubmissionMode.TIME_UP)
            return

        try:
            self._camera = await asyncio.to_thread(self._camera_factory)
        except CameraError as e:
            self._camera_blocked(e)
        except Exception as e:
            logger.error(f"Camera acquisition failed: {type(e).__name__}: {e}")
            self._camera_blocked(CameraError(CameraFailure.UNKNOWN, str(e)))
        self._check_open()

        # Intentional: a fresh attempt is not stored until the camera is
        # secured. A camera block leaves no record behind.
        self.state.status = SessionStatus.ACTIVE
        self.state.proctoring_status = ProctoringStatus.SECURE
        self._persist()
        self._arm()

    def _restore_or_init(self) -> None:
        snapshot = self.store.load(self.key)
        if snapshot is None:
            self.state.time_left = self.exam.duration_seconds
            return

        remaining = restore_remaining(snapshot, self._now_ms())
        self.state.answers = dict(snapshot.answers)
        self.state.time_left = remaining
        if remaining > 0:
            logger.info(f"Resumed {self.key} with {remaining}s left")
            self.notifier.toast(RESTORED_MESSAGE, "success")

    def _check_open(self) -> None:
        if not self._closed:
            return
        logger.info(f"Exam {self.exam_id} closed while starting")
        self._release_camera()
        raise SessionBlocked("Exam Closed", CLOSED_MESSAGE)

    def _camera_blocked(self, error: CameraError) -> None:
        logger.warning(f"Exam {self.exam_id} blocked, camera {error.failure.value}: {error.detail}")
        self.notifier.alert("Camera Required", error.message)
        self._block()
        raise SessionBlocked("Camera Required", error.message) from error

    def _block(self) -> None:
        self.state.status = SessionStatus.BLOCKED
        self._disarm()
        self._release_camera()
        self._finish()

    # ══════════════════════════════════════════════════════════════════════════
    # Timers and listeners
    # ══════════════════════════════════════════════════════════════════════════

    def _arm(self) -> None:
        self._listening = True
        self.notifier.command(REQUEST_FULLSCREEN)
        if self._timers_enabled:
            self._start_timers()

    def _disarm(self) -> None:
        was_listening = self._listening
        self._listening = False
        self._stop_timers()
        if was_listening:
            self.notifier.command(EXIT_FULLSCREEN)

    def _start_timers(self) -> None:
        self._stop_timers()
        gen = self._generation
        jobs: List[tuple[float, Callable[[], Awaitable[None]]]] = [
            (self._intervals["tick"], self.tick),
            (self._intervals["autosave"], self.autosave),
        ]
        if self._camera is not None and self.exam_config.ai_proctoring_enabled:
            jobs.append((self._intervals["proctor"], self.analyze_frame))
        self._tasks = [asyncio.create_task(self._every(interval, job, gen)) for interval, job in jobs]

    def _stop_timers(self) -> None:
        # A loop that triggered the teardown is left to exit on its own
        # generation check so the submission it is awaiting is not cancelled.
        self._generation += 1
        current = asyncio.current_task() if self._tasks else None
        for task in self._tasks:
            if task is not current:
                task.cancel()
        self._tasks = []

    async def _every(self, interval: float, job: Callable[[], Awaitable[None]], gen: int) -> None:
        while self._generation == gen:
            await asyncio.sleep(interval)
            if self._generation != gen:
                break
            try:
                await job()
            except Exception:
                logger.exception(f"Timer job {job.__name__} failed")

    # ── Countdown ─────────────────────────────────────────────────────────────

    async def tick(self) -> None:
        """One second of the countdown. Zero triggers the time-up submission."""
        if not self.is_active:
            return
        if self.state.time_left > 0:
            self.state.time_left -= 1
        if self.state.time_left == 0:
            await self.submit(SubmissionMode.TIME_UP)

    # ── Auto-save ─────────────────────────────────────────────────────────────

    async def autosave(self) -> None:
        if not self.is_active:
            return
        self._persist()

    def _persist(self) -> None:
        snapshot = AttemptSnapshot(
            answers=dict(self.state.answers),
            time_left=self.state.time_left,
            start_time=self._now_ms(),
        )
        try:
            self.store.save(self.key, snapshot)
        except OSError as e:
            logger.error(f"Could not persist {self.key}: {e}")

    # ── AI proctoring ─────────────────────────────────────────────────────────

    async def analyze_frame(self) -> None:
        """
        Capture one frame and have it reviewed. Serial: skipped while a review
        or a submission is in flight. Review failures never count as violations.
        """
        if not self.is_active or self._analyzing or self._camera is None:
            return

        self._analyzing = True
        self.state.proctoring_status = ProctoringStatus.ANALYZING
        result: Optional[FrameAnalysis] = None
        try:
            frame = await asyncio.to_thread(self._camera.capture_jpeg)
            result = await asyncio.to_thread(self._analyzer, frame)
        except Exception as e:
            logger.warning(f"AI proctoring analysis failed, ignoring: {type(e).__name__}: {e}")
        finally:
            self._analyzing = False
            self.state.proctoring_status = ProctoringStatus.SECURE

        if result is None or not result.is_violation:
            return
        await self.record_violation(ViolationKind.AI_FLAG, result.reason)

    # ── Anti-cheat ────────────────────────────────────────────────────────────

    async def report_event(self, kind: str) -> str:
        """
        Handle an event from the exam screen.

        Returns:
            "ignored"    - listeners are not armed
            "suppressed" - context menu / copy / paste, blocked without penalty
            "violation"  - counted against the candidate
        """
        if not self._listening:
            logger.debug(f"Event {kind} ignored, listeners disarmed")
            return "ignored"
        if kind in SUPPRESSED_EVENTS:
            return "suppressed"
        if kind == EVENT_FULLSCREEN_EXIT:
            await self.record_violation(ViolationKind.FULLSCREEN_EXIT, FULLSCREEN_EXIT_REASON)
            return "violation"
        if kind == EVENT_VISIBILITY_HIDDEN:
            await self.record_violation(ViolationKind.TAB_SWITCH, TAB_SWITCH_REASON)
            return "violation"
        raise ValueError(f"Unknown exam event: {kind}")

    async def record_violation(self, kind: ViolationKind, reason: str) -> bool:
        """Count one violation. Reaching the maximum forces a submission."""
        if not self.is_active:
            logger.warning(
                f"Violation after submission began discarded "
                f"(user={self.user_id}, exam={self.exam_id}, kind={kind.value}): {reason}"
            )
            return False

        self.state.violations += 1
        self.violation_log.append(Violation(kind=kind, reason=reason))
        count, limit = self.state.violations, self.max_violations
        logger.warning(f"Violation {count}/{limit} for {self.key}: {kind.value} - {reason}")

        if count >= limit:
            await self.submit(SubmissionMode.VIOLATION)
        else:
            self.state.violation_message = reason
            self.notifier.alert("Exam Rule Violation", reason)
        return True

    def acknowledge_violation(self) -> None:
        self.state.violation_message = None
        if self._listening:
            self.notifier.command(REQUEST_FULLSCREEN)

    # ══════════════════════════════════════════════════════════════════════════
    # Answers and navigation
    # ══════════════════════════════════════════════════════════════════════════

    def select_answer(self, question_id: str, option_index: int) -> None:
        """Record an answer and persist it immediately."""
        if not self.is_active:
            raise RuntimeError("The exam is not accepting answers.")
        question = self.exam.get_question(question_id)
        if question is None:
            raise ValueError(f"Unknown question: {question_id}")
        if not 0 <= option_index < len(question.options):
            raise ValueError(f"Option {option_index} is out of range for question {question_id}.")

        self.state.answers[question_id] = option_index
        self._persist()

    def next_question(self) -> None:
        """Advance; on the last question this opens the submit confirmation."""
        total = len(self.exam.questions) if self.exam else 0
        if self.state.current_index < total - 1:
            self.state.current_index += 1
        else:
            self.request_submit()

    def previous_question(self) -> None:
        if self.state.current_index > 0:
            self.state.current_index -= 1

    def go_to(self, index: int) -> int:
        total = len(self.exam.questions) if self.exam else 0
        self.state.current_index = max(0, min(index, total - 1))
        return self.state.current_index

    def request_submit(self) -> None:
        if self.is_active:
            self.state.confirming = True

    def cancel_submit(self) -> None:
        self.state.confirming = False

    async def confirm_submit(self) -> Optional[SubmissionResult]:
        return await self.submit(SubmissionMode.MANUAL)

    # ══════════════════════════════════════════════════════════════════════════
    # Submission
    # ══════════════════════════════════════════════════════════════════════════

    async def submit(self, mode: SubmissionMode = SubmissionMode.MANUAL) -> Optional[SubmissionResult]:
        """
        Post the answers for grading. Re-entrant calls while a submission is
        in flight (or after it finished) are no-ops returning None.
        """
        if self.exam is None or not self.is_active:
            return None

        self.state.status = SessionStatus.SUBMITTING
        self.state.confirming = False
        self._disarm()

        if mode == SubmissionMode.VIOLATION:
            self.notifier.toast(TERMINATED_MESSAGE, "error")
        elif mode == SubmissionMode.TIME_UP:
            self.notifier.toast(TIME_UP_MESSAGE, "error")

        answers: Dict[str, int] = dict(self.state.answers)
        logger.info(f"Submitting {self.key} ({mode.value}, {len(answers)} answers)")
        try:
            result = await self.backend.submit_exam(self.user_id, self.exam_id, answers)
        except Exception as e:
            logger.error(f"Submission of {self.key} failed: {type(e).__name__}: {e}")
            self.notifier.toast(SUBMIT_FAILED_MESSAGE, "error")
            if self._closed:
                # Owner went away mid-flight; the attempt stays torn down.
                self.state.status = SessionStatus.CLOSED
                return None
            self.state.status = SessionStatus.ACTIVE
            self._arm()
            return None

        if mode == SubmissionMode.MANUAL:
            self.notifier.toast(result_message(result), "success" if result.passed else "error")

        self.store.delete(self.key)
        self.state.submission = result
        self.state.submission_mode = mode
        self.state.status = SessionStatus.FINISHED
        logger.info(f"Submitted {self.key}: {result.score}% {result.status}")
        self._release_camera()
        self._finish()
        return result

    # ══════════════════════════════════════════════════════════════════════════
    # Teardown
    # ══════════════════════════════════════════════════════════════════════════

    def close(self) -> None:
        """Unmount: stop everything. An unfinished attempt stays resumable."""
        self._closed = True
        if self.state.status in (SessionStatus.LOADING, SessionStatus.ACTIVE):
            self.state.status = SessionStatus.CLOSED
        self._disarm()
        self._release_camera()

    def _release_camera(self) -> None:
        camera, self._camera = self._camera, None
        if camera is None:
            return
        try:
            camera.release()
        except Exception as e:
            logger.warning(f"Camera release failed: {e}")

    def _finish(self) -> None:
        if self._on_finish is not None:
            self._on_finish(self)
