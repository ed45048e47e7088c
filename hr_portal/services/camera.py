"""
services/camera.py

Webcam access for proctoring (OpenCV).

A working camera is a hard precondition of the exam: every acquisition
failure is raised as a CameraError whose failure kind maps to a distinct
blocking message.
"""

import base64
import logging
import os
import sys
from enum import Enum
from typing import Optional

import cv2

from config import CAMERA_INDEX, JPEG_QUALITY

logger = logging.getLogger(__name__)


class CameraFailure(str, Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    IN_USE = "in_use"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


CAMERA_MESSAGES = {
    CameraFailure.NOT_FOUND: (
        "Camera Not Found.\n\nWe couldn't detect a webcam. Please check that your camera is "
        "properly connected and not being used by another application. Once connected, "
        "please restart the exam to try again."
    ),
    CameraFailure.PERMISSION_DENIED: (
        "Camera Access Denied.\n\nProctoring requires camera permissions. Please allow this "
        "application to use the camera in your system settings, and then restart the exam."
    ),
    CameraFailure.IN_USE: (
        "Camera In Use.\n\nYour webcam might be in use by another application. Please close "
        "any other programs using the camera (e.g., Zoom, Skype) and restart the exam."
    ),
    CameraFailure.UNSUPPORTED: (
        "This system does not support camera access, which is required for this exam."
    ),
    CameraFailure.UNKNOWN: (
        "An unexpected error occurred while accessing the camera. Please ensure it is not in "
        "use by another application and try again."
    ),
}


class CameraError(RuntimeError):
    def __init__(self, failure: CameraFailure, detail: str = ""):
        super().__init__(CAMERA_MESSAGES[failure])
        self.failure = failure
        self.detail = detail

    @property
    def message(self) -> str:
        return CAMERA_MESSAGES[self.failure]


def _device_path(index: int) -> Optional[str]:
    if not sys.platform.startswith("linux"):
        return None
    return f"/dev/video{index}"


def _classify_open_failure(index: int) -> CameraFailure:
    """Explain why VideoCapture(index) did not open."""
    path = _device_path(index)
    if path is None:
        return CameraFailure.NOT_FOUND
    if not os.path.exists(path):
        return CameraFailure.NOT_FOUND
    if not os.access(path, os.R_OK | os.W_OK):
        return CameraFailure.PERMISSION_DENIED
    return CameraFailure.IN_USE


class OpenCVCamera:
    """Live video stream on a local device. Frames are grabbed on demand."""

    def __init__(self, index: int = CAMERA_INDEX):
        self.index = index
        if not cv2.videoio_registry.getCameraBackends():
            raise CameraError(CameraFailure.UNSUPPORTED)
        try:
            self._capture = cv2.VideoCapture(index)
        except cv2.error as e:
            raise CameraError(CameraFailure.UNKNOWN, str(e)) from e

        if not self._capture.isOpened():
            self._capture.release()
            failure = _classify_open_failure(index)
            logger.warning(f"Camera {index} did not open: {failure.value}")
            raise CameraError(failure)

        ok, _ = self._capture.read()
        if not ok:
            self._capture.release()
            logger.warning(f"Camera {index} opened but returned no frame")
            raise CameraError(CameraFailure.IN_USE)

        logger.info(f"Camera {index} ready")

    def capture_jpeg(self) -> str:
        """Grab one frame and return it as base64 JPEG text."""
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraError(CameraFailure.IN_USE, "frame grab failed")
        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), JPEG_QUALITY])
        if not ok:
            raise CameraError(CameraFailure.UNKNOWN, "JPEG encoding failed")
        return base64.b64encode(buf.tobytes()).decode("ascii")

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.index} released")


def open_camera(index: int = CAMERA_INDEX) -> OpenCVCamera:
    return OpenCVCamera(index)
