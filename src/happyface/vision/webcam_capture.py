"""
Webcam capture for the session loop.

A reader thread keeps a single slot holding the newest frame and its
monotonic timestamp. The session samples that slot at its own rate and
never waits on the camera.
"""

import time
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np
from loguru import logger

Frame = Tuple[float, np.ndarray]


@dataclass
class CaptureConfig:
    """Configuration for webcam capture."""
    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    warmup_frames: int = 5  # Dropped while auto exposure settles
    mirror: bool = True  # Selfie view
    fallback_video: Optional[str] = None  # Looped when no camera opens
    first_frame_timeout: float = 2.0
    read_retry_delay: float = 0.1


def open_source(config: CaptureConfig) -> Tuple[Optional[cv2.VideoCapture], bool]:
    """
    Open the configured camera, falling back to the video file.

    Returns:
        (capture or None, whether the fallback video is in use)
    """
    cap = cv2.VideoCapture(config.device_id)
    if cap.isOpened():
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.height)
        cap.set(cv2.CAP_PROP_FPS, config.fps)
        return cap, False
    cap.release()

    logger.warning(f"Camera {config.device_id} could not be opened")
    if config.fallback_video and Path(config.fallback_video).exists():
        video = cv2.VideoCapture(str(config.fallback_video))
        if video.isOpened():
            logger.info(f"Reading frames from {config.fallback_video}")
            return video, True
        video.release()
    return None, False


class WebcamCapture:
    """
    Background frame reader with a latest-frame slot.

    Usage:
        with WebcamCapture(CaptureConfig(device_id=0)) as camera:
            timestamp, frame = camera.latest_frame()
    """

    def __init__(self, config: Optional[CaptureConfig] = None):
        self.config = config or CaptureConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._latest: Optional[Frame] = None
        self._slot_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._first_frame = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._last_error: Optional[str] = None
        self._using_fallback = False
        self._frames_read = 0

    def _read_frames(self) -> None:
        pause = 1.0 / (self.config.fps * 2)
        while not self._stop_event.is_set():
            ok, frame = self._cap.read()
            if not ok:
                if self._using_fallback:
                    self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                else:
                    logger.warning("Camera returned no frame")
                    self._stop_event.wait(self.config.read_retry_delay)
                continue

            self._frames_read += 1
            if self._frames_read <= self.config.warmup_frames:
                continue

            if self.config.mirror:
                frame = cv2.flip(frame, 1)
            with self._slot_lock:
                self._latest = (time.monotonic(), frame)
            self._first_frame.set()

            if self._using_fallback:
                # Play video files at roughly camera speed
                self._stop_event.wait(pause)

    def start(self) -> bool:
        """
        Open the source and start the reader thread.

        Returns:
            True when running, False if nothing could be opened (see `last_error`)
        """
        if self.is_running():
            return True

        self._cap, self._using_fallback = open_source(self.config)
        if self._cap is None:
            self._last_error = f"No camera at index {self.config.device_id} and no usable fallback video"
            return False

        self._last_error = None
        self._stop_event.clear()
        self._first_frame.clear()
        self._reader = threading.Thread(target=self._read_frames, name="webcam-reader", daemon=True)
        self._reader.start()

        if self._first_frame.wait(self.config.first_frame_timeout):
            logger.info(f"Webcam capture started ({'video' if self._using_fallback else 'camera'})")
        else:
            logger.warning(f"No frame within {self.config.first_frame_timeout:.1f}s, continuing")
        return True

    def stop(self) -> None:
        """Stop reading and release the source. Safe to call more than once."""
        if self._reader is None and self._cap is None:
            return

        self._stop_event.set()
        if self._reader is not None:
            self._reader.join(timeout=2.0)
            self._reader = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        with self._slot_lock:
            self._latest = None
        logger.info(f"Webcam capture stopped after {self._frames_read} frames")

    def latest_frame(self) -> Optional[Frame]:
        """Newest (monotonic_timestamp, frame), or None before the first frame."""
        with self._slot_lock:
            return self._latest

    def is_running(self) -> bool:
        return self._reader is not None and self._reader.is_alive()

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def using_fallback(self) -> bool:
        return self._using_fallback

    @property
    def frames_read(self) -> int:
        return self._frames_read

    def __enter__(self) -> "WebcamCapture":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
