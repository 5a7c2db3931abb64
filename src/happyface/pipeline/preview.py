"""
Optional OpenCV preview window for a running session.

Shows the camera frame with the current instruction, the countdown and
progress bar, and a small live readout of the smile and frown channels.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import cv2
import numpy as np

from ..metrics.aggregator import BiomarkerRecord, radar_scores


@dataclass
class PreviewConfig:
    window_name: str = "HappyFace"
    width: int = 640
    height: int = 480
    show_debug: bool = True


class PreviewWindow:
    """Draws session status over camera frames. Q quits."""

    def __init__(self, config: Optional[PreviewConfig] = None):
        self.config = config or PreviewConfig()
        self._window_created = False
        self._should_quit = False

    def _create_window(self) -> None:
        if self._window_created:
            return
        cv2.namedWindow(self.config.window_name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.config.window_name, self.config.width, self.config.height)
        self._window_created = True

    def _blank(self) -> np.ndarray:
        return np.zeros((self.config.height, self.config.width, 3), dtype=np.uint8)

    def draw_status(
        self,
        frame: Optional[np.ndarray],
        status: dict,
        readout: Optional[Dict[str, float]] = None,
    ) -> np.ndarray:
        """Overlay instruction, countdown and progress onto a copy of the frame."""
        canvas = frame.copy() if frame is not None else self._blank()
        h, w = canvas.shape[:2]

        # Instruction banner
        cv2.rectangle(canvas, (0, 0), (w, 40), (0, 0, 0), -1)
        cv2.putText(canvas, status["instruction"], (10, 27),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 200, 255), 2, cv2.LINE_AA)

        remaining = status.get("remaining_s")
        label = str(remaining) if remaining is not None else "-"
        cv2.putText(canvas, label, (w - 50, h - 30),
                    cv2.FONT_HERSHEY_SIMPLEX, 1.5, (255, 255, 255), 3, cv2.LINE_AA)

        # Progress bar
        bar_y = h - 15
        bar_max_width = w - 20
        cv2.rectangle(canvas, (10, bar_y), (10 + bar_max_width, bar_y + 10), (50, 50, 50), -1)
        bar_width = int(max(0.0, min(1.0, status.get("progress", 0.0))) * bar_max_width)
        cv2.rectangle(canvas, (10, bar_y), (10 + bar_width, bar_y + 10), (0, 255, 0), -1)

        if self.config.show_debug:
            if readout is None:
                cv2.putText(canvas, "NO FACE", (10, 65),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 255), 1, cv2.LINE_AA)
            else:
                cv2.putText(canvas, f"smile L+R: {readout['smile_sum']:.3f}", (10, 65),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.45, (255, 255, 255), 1, cv2.LINE_AA)
                cv2.putText(canvas, f"frown: {readout['frown']:.3f}", (10, 85),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.45, (255, 255, 255), 1, cv2.LINE_AA)

        return canvas

    def draw_result(self, record: BiomarkerRecord) -> np.ndarray:
        """Summary label and the five radar scores as horizontal bars."""
        canvas = self._blank()
        color = (0, 200, 0) if record.is_normal else (0, 165, 255)
        cv2.putText(canvas, record.summary, (20, 50),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2, cv2.LINE_AA)

        y = 100
        for name, score in radar_scores(record).items():
            cv2.putText(canvas, name.replace("_", " "), (20, y),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1, cv2.LINE_AA)
            cv2.rectangle(canvas, (200, y - 12), (200 + int(score * 3), y), (100, 200, 100), -1)
            cv2.putText(canvas, f"{score:.0f}", (210 + int(score * 3), y),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, (255, 255, 255), 1, cv2.LINE_AA)
            y += 35
        return canvas

    def show(self, image: np.ndarray, wait_ms: int = 1) -> None:
        self._create_window()
        cv2.imshow(self.config.window_name, image)
        key = cv2.waitKey(wait_ms) & 0xFF
        if key == ord("q") or key == ord("Q"):
            self._should_quit = True

    @property
    def should_quit(self) -> bool:
        return self._should_quit

    def reset_quit(self) -> None:
        self._should_quit = False

    def close(self) -> None:
        if self._window_created:
            cv2.destroyWindow(self.config.window_name)
            self._window_created = False
