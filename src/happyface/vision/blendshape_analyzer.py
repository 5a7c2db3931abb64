"""
Facial action-unit classifier backed by MediaPipe Face Landmarker.

Runs the landmarker in video mode with blendshape output enabled and
returns the first face's blendshape scores as a name -> score mapping.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import cv2
import numpy as np
import requests
from loguru import logger

from ..errors import AcquisitionError

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)

# Lazy import for MediaPipe (heavy dependency)
_mediapipe = None


def _get_mediapipe():
    """Lazy load the mediapipe module."""
    global _mediapipe
    if _mediapipe is None:
        logger.info("Loading MediaPipe (this may take a moment)...")
        import mediapipe
        _mediapipe = mediapipe
    return _mediapipe


@dataclass
class AnalyzerConfig:
    """Configuration for the blendshape analyzer."""
    model_path: str = "models/face_landmarker.task"
    model_url: str = MODEL_URL
    download_if_missing: bool = True
    num_faces: int = 1
    min_face_detection_confidence: float = 0.5
    min_face_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


def download_model(dest: Path, url: str = MODEL_URL, timeout: int = 60) -> Path:
    """
    Download the landmarker model asset.

    Raises:
        requests.RequestException: On network or HTTP errors
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading face landmarker model to {dest}")

    response = requests.get(url, stream=True, timeout=timeout)
    response.raise_for_status()

    tmp_path = dest.with_suffix(dest.suffix + ".part")
    with open(tmp_path, "wb") as f:
        for chunk in response.iter_content(chunk_size=8192):
            if chunk:
                f.write(chunk)
    tmp_path.replace(dest)
    return dest


class BlendshapeAnalyzer:
    """
    MediaPipe Face Landmarker wrapper.

    `detect()` never raises: a frame without a face, or a classifier
    error, yields None so the caller can skip that tick.
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()
        self._landmarker = None

    @property
    def is_loaded(self) -> bool:
        return self._landmarker is not None

    def load(self):
        """
        Create the landmarker. Idempotent.

        Raises:
            AcquisitionError: If the model or the runtime cannot be loaded
        """
        if self._landmarker is not None:
            return self._landmarker

        model_path = Path(self.config.model_path)
        try:
            if not model_path.exists():
                if not self.config.download_if_missing:
                    raise FileNotFoundError(f"Face landmarker model not found at {model_path}")
                download_model(model_path, self.config.model_url)

            mp = _get_mediapipe()
            vision = mp.tasks.vision
            options = vision.FaceLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=str(model_path)),
                running_mode=vision.RunningMode.VIDEO,
                num_faces=self.config.num_faces,
                min_face_detection_confidence=self.config.min_face_detection_confidence,
                min_face_presence_confidence=self.config.min_face_presence_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
                output_face_blendshapes=True,
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
        except Exception as e:
            raise AcquisitionError(f"Failed to load face landmarker: {e}") from e

        logger.info("Face landmarker loaded")
        return self._landmarker

    def detect(self, frame: np.ndarray, timestamp_ms: int) -> Optional[Dict[str, float]]:
        """
        Score one video frame.

        Args:
            frame: BGR image (OpenCV format)
            timestamp_ms: Strictly increasing timestamp for video mode

        Returns:
            Blendshape name -> score, or None if no face was found
        """
        if self._landmarker is None or frame is None or frame.size == 0:
            return None

        try:
            mp = _get_mediapipe()
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
            result = self._landmarker.detect_for_video(image, int(timestamp_ms))
        except Exception as e:
            logger.warning(f"Face landmarker detect error: {e}")
            return None

        if not result.face_landmarks or not result.face_blendshapes:
            return None

        return {c.category_name: float(c.score) for c in result.face_blendshapes[0]}

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None

    def __enter__(self):
        self.load()
        return self

    def __exit__(self, *args):
        self.close()
