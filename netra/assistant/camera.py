"""
Frame sources for the vision service.

Frames are captured on demand, downscaled and JPEG-encoded to base64, the
format the vision model expects for image inputs. Detection cycles use small
low-quality frames; identify/query calls use larger ones.

Requires: opencv-python-headless >= 4.8.0
    pip install netra-assistant[vision]
"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Abstract camera."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while frames can be captured."""

    @abstractmethod
    def open(self) -> bool:
        """Open the device. Returns False if it is unavailable."""

    @abstractmethod
    def capture_base64(self, quality: float = 0.25, scale: float = 0.35) -> Optional[str]:
        """
        Capture one frame as base64 JPEG.

        Args:
            quality: JPEG quality in 0..1
            scale: Resize factor applied to both dimensions
        """

    def close(self) -> None:
        """Release the device."""


@dataclass
class CameraConfig:
    """Configuration for camera capture."""

    device: int = 0
    width: int = 1280
    height: int = 720
    warmup_frames: int = 5


class Camera(FrameSource):
    """
    USB camera capture through OpenCV.

    Usage:
        with Camera() as cam:
            frame_b64 = cam.capture_base64(quality=0.3, scale=0.3)
    """

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap = None
        self._cv2 = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> bool:
        try:
            import cv2
        except ImportError:
            logger.error("OpenCV not installed. Install with: pip install opencv-python-headless")
            return False

        self._cv2 = cv2

        try:
            self._cap = cv2.VideoCapture(self.config.device)
            if not self._cap.isOpened():
                logger.error("Failed to open camera device %s", self.config.device)
                self._cap = None
                return False

            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)

            # Discard warmup frames (auto-exposure settling)
            for _ in range(self.config.warmup_frames):
                self._cap.read()

            actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            logger.info("Camera ready: device=%s (%dx%d)", self.config.device, actual_w, actual_h)
            return True

        except cv2.error as e:
            logger.error("Camera error: %s", e)
            self._cap = None
            return False

    def capture_base64(self, quality: float = 0.25, scale: float = 0.35) -> Optional[str]:
        if not self.is_open:
            return None

        # Flush stale buffered frames from the V4L2 driver
        for _ in range(3):
            self._cap.grab()

        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None

        cv2 = self._cv2
        if scale != 1.0:
            height, width = frame.shape[:2]
            size = (max(1, int(width * scale)), max(1, int(height * scale)))
            frame = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)

        encode_params = [cv2.IMWRITE_JPEG_QUALITY, max(1, min(100, int(quality * 100)))]
        success, jpeg_buf = cv2.imencode(".jpg", frame, encode_params)
        if not success:
            return None

        return base64.b64encode(jpeg_buf.tobytes()).decode("utf-8")

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
