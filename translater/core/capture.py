"""Screen capture collaborator.

The orchestrator only depends on ``CaptureService``; ``MssCapture`` is the
default desktop implementation.
"""

from typing import Protocol

import mss
import mss.tools
import structlog

logger = structlog.get_logger(__name__)


class CaptureService(Protocol):
    def capture_to_bytes(self, left: int, top: int, right: int, bottom: int) -> bytes:
        """Return PNG bytes for the region. Corners need not be sorted."""
        ...


class MssCapture:
    """Grabs a screen region with mss and encodes it as PNG."""

    def capture_to_bytes(self, left: int, top: int, right: int, bottom: int) -> bytes:
        x0, x1 = sorted((left, right))
        y0, y1 = sorted((top, bottom))
        region = {"left": x0, "top": y0, "width": max(x1 - x0, 1), "height": max(y1 - y0, 1)}

        with mss.mss() as sct:
            shot = sct.grab(region)
            png = mss.tools.to_png(shot.rgb, shot.size)

        logger.debug("capture.ok", width=region["width"], height=region["height"], size=len(png))
        return png
