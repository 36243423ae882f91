"""Data types produced and consumed by the translation service."""

from dataclasses import asdict, dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class Options:
    """Runtime switches for the translation service.

    Attributes:
        stream_enabled: Stream deltas to the registered handler when one is set.
        use_vision_for_translation: Translate straight from the image (no OCR stage).
        source_language: Source language code, or "auto".
        target_language: Target language code.
    """
    stream_enabled: bool = True
    use_vision_for_translation: bool = False
    source_language: str = "auto"
    target_language: str = "zh-CN"


@dataclass(frozen=True)
class ScreenshotBounds:
    """Screen region of a capture, from two arbitrary corner points."""
    start_x: int
    start_y: int
    end_x: int
    end_y: int
    left: int
    top: int
    width: int
    height: int

    def to_dict(self) -> dict:
        return asdict(self)


def new_bounds(start_x: int, start_y: int, end_x: int, end_y: int) -> ScreenshotBounds:
    """Normalize two corners into a rectangle; width and height are at least 1."""
    left, right = sorted((start_x, end_x))
    top, bottom = sorted((start_y, end_y))
    return ScreenshotBounds(
        start_x=start_x,
        start_y=start_y,
        end_x=end_x,
        end_y=end_y,
        left=left,
        top=top,
        width=max(right - left, 1),
        height=max(bottom - top, 1),
    )


@dataclass
class ScreenshotTranslationResult:
    """Outcome of one screenshot translation.

    ``extracted_text`` stays empty in vision-direct mode; ``translated_text``
    stays empty when OCR found no text.
    """
    bounds: ScreenshotBounds
    extract_prompt: str = ""
    translate_prompt: str = ""
    extracted_text: str = ""
    translated_text: str = ""
    elapsed: timedelta = field(default_factory=timedelta)


@dataclass
class TextTranslationResult:
    original_text: str
    translated_text: str
    translate_prompt: str = ""
    elapsed: timedelta = field(default_factory=timedelta)
