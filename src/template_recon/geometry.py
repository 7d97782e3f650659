"""
Geometry model for template reconstruction.

Provides:
- Positioned text fragments and per-page text layers
- Derived visual lines
- Extracted field values
- Page margins, page images and the final template result

All coordinates are page-relative percentages (0-100, origin top-left).
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

import numpy as np

logger = logging.getLogger(__name__)

# Font size assumed when the extractor reports none
DEFAULT_FONT_SIZE = 12.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# ============================================================================
# Fragments and Pages
# ============================================================================

@dataclass(frozen=True)
class TextFragment:
    """One indivisible run of text at a position on the page."""
    text: str
    x: float
    y: float
    width: float = 0.0
    font_size: float = DEFAULT_FONT_SIZE
    font_name: str = "unknown"

    def __post_init__(self):
        if not self.text:
            raise ValueError("TextFragment text must be non-empty")
        if not (0 <= self.x <= 100 and 0 <= self.y <= 100):
            raise ValueError(f"TextFragment position out of range: ({self.x}, {self.y})")
        if self.width < 0:
            raise ValueError(f"TextFragment width must be >= 0, got {self.width}")
        if self.font_size <= 0:
            raise ValueError(f"TextFragment font_size must be > 0, got {self.font_size}")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def is_bold_font(self) -> bool:
        return "bold" in self.font_name.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "fontSize": self.font_size,
            "fontName": self.font_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['TextFragment']:
        """
        Build a fragment from extractor output.

        External input is sanitized rather than rejected: blank text yields
        None, positions are clamped into the page and a missing or
        non-positive font size falls back to DEFAULT_FONT_SIZE.
        """
        text = str(_first(data, "text", "str", default=""))
        if not text.strip():
            return None

        font_size = float(_first(data, "fontSize", "font_size", default=0) or 0)
        if font_size <= 0:
            font_size = DEFAULT_FONT_SIZE

        return cls(
            text=text,
            x=_clamp(float(_first(data, "x", default=0)), 0.0, 100.0),
            y=_clamp(float(_first(data, "y", default=0)), 0.0, 100.0),
            width=max(0.0, float(_first(data, "width", default=0))),
            font_size=font_size,
            font_name=str(_first(data, "fontName", "font_name", default="unknown")),
        )


@dataclass
class PageTextLayer:
    """One page's fragments plus its pixel size."""
    page_number: int
    width: float
    height: float
    fragments: List[TextFragment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageNumber": self.page_number,
            "width": self.width,
            "height": self.height,
            "items": [f.to_dict() for f in self.fragments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_page_number: int = 1) -> 'PageTextLayer':
        raw_items = _first(data, "items", "fragments", default=[])
        fragments = []
        skipped = 0
        for raw in raw_items:
            fragment = TextFragment.from_dict(raw)
            if fragment is None:
                skipped += 1
                continue
            fragments.append(fragment)

        page_number = int(_first(data, "pageNumber", "page_number", default=default_page_number))
        if skipped:
            logger.debug(f"Page {page_number}: skipped {skipped} blank fragments")

        return cls(
            page_number=page_number,
            width=float(_first(data, "width", default=0)),
            height=float(_first(data, "height", default=0)),
            fragments=fragments,
        )


# ============================================================================
# Lines
# ============================================================================

@dataclass
class TextLine:
    """A horizontal cluster of fragments sharing one visual baseline."""
    y: float
    items: List[TextFragment]
    min_x: float
    max_x: float
    avg_font_size: float

    @property
    def text(self) -> str:
        return " ".join(item.text for item in self.items)

    @classmethod
    def from_fragments(cls, fragments: List[TextFragment]) -> Optional['TextLine']:
        """Sort members left-to-right and compute line metrics."""
        if not fragments:
            return None

        items = sorted(fragments, key=lambda f: f.x)
        return cls(
            y=float(np.mean([f.y for f in items])),
            items=items,
            min_x=min(f.x for f in items),
            max_x=max(f.right for f in items),
            avg_font_size=float(np.mean([f.font_size for f in items])),
        )


# ============================================================================
# Fields, Margins and Results
# ============================================================================

@dataclass
class ExtractedField:
    """A field value previously detected on the document."""
    label: str
    value: str
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value, "confidence": self.confidence}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtractedField':
        try:
            confidence = float(data.get("confidence", 0.0) or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            label=str(data.get("label", "") or ""),
            value=str(data.get("value", "") or ""),
            confidence=_clamp(confidence, 0.0, 1.0),
        )


@dataclass(frozen=True)
class Margins:
    """Left/right page margins in percent."""
    left: float = 8.0
    right: float = 92.0


DEFAULT_MARGINS = Margins()


@dataclass
class PageImage:
    """Raster image of the source page, base64 encoded."""
    data: str
    mime_type: str = "image/png"
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass
class FaithfulTemplateResult:
    """Final template markup with its placeholder list."""
    html: str
    variables: List[str] = field(default_factory=list)
    confidence: float = 0.0
    page_count: int = 0
    refinement: str = "skipped"  # skipped, applied, rejected, failed, cancelled
    skeleton: str = ""

    @property
    def refined(self) -> bool:
        return self.refinement == "applied"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "variables": list(self.variables),
            "confidence": self.confidence,
            "page_count": self.page_count,
            "refinement": self.refinement,
        }
