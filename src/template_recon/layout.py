"""
Layout classification for template reconstruction.

Provides:
- Page margin inference (first-quartile left edge)
- Per-line alignment detection (left, center, right, split)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from .config import LayoutConfig
from .geometry import TextLine, Margins

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class Alignment(Enum):
    """Horizontal alignment of a line."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"
    SPLIT = "split"


@dataclass
class PageLayout:
    """Classified lines of one page."""
    lines: List[TextLine] = field(default_factory=list)
    alignments: List[Alignment] = field(default_factory=list)
    margins: Margins = field(default_factory=Margins)

    def __iter__(self):
        return iter(zip(self.lines, self.alignments))

    def __len__(self) -> int:
        return len(self.lines)


# ============================================================================
# Layout Classifier
# ============================================================================

class LayoutClassifier:
    """
    Infer page margins and line alignments.

    Alignment rules are evaluated in order and the first match wins:

    1. split  - at least two fragments whose x positions are far apart
    2. left   - starts near the left margin and is off-center
    3. center - content center close to the page center
    4. right  - starts in the right part of the page
    5. left   - default
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    @property
    def default_margins(self) -> Margins:
        left = self.config.default_left_margin
        return Margins(left=left, right=100 - left)

    def detect_margins(self, lines: List[TextLine]) -> Margins:
        """
        Estimate the page's left margin from line starts.

        Uses the first-quartile left edge of lines starting in the left part
        of the page so a few indented lines do not drag the estimate.
        """
        if len(lines) < self.config.min_lines_for_margins:
            return self.default_margins

        candidates = [
            line.min_x for line in lines
            if line.min_x < self.config.margin_candidate_max_x
        ]
        if not candidates:
            return self.default_margins

        ordered = np.sort(np.asarray(candidates, dtype=float))
        left = float(ordered[len(ordered) // 4])
        if not left:
            left = self.config.default_left_margin

        return Margins(left=left, right=100 - left)

    def detect_alignment(self, line: TextLine, margins: Margins) -> Alignment:
        """Classify one line's horizontal alignment."""
        items = line.items

        if len(items) >= 2 and items[-1].x - items[0].x > self.config.split_gap:
            return Alignment.SPLIT

        content_center = (line.min_x + line.max_x) / 2
        dist_from_center = abs(content_center - 50)

        if (line.min_x < margins.left + self.config.left_margin_slack
                and dist_from_center > self.config.center_tolerance):
            return Alignment.LEFT

        if dist_from_center < self.config.center_tolerance:
            return Alignment.CENTER

        if line.min_x > self.config.right_align_min_x:
            return Alignment.RIGHT

        return Alignment.LEFT

    def classify(self, lines: List[TextLine]) -> PageLayout:
        """
        Classify all lines of a page.

        Args:
            lines: Lines ordered top to bottom

        Returns:
            PageLayout with margins and one alignment per line
        """
        margins = self.detect_margins(lines)
        alignments = [self.detect_alignment(line, margins) for line in lines]

        if lines:
            counts = {a.value: alignments.count(a) for a in Alignment if a in alignments}
            logger.debug(f"Margins {margins.left:.1f}/{margins.right:.1f}, alignments: {counts}")

        return PageLayout(lines=list(lines), alignments=alignments, margins=margins)


def detect_margins(lines: List[TextLine], config: Optional[LayoutConfig] = None) -> Margins:
    """Convenience wrapper around LayoutClassifier.detect_margins()."""
    return LayoutClassifier(config).detect_margins(lines)


def detect_alignment(
    line: TextLine,
    margins: Margins,
    config: Optional[LayoutConfig] = None
) -> Alignment:
    """Convenience wrapper around LayoutClassifier.detect_alignment()."""
    return LayoutClassifier(config).detect_alignment(line, margins)
