"""
Line clustering for template reconstruction.

Groups a page's fragments into visual lines, top to bottom, using a
vertical tolerance that grows with the fragment's font size.
"""

import logging
from typing import List, Optional

from .config import LayoutConfig
from .geometry import TextFragment, TextLine, PageTextLayer

logger = logging.getLogger(__name__)


class LineClusterer:
    """
    Cluster fragments into lines by vertical proximity.

    Each group is anchored on the y of its first fragment; a fragment joins
    the open group when its distance to that anchor is within tolerance.
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    def tolerance(self, fragment: TextFragment, page_width: float) -> float:
        """Vertical tolerance in page percent for one fragment."""
        if page_width <= 0:
            return self.config.min_line_tolerance
        scaled = fragment.font_size / page_width * 100 * self.config.line_tolerance_factor
        return max(self.config.min_line_tolerance, scaled)

    def group(self, fragments: List[TextFragment], page_width: float) -> List[TextLine]:
        """
        Group fragments into lines.

        Args:
            fragments: Page fragments in any order
            page_width: Page width in pixels

        Returns:
            Lines ordered top to bottom
        """
        if not fragments:
            return []

        if page_width <= 0:
            logger.debug(f"Degenerate page width {page_width}, using minimum line tolerance")

        ordered = sorted(fragments, key=lambda f: (f.y, f.x))

        lines: List[TextLine] = []
        current = [ordered[0]]
        anchor_y = ordered[0].y

        for fragment in ordered[1:]:
            if abs(fragment.y - anchor_y) <= self.tolerance(fragment, page_width):
                current.append(fragment)
                continue

            line = TextLine.from_fragments(current)
            if line:
                lines.append(line)
            current = [fragment]
            anchor_y = fragment.y

        line = TextLine.from_fragments(current)
        if line:
            lines.append(line)

        return lines

    def cluster(self, page: PageTextLayer) -> List[TextLine]:
        """Cluster one page's fragments."""
        lines = self.group(page.fragments, page.width)
        logger.debug(
            f"Page {page.page_number}: {len(page.fragments)} fragments -> {len(lines)} lines"
        )
        return lines


def group_into_lines(
    fragments: List[TextFragment],
    page_width: float,
    config: Optional[LayoutConfig] = None
) -> List[TextLine]:
    """Convenience wrapper around LineClusterer.group()."""
    return LineClusterer(config).group(fragments, page_width)
