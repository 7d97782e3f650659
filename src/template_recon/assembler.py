"""
Skeleton assembler for template reconstruction.

Walks classified lines in page order and emits the deterministic HTML
skeleton: one wrapper block, page-break separators, one block per line
(paragraph or two-cell split row) and a trailing signature placeholder.
"""

import logging
import math
from enum import Enum
from typing import List, Optional, Iterable

from .config import LayoutConfig, ThemeConfig
from .geometry import PageTextLayer, TextLine, ExtractedField
from .layout import Alignment, LayoutClassifier, PageLayout
from .lines import LineClusterer
from .variables import PlaceholderMap

logger = logging.getLogger(__name__)


# ============================================================================
# Spacing and Emphasis
# ============================================================================

class SpacingTier(Enum):
    """Discrete vertical spacing before a line."""
    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"
    MINIMAL = "minimal"


def spacing_tier(gap: float) -> SpacingTier:
    """Bucket a vertical gap (page percent) into a spacing tier."""
    if gap > 6:
        return SpacingTier.LARGE
    if gap > 4:
        return SpacingTier.MEDIUM
    if gap > 2.5:
        return SpacingTier.SMALL
    return SpacingTier.MINIMAL


def is_bold_line(line: TextLine, theme: Optional[ThemeConfig] = None) -> bool:
    theme = theme or ThemeConfig()
    if line.avg_font_size > theme.bold_avg_font_size:
        return True
    return any(item.is_bold_font or item.font_size > theme.bold_font_size for item in line.items)


def is_large_line(line: TextLine, theme: Optional[ThemeConfig] = None) -> bool:
    theme = theme or ThemeConfig()
    return line.avg_font_size > theme.large_font_size


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def escape_html(text: str) -> str:
    """
    Escape &, < and > for element content.

    Text that already contains an ampersand is returned unchanged so
    existing entities are not escaped twice.
    """
    if "&" in text:
        return text
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# ============================================================================
# Skeleton Assembler
# ============================================================================

class SkeletonAssembler:
    """
    Build the HTML skeleton from page text layers.

    The theme is injected once and shared by every emitted block; the
    placeholder map and margins are computed per call.
    """

    def __init__(
        self,
        theme: Optional[ThemeConfig] = None,
        layout_config: Optional[LayoutConfig] = None,
        clusterer: Optional[LineClusterer] = None,
        classifier: Optional[LayoutClassifier] = None
    ):
        self.theme = theme or ThemeConfig()
        self.layout_config = layout_config or LayoutConfig()
        self.clusterer = clusterer or LineClusterer(self.layout_config)
        self.classifier = classifier or LayoutClassifier(self.layout_config)

    def analyze_page(self, page: PageTextLayer) -> PageLayout:
        """Cluster and classify one page."""
        lines = self.clusterer.cluster(page)
        return self.classifier.classify(lines)

    def build(
        self,
        pages: Iterable[PageTextLayer],
        fields: Iterable[ExtractedField]
    ) -> str:
        """
        Assemble the skeleton markup.

        Args:
            pages: Page text layers
            fields: Extracted field values to turn into placeholders

        Returns:
            HTML string
        """
        placeholders = PlaceholderMap.from_fields(fields)
        ordered_pages = sorted(pages, key=lambda p: p.page_number)

        parts: List[str] = [f'<div style="{self.theme.wrapper_style}">']

        for index, page in enumerate(ordered_pages):
            if index > 0:
                parts.append(f'  <div style="{self.theme.page_break_style}"></div>')

            layout = self.analyze_page(page)
            if not len(layout):
                logger.debug(f"Page {page.page_number} has no text lines")
                continue

            parts.extend(self._emit_page(layout, placeholders))

        parts.extend(self._emit_signature())
        parts.append('</div>')

        logger.info(
            f"Skeleton built: {len(ordered_pages)} page(s), "
            f"{sum(len(p.fragments) for p in ordered_pages)} fragments, "
            f"{len(placeholders)} mapped values"
        )
        return "\n".join(parts)

    def _emit_page(self, layout: PageLayout, placeholders: PlaceholderMap) -> List[str]:
        parts: List[str] = []
        prev_y: Optional[float] = None

        for line, alignment in layout:
            gap = 0.0 if prev_y is None else line.y - prev_y
            prev_y = line.y
            spacing = self.theme.spacing[spacing_tier(gap).value]

            if alignment is Alignment.SPLIT:
                parts.extend(self._emit_split(line, spacing, placeholders))
            else:
                parts.append(self._emit_paragraph(line, alignment, spacing, placeholders))

        return parts

    def _emit_split(
        self,
        line: TextLine,
        spacing: str,
        placeholders: PlaceholderMap
    ) -> List[str]:
        midpoint = self.layout_config.split_midpoint
        left_text = " ".join(i.text for i in line.items if i.x < midpoint)
        right_text = " ".join(i.text for i in line.items if i.x >= midpoint)

        style = f"{self.theme.split_row_style}{spacing}"
        if is_bold_line(line, self.theme):
            style += "font-weight:bold;"

        return [
            f'  <div style="{style}">',
            f'    <span>{escape_html(placeholders.substitute(left_text))}</span>',
            f'    <span>{escape_html(placeholders.substitute(right_text))}</span>',
            '  </div>',
        ]

    def _emit_paragraph(
        self,
        line: TextLine,
        alignment: Alignment,
        spacing: str,
        placeholders: PlaceholderMap
    ) -> str:
        text = placeholders.substitute(line.text)

        style = f"text-align:{alignment.value};{spacing}"
        if is_bold_line(line, self.theme):
            style += "font-weight:bold;"
        if is_large_line(line, self.theme):
            style += f"font-size:{round_half_up(line.avg_font_size)}pt;"
        if alignment is Alignment.CENTER:
            style += "margin-left:auto;margin-right:auto;"

        return f'  <p style="{style}">{escape_html(text)}</p>'

    def _emit_signature(self) -> List[str]:
        return [
            f'  <div style="{self.theme.signature_wrapper_style}">',
            f'    <div style="{self.theme.signature_line_style}"></div>',
            '  </div>',
        ]


def build_skeleton(
    pages: Iterable[PageTextLayer],
    fields: Iterable[ExtractedField],
    theme: Optional[ThemeConfig] = None,
    layout_config: Optional[LayoutConfig] = None
) -> str:
    """Convenience wrapper around SkeletonAssembler.build()."""
    return SkeletonAssembler(theme=theme, layout_config=layout_config).build(pages, fields)
