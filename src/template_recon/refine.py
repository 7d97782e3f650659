"""
Refinement orchestration for template reconstruction.

Sends the page image and the deterministic skeleton to a vision service,
sanitizes the answer and keeps it only if it still looks like a single
wrapper block. Any failure falls back to the skeleton; refinement never
makes the result structurally worse.
"""

import re
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .geometry import PageImage
from .memory import MemoryProvider
from .services import VisionService
from .variables import extract_variables

logger = logging.getLogger(__name__)


REFINE_PROMPT = """You are an expert in document replication with HTML and CSS.
Your goal is an HTML version of the provided document image that looks identical when printed.

You receive:
1. An image of the original document
2. An HTML skeleton generated from the document's text positions

TASK:
Refine the skeleton so it matches the image. Output a single <div> wrapper containing the whole document.

LAYOUT RULES:
- Structure: use CSS flexbox or grid where alignments need it.
- Tables: use <table> with border-collapse: collapse; when the document contains a table.
- Fonts: detect serif versus sans-serif text and set the matching font-family.
- Spacing: reproduce whitespace, padding and margins.
- Borders and lines: reproduce horizontal rules, signature lines and boxes with CSS borders.
- Colors: use hex codes for colored text.
- Signatures: keep a line and room to sign in signature areas.
- Variables: keep every {{placeholder}} exactly as written in the skeleton. Do not rename them."""

OUTPUT_CONSTRAINTS = """CRITICAL:
- Do NOT wrap the answer in markdown fences such as ```html.
- Return ONLY the raw HTML, starting with <div.
- Do NOT start with <!DOCTYPE html> or <html>."""

MEMORY_REMINDER = (
    "IMPORTANT: Use the above 'AI MEMORY' to apply any learned style preferences or corrections."
)

_FENCE_HTML_RE = re.compile(r"```html\n?", re.IGNORECASE)
_FENCE_RE = re.compile(r"```\n?")
_WRAPPER_RE = re.compile(r"<div[\s\S]*</div>\s*$", re.IGNORECASE)


# ============================================================================
# Results
# ============================================================================

@dataclass
class RefinementOutcome:
    """Markup selected by the orchestrator and how it was chosen."""
    html: str
    status: str  # skipped, applied, rejected, failed, cancelled
    reason: str = ""

    @property
    def applied(self) -> bool:
        return self.status == "applied"


def clean_refined_html(raw: str) -> str:
    """
    Strip code fences and surrounding prose from a refinement answer.

    Keeps the span from the first `<div` to the final `</div>` when the
    answer ends with one.
    """
    refined = _FENCE_HTML_RE.sub("", raw or "")
    refined = _FENCE_RE.sub("", refined).strip()

    match = _WRAPPER_RE.search(refined)
    if match:
        refined = match.group(0)
    return refined


def is_valid_refinement(html: str) -> bool:
    return html.startswith("<div")


# ============================================================================
# Orchestrator
# ============================================================================

class RefinementOrchestrator:
    """
    Optional vision refinement of the skeleton.

    Args:
        service: Vision service, or None to always keep the skeleton
        memory: Optional memory provider whose text is embedded in the prompt
        enabled: Master switch from configuration
    """

    def __init__(
        self,
        service: Optional[VisionService] = None,
        memory: Optional[MemoryProvider] = None,
        enabled: bool = True
    ):
        self.service = service
        self.memory = memory
        self.enabled = enabled

    @property
    def available(self) -> bool:
        return bool(self.enabled and self.service is not None and self.service.supports_vision)

    def build_instruction(self, skeleton: str, memory_context: str = "") -> str:
        """Compose the refinement prompt around the skeleton."""
        parts = [REFINE_PROMPT]
        if memory_context:
            parts.append(memory_context)
            parts.append(MEMORY_REMINDER)
        parts.append(OUTPUT_CONSTRAINTS)
        parts.append("SKELETON:\n" + skeleton)
        return "\n\n".join(parts)

    def _memory_context(self) -> str:
        if self.memory is None:
            return ""
        try:
            return self.memory.build_memory_prompt() or ""
        except Exception as e:
            logger.warning(f"Memory unavailable, refining without it: {e}")
            return ""

    def refine(
        self,
        skeleton: str,
        image: Optional[PageImage],
        cancel_event: Optional[threading.Event] = None
    ) -> RefinementOutcome:
        """
        Try to improve the skeleton; never returns anything worse.

        Args:
            skeleton: Deterministic skeleton markup
            image: Page raster to show the service
            cancel_event: Set by the caller to abandon refinement

        Returns:
            RefinementOutcome with the selected markup
        """
        if not self.available:
            reason = "refinement disabled" if not self.enabled else "no vision-capable service"
            logger.debug(f"Skipping refinement: {reason}")
            return RefinementOutcome(skeleton, "skipped", reason)

        if image is None:
            logger.debug("Skipping refinement: no page image")
            return RefinementOutcome(skeleton, "skipped", "no page image")

        if cancel_event is not None and cancel_event.is_set():
            return RefinementOutcome(skeleton, "cancelled", "cancelled before request")

        instruction = self.build_instruction(skeleton, self._memory_context())
        logger.info(f"Refining template with {self.service.name}...")

        try:
            raw = self.service.complete(instruction, image)
        except Exception as e:
            logger.warning(f"Refinement failed, using skeleton: {e}")
            return RefinementOutcome(skeleton, "failed", str(e))

        if cancel_event is not None and cancel_event.is_set():
            logger.info("Refinement cancelled, using skeleton")
            return RefinementOutcome(skeleton, "cancelled", "cancelled during request")

        refined = clean_refined_html(raw if isinstance(raw, str) else "")
        if not is_valid_refinement(refined):
            logger.warning("Refinement rejected (invalid structure), using skeleton")
            return RefinementOutcome(skeleton, "rejected", "answer does not start with <div")

        missing = [v for v in extract_variables(skeleton) if v not in refined]
        if missing:
            logger.warning(f"Refinement dropped {len(missing)} placeholder(s): {', '.join(missing)}")
        logger.info(f"Refinement applied, placeholders kept: {not missing}")

        return RefinementOutcome(refined, "applied")
