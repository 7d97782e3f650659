"""
Field extraction through a vision service.

Asks the service for the document's field values as JSON and turns the
answer into ExtractedField objects. Strict mode restricts the answer to
the variables of an existing template.
"""

import re
import json
import logging
from typing import List, Optional, Sequence, Dict, Any

from .geometry import ExtractedField, PageImage
from .memory import MemoryProvider
from .services import VisionService

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You are a document OCR and data extraction assistant for printed and handwritten text in any language.

TASK:
Read every piece of text in the document image (printed, typed, stamped or handwritten) and extract structured data.

RULES:
1. Dates, amounts and reference numbers: copy them exactly as written, including separators and currency symbols.
2. Names and addresses: keep accents and full spelling.
3. Tables: read every cell.
4. If unsure about a reading, give your best guess with a confidence below 0.5.

RESPONSE FORMAT (JSON only):
{
  "fields": [
    {"label": "descriptive_snake_case_name", "value": "value exactly as written", "confidence": 0.95}
  ],
  "rawText": "complete document text with line breaks",
  "summary": "one or two sentences in the document's language"
}"""

_FENCE_JSON_RE = re.compile(r"```json\n?")
_FENCE_RE = re.compile(r"```\n?")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_BRACES_RE = re.compile(r"^[{\s]+|[}\s]+$")


class FieldExtractionError(RuntimeError):
    """Raised when the service answer cannot be read as a field list."""


def clean_variable_name(name: str) -> str:
    """Remove surrounding braces/whitespace from a template variable."""
    return _BRACES_RE.sub("", name).strip()


def parse_scan_response(text: str) -> Dict[str, Any]:
    """
    Parse the JSON object in a service answer.

    Raises:
        FieldExtractionError: If no JSON object can be decoded
    """
    clean = _FENCE_RE.sub("", _FENCE_JSON_RE.sub("", text or "")).strip()
    try:
        data = json.loads(clean)
    except ValueError:
        match = _OBJECT_RE.search(clean)
        if not match:
            raise FieldExtractionError(f"Answer is not valid JSON: {clean[:200]}")
        try:
            data = json.loads(match.group(0))
        except ValueError as e:
            raise FieldExtractionError(f"Answer is not valid JSON: {clean[:200]}") from e

    if not isinstance(data, dict):
        raise FieldExtractionError("Answer JSON is not an object")
    return data


def restrict_to_variables(
    fields: List[ExtractedField],
    target_variables: Sequence[str]
) -> List[ExtractedField]:
    """
    Keep only requested variables, in requested order.

    Labels are matched case-insensitively after stripping braces and are
    rewritten to the requested spelling; missing variables get an empty
    value with zero confidence.
    """
    wanted = [clean_variable_name(v) for v in target_variables]
    order = {name.lower(): idx for idx, name in reversed(list(enumerate(wanted)))}

    kept: List[ExtractedField] = []
    for f in fields:
        key = clean_variable_name(f.label).lower()
        if key in order:
            kept.append(ExtractedField(wanted[order[key]], f.value, f.confidence))

    present = {f.label.lower() for f in kept}
    for name in wanted:
        if name.lower() not in present:
            kept.append(ExtractedField(name, "", 0.0))
            present.add(name.lower())

    kept.sort(key=lambda f: order.get(f.label.lower(), len(order)))
    logger.debug(f"Strict mode: {len(fields)} -> {len(kept)} fields (template has {len(wanted)})")
    return kept


class FieldExtractor:
    """Extract field values from a page image with a vision service."""

    def __init__(self, service: VisionService, memory: Optional[MemoryProvider] = None):
        self.service = service
        self.memory = memory

    def build_instruction(self, target_variables: Sequence[str] = ()) -> str:
        parts = [EXTRACTION_PROMPT]

        if self.memory is not None:
            memory_context = self.memory.build_memory_prompt()
            if memory_context:
                parts.append(memory_context)
                parts.append(
                    "IMPORTANT: Use the above 'AI MEMORY' to recognize this document type "
                    "and its fields if a pattern matches."
                )

        if target_variables:
            names = "\n".join(f'- "{clean_variable_name(v)}"' for v in target_variables)
            parts.append(
                f"STRICT EXTRACTION MODE:\n"
                f"Return exactly {len(target_variables)} fields whose labels are these "
                f"template variables, spelled exactly as listed:\n{names}\n"
                f"Map document content to variables by meaning. If a value cannot be "
                f"found, return it with value \"\" and confidence 0."
            )

        return "\n\n".join(parts)

    def extract(
        self,
        image: PageImage,
        target_variables: Sequence[str] = (),
        strict: bool = False
    ) -> List[ExtractedField]:
        """
        Extract fields from a page image.

        Args:
            image: Page raster
            target_variables: Template variables to look for
            strict: Drop fields that are not target variables

        Returns:
            List of ExtractedField

        Raises:
            VisionServiceError: If the service call fails
            FieldExtractionError: If the answer cannot be parsed
        """
        if not self.service.supports_vision:
            raise FieldExtractionError(f"Provider {self.service.name} does not support document vision")

        raw = self.service.complete(self.build_instruction(target_variables), image)
        data = parse_scan_response(raw)

        fields = [
            ExtractedField.from_dict(item)
            for item in data.get("fields", []) or []
            if isinstance(item, dict)
        ]
        logger.info(f"Extracted {len(fields)} fields with {self.service.name}")

        if strict and target_variables:
            fields = restrict_to_variables(fields, target_variables)
        return fields
