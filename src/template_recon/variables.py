"""
Variable placeholders for template reconstruction.

Maps previously extracted field values onto reconstructed text, replacing
each value with a `{{name}}` token derived from the field label.
"""

import re
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .geometry import ExtractedField

logger = logging.getLogger(__name__)

# Characters kept in placeholder names (after lower-casing)
_NAME_STRIP_RE = re.compile(r"[^a-z0-9áéíóúñü\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_UNDERSCORES_RE = re.compile(r"_+")

# Any double-brace token, as found in generated or refined markup
VARIABLE_RE = re.compile(r"\{\{[^}]+\}\}")


def placeholder_name(label: str) -> str:
    """
    Derive a snake_case placeholder name from a field label.

    >>> placeholder_name("Número de Factura")
    'número_de_factura'
    """
    name = _NAME_STRIP_RE.sub("", label.lower())
    name = _WHITESPACE_RE.sub("_", name)
    name = _UNDERSCORES_RE.sub("_", name)
    return name.strip("_")


def placeholder_token(label: str) -> str:
    return "{{" + placeholder_name(label) + "}}"


class PlaceholderMap:
    """
    Value -> placeholder token mapping, built once per generation run.

    Only values longer than one character (after trimming) are mapped.
    A later field with the same value replaces the token but keeps the
    original insertion position.
    """

    def __init__(self, mapping: Optional[Dict[str, str]] = None):
        self._mapping: Dict[str, str] = dict(mapping or {})
        self._ordered: List[Tuple[str, str]] = self._sort_entries()

    @classmethod
    def from_fields(cls, fields: Iterable[ExtractedField]) -> 'PlaceholderMap':
        mapping: Dict[str, str] = {}
        for f in fields:
            value = (f.value or "").strip()
            if len(value) > 1:
                mapping[value] = placeholder_token(f.label)
            else:
                logger.debug(f"Skipping field {f.label!r}: value too short to map")
        return cls(mapping)

    def _sort_entries(self) -> List[Tuple[str, str]]:
        # Longest values first so a short value never matches inside a longer one
        return sorted(self._mapping.items(), key=lambda kv: len(kv[0]), reverse=True)

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, value: str) -> bool:
        return value in self._mapping

    def __getitem__(self, value: str) -> str:
        return self._mapping[value]

    def items(self):
        return self._mapping.items()

    @property
    def tokens(self) -> List[str]:
        return list(dict.fromkeys(self._mapping.values()))

    def substitute(self, text: str) -> str:
        """
        Replace known values in text with their tokens.

        Each value is replaced at most once: exact match first, then a
        case-insensitive match that leaves the rest of the text untouched.
        """
        result = text
        for value, token in self._ordered:
            if value in result:
                result = result.replace(value, token, 1)
                continue
            # Match on the original text; lower() may change its length
            match = re.search(re.escape(value), result, re.IGNORECASE)
            if match:
                result = result[:match.start()] + token + result[match.end():]
        return result


def build_placeholder_map(fields: Iterable[ExtractedField]) -> PlaceholderMap:
    return PlaceholderMap.from_fields(fields)


def replace_with_variables(text: str, placeholders: PlaceholderMap) -> str:
    return placeholders.substitute(text)


def extract_variables(html: str) -> List[str]:
    """All placeholder tokens in markup, deduplicated in order of appearance."""
    return list(dict.fromkeys(VARIABLE_RE.findall(html)))
