"""
Contextual memory for the refinement and extraction prompts.

A memory provider returns an opaque block of text describing what earlier
sessions learned (known document types, recurring fields, training
insights, user preferences). The engine only embeds it in prompts.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Union

logger = logging.getLogger(__name__)


MEMORY_TYPES = ("document_pattern", "field_schema", "training_insight", "user_preference")


class MemoryProvider:
    """Interface for anything that can render a memory prompt block."""

    def build_memory_prompt(self) -> str:
        raise NotImplementedError


class StaticMemory(MemoryProvider):
    """Fixed memory text, e.g. passed in by the caller."""

    def __init__(self, text: str = ""):
        self.text = text

    def build_memory_prompt(self) -> str:
        return self.text


@dataclass
class MemoryEntry:
    """One remembered pattern, schema, insight or preference."""
    type: str
    title: str
    category: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)
    occurrences: int = 1
    confidence: float = 0.0
    last_accessed_at: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MemoryEntry':
        return cls(
            type=str(data.get("type", "")),
            title=str(data.get("title", "")),
            category=str(data.get("category", "")),
            content=str(data.get("content", "")),
            tags=[str(t) for t in data.get("tags", []) or []],
            occurrences=int(data.get("occurrences", 1) or 1),
            confidence=float(data.get("confidence", 0.0) or 0.0),
            last_accessed_at=float(
                data.get("lastAccessedAt", data.get("last_accessed_at", 0)) or 0
            ),
        )

    def json_content(self) -> Dict[str, Any]:
        """Structured content, or an empty dict if content is plain text."""
        try:
            data = json.loads(self.content)
        except (TypeError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}


class JsonMemoryStore(MemoryProvider):
    """
    Memory entries stored as a JSON list (or {"entries": [...]}) on disk.

    A missing or unreadable file is treated as an empty memory.
    """

    # (section limit loaded, limit rendered) per memory type
    LIMITS = {
        "document_pattern": (20, 8),
        "field_schema": (15, 6),
        "training_insight": (10, 5),
        "user_preference": (10, 5),
    }

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[MemoryEntry]:
        if not self.path.exists():
            logger.debug(f"No memory store at {self.path}")
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read memory store {self.path}: {e}")
            return []

        if isinstance(raw, dict):
            raw = raw.get("entries", [])
        if not isinstance(raw, list):
            logger.warning(f"Memory store {self.path} has unexpected format")
            return []

        entries = [MemoryEntry.from_dict(item) for item in raw if isinstance(item, dict)]
        entries.sort(key=lambda e: e.last_accessed_at, reverse=True)
        return entries

    def build_memory_prompt(self) -> str:
        entries = self.load()
        if not entries:
            return ""
        return render_memory_prompt(entries, self.LIMITS)


def render_memory_prompt(
    entries: List[MemoryEntry],
    limits: Dict[str, tuple] = JsonMemoryStore.LIMITS
) -> str:
    """
    Format memory entries as a prompt section.

    Args:
        entries: Entries ordered most recent first
        limits: Per-type (load limit, render limit)

    Returns:
        Prompt text, empty if there are no entries
    """
    if not entries:
        return ""

    by_type: Dict[str, List[MemoryEntry]] = {t: [] for t in MEMORY_TYPES}
    for entry in entries:
        if entry.type in by_type:
            by_type[entry.type].append(entry)
    for mem_type, (keep, _) in limits.items():
        by_type[mem_type] = by_type[mem_type][:keep]

    lines = [f"AI MEMORY - KNOWLEDGE FROM PAST SESSIONS ({len(entries)} total memories):"]

    patterns = by_type["document_pattern"][:limits["document_pattern"][1]]
    if patterns:
        lines.append("")
        lines.append("KNOWN DOCUMENT TYPES:")
        for mem in patterns:
            data = mem.json_content()
            if not data:
                lines.append(f"  - {mem.title} ({mem.occurrences}x)")
                continue
            lines.append(
                f"  - {mem.category} (seen {mem.occurrences}x, "
                f"confidence: {round(mem.confidence * 100)}%)"
            )
            labels = [s.get("label", "") for s in data.get("structure", []) if isinstance(s, dict)]
            lines.append(f"    Fields: {', '.join(labels) if labels else 'N/A'}")
            if data.get("summary"):
                lines.append(f"    Summary: {str(data['summary'])[:120]}")

    schemas = by_type["field_schema"][:limits["field_schema"][1]]
    if schemas:
        lines.append("")
        lines.append("RECURRING FIELD PATTERNS:")
        for mem in schemas:
            lines.append(f"  - {mem.category}: {', '.join(mem.tags)} ({mem.occurrences}x)")

    insights = by_type["training_insight"][:limits["training_insight"][1]]
    if insights:
        lines.append("")
        lines.append("PAST TRAINING INSIGHTS:")
        for mem in insights:
            data = mem.json_content()
            if not data:
                lines.append(f"  - {mem.title}")
                continue
            summary = str(data.get("summary") or "No summary")[:150]
            lines.append(f"  - {mem.title}: {summary}")
            findings = data.get("keyFindings") or []
            if findings:
                lines.append(f"    Key findings: {'; '.join(str(f) for f in findings[:3])}")

    preferences = by_type["user_preference"][:limits["user_preference"][1]]
    if preferences:
        lines.append("")
        lines.append("USER PREFERENCES:")
        for mem in preferences:
            lines.append(f"  - {mem.title}: {mem.content[:100]}")

    lines.append("")
    lines.append("Use this memory to provide more accurate, context-aware responses. "
                 "Reference past patterns when relevant.")
    return "\n".join(lines)
