"""
Tests for prompt memory.
"""

import json
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def write_store(path, entries):
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


class TestMemoryEntry:
    """Test entry parsing."""

    def test_from_dict_camel_case(self):
        from template_recon.memory import MemoryEntry

        entry = MemoryEntry.from_dict({
            "type": "field_schema", "title": "Invoice fields", "category": "invoice",
            "tags": ["total", "rut"], "occurrences": 4, "lastAccessedAt": 1700000000,
        })

        assert entry.occurrences == 4
        assert entry.last_accessed_at == 1700000000
        assert entry.tags == ["total", "rut"]

    def test_json_content(self):
        from template_recon.memory import MemoryEntry

        assert MemoryEntry("document_pattern", "t", content='{"summary": "s"}').json_content() == {"summary": "s"}
        assert MemoryEntry("document_pattern", "t", content="plain").json_content() == {}
        assert MemoryEntry("document_pattern", "t", content="[1, 2]").json_content() == {}


class TestJsonMemoryStore:
    """Test reading the memory file."""

    def test_missing_file(self, tmp_path):
        from template_recon.memory import JsonMemoryStore

        store = JsonMemoryStore(tmp_path / "missing.json")

        assert store.load() == []
        assert store.build_memory_prompt() == ""

    def test_corrupt_file(self, tmp_path):
        from template_recon.memory import JsonMemoryStore

        path = tmp_path / "memory.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonMemoryStore(path).load() == []

    def test_entries_wrapper_and_recency(self, tmp_path):
        from template_recon.memory import JsonMemoryStore

        path = tmp_path / "memory.json"
        path.write_text(json.dumps({"entries": [
            {"type": "user_preference", "title": "old", "lastAccessedAt": 1},
            {"type": "user_preference", "title": "new", "lastAccessedAt": 5},
            "garbage",
        ]}), encoding="utf-8")

        entries = JsonMemoryStore(path).load()

        assert [e.title for e in entries] == ["new", "old"]

    def test_prompt_sections(self, tmp_path):
        from template_recon.memory import JsonMemoryStore

        path = write_store(tmp_path / "memory.json", [
            {
                "type": "document_pattern", "title": "Factura", "category": "factura",
                "occurrences": 3, "confidence": 0.9,
                "content": json.dumps({
                    "structure": [{"label": "rut"}, {"label": "total"}],
                    "summary": "Chilean invoice",
                }),
            },
            {"type": "field_schema", "title": "s", "category": "factura", "tags": ["rut", "total"], "occurrences": 2},
            {"type": "training_insight", "title": "Round 1",
             "content": json.dumps({"summary": "Dates were misread", "keyFindings": ["a", "b", "c", "d"]})},
            {"type": "user_preference", "title": "Font", "content": "Prefer Arial"},
        ])

        prompt = JsonMemoryStore(path).build_memory_prompt()

        assert prompt.startswith("AI MEMORY - KNOWLEDGE FROM PAST SESSIONS (4 total memories):")
        assert "KNOWN DOCUMENT TYPES:" in prompt
        assert "  - factura (seen 3x, confidence: 90%)" in prompt
        assert "    Fields: rut, total" in prompt
        assert "RECURRING FIELD PATTERNS:\n  - factura: rut, total (2x)" in prompt
        assert "  - Round 1: Dates were misread" in prompt
        assert "    Key findings: a; b; c" in prompt
        assert "USER PREFERENCES:\n  - Font: Prefer Arial" in prompt

    def test_render_limit(self, tmp_path):
        """At most five preferences are rendered."""
        from template_recon.memory import JsonMemoryStore

        path = write_store(tmp_path / "memory.json", [
            {"type": "user_preference", "title": f"pref{i}", "content": "x", "lastAccessedAt": i}
            for i in range(8)
        ])

        prompt = JsonMemoryStore(path).build_memory_prompt()

        assert prompt.count("  - pref") == 5
        assert "pref7" in prompt
        assert "pref0" not in prompt

    def test_unknown_types_counted_not_rendered(self):
        from template_recon.memory import MemoryEntry, render_memory_prompt

        prompt = render_memory_prompt([MemoryEntry("other", "x")])

        assert "(1 total memories)" in prompt
        assert "KNOWN DOCUMENT TYPES" not in prompt


class TestStaticMemory:
    def test_static(self):
        from template_recon.memory import StaticMemory

        assert StaticMemory("remember").build_memory_prompt() == "remember"
