"""
Template Reconstruction Pipeline
================================

Rebuilds an editable, parameterized HTML template from the positioned text
fragments of a rendered document page.

Main components:
- Line clustering (vertical proximity)
- Layout classification (margins, alignment, split rows)
- Variable substitution (field values -> {{placeholders}})
- Skeleton assembly (deterministic HTML)
- Optional vision refinement with skeleton fallback
"""

__version__ = "1.0.0"
__author__ = "Template Reconstruction Team"

from .geometry import (
    TextFragment, PageTextLayer, TextLine, ExtractedField, Margins,
    PageImage, FaithfulTemplateResult,
)
from .lines import LineClusterer, group_into_lines
from .layout import LayoutClassifier, Alignment, PageLayout, detect_margins, detect_alignment
from .variables import PlaceholderMap, build_placeholder_map, extract_variables, placeholder_name
from .assembler import SkeletonAssembler, build_skeleton, escape_html
from .refine import RefinementOrchestrator, RefinementOutcome
from .services import VisionService, VisionServiceError, create_service
from .memory import MemoryProvider, JsonMemoryStore, StaticMemory
from .fields import FieldExtractor, FieldExtractionError
from .pipeline import TemplateGenerator, generate_faithful_template

__all__ = [
    # Geometry
    "TextFragment", "PageTextLayer", "TextLine", "ExtractedField", "Margins",
    "PageImage", "FaithfulTemplateResult",
    # Layout
    "LineClusterer", "group_into_lines",
    "LayoutClassifier", "Alignment", "PageLayout", "detect_margins", "detect_alignment",
    # Variables
    "PlaceholderMap", "build_placeholder_map", "extract_variables", "placeholder_name",
    # Assembly
    "SkeletonAssembler", "build_skeleton", "escape_html",
    # Refinement
    "RefinementOrchestrator", "RefinementOutcome",
    "VisionService", "VisionServiceError", "create_service",
    "MemoryProvider", "JsonMemoryStore", "StaticMemory",
    "FieldExtractor", "FieldExtractionError",
    # Pipeline
    "TemplateGenerator", "generate_faithful_template",
]
