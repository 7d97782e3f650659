"""
Template generation pipeline.

Ties the skeleton assembler and the refinement orchestrator together and
produces the final FaithfulTemplateResult.
"""

import time
import logging
import threading
from typing import List, Optional, Sequence

from .config import PipelineConfig, get_config
from .assembler import SkeletonAssembler
from .geometry import PageTextLayer, ExtractedField, PageImage, FaithfulTemplateResult
from .memory import MemoryProvider
from .refine import RefinementOrchestrator
from .services import VisionService, create_service
from .variables import extract_variables

logger = logging.getLogger(__name__)


class TemplateGenerator:
    """
    Orchestrates template generation.

    Coordinates:
    - Skeleton assembly (deterministic)
    - Optional vision refinement
    - Placeholder collection and confidence scoring
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        service: Optional[VisionService] = None,
        memory: Optional[MemoryProvider] = None
    ):
        self.config = config or get_config()
        self.service = service
        self.memory = memory

        self.assembler = SkeletonAssembler(
            theme=self.config.theme,
            layout_config=self.config.layout
        )
        self.orchestrator = RefinementOrchestrator(
            service=service,
            memory=memory,
            enabled=self.config.refinement.enabled
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[PipelineConfig] = None,
        memory: Optional[MemoryProvider] = None
    ) -> 'TemplateGenerator':
        """Create a generator with the service described by the configuration."""
        config = config or get_config()
        service = create_service(config.refinement) if config.refinement.enabled else None
        return cls(config=config, service=service, memory=memory)

    def build_skeleton(
        self,
        pages: Sequence[PageTextLayer],
        fields: Sequence[ExtractedField]
    ) -> str:
        return self.assembler.build(pages, fields)

    def score(self, variables: List[str]) -> float:
        if len(variables) > self.config.min_variables_for_high_confidence:
            return self.config.high_confidence
        return self.config.low_confidence

    def generate(
        self,
        pages: Sequence[PageTextLayer],
        fields: Sequence[ExtractedField],
        image: Optional[PageImage] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> FaithfulTemplateResult:
        """
        Generate a template from page text layers.

        Args:
            pages: Page text layers in page order
            fields: Field values to turn into placeholders
            image: Page raster for refinement (optional)
            cancel_event: Set by the caller to abandon refinement

        Returns:
            FaithfulTemplateResult
        """
        start_time = time.time()
        pages = list(pages)

        skeleton = self.build_skeleton(pages, fields)
        outcome = self.orchestrator.refine(skeleton, image, cancel_event=cancel_event)

        variables = extract_variables(outcome.html)
        result = FaithfulTemplateResult(
            html=outcome.html,
            variables=variables,
            confidence=self.score(variables),
            page_count=len(pages),
            refinement=outcome.status,
            skeleton=skeleton,
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Template generated in {elapsed:.2f}s: {len(variables)} variables, "
            f"refinement {outcome.status}"
        )
        return result


def generate_faithful_template(
    pages: Sequence[PageTextLayer],
    fields: Sequence[ExtractedField],
    image: Optional[PageImage] = None,
    config: Optional[PipelineConfig] = None,
    service: Optional[VisionService] = None,
    memory: Optional[MemoryProvider] = None,
    cancel_event: Optional[threading.Event] = None
) -> FaithfulTemplateResult:
    """
    One-call template generation.

    When no service is given, one is created from the configuration
    (and refinement is skipped if no API key is available).
    """
    config = config or get_config()
    if service is None:
        generator = TemplateGenerator.from_config(config, memory=memory)
    else:
        generator = TemplateGenerator(config, service=service, memory=memory)
    return generator.generate(pages, fields, image=image, cancel_event=cancel_event)
