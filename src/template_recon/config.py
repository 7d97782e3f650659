"""
Configuration and constants for the template reconstruction pipeline.

This module provides:
- Layout heuristics (clustering tolerance, alignment thresholds)
- Theme settings for the generated HTML
- Refinement provider settings
- Environment and settings-file overrides
"""

import os
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union
from pathlib import Path

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger("template_recon")


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logging the same way for CLI and scripts."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class LayoutConfig:
    """Line clustering and alignment heuristics (page percentages)."""
    min_line_tolerance: float = 1.5
    line_tolerance_factor: float = 2.0
    split_gap: float = 30.0
    center_tolerance: float = 8.0
    left_margin_slack: float = 5.0
    right_align_min_x: float = 60.0
    margin_candidate_max_x: float = 40.0
    min_lines_for_margins: int = 3
    default_left_margin: float = 8.0
    split_midpoint: float = 50.0


@dataclass
class ThemeConfig:
    """Presentation directives shared by every emitted block."""
    font_family: str = "'Times New Roman',Georgia,serif"
    max_width: str = "680px"
    padding: str = "50px 65px"
    line_height: str = "1.6"
    color: str = "#1a1a2e"
    font_size: str = "12pt"
    background: str = "white"
    page_break_style: str = "border-top:1px solid #ccc;margin:40px 0;page-break-before:always;"
    # Vertical rhythm tiers, keyed by tier name
    spacing: Dict[str, str] = field(default_factory=lambda: {
        "large": "margin-top:28px;",
        "medium": "margin-top:20px;",
        "small": "margin-top:12px;",
        "minimal": "margin-top:2px;",
    })
    split_row_style: str = "display:flex;justify-content:space-between;align-items:baseline;"
    signature_wrapper_style: str = "margin-top:40px;"
    signature_line_style: str = "border-bottom:1px solid #333;width:200px;height:40px;"
    bold_avg_font_size: float = 12.5
    bold_font_size: float = 13.0
    large_font_size: float = 14.0

    @property
    def wrapper_style(self) -> str:
        return (
            f"font-family:{self.font_family};max-width:{self.max_width};"
            f"margin:0 auto;padding:{self.padding};line-height:{self.line_height};"
            f"color:{self.color};font-size:{self.font_size};background:{self.background};"
        )


# Providers whose vision-capable models accept an image with the prompt
VISION_PROVIDERS = (
    "openai", "gemini", "anthropic", "openrouter", "mistral", "together", "deepseek",
)

DEFAULT_VISION_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-5-sonnet-20241022",
    "gemini": "gemini-2.0-flash",
    "groq": "llama-3.2-11b-vision-preview",
    "openrouter": "openai/gpt-4o",
    "mistral": "pixtral-large-latest",
    "together": "meta-llama/Llama-3.2-90B-Vision-Instruct-Turbo",
    "deepseek": "deepseek-chat",
    "perplexity": "sonar",
    "cohere": "command-r-plus",
}

API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "together": "TOGETHER_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "perplexity": "PERPLEXITY_API_KEY",
    "cohere": "COHERE_API_KEY",
}


@dataclass
class RefinementConfig:
    """Settings for the optional vision refinement pass."""
    enabled: bool = True
    provider: str = "openai"
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout_s: float = 60.0
    max_tokens: int = 4096
    temperature: Optional[float] = None

    @property
    def active_model(self) -> str:
        """User-selected model, else the provider's default vision model."""
        if self.model:
            return self.model
        return DEFAULT_VISION_MODELS.get(self.provider, DEFAULT_VISION_MODELS["openai"])


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    refinement: RefinementConfig = field(default_factory=RefinementConfig)

    high_confidence: float = 0.85
    low_confidence: float = 0.6
    # More variables than this yields the high confidence score
    min_variables_for_high_confidence: int = 3
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _clean_key(value: Optional[str]) -> Optional[str]:
    """Strip whitespace and quotes that often end up around env values."""
    if value is None:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1].strip()
    return value or None


def resolve_api_key(provider: str) -> Optional[str]:
    """API key for a provider: TEMPLATE_RECON_API_KEY, else the provider's own variable."""
    return _clean_key(
        os.environ.get("TEMPLATE_RECON_API_KEY")
        or os.environ.get(API_KEY_ENV_VARS.get(provider, ""), "")
    )


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()
    refinement = config.refinement

    provider = os.environ.get("TEMPLATE_RECON_PROVIDER", "").strip().lower()
    if provider:
        refinement.provider = provider

    if os.environ.get("TEMPLATE_RECON_REFINE", "").lower() == "false":
        refinement.enabled = False

    if os.environ.get("TEMPLATE_RECON_DEBUG", "").lower() == "true":
        config.debug_mode = True

    refinement.api_key = resolve_api_key(refinement.provider)
    refinement.model = _clean_key(os.environ.get("TEMPLATE_RECON_MODEL")) or refinement.model
    refinement.base_url = _clean_key(os.environ.get("TEMPLATE_RECON_BASE_URL")) or refinement.base_url

    timeout = os.environ.get("TEMPLATE_RECON_TIMEOUT_S")
    if timeout:
        try:
            refinement.timeout_s = float(timeout)
        except ValueError:
            logger.warning(f"Ignoring invalid TEMPLATE_RECON_TIMEOUT_S: {timeout!r}")

    return config


def apply_settings(config: PipelineConfig, settings: Dict[str, Any]) -> PipelineConfig:
    """
    Apply a settings object on top of a configuration.

    Accepted keys mirror the dataclass sections::

        {"refinement": {"provider": "gemini", "api_key": "..."},
         "layout": {"split_gap": 25},
         "theme": {"font_family": "Arial,sans-serif"}}

    Unknown keys are ignored with a warning. When the provider changes and
    no api_key is given, the key is looked up again for the new provider.

    Args:
        config: Configuration to update in place
        settings: Parsed settings mapping

    Returns:
        The updated configuration
    """
    sections = {
        "layout": config.layout,
        "theme": config.theme,
        "refinement": config.refinement,
    }
    previous_provider = config.refinement.provider
    for section_name, values in settings.items():
        section = sections.get(section_name)
        if section is None:
            if hasattr(config, section_name) and not isinstance(values, dict):
                setattr(config, section_name, values)
            else:
                logger.warning(f"Unknown settings section: {section_name}")
            continue
        if not isinstance(values, dict):
            logger.warning(f"Settings section {section_name} must be an object")
            continue
        for key, value in values.items():
            if not hasattr(section, key):
                logger.warning(f"Unknown setting: {section_name}.{key}")
                continue
            setattr(section, key, value)

    refinement_settings = settings.get("refinement")
    key_given = isinstance(refinement_settings, dict) and "api_key" in refinement_settings

    set_provider(config.refinement, config.refinement.provider, keep_key=key_given,
                 previous=previous_provider)
    config.refinement.api_key = _clean_key(config.refinement.api_key)
    return config


def set_provider(
    refinement: RefinementConfig,
    provider: str,
    keep_key: bool = False,
    previous: Optional[str] = None
) -> RefinementConfig:
    """
    Switch the refinement provider.

    The API key is re-resolved from the environment when the provider
    changes, unless keep_key is set (key supplied alongside the provider).

    Args:
        refinement: Refinement settings to update in place
        provider: New provider name (case-insensitive)
        keep_key: Keep refinement.api_key as is
        previous: Provider the current key belongs to (defaults to refinement.provider)
    """
    provider = str(provider).strip().lower()
    previous = refinement.provider if previous is None else previous
    refinement.provider = provider
    if provider != previous and not keep_key:
        refinement.api_key = resolve_api_key(provider)
        logger.debug(f"Provider changed {previous} -> {provider}, API key re-resolved")
    return refinement


def load_settings(
    settings_path: Union[str, Path],
    config: Optional[PipelineConfig] = None
) -> PipelineConfig:
    """
    Load a JSON settings file on top of the environment configuration.

    Args:
        settings_path: Path to the JSON settings file
        config: Base configuration (defaults to get_config())

    Returns:
        PipelineConfig with the settings applied

    Raises:
        FileNotFoundError: If the settings file doesn't exist
        ValueError: If the file is not a JSON object
    """
    settings_path = Path(settings_path)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with open(settings_path, 'r', encoding='utf-8') as f:
        settings = json.load(f)

    if not isinstance(settings, dict):
        raise ValueError(f"Settings file must contain a JSON object: {settings_path}")

    return apply_settings(config or get_config(), settings)
