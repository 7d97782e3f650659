"""
Tests for configuration loading.
"""

import json
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


ENV_VARS = [
    "TEMPLATE_RECON_PROVIDER", "TEMPLATE_RECON_REFINE", "TEMPLATE_RECON_DEBUG",
    "TEMPLATE_RECON_API_KEY", "TEMPLATE_RECON_MODEL", "TEMPLATE_RECON_BASE_URL",
    "TEMPLATE_RECON_TIMEOUT_S", "OPENAI_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Test default configuration values."""

    def test_layout_defaults(self):
        from template_recon.config import LayoutConfig

        config = LayoutConfig()

        assert config.min_line_tolerance == 1.5
        assert config.split_gap == 30
        assert config.center_tolerance == 8
        assert config.default_left_margin == 8

    def test_theme_wrapper_style(self):
        from template_recon.config import ThemeConfig

        style = ThemeConfig().wrapper_style

        assert style.startswith("font-family:'Times New Roman',Georgia,serif;max-width:680px;")
        assert "line-height:1.6;" in style

    def test_active_model(self):
        from template_recon.config import RefinementConfig

        assert RefinementConfig(provider="gemini").active_model == "gemini-2.0-flash"
        assert RefinementConfig(provider="gemini", model="custom").active_model == "custom"
        assert RefinementConfig(provider="unknown").active_model == "gpt-4o"

    def test_vision_providers(self):
        from template_recon.config import VISION_PROVIDERS

        assert "anthropic" in VISION_PROVIDERS
        assert "groq" not in VISION_PROVIDERS


class TestEnvironment:
    """Test environment overrides."""

    def test_no_env(self, clean_env):
        from template_recon.config import get_config

        config = get_config()

        assert config.refinement.provider == "openai"
        assert config.refinement.api_key is None
        assert config.refinement.enabled is True

    def test_provider_key(self, clean_env):
        from template_recon.config import get_config

        clean_env.setenv("TEMPLATE_RECON_PROVIDER", "Gemini")
        clean_env.setenv("GEMINI_API_KEY", '  "g-key"  ')

        config = get_config()

        assert config.refinement.provider == "gemini"
        assert config.refinement.api_key == "g-key"

    def test_overrides(self, clean_env):
        from template_recon.config import get_config

        clean_env.setenv("TEMPLATE_RECON_REFINE", "false")
        clean_env.setenv("TEMPLATE_RECON_DEBUG", "true")
        clean_env.setenv("TEMPLATE_RECON_API_KEY", "generic")
        clean_env.setenv("TEMPLATE_RECON_TIMEOUT_S", "15")

        config = get_config()

        assert config.refinement.enabled is False
        assert config.debug_mode is True
        assert config.refinement.api_key == "generic"
        assert config.refinement.timeout_s == 15.0

    def test_invalid_timeout_ignored(self, clean_env):
        from template_recon.config import get_config

        clean_env.setenv("TEMPLATE_RECON_TIMEOUT_S", "soon")

        assert get_config().refinement.timeout_s == 60.0


class TestSettingsFile:
    """Test JSON settings files."""

    def test_load_settings(self, clean_env, tmp_path):
        from template_recon.config import load_settings

        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "refinement": {"provider": "ANTHROPIC", "api_key": "'a-key'"},
            "layout": {"split_gap": 25},
            "theme": {"font_family": "Arial,sans-serif"},
            "debug_mode": True,
        }), encoding="utf-8")

        config = load_settings(path)

        assert config.refinement.provider == "anthropic"
        assert config.refinement.api_key == "a-key"
        assert config.layout.split_gap == 25
        assert config.theme.font_family == "Arial,sans-serif"
        assert config.debug_mode is True

    def test_provider_change_uses_provider_key(self, clean_env, tmp_path):
        """Switching provider in the settings file picks up that provider's key."""
        from template_recon.config import load_settings

        clean_env.setenv("OPENAI_API_KEY", "sk-openai")
        clean_env.setenv("GEMINI_API_KEY", " 'gem-key' ")
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"refinement": {"provider": "gemini"}}), encoding="utf-8")

        config = load_settings(path)

        assert config.refinement.provider == "gemini"
        assert config.refinement.api_key == "gem-key"

    def test_provider_change_without_key(self, clean_env):
        """No key for the new provider means no key at all."""
        from template_recon.config import get_config, apply_settings

        clean_env.setenv("OPENAI_API_KEY", "sk-openai")

        config = apply_settings(get_config(), {"refinement": {"provider": "anthropic"}})

        assert config.refinement.api_key is None

    def test_same_provider_keeps_key(self, clean_env):
        from template_recon.config import get_config, apply_settings

        clean_env.setenv("OPENAI_API_KEY", "sk-openai")

        config = apply_settings(get_config(), {"refinement": {"provider": "OpenAI"}})

        assert config.refinement.provider == "openai"
        assert config.refinement.api_key == "sk-openai"

    def test_set_provider_cleans_key(self, clean_env):
        from template_recon.config import RefinementConfig, set_provider

        clean_env.setenv("ANTHROPIC_API_KEY", '  "a-key"  ')
        refinement = RefinementConfig(provider="openai", api_key="sk-openai")

        set_provider(refinement, "Anthropic")

        assert refinement.provider == "anthropic"
        assert refinement.api_key == "a-key"

    def test_unknown_keys_ignored(self, clean_env):
        from template_recon.config import PipelineConfig, apply_settings

        config = apply_settings(PipelineConfig(), {"layout": {"nope": 1}, "extra": {"a": 1}})

        assert not hasattr(config.layout, "nope")
        assert not hasattr(config, "extra")

    def test_missing_file(self, tmp_path):
        from template_recon.config import load_settings

        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.json")

    def test_not_an_object(self, tmp_path):
        from template_recon.config import load_settings

        path = tmp_path / "settings.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ValueError):
            load_settings(path)
