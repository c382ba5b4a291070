"""
MindCanvas Configuration.

Consolidates settings for:
- The remote model (credential, model, temperature, token limits)
- Pipeline pacing (stagger delays, settle delay, synthetic step delays)
- The resource governor (window, ceiling, cost rate)

Loads from mindcanvas.yaml (if present) with sensible defaults, then applies
environment variable overrides.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Mapping, Optional
from pathlib import Path
import yaml
import os

from ..utils import console


PLACEHOLDER_API_KEY = "your_openai_api_key_here"
KNOWN_MODELS = ("gpt-4", "gpt-3.5-turbo")


@dataclass
class AIConfiguration:
    """Credential and sampling settings for the remote model."""
    api_key: str = ""
    model: str = "gpt-4"
    temperature: float = 0.7
    max_tokens: int = 2000
    update_max_tokens: int = 500
    suggestions_max_tokens: int = 800
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 60.0
    max_attempts: int = 1


@dataclass
class PacingConfig:
    """Delays (seconds) used by the orchestrator and execution engine."""
    stagger_delay: float = 0.8
    regenerate_stagger_delay: float = 0.5
    settle_delay: float = 1.0
    step_delay_min: float = 1.0
    step_delay_max: float = 3.0
    task_spacing: float = 120.0
    task_offset_x: float = 50.0


@dataclass
class GovernorConfig:
    """Sliding-window rate limit and cost accounting."""
    window_seconds: float = 60.0
    max_requests_per_minute: int = 60
    prune_interval: float = 10.0
    cost_per_token: float = 0.00003
    default_token_estimate: int = 500


@dataclass
class AppSettings:
    """Top-level settings for a MindCanvas session."""
    ai: AIConfiguration = field(default_factory=AIConfiguration)
    pacing: PacingConfig = field(default_factory=PacingConfig)
    governor: GovernorConfig = field(default_factory=GovernorConfig)
    app_name: str = "MindCanvas"
    debug_mode: bool = False
    enable_ai_fallback: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["ai"]["api_key"]:
            data["ai"]["api_key"] = "***"
        return data


@dataclass
class ConfigValidation:
    """Outcome of validate_settings()."""
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _env_or_default(env: Mapping[str, str], name: str, default: Any, cast=str) -> Any:
    """Environment value cast to the target type; empty or invalid values fall back."""
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError:
        console.warning(f"Ignoring invalid value for {name}: {value!r}")
        return default


def _section(cls, data: Optional[dict]):
    """Build a dataclass section from a YAML mapping, ignoring unknown keys."""
    data = data or {}
    known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
    unknown = set(data) - set(known)
    if unknown:
        console.warning(f"Unknown {cls.__name__} keys ignored: {', '.join(sorted(unknown))}")
    return cls(**known)


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """
    Load settings from YAML and the environment.

    Args:
        config_path: YAML file; defaults to $MINDCANVAS_CONFIG or ./mindcanvas.yaml
        env: Environment mapping (defaults to os.environ)

    Returns:
        AppSettings with environment overrides applied
    """
    env = os.environ if env is None else env
    path = Path(config_path or env.get("MINDCANVAS_CONFIG", "mindcanvas.yaml"))

    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        console.debug(f"Loaded config from {path}")
    else:
        data = {}
        console.debug(f"No config file at {path}, using defaults")

    settings = AppSettings(
        ai=_section(AIConfiguration, data.get("ai")),
        pacing=_section(PacingConfig, data.get("pacing")),
        governor=_section(GovernorConfig, data.get("governor")),
        app_name=data.get("app_name", "MindCanvas"),
        debug_mode=bool(data.get("debug_mode", False)),
        enable_ai_fallback=bool(data.get("enable_ai_fallback", True)),
    )

    ai = settings.ai
    ai.api_key = _env_or_default(env, "OPENAI_API_KEY", ai.api_key)
    ai.model = _env_or_default(env, "AI_MODEL", ai.model)
    ai.temperature = _env_or_default(env, "AI_TEMPERATURE", ai.temperature, float)
    ai.max_tokens = _env_or_default(env, "AI_MAX_TOKENS", ai.max_tokens, int)
    ai.base_url = _env_or_default(env, "AI_BASE_URL", ai.base_url)
    ai.max_attempts = _env_or_default(env, "AI_MAX_ATTEMPTS", ai.max_attempts, int)

    settings.app_name = _env_or_default(env, "APP_NAME", settings.app_name)
    settings.debug_mode = _flag(env.get("DEBUG_MODE"), settings.debug_mode)
    settings.enable_ai_fallback = _flag(env.get("ENABLE_AI_FALLBACK"), settings.enable_ai_fallback)

    return settings


def validate_settings(settings: AppSettings) -> ConfigValidation:
    """Check settings for problems that would break or degrade AI features."""
    result = ConfigValidation()
    ai = settings.ai

    if not ai.api_key:
        result.warnings.append("OpenAI API key not configured. AI features will be disabled.")
    elif ai.api_key == PLACEHOLDER_API_KEY:
        result.errors.append("Please replace the placeholder OpenAI API key with your actual key.")

    if ai.model not in KNOWN_MODELS:
        result.warnings.append(f"Unknown AI model: {ai.model}. This may cause issues.")

    if ai.temperature < 0 or ai.temperature > 2:
        result.warnings.append(
            f"AI temperature should be between 0 and 2. Current: {ai.temperature}"
        )

    if ai.max_attempts < 1:
        result.errors.append(f"AI max_attempts must be at least 1. Current: {ai.max_attempts}")

    pacing = settings.pacing
    if pacing.step_delay_min > pacing.step_delay_max:
        result.errors.append("pacing.step_delay_min must not exceed pacing.step_delay_max")

    if settings.debug_mode:
        console.info("MindCanvas configuration:", str(settings.to_dict()))
        for warning in result.warnings:
            console.warning(warning)
        for error in result.errors:
            console.error(error)

    return result


def is_ai_available(settings: AppSettings) -> bool:
    """True when a usable (non-placeholder) API key is configured."""
    key = settings.ai.api_key
    return bool(key) and key != PLACEHOLDER_API_KEY
