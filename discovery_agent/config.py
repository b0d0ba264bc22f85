"""
Centralized configuration with environment variable overrides.

Community details, business-hours rules, model settings and the
scheduling service endpoint are all configurable here. Conversation
and tool logic read from ``settings`` instead of hardcoding values.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from discovery_agent.logging_context import build_log_handler

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BusinessConfig:
    """Community and business-hours settings."""

    facility_name: str = os.getenv("FACILITY_NAME", "Grand Villa")
    guide_name: str = os.getenv("GUIDE_NAME", "Grace")
    default_location: str = os.getenv("DEFAULT_LOCATION", "Grand Villa of Clearwater")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/New_York")
    open_hour: int = _safe_int("BUSINESS_OPEN_HOUR", "10")
    close_hour: int = _safe_int("BUSINESS_CLOSE_HOUR", "17")
    min_lead_hours: int = _safe_int("MIN_LEAD_HOURS", "48")
    default_visit_slot: str = os.getenv("DEFAULT_VISIT_SLOT", "Wednesday 5pm")


@dataclass(frozen=True)
class ModelConfig:
    """Text-generation model settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.7")
    classifier_temperature: float = _safe_float("CLASSIFIER_TEMPERATURE", "0.1")
    llm_max_tokens: int = _safe_int("LLM_MAX_TOKENS", "300")
    llm_timeout_sec: float = _safe_float("LLM_TIMEOUT_SEC", "20.0")


@dataclass(frozen=True)
class SchedulerConfig:
    """Calendar scheduling service endpoint and booking defaults."""

    base_url: str = os.getenv("SCHEDULE_URL", "http://localhost:4005")
    room_id: str = os.getenv("SCHEDULER_ROOM_ID", "discovery-room")
    agent_id: str = os.getenv("SCHEDULER_AGENT_ID", "grace")
    duration_min: int = _safe_int("VISIT_DURATION_MIN", "60")
    create_meet: bool = _safe_bool("CREATE_MEET", "false")
    summary: str = os.getenv("VISIT_SUMMARY", "Grand Villa Tour")
    timeout_sec: float = _safe_float("SCHEDULER_TIMEOUT_SEC", "10.0")


@dataclass(frozen=True)
class ConversationConfig:
    """Tuning knobs for reply generation."""

    name_usage_probability: float = _safe_float("NAME_USAGE_PROBABILITY", "0.5")
    enable_record_export: bool = _safe_bool("ENABLE_RECORD_EXPORT", "true")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "senior-living-discovery")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for temp_name, temp_value in [
        ("LLM_TEMPERATURE", config.model.llm_temperature),
        ("CLASSIFIER_TEMPERATURE", config.model.classifier_temperature),
    ]:
        if not 0.0 <= temp_value <= 2.0:
            raise ValueError(f"{temp_name} must be between 0.0 and 2.0, got {temp_value}")

    if config.model.llm_max_tokens < 1:
        raise ValueError(f"LLM_MAX_TOKENS must be >= 1, got {config.model.llm_max_tokens}")
    if config.model.llm_timeout_sec <= 0:
        raise ValueError(f"LLM_TIMEOUT_SEC must be > 0, got {config.model.llm_timeout_sec}")

    business = config.business
    if not 0 <= business.open_hour < business.close_hour <= 23:
        raise ValueError(
            "BUSINESS_OPEN_HOUR must be before BUSINESS_CLOSE_HOUR (0-23), "
            f"got {business.open_hour}-{business.close_hour}"
        )
    if business.min_lead_hours < 0:
        raise ValueError(f"MIN_LEAD_HOURS must be >= 0, got {business.min_lead_hours}")

    if config.scheduler.duration_min < 1:
        raise ValueError(
            f"VISIT_DURATION_MIN must be >= 1, got {config.scheduler.duration_min}"
        )
    if config.scheduler.timeout_sec <= 0:
        raise ValueError(
            f"SCHEDULER_TIMEOUT_SEC must be > 0, got {config.scheduler.timeout_sec}"
        )

    if not 0.0 <= config.conversation.name_usage_probability <= 1.0:
        raise ValueError(
            "NAME_USAGE_PROBABILITY must be between 0.0 and 1.0, "
            f"got {config.conversation.name_usage_probability}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[build_log_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.business.facility_name)
    return config


# Singleton instance
settings = load_config()
