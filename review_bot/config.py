"""
Configuration module for the code review bot.

Settings are an explicit, versioned schema of nested pydantic models.
Values come from defaults, then environment variables (``REVIEW_BOT_``
prefix, ``__`` for nesting, optional ``.env`` file), then the JSON
config file in the repository root, applied with a structural merge.

There is no global settings instance: load once per run and pass the
resulting object to the pipeline and analyzers.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from review_bot.exceptions import ConfigurationError
from review_bot.models import SEVERITY_ORDER, Severity

logger = logging.getLogger(__name__)

CONFIG_VERSION = 1
CONFIG_FILENAME = ".codereviewrc.json"

KNOWN_ANALYZERS = ("security", "quality", "bugs", "performance")
LOG_LEVEL_NAMES = ("debug", "info", "warning", "error", "critical")


class OutputFormat(str, Enum):
    """Supported report formats."""
    CONSOLE = "console"
    JSON = "json"
    HTML = "html"
    MARKDOWN = "markdown"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class AnalysisSettings(_Section):
    """File selection and analyzer enablement."""

    enabled_analyzers: List[str] = Field(
        default_factory=lambda: list(KNOWN_ANALYZERS)
    )
    max_file_size: int = Field(default=1_000_000, gt=0)  # 1MB
    ignored_files: List[str] = Field(
        default_factory=lambda: [
            "node_modules/**",
            "dist/**",
            "build/**",
            ".git/**",
            "*.min.js",
            "*.min.css",
            "vendor/**",
        ]
    )
    included_files: List[str] = Field(default_factory=list)
    # Files detected as any other language are skipped; undetected ones are analyzed
    languages: List[str] = Field(
        default_factory=lambda: [
            "javascript", "typescript", "python", "java", "php", "go", "rust",
        ]
    )

    @field_validator("enabled_analyzers", "ignored_files", "included_files", "languages", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse comma-separated strings (from env) into a list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("enabled_analyzers")
    @classmethod
    def validate_analyzers(cls, v: List[str]) -> List[str]:
        unknown = [name for name in v if name not in KNOWN_ANALYZERS]
        if unknown:
            raise ValueError(
                f"Unknown analyzers {unknown}; expected any of {list(KNOWN_ANALYZERS)}"
            )
        # Keep configured order, drop repeats
        return list(dict.fromkeys(v))


class CustomRule(_Section):
    """User-defined line pattern for the security analyzer."""

    type: str
    pattern: str
    severity: Severity = Severity.MEDIUM
    title: Optional[str] = None
    message: Optional[str] = None
    suggestion: Optional[str] = None


class SecuritySettings(_Section):
    enable_secret_scanning: bool = True
    severity_thresholds: Dict[str, str] = Field(
        default_factory=lambda: {
            "critical": "error",
            "high": "warning",
            "medium": "warning",
            "low": "info",
            "info": "debug",
        }
    )
    custom_rules: List[CustomRule] = Field(default_factory=list)

    @field_validator("severity_thresholds")
    @classmethod
    def validate_thresholds(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Every severity must map to a known log level name."""
        thresholds = {}
        for key, level in v.items():
            try:
                severity = Severity(key.lower())
            except ValueError:
                raise ValueError(f"Unknown severity in thresholds: {key}")
            if level.lower() not in LOG_LEVEL_NAMES:
                raise ValueError(f"Unknown log level for {key}: {level}")
            thresholds[severity.value] = level.lower()
        for severity in SEVERITY_ORDER:
            thresholds.setdefault(severity.value, "info")
        return thresholds


class QualitySettings(_Section):
    complexity_threshold: int = Field(default=10, ge=1)
    duplication_threshold: int = Field(default=3, ge=2)
    max_function_lines: int = Field(default=50, ge=1)
    max_file_lines: int = Field(default=500, ge=1)
    max_line_length: int = Field(default=120, ge=20)


class PerformanceSettings(_Section):
    enable_performance_analysis: bool = True
    memory_leak_detection: bool = True
    algorithmic_complexity_analysis: bool = True
    n_plus_one_detection: bool = True


class OutputSettings(_Section):
    format: OutputFormat = OutputFormat.CONSOLE
    include_code_snippets: bool = True
    include_suggestions: bool = True
    max_suggestions_per_file: int = Field(default=20, ge=0)


class PrecommitSettings(_Section):
    enabled: bool = True
    blocking: bool = False
    timeout: int = Field(default=30000, ge=0)  # ms per git command, 0 for none


class IntegrationSettings(_Section):
    precommit: PrecommitSettings = Field(default_factory=PrecommitSettings)


class PipelineSettings(_Section):
    fetch_concurrency: int = Field(default=8, ge=1)
    concurrent_analyzers: bool = True


class Settings(BaseSettings):
    """
    Resolved configuration for one run.

    Nested sections can be overridden from the environment, e.g.
    ``REVIEW_BOT_QUALITY__COMPLEXITY_THRESHOLD=15``.
    """

    version: int = CONFIG_VERSION

    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    integrations: IntegrationSettings = Field(default_factory=IntegrationSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"
    enable_metrics: bool = True
    error_tracking_enabled: bool = True
    sentry_dsn: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="REVIEW_BOT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.lower() not in LOG_LEVEL_NAMES:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return v.lower()

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v > CONFIG_VERSION:
            raise ValueError(
                f"Config version {v} is newer than supported version {CONFIG_VERSION}"
            )
        return v

    def log_level_for(self, severity: Severity) -> int:
        """Log level (``logging`` constant) configured for an issue severity."""
        name = self.security.severity_thresholds.get(severity.value, "info")
        return getattr(logging, name.upper(), logging.INFO)


def merge_config(base: BaseModel, override: Mapping[str, Any], _prefix: str = "") -> BaseModel:
    """
    Structurally merge ``override`` into a settings model.

    Nested sections are merged key by key; leaves (including lists) are
    replaced. The base model is not modified.

    Args:
        base: Settings (or section) model to start from
        override: Mapping following the same schema

    Returns:
        New validated model of the same type as ``base``

    Raises:
        ConfigurationError: On unknown keys or invalid values
    """
    fields = type(base).model_fields
    data = base.model_dump()

    for key, value in override.items():
        if key not in fields:
            raise ConfigurationError(f"Unknown configuration key: {_prefix}{key}")

        current = getattr(base, key)
        if isinstance(current, BaseModel) and isinstance(value, Mapping):
            data[key] = merge_config(current, value, f"{_prefix}{key}.").model_dump()
        else:
            data[key] = value

    try:
        return type(base).model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration{' in ' + _prefix.rstrip('.') if _prefix else ''}: {e}"
        ) from e


def validate_settings(settings: Settings) -> None:
    """
    Check that settings required to start a run are present.

    Raises:
        ConfigurationError: If a required setting is missing
    """
    required = {
        "analysis.enabled_analyzers": settings.analysis.enabled_analyzers,
        "security.severity_thresholds": settings.security.severity_thresholds,
        "output.format": settings.output.format,
    }
    for path, value in required.items():
        if value is None:
            raise ConfigurationError(f"Required config path missing: {path}")


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings for one run.

    Args:
        config_path: JSON config file (defaults to ``.codereviewrc.json``
            in the current directory). A missing file means defaults.

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the environment or the file is invalid
    """
    path = Path(config_path) if config_path else Path.cwd() / CONFIG_FILENAME

    try:
        settings = Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config: {e}", {"path": str(path)}
            ) from e

        if not isinstance(raw, dict):
            raise ConfigurationError(
                "Config file must contain a JSON object", {"path": str(path)}
            )

        settings = merge_config(settings, raw)
        logger.debug("Loaded config file", extra={"path": str(path)})
    else:
        logger.debug("No config file found, using defaults", extra={"path": str(path)})

    validate_settings(settings)
    return settings


def save_settings(settings: Settings, config_path: Optional[Union[str, Path]] = None) -> Path:
    """
    Write settings to the JSON config file.

    Returns:
        Path that was written
    """
    path = Path(config_path) if config_path else Path.cwd() / CONFIG_FILENAME
    payload = settings.model_dump(mode="json", exclude={"sentry_dsn"})

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.write("\n")
    except OSError as e:
        raise ConfigurationError(f"Failed to save config: {e}", {"path": str(path)}) from e

    logger.info("Configuration saved", extra={"path": str(path)})
    return path
