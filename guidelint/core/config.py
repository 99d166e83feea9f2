"""
Configuration management for guidelint.

Provides centralized, validated configuration from environment variables
and ``.env`` files with proper type checking and defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from guidelint.core.models import Severity

DEFAULT_EXCLUDE_DIRS = ["node_modules", ".git", ".venv", "venv", "build", "dist", "site"]


def _parse_bool(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(v)


def _parse_csv(v, lower: bool = False) -> List[str]:
    if isinstance(v, str):
        items = [item.strip() for item in v.split(",") if item.strip()]
    else:
        items = [str(item).strip() for item in (v or []) if str(item).strip()]
    return [item.lower() for item in items] if lower else items


class ExternalLinkConfig(BaseSettings):
    """External URL probing configuration."""

    enabled: bool = Field(default=False, alias="GUIDELINT_CHECK_EXTERNAL")
    timeout: float = Field(default=10.0, alias="GUIDELINT_EXTERNAL_TIMEOUT")
    max_attempts: int = Field(default=3, alias="GUIDELINT_EXTERNAL_MAX_ATTEMPTS")
    max_workers: int = Field(default=6, alias="GUIDELINT_MAX_WORKERS")
    rate_limit_calls_per_second: float = Field(
        default=2.5, alias="GUIDELINT_RATE_LIMIT_CALLS_PER_SECOND"
    )
    host_failure_threshold: int = Field(default=3, alias="GUIDELINT_HOST_FAILURE_THRESHOLD")
    user_agent: str = Field(default="guidelint/0.1 (+link-check)", alias="GUIDELINT_USER_AGENT")
    ignore_hosts: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["localhost", "127.0.0.1", "example.com"],
        alias="GUIDELINT_IGNORE_HOSTS",
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def parse_enabled(cls, v):
        return _parse_bool(v)

    @field_validator("ignore_hosts", mode="before")
    @classmethod
    def parse_ignore_hosts(cls, v):
        return _parse_csv(v, lower=True)

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class Settings(BaseSettings):
    """Main guidelint settings."""

    root: Path = Field(default=Path("."), alias="GUIDELINT_ROOT")
    index_filename: str = Field(default="README.md", alias="GUIDELINT_INDEX_FILENAME")
    exclude_dirs: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS), alias="GUIDELINT_EXCLUDE_DIRS"
    )

    # Rule selection
    disabled_rules: Annotated[List[str], NoDecode] = Field(
        default_factory=list, alias="GUIDELINT_DISABLED_RULES"
    )
    severity_overrides: Annotated[Dict[str, Severity], NoDecode] = Field(
        default_factory=dict, alias="GUIDELINT_SEVERITY_OVERRIDES"
    )
    require_fence_language: bool = Field(default=True, alias="GUIDELINT_REQUIRE_FENCE_LANGUAGE")
    known_languages: Annotated[List[str], NoDecode] = Field(
        default_factory=list, alias="GUIDELINT_KNOWN_LANGUAGES"
    )
    strict: bool = Field(default=False, alias="GUIDELINT_STRICT")

    debug: bool = Field(default=False, alias="GUIDELINT_DEBUG")

    external: ExternalLinkConfig = Field(default_factory=ExternalLinkConfig)

    @field_validator("require_fence_language", "strict", "debug", mode="before")
    @classmethod
    def parse_flags(cls, v):
        return _parse_bool(v)

    @field_validator("exclude_dirs", mode="before")
    @classmethod
    def parse_exclude_dirs(cls, v):
        return _parse_csv(v)

    @field_validator("disabled_rules", "known_languages", mode="before")
    @classmethod
    def parse_lowercase_lists(cls, v):
        return _parse_csv(v, lower=True)

    @field_validator("severity_overrides", mode="before")
    @classmethod
    def parse_severity_overrides(cls, v):
        if isinstance(v, str):
            overrides = {}
            for pair in _parse_csv(v):
                if "=" not in pair:
                    raise ValueError(f"expected rule=severity, got '{pair}'")
                rule, severity = pair.split("=", 1)
                overrides[rule.strip().lower()] = severity.strip().lower()
            return overrides
        return v or {}

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def is_rule_enabled(self, rule: str) -> bool:
        if rule in self.disabled_rules:
            return False
        if rule == "fence-missing-language" and not self.require_fence_language:
            return False
        if rule == "link-external-broken" and not self.external.enabled:
            return False
        return True


# Global settings instance
settings: Optional[Settings] = None


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        if env_file:
            settings = Settings(
                _env_file=env_file, external=ExternalLinkConfig(_env_file=env_file)
            )
        else:
            settings = Settings()
    return settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global settings
    settings = None


def validate_settings(config: Settings) -> List[str]:
    """
    Validate settings that pydantic cannot check on its own.

    Returns:
        List of human-readable problems (empty when the configuration is usable)
    """
    from guidelint.checks import RULES

    problems = []

    if not config.root.exists():
        problems.append(f"Root directory does not exist: {config.root}")
    elif not config.root.is_dir():
        problems.append(f"Root is not a directory: {config.root}")

    if not config.index_filename.lower().endswith(".md"):
        problems.append(f"Index filename must be a Markdown file: {config.index_filename}")

    for rule in config.disabled_rules:
        if rule not in RULES:
            problems.append(f"Unknown rule in GUIDELINT_DISABLED_RULES: {rule}")

    for rule in config.severity_overrides:
        if rule not in RULES:
            problems.append(f"Unknown rule in GUIDELINT_SEVERITY_OVERRIDES: {rule}")

    if config.external.timeout <= 0:
        problems.append("GUIDELINT_EXTERNAL_TIMEOUT must be positive")
    if config.external.max_workers < 1:
        problems.append("GUIDELINT_MAX_WORKERS must be at least 1")

    return problems


def print_configuration_summary(config: Optional[Settings] = None):
    """Print a summary of the current configuration for debugging."""
    try:
        config = config or get_settings()
        print("=== guidelint Configuration Summary ===")
        print(f"Root: {config.root}")
        print(f"Index File: {config.index_filename}")
        print(f"Excluded Dirs: {', '.join(config.exclude_dirs) or '(none)'}")
        print(f"Disabled Rules: {', '.join(config.disabled_rules) or '(none)'}")
        if config.severity_overrides:
            overrides = ", ".join(
                f"{rule}={Severity(sev).value}" for rule, sev in config.severity_overrides.items()
            )
            print(f"Severity Overrides: {overrides}")
        print(f"Fence Language Required: {'✓' if config.require_fence_language else '✗'}")
        print(f"Known Languages: {', '.join(config.known_languages) or '(any)'}")
        print(f"Strict Mode: {'✓' if config.strict else '✗'}")
        print()
        print("External Links:")
        print(f"  Enabled: {'✓' if config.external.enabled else '✗'}")
        print(f"  Timeout: {config.external.timeout}s")
        print(f"  Max Workers: {config.external.max_workers}")
        print(f"  Rate Limit: {config.external.rate_limit_calls_per_second} calls/sec")
        print("=" * 38)
    except Exception as e:
        print(f"Error loading configuration: {e}")
