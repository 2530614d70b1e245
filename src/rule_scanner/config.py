"""Engine configuration, read from the environment or built directly."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .models import RuleCategory, RuleFramework, RuleLanguage, Severity

BUILTIN_RULES_DIR = Path(__file__).parent / "rulesets"
CUSTOM_RULES_DIR = BUILTIN_RULES_DIR / "custom"

DEFAULT_RULE_DIRS = [str(BUILTIN_RULES_DIR), str(CUSTOM_RULES_DIR)]

ENV_PREFIX = "RULE_SCANNER_"


class EngineConfig(BaseModel):
    """Settings for a rule engine instance."""

    rule_dirs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RULE_DIRS),
        description="Directories (or individual .json files) to load rule sets from",
    )
    enable_rules: Optional[list[str]] = Field(
        default=None, description="If set, only these rule ids are admitted"
    )
    disable_rules: Optional[list[str]] = Field(
        default=None, description="Rule ids that are always excluded"
    )
    severity_filter: Optional[list[Severity]] = Field(default=None)
    category_filter: Optional[list[RuleCategory]] = Field(default=None)
    language_filter: Optional[list[RuleLanguage]] = Field(default=None)
    framework_filter: Optional[list[RuleFramework]] = Field(default=None)
    max_workers: int = Field(default=4, ge=1, description="Worker threads used to scan files")
    pattern_timeout: float = Field(
        default=2.0, gt=0, description="Seconds a single pattern may run against one file"
    )

    @classmethod
    def from_env(cls, **overrides) -> "EngineConfig":
        """Build a config from RULE_SCANNER_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        values: dict = {}

        rule_dirs = os.environ.get(f"{ENV_PREFIX}RULE_DIRS")
        if rule_dirs:
            values["rule_dirs"] = [d for d in rule_dirs.split(os.pathsep) if d]

        list_settings = {
            "enable_rules": "ENABLE_RULES",
            "disable_rules": "DISABLE_RULES",
            "severity_filter": "SEVERITIES",
            "category_filter": "CATEGORIES",
            "language_filter": "LANGUAGES",
            "framework_filter": "FRAMEWORKS",
        }
        for field_name, env_name in list_settings.items():
            raw = os.environ.get(f"{ENV_PREFIX}{env_name}")
            if raw:
                values[field_name] = _split_csv(raw)

        max_workers = os.environ.get(f"{ENV_PREFIX}MAX_WORKERS")
        if max_workers:
            values["max_workers"] = max_workers

        pattern_timeout = os.environ.get(f"{ENV_PREFIX}PATTERN_TIMEOUT")
        if pattern_timeout:
            values["pattern_timeout"] = pattern_timeout

        values.update(overrides)
        return cls(**values)


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]
