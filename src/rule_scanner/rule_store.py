"""Loading, filtering and runtime management of rule sets.

Rule-set documents are JSON files. A document that cannot be read or whose
envelope is malformed is skipped with a diagnostic; individual rules that
fail validation are dropped while the rest of the document still loads.

The effective rule population is published as an immutable tuple. Every
mutation builds a new tuple under a lock, so a scan holding an earlier
snapshot never observes a half-applied change.
"""

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .config import EngineConfig
from .models import (
    Rule,
    RuleCategory,
    RuleFramework,
    RuleLanguage,
    RuleSet,
    RuleSetInfo,
    RuleStats,
    Severity,
)

logger = logging.getLogger(__name__)


class RuleScannerError(Exception):
    """Base exception for rule scanner errors."""


class RuleSetLoadError(RuleScannerError):
    """Raised when a rule-set document cannot be read or is malformed."""

    def __init__(self, message: str, path: str | Path | None = None):
        self.path = str(path) if path is not None else None
        super().__init__(message)


class DuplicateRuleError(RuleScannerError, ValueError):
    """Raised when adding a rule whose id is already loaded."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule id already loaded: {rule_id}")


class RuleFilter:
    """Inclusion filter applied to every rule before it becomes effective.

    Precedence: the disable list always wins; an allow-list, when present,
    admits only listed rules (even ones flagged disabled); otherwise the
    rule's own ``enabled`` flag decides. Severity, category, language and
    framework filters then narrow the result.
    """

    def __init__(
        self,
        enable_rules: Optional[Iterable[str]] = None,
        disable_rules: Optional[Iterable[str]] = None,
        severities: Optional[Iterable[Severity]] = None,
        categories: Optional[Iterable[RuleCategory]] = None,
        languages: Optional[Iterable[RuleLanguage]] = None,
        frameworks: Optional[Iterable[RuleFramework]] = None,
    ):
        # None means no allow-list; an empty allow-list admits nothing
        self.enable_rules = frozenset(enable_rules) if enable_rules is not None else None
        self.disable_rules = frozenset(disable_rules or ())
        self.severities = frozenset(severities) if severities else None
        self.categories = frozenset(categories) if categories else None
        self.languages = frozenset(languages) if languages else None
        self.frameworks = frozenset(frameworks) if frameworks else None

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RuleFilter":
        return cls(
            enable_rules=config.enable_rules or None,
            disable_rules=config.disable_rules,
            severities=config.severity_filter,
            categories=config.category_filter,
            languages=config.language_filter,
            frameworks=config.framework_filter,
        )

    def includes(self, rule: Rule) -> bool:
        if rule.id in self.disable_rules:
            return False

        if self.enable_rules is not None:
            if rule.id not in self.enable_rules:
                return False
        elif not rule.enabled:
            return False

        if self.severities is not None and rule.severity not in self.severities:
            return False

        if self.categories is not None and rule.category not in self.categories:
            return False

        if self.languages is not None:
            if not any(
                lang == RuleLanguage.any or lang in self.languages for lang in rule.languages
            ):
                return False

        # Rules without a framework constraint pass any framework filter
        if self.frameworks is not None and rule.frameworks:
            if not any(
                fw == RuleFramework.any or fw in self.frameworks for fw in rule.frameworks
            ):
                return False

        return True


def load_rule_set(path: str | Path) -> RuleSet:
    """Parse and validate one rule-set document.

    The envelope (name, version, rules list) must be valid or the whole
    document is rejected. Each rule is validated on its own; invalid rules
    are logged and left out of the returned rule set.

    Args:
        path: Path to a JSON rule-set document.

    Returns:
        The rule set containing only the valid rules.

    Raises:
        RuleSetLoadError: If the file cannot be read, is not JSON, or has a
            malformed envelope.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise RuleSetLoadError(f"Cannot read rule set {path}: {e}", path) from e
    except json.JSONDecodeError as e:
        raise RuleSetLoadError(f"Invalid JSON in rule set {path}: {e}", path) from e

    if not isinstance(raw, Mapping):
        raise RuleSetLoadError(f"Rule set {path} must be a JSON object", path)

    raw_rules = raw.get("rules")
    if not isinstance(raw_rules, list):
        raise RuleSetLoadError(f"Rule set {path} has no 'rules' list", path)

    try:
        rule_set = RuleSet.model_validate({**raw, "rules": []})
    except ValidationError as e:
        raise RuleSetLoadError(f"Invalid rule set envelope in {path}: {e}", path) from e

    for index, raw_rule in enumerate(raw_rules):
        try:
            rule_set.rules.append(Rule.model_validate(raw_rule))
        except ValidationError as e:
            rule_id = raw_rule.get("id") if isinstance(raw_rule, Mapping) else None
            logger.warning(
                f"Rejected rule {rule_id or f'#{index}'} in {path.name}: "
                f"{e.error_count()} validation error(s)"
            )

    return rule_set


def _iter_rule_files(sources: Iterable[str | Path]) -> Iterable[Path]:
    for source in sources:
        source = Path(source)
        if source.is_dir():
            yield from sorted(p for p in source.glob("*.json") if p.is_file())
        elif source.is_file() and source.suffix.lower() == ".json":
            yield source
        else:
            logger.debug(f"Skipping missing rule source: {source}")


class RuleStore:
    """Holds the loaded rule catalog and publishes effective snapshots."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self._lock = threading.RLock()
        self._catalog: dict[str, Rule] = {}
        self._rule_sets: list[RuleSetInfo] = []
        self._reset_filter_state()
        self._snapshot: tuple[Rule, ...] = ()

    def _reset_filter_state(self) -> None:
        self._enable_ids: Optional[set[str]] = (
            set(self.config.enable_rules) if self.config.enable_rules else None
        )
        self._disable_ids: set[str] = set(self.config.disable_rules or ())

    def _current_filter(self) -> RuleFilter:
        return RuleFilter(
            enable_rules=self._enable_ids,
            disable_rules=self._disable_ids,
            severities=self.config.severity_filter,
            categories=self.config.category_filter,
            languages=self.config.language_filter,
            frameworks=self.config.framework_filter,
        )

    def _publish(self) -> None:
        rule_filter = self._current_filter()
        self._snapshot = tuple(r for r in self._catalog.values() if rule_filter.includes(r))

    # --- loading ---

    def load_rules(self, sources: Iterable[str | Path] | None = None) -> list[Rule]:
        """Load every rule-set document found in ``sources``.

        Sources are directories (all ``*.json`` files, sorted by name) or
        individual JSON files. A bad document is skipped and the load
        continues. Rule ids must be unique: the first one loaded wins.

        Returns:
            The effective rule list after filtering.
        """
        sources = list(sources) if sources is not None else list(self.config.rule_dirs)
        catalog: dict[str, Rule] = {}
        rule_sets: list[RuleSetInfo] = []

        for rule_file in _iter_rule_files(sources):
            try:
                rule_set = load_rule_set(rule_file)
            except RuleSetLoadError as e:
                logger.error(f"Skipping rule set: {e}")
                continue

            for rule in rule_set.rules:
                if rule.id in catalog:
                    logger.warning(f"Duplicate rule id {rule.id} in {rule_file.name}, keeping first")
                    continue
                catalog[rule.id] = rule

            rule_sets.append(
                RuleSetInfo(
                    name=rule_set.name,
                    version=rule_set.version,
                    description=rule_set.description,
                    author=rule_set.author,
                    source=str(rule_file),
                    rule_count=len(rule_set.rules),
                )
            )
            logger.info(f"Loaded {len(rule_set.rules)} rules from {rule_file.name}")

        with self._lock:
            self._catalog = catalog
            self._rule_sets = rule_sets
            self._publish()
            snapshot = self._snapshot

        logger.info(f"Total effective rules: {len(snapshot)}")
        return list(snapshot)

    def reload(self) -> list[Rule]:
        """Reload from the configured directories.

        Runtime additions and enable/disable overrides are discarded.
        """
        with self._lock:
            self._reset_filter_state()
        return self.load_rules()

    # --- queries ---

    def snapshot(self) -> tuple[Rule, ...]:
        """Return the current immutable effective rule population."""
        return self._snapshot

    def get_rules(self) -> list[Rule]:
        return list(self._snapshot)

    def get_rule(self, rule_id: str) -> Rule | None:
        """Look up a loaded rule by id, whether or not it is currently effective."""
        return self._catalog.get(rule_id)

    def is_active(self, rule_id: str) -> bool:
        return any(r.id == rule_id for r in self._snapshot)

    def get_rules_by_category(self, category: RuleCategory | str) -> list[Rule]:
        return [r for r in self._snapshot if r.category == category]

    def get_rules_by_severity(self, severity: Severity | str) -> list[Rule]:
        return [r for r in self._snapshot if r.severity == severity]

    def get_rule_sets(self) -> list[RuleSetInfo]:
        return list(self._rule_sets)

    def get_stats(self) -> RuleStats:
        stats = RuleStats(total=len(self._snapshot))
        for rule in self._snapshot:
            category = rule.category.value
            severity = rule.severity.value
            stats.by_category[category] = stats.by_category.get(category, 0) + 1
            stats.by_severity[severity] = stats.by_severity.get(severity, 0) + 1
            for lang in rule.languages:
                stats.by_language[lang.value] = stats.by_language.get(lang.value, 0) + 1
        return stats

    # --- runtime mutation ---

    def add_rule(self, rule: Rule | Mapping) -> bool:
        """Add a rule at runtime.

        Returns:
            True if the rule passed the inclusion filter and was admitted.

        Raises:
            DuplicateRuleError: If a rule with the same id is already loaded.
            pydantic.ValidationError: If ``rule`` is a mapping that fails validation.
        """
        if not isinstance(rule, Rule):
            rule = Rule.model_validate(rule)

        with self._lock:
            if rule.id in self._catalog:
                raise DuplicateRuleError(rule.id)
            if not self._current_filter().includes(rule):
                logger.info(f"Rule {rule.id} not admitted by the inclusion filter")
                return False
            catalog = dict(self._catalog)
            catalog[rule.id] = rule
            self._catalog = catalog
            self._publish()
        return True

    def remove_rule(self, rule_id: str) -> bool:
        with self._lock:
            if rule_id not in self._catalog:
                return False
            catalog = dict(self._catalog)
            del catalog[rule_id]
            self._catalog = catalog
            self._publish()
        return True

    def enable_rule(self, rule_id: str) -> bool:
        """Enable a loaded rule, lifting any disable-list entry for it."""
        with self._lock:
            rule = self._catalog.get(rule_id)
            if rule is None:
                return False
            self._disable_ids.discard(rule_id)
            if self._enable_ids is not None:
                self._enable_ids.add(rule_id)
            self._replace(rule.model_copy(update={"enabled": True}))
        return True

    def disable_rule(self, rule_id: str) -> bool:
        """Disable a loaded rule. It stays retrievable through ``get_rule``."""
        with self._lock:
            rule = self._catalog.get(rule_id)
            if rule is None:
                return False
            if self._enable_ids is not None:
                self._enable_ids.discard(rule_id)
            self._replace(rule.model_copy(update={"enabled": False}))
        return True

    def _replace(self, rule: Rule) -> None:
        catalog = dict(self._catalog)
        catalog[rule.id] = rule
        self._catalog = catalog
        self._publish()
