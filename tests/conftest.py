"""Shared fixtures for rule scanner tests."""

import json
from pathlib import Path

import pytest

from rule_scanner.models import Rule


def _rule_data(**overrides) -> dict:
    data = {
        "id": "T001",
        "name": "Test rule",
        "description": "Flags dangerous calls",
        "severity": "high",
        "category": "injection",
        "languages": ["javascript"],
        "patterns": [{"pattern": r"dangerous\("}],
        "remediation": "Do not call dangerous()",
    }
    data.update(overrides)
    return data


@pytest.fixture
def rule_data():
    """Factory for raw rule documents (camelCase keys allowed)."""
    return _rule_data


@pytest.fixture
def make_rule():
    """Factory for validated Rule objects."""

    def _make(**overrides) -> Rule:
        return Rule.model_validate(_rule_data(**overrides))

    return _make


@pytest.fixture
def write_rule_set(tmp_path):
    """Write a rule-set document into a temp directory and return its path."""

    def _write(rules: list[dict], name: str = "test-rules", filename: str | None = None, **envelope) -> Path:
        document = {"name": name, "version": "1.0.0", "rules": rules, **envelope}
        path = tmp_path / (filename or f"{name}.json")
        path.write_text(json.dumps(document))
        return path

    return _write
