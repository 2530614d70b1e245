"""Triage priority scoring and aggregate views over findings."""

from collections.abc import Iterable, Mapping
from typing import Any

from .models import Vulnerability, VulnerabilitySplit, VulnerabilitySummary

SEVERITY_BASE_SCORES = {
    "critical": 90,
    "high": 70,
    "medium": 50,
    "low": 30,
    "info": 10,
}
UNKNOWN_SEVERITY_SCORE = 25

FIRST_PARTY_BONUS = 10
DEPENDENCY_ADJUSTMENTS = {
    "direct": 5,
    "transitive": -10,
    "vendored": 3,
}
TEST_CODE_PENALTY = 15


def _field(vuln: Any, name: str) -> Any:
    if isinstance(vuln, Mapping):
        return vuln.get(name)
    return getattr(vuln, name, None)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", value)


def calculate_priority_score(vuln: Vulnerability | Mapping[str, Any]) -> int:
    """Score a finding from 0 to 100, higher meaning more urgent.

    Only severity, is_third_party, dependency_type and is_test are read.
    Unrecognized severities score a base of 25.
    """
    severity = _text(_field(vuln, "severity"))
    score = SEVERITY_BASE_SCORES.get(severity, UNKNOWN_SEVERITY_SCORE)

    if not _field(vuln, "is_third_party"):
        score += FIRST_PARTY_BONUS
    else:
        dependency_type = _text(_field(vuln, "dependency_type"))
        score += DEPENDENCY_ADJUSTMENTS.get(dependency_type, 0)

    if _field(vuln, "is_test"):
        score -= TEST_CODE_PENALTY

    return max(0, min(100, score))


def score_vulnerabilities(vulnerabilities: Iterable[Vulnerability]) -> list[Vulnerability]:
    """Copies of the findings with ``priority_score`` set."""
    return [
        vuln.model_copy(update={"priority_score": calculate_priority_score(vuln)})
        for vuln in vulnerabilities
    ]


def rank_vulnerabilities(vulnerabilities: Iterable[Vulnerability]) -> list[Vulnerability]:
    """Order findings for a triage queue: highest score first, then by location."""
    return sorted(
        vulnerabilities,
        key=lambda v: (
            -(v.priority_score if v.priority_score is not None else calculate_priority_score(v)),
            v.file_path,
            v.line_number,
        ),
    )


def split_vulnerabilities(vulnerabilities: Iterable[Vulnerability]) -> VulnerabilitySplit:
    """Partition findings into first-party and third-party, preserving order."""
    split = VulnerabilitySplit()
    for vuln in vulnerabilities:
        if vuln.is_third_party:
            split.third_party.append(vuln)
        else:
            split.first_party.append(vuln)
    return split


def calculate_summary(vulnerabilities: Iterable[Vulnerability]) -> VulnerabilitySummary:
    """Count findings per severity."""
    summary = VulnerabilitySummary()
    for vuln in vulnerabilities:
        summary.total_issues += 1
        severity = _text(vuln.severity)
        if severity in SEVERITY_BASE_SCORES:
            setattr(summary, severity, getattr(summary, severity) + 1)
    return summary
