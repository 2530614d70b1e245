"""Collapse raw rule matches into canonical vulnerabilities."""

from collections.abc import Iterable

from .models import Confidence, RuleMatch, Vulnerability

CONFIDENCE_TEXT = {
    Confidence.high: "High",
    Confidence.medium: "Medium",
    Confidence.low: "Low",
}


def match_key(match: RuleMatch) -> tuple[str, int, str]:
    """Deduplication and ordering key: (file path, line number, rule id)."""
    return (match.file_path, match.line_number, match.rule.id)


def sort_matches(matches: Iterable[RuleMatch]) -> list[RuleMatch]:
    """Order matches by file, line and rule id.

    The sort is stable, so matches sharing a key keep the order in which the
    matcher produced them.
    """
    return sorted(matches, key=match_key)


def exploitability_note(match: RuleMatch) -> str:
    confidence_text = CONFIDENCE_TEXT.get(match.rule.confidence, "Low")
    return f"{confidence_text} - Pattern-based detection via rule {match.rule.id}"


def fix_prompt(match: RuleMatch) -> str:
    """Deterministic remediation prompt for a finding."""
    return (
        f"Fix the {match.rule.name} vulnerability at {match.file_path}:{match.line_number}. "
        f"{match.rule.remediation}"
    )


def to_vulnerabilities(matches: Iterable[RuleMatch]) -> list[Vulnerability]:
    """Convert raw matches to vulnerabilities, one per (file, line, rule).

    The first match seen for a key wins; later ones are dropped along with
    their snippets. Ids are ``<ruleId>-<NNN>`` where the sequence counts
    unique keys in order of first appearance, so callers must pass matches
    in a stable order (see ``sort_matches``) to get stable ids.
    """
    by_key: dict[tuple[str, int, str], Vulnerability] = {}

    for match in matches:
        key = match_key(match)
        if key in by_key:
            continue

        rule = match.rule
        by_key[key] = Vulnerability(
            id=f"{rule.id}-{len(by_key) + 1:03d}",
            title=rule.name,
            severity=rule.severity,
            description=rule.description,
            file_path=match.file_path,
            line_number=match.line_number,
            code_snippet=match.code_snippet,
            cwe_id=rule.cwe,
            exploitability=exploitability_note(match),
            remediation=rule.remediation,
            ai_fix_prompt=fix_prompt(match),
            rule_id=rule.id,
        )

    return list(by_key.values())
