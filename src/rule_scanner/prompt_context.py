"""Render rules as markdown context for the narrative review agents."""

from collections.abc import Iterable

from .models import Rule


def format_rules_for_prompt(rules: Iterable[Rule]) -> str:
    """Group rules by category into a markdown checklist.

    Categories appear in order of first occurrence; rules keep their input order.
    """
    grouped: dict[str, list[Rule]] = {}
    for rule in rules:
        grouped.setdefault(rule.category.value, []).append(rule)

    parts = ["## Security Rules to Check\n"]
    for category, category_rules in grouped.items():
        parts.append(f"### {category.replace('_', ' ').capitalize()}")
        for rule in category_rules:
            parts.append(f"- **{rule.id}** [{rule.severity.value.upper()}]: {rule.name}")
            parts.append(f"  - {rule.description}")
            if rule.cwe:
                parts.append(f"  - CWE: {rule.cwe}")
        parts.append("")

    return "\n".join(parts)
