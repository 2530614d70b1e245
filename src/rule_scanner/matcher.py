"""
SECURITY DETECTION MODULE. Rule patterns are regular expressions used to
DETECT vulnerable code in scanned files. Nothing here executes the code it
scans for.

Applies rule patterns to file contents and produces raw matches with line
numbers. Patterns use JavaScript-style flag strings in rule-set documents and
are compiled with the ``regex`` library, which accepts the same syntax for
named groups and lookbehinds and supports a per-call timeout. Every search
runs against a time budget so a catastrophically backtracking pattern cannot
stall a scan.
"""

import logging
import time
from collections.abc import Sequence
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Optional

import regex

from .models import FileRecord, Rule, RuleFramework, RuleLanguage, RuleMatch
from .rule_store import RuleScannerError

logger = logging.getLogger(__name__)

DEFAULT_FLAGS = "gi"

# Lines of context around a hit that exclude patterns are tested against
CONTEXT_LINES_BEFORE = 10
CONTEXT_LINES_AFTER = 5

MAX_MULTILINE_SNIPPET = 200

EXTENSION_LANGUAGES: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".sol": "solidity",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
}

# Ordered: the first framework with a matching marker wins. Contract
# frameworks come first so a Solidity file importing a web helper is still
# treated as a contract.
FRAMEWORK_MARKERS: list[tuple[RuleFramework, tuple[str, ...]]] = [
    (RuleFramework.genlayer, ("from genlayer", "gl.Contract")),
    (RuleFramework.foundry, ("forge-std/",)),
    (RuleFramework.hardhat, ("pragma solidity", "hardhat/console.sol")),
    (RuleFramework.react, ("import React", 'from "react"', "from 'react'")),
    (
        RuleFramework.express,
        ("express()", 'from "express"', "from 'express'", 'require("express")', "require('express')"),
    ),
    (RuleFramework.django, ("from django", "import django")),
    (RuleFramework.flask, ("from flask", "import flask")),
]

_FLAG_VALUES = {
    "i": regex.IGNORECASE,
    "m": regex.MULTILINE,
    "s": regex.DOTALL,
}
# Global, unicode, sticky and indices flags have no effect on a single search
_NEUTRAL_FLAGS = frozenset("guyd")


class InvalidPatternError(RuleScannerError):
    """Raised when a rule pattern or its flags cannot be compiled."""

    def __init__(self, message: str, pattern: str):
        self.pattern = pattern
        super().__init__(message)


def translate_flags(flags: Optional[str], multiline: bool = False) -> int:
    """Convert a JavaScript-style flag string into ``regex`` flags.

    Missing flags default to ``"gi"``. Multiline patterns always get the
    MULTILINE flag so ``^`` and ``$`` anchor at line boundaries.
    """
    flag_text = DEFAULT_FLAGS if flags is None else flags
    value = regex.V0
    for char in flag_text:
        if char in _FLAG_VALUES:
            value |= _FLAG_VALUES[char]
        elif char not in _NEUTRAL_FLAGS:
            raise InvalidPatternError(f"Unsupported pattern flag '{char}'", flag_text)
    if multiline:
        value |= regex.MULTILINE
    return value


def compile_pattern(pattern: str, flags: Optional[str] = None, multiline: bool = False) -> regex.Pattern:
    """Compile a rule pattern.

    Compiled patterns carry no search-position state, so a single compiled
    object can be shared across lines, files and threads.

    Raises:
        InvalidPatternError: If the pattern or its flags are invalid.
    """
    flag_value = translate_flags(flags, multiline)
    try:
        return regex.compile(pattern, flag_value)
    except (regex.error, TypeError, ValueError) as e:
        raise InvalidPatternError(f"Invalid pattern {pattern!r}: {e}", pattern) from e


@lru_cache(maxsize=4096)
def _cached_pattern(pattern: str, flags: Optional[str], multiline: bool) -> Optional[regex.Pattern]:
    # Failures are cached too, so each bad pattern is reported once
    try:
        return compile_pattern(pattern, flags, multiline)
    except InvalidPatternError as e:
        logger.warning(f"Skipping invalid pattern: {e}")
        return None


def detect_language(path: str, fallback: str = "unknown") -> str:
    """Language for a file path, by extension, else the declared language."""
    suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
    return EXTENSION_LANGUAGES.get(suffix, fallback)


def detect_framework(content: str) -> Optional[RuleFramework]:
    """Return the first framework whose marker appears in the content."""
    for framework, markers in FRAMEWORK_MARKERS:
        if any(marker in content for marker in markers):
            return framework
    return None


def applicable_rules(
    rules: Sequence[Rule],
    language: str,
    framework: Optional[RuleFramework],
) -> list[Rule]:
    """Rules whose language and framework constraints admit a file."""
    selected = []
    for rule in rules:
        language_match = RuleLanguage.any in rule.languages or language in rule.languages
        framework_match = (
            not rule.frameworks
            or RuleFramework.any in rule.frameworks
            or (framework is not None and framework in rule.frameworks)
        )
        if language_match and framework_match:
            selected.append(rule)
    return selected


def context_window(lines: Sequence[str], line_number: int) -> str:
    """Lines around a 1-based line number, clamped to the file bounds."""
    start = max(0, line_number - 1 - CONTEXT_LINES_BEFORE)
    end = min(len(lines), line_number + CONTEXT_LINES_AFTER)
    return "\n".join(lines[start:end])


class PatternMatcher:
    """Runs rule patterns over file contents."""

    def __init__(self, pattern_timeout: float = 2.0):
        self.pattern_timeout = pattern_timeout

    def scan_file(self, file: FileRecord, rules: Sequence[Rule]) -> list[RuleMatch]:
        """Scan one file against a rule snapshot.

        Args:
            file: The file to scan.
            rules: Effective rules; only those applicable to the file run.

        Returns:
            Raw matches in rule, pattern, then line order.
        """
        content = file.content
        if not content:
            return []

        language = detect_language(file.path, file.language)
        framework = detect_framework(content)
        lines = content.split("\n")

        matches: list[RuleMatch] = []
        for rule in applicable_rules(rules, language, framework):
            matches.extend(self.scan_with_rule(file.path, content, lines, rule))
        return matches

    def scan_with_rule(
        self,
        file_path: str,
        content: str,
        lines: Sequence[str],
        rule: Rule,
    ) -> list[RuleMatch]:
        """Run every pattern of one rule over a file.

        A pattern that runs out of time keeps the hits it found before the
        limit and is skipped for the rest of the file.
        """
        matches: list[RuleMatch] = []

        for pattern_def in rule.patterns:
            compiled = _cached_pattern(pattern_def.pattern, pattern_def.flags, pattern_def.multiline)
            if compiled is None:
                continue

            deadline = time.monotonic() + self.pattern_timeout
            hits: list[tuple[int, str]] = []
            try:
                if pattern_def.multiline:
                    self._search_content(compiled, content, deadline, hits)
                else:
                    self._search_lines(compiled, lines, deadline, hits)
            except TimeoutError:
                logger.warning(
                    f"Pattern timed out for rule {rule.id} in {file_path}, "
                    f"keeping {len(hits)} hit(s) found before the limit: {pattern_def.pattern!r}"
                )

            for line_number, snippet in hits:
                if self.is_excluded(rule, lines, line_number):
                    continue
                matches.append(
                    RuleMatch(
                        rule=rule,
                        file_path=file_path,
                        line_number=line_number,
                        code_snippet=snippet,
                        matched_pattern=pattern_def.pattern,
                    )
                )

        return matches

    def _search_content(
        self, compiled: regex.Pattern, content: str, deadline: float, hits: list[tuple[int, str]]
    ) -> None:
        for match in compiled.finditer(content, concurrent=True, timeout=_remaining(deadline)):
            line_number = content.count("\n", 0, match.start()) + 1
            hits.append((line_number, match.group(0)[:MAX_MULTILINE_SNIPPET]))

    def _search_lines(
        self, compiled: regex.Pattern, lines: Sequence[str], deadline: float, hits: list[tuple[int, str]]
    ) -> None:
        """Append (line number, snippet) hits; raises TimeoutError once the budget is spent."""
        for index, line in enumerate(lines):
            if compiled.search(line, concurrent=True, timeout=_remaining(deadline)):
                hits.append((index + 1, line.strip()))

    def is_excluded(self, rule: Rule, lines: Sequence[str], line_number: int) -> bool:
        """True if any exclude pattern of the rule matches near the line."""
        if not rule.exclude_patterns:
            return False

        context = context_window(lines, line_number)
        for exclude in rule.exclude_patterns:
            compiled = _cached_pattern(exclude.pattern, exclude.flags, False)
            if compiled is None:
                continue
            try:
                if compiled.search(context, concurrent=True, timeout=self.pattern_timeout):
                    return True
            except TimeoutError:
                logger.warning(f"Exclude pattern timed out for rule {rule.id}: {exclude.pattern!r}")
        return False


def _remaining(deadline: float) -> float:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("pattern time budget exhausted")
    return remaining
