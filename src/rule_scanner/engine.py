"""Rule engine: loads rules, scans files in parallel and builds triage reports."""

import logging
import uuid
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .aggregator import sort_matches, to_vulnerabilities
from .config import EngineConfig
from .matcher import PatternMatcher
from .models import (
    DependencyType,
    FileRecord,
    Rule,
    RuleMatch,
    ScanReport,
    Vulnerability,
)
from .provenance import looks_like_minified_code, tag_vulnerabilities
from .rule_store import RuleStore
from .scorer import (
    calculate_summary,
    rank_vulnerabilities,
    score_vulnerabilities,
    split_vulnerabilities,
)

logger = logging.getLogger(__name__)


class RuleEngine:
    """Pattern-based vulnerability scanner.

    Each engine owns its rule store. A scan captures the store's current
    snapshot when it starts, so enabling, disabling, adding or removing rules
    while a scan runs only affects later scans.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self.store = RuleStore(self.config)
        self.matcher = PatternMatcher(pattern_timeout=self.config.pattern_timeout)

    def load_rules(self, sources: Iterable[str | Path] | None = None) -> list[Rule]:
        return self.store.load_rules(sources)

    def scan(self, files: Iterable[FileRecord], rules: Sequence[Rule] | None = None) -> list[RuleMatch]:
        """Scan files against the effective rules.

        Files are scanned concurrently on a bounded thread pool. The result
        is sorted by (file path, line number, rule id) so it does not depend
        on which worker finishes first.

        Args:
            files: Files to scan.
            rules: Explicit rule snapshot; defaults to the store's current one.

        Returns:
            Raw matches, sorted.
        """
        snapshot = tuple(rules) if rules is not None else self.store.snapshot()
        files = list(files)
        if not files or not snapshot:
            return []

        matches: list[RuleMatch] = []
        workers = min(self.config.max_workers, len(files))

        if workers == 1:
            for file in files:
                matches.extend(self._scan_one(file, snapshot))
            return sort_matches(matches)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rule-scan") as executor:
            futures = [executor.submit(self._scan_one, file, snapshot) for file in files]
            for future in as_completed(futures):
                matches.extend(future.result())

        return sort_matches(matches)

    def _scan_one(self, file: FileRecord, snapshot: tuple[Rule, ...]) -> list[RuleMatch]:
        try:
            return self.matcher.scan_file(file, snapshot)
        except Exception as e:
            logger.error(f"Scanning {file.path} failed: {e}")
            return []

    def to_vulnerabilities(self, matches: Iterable[RuleMatch]) -> list[Vulnerability]:
        return to_vulnerabilities(matches)

    def analyze(self, files: Iterable[FileRecord]) -> ScanReport:
        """Run the full pipeline: scan, deduplicate, classify, score and rank."""
        files = list(files)
        snapshot = self.store.snapshot()

        matches = self.scan(files, snapshot)
        vulnerabilities = tag_vulnerabilities(self.to_vulnerabilities(matches))
        vulnerabilities = _tag_minified(vulnerabilities, files)
        vulnerabilities = rank_vulnerabilities(score_vulnerabilities(vulnerabilities))

        split = split_vulnerabilities(vulnerabilities)
        logger.info(
            f"Scanned {len(files)} files with {len(snapshot)} rules: "
            f"{len(vulnerabilities)} findings"
        )

        return ScanReport(
            scan_id=str(uuid.uuid4()),
            vulnerabilities=vulnerabilities,
            summary=calculate_summary(vulnerabilities),
            first_party_count=len(split.first_party),
            third_party_count=len(split.third_party),
            files_scanned=len(files),
            rules_applied=len(snapshot),
        )


def _tag_minified(vulnerabilities: list[Vulnerability], files: list[FileRecord]) -> list[Vulnerability]:
    """Mark first-party findings in minified files as bundled third-party code."""
    minified = {f.path for f in files if looks_like_minified_code(f.content)}
    if not minified:
        return vulnerabilities

    tagged = []
    for vuln in vulnerabilities:
        if not vuln.is_third_party and vuln.file_path in minified:
            vuln = vuln.model_copy(
                update={
                    "is_third_party": True,
                    "third_party_source": "minified",
                    "dependency_type": DependencyType.bundled,
                }
            )
        tagged.append(vuln)
    return tagged


def initialize_rule_engine(config: EngineConfig | None = None) -> RuleEngine:
    """Create an engine and load its rules."""
    engine = RuleEngine(config)
    engine.load_rules()
    return engine
