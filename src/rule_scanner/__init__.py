"""
Rule Scanner: a READ-ONLY pattern-based security scanner.

Rules are declarative JSON documents holding regular expressions. The engine
matches them against source text, deduplicates the hits, labels each finding
as first-party or third-party code and assigns a triage priority. It does
NOT execute scanned code or make network requests.
"""

from .aggregator import to_vulnerabilities
from .config import EngineConfig
from .engine import RuleEngine, initialize_rule_engine
from .provenance import classify, tag_vulnerabilities
from .rule_store import RuleStore
from .scorer import calculate_priority_score, calculate_summary, split_vulnerabilities

__all__ = [
    "EngineConfig",
    "RuleEngine",
    "RuleStore",
    "calculate_priority_score",
    "calculate_summary",
    "classify",
    "initialize_rule_engine",
    "split_vulnerabilities",
    "tag_vulnerabilities",
    "to_vulnerabilities",
]
