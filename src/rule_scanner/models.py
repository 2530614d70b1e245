"""Pydantic models for the rule scanner."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Severity levels for rules and findings."""

    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"
    info = "info"


class RuleCategory(str, Enum):
    """Categories used to group rules."""

    injection = "injection"
    authentication = "authentication"
    authorization = "authorization"
    cryptography = "cryptography"
    data_exposure = "data_exposure"
    input_validation = "input_validation"
    configuration = "configuration"
    smart_contract = "smart_contract"
    prompt_injection = "prompt_injection"
    api_security = "api_security"
    dos = "dos"
    other = "other"


class RuleLanguage(str, Enum):
    """Languages a rule can target. ``any`` makes a rule language-agnostic."""

    javascript = "javascript"
    typescript = "typescript"
    python = "python"
    solidity = "solidity"
    rust = "rust"
    go = "go"
    java = "java"
    any = "any"


class RuleFramework(str, Enum):
    """Frameworks a rule can be scoped to."""

    genlayer = "genlayer"
    react = "react"
    express = "express"
    django = "django"
    flask = "flask"
    hardhat = "hardhat"
    foundry = "foundry"
    any = "any"


class Confidence(str, Enum):
    """How likely a rule hit is a true positive."""

    high = "high"
    medium = "medium"
    low = "low"


class DependencyType(str, Enum):
    """Provenance of third-party code."""

    direct = "direct"
    transitive = "transitive"
    vendored = "vendored"
    bundled = "bundled"


class RulePattern(BaseModel):
    """A single regular expression inside a rule."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(description="Regular expression source text")
    flags: Optional[str] = Field(
        default=None, description="JavaScript-style flags (g, i, m, s, u, y); defaults to 'gi'"
    )
    multiline: bool = Field(
        default=False, description="Search the whole file content instead of line by line"
    )
    description: Optional[str] = Field(default=None, description="What this pattern catches")


class Rule(BaseModel):
    """A declarative pattern-based vulnerability detector."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, description="Unique rule identifier, e.g. JS001")
    name: str = Field(description="Human-readable rule name")
    description: str = Field(description="Detailed description of the vulnerability")
    severity: Severity
    category: RuleCategory
    languages: tuple[RuleLanguage, ...] = Field(min_length=1)
    frameworks: Optional[tuple[RuleFramework, ...]] = Field(
        default=None, description="Frameworks this rule is scoped to; None means unconstrained"
    )
    patterns: tuple[RulePattern, ...] = Field(min_length=1)
    exclude_patterns: tuple[RulePattern, ...] = Field(
        default=(),
        alias="excludePatterns",
        description="Patterns that mark nearby code as safe",
    )
    cwe: Optional[str] = Field(default=None, description="CWE identifier, e.g. CWE-79")
    owasp: Optional[str] = Field(default=None, description="OWASP category")
    remediation: str = Field(description="How to fix this vulnerability")
    bad_example: Optional[str] = Field(default=None, alias="badExample")
    good_example: Optional[str] = Field(default=None, alias="goodExample")
    enabled: bool = Field(default=True, description="Whether the rule runs by default")
    tags: tuple[str, ...] = Field(default=())
    confidence: Optional[Confidence] = Field(default=None)


class RuleSet(BaseModel):
    """A named, versioned collection of rules."""

    name: str = Field(min_length=1)
    version: str
    description: str = Field(default="")
    author: Optional[str] = Field(default=None)
    url: Optional[str] = Field(default=None)
    rules: list[Rule] = Field(default_factory=list)


class RuleSetInfo(BaseModel):
    """Metadata about a loaded rule set."""

    name: str
    version: str
    description: str = Field(default="")
    author: Optional[str] = Field(default=None)
    source: Optional[str] = Field(default=None, description="File the rule set was loaded from")
    rule_count: int = Field(default=0, description="Number of valid rules in the document")


class FileRecord(BaseModel):
    """A file handed to the engine by the file discovery layer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str = Field(description="Repository-relative file path")
    content: str = Field(default="", description="Full text of the file")
    language: str = Field(default="unknown", description="Language declared by the discovery layer")
    line_count: int = Field(default=0, alias="lineCount", description="Number of lines in the file")


class RuleMatch(BaseModel):
    """A raw pattern hit before deduplication."""

    model_config = ConfigDict(frozen=True)

    rule: Rule
    file_path: str
    line_number: int
    code_snippet: str
    matched_pattern: str


class Vulnerability(BaseModel):
    """A deduplicated finding in a specific file and line."""

    id: str = Field(description="Stable identifier: <ruleId>-<sequence>")
    title: str
    severity: Severity
    description: str
    file_path: str
    line_number: int
    code_snippet: str
    cwe_id: Optional[str] = Field(default=None)
    exploitability: str = Field(description="Short note derived from the rule confidence")
    remediation: str
    ai_fix_prompt: str = Field(description="Templated remediation prompt")
    rule_id: Optional[str] = Field(default=None, description="Rule that produced this finding")
    is_third_party: Optional[bool] = Field(default=None)
    third_party_source: Optional[str] = Field(default=None)
    dependency_type: Optional[DependencyType] = Field(default=None)
    is_test: Optional[bool] = Field(default=None)
    is_generated: Optional[bool] = Field(default=None)
    priority_score: Optional[int] = Field(default=None, ge=0, le=100)


class ProvenanceResult(BaseModel):
    """Where a file path's code comes from."""

    is_third_party: bool
    source: Optional[str] = Field(default=None, description="Marker that identified the dependency")
    dependency_type: Optional[DependencyType] = Field(default=None)
    is_test: Optional[bool] = Field(default=None)
    is_generated: Optional[bool] = Field(default=None)


class VulnerabilitySummary(BaseModel):
    """Severity bucket counts."""

    total_issues: int = Field(default=0)
    critical: int = Field(default=0)
    high: int = Field(default=0)
    medium: int = Field(default=0)
    low: int = Field(default=0)
    info: int = Field(default=0)


class VulnerabilitySplit(BaseModel):
    """Findings partitioned by provenance."""

    first_party: list[Vulnerability] = Field(default_factory=list)
    third_party: list[Vulnerability] = Field(default_factory=list)


class RuleStats(BaseModel):
    """Counts over the effective rule population."""

    total: int = Field(default=0)
    by_category: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_language: dict[str, int] = Field(default_factory=dict)


class ScanRequest(BaseModel):
    """Request body for scanning a batch of files."""

    files: list[FileRecord] = Field(default_factory=list, description="Files to scan")


class ScanReport(BaseModel):
    """Result of a full rule scan."""

    scan_id: str = Field(description="Unique identifier for this scan")
    vulnerabilities: list[Vulnerability] = Field(
        default_factory=list, description="Findings ordered by priority score"
    )
    summary: VulnerabilitySummary = Field(default_factory=VulnerabilitySummary)
    first_party_count: int = Field(default=0)
    third_party_count: int = Field(default=0)
    files_scanned: int = Field(default=0)
    rules_applied: int = Field(default=0, description="Size of the rule snapshot used")
