"""Classify finding paths as first-party or third-party code.

Paths are normalized (forward slashes, lower case) and run through an
ordered cascade; the first stage that matches decides:

1. dependency directories (node_modules, vendor, ...) -> third-party,
   with the dependency type derived from the path
2. bundled or SDK file names (*.min.js, *-sdk.*, ...) -> third-party, bundled
3. test paths -> first-party test code
4. build output / generated paths -> first-party generated code
5. anything else -> first-party
"""

import re
from collections.abc import Iterable

from .models import DependencyType, ProvenanceResult, Vulnerability

THIRD_PARTY_DIRS = [
    "node_modules",
    "vendor",
    "bower_components",
    "jspm_packages",
    "third_party",
    "third-party",
    "external",
    "deps",
    "lib/vendor",
    "assets/vendor",
    "public/vendor",
    "static/vendor",
    ".pnpm",
    ".yarn/cache",
    "go/pkg/mod",
    "target/dependency",
    "pods",
    "carthage",
]

# Package-manager store segments that only hold nested (transitive) installs
PACKAGE_STORE_SEGMENTS = (".pnpm", ".yarn")

SDK_PATTERNS = [
    re.compile(r"[-_]sdk[-_.]"),
    re.compile(r"[-_]lib[-_.]"),
    re.compile(r"\.bundle\."),
    re.compile(r"\.bundled\."),
    re.compile(r"\.vendor\."),
    re.compile(r"\.min\.js$"),
    re.compile(r"\.min\.css$"),
    re.compile(r"\.packed\."),
    re.compile(r"relayer-sdk"),
    re.compile(r"fhevm"),
    re.compile(r"ethers\."),
    re.compile(r"web3\."),
    re.compile(r"wasm"),
]

TEST_PATTERNS = [
    re.compile(r"\.test\.[jt]sx?$"),
    re.compile(r"\.spec\.[jt]sx?$"),
    re.compile(r"/__tests__/"),
    re.compile(r"/test/"),
    re.compile(r"/tests/"),
    re.compile(r"/testing/"),
    re.compile(r"\.stories\.[jt]sx?$"),
    re.compile(r"/fixtures/"),
    re.compile(r"/mocks/"),
    re.compile(r"/e2e/"),
    re.compile(r"codegen"),
]

GENERATED_PATTERNS = [
    re.compile(r"/dist/"),
    re.compile(r"/build/"),
    re.compile(r"/out/"),
    re.compile(r"\.generated\."),
    re.compile(r"\.g\.[jt]s$"),
    re.compile(r"\.d\.ts$"),
    re.compile(r"/coverage/"),
    re.compile(r"\.cache/"),
]

_MINIFIED_IDIOMS = [
    re.compile(r"[a-z]\.[a-z]\.[a-z]\("),
    re.compile(r"\}\)\("),
    re.compile(r",function\("),
]


def normalize_path(file_path: str) -> str:
    return file_path.replace("\\", "/").lower()


def _dependency_type(path: str, source: str) -> DependencyType:
    if "vendor" in source:
        return DependencyType.vendored

    segment = f"{source}/"
    occurrences = path.count(f"/{segment}") + (1 if path.startswith(segment) else 0)
    if occurrences > 1:
        return DependencyType.transitive

    if any(store in path for store in PACKAGE_STORE_SEGMENTS):
        return DependencyType.transitive

    return DependencyType.direct


def classify(file_path: str) -> ProvenanceResult:
    """Decide where the code at ``file_path`` comes from.

    Two spellings of the same location (different separators or case)
    always classify the same way.
    """
    path = normalize_path(file_path)
    # Leading slash lets directory markers match at the start of relative paths
    rooted = path if path.startswith("/") else f"/{path}"

    for marker in THIRD_PARTY_DIRS:
        if f"/{marker}/" in rooted:
            return ProvenanceResult(
                is_third_party=True,
                source=marker,
                dependency_type=_dependency_type(rooted, marker),
            )

    for pattern in SDK_PATTERNS:
        match = pattern.search(path)
        if match:
            source = re.sub(r"[-_.]", "", match.group(0)) or "sdk"
            return ProvenanceResult(
                is_third_party=True,
                source=source,
                dependency_type=DependencyType.bundled,
            )

    if any(pattern.search(rooted) for pattern in TEST_PATTERNS):
        return ProvenanceResult(is_third_party=False, is_test=True)

    if any(pattern.search(rooted) for pattern in GENERATED_PATTERNS):
        return ProvenanceResult(is_third_party=False, is_generated=True)

    return ProvenanceResult(is_third_party=False)


def looks_like_minified_code(content: str) -> bool:
    """Heuristic for minified or bundled code in a file that is not named as such.

    Needs at least 1000 characters; then any line over 500 characters, or an
    average line length over 200 together with a typical minifier idiom.
    """
    if not content or len(content) < 1000:
        return False

    lines = content.split("\n")
    if any(len(line) > 500 for line in lines):
        return True

    average_line_length = len(content) / len(lines)
    return average_line_length > 200 and any(p.search(content) for p in _MINIFIED_IDIOMS)


def tag_vulnerabilities(vulnerabilities: Iterable[Vulnerability]) -> list[Vulnerability]:
    """Return copies of the findings with provenance fields filled in.

    Only the provenance fields change; the input objects are not modified.
    """
    tagged = []
    for vuln in vulnerabilities:
        result = classify(vuln.file_path)
        tagged.append(
            vuln.model_copy(
                update={
                    "is_third_party": result.is_third_party,
                    "third_party_source": result.source,
                    "dependency_type": result.dependency_type,
                    "is_test": result.is_test,
                    "is_generated": result.is_generated,
                }
            )
        )
    return tagged
