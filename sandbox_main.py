#!/usr/bin/env python3
"""
Sandbox entrypoint for rule-scanner.
Reads scan parameters from stdin JSON, runs the rule engine, outputs JSON to stdout.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).parent / "src"))

from pydantic import ValidationError

from rule_scanner.config import EngineConfig
from rule_scanner.engine import initialize_rule_engine
from rule_scanner.file_walker import walk_repo
from rule_scanner.models import FileRecord, ScanReport

# Logs go to stderr so stdout stays pure JSON
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)

CONFIG_KEYS = (
    "rule_dirs",
    "enable_rules",
    "disable_rules",
    "severity_filter",
    "category_filter",
    "language_filter",
    "framework_filter",
    "max_workers",
    "pattern_timeout",
)


def _collect_files(input_data: dict[str, Any]) -> list[FileRecord]:
    """Build file records from inline files or a local directory."""
    if input_data.get("files") is not None:
        return [FileRecord.model_validate(f) for f in input_data["files"]]

    local_path = input_data.get("path") or input_data.get("directory")
    scan_path = Path(local_path).resolve()
    if not scan_path.exists():
        raise ValueError(f"Path does not exist: {local_path}")
    if not scan_path.is_dir():
        raise ValueError(f"Path is not a directory: {local_path}")

    include_dependencies = bool(input_data.get("include_dependencies"))
    return list(walk_repo(scan_path, include_dependencies=include_dependencies))


def run_scan(input_data: dict[str, Any]) -> ScanReport:
    """Run a full rule scan for one sandbox request."""
    overrides = {key: input_data[key] for key in CONFIG_KEYS if input_data.get(key) is not None}
    config = EngineConfig.from_env(**overrides)

    files = _collect_files(input_data)
    logger.info(f"Collected {len(files)} files")

    engine = initialize_rule_engine(config)
    return engine.analyze(files)


def main() -> None:
    try:
        input_data = json.load(sys.stdin)
    except json.JSONDecodeError as e:
        print(json.dumps({"error": f"Invalid JSON input: {e}"}))
        sys.exit(1)

    if not isinstance(input_data, dict):
        print(json.dumps({"error": "Input must be a JSON object"}))
        sys.exit(1)

    if input_data.get("files") is None and not (input_data.get("path") or input_data.get("directory")):
        print(
            json.dumps(
                {
                    "error": "Missing required input. Provide either 'files' or 'path'/'directory'.",
                    "examples": {
                        "inline": {"files": [{"path": "app.js", "content": "eval(input)"}]},
                        "local": {"path": "."},
                    },
                }
            )
        )
        sys.exit(1)

    try:
        report = run_scan(input_data)
        print(json.dumps(report.model_dump(mode="json")))
    except ValidationError as e:
        print(json.dumps({"error": f"Invalid input: {e.error_count()} validation error(s)", "details": str(e)}))
        sys.exit(1)
    except Exception as e:
        print(json.dumps({"error": str(e)}))
        sys.exit(1)


if __name__ == "__main__":
    main()
