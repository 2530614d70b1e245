"""Tests for the stdin/stdout sandbox entrypoint."""

import io
import json

import pytest

import sandbox_main


def _run(monkeypatch, capsys, payload) -> tuple[dict, int]:
    """Run main() with a stdin payload; return parsed stdout and exit code."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    monkeypatch.setattr("sys.stdin", io.StringIO(text))

    code = 0
    try:
        sandbox_main.main()
    except SystemExit as e:
        code = e.code

    return json.loads(capsys.readouterr().out), code


@pytest.fixture
def rules_path(write_rule_set, rule_data):
    return write_rule_set([
        rule_data(id="R1", severity="critical", patterns=[{"pattern": r"eval\("}]),
        rule_data(id="R2", severity="low", languages=["python"], patterns=[{"pattern": r"pickle\.loads"}]),
    ])


class TestSandboxMain:
    """Test the sandbox entrypoint."""

    def test_inline_files(self, monkeypatch, capsys, rules_path):
        """Test scanning files passed inline."""
        output, code = _run(monkeypatch, capsys, {
            "files": [{"path": "src/app.js", "content": "eval(x)\n"}],
            "rule_dirs": [str(rules_path)],
        })

        assert code == 0
        assert output["files_scanned"] == 1
        assert output["vulnerabilities"][0]["rule_id"] == "R1"
        assert output["vulnerabilities"][0]["severity"] == "critical"

    def test_local_directory(self, monkeypatch, capsys, tmp_path, rules_path):
        """Test scanning a directory tree."""
        repo = tmp_path / "repo"
        (repo / "src").mkdir(parents=True)
        (repo / "src" / "app.js").write_text("const a = 1;\neval(a);\n")
        (repo / "src" / "util.py").write_text("import pickle\npickle.loads(data)\n")

        output, code = _run(monkeypatch, capsys, {"path": str(repo), "rule_dirs": [str(rules_path)]})

        assert code == 0
        assert output["files_scanned"] == 2
        found = {(v["file_path"], v["line_number"], v["rule_id"]) for v in output["vulnerabilities"]}
        assert found == {("src/app.js", 2, "R1"), ("src/util.py", 2, "R2")}

    def test_dependency_folders_are_opt_in(self, monkeypatch, capsys, tmp_path, rules_path):
        """Test that include_dependencies adds findings from node_modules."""
        repo = tmp_path / "repo"
        (repo / "node_modules" / "lib").mkdir(parents=True)
        (repo / "node_modules" / "lib" / "index.js").write_text("eval(code);\n")
        (repo / "app.js").write_text("const a = 1;\n")

        output, code = _run(monkeypatch, capsys, {"path": str(repo), "rule_dirs": [str(rules_path)]})

        assert code == 0
        assert output["files_scanned"] == 1
        assert output["vulnerabilities"] == []

        output, code = _run(monkeypatch, capsys, {
            "path": str(repo),
            "rule_dirs": [str(rules_path)],
            "include_dependencies": True,
        })

        assert code == 0
        assert output["files_scanned"] == 2
        assert output["third_party_count"] == 1
        vuln = output["vulnerabilities"][0]
        assert vuln["file_path"] == "node_modules/lib/index.js"
        assert vuln["is_third_party"] is True

    def test_filters_are_applied(self, monkeypatch, capsys, rules_path):
        """Test that filter keys in the input narrow the rules."""
        output, code = _run(monkeypatch, capsys, {
            "files": [{"path": "src/app.js", "content": "eval(x)\n"}],
            "rule_dirs": [str(rules_path)],
            "disable_rules": ["R1"],
        })

        assert code == 0
        assert output["rules_applied"] == 1
        assert output["vulnerabilities"] == []

    def test_invalid_json(self, monkeypatch, capsys):
        """Test malformed stdin."""
        output, code = _run(monkeypatch, capsys, "{not json")

        assert code == 1
        assert "Invalid JSON input" in output["error"]

    def test_missing_input(self, monkeypatch, capsys):
        """Test that neither files nor path is an error."""
        output, code = _run(monkeypatch, capsys, {"severity_filter": ["critical"]})

        assert code == 1
        assert "Missing required input" in output["error"]

    def test_nonexistent_path(self, monkeypatch, capsys, tmp_path):
        """Test that a missing directory is reported."""
        output, code = _run(monkeypatch, capsys, {"path": str(tmp_path / "nope")})

        assert code == 1
        assert "Path does not exist" in output["error"]

    def test_invalid_filter_value(self, monkeypatch, capsys):
        """Test that an unknown severity filter is rejected."""
        output, code = _run(monkeypatch, capsys, {
            "files": [{"path": "a.js", "content": "x"}],
            "severity_filter": ["catastrophic"],
        })

        assert code == 1
        assert "Invalid input" in output["error"]
