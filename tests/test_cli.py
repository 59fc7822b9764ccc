"""
Tests for the command-line interface
"""

import json
from unittest.mock import patch

import pytest

from verification_engine.__main__ import main, parse_args


class TestParseArgs:
    """Tests for argument parsing"""

    def test_verify_defaults(self):
        args = parse_args(["verify", "doc.txt", "--domain", "legal"])

        assert args.command == "verify"
        assert args.urgency == "medium"
        assert args.threshold is None
        assert args.verbose == 0

    def test_unknown_domain_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["verify", "doc.txt", "--domain", "astrology"])


class TestCommands:
    """Tests for verify and rules commands"""

    def test_verify_clean_document(self, tmp_path, capsys):
        path = tmp_path / "policy.txt"
        path.write_text("Our privacy policy explains data protection and consent.")

        code = main(["--no-color", "verify", str(path), "--domain", "legal"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["risk_level"] == "low"
        assert output["overall_confidence"] == 95

    def test_verify_risky_document(self, tmp_path, capsys):
        path = tmp_path / "record.txt"
        path.write_text("Patient SSN: 123-45-6789")

        code = main(["--no-color", "verify", str(path), "--domain", "healthcare"])

        assert code == 2
        output = json.loads(capsys.readouterr().out)
        assert output["risk_level"] == "critical"

    def test_verify_missing_file(self, tmp_path, capsys):
        code = main(["--no-color", "verify", str(tmp_path / "absent.txt"), "--domain", "legal"])

        assert code == 1
        assert "File not found" in capsys.readouterr().err

    def test_rules_by_domain(self, capsys):
        code = main(["--no-color", "rules", "--domain", "legal", "--jurisdiction", "EU"])

        assert code == 0
        out = capsys.readouterr().out
        assert "gdpr-privacy-001" in out
        assert "hipaa-phi-001" not in out

    def test_no_command(self, capsys):
        assert main(["--no-color"]) == 1

    def test_serve_uses_config_file(self, tmp_path):
        config_path = tmp_path / "engine.yaml"
        config_path.write_text("max_concurrent_verifications: 3\n")

        with patch("uvicorn.run") as run:
            code = main(["--no-color", "--config", str(config_path), "serve", "--port", "9090"])

        assert code == 0
        app = run.call_args.args[0]
        assert app.state.engine.config.max_concurrent_verifications == 3
        assert run.call_args.kwargs["port"] == 9090
