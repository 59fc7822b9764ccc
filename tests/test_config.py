"""
Tests for configuration loading and logging setup
"""

import json
import logging
import os
from unittest.mock import patch

import pytest

from verification_engine.logging_config import (
    ROOT_LOGGER,
    JsonFormatter,
    VerificationFormatter,
    get_logger,
    setup_logging,
    split_verification_id,
)
from verification_engine.main import (
    Domain,
    EngineConfig,
    ProcessorConfig,
    ScoringPolicy,
)


class TestEngineConfig:
    """Tests for EngineConfig sources"""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = EngineConfig()

        assert config.max_concurrent_verifications == 100
        assert config.default_timeout_ms == 30000
        assert config.audit_sink_url is None
        assert config.processor.enable_caching is True
        assert config.processor.cache_ttl_seconds == 3600

    def test_from_env(self):
        env = {
            "VERIFY_MAX_CONCURRENT": "5",
            "VERIFY_TIMEOUT_MS": "250",
            "AUDIT_SINK_URL": "http://audit.local",
            "LOG_LEVEL": "DEBUG",
            "VERIFY_CACHE_ENABLED": "false",
            "VERIFY_CACHE_TTL": "60",
        }
        with patch.dict(os.environ, env, clear=True):
            config = EngineConfig.from_env()

        assert config.max_concurrent_verifications == 5
        assert config.default_timeout_ms == 250
        assert config.audit_sink_url == "http://audit.local"
        assert config.log_level == "DEBUG"
        assert config.processor.enable_caching is False
        assert config.processor.cache_ttl_seconds == 60

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "max_concurrent_verifications: 7\n"
            "default_timeout_ms: 1500\n"
            "processor:\n"
            "  cache_ttl_seconds: 120\n"
            "  scoring:\n"
            "    critical_below: 40\n"
            "    confidence_weights:\n"
            "      financial: 1.5\n"
        )

        config = EngineConfig.from_yaml(str(path))

        assert config.max_concurrent_verifications == 7
        assert config.default_timeout_ms == 1500
        assert config.processor.cache_ttl_seconds == 120
        assert config.processor.scoring.critical_below == 40
        assert config.processor.scoring.weight_for(Domain.FINANCIAL) == 1.5

    def test_from_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        config = EngineConfig.from_yaml(str(path))

        assert config.max_concurrent_verifications == 100

    def test_unknown_yaml_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("no_such_setting: 1\n")

        with pytest.raises(TypeError):
            EngineConfig.from_yaml(str(path))


class TestScoringPolicy:
    """Tests for scoring policy parsing"""

    def test_default_weights(self):
        policy = ScoringPolicy()

        assert policy.weight_for(Domain.FINANCIAL) == 1.2
        assert policy.weight_for(Domain.HEALTHCARE) == 1.1
        assert policy.weight_for(Domain.LEGAL) == 1.0
        assert policy.weight_for(None) == 1.0

    def test_from_dict_converts_domains(self):
        policy = ScoringPolicy.from_dict({"confidence_weights": {"legal": "0.9"}})

        assert policy.confidence_weights == {Domain.LEGAL: 0.9}
        assert policy.weight_for(Domain.FINANCIAL) == 1.0

    def test_processor_from_dict(self):
        config = ProcessorConfig.from_dict({"enable_caching": False, "cache_max_size": 10})

        assert config.enable_caching is False
        assert config.cache_max_size == 10
        assert config.scoring == ScoringPolicy()


class TestLogging:
    """Tests for logging setup"""

    def test_setup_configures_namespace_logger(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"

        setup_logging(level="DEBUG", log_file=str(log_file), use_colors=False)
        get_logger("tests").info("hello from tests")

        root = logging.getLogger(ROOT_LOGGER)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        for handler in root.handlers:
            handler.flush()
        assert "hello from tests" in log_file.read_text()

        root.handlers.clear()

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="chatty", use_colors=False)

        root = logging.getLogger(ROOT_LOGGER)
        assert root.level == logging.INFO

        root.handlers.clear()

    def test_formatter_layout(self):
        formatter = VerificationFormatter(use_colors=False)
        record = logging.LogRecord(
            "verification_engine.engine", logging.WARNING, __file__, 1,
            "module %s slow", ("legal",), None,
        )

        line = formatter.format(record)

        assert "WARNING" in line
        assert "[verification_engine.engine]" in line
        assert line.endswith("module legal slow")

    def test_verification_id_lifted_from_message(self):
        formatter = VerificationFormatter(use_colors=False)
        record = logging.LogRecord(
            "verification_engine.engine", logging.INFO, __file__, 1,
            "[3f2b8c1e-1111-2222-3333-444455556666] Verification completed", (), None,
        )

        line = formatter.format(record)

        assert "(3f2b8c1e)" in line
        assert line.endswith("Verification completed")

    def test_split_verification_id(self):
        assert split_verification_id("[abcdef12-34] done") == ("abcdef12-34", "done")
        assert split_verification_id("Results cache cleared") == (None, "Results cache cleared")

    def test_json_formatter(self):
        record = logging.LogRecord(
            "verification_engine.results.processor", logging.INFO, __file__, 1,
            "[abcdef12-3456] Serving cached result", (), None,
        )

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "verification_engine.results.processor"
        assert payload["verification_id"] == "abcdef12-3456"
        assert payload["message"] == "Serving cached result"
