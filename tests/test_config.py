"""
Tests for configuration loading and structured logging
"""

import json
import os
import logging

import pytest

from bryxcoin.config import DEFAULT_MINT_ADDRESS, BryxcoinConfig, reload_config
from bryxcoin.logging_config import JSONFormatter, log_action, setup_logging


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point the config file at a temp location and clear BRYXCOIN_* variables"""
    for key in list(os.environ):
        if key.startswith("BRYXCOIN_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("BRYXCOIN_CONFIG_FILE", str(tmp_path / "bryxcoin.toml"))
    monkeypatch.chdir(tmp_path)


class TestBryxcoinConfig:
    
    def test_defaults(self):
        config = BryxcoinConfig()
        
        assert config.port == 8090
        assert config.ledger_dir == "ledger"
        assert config.remote_name == "origin"
        assert config.branch == "master"
        assert config.mint_address == DEFAULT_MINT_ADDRESS == "0" * 64
        assert config.git_timeout_seconds is None
    
    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("BRYXCOIN_PORT", "9000")
        monkeypatch.setenv("BRYXCOIN_LEDGER_REPO", "git@example.com:bank/ledger.git")
        monkeypatch.setenv("BRYXCOIN_GIT_TIMEOUT_SECONDS", "12.5")
        
        config = BryxcoinConfig()
        
        assert config.port == 9000
        assert config.ledger_repo == "git@example.com:bank/ledger.git"
        assert config.git_timeout_seconds == 12.5
    
    def test_toml_file(self, tmp_path):
        (tmp_path / "bryxcoin.toml").write_text(
            'port = 8123\n'
            'ledger_repo = "git@example.com:bank/ledger.git"\n'
            'public_key = "/keys/id.pub"\n'
            'private_key = "/keys/id"\n'
        )
        
        config = BryxcoinConfig()
        
        assert config.port == 8123
        assert config.public_key == "/keys/id.pub"
        assert config.private_key == "/keys/id"
    
    def test_environment_beats_toml(self, tmp_path, monkeypatch):
        (tmp_path / "bryxcoin.toml").write_text("port = 8123\n")
        monkeypatch.setenv("BRYXCOIN_PORT", "9001")
        
        assert BryxcoinConfig().port == 9001
    
    def test_reload_config(self, monkeypatch):
        monkeypatch.setenv("BRYXCOIN_BRANCH", "main")
        assert reload_config().branch == "main"


class TestLogging:
    
    def test_json_formatter(self):
        record = logging.LogRecord("bryxcoin.ledger", logging.INFO, __file__, 1,
                                   "Appended", (), None)
        record.action = "append"
        record.sequence_index = 3
        
        entry = json.loads(JSONFormatter().format(record))
        
        assert entry["level"] == "INFO"
        assert entry["logger"] == "bryxcoin.ledger"
        assert entry["message"] == "Appended"
        assert entry["action"] == "append"
        assert entry["sequence_index"] == 3
        assert "address" not in entry
    
    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="bryxcoin-test")
        logger = setup_logging("WARNING", logger_name="bryxcoin-test", log_format="text")
        
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
    
    def test_log_action_attaches_fields(self, caplog):
        logger = logging.getLogger("bryxcoin-action-test")
        
        with caplog.at_level(logging.INFO, logger="bryxcoin-action-test"):
            log_action(logger, "info", "Rejected", action="reject", address="alice",
                       extra={"reason": "insufficient funds"})
        
        record = caplog.records[-1]
        assert record.action == "reject"
        assert record.address == "alice"
        assert record.extra == {"reason": "insufficient funds"}
