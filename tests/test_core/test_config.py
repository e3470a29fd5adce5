"""Tests for config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from pcmedic.core.config import PCMedicConfig, get_pcmedic_dir, load_config
from pcmedic.core.errors import ConfigError


class TestLoadConfig:
    def test_defaults_when_no_config_file(self, tmp_path: Path):
        """Without a pcmedic.toml, load_config should return defaults."""
        config = load_config(tmp_path)

        assert isinstance(config, PCMedicConfig)
        assert config.probes.timeout_seconds == 30.0
        assert config.probes.disabled == []
        assert config.safety.create_restore_points is True
        assert config.audit.encrypt is False
        assert config.analysis.min_confidence == 0.7

    def test_loads_all_sections(self, tmp_path: Path):
        toml_content = """\
[probes]
timeout_seconds = 10
disabled = ["network"]

[safety]
command_timeout_seconds = 60
create_restore_points = false
extra_forbidden = ["vssadmin"]

[audit]
encrypt = true
max_output_chars = 200

[analysis]
model = "claude-test"
max_tokens = 4096
"""
        (tmp_path / "pcmedic.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.probes.timeout_seconds == 10.0
        assert config.probes.disabled == ["network"]
        assert config.safety.command_timeout_seconds == 60.0
        assert config.safety.restore_point_timeout_seconds == 300.0
        assert config.safety.create_restore_points is False
        assert config.safety.extra_forbidden == ["vssadmin"]
        assert config.audit.encrypt is True
        assert config.audit.max_output_chars == 200
        assert config.analysis.model == "claude-test"
        assert config.analysis.max_tokens == 4096

    def test_invalid_toml_raises(self, tmp_path: Path):
        (tmp_path / "pcmedic.toml").write_text("[probes\ntimeout_seconds = ")
        with pytest.raises(ConfigError, match="pcmedic.toml"):
            load_config(tmp_path)


class TestStateDir:
    def test_created_under_project(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("PCMEDIC_DIR", raising=False)
        state_dir = get_pcmedic_dir(tmp_path)
        assert state_dir == tmp_path / ".pcmedic"
        assert state_dir.is_dir()

    def test_env_override(self, tmp_path: Path, monkeypatch):
        target = tmp_path / "elsewhere" / "state"
        monkeypatch.setenv("PCMEDIC_DIR", str(target))
        assert get_pcmedic_dir(tmp_path) == target
        assert target.is_dir()
