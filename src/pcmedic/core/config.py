"""Configuration management for PCMedic (pcmedic.toml parsing + defaults)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except ImportError:
        tomllib = None  # type: ignore[assignment]

from pcmedic.core.errors import ConfigError


@dataclass
class ProbeConfig:
    timeout_seconds: float = 30.0
    # Probe kinds to skip entirely (e.g. "network" on an air-gapped box).
    disabled: list[str] = field(default_factory=list)


@dataclass
class SafetyConfig:
    command_timeout_seconds: float = 300.0
    restore_point_timeout_seconds: float = 300.0
    create_restore_points: bool = True
    # Extra substrings refused on top of the built-in forbidden list.
    extra_forbidden: list[str] = field(default_factory=list)


@dataclass
class AuditConfig:
    encrypt: bool = False
    max_output_chars: int = 5000


@dataclass
class AnalysisConfig:
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 16384
    min_confidence: float = 0.7


@dataclass
class PCMedicConfig:
    """Complete PCMedic configuration."""

    probes: ProbeConfig = field(default_factory=ProbeConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)


def load_config(project_path: Path | None = None) -> PCMedicConfig:
    """Load configuration from pcmedic.toml if present, otherwise return defaults."""
    config = PCMedicConfig()

    if project_path is None:
        project_path = Path.cwd()

    config_file = project_path / "pcmedic.toml"
    if not config_file.exists():
        return config

    if tomllib is None:
        return config

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid {config_file}: {e}") from e

    if "probes" in data:
        p = data["probes"]
        if "timeout_seconds" in p:
            config.probes.timeout_seconds = float(p["timeout_seconds"])
        if "disabled" in p:
            config.probes.disabled = list(p["disabled"])

    if "safety" in data:
        s = data["safety"]
        for attr in ("command_timeout_seconds", "restore_point_timeout_seconds"):
            if attr in s:
                setattr(config.safety, attr, float(s[attr]))
        if "create_restore_points" in s:
            config.safety.create_restore_points = bool(s["create_restore_points"])
        if "extra_forbidden" in s:
            config.safety.extra_forbidden = list(s["extra_forbidden"])

    if "audit" in data:
        a = data["audit"]
        for attr in ("encrypt", "max_output_chars"):
            if attr in a:
                setattr(config.audit, attr, a[attr])

    if "analysis" in data:
        an = data["analysis"]
        for attr in ("model", "max_tokens", "min_confidence"):
            if attr in an:
                setattr(config.analysis, attr, an[attr])

    return config


def get_pcmedic_dir(project_path: Path | None = None) -> Path:
    """Get or create the .pcmedic state directory.

    ``PCMEDIC_DIR`` overrides the location entirely.
    """
    override = os.environ.get("PCMEDIC_DIR")
    if override:
        state_dir = Path(override)
    else:
        if project_path is None:
            project_path = Path.cwd()
        state_dir = project_path / ".pcmedic"
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir
