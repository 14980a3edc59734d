"""Global configuration — XDG paths, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from nginxpolicy.policies.base import GlobalSettings
from nginxpolicy.policies.conflicts import MergeStrategy


def _default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "nginxpolicy"
    return Path.home() / ".local" / "share" / "nginxpolicy"


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "nginxpolicy"
    return Path.home() / ".config" / "nginxpolicy"


@dataclass
class EngineConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)
    config_dir: Path = field(default_factory=_default_config_dir)
    output_dir: Path | None = None
    manifest_dirs: list[Path] = field(default_factory=list)
    merge_strategy: MergeStrategy = MergeStrategy.CREATION_TIMESTAMP
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.output_dir is None:
            self.output_dir = self.data_dir / "conf.d"

    @classmethod
    def load(cls) -> EngineConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        env_output = os.environ.get("NGINXPOLICY_OUTPUT_DIR")
        if env_output:
            config.output_dir = Path(env_output)

        env_strategy = os.environ.get("NGINXPOLICY_MERGE_STRATEGY")
        if env_strategy:
            try:
                config.merge_strategy = MergeStrategy(env_strategy.strip().lower())
            except ValueError:
                supported = ", ".join(s.value for s in MergeStrategy)
                raise ValueError(
                    f"Unknown merge strategy {env_strategy!r}; supported: {supported}"
                ) from None

        # Add config dir's manifests/ subdirectory if it exists
        manifests_dir = config.config_dir / "manifests"
        if manifests_dir.is_dir():
            config.manifest_dirs.append(manifests_dir)

        return config

    def global_settings(self) -> GlobalSettings:
        # NginxProxy is not loaded from manifests; a valid default stands in.
        return GlobalSettings()
