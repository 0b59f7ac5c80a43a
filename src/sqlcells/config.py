"""Engine configuration for sqlcells."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field, replace
from typing import Mapping

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _default_temp_dir() -> str:
    return tempfile.gettempdir()


@dataclass(frozen=True)
class EngineConfig:
    """How to find and drive the external SQL engine.

    Attributes:
        binary: Name or path of the DuckDB command-line executable.
        temp_dir: Directory for result artifacts and session databases.
        install_extension: Whether to ``INSTALL arrow FROM community`` before
            loading it. Turn off when the extension is already installed or
            the machine has no network access.
        artifact_prefix: File name prefix for result artifacts.
        artifact_extension: File name extension for result artifacts.
    """

    binary: str = "duckdb"
    temp_dir: str = field(default_factory=_default_temp_dir)
    install_extension: bool = True
    artifact_prefix: str = "sqlcells_arrow_"
    artifact_extension: str = ".arrow"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build a config from ``SQLCELLS_*`` environment variables."""
        env = os.environ if environ is None else environ
        config = cls()
        if env.get("SQLCELLS_DUCKDB"):
            config = replace(config, binary=env["SQLCELLS_DUCKDB"])
        if env.get("SQLCELLS_TEMP_DIR"):
            config = replace(config, temp_dir=env["SQLCELLS_TEMP_DIR"])
        if "SQLCELLS_INSTALL_ARROW" in env:
            install = env["SQLCELLS_INSTALL_ARROW"].strip().lower() not in _FALSE_VALUES
            config = replace(config, install_extension=install)
        return config

    def with_overrides(
        self,
        binary: str | None = None,
        temp_dir: str | None = None,
        install_extension: bool | None = None,
    ) -> EngineConfig:
        """Return a copy with any non-None argument applied."""
        changes: dict[str, object] = {}
        if binary is not None:
            changes["binary"] = binary
        if temp_dir is not None:
            changes["temp_dir"] = temp_dir
        if install_extension is not None:
            changes["install_extension"] = install_extension
        return replace(self, **changes) if changes else self
