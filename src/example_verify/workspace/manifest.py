"""Workspace manifest (Cargo.toml) as a typed structure.

The template's manifest is parsed with tomllib, dependency entries are
added structurally under [dependencies], and the result is written back
with the toml package. Existing content is never dropped or replaced.

Key entities:
  - Manifest: load / add_dependency / save.
  - inject_dependencies(): add the library path dependency and the
    pinned framework dependency to a workspace manifest.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import toml

from ..errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"


class Manifest:
    """Parsed dependency manifest bound to its file path."""

    def __init__(self, path: Path, data: dict[str, Any]) -> None:
        self.path = path
        self.data = data

    @classmethod
    def load(cls, path: Path) -> Manifest:
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError:
            raise ManifestError(f"Manifest not found: {path}") from None
        except tomllib.TOMLDecodeError as e:
            raise ManifestError(f"Invalid manifest {path}: {e}") from e
        return cls(path, data)

    @property
    def dependencies(self) -> dict[str, Any]:
        """The [dependencies] table (empty dict if the manifest has none)."""
        return self.data.get("dependencies", {})

    def add_dependency(self, name: str, spec: dict[str, Any]) -> None:
        """Add *name* under [dependencies].

        Re-adding an identical entry is a no-op. An existing entry with a
        different spec raises ManifestError instead of being overwritten.
        """
        deps = self.data.setdefault("dependencies", {})
        if not isinstance(deps, dict):
            raise ManifestError(f"{self.path}: [dependencies] is not a table")

        existing = deps.get(name)
        if existing is not None:
            # `name = "1.0"` is shorthand for `name = { version = "1.0" }`
            if isinstance(existing, str):
                existing = {"version": existing}
            if existing == spec:
                return
            raise ManifestError(
                f"{self.path}: dependency '{name}' already declared as "
                f"{existing!r}, refusing to replace it with {spec!r}"
            )
        deps[name] = dict(spec)
        logger.info("Manifest: added dependency %s = %s", name, spec)

    def add_path_dependency(self, name: str, path: Path) -> None:
        self.add_dependency(name, {"path": str(path)})

    def add_version_dependency(self, name: str, version: str) -> None:
        self.add_dependency(name, {"version": version})

    def dumps(self) -> str:
        return toml.dumps(self.data)

    def save(self) -> None:
        try:
            self.path.write_text(self.dumps(), encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Failed to write manifest {self.path}: {e}") from e


def inject_dependencies(
    workspace: Path,
    *,
    library_name: str,
    library_dir: Path,
    framework_name: str,
    framework_version: str,
) -> Manifest:
    """Point the workspace manifest at the local library and pin the framework.

    Returns the saved Manifest.
    """
    manifest = Manifest.load(workspace / MANIFEST_NAME)
    manifest.add_path_dependency(library_name, library_dir.resolve())
    manifest.add_version_dependency(framework_name, framework_version)
    manifest.save()
    return manifest
