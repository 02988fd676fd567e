"""Example set and linking of the library's examples into a workspace.

The workspace's ``examples`` path must resolve to the library's own
examples. It is backed by a directory symlink, or by a copy on platforms
without symlink support. Either way the library tree is only read.

Key entities:
  - ExampleSet: read-only mapping of logical example name → source path.
  - link_examples(): attach the library's examples at the workspace path.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator, Mapping
from pathlib import Path

from ..errors import PreconditionError

logger = logging.getLogger(__name__)


def example_name(path: Path) -> str:
    """Logical example name: the entry name with its last extension removed."""
    return path.stem if path.is_file() else path.name


class ExampleSet(Mapping[str, Path]):
    """Examples directly under a directory, ordered by logical name.

    Entries starting with "." are ignored. Subdirectories count as one
    example each; their contents are not scanned.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        if not root.is_dir():
            raise PreconditionError(f"Examples directory not found: {root}")

        entries: dict[str, Path] = {}
        for entry in sorted(root.iterdir()):
            if entry.name.startswith("."):
                continue
            name = example_name(entry)
            if name in entries:
                raise PreconditionError(
                    f"Examples {entries[name].name} and {entry.name} "
                    f"both map to the name '{name}'"
                )
            entries[name] = entry
        self._entries = dict(sorted(entries.items()))

    def __getitem__(self, name: str) -> Path:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> list[str]:
        return list(self._entries)


def link_examples(source: Path, destination: Path, *, mode: str = "symlink") -> ExampleSet:
    """Make *source* visible at *destination* and return its ExampleSet.

    Args:
        source: The library's real examples directory.
        destination: Workspace examples path; must not exist yet.
        mode: "symlink" (default) or "copy".

    Raises:
        PreconditionError: *source* is missing, *destination* already
            exists, or *mode* is unknown.
    """
    source = source.resolve()
    if not source.is_dir():
        raise PreconditionError(f"Not a directory: {source}")

    # is_symlink() also catches a dangling link, which exists() misses
    if destination.exists() or destination.is_symlink():
        raise PreconditionError(
            f"{destination} already exists; the template's examples must be "
            "removed before linking"
        )

    if mode == "symlink":
        destination.symlink_to(source, target_is_directory=True)
        logger.info("Linked examples: %s -> %s", destination, source)
    elif mode == "copy":
        shutil.copytree(source, destination, symlinks=True)
        logger.info("Copied examples: %s -> %s", source, destination)
    else:
        raise PreconditionError(f"Unknown examples link mode: {mode!r}")

    return ExampleSet(destination)
