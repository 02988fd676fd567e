"""Template provisioning: downloads the project skeleton into a workspace.

Streams a versioned .tar.gz of the upstream template over HTTP, unpacks it
with the archive's wrapping directory stripped so the template files land at
the workspace root, then removes the template-owned paths the verification
project replaces (build script, examples, memory layout, library sources).

Key entities:
  - TemplateArchive: immutable (url pattern, version) reference.
  - provision_workspace(): download + extract + prune.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import IO

import httpx

from ..errors import PreconditionError, ProvisioningError

logger = logging.getLogger(__name__)

# Template-owned paths removed after extraction
DEFAULT_PRUNE_PATHS: tuple[str, ...] = ("build.rs", "examples", "memory.x", "src")

_CHUNK_SIZE = 65536


@dataclass(frozen=True)
class TemplateArchive:
    """A versioned template archive, e.g. a GitHub ``archive/v<version>.tar.gz``."""

    url_pattern: str  # contains "{version}"
    version: str

    @property
    def url(self) -> str:
        return self.url_pattern.format(version=self.version)


def _strip_first_component(name: str) -> str:
    """'cortex-m-quickstart-0.1.8/src/main.rs' → 'src/main.rs'."""
    if name.startswith("./"):
        name = name[2:]
    parts = name.split("/", 1)
    return parts[1] if len(parts) == 2 else ""


def _stripped_members(
    members: Iterable[tarfile.TarInfo],
) -> Iterator[tarfile.TarInfo]:
    """Yield members re-rooted one level down, skipping the wrapper itself."""
    for member in members:
        stripped = _strip_first_component(member.name)
        if not stripped:
            continue
        member.name = stripped
        if member.islnk():
            # Hard links reference other archive paths, which carry the wrapper too
            member.linkname = _strip_first_component(member.linkname)
        yield member


def _download(client: httpx.Client, url: str, dest: IO[bytes]) -> None:
    """Stream the response body into *dest* in fixed-size chunks."""
    with client.stream("GET", url, follow_redirects=True) as resp:
        resp.raise_for_status()
        for chunk in resp.iter_bytes(_CHUNK_SIZE):
            dest.write(chunk)
    dest.seek(0)


def extract_archive(fileobj: IO[bytes], workspace: Path) -> None:
    """Extract a gzipped tarball into *workspace*, dropping its top-level directory."""
    try:
        with tarfile.open(fileobj=fileobj, mode="r:gz") as tar:
            # "data" rejects absolute paths and anything escaping the workspace
            members = _stripped_members(tar.getmembers())
            tar.extractall(workspace, members=members, filter="data")
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ProvisioningError(f"Failed to extract template archive: {e}") from e


def _prune_target(workspace: Path, rel: str) -> Path:
    """Resolve *rel* under *workspace*, refusing anything that leaves it."""
    root = workspace.resolve()
    candidate = Path(os.path.normpath(workspace / rel))
    # Resolve only the parent so a symlinked entry is unlinked, not followed
    target = candidate.parent.resolve() / candidate.name
    if target == root or not target.is_relative_to(root):
        raise PreconditionError(
            f"Refusing to prune {rel!r}: not a path inside the workspace"
        )
    return target


def prune_paths(workspace: Path, paths: Iterable[str]) -> None:
    """Remove *paths* (relative to *workspace*); missing paths are ignored.

    Raises:
        PreconditionError: An entry is absolute or escapes the workspace.
    """
    for rel in paths:
        target = _prune_target(workspace, rel)
        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
            elif target.is_dir():
                shutil.rmtree(target)
            else:
                continue
        except OSError as e:
            raise ProvisioningError(f"Failed to remove {target}: {e}") from e
        logger.debug("Pruned template path: %s", target)


def provision_workspace(
    workspace: Path,
    archive: TemplateArchive,
    *,
    prune: Iterable[str] = DEFAULT_PRUNE_PATHS,
    client: httpx.Client | None = None,
    timeout: float = 60.0,
) -> None:
    """Populate *workspace* from *archive* and prune the template-owned paths.

    Args:
        workspace: Existing, empty directory to populate.
        archive: Template reference to download.
        prune: Paths removed after extraction.
        client: Optional preconfigured client (used by tests); created and
                closed here when omitted.
        timeout: Request timeout in seconds for a client created here.

    Raises:
        ProvisioningError: On any transport, HTTP status, extraction or
            filesystem failure. Nothing is retried.
        PreconditionError: A prune entry points outside *workspace*.
    """
    url = archive.url
    logger.info("Downloading template %s from %s ...", archive.version, url)

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout)
    try:
        with tempfile.TemporaryFile(suffix=".tar.gz") as tmp:
            try:
                _download(client, url, tmp)
            except httpx.HTTPError as e:
                raise ProvisioningError(f"Failed to download {url}: {e}") from e
            except OSError as e:
                raise ProvisioningError(f"Failed to buffer {url}: {e}") from e
            extract_archive(tmp, workspace)
    finally:
        if owns_client:
            client.close()

    prune_paths(workspace, prune)
    logger.info("Template provisioned at %s", workspace)
