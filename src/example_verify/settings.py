"""Harness settings. Reads .env + example-verify.toml to produce a HarnessConfig.

All sources live in the library root (the directory the harness is invoked
from). Precedence, lowest first: built-in defaults, example-verify.toml,
environment variables (a local .env is loaded but never overrides the
real environment).

Key entities:
  - HarnessConfig: frozen dataclass with everything one run needs.
  - load_settings(): parse .env + example-verify.toml + env → HarnessConfig.
"""

from __future__ import annotations

import logging
import os
import shlex
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import PreconditionError
from .workspace.provisioner import DEFAULT_PRUNE_PATHS, TemplateArchive

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "example-verify.toml"

DEFAULT_TEMPLATE_URL = (
    "https://github.com/japaric/cortex-m-quickstart/archive/v{version}.tar.gz"
)
DEFAULT_TEMPLATE_VERSION = "0.1.8"
DEFAULT_FRAMEWORK_NAME = "cortex-m-rtfm"
DEFAULT_FRAMEWORK_VERSION = "0.1.1"
DEFAULT_CHECK_COMMAND = "xargo"
DEFAULT_DOWNLOAD_TIMEOUT = 60.0

LINK_MODES = ("symlink", "copy")

# ---------------------------------------------------------------------------
# HarnessConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HarnessConfig:
    """Resolved configuration for a single verification run.

    Paths are absolute; no further env lookups are needed after loading.
    """

    # Library under test
    library_dir: Path
    library_name: str

    # Cross-compilation target, e.g. "thumbv7m-none-eabi"
    target: str

    # Template skeleton
    template: TemplateArchive = field(
        default_factory=lambda: TemplateArchive(
            DEFAULT_TEMPLATE_URL, DEFAULT_TEMPLATE_VERSION
        )
    )
    prune_paths: tuple[str, ...] = DEFAULT_PRUNE_PATHS
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT

    # Auxiliary framework dependency pinned into the manifest
    framework_name: str = DEFAULT_FRAMEWORK_NAME
    framework_version: str = DEFAULT_FRAMEWORK_VERSION

    # Per-example check
    check_command: tuple[str, ...] = (DEFAULT_CHECK_COMMAND,)
    check_timeout: float | None = None

    # "symlink" or "copy"
    link_mode: str = "symlink"

    @property
    def examples_dir(self) -> Path:
        return self.library_dir / "examples"

    @property
    def settings_file(self) -> Path:
        return self.library_dir / SETTINGS_FILE_NAME


# ---------------------------------------------------------------------------
# load_settings
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Parse a TOML file, returning an empty dict when it doesn't exist."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise PreconditionError(f"Invalid TOML in {path}: {e}") from e


def _section(raw: dict, name: str, source: str = SETTINGS_FILE_NAME) -> dict:
    """Return table *name* from *raw* (empty when absent)."""
    section = raw.get(name, {})
    if not isinstance(section, dict):
        raise PreconditionError(f"{source}: [{name}] must be a table")
    return section


def _parse_timeout(value: object, source: str) -> float | None:
    """Convert a timeout setting to seconds; empty or zero disables it."""
    if value is None or value == "":
        return None
    try:
        seconds = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise PreconditionError(f"{source}: expected a number, got {value!r}") from None
    if seconds < 0:
        raise PreconditionError(f"{source}: timeout must not be negative")
    return seconds or None


def _parse_command(value: object, source: str) -> tuple[str, ...]:
    """Accept a shell-style string or a list of arguments."""
    if isinstance(value, str):
        parts = shlex.split(value)
    elif isinstance(value, list):
        parts = [str(v) for v in value]
    else:
        raise PreconditionError(f"{source}: expected a string or list, got {value!r}")
    if not parts:
        raise PreconditionError(f"{source}: check command is empty")
    return tuple(parts)


def _resolve_library_name(library_dir: Path, raw: dict) -> str:
    """Explicit [library] name, else [package] name from the library's Cargo.toml."""
    name = _section(raw, "library").get("name")
    if name:
        return str(name)

    cargo_path = library_dir / "Cargo.toml"
    cargo = _read_toml(cargo_path)
    name = _section(cargo, "package", str(cargo_path)).get("name")
    if not name:
        raise PreconditionError(
            f"Cannot determine the library name: set [library] name in "
            f"{SETTINGS_FILE_NAME} or [package] name in {cargo_path}"
        )
    return str(name)


def load_settings(library_dir: Path | None = None) -> HarnessConfig:
    """Read .env + example-verify.toml + environment and return a HarnessConfig.

    Args:
        library_dir: Root of the library under test.
                     Defaults to the current working directory.

    Raises:
        PreconditionError: TARGET is unset, the library name can't be
            determined, or a setting has an invalid value.
    """
    if library_dir is None:
        library_dir = Path.cwd()
    library_dir = library_dir.resolve()

    local_env = library_dir / ".env"
    if local_env.is_file():
        load_dotenv(local_env)

    target = os.getenv("TARGET", "").strip()
    if not target:
        raise PreconditionError(
            "TARGET is not set; export the cross-compilation target "
            "(e.g. TARGET=thumbv7m-none-eabi)"
        )

    raw = _read_toml(library_dir / SETTINGS_FILE_NAME)
    template_raw = _section(raw, "template")
    framework_raw = _section(raw, "framework")
    check_raw = _section(raw, "check")
    examples_raw = _section(raw, "examples")

    # Environment > TOML > default
    def _get(section: dict, key: str, env_var: str | None, default):
        if env_var:
            env_value = os.getenv(env_var)
            if env_value:
                return env_value
        return section.get(key, default)

    template = TemplateArchive(
        url_pattern=str(template_raw.get("url", DEFAULT_TEMPLATE_URL)),
        version=str(
            _get(
                template_raw,
                "version",
                "EXAMPLE_VERIFY_TEMPLATE_VERSION",
                DEFAULT_TEMPLATE_VERSION,
            )
        ),
    )

    prune = template_raw.get("prune", list(DEFAULT_PRUNE_PATHS))
    if not isinstance(prune, list):
        raise PreconditionError("template.prune: expected a list of paths")
    for entry in prune:
        entry_path = Path(str(entry))
        if entry_path.is_absolute() or ".." in entry_path.parts:
            raise PreconditionError(
                f"template.prune: {entry!r} must be relative to the template root"
            )

    link_mode = str(examples_raw.get("mode", "symlink"))
    if link_mode not in LINK_MODES:
        raise PreconditionError(
            f"examples.mode: {link_mode!r} (expected one of {', '.join(LINK_MODES)})"
        )

    config = HarnessConfig(
        library_dir=library_dir,
        library_name=_resolve_library_name(library_dir, raw),
        target=target,
        template=template,
        prune_paths=tuple(str(p) for p in prune),
        download_timeout=_parse_timeout(
            template_raw.get("download_timeout", DEFAULT_DOWNLOAD_TIMEOUT),
            "template.download_timeout",
        )
        or DEFAULT_DOWNLOAD_TIMEOUT,
        framework_name=str(framework_raw.get("name", DEFAULT_FRAMEWORK_NAME)),
        framework_version=str(
            framework_raw.get("version", DEFAULT_FRAMEWORK_VERSION)
        ),
        check_command=_parse_command(
            _get(check_raw, "command", "EXAMPLE_VERIFY_CHECK_COMMAND", DEFAULT_CHECK_COMMAND),
            "check.command",
        ),
        check_timeout=_parse_timeout(
            _get(check_raw, "timeout", "EXAMPLE_VERIFY_CHECK_TIMEOUT", None),
            "check.timeout",
        ),
        link_mode=link_mode,
    )
    logger.debug("Loaded settings: %s", config)
    return config
