"""Root conftest: isolates the harness from the real environment.

Strips TARGET and the EXAMPLE_VERIFY_* overrides before every test (and
restores os.environ afterwards, including anything a .env file loaded), and
provides builders for template archives, library trees and fake HTTP clients.
"""

import io
import os
import tarfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from example_verify.workspace.provisioner import TemplateArchive

_ENV_VARS = (
    "TARGET",
    "EXAMPLE_VERIFY_CHECK_COMMAND",
    "EXAMPLE_VERIFY_CHECK_TIMEOUT",
    "EXAMPLE_VERIFY_TEMPLATE_VERSION",
)

TEMPLATE_URL = "https://example.test/quickstart/archive/v{version}.tar.gz"

TEMPLATE_CARGO_TOML = """\
[package]
name = "cortex-m-quickstart"
version = "0.1.8"

[dependencies]
cortex-m = "0.3.0"

[profile.release]
debug = true
lto = true
"""

TEMPLATE_FILES = {
    "Cargo.toml": TEMPLATE_CARGO_TOML,
    "Xargo.toml": "[dependencies.core]\n",
    ".cargo/config": "[target.thumbv7m-none-eabi]\nrunner = 'arm-none-eabi-gdb'\n",
    "build.rs": "fn main() {}\n",
    "memory.x": "MEMORY {}\n",
    "src/lib.rs": "#![no_std]\n",
    "examples/hello.rs": "fn main() {}\n",
    "examples/itm.rs": "fn main() {}\n",
}


@pytest.fixture(autouse=True)
def _clean_env():
    with patch.dict(os.environ):
        for key in _ENV_VARS:
            os.environ.pop(key, None)
        yield


@pytest.fixture
def make_archive() -> Callable[..., bytes]:
    """Build a .tar.gz whose files sit under one wrapping directory."""

    def _make(
        files: dict[str, str] | None = None,
        wrapper: str = "cortex-m-quickstart-0.1.8",
    ) -> bytes:
        files = TEMPLATE_FILES if files is None else files
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            root = tarfile.TarInfo(wrapper)
            root.type = tarfile.DIRTYPE
            root.mode = 0o755
            tar.addfile(root)
            for name, content in files.items():
                data = content.encode()
                info = tarfile.TarInfo(f"{wrapper}/{name}")
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return buf.getvalue()

    return _make


@pytest.fixture
def make_client() -> Callable[..., httpx.Client]:
    """httpx.Client answering every GET with *body*; requests are recorded."""

    def _make(body: bytes = b"", status_code: int = 200) -> httpx.Client:
        def handler(request: httpx.Request) -> httpx.Response:
            client.requests.append(request)
            return httpx.Response(status_code, content=body)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        client.requests = []  # type: ignore[attr-defined]
        return client

    return _make


@pytest.fixture
def library_dir(tmp_path: Path) -> Path:
    """A library checkout with blink.rs and uart.rs examples."""
    lib = tmp_path / "blue-pill"
    (lib / "examples").mkdir(parents=True)
    (lib / "src").mkdir()
    (lib / "Cargo.toml").write_text('[package]\nname = "blue-pill"\nversion = "0.1.0"\n')
    (lib / "src" / "lib.rs").write_text("#![no_std]\n")
    (lib / "examples" / "uart.rs").write_text("// uart\n")
    (lib / "examples" / "blink.rs").write_text("// blink\n")
    return lib


def snapshot(root: Path) -> dict[str, bytes]:
    """Relative path → content for every file under *root*."""
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def tree_snapshot() -> Callable[[Path], dict[str, bytes]]:
    return snapshot


@pytest.fixture
def template() -> TemplateArchive:
    return TemplateArchive(TEMPLATE_URL, "0.1.8")


@pytest.fixture
def template_files() -> dict[str, str]:
    return dict(TEMPLATE_FILES)
