"""Verification run lifecycle: scratch workspace setup, pipeline, teardown.

One run: create a fresh scratch directory, provision the template into it,
inject the library + framework dependencies, link the library's examples,
check every example, then delete the scratch directory whatever happened.
All steps take explicit paths; the process working directory is never
changed.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import httpx

from .checker import ExampleChecker
from .settings import HarnessConfig
from .workspace.examples import link_examples
from .workspace.manifest import inject_dependencies
from .workspace.provisioner import provision_workspace

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "example-verify-"


@contextmanager
def scratch_workspace() -> Iterator[Path]:
    """Yield a new empty directory and remove it on exit, success or not.

    rmtree unlinks the examples symlink without following it, so the
    library's own examples are left alone.
    """
    workspace = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX))
    logger.debug("Created scratch workspace %s", workspace)
    try:
        yield workspace
    finally:
        shutil.rmtree(workspace)
        logger.debug("Removed scratch workspace %s", workspace)


def run(
    config: HarnessConfig,
    *,
    make_checker: Callable[[Path], ExampleChecker] | None = None,
    client: httpx.Client | None = None,
) -> list[str]:
    """Run the whole verification pipeline once.

    Args:
        config: Resolved settings for this run.
        make_checker: Optional factory called with the scratch workspace to
                      build the checker. Built from *config* when omitted.
        client: Optional HTTP client for the template download.

    Returns:
        Names of the examples checked, in order.

    Raises:
        HarnessError: The first failure of any step, unchanged.
    """
    library_dir = config.library_dir
    logger.info(
        "Verifying examples of '%s' (%s) for %s",
        config.library_name,
        library_dir,
        config.target,
    )

    with scratch_workspace() as workspace:
        provision_workspace(
            workspace,
            config.template,
            prune=config.prune_paths,
            client=client,
            timeout=config.download_timeout,
        )
        inject_dependencies(
            workspace,
            library_name=config.library_name,
            library_dir=library_dir,
            framework_name=config.framework_name,
            framework_version=config.framework_version,
        )
        examples = link_examples(
            config.examples_dir, workspace / "examples", mode=config.link_mode
        )
        logger.info("Found %d examples: %s", len(examples), ", ".join(examples))

        if make_checker is None:
            checker = ExampleChecker(
                workspace,
                config.target,
                command=config.check_command,
                timeout=config.check_timeout,
            )
        else:
            checker = make_checker(workspace)
        return checker.verify(examples.names())
