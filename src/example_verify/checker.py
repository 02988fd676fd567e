"""Per-example compilation check with fail-fast semantics.

Runs ``<command> check --example <name> --target <target>`` inside the
workspace for each example, in order, and stops at the first failure.
The tool's own output goes straight to the console and is not parsed.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

from .errors import PreconditionError, VerificationError

logger = logging.getLogger(__name__)


class ExampleChecker:
    """Checks single examples of a workspace project for one target."""

    def __init__(
        self,
        workspace: Path,
        target: str,
        command: Sequence[str] = ("xargo",),
        timeout: float | None = None,
    ) -> None:
        self.workspace = workspace
        self.target = target
        self.command = tuple(command)
        self.timeout = timeout

    def command_for(self, example: str) -> list[str]:
        return [*self.command, "check", "--example", example, "--target", self.target]

    def check(self, example: str) -> int:
        """Run the check for *example* and return its exit status.

        Raises:
            PreconditionError: The check executable can't be found.
            VerificationError: The check exceeded the configured timeout.
        """
        cmd = self.command_for(example)
        logger.info("Checking example '%s': %s", example, shlex.join(cmd))
        try:
            result = subprocess.run(cmd, cwd=self.workspace, timeout=self.timeout)
        except FileNotFoundError:
            raise PreconditionError(
                f"Check command not found: {self.command[0]}"
            ) from None
        except subprocess.TimeoutExpired:
            logger.error(
                "Example '%s' check timed out after %ss", example, self.timeout
            )
            raise VerificationError(example, None) from None
        return result.returncode

    def verify(self, examples: Iterable[str]) -> list[str]:
        """Check each example in order, stopping at the first failure.

        Returns the names checked (all of them, on success).

        Raises:
            VerificationError: For the first example whose check fails.
        """
        checked: list[str] = []
        for example in examples:
            returncode = self.check(example)
            checked.append(example)
            if returncode != 0:
                raise VerificationError(example, returncode)
        logger.info("All %d examples passed for %s", len(checked), self.target)
        return checked
