"""Failure classes for a verification run.

Every error is fatal for the run; main.py maps them to an exit status.
"""

from __future__ import annotations


class HarnessError(RuntimeError):
    """Base class for every failure that ends a verification run."""


class ProvisioningError(HarnessError):
    """Template download, extraction or workspace filesystem failure."""


class PreconditionError(HarnessError):
    """Missing configuration or conflicting filesystem state."""


class ManifestError(HarnessError):
    """The workspace manifest is missing, unreadable or conflicts with an injected entry."""


class VerificationError(HarnessError):
    """An example failed its compilation check."""

    def __init__(self, example: str, returncode: int | None) -> None:
        self.example = example
        self.returncode = returncode
        if returncode is None:
            detail = "timed out"
        else:
            detail = f"exited with status {returncode}"
        super().__init__(f"Example '{example}' failed its check ({detail})")
