"""Application entry point: `example-verify` console script.

Configures logging, loads settings from the current directory (the library
under test), runs one verification, and exits with its status:
  - 0 when every example check passes.
  - The failing check's exit status (1 on timeout) when an example fails.
  - 1 for configuration, provisioning or manifest errors.
"""

import logging
import sys
from pathlib import Path


def main() -> None:
    """Main entry point."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.WARNING,
    )

    from .errors import HarnessError, VerificationError
    from .harness import run
    from .settings import load_settings

    try:
        config = load_settings(Path.cwd())
    except HarnessError as e:
        print(f"Error: {e}\n")
        print("Check TARGET and example-verify.toml.")
        sys.exit(1)

    logging.getLogger("example_verify").setLevel(logging.INFO)
    logger = logging.getLogger(__name__)

    try:
        checked = run(config)
    except VerificationError as e:
        logger.error("%s", e)
        sys.exit(e.returncode or 1)
    except HarnessError as e:
        logger.error("%s", e)
        sys.exit(1)

    logger.info("Verified %d examples for %s", len(checked), config.target)


if __name__ == "__main__":
    main()
