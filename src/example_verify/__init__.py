"""example-verify - cross-compile check for every example of a hardware-support library.

Assembles a throwaway project from a versioned upstream template, points it
at the library in the current directory, and runs a compilation check for
each example under ``examples/`` against the configured target.

Package entry point. Exports the version string only; the pipeline lives in
harness.py and the CLI in main.py.
"""

__version__ = "0.1.0"
