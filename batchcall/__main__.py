"""Main entry point when executing batchcall as a package.

This allows running the package using python -m batchcall.
"""

from batchcall.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
