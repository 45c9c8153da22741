"""Main entry point when executing stockcast as a package.

This allows running the package using python -m stockcast.
"""

from stockcast.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
