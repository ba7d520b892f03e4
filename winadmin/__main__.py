"""
Entry point for running winadmin as a module.

Usage:
    python -m winadmin --help
    python -m winadmin ca-config --custom
    python -m winadmin gal-sync
"""

from winadmin.cli import cli

if __name__ == "__main__":
    cli()
