"""
Box Builder - Main entry point

Allows running the CLI as ``python -m boxbuilder``.
"""

from .cli import cli

if __name__ == "__main__":
    cli()
