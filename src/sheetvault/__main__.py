"""Allow ``python -m sheetvault``."""

from sheetvault import cli

cli.app()
