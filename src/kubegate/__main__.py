"""Allow ``python -m kubegate``."""

from kubegate.cli.main import app

app(prog_name="kubegate")
