"""gitsizes CLI: report structural statistics of git trees."""

from ._helpers import main  # noqa: F401  entry point

# Import command modules to register Click commands with the main group.
from . import _size  # noqa: F401
