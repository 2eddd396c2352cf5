"""Git source control provider: queued file operations backed by the git binary."""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("git-source-control")
except PackageNotFoundError:
    __version__ = "0.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
