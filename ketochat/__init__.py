"""
ketochat - a small keto assistant that keeps its conversations on disk.

Threads and messages are persisted through SQLAlchemy, replies come from a
language model behind an inference port, and the ``netcarbs`` directive is
answered deterministically before the model is asked for a suggestion.

CLI (after pip install):
    ketochat "netcarbs 30 8 6"
    ketochat --list-threads
"""

from ketochat.version import VERSION

__version__ = VERSION
__all__ = [
    "VERSION",
    "__version__",
]
