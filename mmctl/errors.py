from __future__ import annotations


class CommandError(Exception):
    """Fatal error: the whole command is aborted and the CLI exits non-zero."""
