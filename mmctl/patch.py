"""
Sparse patches built from command-line flags.

Every optional flag defaults to ``None`` in the parser, so a flag the operator
did not pass is distinguishable from one explicitly set to ``""``. Only set
flags end up in the patch; everything else keeps its remote value.
"""
from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Any, Callable

from mmctl.errors import CommandError


@dataclass(frozen=True)
class PatchField:
    flag: str
    key: str
    convert: Callable[[Any], Any] | None = None


def is_flag_set(args: argparse.Namespace, flag: str) -> bool:
    return getattr(args, flag, None) is not None


def build_patch(
    args: argparse.Namespace,
    patch_fields: list[PatchField],
    required: dict[str, str] | None = None,
) -> dict:
    """
    Return ``{key: value}`` for each field whose flag was explicitly set.

    ``required`` maps a patch key to the error message raised when that key
    is absent or empty.
    """
    patch: dict[str, Any] = {}
    for pf in patch_fields:
        if not is_flag_set(args, pf.flag):
            continue
        value = getattr(args, pf.flag)
        patch[pf.key] = pf.convert(value) if pf.convert else value

    for key, message in (required or {}).items():
        if patch.get(key) in (None, ""):
            raise CommandError(message)
    return patch
