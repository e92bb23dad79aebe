"""
Buffered output for command handlers.

Handlers never write to the terminal directly: result lines (a template plus
the object it renders) and error lines are collected here and drained once by
``cli.main`` when the command finishes.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.markup import escape

FORMAT_PLAIN = "plain"
FORMAT_JSON = "json"


@dataclass
class PrintedLine:
    """One buffered result: ``template`` is ``None`` for raw object output."""
    obj: Any
    template: str | None = None
    fields: dict = field(default_factory=dict)


def _as_dict(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return obj


class Printer:
    """Collects result and error lines; renders them as plain text or JSON."""

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        fmt: str = FORMAT_PLAIN,
    ):
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(stderr=True, highlight=False, soft_wrap=True)
        self.fmt = fmt
        self.single = False
        self._lines: list[PrintedLine] = []
        self._errors: list[str] = []

    def set_single(self, single: bool) -> None:
        """Single-object commands print a bare JSON object instead of a list."""
        self.single = single

    def print_t(self, template: str, obj: Any, **fields: Any) -> None:
        self._lines.append(PrintedLine(obj=obj, template=template, fields=fields))

    def print(self, obj: Any) -> None:
        self._lines.append(PrintedLine(obj=obj))

    def print_error(self, message: str) -> None:
        self._errors.append(message)

    def get_lines(self) -> list[Any]:
        return [line.obj for line in self._lines]

    def get_error_lines(self) -> list[str]:
        return list(self._errors)

    def clean(self) -> None:
        self._lines.clear()
        self._errors.clear()
        self.single = False

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    @staticmethod
    def render(line: PrintedLine) -> str:
        data = _as_dict(line.obj)
        if line.template is None:
            return json.dumps(data, indent=2, default=str)
        values = dict(data) if isinstance(data, dict) else {}
        values.update(line.fields)
        return line.template.format(**values)

    def rendered_lines(self) -> list[str]:
        return [self.render(line) for line in self._lines]

    def flush(self) -> None:
        if self.fmt == FORMAT_JSON:
            if self._lines:
                objs = [_as_dict(line.obj) for line in self._lines]
                payload = objs[0] if self.single and len(objs) == 1 else objs
                self.console.print_json(json.dumps(payload, default=str))
        else:
            for text in self.rendered_lines():
                self.console.print(escape(text))

        for message in self._errors:
            self.err_console.print(f"[red]{escape(message)}[/red]")

        self.clean()
