from __future__ import annotations

from rich.prompt import Prompt

from mmctl.errors import CommandError

AFFIRMATIVE = "YES"
ABORTED_MESSAGE = "ABORTED: You did not answer YES exactly, in all capitals."


def require_confirmation(*questions: str) -> None:
    """Ask every question in turn; anything but an exact ``YES`` aborts."""
    for question in questions:
        try:
            answer = Prompt.ask(question, default="", show_default=False)
        except (EOFError, KeyboardInterrupt):
            raise CommandError(ABORTED_MESSAGE) from None
        if answer != AFFIRMATIVE:
            raise CommandError(ABORTED_MESSAGE)
