"""
Two independent reads issued concurrently and joined before printing.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

import requests

from MattermostHelper import ApiError

logger = logging.getLogger("mmctl.fanout")


@dataclass
class ReadOutcome:
    data: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _outcome(future: Future) -> ReadOutcome:
    try:
        return ReadOutcome(data=future.result())
    except (ApiError, requests.RequestException) as exc:
        logger.debug("Concurrent read failed: %s", exc)
        return ReadOutcome(error=exc)


def read_both(
    first: Callable[[], Any],
    second: Callable[[], Any],
) -> tuple[ReadOutcome, ReadOutcome]:
    """Run both reads at once; outcomes come back in submission order."""
    with ThreadPoolExecutor(max_workers=2) as pool:
        first_future = pool.submit(first)
        second_future = pool.submit(second)
        return _outcome(first_future), _outcome(second_future)
