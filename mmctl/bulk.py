"""
Best-effort bulk operations.

The same remote operation is applied to every token in order. A token that
does not resolve, or whose operation fails, is recorded as an error for that
item only; the remaining items are still attempted. Nothing is rolled back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import requests

from MattermostHelper import ApiError
from mmctl.printer import Printer

logger = logging.getLogger("mmctl.bulk")


@dataclass
class BulkResult:
    """Outcome for a single token."""
    index: int
    token: str
    success: bool
    entity: Any = None
    detail: str = ""


@dataclass
class BulkReport:
    """Aggregated outcome of a bulk operation, in input order."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[BulkResult] = field(default_factory=list)

    def add(self, result: BulkResult) -> None:
        self.results.append(result)
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1


def run_bulk(
    tokens: list[str],
    resolve: Callable[[str], Any],
    operation: Callable[[Any], Any],
    *,
    not_found: Callable[[str], str],
    failed: Callable[[str, Any, Exception], str],
) -> BulkReport:
    """
    Resolve each token and run ``operation`` on it. A lookup that fails
    outright counts as not found for that token only.

    ``operation`` may return the updated entity; when it returns ``None`` the
    resolved entity is recorded instead.
    """
    report = BulkReport(total=len(tokens))
    for index, token in enumerate(tokens):
        try:
            entity = resolve(token)
        except (ApiError, requests.RequestException) as exc:
            logger.debug("Item %d ('%s') lookup failed: %s", index, token, exc)
            entity = None
        if entity is None:
            logger.debug("Item %d ('%s') not found", index, token)
            report.add(BulkResult(index, token, False, detail=not_found(token)))
            continue
        try:
            returned = operation(entity)
        except (ApiError, requests.RequestException) as exc:
            logger.debug("Item %d ('%s') failed: %s", index, token, exc)
            report.add(BulkResult(index, token, False, entity, failed(token, entity, exc)))
            continue
        report.add(BulkResult(index, token, True, returned if returned is not None else entity))

    logger.debug("Bulk complete: %d/%d succeeded", report.succeeded, report.total)
    return report


def print_bulk_report(printer: Printer, report: BulkReport, template: str, **fields: Any) -> None:
    for result in report.results:
        if result.success:
            printer.print_t(template, result.entity, **fields)
        else:
            printer.print_error(result.detail)
