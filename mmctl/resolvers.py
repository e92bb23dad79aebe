"""
Resolve operator-supplied tokens (ID, username, email, name) to entities.

Each lookup form that fails with an ``ApiError`` simply does not match; the
next form is tried. ``None`` means nothing matched.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable

from MattermostHelper import ApiError, Channel, MattermostApiService, Team, User

logger = logging.getLogger("mmctl.resolvers")

_ID_PATTERN = re.compile(r"^[a-z0-9]{26}$")


def looks_like_id(token: str) -> bool:
    return bool(_ID_PATTERN.match(token))


def _first_match(token: str, lookups: list[tuple[str, Callable[[str], Any]]]) -> Any:
    for form, lookup in lookups:
        try:
            entity = lookup(token)
        except ApiError as exc:
            logger.debug("'%s' did not resolve by %s: %s", token, form, exc)
            continue
        logger.debug("'%s' resolved by %s", token, form)
        return entity
    return None


def resolve_user(svc: MattermostApiService, token: str) -> User | None:
    lookups: list[tuple[str, Callable[[str], Any]]] = []
    if looks_like_id(token):
        lookups.append(("id", svc.get_user))
    lookups.append(("username", svc.get_user_by_username))
    if "@" in token:
        lookups.append(("email", svc.get_user_by_email))
    return _first_match(token, lookups)


def resolve_team(svc: MattermostApiService, token: str) -> Team | None:
    lookups: list[tuple[str, Callable[[str], Any]]] = []
    if looks_like_id(token):
        lookups.append(("id", svc.get_team))
    lookups.append(("name", svc.get_team_by_name))
    return _first_match(token, lookups)


def resolve_channel(svc: MattermostApiService, token: str) -> Channel | None:
    """Accepts ``team:channel`` or a bare channel ID."""
    if ":" in token:
        team_token, channel_name = token.split(":", 1)
        team = resolve_team(svc, team_token)
        if team is None:
            return None
        return _first_match(
            channel_name,
            [("name", lambda name: svc.get_channel_by_name(team.id, name))],
        )
    return _first_match(token, [("id", svc.get_channel)])
