"""
team create / add / remove / delete / archive / restore / modify / list /
search / rename
"""
from __future__ import annotations

import argparse
import logging
from typing import Any, Callable

from MattermostHelper import (
    TEAM_INVITE,
    TEAM_OPEN,
    ApiError,
    MattermostApiService,
    Team,
    User,
    iter_pages,
)
from mmctl.bulk import print_bulk_report, run_bulk
from mmctl.confirm import require_confirmation
from mmctl.errors import CommandError
from mmctl.patch import PatchField, build_patch
from mmctl.printer import Printer
from mmctl.resolvers import resolve_team, resolve_user

logger = logging.getLogger("mmctl.team")

DELETE_QUESTIONS = (
    "Have you performed a database backup? (YES/NO)",
    "Are you sure you want to delete the teams specified?  "
    "All data will be permanently deleted? (YES/NO)",
)
ARCHIVE_QUESTIONS = ("Are you sure you want to archive the specified teams? (YES/NO)",)


def remove_duplicates_and_sort(
    items: list[Any],
    key: Callable[[Any], str] = lambda team: team.name,
) -> list[Any]:
    """Keep the first item per key, then sort ascending by that key."""
    seen: set[str] = set()
    result = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        result.append(item)
    return sorted(result, key=key)


def _require_team(svc: MattermostApiService, token: str) -> Team:
    team = resolve_team(svc, token)
    if team is None:
        raise CommandError(f"Unable to find team '{token}'")
    return team


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

def cmd_team_create(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Create a team (open by default, invite-only with --private)."""
    printer.set_single(True)

    if not args.name:
        raise CommandError("Name is required")
    if not args.display_name:
        raise CommandError("Display Name is required")

    team = Team(
        name=args.name,
        display_name=args.display_name,
        email=args.email or "",
        type=TEAM_INVITE if args.private else TEAM_OPEN,
    )
    try:
        created = svc.create_team(team)
    except ApiError as exc:
        raise CommandError(f"Team creation failed: {exc}") from exc

    printer.print_t("New team {name} successfully created", created)


# ---------------------------------------------------------------------------
# membership
# ---------------------------------------------------------------------------

def _change_membership(
    svc: MattermostApiService,
    args: argparse.Namespace,
    printer: Printer,
    *,
    add: bool,
) -> None:
    team = _require_team(svc, args.team)

    if add:
        def operation(user: User) -> None:
            svc.add_team_member(team.id, user.id)

        def failed(token: str, _user: Any, exc: Exception) -> str:
            return f"Unable to add '{token}' to {team.name}. Error: {exc}"

        template = "Added {username} to team {team_name}"
    else:
        def operation(user: User) -> None:
            svc.remove_team_member(team.id, user.id)

        def failed(token: str, _user: Any, exc: Exception) -> str:
            return f"Unable to remove '{token}' from {team.name}. Error: {exc}"

        template = "Removed {username} from team {team_name}"

    report = run_bulk(
        args.users,
        lambda token: resolve_user(svc, token),
        operation,
        not_found=lambda token: f"Can't find user '{token}'",
        failed=failed,
    )
    print_bulk_report(printer, report, template, team_name=team.name)


def cmd_team_add(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Add users to a team."""
    _change_membership(svc, args, printer, add=True)


def cmd_team_remove(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Remove users from a team."""
    _change_membership(svc, args, printer, add=False)


# ---------------------------------------------------------------------------
# delete / archive / restore / modify
# ---------------------------------------------------------------------------

def _bulk_teams(
    svc: MattermostApiService,
    tokens: list[str],
    printer: Printer,
    operation: Callable[[Team], Any],
    *,
    action: str,
    template: str,
    **fields: Any,
) -> None:
    report = run_bulk(
        tokens,
        lambda token: resolve_team(svc, token),
        operation,
        not_found=lambda token: f"Unable to find team '{token}'",
        failed=lambda _token, team, exc: f"Unable to {action} team '{team.name}' error: {exc}",
    )
    print_bulk_report(printer, report, template, **fields)


def cmd_team_delete(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Permanently delete teams after a double confirmation."""
    if not args.confirm:
        require_confirmation(*DELETE_QUESTIONS)

    _bulk_teams(
        svc,
        args.teams,
        printer,
        lambda team: svc.permanent_delete_team(team.id),
        action="delete",
        template="Deleted team '{name}'",
    )


def cmd_team_archive(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Archive (soft delete) teams."""
    if not args.confirm:
        require_confirmation(*ARCHIVE_QUESTIONS)

    _bulk_teams(
        svc,
        args.teams,
        printer,
        lambda team: svc.archive_team(team.id),
        action="archive",
        template="Archived team '{name}'",
    )


def cmd_team_restore(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Restore archived teams."""
    _bulk_teams(
        svc,
        args.teams,
        printer,
        lambda team: svc.restore_team(team.id),
        action="restore",
        template="Restored team '{name}'",
    )


def cmd_team_modify(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Switch teams between open and invite-only."""
    private = bool(getattr(args, "private", False))
    public = bool(getattr(args, "public", False))
    if private == public:
        raise CommandError("must specify one of --private or --public")
    privacy = TEAM_INVITE if private else TEAM_OPEN

    _bulk_teams(
        svc,
        args.teams,
        printer,
        lambda team: svc.update_team_privacy(team.id, privacy),
        action="modify",
        template="Team '{name}' is now {privacy}",
        privacy="private" if private else "public",
    )


# ---------------------------------------------------------------------------
# list / search
# ---------------------------------------------------------------------------

def cmd_team_list(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """List all teams; archived ones are marked."""
    for teams in iter_pages(svc.get_all_teams):
        for team in teams:
            if team.is_archived:
                printer.print_t("{name} (archived)", team)
            else:
                printer.print_t("{name}", team)


def cmd_team_search(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Search teams by several terms; results are merged, deduplicated and sorted."""
    teams: list[Team] = []
    for term in args.terms:
        found = svc.search_teams(term)
        logger.debug("Search '%s' returned %d team(s)", term, len(found))
        teams.extend(found)

    for team in remove_duplicates_and_sort(teams):
        printer.print_t("{name}: {display_name} ({id})", team)


# ---------------------------------------------------------------------------
# rename
# ---------------------------------------------------------------------------

def cmd_team_rename(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """
    Rename a team and/or change its display name.

    ``NEW_NAME`` may be omitted or given as ``-`` to only change the display
    name. ``--display-name`` is always required.
    """
    old_name = args.team
    team = resolve_team(svc, old_name)
    if team is None:
        raise CommandError(
            f"Unable to find team '{old_name}', to see the all teams try 'team list' command"
        )

    fields = [PatchField("display_name", "display_name")]
    new_name = getattr(args, "new_name", None)
    if new_name not in (None, "", "-") and new_name != team.name:
        fields.append(PatchField("new_name", "name"))

    patch = build_patch(
        args,
        fields,
        required={
            "display_name": "missing display name, append '--display_name' flag to your command",
        },
    )
    try:
        updated = svc.patch_team(team.id, patch)
    except ApiError as exc:
        raise CommandError(f"Cannot rename team '{old_name}', error : {exc}") from exc

    printer.print_t("'{old_name}' team renamed", updated, old_name=old_name)
