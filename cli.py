#!/usr/bin/env python
"""
Mattermost Admin – Rich CLI
===========================
Command-line administration of bots, teams and webhooks on a Mattermost server.

Usage
-----
    python cli.py bot create testbot --display-name "Test Bot"
    python cli.py bot enable testbot otherbot
    python cli.py team search alpha beta
    python cli.py team delete oldteam --confirm
    python cli.py webhook list myteam
    python cli.py --format json webhook show w16zb5tu3n1zkqo18goqry1je

Connection settings are read from the environment or a ``.env`` file
(``MMCTL_URL`` plus ``MMCTL_TOKEN`` or ``MMCTL_USERNAME``/``MMCTL_PASSWORD``).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable

import requests
from rich.console import Console
from rich.markup import escape

from MattermostHelper import ApiError, MattermostApiService, create_service_from_env
from mmctl.bot_commands import (
    cmd_bot_assign,
    cmd_bot_create,
    cmd_bot_disable,
    cmd_bot_enable,
    cmd_bot_list,
    cmd_bot_update,
)
from mmctl.errors import CommandError
from mmctl.printer import FORMAT_JSON, FORMAT_PLAIN, Printer
from mmctl.team_commands import (
    cmd_team_add,
    cmd_team_archive,
    cmd_team_create,
    cmd_team_delete,
    cmd_team_list,
    cmd_team_modify,
    cmd_team_remove,
    cmd_team_rename,
    cmd_team_restore,
    cmd_team_search,
)
from mmctl.webhook_commands import (
    cmd_webhook_create_incoming,
    cmd_webhook_create_outgoing,
    cmd_webhook_delete,
    cmd_webhook_list,
    cmd_webhook_modify_incoming,
    cmd_webhook_modify_outgoing,
    cmd_webhook_show,
)

err_console = Console(stderr=True, highlight=False)

Handler = Callable[[MattermostApiService, argparse.Namespace, Printer], None]

COMMANDS: dict[tuple[str, str], Handler] = {
    ("bot", "create"): cmd_bot_create,
    ("bot", "update"): cmd_bot_update,
    ("bot", "list"): cmd_bot_list,
    ("bot", "enable"): cmd_bot_enable,
    ("bot", "disable"): cmd_bot_disable,
    ("bot", "assign"): cmd_bot_assign,
    ("team", "create"): cmd_team_create,
    ("team", "add"): cmd_team_add,
    ("team", "remove"): cmd_team_remove,
    ("team", "delete"): cmd_team_delete,
    ("team", "archive"): cmd_team_archive,
    ("team", "restore"): cmd_team_restore,
    ("team", "modify"): cmd_team_modify,
    ("team", "list"): cmd_team_list,
    ("team", "search"): cmd_team_search,
    ("team", "rename"): cmd_team_rename,
    ("webhook", "list"): cmd_webhook_list,
    ("webhook", "show"): cmd_webhook_show,
    ("webhook", "create-incoming"): cmd_webhook_create_incoming,
    ("webhook", "modify-incoming"): cmd_webhook_modify_incoming,
    ("webhook", "create-outgoing"): cmd_webhook_create_outgoing,
    ("webhook", "modify-outgoing"): cmd_webhook_modify_outgoing,
    ("webhook", "delete"): cmd_webhook_delete,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _add_bot_commands(sub: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p_bot = sub.add_parser("bot", help="Management of bots")
    bot = p_bot.add_subparsers(dest="action")

    p_create = bot.add_parser("create", help="Create bot")
    p_create.add_argument("username")
    p_create.add_argument("--display-name", help="The display name for the new bot")
    p_create.add_argument("--description", help="The description text for the new bot")

    p_update = bot.add_parser("update", help="Update bot information")
    p_update.add_argument("bot", metavar="username")
    p_update.add_argument("--username", help="The new username for the bot")
    p_update.add_argument("--display-name", help="The new display name for the bot")
    p_update.add_argument("--description", help="The new description text for the bot")

    p_list = bot.add_parser("list", help="List bots")
    mode = p_list.add_mutually_exclusive_group()
    mode.add_argument("--orphaned", action="store_true", help="Only show orphaned bots")
    mode.add_argument(
        "--all",
        action="store_true",
        help="Show all bots (including deleted and orphaned)",
    )

    p_enable = bot.add_parser("enable", help="Enable bots")
    p_enable.add_argument("bots", nargs="+", metavar="username")

    p_disable = bot.add_parser("disable", help="Disable bots")
    p_disable.add_argument("bots", nargs="+", metavar="username")

    p_assign = bot.add_parser("assign", help="Assign the ownership of a bot to another user")
    p_assign.add_argument("bot", metavar="bot-username")
    p_assign.add_argument("owner", metavar="new-owner-username")
    return p_bot


def _add_team_commands(sub: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p_team = sub.add_parser("team", help="Management of teams")
    team = p_team.add_subparsers(dest="action")

    p_create = team.add_parser("create", help="Create a team")
    p_create.add_argument("--name", help="Team name")
    p_create.add_argument("--display-name", "--display_name", dest="display_name",
                          help="Team display name")
    p_create.add_argument("--private", action="store_true", help="Create a private team")
    p_create.add_argument(
        "--email",
        help="Administrator email (anyone with this email is automatically a team admin)",
    )

    p_add = team.add_parser("add", help="Add users to team")
    p_add.add_argument("team")
    p_add.add_argument("users", nargs="+")

    p_remove = team.add_parser("remove", help="Remove users from team")
    p_remove.add_argument("team")
    p_remove.add_argument("users", nargs="+")

    p_delete = team.add_parser("delete", help="Permanently delete teams")
    p_delete.add_argument("teams", nargs="+")
    p_delete.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm you really want to delete the team and a DB backup has been performed",
    )

    p_archive = team.add_parser("archive", help="Archive teams")
    p_archive.add_argument("teams", nargs="+")
    p_archive.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm you really want to archive the team",
    )

    p_restore = team.add_parser("restore", help="Restore archived teams")
    p_restore.add_argument("teams", nargs="+")

    p_modify = team.add_parser("modify", help="Change team privacy")
    p_modify.add_argument("teams", nargs="+")
    privacy = p_modify.add_mutually_exclusive_group(required=True)
    privacy.add_argument("--private", action="store_true", help="Make the teams invite-only")
    privacy.add_argument("--public", action="store_true", help="Make the teams open")

    team.add_parser("list", help="List all teams")

    p_search = team.add_parser("search", help="Search for teams based on name")
    p_search.add_argument("terms", nargs="+")

    p_rename = team.add_parser("rename", help="Rename an existing team")
    p_rename.add_argument("team")
    p_rename.add_argument("new_name", nargs="?", help="New team name, or '-' to keep it")
    p_rename.add_argument("--display-name", "--display_name", dest="display_name",
                          help="Team display name")
    return p_team


def _add_webhook_commands(sub: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p_hook = sub.add_parser("webhook", help="Management of webhooks")
    hook = p_hook.add_subparsers(dest="action")

    p_list = hook.add_parser("list", help="List webhooks")
    p_list.add_argument("teams", nargs="*")

    p_show = hook.add_parser("show", help="Show a webhook")
    p_show.add_argument("webhook_id")

    p_ci = hook.add_parser("create-incoming", help="Create incoming webhook")
    p_ci.add_argument("--channel", required=True, help="Channel ID or team:channel")
    p_ci.add_argument("--user", required=True,
                      help="The username, email or ID of the user that the webhook should post as")
    p_ci.add_argument("--owner", help="The username, email or ID of the owner of the webhook")
    p_ci.add_argument("--display-name", help="Incoming webhook display name")
    p_ci.add_argument("--description", help="Incoming webhook description")
    p_ci.add_argument("--icon", help="Icon URL")
    p_ci.add_argument("--lock-to-channel", action="store_true", help="Lock to channel")

    p_mi = hook.add_parser("modify-incoming", help="Modify incoming webhook")
    p_mi.add_argument("webhook_id")
    p_mi.add_argument("--channel", help="Channel ID or team:channel")
    p_mi.add_argument("--display-name", help="Incoming webhook display name")
    p_mi.add_argument("--description", help="Incoming webhook description")
    p_mi.add_argument("--icon", help="Icon URL")
    p_mi.add_argument("--lock-to-channel", action=argparse.BooleanOptionalAction,
                      default=None, help="Lock to channel")

    p_co = hook.add_parser("create-outgoing", help="Create outgoing webhook")
    p_co.add_argument("--team", required=True, help="Team name or ID")
    p_co.add_argument("--channel", help="Channel ID or team:channel")
    p_co.add_argument("--user", required=True,
                      help="The username, email or ID of the user that the webhook should post as")
    p_co.add_argument("--owner", help="The username, email or ID of the owner of the webhook")
    p_co.add_argument("--display-name", required=True, help="Outgoing webhook display name")
    p_co.add_argument("--description", help="Outgoing webhook description")
    p_co.add_argument("--trigger-word", dest="trigger_words", action="append",
                      help="Word to trigger webhook (repeatable)")
    p_co.add_argument(
        "--trigger-when",
        default="exact",
        help="exact: first word matches a trigger word exactly, "
             "start: first word starts with a trigger word",
    )
    p_co.add_argument("--icon", help="Icon URL")
    p_co.add_argument("--url", dest="urls", action="append", required=True,
                      help="Callback URL (repeatable)")
    p_co.add_argument("--content-type", help="Content-type")

    p_mo = hook.add_parser("modify-outgoing", help="Modify outgoing webhook")
    p_mo.add_argument("webhook_id")
    p_mo.add_argument("--channel", help="Channel ID or team:channel")
    p_mo.add_argument("--display-name", help="Outgoing webhook display name")
    p_mo.add_argument("--description", help="Outgoing webhook description")
    p_mo.add_argument("--trigger-word", dest="trigger_words", action="append",
                      help="Word to trigger webhook (repeatable)")
    p_mo.add_argument("--trigger-when", help="exact or start")
    p_mo.add_argument("--icon", help="Icon URL")
    p_mo.add_argument("--url", dest="urls", action="append", help="Callback URL (repeatable)")
    p_mo.add_argument("--content-type", help="Content-type")

    p_del = hook.add_parser("delete", help="Delete a webhook")
    p_del.add_argument("webhook_id")
    return p_hook


def build_parser() -> tuple[argparse.ArgumentParser, dict[str, argparse.ArgumentParser]]:
    parser = argparse.ArgumentParser(
        prog="mmctl",
        description="Mattermost administration CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--env",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--format",
        choices=(FORMAT_PLAIN, FORMAT_JSON),
        default=FORMAT_PLAIN,
        help="Output format (default: plain)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="group")
    groups = {
        "bot": _add_bot_commands(sub),
        "team": _add_team_commands(sub),
        "webhook": _add_webhook_commands(sub),
    }
    return parser, groups


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run_command(
    handler: Handler,
    svc: MattermostApiService,
    args: argparse.Namespace,
    printer: Printer,
) -> int:
    """Run one handler, always draining buffered output; returns the exit code."""
    try:
        handler(svc, args, printer)
    except (CommandError, ApiError, requests.RequestException) as exc:
        printer.flush()
        err_console.print(f"[bold red]Error: {escape(str(exc))}[/bold red]")
        return 1
    printer.flush()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser, groups = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if not args.group:
        parser.print_help()
        sys.exit(2)
    handler = COMMANDS.get((args.group, getattr(args, "action", None)))
    if handler is None:
        groups[args.group].print_help()
        sys.exit(2)

    # Initialise service
    try:
        with err_console.status("[bold cyan]Authenticating …"):
            svc = create_service_from_env(args.env)
    except (ValueError, ApiError, requests.RequestException) as exc:
        err_console.print(f"[bold red]Authentication failed: {escape(str(exc))}[/bold red]")
        sys.exit(1)

    printer = Printer(fmt=args.format)
    sys.exit(run_command(handler, svc, args, printer))


if __name__ == "__main__":
    main()
