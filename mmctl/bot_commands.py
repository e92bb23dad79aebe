"""
bot create / update / list / enable / disable / assign
"""
from __future__ import annotations

import argparse
import logging

from MattermostHelper import ApiError, Bot, MattermostApiService, User, iter_pages
from mmctl.bulk import print_bulk_report, run_bulk
from mmctl.errors import CommandError
from mmctl.patch import PatchField, build_patch
from mmctl.printer import Printer
from mmctl.resolvers import resolve_user

logger = logging.getLogger("mmctl.bot")

BOT_PATCH_FIELDS = [
    PatchField("username", "username"),
    PatchField("display_name", "display_name"),
    PatchField("description", "description"),
]

LIST_TEMPLATE = "{user_id}: {username} (Owner by {owner}, {state}{orphaned})"


def _require_user(svc: MattermostApiService, token: str) -> User:
    user = resolve_user(svc, token)
    if user is None:
        raise CommandError(f"unable to find user '{token}'")
    return user


def cmd_bot_create(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Create a bot account."""
    bot = Bot(
        username=args.username,
        display_name=args.display_name or "",
        description=args.description or "",
    )
    try:
        created = svc.create_bot(bot)
    except ApiError as exc:
        raise CommandError(f"could not create bot: {exc}") from exc

    printer.print_t("Created bot {user_id}", created)


def cmd_bot_update(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Patch only the bot fields whose flags were given."""
    user = _require_user(svc, args.bot)
    patch = build_patch(args, BOT_PATCH_FIELDS)
    try:
        bot = svc.patch_bot(user.id, patch)
    except ApiError as exc:
        raise CommandError(f"could not update bot: {exc}") from exc

    printer.print_t("Updated bot {user_id} ({username})", bot)


def bot_list_fields(bot: Bot, owner: User | None) -> dict:
    """
    Display fields for one bot.

    The orphaned flag comes from this bot's own owner; an owner the server
    no longer returns counts as deleted.
    """
    return {
        "owner": owner.username if owner else bot.owner_id,
        "state": "Disabled" if bot.delete_at != 0 else "Enabled",
        "orphaned": ", Orphaned" if owner is None or owner.delete_at != 0 else "",
    }


def cmd_bot_list(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """List bots with their owner and state."""
    show_all = bool(getattr(args, "all", False))
    orphaned = bool(getattr(args, "orphaned", False))

    def _fetch(page: int, per_page: int) -> list[Bot]:
        return svc.get_bots(
            page,
            per_page,
            include_deleted=show_all,
            only_orphaned=orphaned and not show_all,
        )

    try:
        for bots in iter_pages(_fetch):
            owner_ids = list(dict.fromkeys(b.owner_id for b in bots if b.owner_id))
            owners = svc.get_users_by_ids(owner_ids) if owner_ids else []
            owners_by_id = {u.id: u for u in owners}

            for bot in bots:
                owner = owners_by_id.get(bot.owner_id)
                printer.print_t(LIST_TEMPLATE, bot, **bot_list_fields(bot, owner))
    except ApiError as exc:
        raise CommandError(f"Failed to fetch bots: {exc}") from exc


def _set_bot_state(
    svc: MattermostApiService,
    args: argparse.Namespace,
    printer: Printer,
    *,
    enable: bool,
) -> None:
    verb = "enable" if enable else "disable"
    operation = svc.enable_bot if enable else svc.disable_bot

    report = run_bulk(
        args.bots,
        lambda token: resolve_user(svc, token),
        lambda user: operation(user.id),
        not_found=lambda token: f"can't find user '{token}'",
        failed=lambda token, _user, exc: f"could not {verb} bot '{token}': {exc}",
    )
    print_bulk_report(printer, report, f"{verb.capitalize()}d bot {{user_id}} ({{username}})")


def cmd_bot_enable(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Enable one or more disabled bots."""
    _set_bot_state(svc, args, printer, enable=True)


def cmd_bot_disable(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Disable one or more bots."""
    _set_bot_state(svc, args, printer, enable=False)


def cmd_bot_assign(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Hand a bot over to another owner."""
    bot_user = _require_user(svc, args.bot)
    new_owner = _require_user(svc, args.owner)

    try:
        bot = svc.assign_bot(bot_user.id, new_owner.id)
    except ApiError as exc:
        raise CommandError(
            f"can not assign bot '{args.bot}' to user '{args.owner}': {exc}"
        ) from exc

    printer.print_t(
        "The bot {user_id} ({username}) now belongs to the user {owner_username}",
        bot,
        owner_username=new_owner.username,
    )
