"""
webhook list / show / create-incoming / modify-incoming / create-outgoing /
modify-outgoing / delete
"""
from __future__ import annotations

import argparse
import dataclasses
import logging

import requests

from MattermostHelper import (
    ApiError,
    IncomingWebhook,
    MattermostApiService,
    OutgoingWebhook,
    Team,
    User,
    iter_pages,
)
from mmctl.errors import CommandError
from mmctl.fanout import read_both
from mmctl.patch import PatchField, build_patch, is_flag_set
from mmctl.printer import Printer
from mmctl.resolvers import resolve_channel, resolve_team, resolve_user

logger = logging.getLogger("mmctl.webhook")

TRIGGER_WHEN = {"exact": 0, "start": 1}

CREATED_TEMPLATE = "Id: {id}\nDisplay Name: {display_name}"

INCOMING_PATCH_FIELDS = [
    PatchField("display_name", "display_name"),
    PatchField("description", "description"),
    PatchField("icon", "icon_url"),
    PatchField("lock_to_channel", "channel_locked"),
]

OUTGOING_PATCH_FIELDS = [
    PatchField("display_name", "display_name"),
    PatchField("description", "description"),
    PatchField("trigger_words", "trigger_words", list),
    PatchField("icon", "icon_url"),
    PatchField("content_type", "content_type"),
    PatchField("urls", "callback_urls", list),
]


def parse_trigger_when(value: str) -> int:
    try:
        return TRIGGER_WHEN[value]
    except KeyError:
        raise CommandError("invalid trigger-when parameter") from None


def _resolve_channel_id(svc: MattermostApiService, token: str) -> str:
    channel = resolve_channel(svc, token)
    if channel is None:
        raise CommandError(f"Unable to find channel '{token}'")
    return channel.id


def _resolve_owner(svc: MattermostApiService, token: str | None) -> User | None:
    if not token:
        return None
    owner = resolve_user(svc, token)
    if owner is None:
        raise CommandError(f"unable to find owner user: {token}")
    return owner


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------

def _all_teams(svc: MattermostApiService) -> list[Team]:
    return [team for page in iter_pages(svc.get_all_teams) for team in page]


def _all_incoming(svc: MattermostApiService, team_id: str) -> list[IncomingWebhook]:
    return [
        hook
        for page in iter_pages(lambda p, n: svc.get_incoming_webhooks_for_team(team_id, p, n))
        for hook in page
    ]


def _all_outgoing(svc: MattermostApiService, team_id: str) -> list[OutgoingWebhook]:
    return [
        hook
        for page in iter_pages(lambda p, n: svc.get_outgoing_webhooks_for_team(team_id, p, n))
        for hook in page
    ]


def _lookup_team(svc: MattermostApiService, token: str) -> Team | None:
    try:
        return resolve_team(svc, token)
    except requests.RequestException as exc:
        logger.debug("Lookup of team '%s' failed: %s", token, exc)
        return None


def cmd_webhook_list(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """List incoming and outgoing webhooks per team (all teams by default)."""
    tokens = list(getattr(args, "teams", None) or [])
    if tokens:
        targets = [(token, _lookup_team(svc, token)) for token in tokens]
    else:
        targets = [(team.name, team) for team in _all_teams(svc)]

    for token, team in targets:
        if team is None:
            printer.print_error(f"Unable to find team '{token}'")
            continue

        incoming, outgoing = read_both(
            lambda: _all_incoming(svc, team.id),
            lambda: _all_outgoing(svc, team.id),
        )

        if incoming.ok:
            for hook in incoming.data:
                printer.print_t("Incoming:\t{display_name} ({id})", hook)
        else:
            printer.print_error(f"Unable to list incoming webhooks for '{team.id}'")

        if outgoing.ok:
            for hook in outgoing.data:
                printer.print_t("Outgoing:\t{display_name} ({id})", hook)
        else:
            printer.print_error(f"Unable to list outgoing webhooks for '{team.id}'")


# ---------------------------------------------------------------------------
# show / delete
# ---------------------------------------------------------------------------

def _find_webhook(svc: MattermostApiService, hook_id: str) -> IncomingWebhook | OutgoingWebhook:
    for kind, lookup in (
        ("incoming", svc.get_incoming_webhook),
        ("outgoing", svc.get_outgoing_webhook),
    ):
        try:
            return lookup(hook_id)
        except ApiError as exc:
            logger.debug("No %s webhook '%s': %s", kind, hook_id, exc)
    raise CommandError(f"Webhook with id '{hook_id}' not found")


def cmd_webhook_show(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Show an incoming or outgoing webhook."""
    printer.set_single(True)
    printer.print(_find_webhook(svc, args.webhook_id))


def cmd_webhook_delete(svc: MattermostApiService, args: argparse.Namespace, printer: Printer) -> None:
    """Delete an incoming or outgoing webhook."""
    printer.set_single(True)
    hook = _find_webhook(svc, args.webhook_id)
    try:
        if isinstance(hook, IncomingWebhook):
            svc.delete_incoming_webhook(hook.id)
        else:
            svc.delete_outgoing_webhook(hook.id)
    except ApiError as exc:
        raise CommandError(f"Unable to delete webhook '{args.webhook_id}': {exc}") from exc

    printer.print_t("Webhook {id} successfully deleted", hook)


# ---------------------------------------------------------------------------
# incoming
# ---------------------------------------------------------------------------

def cmd_webhook_create_incoming(
    svc: MattermostApiService, args: argparse.Namespace, printer: Printer
) -> None:
    """Create an incoming webhook posting into a channel."""
    printer.set_single(True)

    channel_id = _resolve_channel_id(svc, args.channel)
    user = resolve_user(svc, args.user)
    if user is None:
        raise CommandError(f"Unable to find user '{args.user}'")
    owner = _resolve_owner(svc, args.owner)

    hook = IncomingWebhook(
        channel_id=channel_id,
        display_name=args.display_name or "",
        description=args.description or "",
        icon_url=args.icon or "",
        channel_locked=bool(args.lock_to_channel),
        username=user.username,
        user_id=owner.id if owner else "",
    )
    try:
        created = svc.create_incoming_webhook(hook)
    except ApiError as exc:
        raise CommandError(f"Unable to create webhook: {exc}") from exc

    printer.print_t(CREATED_TEMPLATE, created)


def cmd_webhook_modify_incoming(
    svc: MattermostApiService, args: argparse.Namespace, printer: Printer
) -> None:
    """Change only the incoming webhook attributes whose flags were given."""
    printer.set_single(True)

    try:
        old_hook = svc.get_incoming_webhook(args.webhook_id)
    except ApiError as exc:
        raise CommandError(f"Unable to find webhook '{args.webhook_id}'") from exc

    patch = build_patch(args, INCOMING_PATCH_FIELDS)
    if is_flag_set(args, "channel"):
        patch["channel_id"] = _resolve_channel_id(svc, args.channel)

    try:
        new_hook = svc.update_incoming_webhook(dataclasses.replace(old_hook, **patch))
    except ApiError as exc:
        raise CommandError(f"Unable to modify incoming webhook: {exc}") from exc

    printer.print_t("Webhook {id} successfully updated", new_hook)


# ---------------------------------------------------------------------------
# outgoing
# ---------------------------------------------------------------------------

def cmd_webhook_create_outgoing(
    svc: MattermostApiService, args: argparse.Namespace, printer: Printer
) -> None:
    """Create an outgoing webhook fired by trigger words."""
    printer.set_single(True)

    team = resolve_team(svc, args.team)
    if team is None:
        raise CommandError(f"Unable to find team: {args.team}")
    user = resolve_user(svc, args.user)
    if user is None:
        raise CommandError(f"Unable to find user: {args.user}")
    owner = _resolve_owner(svc, args.owner)

    hook = OutgoingWebhook(
        team_id=team.id,
        username=user.username,
        trigger_words=list(args.trigger_words or []),
        trigger_when=parse_trigger_when(args.trigger_when or "exact"),
        callback_urls=list(args.urls or []),
        display_name=args.display_name,
        description=args.description or "",
        content_type=args.content_type or "",
        icon_url=args.icon or "",
        creator_id=owner.id if owner else "",
    )
    if args.channel:
        hook.channel_id = _resolve_channel_id(svc, args.channel)

    try:
        created = svc.create_outgoing_webhook(hook)
    except ApiError as exc:
        raise CommandError(f"Unable to create outgoing webhook: {exc}") from exc

    printer.print_t(CREATED_TEMPLATE, created)


def cmd_webhook_modify_outgoing(
    svc: MattermostApiService, args: argparse.Namespace, printer: Printer
) -> None:
    """Change only the outgoing webhook attributes whose flags were given."""
    printer.set_single(True)

    try:
        old_hook = svc.get_outgoing_webhook(args.webhook_id)
    except ApiError as exc:
        raise CommandError(f"unable to find webhook '{args.webhook_id}'") from exc

    patch = build_patch(
        args,
        OUTGOING_PATCH_FIELDS + [PatchField("trigger_when", "trigger_when", parse_trigger_when)],
    )
    if is_flag_set(args, "channel"):
        patch["channel_id"] = _resolve_channel_id(svc, args.channel)

    try:
        new_hook = svc.update_outgoing_webhook(dataclasses.replace(old_hook, **patch))
    except ApiError as exc:
        raise CommandError(f"Unable to modify outgoing webhook: {exc}") from exc

    printer.print_t("Webhook {id} successfully updated", new_hook)
