"""Tests for the bot subcommands."""
from __future__ import annotations

import sys
import unittest
from pathlib import Path

import requests

sys.path.insert(0, str(Path(__file__).resolve().parent))
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from fakes import lookup_table, make_printer, make_service, namespace
from MattermostHelper import ApiError, Bot, User
from mmctl.bot_commands import (
    bot_list_fields,
    cmd_bot_assign,
    cmd_bot_create,
    cmd_bot_disable,
    cmd_bot_enable,
    cmd_bot_list,
    cmd_bot_update,
)
from mmctl.errors import CommandError

BOT_USER = User(id="b" * 26, username="validuser")
OWNER = User(id="o" * 26, username="owner")


class TestBotEnableDisable(unittest.TestCase):
    """Bulk enable/disable reports each token independently."""

    def setUp(self):
        self.svc = make_service()
        self.svc.get_user_by_username.side_effect = lookup_table({"validuser": BOT_USER})
        self.printer = make_printer()

    def test_enable_valid_and_missing(self):
        self.svc.enable_bot.return_value = Bot(user_id=BOT_USER.id, username="validuser")

        cmd_bot_enable(self.svc, namespace(bots=["validuser", "missinguser"]), self.printer)

        self.assertEqual(len(self.printer.get_lines()), 1)
        self.assertEqual(self.printer.get_lines()[0].username, "validuser")
        self.assertEqual(self.printer.get_error_lines(), ["can't find user 'missinguser'"])
        self.assertEqual(
            self.printer.rendered_lines(),
            [f"Enabled bot {BOT_USER.id} (validuser)"],
        )
        self.svc.enable_bot.assert_called_once_with(BOT_USER.id)

    def test_missing_first_still_processes_rest(self):
        self.svc.disable_bot.return_value = Bot(user_id=BOT_USER.id, username="validuser")

        cmd_bot_disable(self.svc, namespace(bots=["missinguser", "validuser"]), self.printer)

        self.assertEqual(self.printer.get_error_lines(), ["can't find user 'missinguser'"])
        self.assertEqual(
            self.printer.rendered_lines(),
            [f"Disabled bot {BOT_USER.id} (validuser)"],
        )

    def test_connection_error_on_lookup_does_not_stop_later_bots(self):
        def by_username(name):
            if name == "flaky":
                raise requests.ConnectionError("reset")
            return BOT_USER

        self.svc.get_user_by_username.side_effect = by_username
        self.svc.enable_bot.return_value = Bot(user_id=BOT_USER.id, username="validuser")

        cmd_bot_enable(self.svc, namespace(bots=["flaky", "validuser"]), self.printer)

        self.svc.enable_bot.assert_called_once_with(BOT_USER.id)
        self.assertEqual(self.printer.get_error_lines(), ["can't find user 'flaky'"])
        self.assertEqual(
            self.printer.rendered_lines(),
            [f"Enabled bot {BOT_USER.id} (validuser)"],
        )

    def test_remote_failure_is_reported_with_token(self):
        self.svc.enable_bot.side_effect = ApiError("You do not have the appropriate permissions.")

        cmd_bot_enable(self.svc, namespace(bots=["validuser"]), self.printer)

        self.assertEqual(self.printer.get_lines(), [])
        self.assertEqual(
            self.printer.get_error_lines(),
            ["could not enable bot 'validuser': You do not have the appropriate permissions."],
        )


class TestBotUpdate(unittest.TestCase):

    def setUp(self):
        self.svc = make_service()
        self.svc.get_user_by_username.side_effect = lookup_table({"validuser": BOT_USER})
        self.svc.patch_bot.return_value = Bot(user_id=BOT_USER.id, username="renamed")
        self.printer = make_printer()

    def test_only_set_flags_are_patched(self):
        args = namespace(bot="validuser", username="renamed", display_name=None, description=None)

        cmd_bot_update(self.svc, args, self.printer)

        self.svc.patch_bot.assert_called_once_with(BOT_USER.id, {"username": "renamed"})
        self.assertEqual(
            self.printer.rendered_lines(),
            [f"Updated bot {BOT_USER.id} (renamed)"],
        )

    def test_explicit_empty_description_is_sent(self):
        args = namespace(bot="validuser", username=None, display_name=None, description="")

        cmd_bot_update(self.svc, args, self.printer)

        self.svc.patch_bot.assert_called_once_with(BOT_USER.id, {"description": ""})

    def test_unknown_bot_is_fatal(self):
        args = namespace(bot="ghost", username="x", display_name=None, description=None)
        with self.assertRaises(CommandError) as ctx:
            cmd_bot_update(self.svc, args, self.printer)
        self.assertEqual(str(ctx.exception), "unable to find user 'ghost'")
        self.svc.patch_bot.assert_not_called()


class TestBotCreateAssign(unittest.TestCase):

    def test_create(self):
        svc = make_service()
        svc.create_bot.return_value = Bot(user_id="newbotid", username="testbot")
        printer = make_printer()

        cmd_bot_create(svc, namespace(username="testbot", display_name="Test", description=None),
                       printer)

        sent = svc.create_bot.call_args[0][0]
        self.assertEqual(sent.to_create_payload(), {"username": "testbot", "display_name": "Test"})
        self.assertEqual(printer.rendered_lines(), ["Created bot newbotid"])

    def test_create_failure(self):
        svc = make_service()
        svc.create_bot.side_effect = ApiError("username taken")
        with self.assertRaises(CommandError) as ctx:
            cmd_bot_create(svc, namespace(username="x", display_name=None, description=None),
                           make_printer())
        self.assertEqual(str(ctx.exception), "could not create bot: username taken")

    def test_assign(self):
        svc = make_service()
        svc.get_user_by_username.side_effect = lookup_table({"validuser": BOT_USER, "owner": OWNER})
        svc.assign_bot.return_value = Bot(user_id=BOT_USER.id, username="validuser",
                                          owner_id=OWNER.id)
        printer = make_printer()

        cmd_bot_assign(svc, namespace(bot="validuser", owner="owner"), printer)

        svc.assign_bot.assert_called_once_with(BOT_USER.id, OWNER.id)
        self.assertEqual(
            printer.rendered_lines(),
            [f"The bot {BOT_USER.id} (validuser) now belongs to the user owner"],
        )

    def test_assign_unknown_owner(self):
        svc = make_service()
        svc.get_user_by_username.side_effect = lookup_table({"validuser": BOT_USER})
        with self.assertRaises(CommandError):
            cmd_bot_assign(svc, namespace(bot="validuser", owner="nobody"), make_printer())
        svc.assign_bot.assert_not_called()


class TestBotList(unittest.TestCase):
    """The orphaned marker is computed from each bot's own owner."""

    def test_orphaned_is_per_bot(self):
        alive = User(id="alive", username="alice", delete_at=0)
        gone = User(id="gone", username="bob", delete_at=1700000000000)
        bots = [
            Bot(user_id="bot1", username="one", owner_id="gone"),
            Bot(user_id="bot2", username="two", owner_id="alive", delete_at=5),
        ]
        svc = make_service()
        svc.get_bots.return_value = bots
        svc.get_users_by_ids.return_value = [alive, gone]
        printer = make_printer()

        cmd_bot_list(svc, namespace(all=False, orphaned=False), printer)

        self.assertEqual(
            printer.rendered_lines(),
            [
                "bot1: one (Owner by bob, Enabled, Orphaned)",
                "bot2: two (Owner by alice, Disabled)",
            ],
        )
        svc.get_users_by_ids.assert_called_once_with(["gone", "alive"])

    def test_mode_flags(self):
        svc = make_service()
        svc.get_bots.return_value = []
        cmd_bot_list(svc, namespace(all=True, orphaned=False), make_printer())
        svc.get_bots.assert_called_once_with(0, 200, include_deleted=True, only_orphaned=False)

        svc.get_bots.reset_mock()
        cmd_bot_list(svc, namespace(all=False, orphaned=True), make_printer())
        svc.get_bots.assert_called_once_with(0, 200, include_deleted=False, only_orphaned=True)
        svc.get_users_by_ids.assert_not_called()

    def test_missing_owner_counts_as_orphaned(self):
        fields = bot_list_fields(Bot(user_id="x", owner_id="ownerid"), None)
        self.assertEqual(fields["owner"], "ownerid")
        self.assertEqual(fields["orphaned"], ", Orphaned")

    def test_fetch_error_is_fatal(self):
        svc = make_service()
        svc.get_bots.side_effect = ApiError("server down", status_code=500)
        with self.assertRaises(CommandError):
            cmd_bot_list(svc, namespace(all=False, orphaned=False), make_printer())


if __name__ == "__main__":
    unittest.main()
