"""Tests for argument parsing, dispatch and the output printer."""
from __future__ import annotations

import io
import json
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).resolve().parent))
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from rich.console import Console

import cli
from fakes import make_printer, make_service
from MattermostHelper import ApiError, Bot, Team
from mmctl.errors import CommandError
from mmctl.printer import Printer, PrintedLine


class TestParser(unittest.TestCase):

    def setUp(self):
        self.parser, self.groups = cli.build_parser()

    def test_every_command_is_dispatchable(self):
        self.assertEqual(set(self.groups), {"bot", "team", "webhook"})
        self.assertEqual(len(cli.COMMANDS), 23)

    def test_unset_flags_default_to_none(self):
        args = self.parser.parse_args(["bot", "update", "mybot", "--description", ""])
        self.assertEqual(args.bot, "mybot")
        self.assertEqual(args.description, "")
        self.assertIsNone(args.username)
        self.assertIsNone(args.display_name)

    def test_lock_to_channel_is_tri_state(self):
        unset = self.parser.parse_args(["webhook", "modify-incoming", "h1"])
        off = self.parser.parse_args(["webhook", "modify-incoming", "h1", "--no-lock-to-channel"])
        on = self.parser.parse_args(["webhook", "modify-incoming", "h1", "--lock-to-channel"])
        self.assertIsNone(unset.lock_to_channel)
        self.assertIs(off.lock_to_channel, False)
        self.assertIs(on.lock_to_channel, True)

    def test_repeatable_outgoing_flags(self):
        args = self.parser.parse_args([
            "webhook", "create-outgoing", "--team", "dev", "--user", "bot",
            "--display-name", "ci", "--trigger-word", "build", "--trigger-word", "test",
            "--url", "https://a", "--url", "https://b",
        ])
        self.assertEqual(args.trigger_words, ["build", "test"])
        self.assertEqual(args.urls, ["https://a", "https://b"])
        self.assertEqual(args.trigger_when, "exact")

    def test_rename_underscore_alias(self):
        args = self.parser.parse_args(["team", "rename", "old", "-", "--display_name", "New"])
        self.assertEqual((args.team, args.new_name, args.display_name), ("old", "-", "New"))

    def test_bot_list_modes_are_exclusive(self):
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                self.parser.parse_args(["bot", "list", "--all", "--orphaned"])

    def test_modify_requires_privacy_flag(self):
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                self.parser.parse_args(["team", "modify", "dev"])


class TestRunCommand(unittest.TestCase):

    def test_success_returns_zero(self):
        printer = make_printer()

        def handler(_svc, _args, p):
            p.print_error("one item failed")

        self.assertEqual(cli.run_command(handler, make_service(), None, printer), 0)
        self.assertEqual(printer.get_error_lines(), [])

    def test_fatal_errors_return_one(self):
        for exc in (CommandError("bad"), ApiError("denied", status_code=403)):
            with self.subTest(exc=type(exc).__name__):
                def handler(_svc, _args, _p, exc=exc):
                    raise exc

                with patch.object(cli, "err_console") as console:
                    code = cli.run_command(handler, make_service(), None, make_printer())
                self.assertEqual(code, 1)
                self.assertIn("Error:", console.print.call_args[0][0])

    def test_main_without_command_prints_help(self):
        with patch("sys.stdout", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as ctx:
                cli.main([])
        self.assertEqual(ctx.exception.code, 2)

    @patch("cli.create_service_from_env")
    def test_main_dispatches(self, mock_factory):
        svc = make_service()
        svc.get_all_teams.return_value = [Team(name="alpha")]
        mock_factory.return_value = svc

        with patch("cli.Printer") as printer_cls, patch.object(cli, "err_console", MagicMock()):
            printer_cls.return_value = make_printer()
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["--env", "test.env", "team", "list"])

        self.assertEqual(ctx.exception.code, 0)
        mock_factory.assert_called_once_with("test.env")
        svc.get_all_teams.assert_called_once_with(0, 200)

    @patch("cli.create_service_from_env", side_effect=ValueError("MMCTL_URL is not set"))
    def test_main_auth_failure(self, _factory):
        with patch.object(cli, "err_console", MagicMock()):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["team", "list"])
        self.assertEqual(ctx.exception.code, 1)


class TestPrinter(unittest.TestCase):

    def _printer(self, fmt="plain"):
        out, err = io.StringIO(), io.StringIO()
        printer = Printer(
            console=Console(file=out, width=200),
            err_console=Console(file=err, width=200),
            fmt=fmt,
        )
        return printer, out, err

    def test_render_template_with_extra_fields(self):
        line = PrintedLine(Bot(user_id="b1", username="bot"), "{username} -> {owner}", {"owner": "x"})
        self.assertEqual(Printer.render(line), "bot -> x")

    def test_plain_flush(self):
        printer, out, err = self._printer()
        printer.print_t("{name} [archived]", Team(name="old"))
        printer.print_error("Unable to find team 'x'")
        printer.flush()
        self.assertEqual(out.getvalue(), "old [archived]\n")
        self.assertIn("Unable to find team 'x'", err.getvalue())
        self.assertEqual(printer.get_lines(), [])

    def test_json_single_object(self):
        printer, out, _ = self._printer("json")
        printer.set_single(True)
        printer.print_t("ignored {name}", Team(id="t1", name="dev"))
        printer.flush()
        data = json.loads(out.getvalue())
        self.assertEqual(data["name"], "dev")
        self.assertNotIn("raw", data)

    def test_json_list(self):
        printer, out, _ = self._printer("json")
        printer.print_t("{name}", Team(name="a"))
        printer.print_t("{name}", Team(name="b"))
        printer.flush()
        self.assertEqual([t["name"] for t in json.loads(out.getvalue())], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
