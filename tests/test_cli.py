import unittest
from unittest.mock import AsyncMock, patch

from lockfix.cli import build_parser, main
from lockfix.errors import InstallError, NoLockfileError


@patch("lockfix.cli.configure_logging")
class TestCli(unittest.TestCase):

    def test_parser_defaults(self, _):
        args = build_parser().parse_args([])

        self.assertEqual(args.subcommand, [])
        self.assertEqual(args.directory, ".")
        self.assertIsNone(args.dry_run)
        self.assertFalse(args.tui)

    @patch("lockfix.cli.audit_cmd", new_callable=AsyncMock, return_value=1)
    def test_report_mode_status(self, mock_audit, _):
        self.assertEqual(main(["-C", "/project"]), 1)

        args, settings, where = mock_audit.await_args.args
        self.assertEqual(args, [])
        self.assertEqual(where, "/project")
        self.assertFalse(settings.dry_run)

    @patch("lockfix.cli.audit_cmd", new_callable=AsyncMock, return_value=0)
    def test_fix_flags_override_settings(self, mock_audit, _):
        status = main(["fix", "--dry-run", "--registry", "https://registry.example.test/"])

        self.assertEqual(status, 0)
        args, settings, _where = mock_audit.await_args.args
        self.assertEqual(args, ["fix"])
        self.assertTrue(settings.dry_run)
        self.assertEqual(settings.registry, "https://registry.example.test/")

    @patch("lockfix.cli.audit_cmd", new_callable=AsyncMock, side_effect=NoLockfileError())
    def test_errors_exit_nonzero(self, mock_audit, _):
        with self.assertLogs(level="ERROR") as logs:
            status = main([])

        self.assertEqual(status, 1)
        self.assertIn("EAUDITNOLOCK", logs.output[0])

    @patch("lockfix.cli.audit_cmd", new_callable=AsyncMock, side_effect=InstallError(3))
    def test_install_failure_exits_with_npm_status(self, mock_audit, _):
        with self.assertLogs(level="ERROR") as logs:
            status = main(["fix"])

        self.assertEqual(status, 3)
        self.assertIn("EINSTALL", logs.output[0])
