import io
import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "src"))

import terminal
from frame_reader import Geometry
from terminal import (
    DEFAULT_GEOMETRY,
    ENTER_ALT_SCREEN,
    EXIT_ALT_SCREEN,
    HIDE_CURSOR,
    SHOW_CURSOR,
    TerminalSession,
    resolve_geometry,
    wait_for_keypress,
)


class GeometryResolutionTests(unittest.TestCase):
    def test_reserves_status_rows(self):
        with patch.object(terminal.shutil, "get_terminal_size", return_value=os.terminal_size((120, 40))):
            self.assertEqual(resolve_geometry(), Geometry(120, 38))

    def test_falls_back_without_terminal(self):
        with patch.object(terminal.shutil, "get_terminal_size", return_value=os.terminal_size((0, 0))):
            self.assertEqual(resolve_geometry(), DEFAULT_GEOMETRY)

    def test_falls_back_on_query_error(self):
        with patch.object(terminal.shutil, "get_terminal_size", side_effect=OSError("not a tty")):
            self.assertEqual(resolve_geometry(), Geometry(160, 50))

    def test_tiny_terminal_keeps_one_row(self):
        with patch.object(terminal.shutil, "get_terminal_size", return_value=os.terminal_size((10, 2))):
            self.assertEqual(resolve_geometry(), Geometry(10, 1))


class TerminalSessionTests(unittest.TestCase):
    def test_modes_are_paired(self):
        out = io.StringIO()
        with TerminalSession(out):
            self.assertEqual(out.getvalue(), ENTER_ALT_SCREEN + HIDE_CURSOR)
        self.assertTrue(out.getvalue().endswith(EXIT_ALT_SCREEN + SHOW_CURSOR + "\n"))

    def test_restores_on_error(self):
        out = io.StringIO()
        with self.assertRaises(RuntimeError):
            with TerminalSession(out):
                raise RuntimeError("boom")
        self.assertIn(EXIT_ALT_SCREEN, out.getvalue())

    def test_restore_runs_once(self):
        out = io.StringIO()
        with TerminalSession(out) as session:
            session.restore()
        self.assertEqual(out.getvalue().count(EXIT_ALT_SCREEN), 1)


class KeypressTests(unittest.TestCase):
    def test_non_interactive_stdin_returns(self):
        wait_for_keypress(io.StringIO("x"))

    @unittest.skipUnless(os.name == "posix", "needs termios")
    def test_typeahead_is_discarded_before_waiting(self):
        import termios
        import tty

        calls = []

        class TtyInput(io.StringIO):
            def isatty(self):
                return True

            def fileno(self):
                return 0

            def read(self, size=-1):
                calls.append("read")
                return super().read(size)

        stdin = TtyInput("q")
        with patch.object(termios, "tcgetattr", return_value=["saved"]), \
                patch.object(termios, "tcsetattr") as tcsetattr, \
                patch.object(termios, "tcflush", side_effect=lambda fd, queue: calls.append(("flush", queue))), \
                patch.object(tty, "setcbreak"), \
                patch.object(terminal.select, "select", side_effect=lambda *a: calls.append("select")):
            wait_for_keypress(stdin)
        self.assertEqual(calls, [("flush", termios.TCIFLUSH), "select", "read"])
        tcsetattr.assert_called_once_with(stdin, termios.TCSADRAIN, ["saved"])


if __name__ == "__main__":
    unittest.main()
