"""Terminal geometry, screen-mode handling and key waits."""

import select
import shutil
import sys

from frame_reader import Geometry

DEFAULT_GEOMETRY = Geometry(160, 50)
STATUS_ROWS = 2

ENTER_ALT_SCREEN = "\033[?1049h"
EXIT_ALT_SCREEN = "\033[?1049l"
HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"
CURSOR_HOME = "\033[H"


def resolve_geometry(fallback=DEFAULT_GEOMETRY, reserved_rows=STATUS_ROWS):
    """Current terminal size minus the status rows, or ``fallback``."""
    try:
        columns, lines = shutil.get_terminal_size(fallback=(0, 0))
    except (OSError, ValueError):
        return fallback
    if columns <= 0 or lines <= 0:
        return fallback
    return Geometry(columns, max(1, lines - reserved_rows))


class TerminalSession:
    """Alternate screen with a hidden cursor for the duration of a ``with`` block.

    Leaving the block restores the previous screen and cursor whether it
    exits normally, through an exception or through Ctrl+C.
    """

    def __init__(self, out=None):
        self.out = out if out is not None else sys.stdout
        self.active = False

    def __enter__(self):
        self.out.write(ENTER_ALT_SCREEN + HIDE_CURSOR)
        self.out.flush()
        self.active = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.restore()
        return False

    def restore(self):
        if not self.active:
            return
        self.active = False
        self.out.write(EXIT_ALT_SCREEN + SHOW_CURSOR + "\n")
        self.out.flush()


def wait_for_keypress(stdin=None):
    """Block until a key is pressed; returns immediately without a terminal."""
    stdin = stdin if stdin is not None else sys.stdin
    try:
        interactive = stdin.isatty()
    except (AttributeError, ValueError):
        interactive = False
    if not interactive:
        return
    try:
        import termios
        import tty
    except ImportError:
        input()
        return
    old_settings = termios.tcgetattr(stdin)
    tty.setcbreak(stdin.fileno())
    try:
        # drop keys typed during playback so they do not count as the answer
        termios.tcflush(stdin, termios.TCIFLUSH)
        select.select([stdin], [], [], None)
        stdin.read(1)
    finally:
        termios.tcsetattr(stdin, termios.TCSADRAIN, old_settings)
