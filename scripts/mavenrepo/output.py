"""User-facing console output with three verbosity levels.

An ``Output`` is created once by the CLI and passed explicitly to every
component that reports progress, so tests can capture it with a StringIO.
"""

import sys
from typing import Optional, TextIO


class Output:
    """Prints messages according to a verbosity level.

    Levels:
        ``out``: always printed.
        ``info``: printed with ``-v``.
        ``verbose``: printed with ``-vv``.

    Args:
        verbosity: Number of ``-v`` flags given on the command line.
        stream: Destination stream; defaults to ``sys.stdout`` at print time.
    """

    def __init__(self, verbosity: int = 0, stream: Optional[TextIO] = None):
        self.verbosity = verbosity
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def out(self, msg: str, newline: bool = True) -> None:
        print(msg, end="\n" if newline else "", file=self.stream, flush=True)

    def info(self, msg: str, newline: bool = True) -> None:
        if self.verbosity > 0:
            self.out(msg, newline)

    def verbose(self, msg: str, newline: bool = True) -> None:
        if self.verbosity > 1:
            self.out(msg, newline)
