import sys

import colored


class TerminalPrinter:
    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout

    def stylize(self, msg: str, *styles: str) -> str:
        return "".join(styles) + msg + colored.attr("reset")

    def loudln(self, msg):
        msg = self.stylize(msg, colored.bg("magenta"), colored.fg("white"))
        self.write_line(msg)

    def headingln(self, msg):
        msg = self.stylize(msg, colored.attr("bold"))
        self.write_line(msg)

    def write_line(self, msg):
        self.write("%s\n" % msg)

    def write(self, msg):
        self.stream.write(msg)
        self.stream.flush()
