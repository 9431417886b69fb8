import sys
from typing import List

from .cli import app


def main(argv: List[str] | None = None):
    if argv is None:
        argv = sys.argv[1:]

    # Handle version early so it works before settings and logging are set up
    if argv and argv[0] in {"--version", "-V"}:
        from . import __version__
        print(__version__)
        return

    return app(args=argv, prog_name="launchagents")
