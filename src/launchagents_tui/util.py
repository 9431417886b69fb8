import json
import sys


def is_tty() -> bool:
    try:
        return sys.stdin.isatty() and sys.stdout.isatty()
    except Exception:
        return False


def json_line(obj: dict) -> str:
    return json.dumps(obj, separators=(",", ":"))
