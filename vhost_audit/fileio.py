from __future__ import annotations

import sys
from pathlib import Path

STDIO = "-"


def read_text(path: str | Path) -> str:
    """Read a whole file, or stdin when ``path`` is ``-``.

    Bytes are decoded without newline translation, and undecodable bytes
    survive as surrogates, so the text encodes back to the exact input.
    """
    if str(path) == STDIO:
        raw = sys.stdin.buffer.read()
    else:
        raw = Path(path).read_bytes()
    return raw.decode("utf-8", errors="surrogateescape")


def write_text(path: str | Path, content: str) -> None:
    if str(path) == STDIO:
        sys.stdout.write(content)
        sys.stdout.flush()
        return
    Path(path).write_text(content, encoding="utf-8")
