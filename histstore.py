"""
histstore.py - Shell history files, favorites store and command injection

Each shell's history file is parsed into entry *blocks* (a header line such as
a timestamp, plus the command lines it owns). The history view only ever sees
the decoded command strings; the blocks are kept so that rewriting the file
after a deletion preserves every surviving entry byte for byte, timestamps
included.
"""

from __future__ import annotations

import fcntl
import re
import termios
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Sequence

SUPPORTED_SHELLS = ("bash", "zsh")

BASH_TIMESTAMP_RE = re.compile(r"^#\d+$")
ZSH_HISTORY_ENTRY_RE = re.compile(r"^: \d+:\d+;")

ZSH_META = 0x83
ZSH_MARKER = 0xA2

BASH_CONFIG = """\
# append new history items to .bash_history
shopt -s histappend
# don't put duplicate lines or lines starting with space in the history
HISTCONTROL=ignorespace
# increase history file size
HISTFILESIZE=10000
# increase history size
HISTSIZE=${HISTFILESIZE}
# sync entries in memory with .bash_history, and vice-versa
export PROMPT_COMMAND="history -a; history -n; ${PROMPT_COMMAND}"
# bind histpick to CTRL + r
if [[ $- =~ .*i.* ]]; then bind '"\\C-r": "\\C-a histpick -- \\C-j"'; fi
"""

ZSH_CONFIG = """\
# don't put lines starting with space in the history
setopt histignorespace
# write commands to the history file as soon as they are entered
setopt incappendhistory
# bind histpick to CTRL + r
bindkey -s "\\C-r" "\\C-a histpick -- \\C-j"
"""

SHELL_CONFIGS = {"bash": BASH_CONFIG, "zsh": ZSH_CONFIG}


# ============================================================================
# PLAIN LIST STORE
# ============================================================================


def read_list(path: Path) -> list[str]:
    """→ File I/O: Reads newline-separated entries, creating the file when absent"""
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
        return []
    text = path.read_text(encoding="utf-8", errors="surrogateescape")
    return [line for line in text.splitlines() if line]


def write_list(path: Path, entries: Sequence[str]) -> None:
    """→ File I/O: Writes entries one per line"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", errors="surrogateescape") as f:
        f.write("".join(f"{entry}\n" for entry in entries))


# ============================================================================
# ZSH METAFICATION
# ============================================================================


def unmetafy(data: bytes) -> bytes:
    """
    Undoes zsh's history encoding: every Meta byte (0x83) is dropped and the
    byte following it is XOR-ed with 32.
    """
    out = bytearray()
    it = iter(data)
    for byte in it:
        if byte == ZSH_META:
            following = next(it, None)
            if following is None:
                break
            out.append(following ^ 32)
        else:
            out.append(byte)
    return bytes(out)


def metafy(data: bytes) -> bytes:
    """Inverse of `unmetafy` for the bytes zsh escapes (NUL and 0x83-0xA2)."""
    out = bytearray()
    for byte in data:
        if byte == 0 or ZSH_META <= byte <= ZSH_MARKER:
            out.append(ZSH_META)
            out.append(byte ^ 32)
        else:
            out.append(byte)
    return bytes(out)


# ============================================================================
# SHELL HISTORY FILES
# ============================================================================


def parse_history_blocks(lines: list[str], header_re: re.Pattern[str]) -> Iterator[list[str]]:
    """→ Parsing: Groups lines into entry blocks, a header line owning the lines after it"""
    i = 0
    num_lines = len(lines)
    while i < num_lines:
        if header_re.match(lines[i]):
            j = i + 1
            while j < num_lines and not header_re.match(lines[j]):
                j += 1
            yield lines[i:j]
            i = j
        else:
            yield [lines[i]]
            i += 1


class ShellHistory(ABC):
    """A shell's history file, read as entry blocks and decoded into commands."""

    header_re: re.Pattern[str]

    def __init__(self, path: Path):
        self.path = path
        self.blocks: list[list[str]] = []

    @abstractmethod
    def _read_lines(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def _write_lines(self, lines: list[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def command_of(self, block: list[str]) -> str:
        """Returns the command text a block stands for."""
        raise NotImplementedError

    def read(self) -> list[str]:
        """Returns the commands in file order; a missing file is an empty history."""
        try:
            lines = self._read_lines()
        except FileNotFoundError:
            lines = []
        self.blocks = list(parse_history_blocks(lines, self.header_re))
        return [cmd for cmd in map(self.command_of, self.blocks) if cmd.strip()]

    def write(self, entries: Sequence[str]) -> None:
        """
        Rewrites the file, keeping only blocks whose command is in `entries`.
        Blank blocks, which `read()` never hands out, are kept as they were.
        """
        keep = set(entries)

        def survives(block: list[str]) -> bool:
            command = self.command_of(block)
            return command in keep or not command.strip()

        if self.blocks:
            blocks = [block for block in self.blocks if survives(block)]
        else:
            blocks = [[entry] for entry in entries]
        self._write_lines([line for block in blocks for line in block])
        self.blocks = blocks


class BashHistory(ShellHistory):
    header_re = BASH_TIMESTAMP_RE

    def _read_lines(self) -> list[str]:
        return self.path.read_text(encoding="utf-8", errors="surrogateescape").splitlines()

    def _write_lines(self, lines: list[str]) -> None:
        with self.path.open("w", encoding="utf-8", errors="surrogateescape") as f:
            f.write("".join(f"{line}\n" for line in lines))

    def command_of(self, block: list[str]) -> str:
        if self.header_re.match(block[0]):
            return "\n".join(block[1:])
        return "\n".join(block)


class ZshHistory(ShellHistory):
    header_re = ZSH_HISTORY_ENTRY_RE

    def _read_lines(self) -> list[str]:
        data = unmetafy(self.path.read_bytes())
        return data.decode("utf-8", errors="surrogateescape").splitlines()

    def _write_lines(self, lines: list[str]) -> None:
        text = "".join(f"{line}\n" for line in lines)
        self.path.write_bytes(metafy(text.encode("utf-8", errors="surrogateescape")))

    def command_of(self, block: list[str]) -> str:
        first_line = block[0]
        if self.header_re.match(first_line):
            command_part = first_line.split(";", 1)[1]
            return "\n".join([command_part] + block[1:])
        return "\n".join(block)


HISTORY_CLASSES: dict[str, type[ShellHistory]] = {
    "bash": BashHistory,
    "zsh": ZshHistory,
}


class HistoryStore:
    """
    The history view's source: one shell history file plus a favorites list.
    """

    def __init__(self, history: ShellHistory, favorites_path: Path):
        self.history = history
        self.favorites_path = favorites_path

    @classmethod
    def for_shell(cls, shell: str, history_path: Path, favorites_path: Path) -> HistoryStore:
        return cls(HISTORY_CLASSES[shell](history_path), favorites_path)

    def read_history(self) -> list[str]:
        return self.history.read()

    def write_history(self, entries: Sequence[str]) -> None:
        self.history.write(entries)

    def read_favorites(self) -> list[str]:
        return read_list(self.favorites_path)

    def write_favorites(self, entries: Sequence[str]) -> None:
        write_list(self.favorites_path, entries)


# ============================================================================
# SHELL INTEGRATION
# ============================================================================


def inject(text: str, fd: int = 0) -> None:
    """
    Pushes `text` into the terminal's input queue so the shell reads it as if
    typed. Raises OSError where the kernel refuses TIOCSTI.
    """
    for byte in text.encode("utf-8", errors="surrogateescape"):
        fcntl.ioctl(fd, termios.TIOCSTI, bytes([byte]))


def shell_config(shell: str) -> str:
    return SHELL_CONFIGS[shell]
