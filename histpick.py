#!/usr/bin/env python3
"""
histpick.py - Interactive shell history search

**What it does**

`histpick` opens a full-screen list of your bash or zsh history. Typing filters
the list, Ctrl-/ switches between the ranked, favorites and chronological
views, and Enter pushes the selected command into the shell's input buffer and
runs it (Tab only pushes it, so you can edit it first).

**How it is put together**

1.  **Store** (`histstore.py`): decodes the shell's history file and reads and
    writes the favorites list.
2.  **Model** (`histview.py`): ranks the history into views, filters the
    active view, and pages through it.
3.  **Session** (below): the transition table. Every key maps to one method,
    and each method runs to completion before the next key is read.
4.  **UI** (below): a Textual app that forwards keys to the session and
    redraws the whole frame after every transition. It never touches the
    model directly.

Keys
----
    type          filter               Backspace   widen the filter again
    Up/Down       move                 PgUp/PgDn   turn page
    Ctrl-/        switch view          Ctrl-E      regex on/off
    Ctrl-T        case sensitivity     Ctrl-F      add/remove favorite
    Del           delete all occurrences from history
    Enter         run                  Tab         paste only
    Esc           quit
"""

from __future__ import annotations

import argparse
import getpass
import os
import shutil
import socket
import sys
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console, Group
from rich.text import Text
from rich.theme import Theme
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Static

from histstore import SUPPORTED_SHELLS, HistoryStore, inject, shell_config
from histview import (
    RESERVED_ROWS,
    EmptySelectionError,
    HistoryModel,
    InvalidPatternError,
    LoadError,
    Pager,
    SearchState,
    View,
    match_spans,
)
from shell_lexer import displayable, highlight_command

# ============================================================================
# CONFIGURATION & CONSTANTS
# ============================================================================

CUSTOM_THEME = Theme({
    "info": "#61AFEF",
    "success": "#98C379",
    "warning": "#E5C07B",
    "error": "#E06C75",
})

console = Console(stderr=True, theme=CUSTOM_THEME)

HELP_LINE = "Type to filter, UP/DOWN move, ENTER/TAB select, DEL remove, ESC quit, C-f add/rm fav"

PROMPT_STYLE = "bold #fcfcfa"
HELP_STYLE = "#727072"
STATUS_BAR_STYLE = "#2d2a2e on #fcfcfa"
MESSAGE_STYLE = "bold #E5C07B"
DELETE_PROMPT_STYLE = "bold #fcfcfa on #c0392b"


class Config:
    """Paths and settings for one run"""

    def __init__(
        self,
        shell: str | None = None,
        history_file: str | None = None,
        environ: dict[str, str] | None = None,
    ):
        self._shell = shell
        self._history_file = history_file
        self.environ = os.environ if environ is None else environ

    @property
    def shell(self) -> str:
        """→ Shell name: explicit choice, else $SHELL, else bash"""
        if self._shell:
            return self._shell
        name = Path(self.environ.get("SHELL", "")).name
        return name if name in SUPPORTED_SHELLS else "bash"

    @property
    def home(self) -> Path:
        return Path(self.environ.get("HOME") or Path.home())

    @property
    def history_path(self) -> Path:
        """→ History file: --history-file, else $HISTFILE, else ~/.<shell>_history"""
        if self._history_file:
            return Path(self._history_file).expanduser()
        if histfile := self.environ.get("HISTFILE"):
            return Path(histfile).expanduser()
        return self.home / f".{self.shell}_history"

    @property
    def favorites_path(self) -> Path:
        config_home = self.environ.get("XDG_CONFIG_HOME")
        base = Path(config_home) if config_home else self.home / ".config"
        return base / "histpick" / f"{self.shell}_favorites"

    @property
    def prompt(self) -> str:
        return f"{getpass.getuser()}@{socket.gethostname()}$"


def _console_print(string="", *args, **kwargs) -> None:
    """→ Safe console printing with fallback"""
    try:
        console.print(string, *args, **kwargs)
    except Exception:
        kwargs_clean = {k: v for k, v in kwargs.items() if k not in ["sep", "file", "end", "flush"]}
        print(string, *args, file=sys.stderr, **kwargs_clean)


# ============================================================================
# SESSION (KEY → TRANSITION TABLE)
# ============================================================================


@dataclass
class Frame:
    """Everything the UI needs to draw one screen."""

    view: View
    rows: list[str]
    selected: int
    search_state: SearchState
    page_number: int
    page_count: int
    status: str = ""
    pending_delete: str | None = None
    favorites: set[str] = field(default_factory=set)
    spans: list[list[tuple[int, int]]] = field(default_factory=list)


class Session:
    """
    The interaction state machine. Owns the model and the pager, and maps each
    key to exactly one transition. Actions that need a selected entry raise
    `EmptySelectionError` when the page is empty; the UI ignores it.
    """

    def __init__(self, model: HistoryModel, rows: int):
        self.model = model
        self.pager = Pager.for_terminal(rows)
        self.status = ""
        self.pending_delete: str | None = None

    @property
    def entries(self) -> list[str]:
        return self.model.active_view_entries()

    def start(self, query: str = "") -> None:
        self.model.search_state.query = query
        self._search(restore=True)

    def _search(self, restore: bool = False) -> None:
        try:
            self.model.search(restore=restore)
        except InvalidPatternError:
            self.status = "invalid regex"
        else:
            self.status = ""
        self.pager.reset()

    def _selected(self) -> str:
        entry = self.pager.selected_entry(self.entries)
        if entry is None:
            raise EmptySelectionError("no entry under the cursor")
        return entry

    # --- Search ---

    def type_char(self, char: str) -> None:
        self.model.search_state.query += char
        self._search()

    def backspace(self) -> None:
        self.model.search_state.query = self.model.search_state.query[:-1]
        self._search(restore=True)

    def toggle_view(self) -> None:
        self.model.toggle_view()
        self.model.restore()
        self._search()

    def toggle_regex_mode(self) -> None:
        # Takes effect with the next keystroke; the list is not filtered again here
        self.model.toggle_regex_mode()
        self.pager.reset()

    def toggle_case(self) -> None:
        # Same as regex mode: applies from the next keystroke
        self.model.toggle_case()
        self.pager.reset()

    # --- Navigation ---

    def move(self, direction: int) -> None:
        self.pager.move_selected(self.entries, direction)

    def turn_page(self, direction: int) -> None:
        self.pager.turn_page(self.entries, direction)

    def resize(self, rows: int) -> None:
        self.pager.resize(rows, self.entries)

    # --- Actions on the selected entry ---

    def toggle_favorite(self) -> None:
        entry = self._selected()
        try:
            self.model.favorite_toggle(entry)
        except OSError as e:
            self.status = f"could not save favorites: {e}"
            return
        self.status = ""
        if self.model.view is View.FAVORITES:
            self.pager.retain_selected_after_removal(self.entries)

    def request_delete(self) -> None:
        self.pending_delete = self._selected()

    def answer_delete(self, confirmed: bool) -> None:
        entry, self.pending_delete = self.pending_delete, None
        if entry is None or not confirmed:
            return
        try:
            self.model.delete(entry)
        except OSError as e:
            self.status = f"could not save history: {e}"
            return
        self.status = ""
        self.pager.retain_selected_after_removal(self.entries)

    def choose(self, execute: bool) -> str:
        """Text to push into the shell; a trailing newline runs it."""
        entry = self._selected()
        return f"{entry}\n" if execute else entry

    # --- Rendering input ---

    def frame(self) -> Frame:
        entries = self.entries
        rows = self.pager.page(entries)
        return Frame(
            view=self.model.view,
            rows=rows,
            selected=self.pager.selected,
            search_state=self.model.search_state,
            page_number=self.pager.page_number,
            page_count=self.pager.page_count(len(entries)),
            status=self.status,
            pending_delete=self.pending_delete,
            favorites={row for row in rows if self.model.is_favorite(row)},
            spans=[match_spans(row, self.model.matcher) for row in rows],
        )


# ============================================================================
# USER INTERFACE & DISPLAY
# ============================================================================


def status_bar(frame: Frame) -> str:
    state = frame.search_state
    return (
        f"- view:{frame.view.label} (C-/) "
        f"- regex:{'on' if state.regex_mode else 'off'} (C-e) "
        f"- case:{'sensitive' if state.case_sensitive else 'insensitive'} (C-t) "
        f"- page {frame.page_number}/{frame.page_count} -"
    )


def render_frame(frame: Frame, prompt: str, width: int) -> Group:
    """→ UI: Builds the full screen for one frame"""
    top = Text(f"{prompt} {frame.search_state.query}", style=PROMPT_STYLE, no_wrap=True)

    if frame.pending_delete is not None:
        message = Text(
            f"Do you want to delete all occurrences of {displayable(frame.pending_delete)}? y/n",
            style=DELETE_PROMPT_STYLE,
            no_wrap=True,
        )
    elif frame.status:
        message = Text(frame.status, style=MESSAGE_STYLE, no_wrap=True)
    else:
        message = Text(HELP_LINE, style=HELP_STYLE, no_wrap=True)

    bar = Text(status_bar(frame), style=STATUS_BAR_STYLE, no_wrap=True)
    bar.align("left", width)

    rows = []
    for index, (row, spans) in enumerate(zip(frame.rows, frame.spans)):
        line = highlight_command(
            row,
            spans=spans,
            favorite=row in frame.favorites,
            selected=index == frame.selected,
        )
        line.align("left", width)
        rows.append(line)

    return Group(top, message, bar, *rows)


class HistPickApp(App[str]):
    """Full-screen picker; exits with the text to push into the shell, or None."""

    CSS = """
    Screen {
        overflow: hidden;
    }
    #screen {
        height: 100%;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("up", "move(-1)", "Up", show=False, priority=True),
        Binding("down", "move(1)", "Down", show=False, priority=True),
        Binding("pageup", "turn_page(-1)", "Previous page", show=False, priority=True),
        Binding("pagedown", "turn_page(1)", "Next page", show=False, priority=True),
        Binding("backspace", "backspace", "Backspace", show=False, priority=True),
        Binding("ctrl+underscore,ctrl+slash", "toggle_view", "View", priority=True),
        Binding("ctrl+e", "toggle_regex", "Regex", priority=True),
        Binding("ctrl+t", "toggle_case", "Case", priority=True),
        Binding("ctrl+f", "toggle_favorite", "Favorite", priority=True),
        Binding("delete", "delete", "Delete", priority=True),
        Binding("enter", "choose(True)", "Run", priority=True),
        Binding("tab", "choose(False)", "Paste", priority=True),
        Binding("escape", "quit_picker", "Quit", priority=True),
    ]

    def __init__(self, session: Session, prompt: str = "$", *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.session = session
        self.prompt = prompt

    def compose(self) -> ComposeResult:
        yield Static(id="screen")

    def on_mount(self) -> None:
        self.session.resize(self.size.height)
        self.refresh_screen()

    def on_resize(self, event: events.Resize) -> None:
        self.session.resize(event.size.height)
        self.refresh_screen()

    def refresh_screen(self) -> None:
        frame = self.session.frame()
        self.query_one("#screen", Static).update(render_frame(frame, self.prompt, self.size.width))

    def _cancel_pending_delete(self) -> bool:
        # While a deletion waits for y/n, any other key cancels it
        if self.session.pending_delete is None:
            return False
        self.session.answer_delete(False)
        self.refresh_screen()
        return True

    def _dispatch(self, transition, *args) -> None:
        if self._cancel_pending_delete():
            return
        with suppress(EmptySelectionError):
            transition(*args)
        self.refresh_screen()

    def on_key(self, event: events.Key) -> None:
        if self.session.pending_delete is not None:
            event.stop()
            self.session.answer_delete(event.character in ("y", "Y"))
            self.refresh_screen()
        elif event.is_printable and event.character:
            event.stop()
            self._dispatch(self.session.type_char, event.character)

    def action_move(self, direction: int) -> None:
        self._dispatch(self.session.move, direction)

    def action_turn_page(self, direction: int) -> None:
        self._dispatch(self.session.turn_page, direction)

    def action_backspace(self) -> None:
        self._dispatch(self.session.backspace)

    def action_toggle_view(self) -> None:
        self._dispatch(self.session.toggle_view)

    def action_toggle_regex(self) -> None:
        self._dispatch(self.session.toggle_regex_mode)

    def action_toggle_case(self) -> None:
        self._dispatch(self.session.toggle_case)

    def action_toggle_favorite(self) -> None:
        self._dispatch(self.session.toggle_favorite)

    def action_delete(self) -> None:
        self._dispatch(self.session.request_delete)

    def action_choose(self, execute: bool) -> None:
        if self._cancel_pending_delete():
            return
        try:
            command = self.session.choose(execute)
        except EmptySelectionError:
            return
        self.exit(command)

    def action_quit_picker(self) -> None:
        if self._cancel_pending_delete():
            return
        self.exit(None)


# ============================================================================
# COMMAND LINE
# ============================================================================


def parse_args(argv: list[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="histpick",
        description="Search your shell history and push the chosen command back into the shell",
    )
    ap.add_argument("query", nargs="*", help="Initial search query")
    ap.add_argument("--shell", choices=SUPPORTED_SHELLS, help="History format (default: from $SHELL)")
    ap.add_argument("--history-file", help="History file to read (default: $HISTFILE or ~/.<shell>_history)")
    ap.add_argument(
        "--show-config",
        choices=SUPPORTED_SHELLS,
        metavar="SHELL",
        help="Print the shell integration snippet for bash or zsh and exit",
    )
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """→ Main: Loads the history, runs the picker and injects the choice"""
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.show_config:
        sys.stdout.write(shell_config(args.show_config))
        return 0

    config = Config(shell=args.shell, history_file=args.history_file)
    store = HistoryStore.for_shell(config.shell, config.history_path, config.favorites_path)
    model = HistoryModel(store)
    try:
        model.load()
    except LoadError as e:
        _console_print(f"[error]Error: {e}[/error]")
        return 1

    rows = shutil.get_terminal_size().lines or RESERVED_ROWS + 1
    session = Session(model, rows=rows)
    session.start(" ".join(args.query))

    command = HistPickApp(session, prompt=config.prompt).run()
    if not command:
        return 0

    try:
        inject(command)
    except OSError as e:
        _console_print(f"[warning]Could not push the command into the terminal ({e}); printing it instead.[/warning]")
        line = command if command.endswith("\n") else f"{command}\n"
        sys.stdout.buffer.write(line.encode("utf-8", errors="surrogateescape"))
        sys.stdout.buffer.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
