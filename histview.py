"""
histview.py - In-memory history view engine for histpick

**How the pieces fit**

Raw history goes through `rank()` and `dedupe()` to become three views
(ranked, favorites, chronological). `HistoryModel` owns the raw history, the
per-view lists and a snapshot of the unfiltered lists. Searching narrows the
active view in place; shrinking the query restores the view from the snapshot
and filters again, because a narrowing filter cannot be undone by itself.
`Pager` slices the active view into terminal-sized pages and tracks the
cursor.

Nothing here touches the terminal or the file system directly: the model
talks to a *source* object (see `histstore.py`) with four methods,
`read_history`, `write_history`, `read_favorites` and `write_favorites`.
"""

from __future__ import annotations

import math
import re
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol, Sequence

RESERVED_ROWS = 3

# ============================================================================
# ERRORS
# ============================================================================


class HistViewError(Exception):
    """Base class for history view engine errors."""


class LoadError(HistViewError):
    """History or favorites could not be read at load time."""


class InvalidPatternError(HistViewError):
    """The query is not a valid regular expression."""

    def __init__(self, pattern: str, error: re.error):
        super().__init__(f"invalid regex {pattern!r}: {error}")
        self.pattern = pattern
        self.error = error


class EmptySelectionError(HistViewError):
    """An action needed a selected entry but nothing is under the cursor."""


# ============================================================================
# DATA STRUCTURES
# ============================================================================


class View(Enum):
    RANKED = 0
    FAVORITES = 1
    CHRONOLOGICAL = 2

    def next(self) -> View:
        members = list(View)
        return members[(members.index(self) + 1) % len(members)]

    @property
    def label(self) -> str:
        return self.name.lower()


ViewTable = dict[View, list[str]]


@dataclass
class SearchState:
    query: str = ""
    regex_mode: bool = False
    case_sensitive: bool = False


class HistorySource(Protocol):
    def read_history(self) -> list[str]: ...

    def write_history(self, entries: Sequence[str]) -> None: ...

    def read_favorites(self) -> list[str]: ...

    def write_favorites(self, entries: Sequence[str]) -> None: ...


# ============================================================================
# RANKING
# ============================================================================


def rank(entries: Iterable[str]) -> list[str]:
    """→ Ranking: most used first, ties broken by most recent use"""
    frequency: dict[str, int] = defaultdict(int)
    last_seen: dict[str, int] = {}
    for position, entry in enumerate(entries):
        frequency[entry] += 1
        last_seen[entry] = position
    # `frequency` keeps first-appearance order and sorted() is stable
    return sorted(frequency, key=lambda entry: (-frequency[entry], -last_seen[entry]))


def dedupe(entries: Iterable[str]) -> list[str]:
    """→ Ranking: drops repeated entries, keeping the first occurrence"""
    return list(dict.fromkeys(entries))


# ============================================================================
# SEARCH
# ============================================================================


def compile_matcher(state: SearchState) -> re.Pattern[str]:
    """→ Search: compiles the query as a regex or as an escaped literal"""
    pattern = state.query if state.regex_mode else re.escape(state.query)
    flags = 0 if state.case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise InvalidPatternError(state.query, e) from e


def filter_entries(entries: Iterable[str], matcher: re.Pattern[str]) -> list[str]:
    """→ Search: keeps the entries the matcher finds a match in, in order"""
    return [entry for entry in entries if matcher.search(entry)]


def match_spans(entry: str, matcher: re.Pattern[str] | None) -> list[tuple[int, int]]:
    """Character spans of every non-empty match of `matcher` in `entry`."""
    if matcher is None or not matcher.pattern:
        return []
    return [m.span() for m in matcher.finditer(entry) if m.end() > m.start()]


# ============================================================================
# HISTORY MODEL
# ============================================================================


class HistoryModel:
    """
    Owns the raw history and the three derived views.

    `views` holds the (possibly filtered) list for every view; `snapshot`
    holds the unfiltered lists as of the last load/reload. Both are value
    copies, so filtering one view never disturbs the raw history or another
    view.
    """

    def __init__(self, source: HistorySource):
        self.source = source
        self.raw_history: list[str] = []
        self.views: ViewTable = {view: [] for view in View}
        self.snapshot: ViewTable = {view: [] for view in View}
        self.view = View.RANKED
        self.search_state = SearchState()
        self.matcher: re.Pattern[str] | None = None

    # --- Loading ---

    def load(self) -> ViewTable:
        try:
            raw_history = self.source.read_history()
            favorites = self.source.read_favorites()
        except OSError as e:
            raise LoadError(f"could not read history: {e}") from e
        self.raw_history = list(raw_history)
        self._build_views(favorites)
        return self.views

    def reload(self) -> None:
        """
        Re-derives every view from the in-memory raw history, then narrows the
        active view again with the last query that compiled.
        """
        self._build_views(self.snapshot[View.FAVORITES])
        if self.matcher is not None:
            self.views[self.view] = filter_entries(self.views[self.view], self.matcher)

    def _build_views(self, favorites: Sequence[str]) -> None:
        self.snapshot = {
            View.RANKED: rank(self.raw_history),
            View.FAVORITES: list(favorites),
            View.CHRONOLOGICAL: dedupe(self.raw_history),
        }
        self.views = {view: list(entries) for view, entries in self.snapshot.items()}

    def restore(self) -> None:
        """Puts the unfiltered snapshot back into the active view."""
        self.views[self.view] = list(self.snapshot[self.view])

    # --- Queries ---

    def active_view_entries(self) -> list[str]:
        return self.views[self.view]

    def is_favorite(self, entry: str) -> bool:
        return entry in self.snapshot[View.FAVORITES]

    def search(self, restore: bool = False) -> None:
        """
        Narrows the active view with the current query.

        With `restore`, the active view is first reset from the snapshot; that
        is required whenever the query got shorter or the view changed. On an
        invalid regex the view is left untouched and `InvalidPatternError`
        propagates.
        """
        if not self.search_state.query:
            self.restore()
            self.matcher = None
            return
        matcher = compile_matcher(self.search_state)
        if restore:
            self.restore()
        self.matcher = matcher
        self.views[self.view] = filter_entries(self.views[self.view], matcher)

    # --- Toggles ---

    def toggle_view(self) -> View:
        self.view = self.view.next()
        return self.view

    def toggle_case(self) -> None:
        self.search_state.case_sensitive = not self.search_state.case_sensitive

    def toggle_regex_mode(self) -> None:
        self.search_state.regex_mode = not self.search_state.regex_mode

    # --- Mutations ---

    def favorite_toggle(self, entry: str) -> bool:
        """
        Adds `entry` to the favorites, or removes it when already there.
        The store is written before anything changes in memory.
        Returns whether the entry is a favorite afterwards.
        """
        favorites = self.snapshot[View.FAVORITES]
        adding = entry not in favorites
        if adding:
            updated = favorites + [entry]
        else:
            updated = [fav for fav in favorites if fav != entry]
        self.source.write_favorites(updated)

        self.snapshot[View.FAVORITES] = updated
        shown = self.views[View.FAVORITES]
        if adding:
            if self.matcher is None or self.matcher.search(entry):
                shown.append(entry)
        else:
            self.views[View.FAVORITES] = [fav for fav in shown if fav != entry]
        return adding

    def delete(self, entry: str) -> None:
        """
        Removes every occurrence of `entry` from the history and all views.

        Favorites are written first; if the history write then fails, the old
        favorites are written back before the error propagates, so neither
        file nor memory is left half-updated.
        """
        raw_history = [cmd for cmd in self.raw_history if cmd != entry]
        old_favorites = self.snapshot[View.FAVORITES]
        favorites = [fav for fav in old_favorites if fav != entry]
        favorites_changed = len(favorites) != len(old_favorites)
        if favorites_changed:
            self.source.write_favorites(favorites)
        try:
            self.source.write_history(raw_history)
        except OSError:
            if favorites_changed:
                self.source.write_favorites(old_favorites)
            raise

        self.raw_history = raw_history
        for table in (self.views, self.snapshot):
            for view in View:
                table[view] = [cmd for cmd in table[view] if cmd != entry]
        self.reload()


# ============================================================================
# PAGINATION & SELECTION
# ============================================================================


class Pager:
    """Splits a view into pages of `page_size` rows and tracks the cursor."""

    def __init__(self, page_size: int):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.page_size = page_size
        self.page_number = 1
        self.selected = 0

    @classmethod
    def for_terminal(cls, rows: int) -> Pager:
        return cls(max(1, rows - RESERVED_ROWS))

    def reset(self) -> None:
        self.page_number = 1
        self.selected = 0

    def page_count(self, count: int) -> int:
        return max(1, math.ceil(count / self.page_size))

    def page(self, entries: Sequence[str]) -> list[str]:
        start = (self.page_number - 1) * self.page_size
        return list(entries[start : start + self.page_size])

    def turn_page(self, entries: Sequence[str], direction: int) -> None:
        # Pages are 1-based; % wraps both ways since page_count() is never 0
        if not entries:
            self.page_number = 1
            return
        next_page = (self.page_number - 1 + direction) % self.page_count(len(entries))
        self.page_number = next_page + 1

    def move_selected(self, entries: Sequence[str], direction: int) -> None:
        size = len(self.page(entries))
        if size == 0:
            return
        self.selected = (self.selected + direction) % size
        if direction == 1 and self.selected == 0:
            self.turn_page(entries, 1)
        elif direction == -1 and self.selected == size - 1:
            self.turn_page(entries, -1)
            self.selected = len(self.page(entries)) - 1

    def selected_entry(self, entries: Sequence[str]) -> str | None:
        page = self.page(entries)
        if 0 <= self.selected < len(page):
            return page[self.selected]
        return None

    def retain_selected_after_removal(self, entries: Sequence[str]) -> None:
        """Keeps the cursor on a valid row after the current page lost an entry."""
        if self.page_number > self.page_count(len(entries)):
            # the page itself is gone: land on the last row of the new last page
            self.page_number = self.page_count(len(entries))
            self.selected = max(0, len(self.page(entries)) - 1)
        self._clamp(entries)

    def resize(self, rows: int, entries: Sequence[str]) -> None:
        self.page_size = max(1, rows - RESERVED_ROWS)
        self._clamp(entries)

    def _clamp(self, entries: Sequence[str]) -> None:
        pages = self.page_count(len(entries))
        if self.page_number > pages:
            self.page_number = pages
        size = len(self.page(entries))
        if self.selected >= size:
            self.selected = max(0, size - 1)
