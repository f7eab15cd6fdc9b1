"""Headless runs of the picker UI."""

import asyncio

from histpick import HistPickApp, Session
from histview import View


def run_keys(session, *keys):
    app = HistPickApp(session, prompt="me@box$")

    async def drive():
        async with app.run_test(size=(80, 12)) as pilot:
            await pilot.press(*keys)
            await pilot.pause()

    asyncio.run(drive())
    return app


def test_enter_runs_the_selected_command(model):
    session = Session(model, rows=12)
    session.start()
    app = run_keys(session, "g", "i", "t", "enter")
    assert app.return_value == "nano .gitignore\n"


def test_tab_pastes_without_newline(model):
    session = Session(model, rows=12)
    session.start()
    app = run_keys(session, "down", "tab")
    assert app.return_value == "make -j4"


def test_escape_quits_without_a_command(model):
    session = Session(model, rows=12)
    session.start()
    app = run_keys(session, "escape")
    assert app.return_value is None


def test_page_size_follows_terminal_height(model):
    session = Session(model, rows=40)
    session.start()
    run_keys(session, "escape")
    assert session.pager.page_size == 12 - 3


def test_delete_asks_first(model, source):
    session = Session(model, rows=12)
    session.start()
    run_keys(session, "delete", "n", "delete", "y", "escape")
    assert "gpg --card-status" not in source.history
    assert len(source.history_writes) == 1


def test_any_other_key_cancels_delete(model, source):
    session = Session(model, rows=12)
    session.start()
    run_keys(session, "delete", "down", "escape")
    assert source.history_writes == []
    assert session.pending_delete is None
    assert session.pager.selected == 0


def test_view_and_favorite_keys(model, source):
    session = Session(model, rows=12)
    session.start()
    run_keys(session, "ctrl+f", "ctrl+underscore", "escape")
    assert source.favorites == ["gpg --card-status"]
    assert model.view is View.FAVORITES
    assert session.entries == ["gpg --card-status"]
