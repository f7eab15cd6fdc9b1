"""Tests for pagination and the selection cursor."""

import pytest

from histview import RESERVED_ROWS, Pager


@pytest.fixture
def pager():
    # 23 sample commands with 7 rows per page: pages of 7, 7, 7, 2
    return Pager(7)


@pytest.mark.parametrize(
    "page, expected",
    [
        (1, ["cat spam", "cat SPAM", "git add .", "git add . --dry-run", "git push origin master",
             "git rebase -i HEAD~2", "git checkout -b tests"]),
        (2, ["grep -r spam .", "ping -c 10 www.google.com", "ls -la", "lsusb", "lspci",
             "sudo reboot", "source .venv/bin/activate"]),
        (3, ["deactivate", "pytest", "cargo test", "xfce4-panel -r", "nano .gitignore",
             "sudo dkms add .", "cd ~/Downloads"]),
        (4, ["make -j4", "gpg --card-status"]),
        (5, []),
    ],
)
def test_page_contents(pager, fake_history, page, expected):
    pager.page_number = page
    assert pager.page(fake_history) == expected


def test_page_count(pager, fake_history):
    assert pager.page_count(len(fake_history)) == 4
    assert pager.page_count(0) == 1
    assert pager.page_count(7) == 1
    assert pager.page_count(8) == 2


def test_for_terminal():
    assert Pager.for_terminal(24).page_size == 24 - RESERVED_ROWS
    assert Pager.for_terminal(2).page_size == 1


def test_rejects_empty_pages():
    with pytest.raises(ValueError):
        Pager(0)


@pytest.mark.parametrize(
    "current, direction, expected",
    [
        (1, 1, 2),
        (2, 1, 3),
        (3, 1, 4),
        (4, 1, 1),
        (4, -1, 3),
        (3, -1, 2),
        (2, -1, 1),
        (1, -1, 4),
    ],
)
def test_turn_page(pager, fake_history, current, direction, expected):
    pager.page_number = current
    pager.turn_page(fake_history, direction)
    assert pager.page_number == expected


@pytest.mark.parametrize("direction", [1, -1])
def test_turn_page_without_entries(pager, direction):
    pager.page_number = 3
    pager.turn_page([], direction)
    assert pager.page_number == 1


class TestMoveSelected:
    def test_moves_within_page(self, pager, fake_history):
        pager.move_selected(fake_history, 1)
        pager.move_selected(fake_history, 1)
        assert (pager.page_number, pager.selected) == (1, 2)
        pager.move_selected(fake_history, -1)
        assert (pager.page_number, pager.selected) == (1, 1)

    def test_forward_wrap_turns_page(self, pager, fake_history):
        pager.selected = 6
        pager.move_selected(fake_history, 1)
        assert (pager.page_number, pager.selected) == (2, 0)

    def test_forward_wrap_on_last_page_returns_to_first(self, pager, fake_history):
        pager.page_number = 4
        pager.selected = 1
        pager.move_selected(fake_history, 1)
        assert (pager.page_number, pager.selected) == (1, 0)

    def test_backward_wrap_selects_last_row_of_previous_page(self, pager, fake_history):
        pager.page_number = 2
        pager.move_selected(fake_history, -1)
        assert (pager.page_number, pager.selected) == (1, 6)

    def test_backward_wrap_from_first_page_lands_on_short_last_page(self, pager, fake_history):
        pager.move_selected(fake_history, -1)
        assert (pager.page_number, pager.selected) == (4, 1)

    def test_single_page_wraps_in_place(self, pager):
        entries = ["a", "b", "c"]
        pager.selected = 2
        pager.move_selected(entries, 1)
        assert (pager.page_number, pager.selected) == (1, 0)
        pager.move_selected(entries, -1)
        assert (pager.page_number, pager.selected) == (1, 2)

    @pytest.mark.parametrize("direction", [1, -1])
    def test_empty_view_is_a_no_op(self, pager, direction):
        pager.move_selected([], direction)
        assert (pager.page_number, pager.selected) == (1, 0)


def test_selected_entry(pager, fake_history):
    assert pager.selected_entry(fake_history) == "cat spam"
    pager.page_number, pager.selected = 4, 1
    assert pager.selected_entry(fake_history) == "gpg --card-status"
    assert pager.selected_entry([]) is None


class TestRetainSelected:
    def test_steps_back_from_vanished_last_row(self, pager):
        entries = ["a", "b", "c"]
        pager.selected = 2
        entries.remove("c")
        pager.retain_selected_after_removal(entries)
        assert pager.selected == 1

    def test_keeps_row_that_still_exists(self, pager):
        entries = ["a", "b", "c"]
        pager.selected = 1
        entries.remove("b")
        pager.retain_selected_after_removal(entries)
        assert pager.selected == 1

    def test_last_entry_of_last_page_removed(self, pager, fake_history):
        entries = fake_history[:8]
        pager.page_number, pager.selected = 2, 0
        entries.pop()
        pager.retain_selected_after_removal(entries)
        assert (pager.page_number, pager.selected) == (1, 6)

    def test_everything_removed(self, pager):
        pager.retain_selected_after_removal([])
        assert (pager.page_number, pager.selected) == (1, 0)


def test_resize_clamps(pager, fake_history):
    pager.page_number, pager.selected = 4, 1
    pager.resize(20 + RESERVED_ROWS, fake_history)
    assert pager.page_size == 20
    assert (pager.page_number, pager.selected) == (2, 1)
    pager.resize(40, fake_history)
    assert (pager.page_number, pager.selected) == (1, 1)


def test_reset(pager):
    pager.page_number, pager.selected = 3, 4
    pager.reset()
    assert (pager.page_number, pager.selected) == (1, 0)
