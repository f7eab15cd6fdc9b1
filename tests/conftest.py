import pytest

from histview import HistoryModel

FAKE_HISTORY = [
    "cat spam",
    "cat SPAM",
    "git add .",
    "git add . --dry-run",
    "git push origin master",
    "git rebase -i HEAD~2",
    "git checkout -b tests",
    "grep -r spam .",
    "ping -c 10 www.google.com",
    "ls -la",
    "lsusb",
    "lspci",
    "sudo reboot",
    "source .venv/bin/activate",
    "deactivate",
    "pytest",
    "cargo test",
    "xfce4-panel -r",
    "nano .gitignore",
    "sudo dkms add .",
    "cd ~/Downloads",
    "make -j4",
    "gpg --card-status",
]


class FakeSource:
    """In-memory stand-in for HistoryStore that records every write."""

    def __init__(
        self,
        history=None,
        favorites=None,
        fail_writes=False,
        fail_history=False,
        fail_favorites=False,
    ):
        self.history = list(history or [])
        self.favorites = list(favorites or [])
        self.fail_history = fail_writes or fail_history
        self.fail_favorites = fail_writes or fail_favorites
        self.history_writes = []
        self.favorites_writes = []

    def read_history(self):
        return list(self.history)

    def write_history(self, entries):
        if self.fail_history:
            raise PermissionError("read-only history")
        self.history = list(entries)
        self.history_writes.append(list(entries))

    def read_favorites(self):
        return list(self.favorites)

    def write_favorites(self, entries):
        if self.fail_favorites:
            raise PermissionError("read-only favorites")
        self.favorites = list(entries)
        self.favorites_writes.append(list(entries))


@pytest.fixture
def fake_history():
    return list(FAKE_HISTORY)


@pytest.fixture
def source(fake_history):
    return FakeSource(fake_history)


@pytest.fixture
def model(source):
    m = HistoryModel(source)
    m.load()
    return m
