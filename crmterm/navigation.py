from __future__ import annotations

from enum import Enum


class View(Enum):
    MAIN_MENU = "main-menu"
    DASHBOARD = "dashboard"
    ACCOUNTS = "accounts"
    ACCOUNT_DETAIL = "account-detail"
    ACCOUNT_FORM = "account-form"
    CREATE_CHOICE = "create-choice"
    NOTE_WIZARD = "note-wizard"
    EVENT_WIZARD = "event-wizard"
    SETTINGS = "settings"
    SETTINGS_EDIT_NAME = "settings-edit-name"
    SETTINGS_EDIT_TIMEZONE = "settings-edit-timezone"


ROOT = View.MAIN_MENU


class NavigationStack:
    """History of previously active views; the root is never pushed."""

    def __init__(self):
        self.active = ROOT
        self.history: list[View] = []

    def push(self, view: View) -> None:
        if view == self.active:
            return
        if view in self.history:
            # unwind instead of recording the view twice
            del self.history[self.history.index(view):]
            self.active = view
            return
        self.history.append(self.active)
        self.active = view

    def pop(self) -> View:
        if self.history:
            self.active = self.history.pop()
        else:
            self.active = ROOT
        return self.active

    def replace(self, view: View) -> None:
        """Activate ``view`` without remembering the current one."""
        if view in self.history:
            del self.history[self.history.index(view):]
        self.active = view

    def reset_to_root(self) -> None:
        self.history.clear()
        self.active = ROOT

    def __len__(self) -> int:
        return len(self.history)
