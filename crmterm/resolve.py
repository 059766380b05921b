"""Turn typed text into menu actions and accounts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class MenuOption:
    """A menu entry.

    ``synonyms`` must equal the whole (normalised) input; ``keywords`` match
    when the input is a prefix of one of them.
    """

    id: str
    keywords: tuple[str, ...] = ()
    synonyms: tuple[str, ...] = ()


MENU_DASHBOARD = "dashboard"
MENU_ACCOUNTS = "accounts"
MENU_ADD_ACCOUNT = "add-account"
MENU_CREATE = "create"
MENU_SETTINGS = "settings"
MENU_QUIT = "quit"

ACTION_ACTIVITY = "activity"
ACTION_ADD_NOTE = "add-note"
ACTION_ADD_EVENT = "add-event"
ACTION_EDIT = "edit-account"
ACTION_BACK = "back"

CHOICE_NOTE = "note"
CHOICE_EVENT = "event"

SETTING_NAME = "name"
SETTING_TIMEZONE = "timezone"

DASH_TOGGLE = "toggle"
DASH_REFRESH = "refresh"

MAIN_MENU_OPTIONS = (
    MenuOption(MENU_DASHBOARD, ("dashboard",), ("1", "d", "dash", "dashboard")),
    MenuOption(
        MENU_ACCOUNTS,
        ("accounts",),
        ("2", "accounts", "account", "view", "view accounts"),
    ),
    MenuOption(
        MENU_ADD_ACCOUNT, ("add", "new"), ("3", "add", "add account", "new account")
    ),
    MenuOption(
        MENU_CREATE,
        ("create", "note", "event"),
        ("4", "create", "note", "event", "create note", "create event"),
    ),
    MenuOption(
        MENU_SETTINGS, ("settings", "help"), ("5", "settings", "help", "settings & help")
    ),
    MenuOption(MENU_QUIT, ("quit", "exit"), ("6", "quit", "exit", "exit.", "q")),
)

ACCOUNT_DETAIL_OPTIONS = (
    MenuOption(
        ACTION_ACTIVITY, ("activity", "timeline"), ("1", "activity", "view", "timeline")
    ),
    MenuOption(ACTION_ADD_NOTE, ("note",), ("2", "note", "add note", "create note")),
    MenuOption(
        ACTION_ADD_EVENT, ("event",), ("3", "event", "add event", "create event")
    ),
    MenuOption(ACTION_EDIT, ("edit", "update"), ("4", "edit", "update")),
    MenuOption(ACTION_BACK, ("back", "close"), ("5", "back", "exit", "/")),
)

CREATE_CHOICE_OPTIONS = (
    MenuOption(CHOICE_NOTE, ("note",), ("1", "note", "n")),
    MenuOption(CHOICE_EVENT, ("event",), ("2", "event", "e")),
    MenuOption(ACTION_BACK, ("back",), ("3", "back", "/")),
)

SETTINGS_OPTIONS = (
    MenuOption(SETTING_NAME, ("name",), ("1", "name")),
    MenuOption(SETTING_TIMEZONE, ("timezone", "zone"), ("2", "timezone", "tz")),
    MenuOption(ACTION_BACK, ("back",), ("3", "back", "/")),
)

DASHBOARD_OPTIONS = (
    MenuOption(DASH_TOGGLE, ("toggle",), ("t", "toggle")),
    MenuOption(DASH_REFRESH, ("refresh",), ("r", "refresh")),
)

EXIT_TOKENS = ("exit.", "quit")
BACK_TOKENS = ("/", "back")
ACCOUNT_VERBS = ("open ", "view ", "select ")


def normalize(value: str) -> str:
    return (value or "").strip().lower()


def resolve_command(value: str, options: Sequence[MenuOption]) -> str | None:
    """Return the id of the option ``value`` selects, or ``None``.

    Exact synonyms win before any prefix matching, so short tokens such as
    ``"1"`` or ``"q"`` are never ambiguous. A prefix shared by keywords of two
    different options resolves to nothing.
    """
    value = normalize(value)
    if not value:
        return None
    for option in options:
        if value in option.synonyms:
            return option.id

    matches: list[str] = []
    for option in options:
        if any(keyword.startswith(value) for keyword in option.keywords):
            if option.id not in matches:
                matches.append(option.id)
    if len(matches) == 1:
        return matches[0]
    return None


def is_exit_command(value: str) -> bool:
    return normalize(value) in EXIT_TOKENS


def is_back_command(value: str) -> bool:
    return normalize(value) in BACK_TOKENS


def _strip_verb(text: str) -> str:
    lower = text.lower()
    for verb in ACCOUNT_VERBS:
        if lower.startswith(verb):
            return text[len(verb):].strip()
    if lower.startswith("#"):
        return text[1:].strip()
    return text


def resolve_account_selection(value: str, filtered: Sequence, accounts: Sequence):
    """Pick one account from free text, or return ``None``.

    ``filtered`` is what the user currently sees (numbered from 1) and takes
    priority over the full ``accounts`` list at every step.
    """
    if not filtered and not accounts:
        return None
    trimmed = (value or "").strip()
    if not trimmed:
        if len(filtered) == 1:
            return filtered[0]
        return None

    query = _strip_verb(trimmed)
    try:
        idx = int(query)
    except ValueError:
        idx = 0
    if 0 < idx <= len(filtered):
        return filtered[idx - 1]

    folded = query.casefold()
    for candidates in (filtered, accounts):
        for account in candidates:
            if account.name.casefold() == folded:
                return account

    lowered = query.lower()
    for candidates in (filtered, accounts):
        found = [a for a in candidates if a.name.lower().startswith(lowered)]
        if len(found) == 1:
            return found[0]
    return None
