"""Per-screen input handling and rendering.

Each handler implements ``submit(session, value)``, ``escape(session)``,
``render(session)`` and ``prompt(session)``. Rendering returns ``(role, text)``
lines; the roles are looked up in :mod:`crmterm.theme` by the front end.
"""
from __future__ import annotations

import logging
from pathlib import Path

from .config import ConfigError, InvalidTimezoneError
from .models import Event, Note
from .navigation import View
from .resolve import (
    ACCOUNT_DETAIL_OPTIONS,
    ACTION_ACTIVITY,
    ACTION_ADD_EVENT,
    ACTION_ADD_NOTE,
    ACTION_BACK,
    ACTION_EDIT,
    CHOICE_EVENT,
    CHOICE_NOTE,
    CREATE_CHOICE_OPTIONS,
    DASH_REFRESH,
    DASH_TOGGLE,
    DASHBOARD_OPTIONS,
    MAIN_MENU_OPTIONS,
    MENU_ACCOUNTS,
    MENU_ADD_ACCOUNT,
    MENU_CREATE,
    MENU_DASHBOARD,
    MENU_QUIT,
    MENU_SETTINGS,
    SETTING_NAME,
    SETTING_TIMEZONE,
    SETTINGS_OPTIONS,
    is_back_command,
    is_exit_command,
    normalize,
    resolve_account_selection,
    resolve_command,
)
from .services import PAST_LIMIT, UPCOMING_LIMIT, split_events
from .session import DASHBOARD_ACTIVITY, DASHBOARD_EVENTS, Prompt
from .storage import AccountExistsError, StorageError
from .wizard import AccountField, AccountForm, Terminal

logger = logging.getLogger(__name__)

HOME_PROMPT = Prompt("> ", "Choose an option", 32)
DETAIL_PLACEHOLDER = "1=Activity  2=Add note  3=Add event  4=Edit  5=Back"
RULE = "─" * 40

SPLASH = r"""   __________  __  ___    ______
  / ____/ __ \/  |/  /   /_  __/__  _________ ___
 / /   / /_/ / /|_/ /_____/ / / _ \/ ___/ __ '__ \
/ /___/ _, _/ /  / /_____/ / /  __/ /  / / / / / /
\____/_/ |_/_/  /_/     /_/  \___/_/  /_/ /_/ /_/"""


def stamp(moment, location, fmt="%b %d %Y %H:%M") -> str:
    if moment is None:
        return ""
    return moment.astimezone(location).strftime(fmt)


def messages(session, error: str = "") -> list[tuple[str, str]]:
    lines = []
    if error:
        lines += [("", ""), ("danger", error)]
    if session.info:
        lines += [("", ""), ("success", session.info)]
    if session.error:
        lines += [("", ""), ("danger", session.error)]
    return lines


def account_meta(account) -> str:
    meta = []
    if account.phone:
        meta.append(f"Phone: {account.phone}")
    if account.email:
        meta.append(f"Email: {account.email}")
    if account.decision_maker:
        meta.append(f"Decision Maker: {account.decision_maker}")
    return "  •  ".join(meta)


def expand_path(path: str) -> Path:
    trimmed = path.strip()
    if not trimmed:
        raise ValueError("empty path")
    return Path(trimmed).expanduser().resolve()


class Handler:
    """Default behaviour shared by the screens."""

    def submit(self, session, value: str) -> None:
        raise NotImplementedError

    def escape(self, session) -> None:
        session.back()

    def render(self, session) -> list[tuple[str, str]]:
        raise NotImplementedError

    def prompt(self, session) -> Prompt:
        return HOME_PROMPT

    def escaped(self, session, value: str) -> bool:
        """Apply the universal exit/back tokens; True when one was used."""
        if is_exit_command(value):
            session.home()
            return True
        if is_back_command(value):
            session.back()
            return True
        return False


class MainMenu(Handler):
    def submit(self, session, value):
        choice = normalize(value)
        session.show_splash = False
        if is_back_command(choice):
            return
        action = resolve_command(choice, MAIN_MENU_OPTIONS)
        if action is None:
            if choice not in ("", "0"):
                session.error = "Unknown choice"
            return
        if action == MENU_DASHBOARD:
            session.push(View.DASHBOARD)
            session.refresh_dashboard()
        elif action == MENU_ACCOUNTS:
            session.push(View.ACCOUNTS)
            session.refresh_accounts()
        elif action == MENU_ADD_ACCOUNT:
            session.account_form = AccountForm()
            session.push(View.ACCOUNT_FORM)
        elif action == MENU_CREATE:
            session.push(View.CREATE_CHOICE)
        elif action == MENU_SETTINGS:
            session.push(View.SETTINGS)
        elif action == MENU_QUIT:
            session.quit()

    def escape(self, session):
        pass

    def render(self, session):
        lines = []
        if session.show_splash:
            lines += [("accent", row) for row in SPLASH.splitlines()]
            lines.append(("", ""))
        lines.append(("title", "CRM-Term"))
        lines.append(("secondary", "A lightning-fast terminal CRM"))
        if session.info:
            lines.append(("success", session.info))
        if session.error:
            lines.append(("danger", session.error))
        lines.append(("", ""))
        for item in (
            "1. Dashboard",
            "2. View accounts",
            "3. Add account",
            "4. Create note/event",
            "5. Settings & Help",
            "6. Quit",
        ):
            lines.append(("primary", item))
        return lines


class Dashboard(Handler):
    def submit(self, session, value):
        if self.escaped(session, value):
            return
        command = normalize(value)
        if not command:
            return
        action = resolve_command(command, DASHBOARD_OPTIONS)
        if action == DASH_TOGGLE:
            if session.dashboard_view == DASHBOARD_EVENTS:
                session.dashboard_view = DASHBOARD_ACTIVITY
            else:
                session.dashboard_view = DASHBOARD_EVENTS
            session.error = ""
        elif action == DASH_REFRESH:
            session.error = ""
            session.refresh_dashboard()
        else:
            session.error = "Unknown dashboard command"

    def prompt(self, session):
        return Prompt("> ", "Command (t=toggle, r=refresh, /, exit.)", 48)

    def render(self, session):
        loc = session.location()
        lines = [
            ("title", "Dashboard"),
            ("faint", "Press t to toggle events/activity, r to refresh, '/' to go back."),
            ("", ""),
        ]
        if session.dashboard_view == DASHBOARD_EVENTS:
            today, upcoming, past = split_events(session.events, session.now())
            lines.append(("subtitle", "Today's Events"))
            if not today:
                lines.append(("faint", "Nothing scheduled today."))
            lines += [("success", event_line(e, loc)) for e in today]
            lines += [("", ""), ("subtitle", "Upcoming")]
            if not upcoming:
                lines.append(("faint", "No upcoming events."))
            lines += [("warning", event_line(e, loc)) for e in upcoming[:UPCOMING_LIMIT]]
            lines += [("", ""), ("subtitle", "Recent")]
            if not past:
                lines.append(("faint", "No recent events."))
            lines += [("danger", event_line(e, loc)) for e in past[:PAST_LIMIT]]
        else:
            lines.append(("subtitle", "Recent CRM Activity"))
            if not session.activity:
                lines.append(("faint", "No activity yet."))
            role_for = {"account": "accent", "note": "success", "event": "warning"}
            for act in session.activity:
                lines.append((role_for.get(act.kind, "primary"), activity_line(act, loc)))
        return lines + messages(session)


def event_line(event, location) -> str:
    text = f"{stamp(event.event_time, location, '%a %b %d %H:%M')} — {event.title}"
    if event.account_name:
        text += f" ({event.account_name})"
    if event.details:
        text += f" • {event.details}"
    return text + f" • by {event.creator}"


def activity_line(activity, location) -> str:
    when = stamp(activity.created_at, location, "%b %d %H:%M")
    return f"[{activity.kind.capitalize()}] {activity.title} — {when}"


class Accounts(Handler):
    def submit(self, session, value):
        value = value.strip()
        if is_exit_command(value) or is_back_command(value):
            session.account_filter = ""
            session.refresh_accounts()
            self.escaped(session, value)
            return
        if value.lower().startswith("import "):
            self.import_csv(session, value[len("import "):])
            session.account_filter = ""
            session.refresh_accounts()
            return
        account = resolve_account_selection(value, session.filtered, session.accounts)
        if account is not None:
            session.account_filter = ""
            session.refresh_accounts()
            session.open_account_detail(account)
            return
        session.account_filter = value
        session.refresh_accounts()

    def escape(self, session):
        session.account_filter = ""
        session.refresh_accounts()
        session.back()

    def import_csv(self, session, path: str) -> None:
        session.info = ""
        if not path.strip():
            session.error = "Provide a CSV path"
            return
        try:
            resolved = expand_path(path)
            with open(resolved, newline="") as fh:
                result = session.store.import_accounts_csv(
                    fh, session.settings.name, session.location()
                )
        except (OSError, ValueError) as exc:
            session.error = f"open file: {exc}"
            return
        except StorageError as exc:
            logger.warning("csv import failed: %s", exc)
            session.error = f"import csv: {exc}"
            return
        parts = [f"Imported {result.created} account(s)"]
        if result.skipped:
            parts.append(f"skipped {result.skipped}")
        session.info = ", ".join(parts)
        session.error = "; ".join(result.errors)

    def prompt(self, session):
        return Prompt("find> ", "Type to search, / to go back", 64, session.account_filter)

    def render(self, session):
        loc = session.location()
        lines = [
            ("title", "Accounts"),
            (
                "faint",
                "Type to search. Enter a number or name to manage, or 'import <path>' "
                "to load CSV. '/' to go back, 'exit.' home.",
            ),
            ("", ""),
        ]
        if not session.filtered:
            lines.append(("warning", "No accounts found."))
        for i, account in enumerate(session.filtered, start=1):
            lines.append(("primary", f"{i}. {account.name}"))
            meta = account_meta(account)
            if meta:
                lines.append(("secondary", "  " + meta))
            if account.address:
                lines.append(("faint", "  " + account.address))
            created = stamp(account.created_at, loc)
            lines.append(("faint", f"  Created by {account.creator} on {created}"))
            lines.append(("", ""))
        lines.append(("border", RULE))
        return lines + messages(session)


class AccountDetail(Handler):
    def submit(self, session, value):
        if self.escaped(session, value):
            return
        choice = normalize(value)
        action = resolve_command(choice, ACCOUNT_DETAIL_OPTIONS)
        if action is None:
            if choice:
                session.detail_error = "Unknown choice"
            return
        session.detail_error = ""
        account = session.detail_account
        if action == ACTION_ACTIVITY:
            session.detail_show_activity = True
            session.load_account_activity()
        elif action == ACTION_ADD_NOTE:
            session.detail_show_activity = False
            session.note_wizard = session.new_note_wizard(preset=account)
            session.push(View.NOTE_WIZARD)
        elif action == ACTION_ADD_EVENT:
            session.detail_show_activity = False
            session.event_wizard = session.new_event_wizard(preset=account)
            session.push(View.EVENT_WIZARD)
        elif action == ACTION_EDIT:
            session.detail_show_activity = False
            session.account_form = AccountForm(existing=account)
            session.push(View.ACCOUNT_FORM)
        elif action == ACTION_BACK:
            session.back()

    def prompt(self, session):
        return Prompt("> ", DETAIL_PLACEHOLDER, 64)

    def render(self, session):
        loc = session.location()
        account = session.detail_account
        if account is None:
            return [("warning", "No account selected.")] + messages(session)
        lines = [("title", account.name)]
        meta = account_meta(account)
        if meta:
            lines.append(("secondary", meta))
        if account.address:
            lines.append(("faint", account.address))
        created = stamp(account.created_at, loc)
        lines.append(("faint", f"Created by {account.creator} on {created}"))
        lines.append(("", ""))
        if session.detail_show_activity:
            lines.append(("subtitle", "Recent Activity"))
            if not session.detail_activity:
                lines.append(("faint", "No activity yet."))
            for act in session.detail_activity:
                lines.append(("primary", activity_line(act, loc)))
            lines.append(("", ""))
        lines += [
            ("subtitle", "Actions"),
            ("secondary", "1. View activity"),
            ("secondary", "2. Add note (auto links)"),
            ("secondary", "3. Add event (auto links)"),
            ("secondary", "4. Edit account"),
            ("faint", "5. Back"),
        ]
        return lines + messages(session, session.detail_error)


class CreateChoice(Handler):
    def submit(self, session, value):
        if self.escaped(session, value):
            return
        choice = normalize(value)
        if not choice:
            return
        action = resolve_command(choice, CREATE_CHOICE_OPTIONS)
        if action == CHOICE_NOTE:
            session.note_wizard = session.new_note_wizard()
            session.replace(View.NOTE_WIZARD)
        elif action == CHOICE_EVENT:
            session.event_wizard = session.new_event_wizard()
            session.replace(View.EVENT_WIZARD)
        elif action == ACTION_BACK:
            session.back()
        else:
            session.error = "Choose 1 for note or 2 for event"

    def prompt(self, session):
        return Prompt("> ", "1=Note  2=Event  3=Back", 32)

    def render(self, session):
        lines = [
            ("title", "Create Note or Event"),
            ("secondary", "1. Note"),
            ("secondary", "2. Event"),
            ("faint", "3. Back"),
        ]
        return lines + messages(session)


class WizardHandler(Handler):
    """Shared plumbing for the three data-entry flows."""

    attr = ""

    def wizard(self, session):
        return getattr(session, self.attr)

    def reset(self, session) -> None:
        raise NotImplementedError

    def save(self, session, wizard) -> None:
        raise NotImplementedError

    def submit(self, session, value):
        wizard = self.wizard(session)
        step = wizard.submit(value)
        if step.target is Terminal.EXIT:
            self.reset(session)
            session.home()
        elif step.target is Terminal.LEAVE:
            self.reset(session)
            session.back()
        elif step.target is Terminal.SAVE:
            self.save(session, wizard)

    def escape(self, session):
        self.reset(session)
        session.back()

    def prompt(self, session):
        wizard = self.wizard(session)
        spec = wizard.spec
        return Prompt("", spec.placeholder, spec.limit, wizard.buffer)

    def error_lines(self, wizard):
        if wizard.error:
            return [("", ""), ("danger", wizard.error)]
        return []


class NoteWizardView(WizardHandler):
    attr = "note_wizard"

    def reset(self, session):
        session.note_wizard = session.new_note_wizard()

    def save(self, session, wizard):
        note = Note(
            content=wizard.content,
            account_id=wizard.account_id,
            creator=session.settings.name,
            created_at=session.now(),
        )
        try:
            session.store.create_note(note)
        except StorageError as exc:
            logger.warning("save note failed: %s", exc)
            wizard.error = str(exc)
            return
        message = "Note saved"
        if wizard.linked is not None and wizard.linked.name:
            message = f"Note saved for {wizard.linked.name}"
        self.reset(session)
        session.complete(message)

    def render(self, session):
        wizard = session.note_wizard
        lines = [("title", "New Note")]
        if wizard.stage.value == "content":
            lines.append(("faint", "Type note text and press enter. '/' to cancel."))
            if wizard.preset is not None:
                lines.append(("faint", f"Will link to {wizard.preset.name}"))
            lines.append(("", ""))
        else:
            lines.append(("secondary", wizard.spec.label))
        return lines + self.error_lines(wizard)


class EventWizardView(WizardHandler):
    attr = "event_wizard"

    def reset(self, session):
        session.event_wizard = session.new_event_wizard()

    def save(self, session, wizard):
        now = session.now()
        try:
            event_time = wizard.event_time(now)
        except ValueError:
            wizard.error = "invalid schedule format"
            return
        event = Event(
            title=wizard.title,
            details=wizard.details,
            event_time=event_time,
            account_id=wizard.account_id,
            creator=session.settings.name,
            created_at=now,
        )
        try:
            session.store.create_event(event)
        except StorageError as exc:
            logger.warning("save event failed: %s", exc)
            wizard.error = str(exc)
            return
        message = "Event created"
        if wizard.linked is not None and wizard.linked.name:
            message = f"Event created for {wizard.linked.name}"
        self.reset(session)
        session.complete(message)

    def render(self, session):
        wizard = session.event_wizard
        lines = [("title", "New Event"), ("secondary", wizard.spec.label)]
        if wizard.stage.value == "title" and wizard.preset is not None:
            lines.append(("faint", f"Will link to {wizard.preset.name}"))
        lines.append(("faint", "'/' goes back, 'exit.' returns home."))
        return lines + self.error_lines(wizard)


class AccountFormView(WizardHandler):
    attr = "account_form"

    def reset(self, session):
        session.account_form = AccountForm()

    def save(self, session, form):
        account = form.build_account()
        try:
            if form.editing:
                saved = session.store.update_account(account)
                message = f"Account '{saved.name}' updated"
            else:
                account.creator = session.settings.name
                account.created_at = session.now()
                saved = session.store.create_account(account)
                message = f"Account '{saved.name}' created"
        except AccountExistsError:
            form.rewind(AccountField.NAME, "An account with that name already exists")
            return
        except StorageError as exc:
            logger.warning("save account failed: %s", exc)
            form.error = str(exc)
            return
        if form.editing:
            session.detail_account = saved
        self.reset(session)
        session.complete(message)

    def render(self, session):
        form = session.account_form
        field = form.fields[form.index]
        lines = [
            ("title", "Edit Account" if form.editing else "Add Account"),
            ("faint", "Enter details. '/' to go back, 'exit.' to cancel."),
            ("", ""),
            ("secondary", f"{form.index + 1}/{len(form.fields)}"),
            ("primary", field.label + ":"),
        ]
        return lines + self.error_lines(form)


class Settings(Handler):
    def submit(self, session, value):
        if self.escaped(session, value):
            return
        choice = normalize(value)
        action = resolve_command(choice, SETTINGS_OPTIONS)
        if action == SETTING_NAME:
            session.settings_buffer = session.settings.name
            session.push(View.SETTINGS_EDIT_NAME)
        elif action == SETTING_TIMEZONE:
            session.settings_buffer = session.settings.timezone
            session.push(View.SETTINGS_EDIT_TIMEZONE)
        elif action == ACTION_BACK:
            session.back()
        else:
            session.error = "Choose 1 or 2 to edit settings"

    def prompt(self, session):
        return Prompt("> ", "1=Name  2=Timezone  3=Back", 40)

    def render(self, session):
        lines = header_lines(session)
        lines += [
            ("secondary", "1. Update name"),
            ("secondary", "2. Update timezone"),
            ("faint", "3. Back"),
        ]
        return lines + messages(session)


def header_lines(session) -> list[tuple[str, str]]:
    return [
        ("title", "Settings & Help"),
        ("faint", "'/' goes back, 'exit.' returns home."),
        ("", ""),
        ("secondary", "Name: " + session.settings.name),
        ("secondary", "Timezone: " + session.settings.timezone),
        ("", ""),
        ("highlight", "Shortcuts"),
        ("help_value", "/  →  Back"),
        ("help_value", "exit.  →  Main menu"),
        ("help_value", "Ctrl+C  →  Quit"),
        ("", ""),
    ]


class SettingsEdit(Handler):
    def __init__(self, field: str, label: str, empty_error: str, done: str):
        self.field = field
        self.label = label
        self.empty_error = empty_error
        self.done = done

    def submit(self, session, value):
        if self.escaped(session, value):
            return
        value = value.strip()
        session.settings_buffer = value
        if not value:
            session.error = self.empty_error
            return
        try:
            if self.field == "timezone":
                session.settings.set_timezone(value)
            else:
                session.settings.set_name(value)
        except InvalidTimezoneError:
            session.error = "Invalid timezone"
            return
        except ConfigError as exc:
            logger.warning("saving settings failed: %s", exc)
            session.error = str(exc)
            return
        session.back()
        session.info = self.done

    def prompt(self, session):
        return Prompt("", self.label, 64, session.settings_buffer)

    def render(self, session):
        lines = header_lines(session)
        lines.append(("secondary", self.label))
        return lines + messages(session)


HANDLERS = {
    View.MAIN_MENU: MainMenu(),
    View.DASHBOARD: Dashboard(),
    View.ACCOUNTS: Accounts(),
    View.ACCOUNT_DETAIL: AccountDetail(),
    View.ACCOUNT_FORM: AccountFormView(),
    View.CREATE_CHOICE: CreateChoice(),
    View.NOTE_WIZARD: NoteWizardView(),
    View.EVENT_WIZARD: EventWizardView(),
    View.SETTINGS: Settings(),
    View.SETTINGS_EDIT_NAME: SettingsEdit(
        "name", "Enter new name:", "Name cannot be empty", "Name updated"
    ),
    View.SETTINGS_EDIT_TIMEZONE: SettingsEdit(
        "timezone",
        "Enter timezone (e.g. America/New_York):",
        "Timezone cannot be empty",
        "Timezone updated",
    ),
}
