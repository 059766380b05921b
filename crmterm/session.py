"""Interactive session state and input dispatch.

A :class:`Session` owns everything that changes while the program runs: the
navigation stack, the wizard buffers, the cached lists shown on screen and the
status messages. Front ends feed it whole lines with :meth:`Session.submit`
(or :meth:`Session.escape` for the Esc key) and draw whatever
:meth:`Session.render` returns. The per-screen behaviour lives in
:mod:`crmterm.views`; the session only looks the active view's handler up.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .navigation import NavigationStack, View
from .services import shape_activity
from .storage import StorageError
from .wizard import AccountForm, EventWizard, NoteWizard

logger = logging.getLogger(__name__)

DASHBOARD_EVENTS = "events"
DASHBOARD_ACTIVITY = "activity"
FEED_LIMIT = 50


@dataclass(frozen=True)
class Prompt:
    """What the input line should look like for the active view."""

    label: str
    placeholder: str
    limit: int
    value: str = ""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session:
    def __init__(self, store, settings, clock=utcnow):
        from .views import HANDLERS

        self.store = store
        self.settings = settings
        self.clock = clock
        self.handlers = HANDLERS
        self.nav = NavigationStack()
        self.running = True
        self.show_splash = True
        self.info = ""
        self.error = ""

        self.accounts = []
        self.filtered = []
        self.account_filter = ""

        self.dashboard_view = DASHBOARD_EVENTS
        self.events = []
        self.activity = []

        self.detail_account = None
        self.detail_activity = []
        self.detail_show_activity = False
        self.detail_error = ""

        self.settings_buffer = ""

        self.account_form = AccountForm()
        self.note_wizard = self.new_note_wizard()
        self.event_wizard = self.new_event_wizard()

        self.refresh_dashboard()
        self.refresh_accounts()

    # Dispatch
    @property
    def view(self) -> View:
        return self.nav.active

    @property
    def handler(self):
        return self.handlers[self.view]

    def submit(self, value: str) -> None:
        """Process one submitted line on the active view."""
        self.handler.submit(self, value or "")

    def escape(self) -> None:
        self.handler.escape(self)

    def render(self) -> list[tuple[str, str]]:
        return self.handler.render(self)

    def prompt(self) -> Prompt:
        return self.handler.prompt(self)

    def quit(self) -> None:
        self.running = False

    # Navigation
    def push(self, view: View) -> None:
        self.reset_messages()
        self.nav.push(view)

    def replace(self, view: View) -> None:
        self.error = ""
        self.nav.replace(view)

    def back(self) -> None:
        self.error = ""
        self.nav.pop()

    def home(self) -> None:
        self.error = ""
        self.nav.reset_to_root()

    def reset_messages(self) -> None:
        self.info = ""
        self.error = ""

    def complete(self, message: str) -> None:
        """Leave a finished wizard and reload what the destination shows."""
        self.back()
        self.info = message
        if self.view is View.ACCOUNT_DETAIL:
            self.refresh_detail_account()
            self.load_account_activity()
        self.refresh_accounts()
        self.refresh_dashboard()

    # Time
    def location(self):
        return self.settings.location()

    def now(self) -> datetime:
        return self.clock().astimezone(self.location())

    # Wizards
    def new_note_wizard(self, preset=None) -> NoteWizard:
        return NoteWizard(lookup=self.store.account_by_name, preset=preset)

    def new_event_wizard(self, preset=None) -> EventWizard:
        return EventWizard(
            self.location(), lookup=self.store.account_by_name, preset=preset
        )

    # Data loading
    def refresh_accounts(self) -> None:
        try:
            self.accounts = self.store.list_accounts()
        except StorageError as exc:
            logger.warning("load accounts failed: %s", exc)
            self.error = f"load accounts: {exc}"
            return
        if not self.account_filter.strip():
            self.filtered = self.accounts
            return
        try:
            self.filtered = self.store.search_accounts(self.account_filter)
        except StorageError as exc:
            logger.warning("search accounts failed: %s", exc)
            self.error = f"search accounts: {exc}"

    def refresh_dashboard(self) -> None:
        try:
            self.events = self.store.list_events()
        except StorageError as exc:
            logger.warning("load events failed: %s", exc)
            self.error = f"load events: {exc}"
        try:
            self.activity = shape_activity(
                self.store.list_activities(FEED_LIMIT), FEED_LIMIT
            )
        except StorageError as exc:
            logger.warning("load activity failed: %s", exc)
            self.error = f"load activity: {exc}"

    def open_account_detail(self, account) -> None:
        self.detail_account = account
        self.detail_show_activity = False
        self.detail_activity = []
        self.detail_error = ""
        self.refresh_detail_account()
        self.push(View.ACCOUNT_DETAIL)

    def refresh_detail_account(self) -> None:
        if self.detail_account is None or self.detail_account.id is None:
            return
        try:
            self.detail_account = self.store.account_by_id(self.detail_account.id)
        except StorageError as exc:
            logger.warning("reload account failed: %s", exc)
            self.detail_error = f"load account: {exc}"

    def load_account_activity(self) -> None:
        if self.detail_account is None or self.detail_account.id is None:
            self.detail_activity = []
            return
        try:
            rows = self.store.list_account_activity(
                self.detail_account.id, FEED_LIMIT
            )
        except StorageError as exc:
            logger.warning("load account activity failed: %s", exc)
            self.detail_error = f"load activity: {exc}"
            return
        self.detail_activity = shape_activity(rows, FEED_LIMIT)
        self.detail_error = ""
