"""Multi-stage data entry.

Every form in crmterm (account create/edit, new note, new event) is a
:class:`Wizard`: an ordered set of stages, each owning a text buffer, plus a
transition table mapping ``(stage, outcome)`` to the next stage or to one of
the terminal markers in :class:`Terminal`. The wizard never touches storage
for saving; the session reads the buffers once :attr:`Terminal.SAVE` is
reached and reports failures back through :attr:`Wizard.error`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Callable

from .models import Account
from .resolve import is_back_command, is_exit_command
from .storage import NotFoundError, StorageError

SCHEDULE_FORMAT = "%Y-%m-%d %H:%M"
YES_ANSWERS = ("y", "yes")
NO_ANSWERS = ("n", "no", "")


class Outcome(Enum):
    SUBMIT = "submit"
    LINKED = "linked"  # accepted, and a preset account makes association moot
    YES = "yes"
    NO = "no"
    BACK = "back"


class Terminal(Enum):
    SAVE = "save"
    LEAVE = "leave"  # backed out of the first stage
    EXIT = "exit"  # universal exit token


class StageKind(Enum):
    TEXT = "text"
    CONFIRM = "confirm"
    ACCOUNT = "account"


@dataclass(frozen=True)
class StageSpec:
    key: Enum
    label: str
    placeholder: str
    limit: int
    required: bool = False
    required_error: str = "This field is required"
    kind: StageKind = StageKind.TEXT
    validator: Callable[[str], str | None] | None = None


@dataclass(frozen=True)
class Step:
    """Result of one submission: where the wizard ended up."""

    target: Enum
    outcome: Outcome | None = None

    @property
    def terminal(self) -> bool:
        return isinstance(self.target, Terminal)


def linear_transitions(keys) -> dict:
    """Transitions for a straight run of stages ending in a save."""
    keys = list(keys)
    table = {}
    for i, key in enumerate(keys):
        table[(key, Outcome.SUBMIT)] = keys[i + 1] if i + 1 < len(keys) else Terminal.SAVE
        table[(key, Outcome.BACK)] = keys[i - 1] if i > 0 else Terminal.LEAVE
    return table


def parse_schedule(value: str, location: tzinfo) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM`` as wall time in ``location``."""
    return datetime.strptime(value.strip(), SCHEDULE_FORMAT).replace(tzinfo=location)


class Wizard:
    """Generic stage machine driven by submitted lines of text."""

    transitions: dict = {}

    def __init__(self, stages, transitions=None, preset: Account | None = None):
        self.stages = {spec.key: spec for spec in stages}
        self.order = [spec.key for spec in stages]
        if transitions is not None:
            self.transitions = transitions
        self.stage = self.order[0]
        self.buffers = {key: "" for key in self.order}
        self.preset = preset
        self.linked: Account | None = preset
        self.error = ""

    @property
    def spec(self) -> StageSpec:
        return self.stages[self.stage]

    @property
    def buffer(self) -> str:
        return self.buffers[self.stage]

    def value(self, key) -> str:
        return self.buffers[key].strip()

    def submit(self, raw: str) -> Step:
        """Feed one line of input to the current stage."""
        spec = self.spec
        value = (raw or "").strip()[: spec.limit]
        if is_exit_command(value):
            return Step(Terminal.EXIT)
        if is_back_command(value):
            return self._move(Outcome.BACK)

        if spec.kind is StageKind.CONFIRM:
            self.buffers[self.stage] = ""
            answer = value.lower()
            if answer in YES_ANSWERS:
                return self._move(Outcome.YES)
            if answer in NO_ANSWERS:
                self.linked = None
                return self._move(Outcome.NO)
            self.error = "Please answer y or n"
            return Step(self.stage)

        self.buffers[self.stage] = value
        if spec.required and not value:
            self.error = spec.required_error
            return Step(self.stage)
        problem = self.check(spec, value)
        if problem:
            self.error = problem
            return Step(self.stage)

        outcome = Outcome.SUBMIT
        if self.preset is not None and (self.stage, Outcome.LINKED) in self.transitions:
            outcome = Outcome.LINKED
        return self._move(outcome)

    def check(self, spec: StageSpec, value: str) -> str | None:
        """Stage-specific validation; a returned string is shown as the error."""
        if spec.validator is not None and value:
            return spec.validator(value)
        return None

    def _move(self, outcome: Outcome) -> Step:
        target = self.transitions[(self.stage, outcome)]
        self.error = ""
        if not isinstance(target, Terminal):
            self.stage = target
        return Step(target, outcome)

    def rewind(self, key, error: str = "") -> None:
        """Put the cursor back on ``key``; its buffer is left untouched."""
        self.stage = key
        self.error = error


# Notes and events share the "associate with an account?" tail.

class NoteStage(Enum):
    CONTENT = "content"
    ASSOCIATE_PROMPT = "associate-prompt"
    ASSOCIATE_CHOOSE = "associate-choose"


class EventStage(Enum):
    TITLE = "title"
    DETAILS = "details"
    SCHEDULE = "schedule"
    ASSOCIATE_PROMPT = "associate-prompt"
    ASSOCIATE_CHOOSE = "associate-choose"


NOTE_TRANSITIONS = {
    (NoteStage.CONTENT, Outcome.SUBMIT): NoteStage.ASSOCIATE_PROMPT,
    (NoteStage.CONTENT, Outcome.LINKED): Terminal.SAVE,
    (NoteStage.CONTENT, Outcome.BACK): Terminal.LEAVE,
    (NoteStage.ASSOCIATE_PROMPT, Outcome.YES): NoteStage.ASSOCIATE_CHOOSE,
    (NoteStage.ASSOCIATE_PROMPT, Outcome.NO): Terminal.SAVE,
    (NoteStage.ASSOCIATE_PROMPT, Outcome.BACK): NoteStage.CONTENT,
    (NoteStage.ASSOCIATE_CHOOSE, Outcome.SUBMIT): Terminal.SAVE,
    (NoteStage.ASSOCIATE_CHOOSE, Outcome.BACK): NoteStage.ASSOCIATE_PROMPT,
}

EVENT_TRANSITIONS = {
    (EventStage.TITLE, Outcome.SUBMIT): EventStage.DETAILS,
    (EventStage.TITLE, Outcome.BACK): Terminal.LEAVE,
    (EventStage.DETAILS, Outcome.SUBMIT): EventStage.SCHEDULE,
    (EventStage.DETAILS, Outcome.BACK): EventStage.TITLE,
    (EventStage.SCHEDULE, Outcome.SUBMIT): EventStage.ASSOCIATE_PROMPT,
    (EventStage.SCHEDULE, Outcome.LINKED): Terminal.SAVE,
    (EventStage.SCHEDULE, Outcome.BACK): EventStage.DETAILS,
    (EventStage.ASSOCIATE_PROMPT, Outcome.YES): EventStage.ASSOCIATE_CHOOSE,
    (EventStage.ASSOCIATE_PROMPT, Outcome.NO): Terminal.SAVE,
    (EventStage.ASSOCIATE_PROMPT, Outcome.BACK): EventStage.SCHEDULE,
    (EventStage.ASSOCIATE_CHOOSE, Outcome.SUBMIT): Terminal.SAVE,
    (EventStage.ASSOCIATE_CHOOSE, Outcome.BACK): EventStage.ASSOCIATE_PROMPT,
}


def _associate_stages(prompt_key, choose_key):
    return [
        StageSpec(
            prompt_key,
            "Associate with an account? (y/n)",
            "Associate with account? (y/n)",
            5,
            kind=StageKind.CONFIRM,
        ),
        StageSpec(
            choose_key,
            "Enter account name (blank to skip)",
            "Type account name",
            96,
            kind=StageKind.ACCOUNT,
        ),
    ]


class AssociatingWizard(Wizard):
    """Wizard whose tail links the record to an account found by exact name."""

    def __init__(self, stages, lookup=None, preset: Account | None = None):
        super().__init__(stages, preset=preset)
        self.lookup = lookup

    def check(self, spec: StageSpec, value: str) -> str | None:
        if spec.kind is not StageKind.ACCOUNT:
            return super().check(spec, value)
        if not value:
            self.linked = None
            return None
        return self._lookup_account(value)

    def _lookup_account(self, value: str) -> str | None:
        if self.lookup is None:
            return "Account lookup unavailable"
        try:
            self.linked = self.lookup(value)
        except NotFoundError:
            self.linked = None
            return "Account not found"
        except StorageError as exc:
            self.linked = None
            return str(exc)
        return None

    @property
    def account_id(self) -> int | None:
        return self.linked.id if self.linked is not None else None


class NoteWizard(AssociatingWizard):
    transitions = NOTE_TRANSITIONS

    def __init__(self, lookup=None, preset: Account | None = None):
        stages = [
            StageSpec(
                NoteStage.CONTENT,
                "Note",
                "Note details",
                256,
                required=True,
                required_error="Note cannot be empty",
            ),
            *_associate_stages(NoteStage.ASSOCIATE_PROMPT, NoteStage.ASSOCIATE_CHOOSE),
        ]
        super().__init__(stages, lookup=lookup, preset=preset)

    @property
    def content(self) -> str:
        return self.value(NoteStage.CONTENT)


class EventWizard(AssociatingWizard):
    transitions = EVENT_TRANSITIONS

    def __init__(self, location: tzinfo, lookup=None, preset: Account | None = None):
        self.location = location
        stages = [
            StageSpec(
                EventStage.TITLE,
                "Event title:",
                "Event title",
                96,
                required=True,
                required_error="Title is required",
            ),
            StageSpec(EventStage.DETAILS, "Details (optional):", "Details (optional)", 256),
            StageSpec(
                EventStage.SCHEDULE,
                "Schedule time (YYYY-MM-DD HH:MM, blank = now):",
                "YYYY-MM-DD HH:MM (blank = now)",
                32,
                validator=self._check_schedule,
            ),
            *_associate_stages(EventStage.ASSOCIATE_PROMPT, EventStage.ASSOCIATE_CHOOSE),
        ]
        super().__init__(stages, lookup=lookup, preset=preset)

    def _check_schedule(self, value: str) -> str | None:
        try:
            parse_schedule(value, self.location)
        except ValueError:
            return "Use format YYYY-MM-DD HH:MM"
        return None

    @property
    def title(self) -> str:
        return self.value(EventStage.TITLE)

    @property
    def details(self) -> str:
        return self.value(EventStage.DETAILS)

    def event_time(self, now: datetime) -> datetime:
        """Scheduled time, or ``now`` when the schedule was left blank."""
        raw = self.value(EventStage.SCHEDULE)
        if not raw:
            return now
        return parse_schedule(raw, self.location)


# Accounts

class AccountField(Enum):
    NAME = "name"
    PHONE = "phone"
    ADDRESS = "address"
    EMAIL = "email"
    DECISION_MAKER = "decision_maker"


ACCOUNT_LABELS = {
    AccountField.NAME: "Account name",
    AccountField.PHONE: "Phone",
    AccountField.ADDRESS: "Address",
    AccountField.EMAIL: "Email",
    AccountField.DECISION_MAKER: "Decision maker",
}

ACCOUNT_TRANSITIONS = linear_transitions(AccountField)


@dataclass(frozen=True)
class FormField:
    label: str
    value: str
    required: bool


class AccountForm(Wizard):
    """Create a new account, or edit ``existing`` when one is given."""

    transitions = ACCOUNT_TRANSITIONS

    def __init__(self, existing: Account | None = None):
        stages = [
            StageSpec(
                key,
                ACCOUNT_LABELS[key],
                ACCOUNT_LABELS[key],
                96,
                required=key is AccountField.NAME,
                required_error="Account name is required",
            )
            for key in AccountField
        ]
        super().__init__(stages)
        self.editing = existing is not None
        self.original = existing
        if existing is not None:
            for key in AccountField:
                self.buffers[key] = getattr(existing, key.value) or ""

    @property
    def index(self) -> int:
        return self.order.index(self.stage)

    @property
    def fields(self) -> list[FormField]:
        return [
            FormField(ACCOUNT_LABELS[key], self.buffers[key], self.stages[key].required)
            for key in self.order
        ]

    def build_account(self) -> Account:
        """A fresh, unsaved account carrying the form values.

        When editing, identity and provenance come from the original record;
        the original itself is never modified.
        """
        account = Account(**{key.value: self.value(key) for key in AccountField})
        if self.original is not None:
            account.id = self.original.id
            account.creator = self.original.creator
            account.created_at = self.original.created_at
        return account
