from datetime import datetime, timezone
from enum import Enum
from zoneinfo import ZoneInfo

import pytest

from tests.helpers import FakeAccount
from crmterm.models import Account
from crmterm.storage import NotFoundError, StorageError
from crmterm.wizard import (
    ACCOUNT_TRANSITIONS,
    EVENT_TRANSITIONS,
    NOTE_TRANSITIONS,
    AccountField,
    AccountForm,
    EventStage,
    EventWizard,
    NoteStage,
    NoteWizard,
    Outcome,
    StageKind,
    StageSpec,
    Terminal,
    Wizard,
    linear_transitions,
)

ACME = FakeAccount("Acme", 7)

VALID = {
    NoteStage.CONTENT: "Call back",
    NoteStage.ASSOCIATE_CHOOSE: "",
    EventStage.TITLE: "Demo",
    EventStage.DETAILS: "",
    EventStage.SCHEDULE: "2024-05-01 09:30",
    EventStage.ASSOCIATE_CHOOSE: "",
    AccountField.NAME: "Acme",
    AccountField.PHONE: "",
    AccountField.ADDRESS: "",
    AccountField.EMAIL: "",
    AccountField.DECISION_MAKER: "",
}

TOKENS = {Outcome.YES: "y", Outcome.NO: "n", Outcome.BACK: "/"}


def lookup(name):
    if name.lower() == "acme":
        return ACME
    raise NotFoundError(name)


def build(kind, preset=None):
    if kind == "note":
        return NoteWizard(lookup=lookup, preset=preset)
    if kind == "event":
        return EventWizard(ZoneInfo("UTC"), lookup=lookup, preset=preset)
    return AccountForm()


def drive(wizard, stage, outcome):
    wizard.stage = stage
    if outcome in TOKENS:
        return wizard.submit(TOKENS[outcome])
    return wizard.submit(VALID[stage])


def all_transitions():
    for kind, table in (
        ("note", NOTE_TRANSITIONS),
        ("event", EVENT_TRANSITIONS),
        ("account", ACCOUNT_TRANSITIONS),
    ):
        for (stage, outcome), target in table.items():
            yield pytest.param(kind, stage, outcome, target, id=f"{kind}-{stage.value}-{outcome.value}")


@pytest.mark.parametrize("kind,stage,outcome,target", list(all_transitions()))
def test_every_declared_transition(kind, stage, outcome, target):
    preset = ACME if outcome is Outcome.LINKED else None
    wizard = build(kind, preset)
    step = drive(wizard, stage, outcome)
    assert step.target == target
    assert step.outcome is outcome
    assert wizard.error == ""
    if isinstance(target, Terminal):
        assert step.terminal
        assert wizard.stage == stage
    else:
        assert wizard.stage == target


def test_first_stage_back_leaves():
    for kind in ("note", "event", "account"):
        wizard = build(kind)
        assert wizard.submit("/").target is Terminal.LEAVE
        assert wizard.submit("back").target is Terminal.LEAVE


def test_exit_token_from_any_stage():
    wizard = build("event")
    wizard.submit("Demo")
    step = wizard.submit("EXIT.")
    assert step.target is Terminal.EXIT
    assert wizard.stage is EventStage.DETAILS


def test_exit_token_escapes_blocked_stage():
    wizard = build("note")
    wizard.submit("")
    assert wizard.error == "Note cannot be empty"
    assert wizard.submit("quit").target is Terminal.EXIT


def test_required_fields():
    note = build("note")
    assert note.submit("   ").target is NoteStage.CONTENT
    assert note.error == "Note cannot be empty"

    event = build("event")
    event.submit("")
    assert event.error == "Title is required"

    form = build("account")
    form.submit("")
    assert form.error == "Account name is required"
    assert form.stage is AccountField.NAME


def test_optional_fields_accept_blank():
    wizard = build("event")
    wizard.submit("Demo")
    assert wizard.submit("").target is EventStage.SCHEDULE
    assert wizard.submit("").target is EventStage.ASSOCIATE_PROMPT


def test_back_round_trip_restores_values():
    wizard = build("event")
    wizard.submit("Demo")
    wizard.submit("Bring slides")
    assert wizard.stage is EventStage.SCHEDULE
    wizard.submit("/")
    assert wizard.stage is EventStage.DETAILS
    assert wizard.buffer == "Bring slides"
    wizard.submit(wizard.buffer)
    assert wizard.stage is EventStage.SCHEDULE
    assert wizard.title == "Demo"
    assert wizard.details == "Bring slides"


def test_confirm_rejects_other_answers_until_valid():
    wizard = build("note")
    wizard.submit("Follow up")
    assert wizard.submit("maybe").target is NoteStage.ASSOCIATE_PROMPT
    assert wizard.error == "Please answer y or n"
    wizard.submit("perhaps")
    assert wizard.error == "Please answer y or n"
    assert wizard.submit("YES").target is NoteStage.ASSOCIATE_CHOOSE
    assert wizard.error == ""


def test_blank_confirm_means_no():
    wizard = build("note")
    wizard.submit("Follow up")
    step = wizard.submit("")
    assert step.target is Terminal.SAVE
    assert wizard.account_id is None


def test_unknown_account_stays_on_stage():
    wizard = build("note")
    wizard.submit("Follow up")
    wizard.submit("y")
    step = wizard.submit("Globex")
    assert step.target is NoteStage.ASSOCIATE_CHOOSE
    assert wizard.error == "Account not found"
    assert wizard.buffer == "Globex"
    step = wizard.submit("ACME")
    assert step.target is Terminal.SAVE
    assert wizard.account_id == 7


def test_lookup_storage_error_is_recoverable():
    def broken(name):
        raise StorageError("database is locked")

    wizard = NoteWizard(lookup=broken)
    wizard.submit("Follow up")
    wizard.submit("y")
    wizard.submit("Acme")
    assert wizard.stage is NoteStage.ASSOCIATE_CHOOSE
    assert wizard.error == "database is locked"
    assert wizard.linked is None


def test_blank_account_name_saves_unassociated():
    wizard = build("note")
    wizard.submit("Follow up")
    wizard.submit("y")
    assert wizard.submit("").target is Terminal.SAVE
    assert wizard.linked is None


def test_preset_skips_association():
    wizard = build("note", preset=ACME)
    step = wizard.submit("Follow up")
    assert step.target is Terminal.SAVE
    assert wizard.account_id == 7

    event = build("event", preset=ACME)
    event.submit("Demo")
    event.submit("")
    assert event.submit("").target is Terminal.SAVE
    assert event.linked is ACME


def test_input_truncated_to_limit():
    wizard = build("note")
    wizard.submit("x" * 300)
    assert len(wizard.content) == 256


def test_schedule_validation_and_time():
    loc = ZoneInfo("America/New_York")
    wizard = EventWizard(loc, lookup=lookup)
    wizard.submit("Demo")
    wizard.submit("")
    wizard.submit("tomorrow")
    assert wizard.error == "Use format YYYY-MM-DD HH:MM"
    assert wizard.stage is EventStage.SCHEDULE
    wizard.submit("2024-07-04 15:00")
    when = wizard.event_time(datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert when.tzinfo is loc
    assert when.astimezone(timezone.utc) == datetime(2024, 7, 4, 19, 0, tzinfo=timezone.utc)


def test_blank_schedule_uses_now():
    now = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)
    wizard = build("event")
    assert wizard.event_time(now) == now


def test_account_form_prefills_when_editing():
    existing = Account(
        id=3,
        name="Acme",
        phone="555-0100",
        email=None,
        creator="Dana",
        created_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
    )
    form = AccountForm(existing=existing)
    assert form.editing
    assert form.buffer == "Acme"
    assert [f.value for f in form.fields] == ["Acme", "555-0100", "", "", ""]
    assert form.fields[0].required and not form.fields[1].required

    form.submit("Acme Inc")
    for _ in range(4):
        form.submit(form.buffer)
    account = form.build_account()
    assert account.id == 3
    assert account.name == "Acme Inc"
    assert account.phone == "555-0100"
    assert account.creator == "Dana"
    assert existing.name == "Acme"


def test_account_form_rewind_keeps_value():
    form = AccountForm()
    for value in ("Acme", "", "", "", ""):
        step = form.submit(value)
    assert step.target is Terminal.SAVE
    form.rewind(AccountField.NAME, "An account with that name already exists")
    assert form.index == 0
    assert form.buffer == "Acme"
    assert form.error == "An account with that name already exists"


class Shade(Enum):
    ONLY = "only"


def test_plain_wizard_runs_validator_and_ignores_account_kind():
    stages = [
        StageSpec(
            Shade.ONLY,
            "Colour",
            "Colour",
            16,
            kind=StageKind.ACCOUNT,
            validator=lambda v: None if v in ("red", "blue") else "Pick red or blue",
        )
    ]
    wizard = Wizard(stages, linear_transitions(Shade))
    assert wizard.submit("green").target is Shade.ONLY
    assert wizard.error == "Pick red or blue"
    assert wizard.submit("blue").target is Terminal.SAVE
    assert wizard.linked is None
