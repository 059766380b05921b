from tests import helpers  # noqa: F401  # ensures project root on sys.path
from crmterm.navigation import ROOT, NavigationStack, View


def assert_invariant(nav):
    assert nav.active not in nav.history


def test_starts_at_root():
    nav = NavigationStack()
    assert nav.active is ROOT is View.MAIN_MENU
    assert len(nav) == 0


def test_push_and_pop():
    nav = NavigationStack()
    nav.push(View.ACCOUNTS)
    nav.push(View.ACCOUNT_DETAIL)
    assert nav.history == [View.MAIN_MENU, View.ACCOUNTS]
    assert nav.pop() is View.ACCOUNTS
    assert nav.pop() is View.MAIN_MENU
    assert_invariant(nav)


def test_pop_on_empty_activates_root():
    nav = NavigationStack()
    nav.push(View.SETTINGS)
    nav.pop()
    assert nav.pop() is ROOT
    assert nav.active is ROOT


def test_reset_to_root_clears_history():
    nav = NavigationStack()
    for view in (View.ACCOUNTS, View.ACCOUNT_DETAIL, View.NOTE_WIZARD):
        nav.push(view)
    nav.reset_to_root()
    assert nav.active is ROOT
    assert nav.history == []


def test_push_active_view_is_noop():
    nav = NavigationStack()
    nav.push(View.DASHBOARD)
    nav.push(View.DASHBOARD)
    assert nav.history == [View.MAIN_MENU]


def test_push_view_already_in_history_unwinds():
    nav = NavigationStack()
    nav.push(View.ACCOUNTS)
    nav.push(View.ACCOUNT_DETAIL)
    nav.push(View.ACCOUNTS)
    assert nav.active is View.ACCOUNTS
    assert nav.history == [View.MAIN_MENU]
    assert_invariant(nav)


def test_replace_does_not_record_current():
    nav = NavigationStack()
    nav.push(View.CREATE_CHOICE)
    nav.replace(View.NOTE_WIZARD)
    assert nav.history == [View.MAIN_MENU]
    assert nav.pop() is View.MAIN_MENU


def test_replace_with_root_keeps_invariant():
    nav = NavigationStack()
    nav.push(View.SETTINGS)
    nav.replace(View.MAIN_MENU)
    assert nav.active is View.MAIN_MENU
    assert_invariant(nav)
