"""Line-by-line front end built on questionary.

Used with ``crmterm --plain`` where a full-screen curses UI is not wanted
(pipes, dumb terminals, screen readers). Esc has no meaning here; ``/`` and
``exit.`` still navigate, and Ctrl+C quits.
"""
from __future__ import annotations

import questionary

from . import theme


def show(lines) -> None:
    for role, text in lines:
        if text:
            questionary.print(text, style=theme.prompt_style(role))
        else:
            questionary.print("")


def ask(prompt) -> str | None:
    """Ask for one line; ``None`` means the user cancelled."""
    message = prompt.label.strip() or ">"
    answer = questionary.text(
        message,
        default=prompt.value,
        instruction=prompt.placeholder,
        qmark="",
    ).ask()
    if answer is None:
        return None
    return answer[: prompt.limit]


def main(session) -> None:
    while session.running:
        questionary.print("")
        show(session.render())
        answer = ask(session.prompt())
        if answer is None:
            session.quit()
            break
        session.submit(answer)
