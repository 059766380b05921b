"""Semantic roles to display styling.

Screens describe lines by role only; the curses and questionary front ends
look the role up here. Nothing in this module holds state.
"""
import curses

# role: (xterm-256 colour, hex equivalent, bold, underline)
ROLES = {
    "title": (213, "#ff87ff", True, True),
    "subtitle": (111, "#87afff", True, False),
    "accent": (219, "#ffafff", True, False),
    "primary": (81, "#5fd7ff", False, False),
    "secondary": (249, "#b2b2b2", False, False),
    "success": (42, "#00d787", True, False),
    "warning": (227, "#ffff5f", True, False),
    "danger": (203, "#ff5f5f", True, False),
    "faint": (243, "#767676", False, False),
    "highlight": (205, "#ff5faf", True, False),
    "border": (240, "#585858", False, False),
    "help_key": (117, "#87d7ff", True, False),
    "help_value": (249, "#b2b2b2", False, False),
}

DEFAULT_ROLE = "secondary"

# 8-colour fallbacks for terminals without 256-colour support
BASIC_COLORS = {
    "title": curses.COLOR_MAGENTA,
    "subtitle": curses.COLOR_BLUE,
    "accent": curses.COLOR_MAGENTA,
    "primary": curses.COLOR_CYAN,
    "secondary": curses.COLOR_WHITE,
    "success": curses.COLOR_GREEN,
    "warning": curses.COLOR_YELLOW,
    "danger": curses.COLOR_RED,
    "faint": curses.COLOR_WHITE,
    "highlight": curses.COLOR_MAGENTA,
    "border": curses.COLOR_WHITE,
    "help_key": curses.COLOR_CYAN,
    "help_value": curses.COLOR_WHITE,
}


def role_names() -> list[str]:
    return list(ROLES)


def pair_number(role: str) -> int:
    """Curses colour pair reserved for ``role`` (pair 0 is the terminal default)."""
    names = role_names()
    if role not in ROLES:
        role = DEFAULT_ROLE
    return names.index(role) + 1


def color_for(role: str, colors: int) -> int:
    """Foreground colour for ``role`` given the terminal's colour count."""
    spec = ROLES.get(role, ROLES[DEFAULT_ROLE])
    if colors >= 256:
        return spec[0]
    return BASIC_COLORS.get(role, curses.COLOR_WHITE)


def text_attrs(role: str) -> int:
    """Bold/underline/dim attributes for ``role`` without the colour pair."""
    _, _, bold, underline = ROLES.get(role, ROLES[DEFAULT_ROLE])
    attr = curses.A_NORMAL
    if bold:
        attr |= curses.A_BOLD
    if underline:
        attr |= curses.A_UNDERLINE
    if role in ("faint", "border"):
        attr |= curses.A_DIM
    return attr


def prompt_style(role: str) -> str:
    """prompt_toolkit style string, as accepted by ``questionary.print``."""
    _, hex_color, bold, underline = ROLES.get(role, ROLES[DEFAULT_ROLE])
    parts = [f"fg:{hex_color}"]
    if bold:
        parts.append("bold")
    if underline:
        parts.append("underline")
    return " ".join(parts)
