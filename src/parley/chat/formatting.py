"""Role header rendering for transcript turns.

A header is produced from a template containing a fixed placeholder set:

``<TIMESTAMP>``
    ``"[YYYY-MM-DD HH:MM:SS] "`` when timestamps are enabled, else empty.
``<MARKER>``
    The configured role-prefix marker (``"## "`` by default).
``<ROLENAME>``
    The display name of the role (user or model).
``<ROLEPROMPT>``
    The configured suffix (``":"`` by default).

Substitution is literal string replacement in the order above, so a role
name that itself contains placeholder text (for example ``"<ROLEPROMPT>"``)
is expanded again by the later replacement. That is a known limitation and
is left as-is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from ..services.settings import DEFAULT_PREFIX_TEMPLATE, Settings
from .message_model import Role, Turn

__all__ = [
    "PLACEHOLDERS",
    "TIMESTAMP_FORMAT",
    "HeaderFormat",
    "render_template",
    "format_timestamp",
]

PLACEHOLDERS: tuple[str, ...] = ("<TIMESTAMP>", "<MARKER>", "<ROLENAME>", "<ROLEPROMPT>")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_TIMESTAMP_PATTERN = r"(?:\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] )?"


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Replace each known placeholder in ``template`` with ``values[placeholder]``."""

    result = template
    for placeholder in PLACEHOLDERS:
        result = result.replace(placeholder, values.get(placeholder, ""))
    return result


def format_timestamp(moment: datetime) -> str:
    return f"[{moment.strftime(TIMESTAMP_FORMAT)}] "


@dataclass(slots=True, frozen=True)
class HeaderFormat:
    """Display configuration for role header lines."""

    user_name: str = "User"
    model_name: str = "Gemini"
    marker: str = "## "
    role_prompt: str = ":"
    template: str = DEFAULT_PREFIX_TEMPLATE
    timestamps: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "HeaderFormat":
        return cls(
            user_name=settings.user_role_name,
            model_name=settings.model_role_name,
            marker=settings.role_marker,
            role_prompt=settings.role_prompt,
            template=settings.prefix_template or DEFAULT_PREFIX_TEMPLATE,
            timestamps=settings.timestamps_enabled,
        )

    def role_name(self, role: Role) -> str:
        return self.user_name if role is Role.USER else self.model_name

    def header(self, role: Role, moment: datetime | None = None) -> str:
        """Return the header line for ``role``, stamped with ``moment`` when enabled."""

        stamp = ""
        if self.timestamps:
            stamp = format_timestamp(moment or datetime.now())
        return render_template(
            self.template,
            {
                "<TIMESTAMP>": stamp,
                "<MARKER>": self.marker,
                "<ROLENAME>": self.role_name(role),
                "<ROLEPROMPT>": self.role_prompt,
            },
        )

    def format_turn(self, turn: Turn) -> list[str]:
        return [self.header(turn.role, turn.timestamp), *turn.body]

    def header_pattern(self, role: Role) -> re.Pattern[str]:
        """Regex matching header lines of ``role`` with or without a timestamp."""

        body = render_template(
            self.template,
            {
                "<TIMESTAMP>": "\x00",
                "<MARKER>": self.marker,
                "<ROLENAME>": self.role_name(role),
                "<ROLEPROMPT>": self.role_prompt,
            },
        )
        pattern = _TIMESTAMP_PATTERN.join(re.escape(part) for part in body.split("\x00"))
        return re.compile(f"^{pattern}$")
