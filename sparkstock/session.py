"""Per-session mutable state.

Created when the engine is constructed and discarded with it. Nothing here
is persisted.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .edit_buffer import EditBuffer


class Prompt(str, Enum):
    """Which credential prompt is open, if any."""

    NONE = "none"
    CHALLENGE = "challenge"
    SET_SECRET = "set_secret"


@dataclass
class SessionContext:
    edits: EditBuffer = field(default_factory=EditBuffer)
    unlocked: bool = False
    has_secret: bool = False
    pending_action: Callable[[], Any] | None = None
    prompt: Prompt = Prompt.NONE
    auth_error: bool = False
    secret_error: str = ""
    credential_input: str = ""

    def close_prompt(self) -> None:
        self.prompt = Prompt.NONE
        self.auth_error = False
        self.secret_error = ""
        self.credential_input = ""
