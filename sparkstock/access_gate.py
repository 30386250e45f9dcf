"""Shared-password gate for mutating actions.

Policy only; presenting the prompt is up to the UI, which reads
``SessionContext.prompt`` / ``auth_error``.

    require_auth(action)
        unlocked      -> run action now
        no secret set -> stash action, open SET_SECRET prompt
        otherwise     -> stash action, open CHALLENGE prompt

A correct credential unlocks for the rest of the session and runs the
stashed action exactly once. A wrong one keeps the prompt open, clears the
input and flags the error. No lockout or backoff.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

from .config_store import ConfigStore
from .session import Prompt, SessionContext

logger = logging.getLogger("sparkstock.access_gate")

EMPTY_SECRET = "Password cannot be empty."
SECRET_MISMATCH = "Passwords don't match."
SECRET_SAVE_FAILED = "Failed to save password."


async def _run(action: Callable[[], Any]) -> Any:
    result = action()
    if inspect.isawaitable(result):
        result = await result
    return result


class AccessGate:
    def __init__(self, config: ConfigStore, session: SessionContext):
        self.config = config
        self.session = session

    async def load(self) -> None:
        """Read whether a secret exists. Unlock state is never restored."""
        self.session.has_secret = bool(await self.config.get_secret())

    @property
    def unlocked(self) -> bool:
        return self.session.unlocked

    async def require_auth(self, action: Callable[[], Any]) -> Prompt:
        """Run ``action`` if unlocked, otherwise stash it and open a prompt."""
        s = self.session
        if s.unlocked:
            await _run(action)
            return Prompt.NONE
        s.pending_action = action
        s.credential_input = ""
        s.auth_error = False
        s.prompt = Prompt.CHALLENGE if s.has_secret else Prompt.SET_SECRET
        return s.prompt

    async def submit(self, credential: str) -> bool:
        s = self.session
        stored = await self.config.get_secret()
        if stored and credential == stored:
            s.unlocked = True
            s.close_prompt()
            logger.info("Editing unlocked")
            await self._run_pending()
            return True
        s.auth_error = True
        s.credential_input = ""
        logger.info("Credential rejected")
        return False

    async def set_secret(self, secret: str, confirm: str) -> bool:
        s = self.session
        if not secret.strip():
            s.secret_error = EMPTY_SECRET
            return False
        if secret != confirm:
            s.secret_error = SECRET_MISMATCH
            return False
        outcome = await self.config.set_secret(secret)
        if not outcome.ok:
            s.secret_error = SECRET_SAVE_FAILED
            return False
        s.has_secret = True
        s.unlocked = True
        s.close_prompt()
        logger.info("Password set; editing unlocked")
        await self._run_pending()
        return True

    async def remove_secret(self) -> None:
        await self.config.set_secret("")
        self.session.has_secret = False
        self.session.unlocked = False
        logger.info("Password removed")

    def lock(self) -> None:
        self.session.unlocked = False
        self.session.pending_action = None
        logger.info("Editing locked")

    def toggle_lock(self) -> Prompt:
        """Behaviour of the lock button."""
        s = self.session
        if not s.has_secret:
            s.prompt = Prompt.SET_SECRET
            return s.prompt
        if s.unlocked:
            self.lock()
            return Prompt.NONE
        s.pending_action = None
        s.credential_input = ""
        s.auth_error = False
        s.prompt = Prompt.CHALLENGE
        return s.prompt

    def cancel(self) -> None:
        self.session.pending_action = None
        self.session.close_prompt()

    async def _run_pending(self) -> None:
        action, self.session.pending_action = self.session.pending_action, None
        if action is not None:
            await _run(action)
