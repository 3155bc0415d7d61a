"""
Terminal registry

WHY: Each POS terminal owns exactly one in-memory session at a time, with its
own autosave coordinator. The HTTP layer looks sessions up by terminal id.

Sessions live in process memory; a restarted server recovers carts through
their autosaved drafts (settlement_service.resume_draft).
"""

from __future__ import annotations

import threading

from flask import Flask, current_app, has_app_context

from . import settlement_service
from .autosave_service import AutosaveCoordinator, DEFAULT_DEBOUNCE_SECONDS
from .pos_session import PosSession


class TerminalRegistry:
    def __init__(self, app: Flask | None = None, timer_factory=threading.Timer):
        self.app = None
        self.timer_factory = timer_factory
        self._sessions: dict[str, PosSession] = {}
        self._autosavers: dict[str, AutosaveCoordinator] = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.app = app
        app.extensions["ledgerpos_terminals"] = self

    def _write_draft(self, snapshot: dict):
        if has_app_context() and current_app._get_current_object() is self.app:
            return settlement_service.save_draft(snapshot)
        # Timer thread, outside any request
        with self.app.app_context():
            return settlement_service.save_draft(snapshot)

    def get(self, terminal_id: str, branch_id: str | None = None) -> PosSession:
        """Session for a terminal, created on first use."""
        with self._lock:
            session = self._sessions.get(terminal_id)
            if session is None:
                config = self.app.config if self.app else {}
                session = PosSession(
                    terminal_id=terminal_id,
                    branch_id=branch_id or config.get("DEFAULT_BRANCH_ID", "MAIN"),
                )
                self._autosavers[terminal_id] = AutosaveCoordinator(
                    session,
                    self._write_draft,
                    debounce_seconds=config.get("AUTOSAVE_DEBOUNCE_SECONDS", DEFAULT_DEBOUNCE_SECONDS),
                    timer_factory=self.timer_factory,
                )
                self._sessions[terminal_id] = session
            elif branch_id and not session.lines:
                session.branch_id = branch_id
            return session

    def autosaver(self, terminal_id: str) -> AutosaveCoordinator | None:
        return self._autosavers.get(terminal_id)

    def committed(self, terminal_id: str) -> None:
        """Drop any pending autosave after a successful checkout."""
        autosaver = self._autosavers.get(terminal_id)
        if autosaver:
            autosaver.cancel()

    def abandon(self, terminal_id: str) -> None:
        """
        Discard a terminal's cart.

        The pending autosave is cancelled; drafts already written are kept
        as the durable record of the abandoned sale.
        """
        autosaver = self._autosavers.get(terminal_id)
        if autosaver:
            autosaver.cancel()
        session = self._sessions.get(terminal_id)
        if session:
            session.reset()

    def autosave_statuses(self) -> dict[str, dict]:
        with self._lock:
            return {tid: autosaver.status() for tid, autosaver in self._autosavers.items()}

    def clear(self) -> None:
        with self._lock:
            for autosaver in self._autosavers.values():
                autosaver.cancel()
            self._sessions.clear()
            self._autosavers.clear()


terminals = TerminalRegistry()
