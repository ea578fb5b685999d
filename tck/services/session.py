"""
Session context - the per-test operator binding on the SUT.

A session ties an operator identity to every operation issued through it.
Sessions do not nest: opening a new one supersedes the previous session and
any further call through the old value raises ``StaleSessionError`` locally.
Closing sends ``reset`` and is best-effort; a failed reset is logged and
never fails the test.

Usage:
    manager = SessionManager(client, settings)
    with manager.session(settings.operator) as session:
        session.send("createAccount", {"key": key})
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from tck.core.config import Settings, get_settings
from tck.core.exceptions import StaleSessionError
from tck.core.logging import get_logger, session_id_var
from tck.schemas.identity import OperatorIdentity
from tck.schemas.rpc import CallOverrides, OperationRequest, OperationResult
from tck.services.control_plane import ControlPlaneClient

logger = get_logger("session")


@dataclass
class Session:
    """An open SUT session. Pass it to every control-plane call."""

    session_id: str
    operator: OperatorIdentity
    _manager: "SessionManager" = field(repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def is_active(self) -> bool:
        return not self._closed and self._manager.active is self

    @property
    def is_closed(self) -> bool:
        return self._closed

    def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        overrides: CallOverrides | None = None,
    ) -> OperationResult:
        """Shorthand for ``client.send(session, ...)``."""
        return self._manager.client.send(self, method, params, overrides)

    def set_operator(self, operator: OperatorIdentity) -> None:
        """Rebind this session to another operator via a new ``setup`` call."""
        if not self.is_active:
            raise StaleSessionError(self.session_id, method="setup")
        self._manager._setup(self.session_id, operator)
        self.operator = operator
        logger.info(f"Session operator set to {operator.account_id}")


class SessionManager:
    """Opens and closes sessions; tracks the single active one."""

    def __init__(self, client: ControlPlaneClient, settings: Settings | None = None):
        self.client = client
        self.settings = settings or get_settings()
        self._active: Session | None = None

    @property
    def active(self) -> Session | None:
        return self._active

    def open(self, operator: OperatorIdentity | None = None) -> Session:
        """Open a session bound to ``operator`` (default: the configured operator).

        Any previously active session is superseded, not reset; call
        ``close`` on it first to release its SUT-side resources.
        """
        operator = operator or self.settings.operator
        session_id = uuid.uuid4().hex

        if self._active is not None and not self._active.is_closed:
            logger.warning(
                f"Opening session {session_id[:8]} supersedes {self._active.session_id[:8]}"
            )

        # Setup failures propagate: a test cannot run without an operator
        self._setup(session_id, operator)

        session = Session(session_id=session_id, operator=operator, _manager=self)
        self._active = session
        session_id_var.set(session_id)
        logger.info(f"Session opened for operator {operator.account_id}")
        return session

    def close(self, session: Session) -> None:
        """Send ``reset`` for ``session``. Never raises on SUT-side failure."""
        if session.is_closed:
            return
        session._closed = True
        if self._active is session:
            self._active = None
            session_id_var.set(None)

        try:
            self.client.execute(
                OperationRequest(method="reset"), session_id=session.session_id
            )
            logger.info(f"Session {session.session_id[:8]} reset")
        except Exception as e:
            logger.warning(f"Session {session.session_id[:8]} reset failed: {e}")

    @contextmanager
    def session(self, operator: OperatorIdentity | None = None) -> Iterator[Session]:
        """Open a session for the duration of a block."""
        session = self.open(operator)
        try:
            yield session
        finally:
            self.close(session)

    def _setup(self, session_id: str, operator: OperatorIdentity) -> None:
        params: dict[str, Any] = operator.to_setup_params()
        if self.settings.node_ip and self.settings.node_account_id:
            params["nodeIp"] = self.settings.node_ip
            params["nodeAccountId"] = self.settings.node_account_id
        if self.settings.mirror_network:
            params["mirrorNetworkIp"] = self.settings.mirror_network
        self.client.execute(
            OperationRequest(method="setup", params=params), session_id=session_id
        )
