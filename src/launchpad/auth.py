"""Read-only view of the identity provider's session for the dashboard core."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class AuthStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class SessionUser:
    name: str
    email: str


class AuthContext:
    """Session state owned by the identity collaborator.

    The sign-in and sign-out methods belong to the collaborator side (the HTTP
    layer); dashboard components only read :attr:`status` and :attr:`user` and
    may wait for authentication.
    """

    def __init__(self, user: Optional[SessionUser] = None) -> None:
        self._user = user
        self._status = AuthStatus.AUTHENTICATED if user else AuthStatus.LOADING
        self._authenticated = asyncio.Event()
        self._listeners: List[Callable[[AuthStatus], None]] = []
        if user:
            self._authenticated.set()

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def user(self) -> Optional[SessionUser]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._status is AuthStatus.AUTHENTICATED

    def sign_in(self, user: SessionUser) -> None:
        self._user = user
        self._status = AuthStatus.AUTHENTICATED
        self._authenticated.set()
        logger.info("Signed in %s", user.email)
        self._notify()

    def sign_out(self) -> None:
        previous = self._user
        self._user = None
        self._status = AuthStatus.UNAUTHENTICATED
        self._authenticated.clear()
        if previous is not None:
            logger.info("Signed out %s", previous.email)
        self._notify()

    async def wait_authenticated(self) -> Optional[SessionUser]:
        """Suspend until a user is signed in."""

        await self._authenticated.wait()
        return self._user

    def add_listener(self, listener: Callable[[AuthStatus], None]) -> None:
        """Call ``listener`` with the new status after every sign-in or sign-out."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[AuthStatus], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._status)
