"""
Session Provider

Tracks who is signed in and tells the ledger when that changes.

DESIGN DECISION: The session is an object handed to the ledger service,
not module-level state. Listeners registered with `subscribe` are
awaited on every sign-in and sign-out, in registration order; the
ledger uses this to seed or wipe the store.

Authentication is mocked: any non-empty email and password sign in.
"""

from typing import Any, Awaitable, Callable, Optional

import structlog

from moneyx.models.ledger import User
from moneyx.notifications.sink import NotificationSinkInterface
from moneyx.store.mock_data import MOCK_USER_ID


logger = structlog.get_logger("moneyx.session")

SessionListener = Callable[[Optional[str]], Awaitable[None]]


class SessionProvider:
    """Holds the active user and notifies listeners on transitions."""

    def __init__(
        self,
        sink: Optional[NotificationSinkInterface] = None,
        user: Optional[User] = None,
    ):
        self._sink = sink
        self._user = user
        self._listeners: list[SessionListener] = []

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def subscribe(self, listener: SessionListener) -> None:
        """Register a coroutine called with the new user id (or None)."""
        self._listeners.append(listener)

    async def login(self, email: str, password: str) -> bool:
        """
        Sign in with the demo account.

        Returns:
            True if signed in, False if either credential is empty
        """
        if not email or not password:
            await self._notify_error("Login failed", "Invalid email or password")
            return False

        await self._switch_to(User(
            id=MOCK_USER_ID,
            email=email,
            first_name="Alex",
            last_name="Johnson",
            phone="+1 (555) 123-4567",
        ))
        await self._notify_success("Login successful", "Welcome back!")
        return True

    async def signup(self, email: str, password: str, first_name: str, last_name: str) -> bool:
        """Create a demo user and sign in as them."""
        if not email or not password:
            await self._notify_error("Signup failed", "Please fill all required fields")
            return False

        await self._switch_to(User(
            id=MOCK_USER_ID,
            email=email,
            first_name=first_name or None,
            last_name=last_name or None,
        ))
        await self._notify_success("Account created", "Welcome to MoneyX!")
        return True

    async def logout(self) -> None:
        await self._switch_to(None)
        await self._notify_success("Logged out", "You have been logged out successfully")

    async def update_user(self, **fields: Any) -> bool:
        """Merge profile fields into the signed-in user. The id never changes."""
        if self._user is None:
            return False
        fields.pop("id", None)
        data = self._user.model_dump()
        data.update(fields)
        self._user = User.model_validate(data)
        await self._notify_success("Profile updated", "Your profile has been updated successfully")
        return True

    async def _switch_to(self, user: Optional[User]) -> None:
        self._user = user
        user_id = self.current_user_id
        logger.info("session_changed", user_id=user_id)
        for listener in self._listeners:
            await listener(user_id)

    async def _notify_success(self, title: str, description: str) -> None:
        if self._sink:
            await self._sink.success(title, description)

    async def _notify_error(self, title: str, description: str) -> None:
        if self._sink:
            await self._sink.error(title, description)
