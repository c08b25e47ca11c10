"""
Notification Sink

DESIGN DECISION: Every ledger operation reports its outcome as a
human-readable message (success or error, title, description).
The sink is where those messages go:
1. StructlogNotificationSink writes them to the structured log
2. InMemoryNotificationSink keeps them for the dashboard to show as toasts

The sink is purely informational:
- It never affects the outcome of an operation
- A failing sink is logged and otherwise ignored
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from moneyx.config import get_settings
from moneyx.models.results import LedgerMessage, MessageKind


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for the whole application.

    Falls back to LoggingSettings for anything not passed explicitly.
    """
    settings = get_settings().logging
    level = level or settings.level
    json_output = settings.json_output if json_output is None else json_output

    logging.basicConfig(format="%(message)s", level=getattr(logging, level))
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class NotificationSinkInterface(ABC):
    """Receives the outcome message of every ledger operation."""

    @abstractmethod
    async def publish(self, message: LedgerMessage) -> None:
        """
        Deliver one message.

        Args:
            message: Outcome of a ledger operation
        """
        pass

    async def success(self, title: str, description: str = "") -> None:
        await self.publish(LedgerMessage(kind=MessageKind.SUCCESS, title=title, description=description))

    async def error(self, title: str, description: str = "") -> None:
        await self.publish(LedgerMessage(kind=MessageKind.ERROR, title=title, description=description))


class StructlogNotificationSink(NotificationSinkInterface):
    """Writes every message to the structured log."""

    def __init__(self):
        self._logger = structlog.get_logger("moneyx.notifications")

    async def publish(self, message: LedgerMessage) -> None:
        log_dict = message.to_log_dict()
        if message.kind == MessageKind.ERROR:
            self._logger.warning("ledger_message", **log_dict)
        else:
            self._logger.info("ledger_message", **log_dict)


class InMemoryNotificationSink(NotificationSinkInterface):
    """
    Keeps messages in order of arrival.

    The dashboard drains it after each interaction to show toasts;
    tests inspect `messages` directly.
    """

    def __init__(self, forward_to: Optional[NotificationSinkInterface] = None):
        self.messages: list[LedgerMessage] = []
        self._forward_to = forward_to

    async def publish(self, message: LedgerMessage) -> None:
        self.messages.append(message)
        if self._forward_to:
            await self._forward_to.publish(message)

    def drain(self) -> list[LedgerMessage]:
        """Return and forget every message received so far."""
        drained, self.messages = self.messages, []
        return drained

    @property
    def last(self) -> Optional[LedgerMessage]:
        return self.messages[-1] if self.messages else None
