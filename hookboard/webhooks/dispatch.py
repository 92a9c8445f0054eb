"""Best-effort processing hooks for generic webhook events.

Handlers run after the event has been stored and only log. New event
types are added with ``register_handler``.
"""

from collections.abc import Callable
from typing import Any

from hookboard.core.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[Any], None]

_handlers: dict[str, EventHandler] = {}


def register_handler(event_type: str) -> Callable[[EventHandler], EventHandler]:
    """Register a function as the handler for one event type."""

    def decorator(func: EventHandler) -> EventHandler:
        _handlers[event_type] = func
        return func

    return decorator


def registered_event_types() -> list[str]:
    """Event types that have a handler."""
    return sorted(_handlers)


def _section(payload: Any, key: str) -> dict[str, Any]:
    value = payload.get(key) if isinstance(payload, dict) else None
    return value if isinstance(value, dict) else {}


@register_handler("user.created")
def _handle_user_created(payload: Any) -> None:
    logger.info("webhook.process.user_created", email=_section(payload, "user").get("email"))


@register_handler("payment.completed")
def _handle_payment_completed(payload: Any) -> None:
    logger.info("webhook.process.payment_completed", payment_id=_section(payload, "payment").get("id"))


@register_handler("order.created")
def _handle_order_created(payload: Any) -> None:
    logger.info("webhook.process.order_created", order_id=_section(payload, "order").get("id"))


@register_handler("test.event")
def _handle_test_event(payload: Any) -> None:
    logger.info("webhook.process.test_event", payload=payload)


def process_webhook_event(event_type: str, payload: Any) -> None:
    """Run the handler for event_type, if any.

    Failures are logged and never propagated; the event is already stored
    by the time this runs.
    """
    handler = _handlers.get(event_type)
    if handler is None:
        logger.info("webhook.process.unhandled", event_type=event_type)
        return

    try:
        handler(payload)
    except Exception as e:
        logger.error(
            "webhook.process.failed", event_type=event_type, error=str(e), exc_info=True
        )
