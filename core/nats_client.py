"""
NATS Event Bus for Python Microservices

Thin event-bus wrapper around nats-py. Events travel in a common JSON
envelope (id, type, source, data, timestamp, metadata, version) with the
event type used as the NATS subject.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import nats
from nats.aio.client import Client as NATS

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime values"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class EventType(Enum):
    """Event types produced and consumed by the bonus service"""

    # Bonus lifecycle (produced)
    BONUS_AWARDED = "bonus.awarded"
    BONUS_REQUIREMENTS_MET = "bonus.requirements_met"
    BONUS_CONVERTED = "bonus.converted"
    BONUS_FORFEITED = "bonus.forfeited"
    BONUS_EXPIRED = "bonus.expired"
    BONUS_CANCELLED = "bonus.cancelled"
    BONUS_APPROVAL_REQUESTED = "bonus.approval_requested"

    # Upstream activity (consumed)
    DEPOSIT_COMPLETED = "payment.deposit.completed"
    ORDER_COMPLETED = "order.completed"
    ACTION_COMPLETED = "user.action.completed"
    ACTIVITY_RECORDED = "activity.recorded"


class ServiceSource(Enum):
    """Event sources"""

    BONUS_SERVICE = "bonus_service"
    PAYMENT_SERVICE = "payment_service"
    ORDER_SERVICE = "order_service"
    ACCOUNT_SERVICE = "account_service"
    ACTIVITY_SERVICE = "activity_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: Union[EventType, str],
        source: Union[ServiceSource, str],
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value if isinstance(event_type, EventType) else event_type
        self.source = source.value if isinstance(source, ServiceSource) else source
        self.data = data
        self.subject = subject or self.type
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event


EventHandler = Callable[[Event], Awaitable[Any]]


class NATSEventBus:
    """NATS event bus using the nats-py asyncio client."""

    def __init__(self, service_name: str, servers: str = "nats://localhost:4222"):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as connection name and event source)
            servers: NATS server URL(s), comma separated
        """
        self.service_name = service_name
        self.servers = [s.strip() for s in servers.split(",") if s.strip()]

        self._client: Optional[NATS] = None
        self._subscriptions: Dict[str, Any] = {}  # pattern -> subscription

        logger.info(f"NATS EventBus initialized: {servers}")

    async def connect(self):
        """Connect to NATS"""
        try:
            self._client = await nats.connect(servers=self.servers, name=self.service_name)
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """Publish an event using its type as the subject."""
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            await self._client.publish(event.type, data)
            logger.info(f"Published event {event.type} [{event.id}]")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def subscribe_to_events(
        self, pattern: str, handler: EventHandler, durable: Optional[str] = None
    ) -> Optional[str]:
        """
        Subscribe to events matching a subject pattern.

        Args:
            pattern: Subject pattern (e.g., "payment.deposit.*")
            handler: Async callback receiving an Event
            durable: Optional queue group so replicas share the work
        """
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return None

        async def _on_message(msg):
            try:
                payload = json.loads(msg.data.decode())
                # Raw payloads from producers that skip the envelope are wrapped
                if "type" in payload and "source" in payload and "data" in payload:
                    event = Event.from_dict(payload)
                else:
                    event = Event(event_type=msg.subject, source="unknown", data=payload)
                await handler(event)
            except Exception as e:
                logger.error(f"Error processing message on {msg.subject}: {e}")

        try:
            subscription = await self._client.subscribe(pattern, queue=durable or "", cb=_on_message)
            self._subscriptions[pattern] = subscription
            logger.info(f"Subscribed to {pattern}")
            return durable or pattern

        except Exception as e:
            logger.error(f"Error subscribing to events: {e}")
            return None

    async def close(self):
        """Drain subscriptions and close the connection"""
        if self._client:
            await self._client.drain()
            self._client = None
        self._subscriptions.clear()
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._client is not None and self._client.is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(service_name: str, servers: str = "nats://localhost:4222") -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        servers: NATS server URL(s)

    Returns:
        Connected NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        bus = NATSEventBus(service_name=service_name, servers=servers)
        await bus.connect()
        _event_bus = bus

    return _event_bus
