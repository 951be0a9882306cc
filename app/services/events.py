"""События движка для внешнего сервиса уведомлений."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    TOURNAMENT_COMPLETED = "tournament_completed"
    MATCH_COMPLETED = "match_completed"
    RANK_TIER_CHANGED = "rank_tier_changed"
    RIVAL_OVERTAKEN = "rival_overtaken"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"


@dataclass(frozen=True)
class DomainEvent:
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)


class EventPublisher(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...


class LoggingEventPublisher:
    # Публикатор по умолчанию: доставкой push/email занимается внешний сервис.
    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            logger.info("event %s %s", event.kind.value, event.payload)


class CollectingEventPublisher:
    # Накопитель событий для тестов и скриптов.
    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        self.events.extend(events)

    def kinds(self) -> list[EventKind]:
        return [event.kind for event in self.events]


default_publisher = LoggingEventPublisher()
