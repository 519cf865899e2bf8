"""Registry für Auswertungs-Abonnenten.

Nach jeder Schreiboperation wird die Auswertung einmal pro Filter-Kombination
(Zeitraum, Start, Ende) berechnet und an alle Abonnenten dieser Kombination
ausgeliefert. Ein Abonnent, dessen Callback fehlschlägt, wird entfernt.
"""

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from analysis.analytics import AnalyticsAggregator

logger = logging.getLogger(__name__)

Callback = Callable[[dict], None]


@dataclass(frozen=True)
class Subscription:
    id: str
    callback: Callback
    range_name: str = "week"
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def filter_key(self) -> tuple:
        return (self.range_name, self.start, self.end)


class AnalyticsSubscriberRegistry:
    """Hält Callbacks samt Filter; gehört der aufrufenden Schicht."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[str, Subscription] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(
        self, callback: Callback, range_name: str = "week",
        start: Optional[date] = None, end: Optional[date] = None,
    ) -> str:
        sub = Subscription(uuid.uuid4().hex, callback, range_name, start, end)
        with self._lock:
            self._subscriptions[sub.id] = sub
        logger.info(f"Abonnent {sub.id} registriert ({len(self)} aktiv)")
        return sub.id

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._lock:
            return self._subscriptions.pop(subscription_id, None) is not None

    def broadcast(
        self, aggregator: "AnalyticsAggregator", now: Optional[datetime] = None
    ) -> int:
        """Berechnet je Filter einmal und liefert aus. Gibt die Anzahl Zustellungen zurück."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
        if not subscriptions:
            return 0

        groups: dict[tuple, list[Subscription]] = defaultdict(list)
        for sub in subscriptions:
            groups[sub.filter_key].append(sub)

        delivered = 0
        for key, members in groups.items():
            range_name, start, end = key
            try:
                report = aggregator.get_comprehensive_analytics(
                    range_name, start, end, now=now
                )
            except Exception as e:
                logger.error(f"Auswertung für Filter {key} fehlgeschlagen: {e}")
                continue

            payload = {
                "type": "update",
                "data": report.to_dict(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            for sub in members:
                try:
                    sub.callback(payload)
                    delivered += 1
                except Exception as e:
                    logger.warning(f"Abonnent {sub.id} entfernt: {e}")
                    self.unsubscribe(sub.id)
        return delivered
