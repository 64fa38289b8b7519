"""BroadcastHub: named-channel pub/sub for connected session clients.

Every participant (host UI, guest UIs, the WebSocket bridge) subscribes to
the channels of the event it is watching. Delivery is best-effort and
synchronous: `send` calls each subscriber in turn. A subscriber that raises
is logged and skipped so the other participants still get the message.

Each channel keeps a short history so a client that connects late can
catch up on recent messages. Only the most recently used `max_channels`
channels keep a history; older ones are dropped.
"""

import logging
import threading
from collections import OrderedDict, deque
from typing import Callable, Deque, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel


logger = logging.getLogger(__name__)

Subscriber = Callable[[BaseModel], None]


class BroadcastHub:
    """In-process channel registry.

    Parameters
    ----------
    history_size:
        Number of recent messages kept per channel.
    max_channels:
        Number of channels whose history is kept.
    """

    def __init__(self, history_size: int = 100, max_channels: int = 1000) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Dict[str, Subscriber]] = {}
        self._history: "OrderedDict[str, Deque[BaseModel]]" = OrderedDict()
        self._history_size = history_size
        self._max_channels = max_channels

    def subscribe(self, channel: str, callback: Subscriber) -> str:
        """Register `callback` on `channel` and return a subscription id."""
        subscription_id = str(uuid4())
        with self._lock:
            self._subscribers.setdefault(channel, {})[subscription_id] = callback
        logger.debug("[REALTIME] subscribed %s to %s", subscription_id, channel)
        return subscription_id

    def unsubscribe(self, channel: str, subscription_id: str) -> None:
        with self._lock:
            subscribers = self._subscribers.get(channel)
            if not subscribers:
                return
            subscribers.pop(subscription_id, None)
            if not subscribers:
                del self._subscribers[channel]

    def send(self, channel: str, message: BaseModel) -> int:
        """Deliver `message` to every subscriber of `channel`.

        Returns the number of subscribers that received it.
        """
        with self._lock:
            history = self._history.get(channel)
            if history is None:
                history = self._history[channel] = deque(maxlen=self._history_size)
                while len(self._history) > self._max_channels:
                    dropped, _ = self._history.popitem(last=False)
                    logger.debug("[REALTIME] dropped history of %s", dropped)
            else:
                self._history.move_to_end(channel)
            history.append(message)
            subscribers = list(self._subscribers.get(channel, {}).items())

        delivered = 0
        for subscription_id, callback in subscribers:
            try:
                callback(message)
                delivered += 1
            except Exception:
                logger.exception(
                    "[REALTIME] subscriber %s failed on channel %s", subscription_id, channel
                )
        return delivered

    def history(self, channel: str, limit: Optional[int] = None) -> List[BaseModel]:
        """Return recent messages on `channel`, oldest first."""
        with self._lock:
            messages = list(self._history.get(channel, ()))
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, {}))
