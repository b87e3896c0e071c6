import logging
import threading
from collections import OrderedDict
from typing import Callable, Optional

import requests

from .errors import NotificationFailure
from .models import RoundResult

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 15.0
DEFAULT_DEDUP_SIZE = 1024


def deliver(evaluation_url: str, result: RoundResult, timeout: float = 20.0, post=requests.post) -> None:
    """POST the round result once. Raises NotificationFailure on any non-2xx or transport error."""
    payload = result.model_dump()
    logger.info("POST %s payload keys: %s", evaluation_url, list(payload.keys()))
    try:
        r = post(evaluation_url, json=payload, headers={"Content-Type": "application/json"}, timeout=timeout)
    except requests.RequestException as e:
        raise NotificationFailure(f"POST {evaluation_url} failed: {e}") from e
    logger.info("response: status=%s len=%s", r.status_code, len(r.text))
    if not 200 <= r.status_code < 300:
        raise NotificationFailure(f"POST {evaluation_url} returned HTTP {r.status_code}")


class DeferredNotifier:
    """One-shot, fire-and-forget delivery of round results after a fixed delay."""

    def __init__(self, delay: float = DEFAULT_DELAY, timeout: float = 20.0,
                 post: Callable = requests.post, timer_cls=threading.Timer,
                 dedup_size: int = DEFAULT_DEDUP_SIZE):
        self.delay = delay
        self.timeout = timeout
        self.post = post
        self.timer_cls = timer_cls
        self.dedup_size = dedup_size
        # oldest keys are forgotten first
        self._sent = OrderedDict()
        self._lock = threading.Lock()

    def schedule(self, evaluation_url: str, result: RoundResult, delay: Optional[float] = None) -> bool:
        key = (result.task, result.round, result.nonce)
        with self._lock:
            if key in self._sent:
                logger.warning("notification for task=%s round=%s already scheduled", result.task, result.round)
                return False
            self._sent[key] = True
            while len(self._sent) > self.dedup_size:
                self._sent.popitem(last=False)

        wait = self.delay if delay is None else delay
        timer = self.timer_cls(wait, self._fire, args=(evaluation_url, result))
        timer.daemon = True
        timer.start()
        logger.info("notification for task=%s round=%s due in %ss", result.task, result.round, wait)
        return True

    def _fire(self, evaluation_url: str, result: RoundResult) -> None:
        try:
            deliver(evaluation_url, result, timeout=self.timeout, post=self.post)
        except NotificationFailure as e:
            logger.error("notification for task=%s round=%s not delivered: %s", result.task, result.round, e)
            return
        logger.info("notified %s for task=%s round=%s", evaluation_url, result.task, result.round)
