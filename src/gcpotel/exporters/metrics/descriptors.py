"""Metric descriptor registration policy.

Cloud Monitoring needs a metric descriptor before it accepts custom time
series with a given schema. Creating a descriptor is idempotent on the
backend side, so the only question is how often to ask.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import MutableSet, NamedTuple

logger = logging.getLogger(__name__)


class MetricDescriptorStrategy(str, Enum):
    """How often metric descriptors are sent to Cloud Monitoring."""

    # Register on every export. Harmless but costs one extra call per metric.
    ALWAYS_SEND = "always_send"
    # Register each metric identity once per process, after it succeeds.
    SEND_ONCE = "send_once"
    # Never register; Cloud Monitoring infers descriptors from the writes.
    NEVER_SEND = "never_send"


class MetricIdentity(NamedTuple):
    """Identity of a metric stream for descriptor caching."""

    name: str
    kind: str
    unit: str


class MetricDescriptorCache:
    """Decides whether a metric descriptor must be registered.

    Under ``SEND_ONCE`` the cache remembers identities that were registered
    successfully. :meth:`should_register` claims an identity atomically, so
    concurrent exports of the same new metric issue a single registration.
    A claim is released by :meth:`mark_registered` or :meth:`mark_failed`;
    a failed identity is retried on the next export cycle.

    Args:
        strategy: Registration policy.
        registered: Storage for registered identities. Defaults to a fresh
            in-memory set; pass one in to share or inspect state.
    """

    def __init__(
        self,
        strategy: MetricDescriptorStrategy = MetricDescriptorStrategy.SEND_ONCE,
        registered: MutableSet[MetricIdentity] | None = None,
    ) -> None:
        self._strategy = MetricDescriptorStrategy(strategy)
        self._registered: MutableSet[MetricIdentity] = (
            registered if registered is not None else set()
        )
        self._pending: set[MetricIdentity] = set()
        self._cond = threading.Condition()

    @property
    def strategy(self) -> MetricDescriptorStrategy:
        return self._strategy

    @property
    def registered(self) -> frozenset[MetricIdentity]:
        """Snapshot of identities registered so far."""
        with self._cond:
            return frozenset(self._registered)

    def should_register(self, identity: MetricIdentity) -> bool:
        """Return True if the caller must register ``identity`` now.

        A True result under ``SEND_ONCE`` is a claim: the caller must follow
        up with :meth:`mark_registered` or :meth:`mark_failed`.
        """
        if self._strategy is MetricDescriptorStrategy.ALWAYS_SEND:
            return True
        if self._strategy is MetricDescriptorStrategy.NEVER_SEND:
            return False

        with self._cond:
            while identity in self._pending:
                self._cond.wait()
            if identity in self._registered:
                return False
            self._pending.add(identity)
            return True

    def mark_registered(self, identity: MetricIdentity) -> None:
        """Record a successful registration of ``identity``."""
        if self._strategy is not MetricDescriptorStrategy.SEND_ONCE:
            return
        with self._cond:
            self._pending.discard(identity)
            self._registered.add(identity)
            self._cond.notify_all()
        logger.debug("Metric descriptor registered: %s", identity.name)

    def mark_failed(self, identity: MetricIdentity) -> None:
        """Release the claim on ``identity`` so a later export retries it."""
        if self._strategy is not MetricDescriptorStrategy.SEND_ONCE:
            return
        with self._cond:
            self._pending.discard(identity)
            self._cond.notify_all()
