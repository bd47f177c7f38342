"""Per-run notification channel for identifiers produced mid-pipeline."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from matter_opening.core.models import IdentifierKind

LOG = logging.getLogger(__name__)

IdentifierCallback = Callable[[Any], None]


class IdentifierBridge:
    """Holds at most one callback per identifier kind for the lifetime of one run.

    The owning step calls :meth:`notify` as soon as its identifier exists, before
    the step itself is marked successful. The executor calls :meth:`clear` when
    the run ends so a callback can never outlive the run it was registered for.
    """

    def __init__(self) -> None:
        self._callbacks: Dict[IdentifierKind, IdentifierCallback] = {}
        self.emitted: Dict[IdentifierKind, Any] = {}

    def register(self, kind: IdentifierKind, callback: Optional[IdentifierCallback]) -> None:
        if callback is None:
            self._callbacks.pop(kind, None)
            return
        self._callbacks[kind] = callback

    def is_registered(self, kind: IdentifierKind) -> bool:
        return kind in self._callbacks

    def notify(self, kind: IdentifierKind, value: Any) -> None:
        self.emitted[kind] = value
        callback = self._callbacks.get(kind)
        if callback is None:
            return
        LOG.debug("Dispatching %s identifier %s", kind.value, value)
        callback(value)

    def clear(self) -> None:
        self._callbacks.clear()
