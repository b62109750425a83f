"""Engine-facing remote interfaces."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from emporix_provisioner.engine.errors import OperationCanceled

if TYPE_CHECKING:
    import threading
    from collections.abc import Mapping

    from emporix_provisioner.core import EmporixProvider


@dataclass(frozen=True)
class EngineContext:
    """Context passed to the reconciler and remote handlers.

    ``deadline`` is an absolute ``time.monotonic()`` value; ``cancel`` is set
    by the caller to abandon the operation.  Both are checked before every
    remote call, never in the middle of one.
    """

    provider: EmporixProvider
    deadline: float | None = None
    cancel: threading.Event | None = field(default=None, compare=False)

    @classmethod
    def with_timeout(
        cls,
        provider: EmporixProvider,
        seconds: float,
        *,
        cancel: threading.Event | None = None,
    ) -> EngineContext:
        return cls(provider=provider, deadline=time.monotonic() + seconds, cancel=cancel)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise ``OperationCanceled`` if the caller gave up."""
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCanceled("Operation canceled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise OperationCanceled("Deadline exceeded")


class RemoteResource:
    """Remote CRUD capability for one resource kind.

    Handlers translate between the kind's attribute names and the API's
    records.  ``get`` must raise ``NotFoundError`` when the identity does not
    resolve; every other failure propagates as the client raised it.
    ``create`` and ``delete`` are only called for hard-delete kinds.
    """

    def get(self, ctx: EngineContext, identity: Mapping[str, Any]) -> dict[str, Any]:
        """Fetch the record. Return its attributes."""
        raise NotImplementedError

    def create(self, ctx: EngineContext, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Create the record. Return its attributes."""
        raise NotImplementedError

    def update(
        self,
        ctx: EngineContext,
        identity: Mapping[str, Any],
        changed: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Apply *changed* attributes in place. Return the record's attributes."""
        raise NotImplementedError

    def delete(self, ctx: EngineContext, identity: Mapping[str, Any]) -> None:
        """Remove the record."""
        raise NotImplementedError
