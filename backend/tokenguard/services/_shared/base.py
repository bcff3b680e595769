# tokenguard/services/_shared/base.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from tokenguard.services._shared.clock import Clock, SystemClock


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param request_id: Correlation id for logging/tracing.
    """

    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Own the injected clock so every operation samples time explicitly.
    * Provide a module-scoped logger enriched with the request id.

    Notes
    -----
    - Services never read Flask request state; the API layer passes raw values.
    - Call :meth:`now_utc` once per operation and reuse the value.
    """

    def __init__(self, *, clock: Clock | None = None, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param clock: Time source (defaults to the UTC wall clock).
        :param ctx: Optional request-scoped context.
        """
        self.clock = clock or SystemClock()
        self.ctx = ctx or ServiceContext()
        self.log = logging.getLogger(type(self).__module__)

    def now_utc(self) -> datetime:
        """Sample the injected clock."""
        return self.clock.now()

    def log_extra(self, **fields: object) -> dict[str, object]:
        """Build the ``extra`` mapping for structured log records."""
        extra: dict[str, object] = {"request_id": self.ctx.request_id}
        extra.update(fields)
        return extra
