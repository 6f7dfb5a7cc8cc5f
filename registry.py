"""Backend registry: identifier -> descriptor, fixed for the process run."""

from __future__ import annotations

import logging
import re
from typing import Callable

from errors import DuplicateBackendError, UnknownBackendError
from models import BackendDescriptor, Query, RequestSpec

LOGGER = logging.getLogger(__name__)


class BackendRegistry:
    """Maps backend identifiers to descriptors.

    Populated once at startup; afterwards only ``resolve`` and ``ids`` are
    called, so concurrent readers need no locking.
    """

    def __init__(self) -> None:
        self._backends: dict[str, BackendDescriptor] = {}

    def register(
        self,
        backend_id: str,
        build_query: Callable[[Query], RequestSpec],
        default_timeout: float | None,
        *,
        link_pattern: re.Pattern[str] | None = None,
        normalize: Callable[[str], str] | None = None,
        description: str = "",
    ) -> BackendDescriptor:
        if backend_id in self._backends:
            raise DuplicateBackendError(backend_id)

        descriptor = BackendDescriptor(
            backend_id=backend_id,
            build_query=build_query,
            default_timeout=default_timeout,
            link_pattern=link_pattern,
            normalize=normalize,
            description=description,
        )
        self._backends[backend_id] = descriptor
        LOGGER.debug("Registered backend id=%s default_timeout=%s", backend_id, default_timeout)
        return descriptor

    def resolve(self, backend_id: str) -> BackendDescriptor:
        try:
            return self._backends[backend_id]
        except KeyError:
            raise UnknownBackendError(backend_id) from None

    def ids(self) -> list[str]:
        """Registered identifiers in registration order."""
        return list(self._backends)

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._backends

    def __len__(self) -> int:
        return len(self._backends)
