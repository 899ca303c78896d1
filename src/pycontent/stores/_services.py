"""What domain stores expect to find in ``registry.context``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from pycontent.exceptions import ContentError

if TYPE_CHECKING:
    from pycontent.api import ContentApi
    from pycontent.cache import TtlCache
    from pycontent.config import ContentConfig
    from pycontent.coordinator import RequestCoordinator
    from pycontent.store import StoreRegistry


class StoreServices(Protocol):
    config: ContentConfig
    api: ContentApi
    cache: TtlCache
    coordinator: RequestCoordinator


def services(registry: StoreRegistry) -> StoreServices:
    context = registry.context
    if context is None:
        raise ContentError("Store registry was created without a services context")
    return context  # type: ignore[no-any-return]
