"""Synchronization context.

Holds everything a guide update needs: the store, the logger, and one
provider instance per guide source with a lock confining it to a single
run at a time. Passed explicitly to every call instead of module-level
globals.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from guidearr.core.exceptions import GuidearrError
from guidearr.core.interfaces import GuideProvider, GuideStore
from guidearr.core.types import GuideSource
from guidearr.providers import ProviderConfiguration, get_provider

ProviderFactory = Callable[[ProviderConfiguration], GuideProvider]


@dataclass
class SyncContext:
    """Dependencies shared by synchronization runs and service calls."""

    store: GuideStore
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("guidearr.sync"))
    provider_factory: ProviderFactory = get_provider
    _providers: dict[int, GuideProvider] = field(default_factory=dict, repr=False)
    _locks: dict[int, threading.Lock] = field(default_factory=dict, repr=False)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def from_store(
        cls,
        store: GuideStore,
        provider_factory: ProviderFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> "SyncContext":
        """Build a context with a provider for every configured guide source.

        Sources whose provider cannot be constructed are logged and left
        out; they can be added later with add_provider().
        """
        ctx = cls(store=store)
        if provider_factory is not None:
            ctx.provider_factory = provider_factory
        if logger is not None:
            ctx.logger = logger

        for source in store.get_all_guide_sources():
            try:
                ctx.create_provider(source)
            except GuidearrError as e:
                ctx.logger.error(
                    "[SYNC] Could not set up provider for guide source %d (%s): %s",
                    source.id,
                    source.name,
                    e,
                )
        return ctx

    def create_provider(self, source: GuideSource) -> GuideProvider:
        """Construct and register the provider for a guide source."""
        provider = self.provider_factory(source.provider_configuration())
        self.add_provider(source.id, provider)
        self.logger.info(
            "[SYNC] Guide source %d (%s) uses provider %s", source.id, source.name, provider.name
        )
        return provider

    def add_provider(self, guide_source_id: int, provider: GuideProvider) -> None:
        with self._registry_lock:
            self._providers[guide_source_id] = provider
            self._locks.setdefault(guide_source_id, threading.Lock())

    def remove_provider(self, guide_source_id: int) -> None:
        with self._registry_lock:
            self._providers.pop(guide_source_id, None)

    def get_provider(self, guide_source_id: int) -> GuideProvider:
        """Provider for a guide source.

        Raises:
            KeyError: If no provider is registered for the source
        """
        with self._registry_lock:
            return self._providers[guide_source_id]

    def has_provider(self, guide_source_id: int) -> bool:
        with self._registry_lock:
            return guide_source_id in self._providers

    def lock_for(self, guide_source_id: int) -> threading.Lock:
        """Lock confining a source's provider to one run at a time."""
        with self._registry_lock:
            return self._locks.setdefault(guide_source_id, threading.Lock())

    @property
    def guide_source_ids(self) -> list[int]:
        with self._registry_lock:
            return list(self._providers)
