"""Guide provider registry.

Maps case-insensitive discriminator strings to provider factories.
Providers are registered in guidearr/providers/__init__.py; nothing
else should construct providers directly.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from guidearr.core.interfaces import GuideProvider
from guidearr.providers.config import ProviderConfiguration

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderConfiguration], GuideProvider]


@dataclass(frozen=True)
class RegisteredProvider:
    """A registered guide provider and the discriminators that select it."""

    name: str
    provider_class: type[GuideProvider]
    factory: ProviderFactory
    aliases: tuple[str, ...] = field(default_factory=tuple)

    @property
    def discriminators(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


class ProviderRegistry:
    """Registry of guide providers.

    Exactly one provider is the default. Unknown or empty discriminators
    resolve to it so existing configurations keep working when new
    providers are added.
    """

    _providers: dict[str, RegisteredProvider] = {}
    _lookup: dict[str, str] = {}
    _default: str | None = None

    @classmethod
    def register(
        cls,
        name: str,
        provider_class: type[GuideProvider],
        factory: ProviderFactory,
        aliases: tuple[str, ...] = (),
        default: bool = False,
    ) -> None:
        entry = RegisteredProvider(
            name=name.lower(),
            provider_class=provider_class,
            factory=factory,
            aliases=tuple(alias.lower() for alias in aliases),
        )
        cls._providers[entry.name] = entry
        for discriminator in entry.discriminators:
            cls._lookup[discriminator] = entry.name
        if default:
            cls._default = entry.name
        logger.debug("[REGISTRY] Registered guide provider %s", entry.name)

    @classmethod
    def resolve(cls, discriminator: str | None) -> RegisteredProvider:
        """Find the provider for a discriminator, falling back to the default."""
        key = (discriminator or "").strip().lower()
        name = cls._lookup.get(key)
        if name is None:
            if cls._default is None:
                raise LookupError("no default guide provider registered")
            if key:
                logger.debug(
                    "[REGISTRY] Unknown provider '%s', using %s", discriminator, cls._default
                )
            name = cls._default
        return cls._providers[name]

    @classmethod
    def create(cls, config: ProviderConfiguration) -> GuideProvider:
        return cls.resolve(config.provider).factory(config)

    @classmethod
    def get_all(cls) -> list[RegisteredProvider]:
        return list(cls._providers.values())

    @classmethod
    def clear(cls) -> None:
        """Remove all registrations. For tests."""
        cls._providers = {}
        cls._lookup = {}
        cls._default = None
