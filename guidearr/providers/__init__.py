"""Provider layer - guide data providers.

This is the SINGLE place where guide providers are registered.
All other code obtains providers via get_provider().

Adding a new provider:
1. Create provider module (providers/newprovider/)
2. Register it here using ProviderRegistry.register()

Discriminators are matched case-insensitively. Unknown discriminators
fall back to the XMLTV provider so existing configurations keep working
as providers are added.
"""

from guidearr.core.interfaces import GuideProvider
from guidearr.providers.config import ProviderConfiguration
from guidearr.providers.registry import ProviderRegistry, RegisteredProvider
from guidearr.providers.schedulesdirect import SchedulesDirectClient, SchedulesDirectProvider
from guidearr.providers.xmltv import XMLTVProvider

# =============================================================================
# PROVIDER FACTORY FUNCTIONS
# =============================================================================


def _create_schedules_direct_provider(config: ProviderConfiguration) -> SchedulesDirectProvider:
    return SchedulesDirectProvider(config)


def _create_xmltv_provider(config: ProviderConfiguration) -> XMLTVProvider:
    return XMLTVProvider(config)


# =============================================================================
# PROVIDER REGISTRATION
# =============================================================================

ProviderRegistry.register(
    name="schedulesdirect",
    provider_class=SchedulesDirectProvider,
    factory=_create_schedules_direct_provider,
    aliases=("schedules-direct", "sd"),
)

ProviderRegistry.register(
    name="xmltv",
    provider_class=XMLTVProvider,
    factory=_create_xmltv_provider,
    default=True,
)


def get_provider(config: ProviderConfiguration) -> GuideProvider:
    """Construct the guide provider selected by `config.provider`.

    Raises:
        ProviderConfigurationError: If required settings are missing
        XMLTVLoadError: If an XMLTV file cannot be loaded
    """
    return ProviderRegistry.create(config)


__all__ = [
    "GuideProvider",
    "ProviderConfiguration",
    "ProviderRegistry",
    "RegisteredProvider",
    "SchedulesDirectClient",
    "SchedulesDirectProvider",
    "XMLTVProvider",
    "get_provider",
]
