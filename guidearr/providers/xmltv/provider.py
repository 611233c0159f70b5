"""XMLTV file guide provider.

Loads a complete XMLTV document from a URL or local path and serves its
channels and programmes. There is no change detection; every schedule()
call returns all loaded programmes for the requested channels.
"""

import logging
import threading
import zlib
from typing import Any
from xml.etree.ElementTree import ParseError

import httpx

from guidearr.core.exceptions import ProviderConfigurationError, XMLTVLoadError
from guidearr.core.interfaces import GuideProvider
from guidearr.core.types import Channel, ProgrammeContainer
from guidearr.providers.config import ProviderConfiguration
from guidearr.utilities.fetch import get_file
from guidearr.utilities.xmltv import XMLTVDocument, parse_xmltv

logger = logging.getLogger(__name__)


class XMLTVProvider(GuideProvider):
    """Guide provider backed by a static XMLTV file.

    The file is loaded on construction, so a bad URL fails fast.
    Lineup subscription is not supported.
    """

    def __init__(
        self,
        config: ProviderConfiguration,
        transport: httpx.BaseTransport | None = None,
    ):
        if not config.xmltv_url:
            raise ProviderConfigurationError("XMLTV provider requires an XMLTV URL or path")
        self._config = config
        self._transport = transport
        self._channels: list[Channel] = []
        self._document = XMLTVDocument()
        self.refresh(None)

    @property
    def name(self) -> str:
        return "XMLTV"

    def channels(self) -> list[Channel]:
        return list(self._channels)

    def configuration(self) -> ProviderConfiguration:
        return self._config

    def refresh(self, last_state: bytes | None) -> bytes:
        """Reload the file. There is no state to persist."""
        url = self._config.xmltv_url
        try:
            content = get_file(url, transport=self._transport)
            document = parse_xmltv(content)
        except (httpx.HTTPError, OSError) as e:
            raise XMLTVLoadError(f"could not load XMLTV file {url}: {e}") from e
        except (EOFError, zlib.error) as e:
            raise XMLTVLoadError(f"could not decompress XMLTV file {url}: {e}") from e
        except ParseError as e:
            raise XMLTVLoadError(f"could not parse XMLTV file {url}: {e}") from e

        self._document = document
        self._channels = list(document.channels)
        logger.info(
            "[XMLTV] Loaded %d channels and %d programmes from %s",
            len(document.channels),
            len(document.programmes),
            url,
        )
        return b""

    def schedule(
        self,
        days_to_get: int,
        input_channels: list[Channel],
        input_programmes: list[ProgrammeContainer],
        cancel: threading.Event | None = None,
    ) -> tuple[dict[str, Any], list[ProgrammeContainer]]:
        """Loaded programmes whose channel is one of `input_channels`."""
        wanted = {channel.id for channel in input_channels}
        programmes = [
            ProgrammeContainer(programme=programme)
            for programme in self._document.programmes
            if programme.channel in wanted
        ]
        return {}, programmes
