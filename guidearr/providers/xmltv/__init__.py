"""XMLTV file guide provider."""

from guidearr.providers.xmltv.provider import XMLTVProvider

__all__ = ["XMLTVProvider"]
