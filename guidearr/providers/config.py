"""Provider-agnostic settings for guide providers."""

from dataclasses import dataclass, field


@dataclass
class ProviderConfiguration:
    """Settings a guide provider is constructed from.

    Credentials and lineups are only used by Schedules Direct;
    xmltv_url is only used by the XMLTV provider.
    """

    name: str = ""
    provider: str = ""
    username: str = ""
    password: str = ""
    lineups: list[str] = field(default_factory=list)
    xmltv_url: str = ""

    def to_dict(self) -> dict:
        """Serialize for persistence. The display name is not persisted."""
        return {
            "provider": self.provider,
            "username": self.username,
            "password": self.password,
            "lineups": list(self.lineups),
            "xmltv_url": self.xmltv_url,
        }

    @classmethod
    def from_dict(cls, data: dict, name: str = "") -> "ProviderConfiguration":
        return cls(
            name=name,
            provider=data.get("provider", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            lineups=list(data.get("lineups") or []),
            xmltv_url=data.get("xmltv_url", ""),
        )
