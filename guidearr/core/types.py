"""Core data types for guidearr.

All data structures are dataclasses with attribute access.
These are the provider-neutral shapes every guide provider produces
and the persistence layer stores.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from guidearr.core.exceptions import ProviderDataError

# =============================================================================
# PROVIDER DATA - tagged opaque state
# =============================================================================


@dataclass(frozen=True)
class ProviderData:
    """Provider-specific state carried alongside canonical records.

    `kind` names the provider that produced `payload` so deserialization
    can dispatch on it instead of relying on caller knowledge.
    """

    kind: str
    payload: Any = None

    def to_json(self) -> str:
        return json.dumps({"kind": self.kind, "payload": self.payload}, sort_keys=True)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "payload": self.payload}

    @classmethod
    def from_json(
        cls,
        raw: "str | bytes | dict | ProviderData | None",
        default_kind: str | None = None,
    ) -> "ProviderData | None":
        """Decode provider data from its persisted form.

        Empty input decodes to None. Untagged JSON objects written before
        provider data carried a kind are tagged with `default_kind`.

        Raises:
            ProviderDataError: If the input is not valid provider data
        """
        if raw is None or isinstance(raw, ProviderData):
            return raw

        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")

        if isinstance(raw, str):
            if not raw.strip() or raw.strip() == "null":
                return None
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise ProviderDataError(f"provider data is not valid JSON: {e}") from e

        if raw is None:
            return None

        if not isinstance(raw, dict):
            raise ProviderDataError(f"provider data must be an object, got {type(raw).__name__}")

        if "kind" in raw and set(raw) <= {"kind", "payload"}:
            if not isinstance(raw["kind"], str) or not raw["kind"]:
                raise ProviderDataError("provider data kind must be a non-empty string")
            return cls(kind=raw["kind"], payload=raw.get("payload"))

        if default_kind is None:
            raise ProviderDataError("provider data has no kind and no default was given")
        return cls(kind=default_kind, payload=raw)


# =============================================================================
# CHANNELS
# =============================================================================


@dataclass(frozen=True)
class Logo:
    """A channel logo."""

    url: str
    width: int = 0
    height: int = 0


@dataclass
class Channel:
    """A channel available in a guide provider's lineup.

    `id` is provider-constructed and must be stable across refreshes so
    persistence can upsert rather than duplicate.
    """

    id: str
    name: str = ""
    number: str = ""
    call_sign: str = ""
    logos: list[Logo] = field(default_factory=list)
    lineup: str = ""
    affiliate: str = ""
    urls: list[str] = field(default_factory=list)
    provider_data: ProviderData | None = None

    def display_names(self) -> list[str]:
        """Display names in XMLTV order.

        MythTV assumes the first three display-name elements are
        name, callsign and channel number.
        """
        return [self.name, self.call_sign, self.number]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "call_sign": self.call_sign,
            "logos": [asdict(logo) for logo in self.logos],
            "lineup": self.lineup,
            "affiliate": self.affiliate,
            "urls": list(self.urls),
            "provider_data": self.provider_data.to_dict() if self.provider_data else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "Channel":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            number=data.get("number", ""),
            call_sign=data.get("call_sign", ""),
            logos=[
                Logo(
                    url=logo.get("url", ""),
                    width=logo.get("width", 0),
                    height=logo.get("height", 0),
                )
                for logo in data.get("logos") or []
            ],
            lineup=data.get("lineup", ""),
            affiliate=data.get("affiliate", ""),
            urls=list(data.get("urls") or []),
            provider_data=ProviderData.from_json(data.get("provider_data")),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Channel":
        return cls.from_dict(json.loads(raw))


# =============================================================================
# PROGRAMMES
# =============================================================================


@dataclass(frozen=True)
class TextElement:
    """A text value with an optional language tag."""

    value: str
    lang: str = ""


@dataclass(frozen=True)
class Actor:
    name: str
    role: str = ""


@dataclass
class Credits:
    """Cast and crew grouped by XMLTV credit bucket."""

    directors: list[str] = field(default_factory=list)
    actors: list[Actor] = field(default_factory=list)
    writers: list[str] = field(default_factory=list)
    producers: list[str] = field(default_factory=list)
    presenters: list[str] = field(default_factory=list)
    guests: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EpisodeNum:
    system: str
    value: str


@dataclass
class Video:
    present: str = ""
    quality: str = ""
    aspect: str = ""


@dataclass(frozen=True)
class Audio:
    stereo: str


@dataclass(frozen=True)
class Subtitle:
    type: str


@dataclass(frozen=True)
class Rating:
    value: str
    system: str = ""


@dataclass(frozen=True)
class Icon:
    src: str
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class PreviouslyShown:
    start: datetime | None = None


@dataclass
class Programme:
    """Canonical programme, independent of any provider wire format.

    `new` and `previously_shown` are mutually exclusive.
    """

    channel: str
    start: datetime
    stop: datetime | None = None
    id: str = ""
    length_seconds: int | None = None
    titles: list[TextElement] = field(default_factory=list)
    secondary_titles: list[TextElement] = field(default_factory=list)
    descriptions: list[TextElement] = field(default_factory=list)
    credits: Credits | None = None
    date: str | None = None
    categories: list[TextElement] = field(default_factory=list)
    keywords: list[TextElement] = field(default_factory=list)
    languages: list[TextElement] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    icons: list[Icon] = field(default_factory=list)
    episode_nums: list[EpisodeNum] = field(default_factory=list)
    video: Video | None = None
    audio: Audio | None = None
    subtitles: list[Subtitle] = field(default_factory=list)
    previously_shown: PreviouslyShown | None = None
    premiere: TextElement | None = None
    new: bool = False
    ratings: list[Rating] = field(default_factory=list)
    star_ratings: list[Rating] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.titles[0].value if self.titles else ""

    def episode_num(self, system: str) -> str | None:
        """Value of the first episode number in the given system."""
        for num in self.episode_nums:
            if num.system == system:
                return num.value
        return None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start"] = self.start.isoformat()
        data["stop"] = self.stop.isoformat() if self.stop else None
        if self.previously_shown is not None:
            shown = self.previously_shown.start
            data["previously_shown"] = {"start": shown.isoformat() if shown else None}
        return data


@dataclass
class ProgrammeContainer:
    """A canonical programme paired with provider bookkeeping."""

    programme: Programme
    provider_data: ProviderData | None = None


# =============================================================================
# LINEUP DISCOVERY
# =============================================================================


@dataclass(frozen=True)
class CoverageArea:
    """A region a provider has lineups for."""

    region_name: str = ""
    full_name: str = ""
    postal_code: str = ""
    postal_code_example: str = ""
    short_name: str = ""
    one_postal_code: bool = False


@dataclass(frozen=True)
class AvailableLineup:
    """A lineup a user can subscribe to."""

    location: str = ""
    transport: str = ""
    name: str = ""
    provider_id: str = ""


# =============================================================================
# PERSISTED ENTITIES (read by the core, owned by the persistence layer)
# =============================================================================


@dataclass
class GuideSource:
    """A configured source of EPG data."""

    id: int
    name: str
    provider: str
    username: str = ""
    password: str = ""
    xmltv_url: str = ""
    lineups: list[str] = field(default_factory=list)
    provider_data: bytes | None = None
    update_frequency: str = ""

    def provider_configuration(self) -> "ProviderConfiguration":
        from guidearr.providers.config import ProviderConfiguration

        return ProviderConfiguration(
            name=self.name,
            provider=self.provider,
            username=self.username,
            password=self.password,
            lineups=list(self.lineups),
            xmltv_url=self.xmltv_url,
        )


@dataclass
class GuideSourceChannel:
    """A channel ingested from a guide source, carrying its canonical Channel."""

    id: int
    guide_id: int
    xmltv_id: str
    channel: Channel
    provider_data: ProviderData | None = None

    @property
    def display_name(self) -> str:
        """Primary display name used for matching."""
        return self.channel.display_names()[0]


@dataclass(frozen=True)
class VideoSourceTrack:
    """A single stream available from a video source."""

    id: int
    video_source_id: int
    name: str
    stream_id: int = 0
    logo: str = ""
    type: str = ""
    category: str = ""
    epg_id: str = ""


@dataclass(frozen=True)
class Lineup:
    """The virtual tuner lineup and its network address."""

    id: int
    name: str
    discovery_address: str
    port: int


@dataclass(frozen=True)
class LineupChannel:
    """Numbering and branding an operator assigned to a channel in a lineup."""

    id: int
    lineup_id: int
    title: str
    channel_number: str
    video_track_id: int
    guide_channel_id: int
    hd: bool = False
    favorite: bool = False


@dataclass(frozen=True)
class TunerLineupItem:
    """HDHomeRun-compatible record published for one lineup channel."""

    guide_name: str
    guide_number: str
    url: str
    drm: bool = False
    favorite: bool = False
    hd: bool = False

    def to_dict(self) -> dict:
        """Serialize with HDHomeRun key names; booleans become 0/1, false omitted."""
        data: dict[str, Any] = {
            "GuideName": self.guide_name,
            "GuideNumber": self.guide_number,
            "URL": self.url,
        }
        for key, flag in (("DRM", self.drm), ("Favorite", self.favorite), ("HD", self.hd)):
            if flag:
                data[key] = 1
        return data
