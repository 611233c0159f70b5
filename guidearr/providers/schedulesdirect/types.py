"""Schedules Direct JSON API record types.

Frozen dataclasses built from API responses with from_api().
Missing keys default to empty values; the API omits most optional fields.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime


def parse_api_datetime(value: str | None) -> datetime | None:
    """Parse an API timestamp ("2024-01-01T05:00:00Z" or "2024-01-01")."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# =============================================================================
# LINEUPS & STATIONS
# =============================================================================


@dataclass(frozen=True)
class StationLogo:
    url: str
    width: int = 0
    height: int = 0
    md5: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "StationLogo":
        return cls(
            url=data.get("URL", ""),
            width=int(data.get("width") or 0),
            height=int(data.get("height") or 0),
            md5=data.get("md5", ""),
        )


@dataclass(frozen=True)
class Station:
    station_id: str
    name: str = ""
    call_sign: str = ""
    affiliate: str = ""
    broadcast_languages: tuple[str, ...] = ()
    logos: tuple[StationLogo, ...] = ()
    is_radio_station: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Station":
        logos = [StationLogo.from_api(logo) for logo in data.get("stationLogo") or []]
        if not logos and data.get("logo"):
            logos = [StationLogo.from_api(data["logo"])]
        return cls(
            station_id=str(data.get("stationID", "")),
            name=data.get("name", ""),
            call_sign=data.get("callsign", ""),
            affiliate=data.get("affiliate", ""),
            broadcast_languages=tuple(data.get("broadcastLanguage") or ()),
            logos=tuple(logos),
            is_radio_station=bool(data.get("isRadioStation", False)),
        )


@dataclass(frozen=True)
class ChannelMapEntry:
    station_id: str
    channel: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "ChannelMapEntry":
        channel = data.get("channel")
        if channel is None and "atscMajor" in data:
            channel = f"{data['atscMajor']}.{data.get('atscMinor', 0)}"
        if channel is None and "uhfVhf" in data:
            channel = str(data["uhfVhf"])
        return cls(station_id=str(data.get("stationID", "")), channel=str(channel or ""))


@dataclass(frozen=True)
class StationContainer:
    """A station joined with its channel map entry in a lineup."""

    station: Station
    channel_map: ChannelMapEntry
    lineup: str = ""

    @property
    def channel_number(self) -> str:
        return self.channel_map.channel


@dataclass(frozen=True)
class LineupChannels:
    """Verbose channel map of one lineup."""

    lineup: str
    stations: tuple[Station, ...] = ()
    channel_map: tuple[ChannelMapEntry, ...] = ()

    @classmethod
    def from_api(cls, lineup: str, data: dict) -> "LineupChannels":
        return cls(
            lineup=lineup,
            stations=tuple(Station.from_api(s) for s in data.get("stations") or []),
            channel_map=tuple(ChannelMapEntry.from_api(m) for m in data.get("map") or []),
        )


@dataclass(frozen=True)
class PreviewChannel:
    channel: str = ""
    name: str = ""
    call_sign: str = ""
    affiliate: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "PreviewChannel":
        return cls(
            channel=str(data.get("channel", "")),
            name=data.get("name", ""),
            call_sign=data.get("callsign", ""),
            affiliate=data.get("affiliate", ""),
        )


@dataclass(frozen=True)
class Headend:
    headend: str
    transport: str = ""
    location: str = ""
    lineups: tuple[tuple[str, str], ...] = ()  # (lineup id, name)

    @classmethod
    def from_api(cls, data: dict) -> "Headend":
        return cls(
            headend=data.get("headend", ""),
            transport=data.get("transport", ""),
            location=data.get("location", ""),
            lineups=tuple(
                (lineup.get("lineup", ""), lineup.get("name", ""))
                for lineup in data.get("lineups") or []
            ),
        )


@dataclass(frozen=True)
class Country:
    full_name: str
    short_name: str = ""
    postal_code: str = ""
    postal_code_example: str = ""
    one_postal_code: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Country":
        return cls(
            full_name=data.get("fullName", ""),
            short_name=data.get("shortName", ""),
            postal_code=data.get("postalCode", ""),
            postal_code_example=data.get("postalCodeExample", ""),
            one_postal_code=bool(data.get("onePostalCode", False)),
        )


# =============================================================================
# ACCOUNT STATUS
# =============================================================================


@dataclass(frozen=True)
class AccountStatus:
    expires: str = ""
    max_lineups: int = 0
    messages: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, data: dict) -> "AccountStatus":
        return cls(
            expires=data.get("expires", ""),
            max_lineups=int(data.get("maxLineups") or 0),
            messages=tuple(str(m) for m in data.get("messages") or ()),
        )


@dataclass(frozen=True)
class LineupStatus:
    lineup: str
    modified: str = ""
    uri: str = ""
    is_deleted: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "LineupStatus":
        return cls(
            lineup=data.get("lineup", ""),
            modified=data.get("modified", ""),
            uri=data.get("uri", ""),
            is_deleted=bool(data.get("isDeleted", False)),
        )


@dataclass(frozen=True)
class StatusResponse:
    """Account status. `raw` is kept so refresh can persist it verbatim."""

    account: AccountStatus
    lineups: tuple[LineupStatus, ...] = ()
    last_data_update: str = ""
    raw: dict = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_api(cls, data: dict) -> "StatusResponse":
        return cls(
            account=AccountStatus.from_api(data.get("account") or {}),
            lineups=tuple(LineupStatus.from_api(lu) for lu in data.get("lineups") or []),
            last_data_update=data.get("lastDataUpdate", ""),
            raw=data,
        )

    @property
    def active_lineups(self) -> list[str]:
        return [lu.lineup for lu in self.lineups if not lu.is_deleted]


# =============================================================================
# SCHEDULES
# =============================================================================


@dataclass(frozen=True)
class RatingBody:
    body: str
    code: str

    @classmethod
    def from_api(cls, data: dict) -> "RatingBody":
        return cls(body=data.get("body", ""), code=data.get("code", ""))


@dataclass(frozen=True)
class Multipart:
    part_number: int = 0
    total_parts: int = 0

    @classmethod
    def from_api(cls, data: dict | None) -> "Multipart | None":
        if not data:
            return None
        return cls(
            part_number=int(data.get("partNumber") or 0),
            total_parts=int(data.get("totalParts") or 0),
        )


@dataclass(frozen=True)
class Airing:
    """One scheduled broadcast of a program on a station."""

    program_id: str
    air_date_time: datetime
    duration: int = 0
    md5: str = ""
    new: bool = False
    repeat: bool = False
    premiere: bool = False
    is_premiere_or_finale: str = ""
    signed: bool = False
    audio_properties: tuple[str, ...] = ()
    video_properties: tuple[str, ...] = ()
    ratings: tuple[RatingBody, ...] = ()
    program_part: Multipart | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Airing":
        air_date_time = parse_api_datetime(data.get("airDateTime"))
        if air_date_time is None:
            raise ValueError(f"airing {data.get('programID')} has no airDateTime")
        return cls(
            program_id=data.get("programID", ""),
            air_date_time=air_date_time,
            duration=int(data.get("duration") or 0),
            md5=data.get("md5", ""),
            new=bool(data.get("new", False)),
            repeat=bool(data.get("repeat", False)),
            premiere=bool(data.get("premiere", False)),
            is_premiere_or_finale=data.get("isPremiereOrFinale") or "",
            signed=bool(data.get("signed", False)),
            audio_properties=tuple(data.get("audioProperties") or ()),
            video_properties=tuple(data.get("videoProperties") or ()),
            ratings=tuple(RatingBody.from_api(r) for r in data.get("ratings") or []),
            program_part=Multipart.from_api(data.get("multipart")),
        )


@dataclass(frozen=True)
class StationSchedule:
    station_id: str
    airings: tuple[Airing, ...] = ()
    md5: str = ""
    start_date: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "StationSchedule":
        metadata = data.get("metadata") or {}
        return cls(
            station_id=str(data.get("stationID", "")),
            airings=tuple(Airing.from_api(a) for a in data.get("programs") or []),
            md5=metadata.get("md5", ""),
            start_date=metadata.get("startDate", ""),
        )


# =============================================================================
# PROGRAMS
# =============================================================================


@dataclass(frozen=True)
class CastMember:
    name: str
    role: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "CastMember":
        return cls(name=data.get("name", ""), role=data.get("role", ""))


@dataclass(frozen=True)
class Description:
    text: str
    language: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Description":
        return cls(text=data.get("description", ""), language=data.get("descriptionLanguage", ""))


@dataclass(frozen=True)
class EpisodeMetadata:
    """Season/episode numbering from one metadata provider (e.g. Gracenote)."""

    provider: str
    season: int = 0
    episode: int = 0
    total_seasons: int = 0
    total_episodes: int = 0

    @classmethod
    def from_api(cls, provider: str, data: dict) -> "EpisodeMetadata":
        return cls(
            provider=provider,
            season=int(data.get("season") or 0),
            episode=int(data.get("episode") or 0),
            total_seasons=int(data.get("totalSeasons") or 0),
            total_episodes=int(data.get("totalEpisodes") or 0),
        )


@dataclass(frozen=True)
class QualityRating:
    ratings_body: str
    rating: str
    max_rating: str

    @classmethod
    def from_api(cls, data: dict) -> "QualityRating":
        return cls(
            ratings_body=data.get("ratingsBody", ""),
            rating=str(data.get("rating", "")),
            max_rating=str(data.get("maxRating", "")),
        )


@dataclass(frozen=True)
class MovieInfo:
    year: str = ""
    quality_ratings: tuple[QualityRating, ...] = ()

    @classmethod
    def from_api(cls, data: dict | None) -> "MovieInfo | None":
        if data is None:
            return None
        return cls(
            year=str(data.get("year") or ""),
            quality_ratings=tuple(
                QualityRating.from_api(q) for q in data.get("qualityRating") or []
            ),
        )


@dataclass(frozen=True)
class ProgramInfo:
    """Extended metadata for one program id."""

    program_id: str
    md5: str = ""
    titles: tuple[str, ...] = ()
    episode_title: str = ""
    descriptions_long: tuple[Description, ...] = ()
    descriptions_short: tuple[Description, ...] = ()
    original_air_date: datetime | None = None
    genres: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    official_url: str = ""
    entity_type: str = ""
    cast: tuple[CastMember, ...] = ()
    crew: tuple[CastMember, ...] = ()
    metadata: tuple[EpisodeMetadata, ...] = ()
    content_ratings: tuple[RatingBody, ...] = ()
    movie: MovieInfo | None = None
    has_image_artwork: bool = False
    has_episode_artwork: bool = False
    has_season_artwork: bool = False
    has_series_artwork: bool = False
    has_movie_artwork: bool = False
    has_sports_artwork: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "ProgramInfo":
        descriptions = data.get("descriptions") or {}
        metadata = []
        for entry in data.get("metadata") or []:
            for provider, values in entry.items():
                metadata.append(EpisodeMetadata.from_api(provider, values or {}))

        keywords = []
        for group in (data.get("keyWords") or {}).values():
            keywords.extend(group or [])

        return cls(
            program_id=data.get("programID", ""),
            md5=data.get("md5", ""),
            titles=tuple(t.get("title120", "") for t in data.get("titles") or []),
            episode_title=data.get("episodeTitle150", ""),
            descriptions_long=tuple(
                Description.from_api(d) for d in descriptions.get("description1000") or []
            ),
            descriptions_short=tuple(
                Description.from_api(d) for d in descriptions.get("description100") or []
            ),
            original_air_date=parse_api_datetime(data.get("originalAirDate")),
            genres=tuple(data.get("genres") or ()),
            keywords=tuple(keywords),
            official_url=data.get("officialURL", ""),
            entity_type=data.get("entityType", ""),
            cast=tuple(CastMember.from_api(c) for c in data.get("cast") or []),
            crew=tuple(CastMember.from_api(c) for c in data.get("crew") or []),
            metadata=tuple(metadata),
            content_ratings=tuple(RatingBody.from_api(r) for r in data.get("contentRating") or []),
            movie=MovieInfo.from_api(data.get("movie")),
            has_image_artwork=bool(data.get("hasImageArtwork", False)),
            has_episode_artwork=bool(data.get("hasEpisodeArtwork", False)),
            has_season_artwork=bool(data.get("hasSeasonArtwork", False)),
            has_series_artwork=bool(data.get("hasSeriesArtwork", False)),
            has_movie_artwork=bool(data.get("hasMovieArtwork", False)),
            has_sports_artwork=bool(data.get("hasSportsArtwork", False)),
        )

    def has_artwork(self) -> bool:
        return (
            self.has_image_artwork
            or self.has_episode_artwork
            or self.has_season_artwork
            or self.has_series_artwork
            or self.has_movie_artwork
            or self.has_sports_artwork
        )

    def artwork_lookup_ids(self) -> list[str]:
        """Ids artwork is filed under: the program and its series root."""
        ids = [self.program_id]
        root = self.program_id[:10]
        if root and root != self.program_id:
            ids.append(root)
        return ids


# =============================================================================
# ARTWORK
# =============================================================================


@dataclass(frozen=True)
class Artwork:
    uri: str
    width: int = 0
    height: int = 0
    tier: str = ""
    category: str = ""
    aspect: str = ""
    size: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Artwork":
        return cls(
            uri=data.get("uri", ""),
            width=int(data.get("width") or 0),
            height=int(data.get("height") or 0),
            tier=data.get("tier", ""),
            category=data.get("category", ""),
            aspect=data.get("aspect", ""),
            size=data.get("size", ""),
        )
