"""Convert Schedules Direct airings into canonical programmes.

transform_airing() is a pure function of (airing, program info, artwork,
station). The rules mirror what tv_grab_zz_sdjson emits so media servers
that understand its XMLTV see the same shapes.
"""

from collections.abc import Callable
from datetime import timedelta

from guidearr.core.types import (
    Actor,
    Audio,
    Credits,
    EpisodeNum,
    Icon,
    PreviouslyShown,
    Programme,
    ProgrammeContainer,
    ProviderData,
    Rating,
    Subtitle,
    TextElement,
    Video,
)
from guidearr.providers.schedulesdirect.sync import PROVIDER_KIND, make_channel_id
from guidearr.providers.schedulesdirect.types import (
    Airing,
    Artwork,
    EpisodeMetadata,
    Multipart,
    ProgramInfo,
    StationContainer,
)
from guidearr.utilities.strings import kebab_case, pad_number

ORIGINAL_AIR_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Artwork ordering: tier first, then banner category. Unknown values sort last.
ARTWORK_TIER_ORDER = {"Episode": 1, "Season": 2, "Series": 3}
ARTWORK_CATEGORY_ORDER = {
    "Banner-L1": 1,
    "Banner-L1T": 2,
    "Banner": 3,
    "Banner-L2": 4,
    "Banner-L3": 5,
    "Banner-LO": 6,
    "Banner-LOT": 7,
}
UNRANKED = 10

# Lowercased audio property -> XMLTV stereo value
AUDIO_STEREO_MODES = {
    "dd": "dolby digital",
    "dd 5.1": "surround",
    "surround": "surround",
    "atmos": "surround",
    "dolby": "dolby",
    "stereo": "stereo",
    "mono": "mono",
}
CAPTION_PROPERTIES = frozenset({"cc", "subtitled"})


# =============================================================================
# ARTWORK
# =============================================================================


def artwork_sort_key(artwork: Artwork) -> tuple[int, int]:
    return (
        ARTWORK_TIER_ORDER.get(artwork.tier, UNRANKED),
        ARTWORK_CATEGORY_ORDER.get(artwork.category, UNRANKED),
    )


def sort_artwork(artworks: list[Artwork]) -> list[Artwork]:
    """Order by tier (episode, season, series, other), then banner category."""
    return sorted(artworks, key=artwork_sort_key)


def resolve_artwork(
    program_info: ProgramInfo, artwork_by_id: dict[str, list[Artwork]]
) -> list[Artwork]:
    """Artwork for a program from its lookup ids, sorted."""
    found: list[Artwork] = []
    for lookup_id in program_info.artwork_lookup_ids():
        found.extend(artwork_by_id.get(lookup_id, ()))
    return sort_artwork(found)


# =============================================================================
# EPISODE NUMBERING
# =============================================================================


def xmltv_ns_number(metadata: tuple[EpisodeMetadata, ...], part: Multipart | None) -> str:
    """xmltv_ns "season.episode.part", zero-indexed, totals as "n/total".

    Empty when no metadata provider carries any numbering. Later providers
    override earlier ones for each field.
    """
    season = episode = total_seasons = total_episodes = 0
    filled = False

    for meta in metadata:
        if meta.season > 0:
            season = meta.season - 1
            filled = True
        if meta.episode > 0:
            episode = meta.episode - 1
            filled = True
        if meta.total_seasons > 0:
            total_seasons = meta.total_seasons
            filled = True
        if meta.total_episodes > 0:
            total_episodes = meta.total_episodes
            filled = True

    if not filled:
        return ""

    season_str = f"{season}/{total_seasons}" if total_seasons else str(season)
    episode_str = f"{episode}/{total_episodes}" if total_episodes else str(episode)

    part_str = "0"
    if part is not None and part.part_number > 0:
        part_str = str(part.part_number)
        if part.total_parts > 0:
            part_str = f"{part.part_number}/{part.total_parts}"

    return f"{season_str}.{episode_str}.{part_str}"


def sxxexx_number(metadata: tuple[EpisodeMetadata, ...]) -> str:
    """Human "S01E02" numbering; empty unless season and episode are both positive."""
    value = ""
    for meta in metadata:
        if meta.season > 0 and meta.episode > 0:
            value = f"S{pad_number(meta.season)}E{pad_number(meta.episode)}"
    return value


# =============================================================================
# CREDITS
# =============================================================================


def classify_credits(program_info: ProgramInfo) -> Credits | None:
    """Bucket cast and crew by role name, first matching rule wins."""
    members = program_info.cast + program_info.crew
    if not members:
        return None

    credits = Credits()
    for member in members:
        role = member.role.lower()
        if "director" in role:
            credits.directors.append(member.name)
        elif "actor" in role or "voice" in role:
            credits.actors.append(
                Actor(name=member.name, role="" if member.role == "Actor" else member.role)
            )
        elif "writer" in role:
            credits.writers.append(member.name)
        elif "producer" in role:
            credits.producers.append(member.name)
        elif "host" in role or "anchor" in role:
            credits.presenters.append(member.name)
        elif "guest" in role or "contestant" in role:
            credits.guests.append(member.name)
    return credits


# =============================================================================
# TRANSFORM
# =============================================================================


def _categories(program_info: ProgramInfo) -> list[TextElement]:
    seen: set[str] = set()
    categories: list[TextElement] = []
    for genre in program_info.genres:
        if genre not in seen:
            seen.add(genre)
            categories.append(TextElement(value=genre))

    entity_type = "series" if program_info.entity_type == "episode" else program_info.entity_type
    if entity_type and entity_type not in seen:
        categories.append(TextElement(value=entity_type))
    return categories


def _keywords(program_info: ProgramInfo) -> list[TextElement]:
    seen: set[str] = set()
    keywords: list[TextElement] = []
    for keyword in program_info.keywords:
        value = kebab_case(keyword)
        if value and value not in seen:
            seen.add(value)
            keywords.append(TextElement(value=value))
    return keywords


def _video(airing: Airing, station: StationContainer) -> Video | None:
    if station.station.is_radio_station or not airing.video_properties:
        return None

    video = Video(present="yes")
    for prop in airing.video_properties:
        prop = prop.lower()
        if prop == "hdtv":
            video.quality = "HDTV"
            video.aspect = "16:9"
        elif prop == "uhdtv":
            video.quality = "UHD"
        elif prop == "sdtv":
            video.aspect = "4:3"
    return video


def _ratings(program_info: ProgramInfo, airing: Airing) -> list[Rating]:
    seen: set[str] = set()
    ratings: list[Rating] = []
    for rating in program_info.content_ratings + airing.ratings:
        if rating.body not in seen:
            seen.add(rating.body)
            ratings.append(Rating(value=rating.code, system=rating.body))
    return ratings


def transform_airing(
    airing: Airing,
    program_info: ProgramInfo,
    artworks: list[Artwork],
    station: StationContainer,
    image_url: Callable[[str], str],
) -> ProgrammeContainer:
    """Build the canonical programme for one airing.

    Args:
        airing: Scheduled broadcast
        program_info: Extended metadata for the airing's program
        artworks: Artwork already resolved and sorted for the program
        station: Station the airing is on, with its channel map entry
        image_url: Expands "assets/..." artwork URIs to absolute URLs
    """
    programme = Programme(
        channel=make_channel_id(station.channel_number, station.station.station_id),
        id=airing.program_id,
        start=airing.air_date_time,
        stop=airing.air_date_time + timedelta(seconds=airing.duration),
        length_seconds=airing.duration,
    )

    if station.station.broadcast_languages:
        language = station.station.broadcast_languages[0]
        programme.languages = [TextElement(value=language, lang=language)]

    programme.titles = [TextElement(value=title) for title in program_info.titles]
    if program_info.episode_title:
        programme.secondary_titles = [TextElement(value=program_info.episode_title)]

    for variants in (program_info.descriptions_long, program_info.descriptions_short):
        if variants:
            programme.descriptions.append(
                TextElement(value=variants[0].text, lang=variants[0].language)
            )

    programme.credits = classify_credits(program_info)

    if program_info.movie and program_info.movie.year:
        programme.date = program_info.movie.year

    programme.categories = _categories(program_info)
    programme.keywords = _keywords(program_info)

    if program_info.official_url:
        programme.urls = [program_info.official_url]

    for artwork in artworks:
        uri = image_url(artwork.uri) if artwork.uri.startswith("assets/") else artwork.uri
        programme.icons.append(Icon(src=uri, width=artwork.width, height=artwork.height))

    programme.episode_nums.append(
        EpisodeNum(system="dd_progid", value=program_info.program_id or airing.program_id)
    )
    xmltv_ns = xmltv_ns_number(program_info.metadata, airing.program_part)
    if xmltv_ns:
        programme.episode_nums.append(EpisodeNum(system="xmltv_ns", value=xmltv_ns))
    sxxexx = sxxexx_number(program_info.metadata)
    if sxxexx:
        programme.episode_nums.append(EpisodeNum(system="SxxExx", value=sxxexx))

    programme.video = _video(airing, station)

    for prop in airing.audio_properties:
        prop = prop.lower()
        if prop in AUDIO_STEREO_MODES:
            programme.audio = Audio(stereo=AUDIO_STEREO_MODES[prop])
        elif prop in CAPTION_PROPERTIES:
            programme.subtitles.append(Subtitle(type="teletext"))
    if airing.signed:
        programme.subtitles.append(Subtitle(type="deaf-signed"))

    if program_info.original_air_date is not None:
        if not airing.new:
            programme.previously_shown = PreviouslyShown(start=program_info.original_air_date)
        aired = airing.air_date_time if airing.new else program_info.original_air_date
        programme.episode_nums.append(
            EpisodeNum(system="original-air-date", value=aired.strftime(ORIGINAL_AIR_DATE_FORMAT))
        )
    if airing.repeat:
        programme.previously_shown = None

    programme.ratings = _ratings(program_info, airing)
    if program_info.movie:
        programme.star_ratings = [
            Rating(value=f"{q.rating}/{q.max_rating}", system=q.ratings_body)
            for q in program_info.movie.quality_ratings
        ]

    if airing.is_premiere_or_finale:
        programme.premiere = TextElement(value=airing.is_premiere_or_finale, lang="en")
    if airing.premiere:
        programme.premiere = TextElement(value="")

    programme.new = airing.new

    return ProgrammeContainer(
        programme=programme,
        provider_data=ProviderData(
            kind=PROVIDER_KIND,
            payload={
                "station_id": station.station.station_id,
                "airing_md5": airing.md5,
                "program_md5": program_info.md5,
            },
        ),
    )
