"""XMLTV read/write utilities.

Parses XMLTV documents into canonical Channel/Programme dataclasses and
renders them back to XMLTV.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from xml.dom import minidom
from xml.etree import ElementTree as ET
from xml.etree.ElementTree import Element, SubElement, tostring

from guidearr.core.types import (
    Actor,
    Audio,
    Channel,
    Credits,
    EpisodeNum,
    Icon,
    Logo,
    PreviouslyShown,
    Programme,
    Rating,
    Subtitle,
    TextElement,
    Video,
)

logger = logging.getLogger(__name__)

XMLTV_TIME_FORMAT = "%Y%m%d%H%M%S %z"

_LENGTH_UNITS = {"seconds": 1, "minutes": 60, "hours": 3600}


@dataclass
class XMLTVDocument:
    channels: list[Channel] = field(default_factory=list)
    programmes: list[Programme] = field(default_factory=list)


# =============================================================================
# TIME
# =============================================================================


def parse_xmltv_time(value: str | None) -> datetime | None:
    """Parse "20240101050000 +0000" (offset and trailing fields optional)."""
    if not value:
        return None
    value = value.strip()
    stamp, _, offset = value.partition(" ")
    stamp = stamp.ljust(14, "0")[:14]
    try:
        if offset:
            return datetime.strptime(f"{stamp} {offset}", XMLTV_TIME_FORMAT)
        return datetime.strptime(stamp, "%Y%m%d%H%M%S").replace(tzinfo=UTC)
    except ValueError:
        return None


def format_xmltv_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.strftime(XMLTV_TIME_FORMAT)


# =============================================================================
# PARSING
# =============================================================================


def _text(elem: Element) -> TextElement:
    return TextElement(value=(elem.text or "").strip(), lang=elem.get("lang", ""))


def _int_attr(elem: Element, name: str) -> int:
    try:
        return int(elem.get(name) or 0)
    except ValueError:
        return 0


def _child_text(elem: Element, tag: str) -> str:
    child = elem.find(tag)
    return (child.text or "").strip() if child is not None else ""


def _parse_channel(elem: Element) -> Channel:
    display_names = [_text(d).value for d in elem.findall("display-name")]
    return Channel(
        id=elem.get("id", ""),
        name=display_names[0] if display_names else "",
        number=_child_text(elem, "lcn"),
        call_sign="UNK",
        logos=[
            Logo(
                url=icon.get("src", ""),
                width=_int_attr(icon, "width"),
                height=_int_attr(icon, "height"),
            )
            for icon in elem.findall("icon")
        ],
        urls=[(u.text or "").strip() for u in elem.findall("url")],
    )


def _parse_credits(elem: Element | None) -> Credits | None:
    if elem is None:
        return None
    return Credits(
        directors=[(e.text or "").strip() for e in elem.findall("director")],
        actors=[
            Actor(name=(e.text or "").strip(), role=e.get("role", ""))
            for e in elem.findall("actor")
        ],
        writers=[(e.text or "").strip() for e in elem.findall("writer")],
        producers=[(e.text or "").strip() for e in elem.findall("producer")],
        presenters=[(e.text or "").strip() for e in elem.findall("presenter")],
        guests=[(e.text or "").strip() for e in elem.findall("guest")],
    )


def _parse_length(elem: Element | None) -> int | None:
    if elem is None or not (elem.text or "").strip():
        return None
    try:
        return int(elem.text.strip()) * _LENGTH_UNITS.get(elem.get("units", "seconds"), 1)
    except ValueError:
        return None


def _parse_programme(elem: Element) -> Programme | None:
    start = parse_xmltv_time(elem.get("start"))
    if start is None:
        logger.debug("[XMLTV] Skipping programme with bad start: %s", elem.get("start"))
        return None

    video = None
    video_elem = elem.find("video")
    if video_elem is not None:
        video = Video(
            present=_child_text(video_elem, "present"),
            quality=_child_text(video_elem, "quality"),
            aspect=_child_text(video_elem, "aspect"),
        )

    audio = None
    audio_elem = elem.find("audio")
    if audio_elem is not None:
        audio = Audio(stereo=_child_text(audio_elem, "stereo"))

    previously_shown = None
    shown_elem = elem.find("previously-shown")
    if shown_elem is not None:
        previously_shown = PreviouslyShown(start=parse_xmltv_time(shown_elem.get("start")))

    premiere_elem = elem.find("premiere")
    date_text = _child_text(elem, "date")

    return Programme(
        channel=elem.get("channel", ""),
        id=elem.get("id", ""),
        start=start,
        stop=parse_xmltv_time(elem.get("stop")),
        length_seconds=_parse_length(elem.find("length")),
        titles=[_text(e) for e in elem.findall("title")],
        secondary_titles=[_text(e) for e in elem.findall("sub-title")],
        descriptions=[_text(e) for e in elem.findall("desc")],
        credits=_parse_credits(elem.find("credits")),
        date=date_text or None,
        categories=[_text(e) for e in elem.findall("category")],
        keywords=[_text(e) for e in elem.findall("keyword")],
        languages=[_text(e) for e in elem.findall("language")],
        urls=[(e.text or "").strip() for e in elem.findall("url")],
        icons=[
            Icon(src=e.get("src", ""), width=_int_attr(e, "width"), height=_int_attr(e, "height"))
            for e in elem.findall("icon")
        ],
        episode_nums=[
            EpisodeNum(system=e.get("system", ""), value=(e.text or "").strip())
            for e in elem.findall("episode-num")
        ],
        video=video,
        audio=audio,
        subtitles=[Subtitle(type=e.get("type", "")) for e in elem.findall("subtitles")],
        previously_shown=previously_shown,
        premiere=_text(premiere_elem) if premiere_elem is not None else None,
        new=elem.find("new") is not None,
        ratings=[
            Rating(value=_child_text(e, "value"), system=e.get("system", ""))
            for e in elem.findall("rating")
        ],
        star_ratings=[
            Rating(value=_child_text(e, "value"), system=e.get("system", ""))
            for e in elem.findall("star-rating")
        ],
    )


def parse_xmltv(content: bytes | str) -> XMLTVDocument:
    """Parse an XMLTV document.

    Raises:
        ET.ParseError: If the content is not well-formed XML
    """
    root = ET.fromstring(content)
    document = XMLTVDocument()

    for elem in root.findall("channel"):
        document.channels.append(_parse_channel(elem))

    for elem in root.findall("programme"):
        programme = _parse_programme(elem)
        if programme is not None:
            document.programmes.append(programme)

    return document


# =============================================================================
# WRITING
# =============================================================================


def _add_text(parent: Element, tag: str, text: TextElement) -> Element:
    elem = SubElement(parent, tag)
    if text.lang:
        elem.set("lang", text.lang)
    elem.text = text.value
    return elem


def _add_channel(root: Element, channel: Channel) -> None:
    chan_elem = SubElement(root, "channel")
    chan_elem.set("id", channel.id)

    for name in channel.display_names():
        if name:
            SubElement(chan_elem, "display-name").text = name

    for logo in channel.logos:
        icon_elem = SubElement(chan_elem, "icon")
        icon_elem.set("src", logo.url)
        if logo.width:
            icon_elem.set("width", str(logo.width))
        if logo.height:
            icon_elem.set("height", str(logo.height))

    for url in channel.urls:
        SubElement(chan_elem, "url").text = url

    if channel.number:
        SubElement(chan_elem, "lcn").text = channel.number


def _add_programme(root: Element, programme: Programme) -> None:
    prog_elem = SubElement(root, "programme")
    prog_elem.set("start", format_xmltv_time(programme.start))
    if programme.stop:
        prog_elem.set("stop", format_xmltv_time(programme.stop))
    prog_elem.set("channel", programme.channel)
    if programme.id:
        prog_elem.set("id", programme.id)

    for title in programme.titles:
        _add_text(prog_elem, "title", title)
    for title in programme.secondary_titles:
        _add_text(prog_elem, "sub-title", title)
    for desc in programme.descriptions:
        _add_text(prog_elem, "desc", desc)

    if programme.credits:
        credits_elem = SubElement(prog_elem, "credits")
        credits = programme.credits
        for name in credits.directors:
            SubElement(credits_elem, "director").text = name
        for actor in credits.actors:
            actor_elem = SubElement(credits_elem, "actor")
            if actor.role:
                actor_elem.set("role", actor.role)
            actor_elem.text = actor.name
        for tag, names in (
            ("writer", credits.writers),
            ("producer", credits.producers),
            ("presenter", credits.presenters),
            ("guest", credits.guests),
        ):
            for name in names:
                SubElement(credits_elem, tag).text = name

    if programme.date:
        SubElement(prog_elem, "date").text = programme.date

    for category in programme.categories:
        _add_text(prog_elem, "category", category)
    for keyword in programme.keywords:
        _add_text(prog_elem, "keyword", keyword)
    for language in programme.languages:
        _add_text(prog_elem, "language", language)

    if programme.length_seconds is not None:
        length_elem = SubElement(prog_elem, "length")
        length_elem.set("units", "seconds")
        length_elem.text = str(programme.length_seconds)

    for icon in programme.icons:
        icon_elem = SubElement(prog_elem, "icon")
        icon_elem.set("src", icon.src)
        if icon.width:
            icon_elem.set("width", str(icon.width))
        if icon.height:
            icon_elem.set("height", str(icon.height))

    for url in programme.urls:
        SubElement(prog_elem, "url").text = url

    for num in programme.episode_nums:
        num_elem = SubElement(prog_elem, "episode-num")
        num_elem.set("system", num.system)
        num_elem.text = num.value

    if programme.video:
        video_elem = SubElement(prog_elem, "video")
        for tag in ("present", "aspect", "quality"):
            value = getattr(programme.video, tag)
            if value:
                SubElement(video_elem, tag).text = value

    if programme.audio:
        audio_elem = SubElement(prog_elem, "audio")
        SubElement(audio_elem, "stereo").text = programme.audio.stereo

    if programme.previously_shown:
        shown_elem = SubElement(prog_elem, "previously-shown")
        if programme.previously_shown.start:
            shown_elem.set("start", format_xmltv_time(programme.previously_shown.start))

    if programme.premiere:
        _add_text(prog_elem, "premiere", programme.premiere)

    if programme.new:
        SubElement(prog_elem, "new")

    for subtitle in programme.subtitles:
        SubElement(prog_elem, "subtitles").set("type", subtitle.type)

    for tag, ratings in (("rating", programme.ratings), ("star-rating", programme.star_ratings)):
        for rating in ratings:
            rating_elem = SubElement(prog_elem, tag)
            if rating.system:
                rating_elem.set("system", rating.system)
            SubElement(rating_elem, "value").text = rating.value


def _prettify(xml_str: str) -> str:
    """Return pretty-printed XML string."""
    dom = minidom.parseString(xml_str)
    return dom.toprettyxml(indent="  ")


def programmes_to_xmltv(
    channels: list[Channel],
    programmes: list[Programme],
    generator_name: str = "guidearr",
) -> str:
    """Render channels and programmes as an XMLTV document."""
    root = Element("tv")
    root.set("generator-info-name", generator_name)

    for channel in channels:
        _add_channel(root, channel)

    for programme in programmes:
        _add_programme(root, programme)

    return _prettify(tostring(root, encoding="unicode"))
