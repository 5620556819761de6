"""EPG service — XMLTV parsing, timestamp resolution and now/next lookups."""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from dateutil import parser as date_parser
from lxml import etree

from iptv_catalog.models.catalog import ProgrammeEntry, ScheduledProgramme

logger = logging.getLogger(__name__)

EpgData = dict[str, list[ProgrammeEntry]]

# YYYYMMDDHHMMSS, optionally followed by a +HHMM / -HHMM zone
XMLTV_TIME_RE = re.compile(r"^(\d{14})(?:\s*([+-])(\d{2})(\d{2}))?")
XML_DECLARATION_RE = re.compile(r"^\ufeff?\s*<\?xml[^>]*\?>")


def _xml_parser() -> etree.XMLParser:
    return etree.XMLParser(
        recover=False,
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
    )


def parse_epg(content: Union[str, bytes]) -> EpgData:
    """Parse an XMLTV document into ``{channel_id: [ProgrammeEntry, ...]}``.

    Bytes are decoded by lxml using the document's own encoding declaration.
    Programmes keep document order. Any parse failure yields an empty mapping.
    """
    if not content:
        return {}
    # lxml rejects str input that still carries an encoding declaration.
    data = XML_DECLARATION_RE.sub("", content, count=1) if isinstance(content, str) else content
    try:
        root = etree.fromstring(data, _xml_parser())
    except (etree.XMLSyntaxError, ValueError) as e:
        logger.warning(f"Failed to parse XMLTV document: {e}")
        return {}

    if root is None or root.tag != "tv":
        logger.warning(f"Unexpected XMLTV root element: {getattr(root, 'tag', None)!r}")
        return {}

    epg: EpgData = {}
    count = 0
    for prog in root.iterchildren("programme"):
        channel_id = prog.get("channel")
        if not channel_id:
            continue
        title_el = prog.find("title")
        desc_el = prog.find("desc")
        epg.setdefault(channel_id, []).append(
            ProgrammeEntry(
                channel_id=channel_id,
                start=prog.get("start", ""),
                stop=prog.get("stop", ""),
                title=(title_el.text if title_el is not None else None) or "Unknown",
                description=(desc_el.text or "") if desc_el is not None else "",
            )
        )
        count += 1

    logger.info(f"Parsed XMLTV: {len(epg)} channels, {count} programmes")
    return epg


def resolve_time(raw: Optional[str], offset_hours: float = 0.0) -> datetime:
    """Resolve an XMLTV timestamp to an aware datetime, then shift it.

    With an explicit ``±HHMM`` zone that offset is used.  Without one the
    digits are taken as wall-clock time in this process's local timezone.
    Unparseable input resolves to the current time rather than raising.
    """
    if not raw:
        return datetime.now(timezone.utc)

    text = raw.strip()
    resolved: Optional[datetime] = None
    match = XMLTV_TIME_RE.match(text)
    if match:
        try:
            naive = datetime.strptime(match.group(1), "%Y%m%d%H%M%S")
            if match.group(2):
                sign = 1 if match.group(2) == "+" else -1
                offset = timedelta(hours=int(match.group(3)), minutes=int(match.group(4))) * sign
                resolved = naive.replace(tzinfo=timezone(offset))
            else:
                resolved = naive.astimezone()
        except ValueError:
            resolved = None

    if resolved is None:
        try:
            parsed = date_parser.parse(text)
        except (ValueError, OverflowError):
            logger.debug(f"Unparseable XMLTV timestamp {raw!r}, using current time")
            return datetime.now(timezone.utc)
        resolved = parsed if parsed.tzinfo is not None else parsed.astimezone()

    if offset_hours:
        resolved = resolved + timedelta(hours=offset_hours)
    return resolved


def _as_aware(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.astimezone()
    return now


def _schedule(entry: ProgrammeEntry, offset_hours: float) -> ScheduledProgramme:
    return ScheduledProgramme(
        title=entry.title,
        description=entry.description,
        start=resolve_time(entry.start, offset_hours),
        stop=resolve_time(entry.stop, offset_hours),
    )


def current_programme(
    epg: EpgData,
    channel_id: Optional[str],
    now: Optional[datetime] = None,
    offset_hours: float = 0.0,
) -> Optional[ScheduledProgramme]:
    """First programme, in document order, whose [start, stop] contains *now*."""
    if not channel_id or channel_id not in epg:
        return None
    now = _as_aware(now)
    for entry in epg[channel_id]:
        programme = _schedule(entry, offset_hours)
        if programme.start <= now <= programme.stop:
            return programme
    return None


def upcoming_programmes(
    epg: EpgData,
    channel_id: Optional[str],
    now: Optional[datetime] = None,
    limit: int = 5,
    offset_hours: float = 0.0,
) -> list[ScheduledProgramme]:
    """Programmes starting after *now*.

    Collection stops once *limit* entries have been seen in document order;
    only that subset is then sorted by start time.
    """
    if not channel_id or channel_id not in epg:
        return []
    now = _as_aware(now)
    upcoming: list[ScheduledProgramme] = []
    for entry in epg[channel_id]:
        if len(upcoming) >= limit:
            break
        start = resolve_time(entry.start, offset_hours)
        if start > now:
            upcoming.append(
                ScheduledProgramme(
                    title=entry.title,
                    description=entry.description,
                    start=start,
                    stop=resolve_time(entry.stop, offset_hours),
                )
            )
    upcoming.sort(key=lambda p: p.start)
    return upcoming
