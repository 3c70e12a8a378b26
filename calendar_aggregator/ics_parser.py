"""iCalendar feed parsing into window-bounded FeedEvents.

Only VEVENT blocks and the SUMMARY, DESCRIPTION, LOCATION, DTSTART, DTEND,
RRULE and UID properties are read. Lines are unfolded by icalendar's content
line reader, then every block is tokenized once into a property dictionary.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from icalendar.parser import Contentlines

from .datetime_utils import ensure_local, parse_ics_datetime
from .models import FeedEvent
from .rrule_expander import RecurrenceRuleError, expand_rrule, parse_rrule

logger = logging.getLogger(__name__)

MAX_BLOCKS_PER_FEED = 2000
ALL_DAY_DEFAULT_DURATION = timedelta(days=1)
TIMED_DEFAULT_DURATION = timedelta(hours=1)
UNTITLED = "Untitled"


@dataclass
class RawEventBlock:
    """One VEVENT as a property-name -> raw value mapping."""

    index: int
    fields: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        return self.fields.get(name, "").strip()


def unescape_text(value: str, newline: str = "\n") -> str:
    """Undo iCalendar TEXT escaping.

    Args:
        value: Escaped property value
        newline: Replacement for ``\\n``/``\\N`` sequences

    Returns:
        Unescaped text
    """
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            if nxt in "nN":
                out.append(newline)
                i += 2
                continue
            if nxt in ",;\\":
                out.append(nxt)
                i += 2
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def _split_content_line(line: str) -> tuple[str, str] | None:
    """Split ``NAME;PARAM=x:value`` into (NAME, value); None if there is no colon."""
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            name = line[:i].split(";", 1)[0].strip().upper()
            return name, line[i + 1 :]
    return None


def iter_event_blocks(text: str) -> Iterator[RawEventBlock]:
    """Yield every VEVENT of ``text`` as a RawEventBlock.

    Properties of nested components (e.g. VALARM) are not attributed to the
    event. A trailing VEVENT without END:VEVENT is still yielded.
    """
    current: RawEventBlock | None = None
    nested_depth = 0
    index = 0

    for line in Contentlines.from_ical(text):
        if not line:
            continue
        parts = _split_content_line(line)
        if parts is None:
            continue
        name, value = parts
        marker = value.strip().upper()

        if current is None:
            if name == "BEGIN" and marker == "VEVENT":
                index += 1
                current = RawEventBlock(index=index)
                nested_depth = 0
            continue

        if name == "BEGIN":
            nested_depth += 1
        elif name == "END":
            if nested_depth:
                nested_depth -= 1
            elif marker == "VEVENT":
                yield current
                current = None
        elif nested_depth == 0:
            current.fields.setdefault(name, value)

    if current is not None:
        yield current


class FeedParser:
    """Decode feed text into FeedEvents that intersect a query window."""

    def __init__(self, max_blocks: int = MAX_BLOCKS_PER_FEED) -> None:
        """Initialize feed parser.

        Args:
            max_blocks: Maximum number of VEVENT blocks processed per feed
        """
        self.max_blocks = max_blocks

    def parse(self, text: str, window_start: datetime, window_end: datetime) -> list[FeedEvent]:
        """Parse ``text`` and return the events occurring in the window.

        Recurring events are expanded into one FeedEvent per occurrence.
        Blocks without DTSTART, with undecodable dates or with a malformed
        RRULE are skipped.

        Args:
            text: Raw feed text
            window_start: Query window start
            window_end: Query window end

        Returns:
            FeedEvents in feed order
        """
        if not text or not text.strip():
            return []

        window_start = ensure_local(window_start)
        window_end = ensure_local(window_end)

        events: list[FeedEvent] = []
        processed = 0
        skipped = 0

        for block in iter_event_blocks(text):
            if processed >= self.max_blocks:
                logger.warning(
                    "Feed has more than %d events; remaining blocks ignored", self.max_blocks
                )
                break
            processed += 1

            try:
                events.extend(self._parse_block(block, window_start, window_end))
            except (ValueError, RecurrenceRuleError) as e:
                skipped += 1
                logger.debug("Skipping event block %d: %s", block.index, e)

        logger.debug(
            "Parsed %d blocks into %d events (%d skipped)", processed, len(events), skipped
        )
        return events

    def _parse_block(
        self, block: RawEventBlock, window_start: datetime, window_end: datetime
    ) -> list[FeedEvent]:
        dtstart = block.get("DTSTART")
        if not dtstart:
            return []

        start, all_day = parse_ics_datetime(dtstart)
        dtend = block.get("DTEND")
        if dtend:
            end, _ = parse_ics_datetime(dtend)
            duration = max(end - start, timedelta(0))
        else:
            duration = ALL_DAY_DEFAULT_DURATION if all_day else TIMED_DEFAULT_DURATION

        uid = block.get("UID") or f"ev-{block.index}"
        summary = unescape_text(block.get("SUMMARY"), newline=" ") or UNTITLED
        description = unescape_text(block.get("DESCRIPTION"))
        location = unescape_text(block.get("LOCATION"), newline=" ")

        rrule = block.get("RRULE")
        if rrule:
            starts = expand_rrule(parse_rrule(rrule), start, window_start, window_end)
        elif start + duration >= window_start and start <= window_end:
            starts = [start]
        else:
            starts = []

        return [
            FeedEvent(
                uid=uid,
                summary=summary,
                start=occurrence,
                end=occurrence + duration,
                all_day=all_day,
                description=description,
                location=location,
            )
            for occurrence in starts
        ]
