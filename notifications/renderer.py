"""
Email bodies for location summaries.
"""

from datetime import datetime
from html import escape
from typing import List

from summary.aggregator import LocationSummary

TIME_FORMAT = "%b %d, %I:%M %p"
SUBJECT_DATE_FORMAT = "%B %d, %Y"


def _local(summary: LocationSummary, value: datetime) -> datetime:
    return value.astimezone(summary.config.tz)


def _fmt(summary: LocationSummary, value: datetime) -> str:
    return _local(summary, value).strftime(TIME_FORMAT)


def build_subject(summary: LocationSummary, now: datetime) -> str:
    """e.g. "📍 Daily Location Summary - October 26, 2025"."""
    return f"📍 {summary.config.subject_prefix} - {_local(summary, now).strftime(SUBJECT_DATE_FORMAT)}"


def render_text(summary: LocationSummary) -> str:
    lines: List[str] = [
        summary.config.subject_prefix,
        "=" * len(summary.config.subject_prefix),
        "",
        f"Period: {_fmt(summary, summary.start_time)} - {_fmt(summary, summary.end_time)}",
        f"Total locations recorded: {summary.total_locations}",
        f"Locations with place data: {summary.geocoded_locations}",
        "",
    ]

    if summary.primary_location:
        lines.append(f"Primary location: {summary.primary_location.name}")
        lines.append("")

    if summary.places:
        lines.append("Places visited:")
        for place in summary.places:
            lines.append(
                f"  - {place.name}: {place.visit_count} updates "
                f"({_fmt(summary, place.first_seen)} to {_fmt(summary, place.last_seen)})"
            )
        lines.append("")

    if summary.days:
        lines.append("Daily activity:")
        for day in summary.days:
            places = "; ".join(day.places) or "no place data"
            lines.append(f"  - {day.day.isoformat()}: {day.count} updates ({places})")
        lines.append("")

    if not summary.total_locations:
        lines.append("No location updates were received in this period.")

    return "\n".join(lines).rstrip() + "\n"


def render_html(summary: LocationSummary) -> str:
    """HTML body; every value taken from stored data is escaped."""
    title = escape(summary.config.subject_prefix)
    parts: List[str] = [
        "<!DOCTYPE html>",
        "<html><head><meta charset=\"UTF-8\">",
        f"<title>{title}</title></head>",
        "<body style=\"font-family: -apple-system, Helvetica, Arial, sans-serif; color: #222;\">",
        f"<h1 style=\"font-size: 20px;\">📍 {title}</h1>",
        "<p>",
        f"{escape(_fmt(summary, summary.start_time))} &ndash; {escape(_fmt(summary, summary.end_time))}<br>",
        f"<strong>{summary.total_locations}</strong> locations recorded, ",
        f"<strong>{summary.geocoded_locations}</strong> with place data",
        "</p>",
    ]

    if summary.primary_location:
        parts.append(
            f"<p>Primary location: <strong>{escape(summary.primary_location.name)}</strong></p>"
        )

    if summary.places:
        parts.append("<h2 style=\"font-size: 16px;\">Places visited</h2>")
        parts.append("<table cellpadding=\"6\" style=\"border-collapse: collapse;\">")
        parts.append("<tr><th align=\"left\">Place</th><th align=\"right\">Updates</th>"
                     "<th align=\"left\">First seen</th><th align=\"left\">Last seen</th></tr>")
        for place in summary.places:
            parts.append(
                f"<tr><td>{escape(place.name)}</td>"
                f"<td align=\"right\">{place.visit_count}</td>"
                f"<td>{escape(_fmt(summary, place.first_seen))}</td>"
                f"<td>{escape(_fmt(summary, place.last_seen))}</td></tr>"
            )
        parts.append("</table>")

    if summary.days:
        parts.append("<h2 style=\"font-size: 16px;\">Daily activity</h2>")
        parts.append("<ul>")
        for day in summary.days:
            places = escape("; ".join(day.places)) or "<em>no place data</em>"
            parts.append(f"<li><strong>{day.day.isoformat()}</strong>: {day.count} updates, {places}</li>")
        parts.append("</ul>")

    if not summary.total_locations:
        parts.append("<p><em>No location updates were received in this period.</em></p>")

    parts.append("</body></html>")
    return "\n".join(parts)
