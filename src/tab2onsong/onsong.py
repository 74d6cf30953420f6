"""Ultimate Guitar markup → OnSong chord sheet.

Output layout
-------------

::

    <title>
    <artist>
    Key: <key>              omitted when the key is unknown
    Capo: <n>               omitted when no capo
    Tuning: <tuning>        omitted for standard tuning

    <body>

    # Source: Ultimate Guitar (Tab ID: <id>)
    # Contributor: <username>
    # Rating: <r>/5.0 (<n> votes)

Body rewriting
--------------

+-------------------------------+------------------------------------------+
| UG markup                     | OnSong                                   |
+===============================+==========================================+
| ``[tab]`` / ``[/tab]``        | removed                                  |
+-------------------------------+------------------------------------------+
| ``[ch]Am[/ch]``               | ``[Am]``                                 |
+-------------------------------+------------------------------------------+
| ``[Verse 1]`` on its own line | ``Verse 1:``                             |
+-------------------------------+------------------------------------------+
| ``G        C`` (plain chord   | ``[G]        [C]``, only when the text   |
| line)                         | has no ``[ch]`` annotations at all       |
+-------------------------------+------------------------------------------+

Usage::

    from tab2onsong.onsong import OnSongConverter
    result = OnSongConverter().convert(tab)
    Path("song.onsong").write_text(result.onsong_format)
"""

import re

from .chords import detect_key, extract_chords, is_chord_line, plain_chords, unique_chords
from .exceptions import ValidationError
from .models import ConversionResult, RawTab

STANDARD_TUNING = "E A D G B E"
UNKNOWN_KEY = "Unknown"
UNKNOWN_ARTIST = "Unknown Artist"

_TAB_TAG_RE = re.compile(r"\[/?tab\]")
_CH_OPEN_RE = re.compile(r"\[ch\]")
_CH_CLOSE_RE = re.compile(r"\[/ch\]")
_BLANK_RUN_RE = re.compile(r"\n{3,}")

# [Label] alone on a line, for the section names UG contributors use.
SECTION_LABEL_RE = re.compile(
    r"^\[((?:Intro|Verse|Chorus|Pre-?Chorus|Bridge|Instrumental|Interlude|Turnaround|"
    r"Outro Chorus|Outro|Tag|Ending|Solo|Break|Refrain|Coda|Hook|Vamp)"
    r"(?:[ \t]*\d+)?)\][ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)


class OnSongConverter:
    """Convert catalog tabs and hand-entered text to OnSong chord sheets."""

    def validate_tab(self, tab: RawTab) -> None:
        """Raise ValidationError naming the first missing required field."""
        if not tab.song_name:
            raise ValidationError("song_name", "song name is required")
        if not tab.artist_name:
            raise ValidationError("artist_name", "artist name is required")
        if not tab.content:
            raise ValidationError("content", "tab content is empty")

    def convert(self, tab: RawTab) -> ConversionResult:
        """Return the OnSong document for *tab* plus chord metadata."""
        self.validate_tab(tab)

        chords = extract_chords(tab.content)
        key = resolve_key(tab.tonality_name, chords)

        parts: list[str] = [tab.song_name, tab.artist_name]
        if key != UNKNOWN_KEY:
            parts.append(f"Key: {key}")
        if tab.capo > 0:
            parts.append(f"Capo: {tab.capo}")
        if tab.tuning and tab.tuning != STANDARD_TUNING:
            parts.append(f"Tuning: {tab.tuning}")

        parts.append("")
        parts.append(self.format_content(tab.content))
        parts.append("")

        parts.append(f"# Source: Ultimate Guitar (Tab ID: {tab.tab_id})")
        parts.append(f"# Contributor: {tab.contributor.username}")
        parts.append(f"# Rating: {tab.rating:.1f}/5.0 ({tab.votes} votes)")

        return ConversionResult(
            onsong_format="\n".join(parts) + "\n",
            key=key,
            chords=unique_chords(chords),
            chord_count=len(chords),
        )

    def format_content(self, content: str) -> str:
        """Rewrite UG tab markup as an OnSong body (see module docstring)."""
        content = content.replace("\r\n", "\n")
        content = _TAB_TAG_RE.sub("", content)

        has_ch_tags = "[ch]" in content
        if has_ch_tags:
            content = _CH_OPEN_RE.sub("[", content)
            content = _CH_CLOSE_RE.sub("]", content)

        content = SECTION_LABEL_RE.sub(r"\1:", content)

        if not has_ch_tags:
            content = wrap_plain_chord_lines(content)

        content = _BLANK_RUN_RE.sub("\n\n", content)
        return content.strip()

    def format_manual_content(self, title: str, artist: str, content: str) -> str:
        """Format hand-entered text; same body rewriting, no catalog footer."""
        if not artist or not artist.strip():
            artist = UNKNOWN_ARTIST

        parts: list[str] = [title, artist]

        chords = extract_chords(content) or plain_chords(content)
        key = detect_key(chords)
        if key:
            parts.append(f"Key: {key}")

        parts.append("")
        parts.append(self.format_content(content) if content else "")
        return "\n".join(parts)

    def convert_to_plain_text(self, tab: RawTab) -> str:
        """Return a simple ``Title - Artist`` text rendering of *tab*."""
        heading = f"{tab.song_name} - {tab.artist_name}"
        parts: list[str] = [heading, "=" * len(heading), ""]
        if tab.tonality_name:
            key_line = f"Key: {tab.tonality_name}"
            if tab.capo > 0:
                key_line += f" (Capo: {tab.capo})"
            parts.extend([key_line, ""])
        parts.append(self.format_content(tab.content))
        return "\n".join(parts)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_key(declared: str, chords: list[str]) -> str:
    """Declared tonality if usable, else the detected key, else ``Unknown``."""
    if declared and declared != "undefined":
        return declared
    return detect_key(chords) or UNKNOWN_KEY


def wrap_plain_chord_lines(content: str) -> str:
    """Bracket every token of each chord-only line, keeping its spacing.

    ``"G        C"`` -> ``"[G]        [C]"``
    """
    lines = content.split("\n")
    for i, line in enumerate(lines):
        if is_chord_line(line):
            lines[i] = re.sub(r"\S+", r"[\g<0>]", line)
    return "\n".join(lines)
