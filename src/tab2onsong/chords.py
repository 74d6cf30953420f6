"""Chord extraction and key inference.

Two chord notations appear in UG content:

  inline:  ``[ch]Am7[/ch]`` annotations embedded in the tab markup
  plain:   bare chord names on their own line above the lyric::

                G        C
                Take a sad song

Key inference is a frequency heuristic, not harmonic analysis: the most
frequent chord root is taken as the tonic, and the key is minor when most of
that root's chords are minor.
"""

import re
from collections import Counter

# Inline chord annotation: [ch]Am7[/ch], [ch]G/B[/ch]
CH_TAG_RE = re.compile(r"\[ch\]([A-G][#b]?[^\[\]\s]*)\[/ch\]")

# A bare chord token on a plain chord line.
# Handles:
#   Standard:   G, Am, F#m7, Bb, Cmaj7, Dsus4, Eadd9
#   Slash bass: C/G, D/F#
CHORD_TOKEN_RE = re.compile(
    r"^[A-G][#b]?"
    r"(?:maj|min|m|M|sus[24]?|aug|dim|add|no)?"
    r"[0-9]*"
    r"(?:/[A-G][#b]?)?$"
)

# The twelve pitch classes, sharp and flat spellings, no double accidentals.
VALID_ROOTS = frozenset(
    ["A", "A#", "Ab", "B", "Bb", "C", "C#", "D", "D#", "Db", "E", "Eb", "F", "F#", "G", "G#", "Gb"]
)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_chords(markup: str) -> list[str]:
    """Return every ``[ch]...[/ch]`` spelling in *markup*, in order, repeats kept."""
    return CH_TAG_RE.findall(markup)


def is_chord_token(token: str) -> bool:
    return bool(CHORD_TOKEN_RE.match(token))


def is_chord_line(line: str) -> bool:
    """True when *line* is non-blank and every token on it is a chord name.

    Section label lines (``Chorus:``) never count.
    """
    stripped = line.strip()
    if not stripped or stripped.endswith(":"):
        return False
    return all(is_chord_token(t) for t in stripped.split())


def plain_chords(text: str) -> list[str]:
    """Return chord names from the plain chord lines of *text*, in order."""
    chords: list[str] = []
    for line in text.splitlines():
        if is_chord_line(line):
            chords.extend(line.split())
    return chords


def normalize_chord_name(chord: str) -> str:
    """Strip leftover ``[ch]`` tags and surrounding whitespace."""
    return chord.replace("[ch]", "").replace("[/ch]", "").strip()


def unique_chords(chords: list[str]) -> list[str]:
    """De-duplicate normalised chord names, keeping first-seen order."""
    seen: set[str] = set()
    unique: list[str] = []
    for chord in chords:
        name = normalize_chord_name(chord)
        if name and name not in seen:
            seen.add(name)
            unique.append(name)
    return unique


# ---------------------------------------------------------------------------
# Key inference
# ---------------------------------------------------------------------------


def root_note(chord: str) -> str:
    """Return the root of *chord* (``"F#m7"`` -> ``"F#"``), or ``""`` if invalid."""
    if not chord:
        return ""
    root = chord[0]
    if len(chord) > 1 and chord[1] in "#b":
        root += chord[1]
    return root if root in VALID_ROOTS else ""


def is_minor(chord: str) -> bool:
    """True when *chord* has an ``m`` that is not part of ``maj``.

    ``Bdim`` counts as minor, ``Cmaj7`` does not.
    """
    return "m" in chord.lower().replace("maj", "")


def detect_key(chords: list[str]) -> str:
    """Guess the key from chord frequency.

    Returns ``""`` when no chord has a valid root.  When several roots share
    the top count, the one that appears first in *chords* wins.

    >>> detect_key(["G", "C", "G", "D"])
    'G'
    >>> detect_key(["Am", "Am", "C", "F"])
    'Am'
    """
    if not chords:
        return ""

    # Counter preserves first-insertion order and max() keeps the first
    # maximal element, which gives the first-seen tie-break.
    counts = Counter(r for r in map(root_note, chords) if r)
    if not counts:
        return ""
    tonic = max(counts, key=counts.__getitem__)

    minor = major = 0
    for chord in chords:
        if root_note(chord) != tonic:
            continue
        if is_minor(chord):
            minor += 1
        else:
            major += 1

    return tonic + "m" if minor > major else tonic


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def chord_stats(chords: list[str]) -> dict:
    """Summarise chord usage.

    Returns a dict with ``total``, ``unique``, ``most_common`` (first-seen on
    ties, ``""`` when empty) and ``frequencies``, a list of ``(chord, count)``
    pairs sorted by descending count.
    """
    counts = Counter(chords)
    frequencies = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return {
        "total": len(chords),
        "unique": len(counts),
        "most_common": frequencies[0][0] if frequencies else "",
        "frequencies": frequencies,
    }
