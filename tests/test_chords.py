import pytest

from tab2onsong.chords import (
    chord_stats,
    detect_key,
    extract_chords,
    is_chord_line,
    is_chord_token,
    is_minor,
    normalize_chord_name,
    plain_chords,
    root_note,
    unique_chords,
)

# ---------------------------------------------------------------------------
# extract_chords
# ---------------------------------------------------------------------------


def test_extract_chords_in_order_with_repeats():
    markup = "[ch]G[/ch] Take a [ch]C[/ch] sad song and [ch]G[/ch] make it better"
    assert extract_chords(markup) == ["G", "C", "G"]


def test_extract_chords_extended_and_slash():
    assert extract_chords("[ch]F#m7[/ch] [ch]D/F#[/ch] [ch]Cmaj7[/ch]") == ["F#m7", "D/F#", "Cmaj7"]


def test_extract_chords_ignores_plain_text():
    assert extract_chords("G   C\nno annotations here") == []


def test_extract_chords_rejects_non_chord_tags():
    assert extract_chords("[ch]x[/ch] [ch][/ch]") == []


# ---------------------------------------------------------------------------
# Plain chord lines
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("token", ["G", "Am", "F#m7", "Bb", "Cmaj7", "Dsus4", "Eadd9", "C/G", "D/F#"])
def test_is_chord_token_accepts(token):
    assert is_chord_token(token)


@pytest.mark.parametrize("token", ["Take", "H", "am", "G,", "(C)"])
def test_is_chord_token_rejects(token):
    assert not is_chord_token(token)


def test_is_chord_line():
    assert is_chord_line("G        C")
    assert is_chord_line("  Am  F  C  G  ")
    assert not is_chord_line("Take a sad song")
    assert not is_chord_line("G  and then C")
    assert not is_chord_line("   ")
    assert not is_chord_line("Chorus:")


def test_plain_chords():
    text = "G        C\nTake a sad song\n\nAm   D7\nand make it better"
    assert plain_chords(text) == ["G", "C", "Am", "D7"]


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def test_normalize_chord_name():
    assert normalize_chord_name(" [ch]Am[/ch] ") == "Am"


def test_unique_chords_first_seen_order():
    assert unique_chords(["G", "C", "G", "D", "C"]) == ["G", "C", "D"]


def test_unique_chords_drops_blanks():
    assert unique_chords(["G", " ", "[ch][/ch]", "G"]) == ["G"]


# ---------------------------------------------------------------------------
# root_note / is_minor
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("chord, root", [
    ("G", "G"),
    ("F#m7", "F#"),
    ("Bbmaj7", "Bb"),
    ("D/F#", "D"),
    ("H", ""),
    ("Cb", ""),
    ("", ""),
])
def test_root_note(chord, root):
    assert root_note(chord) == root


def test_is_minor():
    assert is_minor("Am")
    assert is_minor("F#m7")
    assert is_minor("Bdim")
    assert not is_minor("Cmaj7")
    assert not is_minor("G")


# ---------------------------------------------------------------------------
# detect_key
# ---------------------------------------------------------------------------


def test_detect_key_most_frequent_root():
    assert detect_key(["G", "C", "G", "D"]) == "G"


def test_detect_key_minor():
    assert detect_key(["Am", "Am", "C", "F"]) == "Am"


def test_detect_key_empty():
    assert detect_key([]) == ""


def test_detect_key_only_invalid_roots():
    assert detect_key(["H", "X7", "Cb"]) == ""


def test_detect_key_invalid_roots_ignored():
    assert detect_key(["H", "H", "H", "E", "A", "E"]) == "E"


def test_detect_key_tie_goes_to_first_seen():
    assert detect_key(["C", "G"]) == "C"
    assert detect_key(["G", "C"]) == "G"
    assert detect_key(["D", "A", "A", "D"]) == "D"


def test_detect_key_minor_needs_majority():
    assert detect_key(["Am", "A"]) == "A"
    assert detect_key(["Am", "A", "Am7"]) == "Am"


def test_detect_key_maj_is_not_minor():
    assert detect_key(["Cmaj7", "C", "Cm"]) == "C"


def test_detect_key_slash_chords_count_by_root():
    assert detect_key(["D/F#", "D", "G"]) == "D"


# ---------------------------------------------------------------------------
# chord_stats
# ---------------------------------------------------------------------------


def test_chord_stats():
    stats = chord_stats(["G", "C", "G", "D", "G", "C"])
    assert stats["total"] == 6
    assert stats["unique"] == 3
    assert stats["most_common"] == "G"
    assert stats["frequencies"] == [("G", 3), ("C", 2), ("D", 1)]


def test_chord_stats_tie_first_seen():
    assert chord_stats(["D", "A", "A", "D"])["most_common"] == "D"


def test_chord_stats_empty():
    assert chord_stats([]) == {"total": 0, "unique": 0, "most_common": "", "frequencies": []}
