import pytest

from lyrics_resolver.lrc.estimate import estimate_timing, is_section_marker


def test_equal_lines_over_forty_seconds():
    plain = "\n".join(["aaaa bbbb"] * 4)
    lines = estimate_timing(plain, 40_000)

    stamps = [ln.t_ms for ln in lines]
    assert len(stamps) == 4
    assert stamps == sorted(stamps)
    # 5% start buffer, then 34000/4 = 8500 clamped to 8000, plus 200ms gaps
    assert stamps == [2000, 10_200, 18_400, 26_600]
    for prev, nxt in zip(stamps, stamps[1:]):
        assert 1500 + 200 <= nxt - prev <= 8000 + 200
    assert all(t <= 40_000 - 500 for t in stamps)


def test_section_markers_and_blank_lines_dropped():
    plain = "[Verse 1]\nfirst line\n\nChorus\nsecond line\nverse 2:\n(spoken)\n"
    lines = estimate_timing(plain, 60_000)
    assert [ln.text for ln in lines] == ["first line", "second line", "(spoken)"]


@pytest.mark.parametrize(
    "line, expected",
    [
        ("Chorus", True),
        ("pre-chorus", True),
        ("Verse 2", True),
        ("Bridge:", True),
        ("[Outro]", True),
        ("[anything in brackets]", True),
        ("Chorus x2", True),
        ("Verse 2: Jay-Z", True),
        ("Chorus (repeat)", True),
        ("Intro - spoken", True),
        ("Hook 1 (Drake)", True),
        ("[Chorus: Drake] (echo)", True),
        ("The chorus of angels", False),
        ("Introduction to love", False),
        ("Versed in the art", False),
    ],
)
def test_is_section_marker(line, expected):
    assert is_section_marker(line) is expected


def test_nothing_left_means_no_output():
    assert estimate_timing("[Intro]\n\nInstrumental\n", 180_000) == ()


def test_stops_before_song_end():
    plain = "\n".join(f"line number {i}" for i in range(50))
    lines = estimate_timing(plain, 20_000)
    assert 0 < len(lines) < 50
    assert all(ln.t_ms <= 20_000 - 500 for ln in lines)


def test_short_song_uses_full_duration_budget():
    # budget would be 850ms, falls back to the whole 1000ms; clamped to 1500 per line
    lines = estimate_timing("a\nb", 1000)
    assert [ln.t_ms for ln in lines] == [50]


def test_prefixed_headers_are_not_timed():
    lines = estimate_timing("Verse 1: Artist\nfirst line\nChorus x2\nsecond line\n", 60_000)
    assert [ln.text for ln in lines] == ["first line", "second line"]
