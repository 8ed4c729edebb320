from __future__ import annotations

import threading

import pytest

from lyrics_resolver.sources.service import LyricsService
from tests.mocks.sources_mock import (
    BlockingSource,
    ExplodingSource,
    FakeSource,
    MemoryCache,
    make_candidate,
    make_config,
    make_lines,
)


def _service(tmp_path, sources, cache=None, **cfg):
    log: list[str] = []
    svc = LyricsService(
        make_config(tmp_path, **cfg),
        sources=sources,
        cache=cache or MemoryCache(),
        on_log=log.append,
    )
    return svc, log


class TestSelection:
    def test_first_accepted_candidate_is_selected(self, tmp_path):
        src = FakeSource("lrclib", [make_candidate("lrclib", "a", "b", "c")], online=True)
        svc, _ = _service(tmp_path, [src])

        assert svc.fetch("Song", "Artist") is True
        assert svc.total_results == 1
        assert svc.current_index == 0
        assert svc.current_source_label() == "lrclib"

    def test_strictly_better_candidate_takes_over(self, tmp_path):
        # netease: 20 + 1500 + 3; lrclib: 30 + 1500 + 4
        netease = FakeSource("netease", [make_candidate("netease", "x", "y", "z")])
        lrclib = FakeSource("lrclib", [make_candidate("lrclib", "a", "b", "c", "d")])
        svc, log = _service(tmp_path, [netease, lrclib])

        svc.fetch("Song", "Artist")
        assert svc.total_results == 2
        assert svc.current_index == 1
        assert svc.current_source_label() == "lrclib"
        assert any("Better match" in m for m in log)

    def test_equal_or_lower_score_stays_alternate(self, tmp_path):
        first = FakeSource("lrclib", [make_candidate("lrclib", "a", "b", "c")])
        second = FakeSource("lrclib", [make_candidate("lrclib", "d", "e", "f")])
        svc, log = _service(tmp_path, [first, second])

        svc.fetch("Song", "Artist")
        assert svc.total_results == 2
        assert svc.current_index == 0
        assert any("Found alt" in m for m in log)

    def test_low_score_rejected_unless_trusted(self, tmp_path):
        stranger = make_candidate("lrclib", "a", "b", title="Other", artist="Nobody")
        cached = make_candidate("cache", "c", "d", title="Other", artist="Nobody")
        svc, log = _service(tmp_path, [FakeSource("cache", [cached]), FakeSource("lrclib", [stranger])])

        svc.fetch("Song", "Artist")
        assert svc.total_results == 1
        assert svc.current_source_label() == "cache"
        assert any("Rejected" in m for m in log)

    def test_low_trust_title_lowers_threshold(self, tmp_path):
        # 30 + 0 (title) + 500 (artist) + 2 = 532
        cand = make_candidate("lrclib", "a", "b", title="Other")
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [cand])])

        svc.fetch("Song", "Artist")
        assert svc.total_results == 0

        svc.fetch("Song", "Artist", low_trust_title=True)
        assert svc.total_results == 1

    def test_duplicate_fingerprints_are_dropped(self, tmp_path):
        a = make_candidate("lrclib", "Hello", "World", "x", "y", "z", "tail-1")
        b = make_candidate("netease", "  hello ", "WORLD", "X", "Y", "Z", "tail-2")
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [a]), FakeSource("netease", [b])])

        svc.fetch("Song", "Artist")
        assert svc.total_results == 1
        fps = [r.fingerprint for r in svc.results]
        assert len(fps) == len(set(fps))

    def test_candidate_without_text_is_ignored(self, tmp_path):
        blank = make_candidate("lrclib", " ", "")
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [blank])])

        svc.fetch("Song", "Artist")
        assert svc.total_results == 0
        assert svc.current_source_label() == "None"


class TestSourcesAndConfig:
    def test_sources_called_in_order(self, tmp_path):
        order: list[str] = []

        class Recording(FakeSource):
            def provide(self, query, cfg):
                order.append(self.name)
                return []

        names = ["cache", "localdb", "lrclib", "netease", "lrclib-plain"]
        svc, _ = _service(tmp_path, [Recording(n) for n in names])
        svc.fetch("Song", "Artist")
        assert order == names

    def test_offline_mode_skips_online_sources(self, tmp_path):
        local = FakeSource("localdb", [make_candidate("localdb", "a")])
        remote = FakeSource("lrclib", [make_candidate("lrclib", "b")], online=True)
        svc, log = _service(tmp_path, [local, remote], offline_mode=True)

        svc.fetch("Song", "Artist")
        assert local.calls and not remote.calls
        assert svc.total_results == 1
        assert any("Offline mode" in m for m in log)

    def test_unavailable_source_is_not_called(self, tmp_path):
        src = FakeSource("localdb", [make_candidate("localdb", "a")], available=False)
        svc, _ = _service(tmp_path, [src])
        svc.fetch("Song", "Artist")
        assert src.calls == []

    def test_update_config_applies_to_next_fetch(self, tmp_path):
        remote = FakeSource("lrclib", [make_candidate("lrclib", "b")], online=True)
        svc, _ = _service(tmp_path, [remote])
        svc.update_config(offline_mode=True)
        svc.fetch("Song", "Artist")
        assert remote.calls == []
        assert svc.cfg.offline_mode is True

    def test_failing_source_is_contained(self, tmp_path):
        boom = ExplodingSource("netease")
        ok = FakeSource("lrclib", [make_candidate("lrclib", "a", "b")])
        svc, _ = _service(tmp_path, [boom, ok])

        assert svc.fetch("Song", "Artist") is True
        assert svc.total_results == 1


class TestCachePersistence:
    def test_selected_result_is_cached(self, tmp_path):
        cache = MemoryCache()
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [make_candidate("lrclib", "a", "b")])], cache=cache)

        svc.fetch("Song", "Artist")
        lines, source = cache.entries[("artist", "song")]
        assert [ln.text for ln in lines] == ["a", "b"]
        assert source == "lrclib"

    def test_cache_hit_is_not_written_back(self, tmp_path):
        cache = MemoryCache()
        svc, _ = _service(tmp_path, [FakeSource("cache", [make_candidate("cache", "a")])], cache=cache)
        svc.fetch("Song", "Artist")
        assert cache.entries == {}

    def test_clear_cache_removes_entry(self, tmp_path):
        cache = MemoryCache()
        cache.save("Artist", "Song", make_lines("a"), "lrclib")
        svc, log = _service(tmp_path, [], cache=cache)
        svc.clear_cache("Song", "Artist")
        assert cache.entries == {}
        assert any("Cache cleared" in m for m in log)


class TestCycling:
    def _three(self, tmp_path):
        cands = [
            make_candidate("lrclib", "a1", "a2"),
            make_candidate("lrclib", "b1", "b2"),
            make_candidate("lrclib", "c1", "c2"),
        ]
        svc, _ = _service(tmp_path, [FakeSource("lrclib", cands)])
        svc.fetch("Song", "Artist")
        return svc

    def test_next_wraps_around(self, tmp_path):
        svc = self._three(tmp_path)
        seen = [svc.current_index]
        for _ in range(3):
            svc.next_lyrics()
            seen.append(svc.current_index)
        assert seen == [0, 1, 2, 0]

    def test_previous_wraps_around(self, tmp_path):
        svc = self._three(tmp_path)
        svc.previous_lyrics()
        assert svc.current_index == 2
        assert svc.current_line(0) == "c1"

    @pytest.mark.parametrize("count", [0, 1])
    def test_cycling_is_noop_for_small_sessions(self, tmp_path, count):
        cands = [make_candidate("lrclib", "a")][:count]
        svc, _ = _service(tmp_path, [FakeSource("lrclib", cands)])
        svc.fetch("Song", "Artist")
        svc.next_lyrics()
        svc.previous_lyrics()
        assert svc.current_index == 0
        assert svc.total_results == count


class TestLabels:
    @pytest.mark.parametrize(
        "kwargs, expected",
        [
            ({}, "lrclib"),
            ({"is_plain": True}, "lrclib (plain)"),
            ({"is_estimated": True, "is_plain": True}, "lrclib (estimated)"),
        ],
    )
    def test_source_label(self, tmp_path, kwargs, expected):
        cand = make_candidate("lrclib", "a", "b", **kwargs)
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [cand])])
        svc.fetch("Song", "Artist", low_trust_title=True)
        assert svc.current_source_label() == expected


class TestSessionIdentity:
    def test_needs_new_song_is_case_insensitive(self, tmp_path):
        svc, _ = _service(tmp_path, [])
        assert svc.needs_new_song("Song", "Artist")
        svc.fetch("Song", "Artist")
        assert not svc.needs_new_song("SONG", "artist")
        assert svc.needs_new_song("Song 2", "Artist")

    def test_force_refetch_resets_session(self, tmp_path):
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [make_candidate("lrclib", "a")])])
        svc.fetch("Song", "Artist")
        svc.force_refetch()
        assert svc.needs_new_song("Song", "Artist")
        assert svc.total_results == 0
        assert svc.current_source_label() == "None"


class TestCancellation:
    def test_stale_fetch_results_are_discarded(self, tmp_path):
        stale = make_candidate("lrclib", "old 1", "old 2")
        fresh = make_candidate("lrclib", "new 1", "new 2")
        src = BlockingSource("lrclib", [[stale], [fresh]])
        svc, log = _service(tmp_path, [src])

        outcome: dict[str, bool] = {}
        first = threading.Thread(target=lambda: outcome.setdefault("first", svc.fetch("Song", "Artist")))
        first.start()
        assert src.entered.wait(timeout=5)

        assert svc.fetch("Song", "Artist") is True
        src.release.set()
        first.join(timeout=5)

        assert outcome["first"] is False
        assert [r.candidate for r in svc.results] == [fresh]
        assert any("cancelled" in m for m in log)

    def test_force_refetch_cancels_running_fetch(self, tmp_path):
        src = BlockingSource("lrclib", [[make_candidate("lrclib", "a", "b")]])
        svc, _ = _service(tmp_path, [src])

        outcome: dict[str, bool] = {}
        worker = threading.Thread(target=lambda: outcome.setdefault("r", svc.fetch("Song", "Artist")))
        worker.start()
        assert src.entered.wait(timeout=5)
        svc.force_refetch()
        src.release.set()
        worker.join(timeout=5)

        assert outcome["r"] is False
        assert svc.total_results == 0


class TestLookups:
    def test_line_lookup_and_length(self, tmp_path):
        cand = make_candidate("lrclib", "one", "two", "three", step_ms=1000)
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [cand])])
        svc.fetch("Song", "Artist")

        assert svc.current_line(-1) == ""
        assert svc.current_line(0) == "one"
        assert svc.current_line(1999) == "two"
        assert svc.current_line(99999) == "three"
        assert svc.song_length() == 2000
        assert svc.full_lyrics_text() == "one\ntwo\nthree"

    def test_word_sync_uses_configured_markers(self, tmp_path):
        cand = make_candidate("lrclib", "Hello, world", "next", step_ms=1000)
        svc, _ = _service(tmp_path, [FakeSource("lrclib", [cand])], highlight_open="[", highlight_close="]")
        svc.fetch("Song", "Artist")
        assert svc.current_line_word_sync(10) == "[Hello,] world"

    def test_empty_session_lookups(self, tmp_path):
        svc, _ = _service(tmp_path, [])
        assert svc.current_line(1000) == ""
        assert svc.current_line_word_sync(1000) == ""
        assert svc.song_length() == 0
        assert svc.full_lyrics_text() == ""


class TestSessionEdges:
    def test_force_refetch_cancels_fetch_for_empty_track(self, tmp_path):
        src = BlockingSource("lrclib", [[make_candidate("lrclib", "a", "b", title="", artist="")]])
        svc, _ = _service(tmp_path, [src])

        outcome: dict[str, bool] = {}
        worker = threading.Thread(target=lambda: outcome.setdefault("r", svc.fetch("", "")))
        worker.start()
        assert src.entered.wait(timeout=5)
        svc.force_refetch()
        src.release.set()
        worker.join(timeout=5)

        assert outcome["r"] is False
        assert svc.total_results == 0

    def test_progress_sink_runs_without_holding_the_lock(self, tmp_path):
        blocked: list[bool] = []

        def sink(message: str) -> None:
            # a reader on another thread must not wait for the sink
            reader = threading.Thread(target=lambda: svc.current_source_label())
            reader.start()
            reader.join(timeout=2)
            blocked.append(reader.is_alive())

        cands = [make_candidate("lrclib", "a1", "a2"), make_candidate("lrclib", "b1", "b2", "b3")]
        svc = LyricsService(
            make_config(tmp_path),
            sources=[FakeSource("lrclib", cands)],
            cache=MemoryCache(),
            on_log=sink,
        )
        svc.fetch("Song", "Artist")
        svc.next_lyrics()

        assert blocked and not any(blocked)
