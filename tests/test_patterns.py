"""Tests for command type filtering."""

import re

from mamiya.patterns import EventFilter, compile_glob


class TestCompileGlob:
    """Tests for glob compilation."""

    def test_star(self):
        assert compile_glob("pkg-*").match("pkg-fetch")
        assert compile_glob("pkg-*").match("pkg-")
        assert not compile_glob("pkg-*").match("task")

    def test_question_mark(self):
        assert compile_glob("v?").match("v1")
        assert not compile_glob("v?").match("v12")

    def test_escapes_regex_characters(self):
        assert compile_glob("a.b").match("a.b")
        assert not compile_glob("a.b").match("axb")


class TestEventFilter:
    """Tests for EventFilter."""

    def test_exact_match(self):
        only_fetch = EventFilter(["fetch"])
        assert only_fetch.accepts("fetch")
        assert not only_fetch.accepts("clean")
        assert not only_fetch.accepts("fetch-all")

    def test_regex_entries(self):
        pkg = EventFilter([re.compile(r"^pkg")])
        assert pkg.accepts("pkg-remove")
        assert not pkg.accepts("task")

    def test_any_entry_matches(self):
        mixed = EventFilter(["task", "pkg-*", re.compile("status")])
        assert mixed.accepts("task")
        assert mixed.accepts("pkg-fetch")
        assert mixed.accepts("node-status")
        assert not mixed.accepts("deploy")

    def test_empty_filter_rejects_everything(self):
        assert not EventFilter([]).accepts("task")

    def test_entries_are_immutable(self):
        source = ["fetch"]
        event_filter = EventFilter(source)
        source.append("clean")

        assert event_filter.entries == ("fetch",)
        assert len(event_filter) == 1
