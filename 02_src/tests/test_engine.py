"""Tests for QueryEngine."""

import pytest

from dbuddy.errors import ConfigError, FilterParseError, RecordNotFound
from dbuddy.models import BusSource, MessageKind, ViewMode
from dbuddy.query import GroupingKey, QueryEngine


@pytest.fixture
def engine(history):
    """Create QueryEngine over an empty history."""
    return QueryEngine(history)


def _fill(history, records):
    for record in records:
        history[record.source].extend([record])


class TestQueryEngineConfigure:
    """Tests for configure()."""

    def test_bad_filter_keeps_previous(self, engine, history, make_record):
        """Test a rejected filter leaves the old one in effect."""
        _fill(history, [make_record(member="A"), make_record(member="B")])
        engine.configure(filter_text="member=A")

        with pytest.raises(FilterParseError):
            engine.configure(filter_text="bogus=1", grouping_keys=["member"])

        assert engine.filter_text == "member=A"
        assert engine.grouping == (GroupingKey.NONE,)
        assert isinstance(engine.last_error, FilterParseError)
        assert [r.member for r in engine.query()] == ["A"]

    def test_successful_configure_clears_error(self, engine):
        """Test a valid configure resets last_error."""
        with pytest.raises(FilterParseError):
            engine.configure(filter_text="x=1")
        engine.configure(filter_text="ok")
        assert engine.last_error is None

    def test_invalid_view_mode(self, engine):
        """Test unknown view modes are rejected."""
        with pytest.raises(ConfigError):
            engine.configure(view_mode="everything")

    def test_invalid_max_messages(self, engine):
        """Test caps below one are rejected."""
        with pytest.raises(ConfigError):
            engine.configure(max_messages=0)

    def test_max_messages_trims(self, engine, history, make_record):
        """Test lowering the cap trims history."""
        _fill(history, [make_record() for _ in range(10)])
        engine.configure(max_messages=4)
        assert len(engine.query()) == 4


class TestQueryEngineQuery:
    """Tests for query()."""

    def test_cached_until_history_changes(self, engine, history, make_record):
        """Test the result is reused for an unchanged snapshot."""
        _fill(history, [make_record()])
        first = engine.query()
        assert engine.query() is first

        _fill(history, [make_record()])
        second = engine.query()
        assert second is not first
        assert len(second) == 2

    def test_incremental_filter_follows_trims(self, history, make_record):
        """Test the filtered view drops trimmed rows and adds new ones."""
        history.set_max_messages(3)
        engine = QueryEngine(history, filter_text="member=keep")
        _fill(history, [make_record(member="keep"), make_record(member="drop")])
        assert len(engine.query()) == 1

        _fill(history, [make_record(member="keep"), make_record(member="keep")])
        ids = [r.id for r in engine.query()]
        assert ids == [3, 4]

    def test_both_view_merges(self, engine, history, make_record):
        """Test the both view interleaves sources by time."""
        _fill(
            history,
            [
                make_record(at=1, source=BusSource.SESSION),
                make_record(at=2, source=BusSource.SYSTEM),
                make_record(at=3, source=BusSource.SESSION),
            ],
        )
        assert [r.id for r in engine.query()] == [1, 3]
        engine.configure(view_mode=ViewMode.BOTH)
        assert [r.id for r in engine.query()] == [1, 2, 3]

    def test_grouped_result(self, engine, history, make_record):
        """Test grouping keys produce spans."""
        _fill(history, [make_record(member=m) for m in ("a", "b", "a")])
        engine.configure(grouping_keys=["member"])
        result = engine.query()
        assert result.is_grouped
        assert [g.count for g in result.groups] == [2, 1]
        assert result.group_at(1).key == ("a",)
        assert result.group_at(2).key == ("b",)


class TestQueryEngineThread:
    """Tests for thread view."""

    def test_thread_ignores_filter(self, engine, history, make_record):
        """Test thread view shows the whole conversation."""
        call = make_record(sender=":1.1", serial=5, kind=MessageKind.METHOD_CALL, member="Get")
        reply = make_record(
            sender=":1.2",
            serial=9,
            kind=MessageKind.METHOD_RETURN,
            destination=":1.1",
            reply_serial=5,
            member="",
        )
        _fill(history, [call, reply, make_record(member="Other")])
        engine.configure(filter_text="member=Get")

        thread = engine.expand_thread(call.id)
        assert thread.records == [call, reply]
        assert list(engine.query()) == [call, reply]
        assert engine.query().thread is not None

        engine.clear_thread()
        assert list(engine.query()) == [call]

    def test_thread_of_other_source(self, engine, history, make_record):
        """Test a seed outside the current view uses its own bus."""
        seed = make_record(source=BusSource.SYSTEM)
        _fill(history, [seed])
        thread = engine.expand_thread(seed.id)
        assert thread.records == [seed]

    def test_other_source_thread_follows_its_store(self, engine, history, make_record):
        """Test a thread on a bus outside the view picks up new replies."""
        call = make_record(
            sender=":1.4", serial=7, kind=MessageKind.METHOD_CALL, source=BusSource.SYSTEM
        )
        _fill(history, [call])
        assert engine.expand_thread(call.id).records == [call]

        reply = make_record(
            sender=":1.6",
            serial=2,
            kind=MessageKind.METHOD_RETURN,
            destination=":1.4",
            reply_serial=7,
            source=BusSource.SYSTEM,
        )
        _fill(history, [reply])
        assert list(engine.query()) == [call, reply]

    def test_other_source_seed_trimmed(self, engine, history, make_record):
        """Test trimming the seed on the other bus leaves thread view."""
        history.set_max_messages(1)
        seed = make_record(source=BusSource.SYSTEM)
        _fill(history, [seed])
        engine.expand_thread(seed.id)

        _fill(history, [make_record(source=BusSource.SYSTEM)])
        assert engine.query().thread is None
        assert engine.thread_seed is None

    def test_unrelated_traffic_keeps_closure(self, engine, history, make_record):
        """Test records that do not link in reuse the previous closure."""
        call = make_record(sender=":1.1", serial=3, kind=MessageKind.METHOD_CALL)
        _fill(history, [call])
        thread = engine.expand_thread(call.id)

        _fill(history, [make_record(sender=":1.9", serial=n) for n in range(1, 4)])
        result = engine.query()
        assert result.thread is thread
        assert result.rows == [call]

        reply = make_record(
            sender=":1.2",
            serial=1,
            kind=MessageKind.METHOD_RETURN,
            destination=":1.1",
            reply_serial=3,
        )
        _fill(history, [reply])
        assert list(engine.query()) == [call, reply]

    def test_unknown_record(self, engine):
        """Test expanding an id that is not retained."""
        with pytest.raises(RecordNotFound):
            engine.expand_thread(12345)

    def test_seed_trimmed_leaves_thread_view(self, engine, history, make_record):
        """Test thread view ends once its seed is trimmed."""
        history.set_max_messages(2)
        seed = make_record()
        _fill(history, [seed])
        engine.expand_thread(seed.id)

        _fill(history, [make_record(), make_record()])
        result = engine.query()
        assert result.thread is None
        assert engine.thread_seed is None
        assert len(result) == 2
