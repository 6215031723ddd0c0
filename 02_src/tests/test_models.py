"""Tests for data models."""

from datetime import datetime, timezone

import pytest

from dbuddy.models import (
    Array,
    BusSource,
    ConnectionSerial,
    Dict,
    Elided,
    MessageKind,
    Primitive,
    ProcessIdentity,
    ProcessInfo,
    RawEvent,
    RecordFactory,
    Struct,
    Undecodable,
    Variant,
    ViewMode,
    decode_python,
    format_value,
    summarize,
    value_depth,
)


class TestDecodePython:
    """Tests for decode_python."""

    def test_primitives(self):
        """Test primitive type labels."""
        assert decode_python("x") == Primitive("x", "str")
        assert decode_python(7) == Primitive("7", "int")
        assert decode_python(True) == Primitive("true", "bool")
        assert decode_python(0.5) == Primitive("0.5", "double")

    def test_containers(self):
        """Test tuples become structs and lists arrays."""
        value = decode_python(("a", [1, 2]))
        assert isinstance(value, Struct)
        assert isinstance(value.fields[1], Array)
        assert len(value.fields[1].items) == 2

    def test_depth_ceiling_elides(self):
        """Test levels past max_depth become Elided."""
        value = decode_python([[[[1]]]], max_depth=2)
        assert value == Array((Array((Array((Elided(3),)),)),))

    def test_value_passthrough(self):
        """Test existing Value trees are kept as is."""
        inner = Variant(Primitive("1", "int"))
        assert decode_python((inner,)).fields[0] is inner

    def test_unsupported_type(self):
        """Test objects with no bus form are rejected."""
        with pytest.raises(TypeError):
            decode_python(object())


class TestFormatValue:
    """Tests for format_value."""

    def test_struct(self):
        """Test struct members are indented under a label."""
        assert format_value(decode_python(("hi", 3))) == [
            "[struct]:",
            '  [str]: "hi"',
            "  [int]: 3",
        ]

    def test_bytes_collapse_to_text(self):
        """Test printable byte arrays render as a string."""
        assert format_value(decode_python(b"abc\x00")) == ['[bytes]: "abc"']

    def test_binary_bytes_render_as_hex(self):
        """Test non-printable byte arrays render as hex."""
        assert format_value(decode_python(b"\xff\x01")) == ["[bytes]: ff 01"]

    def test_key_value_struct_array(self):
        """Test arrays of (name, value) structs read like a mapping."""
        assert format_value(decode_python([("a", 1), ("b", "x")])) == [
            "[struct[]]:",
            "  a: [int]: 1",
            '  b: [str]: "x"',
        ]

    def test_homogeneous_primitive_array(self):
        """Test arrays of one primitive type stay on one line."""
        assert format_value(decode_python([1, 2])) == ["[int[]]: [1, 2]"]

    def test_dict(self):
        """Test dict entries are prefixed with their key."""
        assert format_value(decode_python({"k": True})) == ["[dict]:", '  "k": [bool]: true']

    def test_empty_containers(self):
        """Test empty containers render inline."""
        assert format_value(decode_python([])) == ["[array]: []"]
        assert format_value(decode_python({})) == ["[dict]: {}"]
        assert format_value(decode_python(())) == ["[struct]: ()"]

    def test_deep_variants_are_bounded(self):
        """Test a deeply nested tree is cut at the ceiling."""
        value = Primitive("x")
        for _ in range(500):
            value = Variant(value)
        assert format_value(value, max_depth=5) == ["<elided>"]
        assert value_depth(value, max_depth=5) == 6

    def test_deep_variant_key_is_bounded(self):
        """Test a deeply nested dict key is cut at the ceiling."""
        key = Primitive("k")
        for _ in range(5000):
            key = Variant(key)
        value = Dict(((key, Primitive("v")),))
        assert format_value(value, max_depth=4) == ["[dict]:", '  <elided>: [str]: "v"']
        assert summarize(value, max_depth=4) == '{<elided>: "v"}'

    def test_undecodable(self):
        """Test undecodable marker shows its reason."""
        assert format_value(Undecodable("bad sig")) == ["[undecodable]: bad sig"]


class TestSummarize:
    """Tests for summarize."""

    def test_truncates(self):
        """Test long previews are cut with an ellipsis."""
        text = summarize(decode_python(("x" * 200,)), limit=20)
        assert len(text) == 20
        assert text.endswith("…")

    def test_short_preview(self):
        """Test a short body is returned whole."""
        assert '"NameAcquired"' in summarize(decode_python(("NameAcquired",)))


class TestEventRecord:
    """Tests for EventRecord invariants and keys."""

    def test_reply_serial_requires_reply_kind(self, make_record):
        """Test reply_serial on a signal is rejected."""
        with pytest.raises(ValueError):
            make_record(kind=MessageKind.SIGNAL, reply_serial=1)

    def test_serial_range(self, make_record):
        """Test serials outside u32 are rejected."""
        with pytest.raises(ValueError):
            make_record(serial=2**32)

    def test_keys_are_connection_scoped(self, make_record):
        """Test call and reply keys carry the connection."""
        call = make_record(sender=":1.5", serial=9, kind=MessageKind.METHOD_CALL)
        reply = make_record(
            sender=":1.7",
            serial=3,
            kind=MessageKind.METHOD_RETURN,
            destination=":1.5",
            reply_serial=9,
        )
        assert call.call_key == ConnectionSerial(BusSource.SESSION, ":1.5", 9)
        assert reply.reply_key == call.call_key
        assert call.reply_key is None

    def test_reply_without_destination_has_no_key(self, make_record):
        """Test replies with no destination cannot be linked."""
        reply = make_record(kind=MessageKind.ERROR, reply_serial=2)
        assert reply.reply_key is None


class TestRecordFactory:
    """Tests for RecordFactory."""

    def test_ids_are_monotonic(self):
        """Test ids increase per build."""
        factory = RecordFactory(decode_python)
        raw = RawEvent(kind=MessageKind.SIGNAL, sender=":1.1", serial=1)
        first = factory.build(raw, BusSource.SESSION)
        second = factory.build(raw, BusSource.SYSTEM)
        assert second.id > first.id
        assert second.source == BusSource.SYSTEM

    def test_decode_failure_becomes_undecodable(self):
        """Test a decoder error keeps the record with a marker body."""

        def broken(body):
            raise ValueError("bad signature")

        factory = RecordFactory(broken)
        record = factory.build(
            RawEvent(kind=MessageKind.SIGNAL, sender=":1.1", serial=1, body=b"\x00"),
            BusSource.SESSION,
        )
        assert isinstance(record.body, Undecodable)
        assert "bad signature" in record.body.reason

    def test_missing_timestamp_is_filled(self):
        """Test records get an ingestion timestamp."""
        factory = RecordFactory(decode_python)
        before = datetime.now(timezone.utc)
        record = factory.build(
            RawEvent(kind=MessageKind.SIGNAL, sender=":1.1", serial=1), BusSource.SESSION
        )
        assert record.timestamp >= before


class TestViewMode:
    """Tests for ViewMode."""

    def test_sources(self):
        """Test view modes map to bus sources."""
        assert ViewMode.BOTH.sources == (BusSource.SESSION, BusSource.SYSTEM)
        assert ViewMode.SYSTEM.sources == (BusSource.SYSTEM,)

    def test_next_cycles(self):
        """Test cycling through view modes."""
        assert ViewMode.SESSION.next() == ViewMode.SYSTEM
        assert ViewMode.BOTH.next() == ViewMode.SESSION


class TestProcessIdentity:
    """Tests for ProcessIdentity."""

    def test_from_info_uses_argv0(self):
        """Test the app name comes from argv[0]."""
        identity = ProcessIdentity.from_info(
            ProcessInfo(pid=42, name="python3", exe="/usr/bin/python3.12", argv=("/opt/app/run",))
        )
        assert identity.app_name == "run"
        assert identity.full_path == "/opt/app/run"
        assert identity.label == "run:42"

    def test_from_info_falls_back_to_exe(self):
        """Test the exe path is used when argv is unreadable."""
        identity = ProcessIdentity.from_info(ProcessInfo(pid=5, name="x", exe="/usr/bin/xterm"))
        assert identity.app_name == "xterm"

    def test_unresolved_sentinel(self):
        """Test unresolved sentinel fields."""
        identity = ProcessIdentity.unresolved(9, "gone")
        assert not identity.resolved
        assert identity.app_name == "Unknown"
        assert identity.resolved_at is not None
