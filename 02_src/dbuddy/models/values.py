"""Value tree for decoded message bodies.

A body is a recursive tree of ``Primitive``, ``Array``, ``Dict``, ``Struct``
and ``Variant`` nodes. Two marker nodes complete the set: ``Undecodable``
replaces a body the decoder rejected, and ``Elided`` stands in for a subtree
cut off at the depth ceiling.

Every function here that walks a tree takes a ``max_depth`` argument and
stops there.
"""

from dataclasses import dataclass
from typing import Any, Union

from ..config import DEFAULT_VALUE_MAX_DEPTH


@dataclass(frozen=True)
class Primitive:
    """A basic value rendered as text."""

    text: str
    type_name: str = "str"


@dataclass(frozen=True)
class Array:
    """Ordered sequence of values."""

    items: tuple["Value", ...] = ()


@dataclass(frozen=True)
class Dict:
    """Ordered key/value pairs (D-Bus ``a{..}``)."""

    entries: tuple[tuple["Value", "Value"], ...] = ()


@dataclass(frozen=True)
class Struct:
    """Ordered fields of a struct."""

    fields: tuple["Value", ...] = ()


@dataclass(frozen=True)
class Variant:
    """A boxed value."""

    inner: "Value"


@dataclass(frozen=True)
class Undecodable:
    """Marker for a body that could not be decoded."""

    reason: str


@dataclass(frozen=True)
class Elided:
    """Marker for a subtree dropped at the depth ceiling."""

    depth: int


Value = Union[Primitive, Array, Dict, Struct, Variant, Undecodable, Elided]

EMPTY_BODY = Struct()

_VALUE_TYPES = (Primitive, Array, Dict, Struct, Variant, Undecodable, Elided)
_CONTAINER_TYPES = (Array, Dict, Struct, Variant)


def decode_python(obj: Any, max_depth: int = DEFAULT_VALUE_MAX_DEPTH) -> Value:
    """Convert a plain Python payload into a Value tree.

    Tuples become structs, lists arrays, dicts dicts and bytes byte arrays.
    Levels deeper than ``max_depth`` are replaced with ``Elided``.

    Raises:
        TypeError: for objects with no bus representation.
    """
    return _decode(obj, 0, max_depth)


def _decode(obj: Any, depth: int, max_depth: int) -> Value:
    if depth > max_depth:
        return Elided(depth)

    if isinstance(obj, _VALUE_TYPES):
        return obj
    if isinstance(obj, bool):
        return Primitive("true" if obj else "false", "bool")
    if isinstance(obj, int):
        return Primitive(str(obj), "int")
    if isinstance(obj, float):
        return Primitive(repr(obj), "double")
    if isinstance(obj, str):
        return Primitive(obj, "str")
    if isinstance(obj, (bytes, bytearray)):
        return Array(tuple(Primitive(str(b), "byte") for b in obj))
    if isinstance(obj, tuple):
        return Struct(tuple(_decode(item, depth + 1, max_depth) for item in obj))
    if isinstance(obj, list):
        return Array(tuple(_decode(item, depth + 1, max_depth) for item in obj))
    if isinstance(obj, dict):
        return Dict(
            tuple(
                (_decode(k, depth + 1, max_depth), _decode(v, depth + 1, max_depth))
                for k, v in obj.items()
            )
        )

    raise TypeError(f"cannot represent {type(obj).__name__} as a bus value")


def value_depth(value: Value, max_depth: int = DEFAULT_VALUE_MAX_DEPTH) -> int:
    """Depth of a tree, counting at most ``max_depth + 1`` levels."""
    return _depth(value, 0, max_depth)


def _depth(value: Value, depth: int, max_depth: int) -> int:
    if depth > max_depth or not isinstance(value, _CONTAINER_TYPES):
        return depth
    if isinstance(value, Variant):
        children: tuple = (value.inner,)
    elif isinstance(value, Dict):
        children = tuple(v for _, v in value.entries)
    elif isinstance(value, Array):
        children = value.items
    else:
        children = value.fields
    if not children:
        return depth
    return max(_depth(child, depth + 1, max_depth) for child in children)


def _type_label(value: Value) -> str:
    if isinstance(value, Primitive):
        return value.type_name
    if isinstance(value, Array):
        return "array"
    if isinstance(value, Dict):
        return "dict"
    if isinstance(value, Struct):
        return "struct"
    if isinstance(value, Variant):
        return "variant"
    if isinstance(value, Undecodable):
        return "undecodable"
    return "elided"


def _inline(value: Value, depth: int = 0, max_depth: int = DEFAULT_VALUE_MAX_DEPTH) -> str:
    if depth > max_depth:
        return "<elided>"
    if isinstance(value, Primitive):
        if value.type_name == "str":
            return f'"{value.text}"'
        return value.text
    if isinstance(value, Variant):
        return _inline(value.inner, depth + 1, max_depth)
    return f"<{_type_label(value)}>"


def _bytes_text(items: tuple[Value, ...]) -> str:
    raw = bytes(int(item.text) for item in items)  # type: ignore[union-attr]
    try:
        text = raw.rstrip(b"\x00").decode("utf-8")
    except UnicodeDecodeError:
        return raw.hex(" ")
    if text.isprintable():
        return f'"{text}"'
    return raw.hex(" ")


def _is_kv_struct(item: Value) -> bool:
    return (
        isinstance(item, Struct)
        and len(item.fields) == 2
        and isinstance(item.fields[0], Primitive)
        and item.fields[0].type_name == "str"
    )


def format_value(
    value: Value, max_depth: int = DEFAULT_VALUE_MAX_DEPTH
) -> list[str]:
    """Render a Value tree as indented text lines for a detail view."""
    lines: list[str] = []
    _format(value, 0, 0, "", lines, max_depth)
    return lines


def _format(
    value: Value,
    indent: int,
    depth: int,
    prefix: str,
    lines: list[str],
    max_depth: int,
) -> None:
    pad = "  " * indent
    if depth > max_depth:
        lines.append(f"{pad}{prefix}<elided>")
        return

    # Variants render as their content
    if isinstance(value, Variant):
        _format(value.inner, indent, depth + 1, prefix, lines, max_depth)
        return

    if isinstance(value, Primitive):
        lines.append(f"{pad}{prefix}[{value.type_name}]: {_inline(value)}")
        return
    if isinstance(value, Undecodable):
        lines.append(f"{pad}{prefix}[undecodable]: {value.reason}")
        return
    if isinstance(value, Elided):
        lines.append(f"{pad}{prefix}<elided>")
        return

    if isinstance(value, Dict):
        if not value.entries:
            lines.append(f"{pad}{prefix}[dict]: {{}}")
            return
        lines.append(f"{pad}{prefix}[dict]:")
        for key, item in value.entries:
            label = f"{_inline(key, depth + 1, max_depth)}: "
            _format(item, indent + 1, depth + 1, label, lines, max_depth)
        return

    if isinstance(value, Struct):
        if not value.fields:
            lines.append(f"{pad}{prefix}[struct]: ()")
            return
        lines.append(f"{pad}{prefix}[struct]:")
        for item in value.fields:
            _format(item, indent + 1, depth + 1, "", lines, max_depth)
        return

    items = value.items
    if not items:
        lines.append(f"{pad}{prefix}[array]: []")
        return

    # Byte arrays collapse to one line
    if all(isinstance(i, Primitive) and i.type_name == "byte" for i in items):
        lines.append(f"{pad}{prefix}[bytes]: {_bytes_text(items)}")
        return

    # Arrays of (name, value) pairs read like a dict
    if all(_is_kv_struct(i) for i in items):
        lines.append(f"{pad}{prefix}[struct[]]:")
        for item in items:
            key, inner = item.fields  # type: ignore[union-attr]
            label = f"{key.text}: "  # type: ignore[union-attr]
            _format(inner, indent + 1, depth + 1, label, lines, max_depth)
        return

    first = items[0]
    if isinstance(first, Primitive) and all(
        isinstance(i, Primitive) and i.type_name == first.type_name for i in items
    ):
        joined = ", ".join(_inline(i) for i in items)
        lines.append(f"{pad}{prefix}[{first.type_name}[]]: [{joined}]")
        return

    lines.append(f"{pad}{prefix}[array]:")
    for item in items:
        _format(item, indent + 1, depth + 1, "", lines, max_depth)


def summarize(
    value: Value, limit: int = 80, max_depth: int = DEFAULT_VALUE_MAX_DEPTH
) -> str:
    """One-line preview of a body for list rows."""
    parts: list[str] = []
    _summarize(value, 0, max_depth, parts)
    text = "".join(parts)
    if len(text) > limit:
        return text[: max(limit - 1, 0)] + "…"
    return text


def _summarize(value: Value, depth: int, max_depth: int, out: list[str]) -> None:
    if depth > max_depth:
        out.append("…")
        return
    if isinstance(value, Variant):
        _summarize(value.inner, depth + 1, max_depth, out)
    elif isinstance(value, Primitive):
        out.append(_inline(value))
    elif isinstance(value, (Undecodable, Elided)):
        out.append(f"<{_type_label(value)}>")
    elif isinstance(value, Dict):
        out.append("{")
        for n, (key, item) in enumerate(value.entries):
            if n:
                out.append(", ")
            out.append(f"{_inline(key, depth + 1, max_depth)}: ")
            _summarize(item, depth + 1, max_depth, out)
        out.append("}")
    else:
        children = value.items if isinstance(value, Array) else value.fields
        out.append("[" if isinstance(value, Array) else "(")
        for n, item in enumerate(children):
            if n:
                out.append(", ")
            _summarize(item, depth + 1, max_depth, out)
        out.append("]" if isinstance(value, Array) else ")")
