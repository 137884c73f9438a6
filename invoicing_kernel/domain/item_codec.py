"""
ItemCodec -- text encoding of an invoice's ordered line items.

Responsibility:
    Serializes a sequence of ``LineItem`` into the single text column stored
    with each invoice, and decodes it back.  No schema library is involved;
    the format is written and scanned here.

Format:
    [{"description":"Dev","quantity":40,"unitPrice":50.00,"amount":2000.00},...]

    * Strings are quoted.  ``"`` and ``\\`` are backslash-escaped, control
      characters become ``\\b \\f \\n \\r \\t`` or ``\\uXXXX``.  Every other
      character, including non-ASCII, is written as-is.
    * Numbers are plain decimal text produced from ``Decimal``/``int``.
    * Zero items encode to ``[]``.

Decoding:
    Phase one scans the text once, tracking quote state (with a pending
    backslash escape) and a stack of open ``[``/``{`` delimiters, and splits
    on commas that sit outside quotes at depth zero.  Phase two splits each
    field at its first such colon, unescapes strings and parses numbers
    exactly.

Invariants enforced:
    - ``decode_items(encode_items(items)) == list(items)`` for every item
      with a ``str`` description, ``int`` quantity and finite ``Decimal``
      unit price.
    - Malformed text raises ``DecodeError`` naming the offending fragment.
      Elements are never dropped or truncated.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from string import hexdigits
from typing import Iterable, Iterator

from invoicing_kernel.db.types import round_money
from invoicing_kernel.domain.values import LineItem
from invoicing_kernel.exceptions import DecodeError, InvalidLineItemError

EMPTY_ITEMS = "[]"

_KEY_DESCRIPTION = "description"
_KEY_QUANTITY = "quantity"
_KEY_UNIT_PRICE = "unitPrice"
_KEY_AMOUNT = "amount"

_REQUIRED_KEYS = frozenset({_KEY_DESCRIPTION, _KEY_QUANTITY, _KEY_UNIT_PRICE})
_KNOWN_KEYS = _REQUIRED_KEYS | {_KEY_AMOUNT}

_CLOSERS = {"[": "]", "{": "}"}

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}
_UNESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

_INTEGER_RE = re.compile(r"-?[0-9]+")
_DECIMAL_RE = re.compile(r"-?[0-9]+(\.[0-9]+)?")


def _is_control(ch: str) -> bool:
    return ord(ch) < 0x20 or ch == "\x7f"


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _quote(text: str) -> str:
    out = ['"']
    for ch in text:
        escaped = _ESCAPES.get(ch)
        if escaped is not None:
            out.append(escaped)
        elif _is_control(ch):
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _format_decimal(value: Decimal) -> str:
    # Fixed-point notation, never exponent form
    return format(value, "f")


def _encode_item(item: LineItem, index: int) -> str:
    if not isinstance(item.description, str):
        raise InvalidLineItemError("description must be text", index)
    if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
        raise InvalidLineItemError("quantity must be an integer", index)
    if not isinstance(item.unit_price, Decimal) or not item.unit_price.is_finite():
        raise InvalidLineItemError("unit price must be a finite Decimal", index)
    try:
        amount = item.amount
    except InvalidOperation:
        raise InvalidLineItemError("amount is out of range", index) from None

    fields = (
        (_KEY_DESCRIPTION, _quote(item.description)),
        (_KEY_QUANTITY, str(item.quantity)),
        (_KEY_UNIT_PRICE, _format_decimal(item.unit_price)),
        (_KEY_AMOUNT, _format_decimal(amount)),
    )
    return "{" + ",".join(f"{_quote(key)}:{value}" for key, value in fields) + "}"


def encode_items(items: Iterable[LineItem]) -> str:
    """
    Encode line items to text.

    Raises:
        InvalidLineItemError: An item cannot be represented (non-integer
            quantity, non-finite or non-Decimal price, non-text description).
    """
    elements = [_encode_item(item, index) for index, item in enumerate(items)]
    if not elements:
        return EMPTY_ITEMS
    return "[" + ",".join(elements) + "]"


# ---------------------------------------------------------------------------
# Decoding, phase one: structural scan
# ---------------------------------------------------------------------------


def _structural_chars(text: str) -> Iterator[tuple[int, str, int]]:
    """
    Yield ``(position, char, depth)`` for each character outside quotes.

    ``depth`` is the nesting depth *before* the character is applied.
    Raises DecodeError once the scan proves the text malformed.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for pos, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        depth = len(stack)
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("]", "}"):
            if not stack or stack.pop() != ch:
                raise DecodeError(text, f"unbalanced {ch!r} at offset {pos}")
        yield pos, ch, depth

    if in_string:
        raise DecodeError(text, "unterminated quoted string")
    if stack:
        raise DecodeError(text, f"unclosed delimiter, expected {stack[-1]!r}")


def _split_top_level(text: str) -> list[str]:
    """Split ``text`` at commas outside quotes at depth zero."""
    parts = []
    start = 0
    for pos, ch, depth in _structural_chars(text):
        if ch == "," and depth == 0:
            parts.append(text[start:pos])
            start = pos + 1
    parts.append(text[start:])
    return parts


def _first_top_level_colon(text: str) -> int:
    for pos, ch, depth in _structural_chars(text):
        if ch == ":" and depth == 0:
            return pos
    return -1


# ---------------------------------------------------------------------------
# Decoding, phase two: fields and values
# ---------------------------------------------------------------------------


def _unquote(token: str) -> str:
    if len(token) < 2 or token[0] != '"' or token[-1] != '"':
        raise DecodeError(token, "expected a quoted string")
    body = token[1:-1]
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\":
            if i + 1 >= len(body):
                raise DecodeError(token, "dangling escape")
            nxt = body[i + 1]
            if nxt == "u":
                code = body[i + 2:i + 6]
                if len(code) != 4 or not all(c in hexdigits for c in code):
                    raise DecodeError(token, "malformed \\u escape")
                out.append(chr(int(code, 16)))
                i += 6
                continue
            if nxt not in _UNESCAPES:
                raise DecodeError(token, f"invalid escape \\{nxt}")
            out.append(_UNESCAPES[nxt])
            i += 2
            continue
        if ch == '"':
            raise DecodeError(token, "unescaped quote inside string")
        if _is_control(ch):
            raise DecodeError(token, "raw control character inside string")
        out.append(ch)
        i += 1
    return "".join(out)


def _parse_int(token: str) -> int:
    if not _INTEGER_RE.fullmatch(token):
        raise DecodeError(token, "expected an integer")
    return int(token)


def _parse_decimal(token: str) -> Decimal:
    if not _DECIMAL_RE.fullmatch(token):
        raise DecodeError(token, "expected a plain decimal number")
    return Decimal(token)


def _read_fields(fragment: str) -> dict[str, str]:
    inner = fragment[1:-1]
    raw_fields = _split_top_level(inner) if inner.strip() else []

    values: dict[str, str] = {}
    for raw in raw_fields:
        field = raw.strip()
        if not field:
            raise DecodeError(fragment, "empty field")
        colon = _first_top_level_colon(field)
        if colon < 0:
            raise DecodeError(field, "field has no key:value separator")
        key = _unquote(field[:colon].strip())
        if key not in _KNOWN_KEYS:
            raise DecodeError(field, f"unknown key {key!r}")
        if key in values:
            raise DecodeError(field, f"duplicate key {key!r}")
        values[key] = field[colon + 1:].strip()

    missing = _REQUIRED_KEYS - values.keys()
    if missing:
        raise DecodeError(fragment, f"missing keys {sorted(missing)}")
    return values


def _decode_item(fragment: str) -> LineItem:
    if not fragment:
        raise DecodeError(fragment, "empty list element")
    if not (fragment.startswith("{") and fragment.endswith("}")):
        raise DecodeError(fragment, "list element is not wrapped in braces")

    values = _read_fields(fragment)
    item = LineItem(
        description=_unquote(values[_KEY_DESCRIPTION]),
        quantity=_parse_int(values[_KEY_QUANTITY]),
        unit_price=_parse_decimal(values[_KEY_UNIT_PRICE]),
    )

    if _KEY_AMOUNT in values:
        stored = _parse_decimal(values[_KEY_AMOUNT])
        try:
            expected = round_money(item.unit_price * item.quantity)
        except InvalidOperation:
            raise DecodeError(fragment, "amount is out of range") from None
        if stored != expected:
            raise DecodeError(fragment, "stored amount disagrees with quantity x unit price")
    return item


def decode_items(text: str) -> list[LineItem]:
    """
    Decode text produced by ``encode_items``.

    Raises:
        DecodeError: The text is malformed.  ``fragment`` on the exception
            holds the smallest piece of text that failed.
    """
    if not isinstance(text, str):
        raise DecodeError(repr(text), "item text must be a string")
    stripped = text.strip()
    if len(stripped) < 2 or stripped[0] != "[" or stripped[-1] != "]":
        raise DecodeError(text, "missing outer list delimiters")

    body = stripped[1:-1]
    if not body.strip():
        return []
    return [_decode_item(element.strip()) for element in _split_top_level(body)]
