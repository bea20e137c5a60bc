"""Reading and writing the Ruby literals that appear in field declarations."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator


class Symbol(str):
    """A Ruby symbol such as ``:string``."""

    def __repr__(self) -> str:
        return f"Symbol({str.__repr__(self)})"


class RawExpression(str):
    """Source text of a value that is not a plain literal. Rendered verbatim."""

    def __repr__(self) -> str:
        return f"RawExpression({str.__repr__(self)})"


IDENTIFIER_RE = re.compile(r"[A-Za-z_]\w*[?!]?")
INT_RE = re.compile(r"[-+]?\d[\d_]*")
FLOAT_RE = re.compile(r"[-+]?\d[\d_]*(?:\.\d[\d_]*(?:[eE][-+]?\d+)?|[eE][-+]?\d+)")
BIGDECIMAL_RE = re.compile(r"BigDecimal\(\s*(['\"])([^'\"]*)\1\s*\)")
DOUBLE_QUOTED_RE = re.compile(r'"(?:[^"\\]|\\.)*"', re.S)
SINGLE_QUOTED_RE = re.compile(r"'(?:[^'\\]|\\.)*'", re.S)
LABEL_RE = re.compile(r'([A-Za-z_]\w*[?!]?|"[^"\\]*"):(?!:)\s*(.*)', re.S)

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "s": " ", "0": "\0", "e": "\x1b"}
ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.S)
# Escaped like the control characters so a quoted string stays on one line.
LINE_BREAKS = "\x85\u2028\u2029"


def values_equal(a: Any, b: Any) -> bool:
    """Value equality that never confuses booleans with numbers or symbols with strings."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    if isinstance(a, Symbol) != isinstance(b, Symbol):
        return False
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def attributes_equal(a: dict[str, Any], b: dict[str, Any]) -> bool:
    if a.keys() != b.keys():
        return False
    return all(values_equal(a[key], b[key]) for key in a)


def quote_string(text: str) -> str:
    out: list[str] = []
    for idx, ch in enumerate(text):
        if ch in '"\\':
            out.append("\\" + ch)
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "#" and text[idx + 1 : idx + 2] in ("{", "$", "@"):
            out.append("\\#")
        elif ord(ch) < 0x20 or ch in LINE_BREAKS:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def format_symbol(name: str) -> str:
    if IDENTIFIER_RE.fullmatch(name):
        return f":{name}"
    return ":" + quote_string(name)


def format_literal(value: Any) -> str:
    if value is None:
        return "nil"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, RawExpression):
        return str(value)
    if isinstance(value, Symbol):
        return format_symbol(value)
    if isinstance(value, Decimal):
        # Rebuilt through BigDecimal so the value survives a text round trip.
        return f"BigDecimal('{value}')"
    if isinstance(value, str):
        return quote_string(value)
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        pairs = ", ".join(f"{format_literal(k)}=>{format_literal(v)}" for k, v in value.items())
        return "{" + pairs + "}"
    raise TypeError(f"Cannot render {value!r} as a literal")


def _unescape(m: re.Match[str]) -> str:
    code = m.group(1)
    if len(code) == 5:
        return chr(int(code[1:], 16))
    return ESCAPES.get(code, code)


def unquote(text: str) -> str:
    body = text[1:-1]
    if text[0] == "'":
        return re.sub(r"\\([\\'])", r"\1", body)
    return ESCAPE_RE.sub(_unescape, body)


def parse_literal(text: str) -> Any:
    text = text.strip()
    if text == "nil":
        return None
    if text == "true":
        return True
    if text == "false":
        return False
    if INT_RE.fullmatch(text):
        return int(text.replace("_", ""))
    if FLOAT_RE.fullmatch(text):
        return float(text.replace("_", ""))
    m = BIGDECIMAL_RE.fullmatch(text)
    if m:
        try:
            return Decimal(m.group(2))
        except InvalidOperation:
            return RawExpression(text)
    if text.startswith(":") and len(text) > 1:
        rest = text[1:]
        if IDENTIFIER_RE.fullmatch(rest):
            return Symbol(rest)
        if DOUBLE_QUOTED_RE.fullmatch(rest) or SINGLE_QUOTED_RE.fullmatch(rest):
            return Symbol(unquote(rest))
        return RawExpression(text)
    if DOUBLE_QUOTED_RE.fullmatch(text) or SINGLE_QUOTED_RE.fullmatch(text):
        return unquote(text)
    if text.startswith("[") and text.endswith("]"):
        return [parse_literal(token) for token in split_args(text[1:-1])]
    return RawExpression(text)


def iter_code(text: str) -> Iterator[tuple[int, str, int]]:
    """Yield ``(index, char, depth)`` for every character outside string literals."""
    quote: str | None = None
    escaped = False
    depth = 0
    for idx, ch in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        yield idx, ch, depth


def split_args(expr: str) -> list[str]:
    out: list[str] = []
    start = 0
    for idx, ch, depth in iter_code(expr):
        if ch == "," and depth == 0:
            token = expr[start:idx].strip()
            if token:
                out.append(token)
            start = idx + 1
    token = expr[start:].strip()
    if token:
        out.append(token)
    return out


def strip_comment(line: str) -> tuple[str, str | None]:
    for idx, ch, _ in iter_code(line):
        if ch == "#":
            return line[:idx], line[idx:].rstrip("\r\n")
    return line, None


def split_pair(token: str) -> tuple[str, Any] | None:
    """Split a hash argument (``:k=>v``, ``"k"=>v`` or ``k: v``) into key and value."""
    for idx, _, depth in iter_code(token):
        if depth == 0 and token.startswith("=>", idx):
            key = parse_literal(token[:idx])
            if not isinstance(key, str) or isinstance(key, RawExpression):
                return None
            return str(key), parse_literal(token[idx + 2 :])
    m = LABEL_RE.fullmatch(token)
    if m and m.group(2):
        key = m.group(1)
        if key.startswith('"'):
            key = unquote(key)
        return key, parse_literal(m.group(2))
    return None
