"""
Functions every template gets regardless of the helpers registered on top:
boolean logic, comparisons, ``len``, ``index`` and the print family.
"""
import json
import re
from collections.abc import Mapping
from typing import Any, Callable, Dict

def is_true(value: Any) -> bool:
    # empty values (nil, false, 0, "", empty list/map) are false.
    if value is None:
        return False
    if isinstance(value, (bool, int, float, str, bytes, list, tuple, dict, set)) or isinstance(value, Mapping):
        return bool(value)
    return True

def format_value(value: Any) -> str:
    """Prints a value the way template output shows it (``true``, ``map[A:1]``, ...)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() and abs(value) < 1e21 else repr(value)
    if isinstance(value, Mapping):
        return "map[" + " ".join(f"{k}:{format_value(value[k])}" for k in sorted(value)) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(format_value(v) for v in value) + "]"
    return str(value)

# and/or receive zero-argument callables so evaluation can stop early.
def _and(*thunks: Callable[[], Any]) -> Any:
    value = None
    for thunk in thunks:
        value = thunk()
        if not is_true(value):
            return value
    return value

def _or(*thunks: Callable[[], Any]) -> Any:
    value = None
    for thunk in thunks:
        value = thunk()
        if is_true(value):
            return value
    return value

def _not(value: Any) -> bool:
    return not is_true(value)

def _basic(value: Any) -> Any:
    # bools never compare equal to ints.
    return (type(value) is bool, value)

def _eq(first: Any, *others: Any) -> bool:
    if not others:
        raise TypeError("missing argument for comparison")
    return any(_basic(first) == _basic(other) for other in others)

def _ne(a: Any, b: Any) -> bool:
    return not _eq(a, b)

def _comparable(a: Any, b: Any):
    if isinstance(a, bool) or isinstance(b, bool):
        raise TypeError("invalid type for comparison")
    numeric = (int, float)
    if isinstance(a, numeric) and isinstance(b, numeric):
        return a, b
    if isinstance(a, str) and isinstance(b, str):
        return a, b
    raise TypeError("incompatible types for comparison")

def _lt(a: Any, b: Any) -> bool:
    a, b = _comparable(a, b)
    return a < b

def _le(a: Any, b: Any) -> bool:
    a, b = _comparable(a, b)
    return a <= b

def _gt(a: Any, b: Any) -> bool:
    a, b = _comparable(a, b)
    return a > b

def _ge(a: Any, b: Any) -> bool:
    a, b = _comparable(a, b)
    return a >= b

def _len(value: Any) -> int:
    if value is None or isinstance(value, (bool, int, float)):
        raise TypeError(f"len of type {type(value).__name__}")
    return len(value)

def _index(item: Any, *keys: Any) -> Any:
    for key in keys:
        if isinstance(item, Mapping):
            # missing map keys index to the empty value, like Go does.
            item = item.get(key, "")
        elif isinstance(item, (list, tuple, str)):
            if isinstance(key, bool) or not isinstance(key, int):
                raise TypeError(f"cannot index slice/array with type {type(key).__name__}")
            if key < 0 or key >= len(item):
                raise IndexError(f"index out of range: {key}")
            item = item[key]
        elif item is None:
            raise TypeError("index of untyped nil")
        else:
            raise TypeError(f"can't index item of type {type(item).__name__}")
    return item

def _print(*args: Any) -> str:
    # spaces go between operands only when neither side is a string.
    parts = []
    for i, arg in enumerate(args):
        if i > 0 and not isinstance(arg, str) and not isinstance(args[i - 1], str):
            parts.append(" ")
        parts.append(format_value(arg))
    return "".join(parts)

def _println(*args: Any) -> str:
    return " ".join(format_value(arg) for arg in args) + "\n"

_VERB_RE = re.compile(r"%([-+# 0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")

def _printf(fmt: str, *args: Any) -> str:
    remaining = list(args)

    def convert(match: "re.Match[str]") -> str:
        flags, width, precision, verb = match.groups()
        if verb == "%":
            return "%"
        if not remaining:
            return f"%!{verb}(MISSING)"
        arg = remaining.pop(0)
        directive = "%" + flags + (width or "") + (f".{precision}" if precision else "")
        if verb in "vs":
            return (directive + "s") % format_value(arg)
        if verb == "q":
            return (directive + "s") % json.dumps(format_value(arg), ensure_ascii=False)
        if verb == "t":
            return (directive + "s") % format_value(bool(arg))
        if verb == "b":
            return format(arg, "b")
        if verb in "dfeEgGxXoc":
            return (directive + verb) % arg
        return f"%!{verb}({format_value(arg)})"

    result = _VERB_RE.sub(convert, fmt)
    if remaining:
        result += "%!(EXTRA " + ", ".join(format_value(a) for a in remaining) + ")"
    return result

GO_BUILTINS: Dict[str, Callable] = {
    "and": _and,
    "or": _or,
    "not": _not,
    "eq": _eq,
    "ne": _ne,
    "lt": _lt,
    "le": _le,
    "gt": _gt,
    "ge": _ge,
    "len": _len,
    "index": _index,
    "print": _print,
    "printf": _printf,
    "println": _println,
}

LAZY_BUILTINS = frozenset({"and", "or"})
