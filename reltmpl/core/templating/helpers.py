"""
Custom helper functions for release templates.
"""
import datetime
import os
from typing import Callable, Dict, List, Tuple

_MONTHS = ["January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"]
_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

def _hour12(moment: datetime.datetime) -> int:
    return moment.hour % 12 or 12

# Reference-time chunks in the order they are tried; longer chunks first.
_LAYOUT_CHUNKS: List[Tuple[str, Callable[[datetime.datetime], str]]] = [
    ("January", lambda t: _MONTHS[t.month - 1]),
    ("Jan", lambda t: _MONTHS[t.month - 1][:3]),
    ("Monday", lambda t: _DAYS[t.weekday()]),
    ("Mon", lambda t: _DAYS[t.weekday()][:3]),
    ("MST", lambda t: "UTC"),
    ("2006", lambda t: f"{t.year:04d}"),
    ("002", lambda t: f"{t.timetuple().tm_yday:03d}"),
    ("01", lambda t: f"{t.month:02d}"),
    ("02", lambda t: f"{t.day:02d}"),
    ("03", lambda t: f"{_hour12(t):02d}"),
    ("04", lambda t: f"{t.minute:02d}"),
    ("05", lambda t: f"{t.second:02d}"),
    ("06", lambda t: f"{t.year % 100:02d}"),
    ("_2", lambda t: f"{t.day:2d}"),
    ("15", lambda t: f"{t.hour:02d}"),
    ("1", lambda t: str(t.month)),
    ("2", lambda t: str(t.day)),
    ("3", lambda t: str(_hour12(t))),
    ("4", lambda t: str(t.minute)),
    ("5", lambda t: str(t.second)),
    ("PM", lambda t: "PM" if t.hour >= 12 else "AM"),
    ("pm", lambda t: "pm" if t.hour >= 12 else "am"),
    # only UTC is ever formatted, so every zone form collapses to zero.
    ("Z07:00", lambda t: "Z"),
    ("Z0700", lambda t: "Z"),
    ("Z07", lambda t: "Z"),
    ("-07:00", lambda t: "+00:00"),
    ("-0700", lambda t: "+0000"),
    ("-07", lambda t: "+00"),
    (".000000000", lambda t: f".{t.microsecond * 1000:09d}"),
    (".000000", lambda t: f".{t.microsecond:06d}"),
    (".000", lambda t: f".{t.microsecond // 1000:03d}"),
]

def format_go_layout(moment: datetime.datetime, layout: str) -> str:
    """Formats ``moment`` using a Go reference layout such as ``2006-01-02T15:04:05Z07:00``.

    Layouts containing ``%`` are treated as strftime formats instead.
    """
    if "%" in layout:
        return moment.strftime(layout)
    out: List[str] = []
    i = 0
    while i < len(layout):
        for chunk, render in _LAYOUT_CHUNKS:
            if layout.startswith(chunk, i):
                out.append(render(moment))
                i += len(chunk)
                break
        else:
            out.append(layout[i])
            i += 1
    return "".join(out)

def replace_helper(old: str, new: str, s: str) -> str:
    """Replaces every non-overlapping ``old`` in ``s`` with ``new``."""
    return s.replace(old, new)

def time_helper(layout: str) -> str:
    # reads the wall clock at render time.
    return format_go_layout(datetime.datetime.now(datetime.timezone.utc), layout)

def trimprefix_helper(s: str, prefix: str) -> str:
    return s[len(prefix):] if prefix and s.startswith(prefix) else s

def dir_helper(path: str) -> str:
    parent = os.path.dirname(path)
    return os.path.normpath(parent) if parent else "."

def abs_helper(path: str) -> str:
    # may raise when the working directory no longer exists.
    return os.path.abspath(path)

# Dictionary of helpers registered for Template.apply
BUILTIN_HELPERS: Dict[str, Callable] = {
    "replace": replace_helper,
    "time": time_helper,
    "tolower": str.lower,
    "toupper": str.upper,
    "trim": str.strip,
    "trimprefix": trimprefix_helper,
    "dir": dir_helper,
    "abs": abs_helper,
}
