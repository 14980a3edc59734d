"""Primitive validators for values that end up inside NGINX directives.

Every validator raises ``ValueError`` with a human-readable message when the
value is rejected; callers turn the message into a field error. The patterns
guard against configuration injection: a value that passes can be placed in
its directive without terminating the directive or expanding a variable.
"""

from __future__ import annotations

import re
from fractions import Fraction
from math import ceil


def regex_error(msg: str, fmt: str, *examples: str) -> str:
    """Format a pattern mismatch the way the Kubernetes API server does."""
    if not examples:
        return f"{msg} (regex used for validation is '{fmt}')"
    quoted = " or ".join(f"'{e}'" for e in examples)
    return f"{msg} (e.g. {quoted}, regex used for validation is '{fmt}')"


# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------

_SIZE_FMT = r"\d{1,4}(k|m|g)?"
_SIZE_ERR_MSG = "must contain a number that may be followed by 'k', 'm', or 'g'"
_SIZE_RE = re.compile(_SIZE_FMT, re.ASCII)
_SIZE_EXAMPLES = ("1024", "8k", "1m")

_SIZE_MULTIPLIERS = {
    "k": 1024,
    "m": 1024 * 1024,
    "g": 1024 * 1024 * 1024,
}


def validate_nginx_size(size: str) -> None:
    """Check a size string such as ``8k`` or ``1024``."""
    if not _SIZE_RE.fullmatch(size):
        raise ValueError(regex_error(_SIZE_ERR_MSG, _SIZE_FMT, *_SIZE_EXAMPLES))


def parse_nginx_size(size: str) -> int:
    """Parse an NGINX size string (``8k``, ``16m``, ``1g``, ``1024``) into bytes."""
    size = size.lower().strip()
    if not size:
        raise ValueError("invalid syntax: empty size")

    multiplier = _SIZE_MULTIPLIERS.get(size[-1])
    number = size[:-1] if multiplier else size
    if multiplier is None:
        multiplier = 1

    if not number.isascii() or not number.isdigit():
        raise ValueError(f"invalid syntax: {size!r} is not a valid size")

    return int(number) * multiplier


# ---------------------------------------------------------------------------
# Rates and limit_req keys
# ---------------------------------------------------------------------------

RATE_FMT = r"^\d+r/[sm]$"
_RATE_ERR_MSG = "must contain a number followed by 'r/s' or 'r/m'"
_RATE_RE = re.compile(RATE_FMT, re.ASCII)

# [^ \t\r\n;{}#$]+ is any run of characters NGINX would not treat as the end of
# the argument; \$\w+ is a variable.
LIMIT_REQ_KEY_FMT = r"^(?:[^ \t\r\n;{}#$]+|\$\w+)+$"
_LIMIT_REQ_KEY_ERR_MSG = (
    "must be a valid limit_req key consisting of nginx variables "
    "and/or strings without spaces or special characters"
)
_LIMIT_REQ_KEY_RE = re.compile(LIMIT_REQ_KEY_FMT, re.ASCII)


def validate_nginx_rate(rate: str) -> None:
    if not _RATE_RE.fullmatch(rate):
        raise ValueError(regex_error(_RATE_ERR_MSG, RATE_FMT, "10r/s", "500r/m"))


def validate_limit_req_key(key: str) -> None:
    if not _LIMIT_REQ_KEY_RE.fullmatch(key):
        raise ValueError(
            regex_error(
                _LIMIT_REQ_KEY_ERR_MSG,
                LIMIT_REQ_KEY_FMT,
                "$binary_remote_addr",
                "$binary_remote_addr:$request_uri",
                "my_fixed_key",
            )
        )


# ---------------------------------------------------------------------------
# Escaped strings
# ---------------------------------------------------------------------------

_ESCAPED_STRING_FMT = r'([^"\\]|\\.)*'
_ESCAPED_STRING_ERR_MSG = (
    "must have all '\"' (double quotes) escaped and must not end with an "
    "unescaped '\\' (backslash)"
)
_ESCAPED_STRING_RE = re.compile(_ESCAPED_STRING_FMT)

_ESCAPED_STRING_NO_VAR_FMT = r'([^"$\\]|\\[^$])*'
_ESCAPED_STRING_NO_VAR_ERR_MSG = (
    "a valid value must have all '\"' escaped and must not contain any '$' "
    "or end with an unescaped '\\'"
)
_ESCAPED_STRING_NO_VAR_RE = re.compile(_ESCAPED_STRING_NO_VAR_FMT)


def validate_escaped_string(value: str, examples: tuple[str, ...] = ()) -> None:
    """Check a value placed inside ``"..."`` in a directive that expands variables."""
    if not _ESCAPED_STRING_RE.fullmatch(value):
        raise ValueError(regex_error(_ESCAPED_STRING_ERR_MSG, _ESCAPED_STRING_FMT, *examples))


def validate_escaped_string_no_var_expansion(
    value: str, examples: tuple[str, ...] = ()
) -> None:
    """Like :func:`validate_escaped_string` but also rejects ``$``."""
    if not _ESCAPED_STRING_NO_VAR_RE.fullmatch(value):
        raise ValueError(
            regex_error(_ESCAPED_STRING_NO_VAR_ERR_MSG, _ESCAPED_STRING_NO_VAR_FMT, *examples)
        )


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_PATH_FMT = r"/[^\s{};]*"
_PATH_ERR_MSG = "must start with / and must not include any whitespace character, `{`, `}` or `;`"
_PATH_RE = re.compile(_PATH_FMT)
_PATH_EXAMPLES = ("/", "/path", "/path/subpath-123")


def _check_path_shape(path: str) -> None:
    if not _PATH_RE.fullmatch(path):
        raise ValueError(regex_error(_PATH_ERR_MSG, _PATH_FMT, *_PATH_EXAMPLES))


def validate_path(path: str) -> None:
    """Validate an optional path used in a filter (rewrite, redirect)."""
    if not path:
        return
    _check_path_shape(path)
    if "$" in path:
        raise ValueError("cannot contain $")


def validate_path_in_match(path: str) -> None:
    """Validate a path used in a prefix or exact ``location``."""
    if not path:
        raise ValueError("cannot be empty")
    _check_path_shape(path)


def validate_path_in_regex_match(path: str) -> None:
    """Validate a path used in a regex ``location``.

    The expression must stay within the RE2 dialect: no lookaround, no
    backreferences or conditionals, no atomic groups or possessive quantifiers,
    no inline comments and no ``\\Z``. An unescaped ``$`` is reserved for NGINX
    variables and rejected even where it would be an anchor.
    """
    if not path:
        raise ValueError("cannot be empty")
    _check_path_shape(path)
    _check_re2_subset(path)

    try:
        re.compile(_NAMED_GROUP_RE.sub("(?P<", path))
    except re.error as exc:
        raise ValueError(f"invalid regex for path {path!r}: {exc}") from exc


_NAMED_GROUP_RE = re.compile(r"\(\?<(?=[A-Za-z_])")
_LOOKAROUND_PREFIXES = ("?=", "?!", "?<=", "?<!")
# group openers Python accepts and RE2 does not
_UNSUPPORTED_GROUPS = {
    "?>": "atomic groups are not supported",
    "?(": "conditional groups are not supported",
    "?#": "inline comments are not supported",
}
_QUANTIFIERS = frozenset("*+?}")


def _check_re2_subset(pattern: str) -> None:
    in_class = False
    after_quantifier = False
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            nxt = pattern[i + 1 : i + 2]
            if nxt.isdigit() and nxt != "0":
                raise ValueError(f"backreferences are not supported: \\{nxt}")
            if nxt == "Z":
                raise ValueError("\\Z is not supported")
            after_quantifier = False
            i += 2
            continue
        if ch == "$":
            raise ValueError("cannot contain unescaped $")
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "(":
            rest = pattern[i + 1 :]
            if rest.startswith(_LOOKAROUND_PREFIXES):
                raise ValueError("lookahead and lookbehind assertions are not supported")
            if rest.startswith("?P="):
                raise ValueError("backreferences are not supported")
            for prefix, msg in _UNSUPPORTED_GROUPS.items():
                if rest.startswith(prefix):
                    raise ValueError(msg)
            # skip the group's "?" so it is not read as a quantifier
            if rest.startswith("?"):
                i += 1
        elif ch == "+" and after_quantifier:
            raise ValueError("possessive quantifiers are not supported")
        after_quantifier = not in_class and ch in _QUANTIFIERS
        i += 1


# ---------------------------------------------------------------------------
# Header names
# ---------------------------------------------------------------------------

MAX_HEADER_LENGTH = 256
_HEADER_NAME_FMT = r"[-A-Za-z0-9]+"
_HEADER_NAME_RE = re.compile(_HEADER_NAME_FMT)
_HEADER_NAME_ERR_MSG = "a valid HTTP header must consist of alphanumeric characters or '-'"
_INVALID_HEADERS = frozenset({"host", "connection", "upgrade"})


def validate_header_name(name: str) -> None:
    """Validate a header name set or removed by a filter."""
    if len(name) > MAX_HEADER_LENGTH:
        raise ValueError(f"must be no more than {MAX_HEADER_LENGTH} characters")
    if not _HEADER_NAME_RE.fullmatch(name):
        raise ValueError(regex_error(_HEADER_NAME_ERR_MSG, _HEADER_NAME_FMT, "X-Header-Name"))
    if name.lower() in _INVALID_HEADERS:
        raise ValueError(
            "unsupported header name configured, unsupported names are: "
            + ", ".join(sorted(_INVALID_HEADERS))
        )


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

_NGINX_DURATION_RE = re.compile(r"[0-9]{1,4}(ms|s|m|h)?")
_GO_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

# (suffix, milliseconds per unit), smallest first
_NGINX_DURATION_UNITS = (("ms", 1), ("s", 1000), ("m", 60_000), ("h", 3_600_000))
_MAX_NGINX_DURATION_VALUE = 9999


def _parse_go_duration(value: str) -> Fraction:
    """Parse a Go ``time.Duration`` string into nanoseconds."""
    text = value
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return Fraction(0)
    if not text:
        raise ValueError(f"invalid duration: time: invalid duration {value!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(text):
        m = _GO_DURATION_PART_RE.match(text, pos)
        if m is None:
            raise ValueError(f"invalid duration: time: invalid duration {value!r}")
        total += Fraction(m.group(1)) * _NANOS_PER_UNIT[m.group(2)]
        pos = m.end()
    return sign * total


def validate_duration(duration: str) -> str:
    """Convert a duration to a single-unit NGINX duration such as ``1500ms``.

    Values already in NGINX form are returned unchanged. Otherwise the value
    is rounded up to the next millisecond and expressed in the smallest unit
    whose value fits in four digits.
    """
    if _NGINX_DURATION_RE.fullmatch(duration):
        return duration

    nanos = _parse_go_duration(duration)
    if nanos <= 0:
        raise ValueError("duration must be > 0")

    total_ms = ceil(nanos / 1_000_000)
    for suffix, step in _NGINX_DURATION_UNITS:
        value = -(-total_ms // step)
        if 1 <= value <= _MAX_NGINX_DURATION_VALUE:
            return f"{value}{suffix}"

    raise ValueError(
        f"duration is too large for NGINX format (exceeds {_MAX_NGINX_DURATION_VALUE}h)"
    )
