"""SGR (Select Graphic Rendition) sanitizer.

Some terminals (VTE-based ones in particular) smear background colours and
inverse/dim/hidden text across neighbouring cells while a TUI repaints.
The sanitizer rewrites each ``CSI <params> m`` token so that only a safe
subset of attributes survives:

* ``0`` reset
* ``1``, ``3``, ``4``, ``9`` and their offs ``22``, ``23``, ``24``, ``29``
* foreground colours ``30``-``37``, ``39``, ``90``-``97``
* extended foreground groups ``38;5;N`` and ``38;2;R;G;B``

Everything else is dropped, including whole ``48;...`` and ``58;...``
groups.  A truncated ``38`` group is a parse anomaly: the token is
returned unmodified rather than risk emitting a broken sequence.
"""

from __future__ import annotations

from screenfix.csi import csi, map_csi

RESET = "\x1b[0m"

_KEPT_CODES = frozenset(
    {0, 1, 3, 4, 9, 22, 23, 24, 29, 39}
    | set(range(30, 38))
    | set(range(90, 98))
)

# Extended colour introducers: foreground, background, underline colour.
_EXTENDED = frozenset({38, 48, 58})

# Number of fields following the colour-mode selector.
_EXTENDED_ARITY = {5: 1, 2: 3}


class _Malformed(Exception):
    pass


def _code(field: str) -> int:
    if not field.isdigit():
        raise _Malformed(field)
    return int(field)


def _filter_params(fields: list[str]) -> list[str]:
    kept: list[str] = []
    i = 0
    while i < len(fields):
        field = fields[i]

        # Colon sub-parameters (``38:2::R:G:B``, ``4:3``) form one field.
        if ":" in field:
            head = _code(field.split(":", 1)[0])
            if head in (4, 38):
                kept.append(field)
            i += 1
            continue

        code = _code(field)
        if code in _EXTENDED:
            if i + 1 >= len(fields):
                if code == 38:
                    raise _Malformed(field)
                break
            mode = _code(fields[i + 1])
            arity = _EXTENDED_ARITY.get(mode)
            if arity is None:
                if code == 38:
                    raise _Malformed(field)
                break
            group_end = i + 2 + arity
            if group_end > len(fields):
                if code == 38:
                    raise _Malformed(field)
                # A truncated background group owns the rest of the token.
                break
            if code == 38:
                for value in fields[i + 2 : group_end]:
                    _code(value)
                kept.extend(fields[i:group_end])
            i = group_end
            continue

        if code in _KEPT_CODES:
            kept.append(field)
        i += 1
    return kept


def sanitize_params(params: str) -> str | None:
    """Filter an SGR parameter string.

    Returns the filtered parameter string (``""`` when nothing survives) or
    ``None`` when *params* is malformed and must pass through untouched.
    An empty parameter string is an implicit reset and maps to ``"0"``, as
    does each empty field inside a longer list.
    """
    fields = params.split(";")
    if all(f == "" for f in fields):
        return "0"
    fields = [f or "0" for f in fields]
    try:
        kept = _filter_params(fields)
    except _Malformed:
        return None
    return ";".join(kept)


def sanitize_sgr(token: str) -> str:
    """Sanitize one ``CSI <params> m`` token.

    >>> sanitize_sgr("\\x1b[1;38;5;196;48;5;236m")
    '\\x1b[1;38;5;196m'
    >>> sanitize_sgr("\\x1b[7m")
    ''
    """
    if not (token.startswith("\x1b[") and token.endswith("m")):
        return token
    params = token[2:-1]
    if params and params[0] in "<=>?":
        return token
    filtered = sanitize_params(params)
    if filtered is None:
        return token
    if not filtered:
        return ""
    return csi(filtered, "m")


def sanitize_stream(data: str) -> str:
    """Sanitize every SGR token embedded in *data*; everything else is untouched."""
    return map_csi(data, lambda t: sanitize_sgr(t.raw) if t.is_sgr else None)
