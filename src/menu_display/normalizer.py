"""Fold French/Latin UTF-8 text down to a 7-bit friendly form."""

from __future__ import annotations

# Second byte of a 0xC3 sequence -> replacement letter.
_C3_FOLDS: dict[int, int] = {}
for _lo, _hi, _letter in (
    (0xA0, 0xA5, "a"),
    (0xA7, 0xA7, "c"),
    (0xA8, 0xAB, "e"),
    (0xAC, 0xAF, "i"),
    (0xB2, 0xB6, "o"),
    (0xB9, 0xBC, "u"),
    (0xBF, 0xBF, "y"),
    (0x80, 0x85, "A"),
    (0x87, 0x87, "C"),
    (0x88, 0x8B, "E"),
    (0x8C, 0x8F, "I"),
    (0x92, 0x96, "O"),
    (0x99, 0x9C, "U"),
    (0x9F, 0x9F, "Y"),
):
    for _byte in range(_lo, _hi + 1):
        _C3_FOLDS[_byte] = ord(_letter)

_LIGATURES = {0x92: b"OE", 0x93: b"oe"}
_RIGHT_QUOTE = b"\xe2\x80\x99"


def fold_bytes(data: bytes) -> bytes:
    """Replace accented letters, the oe ligature and curly apostrophes in UTF-8 bytes.

    Anything that is not recognised is copied unchanged, so the result is valid
    UTF-8 whenever the input was.
    """
    out = bytearray()
    i = 0
    size = len(data)
    while i < size:
        c = data[i]
        if c < 0xC3:
            out.append(c)
            i += 1
            continue

        if c == 0xC3 and i + 1 < size:
            folded = _C3_FOLDS.get(data[i + 1])
            if folded is None:
                out += data[i : i + 2]
            else:
                out.append(folded)
            i += 2
            continue

        if c == 0xC5 and i + 1 < size and data[i + 1] in _LIGATURES:
            out += _LIGATURES[data[i + 1]]
            i += 2
            continue

        if c == 0xE2 and data[i : i + 3] == _RIGHT_QUOTE:
            out.append(ord("'"))
            i += 3
            continue

        out.append(c)
        i += 1
    return bytes(out)


def normalize_french_text(text: str) -> str:
    """String front-end for :func:`fold_bytes`."""
    return fold_bytes(text.encode("utf-8")).decode("utf-8", errors="replace")
