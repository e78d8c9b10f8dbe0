"""Base62 short-code encoding.

Sequence values are turned into short codes with a fixed 62-symbol alphabet
(digits, lowercase, uppercase). The mapping is positional and unpadded, so it
is injective: distinct integers always produce distinct codes.

    >>> encode(12345)
    '3d7'
    >>> decode("3d7")
    12345
"""

import re

__all__ = ["BASE62_ALPHABET", "SHORT_CODE_PATTERN", "decode", "encode", "is_valid_short_code"]

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
BASE = len(BASE62_ALPHABET)

SHORT_CODE_PATTERN = re.compile(r"[A-Za-z0-9]{1,10}")

_DIGIT_VALUES = {char: index for index, char in enumerate(BASE62_ALPHABET)}


def encode(number: int) -> str:
    """Encode a non-negative integer to its base62 string.

    Raises:
        ValueError: If ``number`` is negative or not an integer.
    """
    if not isinstance(number, int) or isinstance(number, bool):
        raise ValueError(f"Number must be an integer, got {type(number).__name__}")
    if number < 0:
        raise ValueError("Number must be non-negative")

    if number == 0:
        return BASE62_ALPHABET[0]

    result = []
    while number > 0:
        number, remainder = divmod(number, BASE)
        result.append(BASE62_ALPHABET[remainder])

    return "".join(result[::-1])


def decode(code: str) -> int:
    """Decode a base62 string back to the integer :func:`encode` produced.

    Raises:
        ValueError: If ``code`` is empty or contains a symbol outside the alphabet.
    """
    if not code:
        raise ValueError("Code must be a non-empty string")

    number = 0
    for char in code:
        try:
            number = number * BASE + _DIGIT_VALUES[char]
        except KeyError:
            raise ValueError(f"Invalid base62 character: {char!r}") from None
    return number


def is_valid_short_code(code: object) -> bool:
    return isinstance(code, str) and SHORT_CODE_PATTERN.fullmatch(code) is not None
