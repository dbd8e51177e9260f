"""Base62 encoding of non-negative integers.

The alphabet is lowercase letters, then uppercase letters, then digits.
Its order only fixes the numeric value of each symbol.
"""

import string

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
BASE = len(ALPHABET)


class InvalidCharacterError(ValueError):
    """Raised when a string contains a symbol outside the alphabet."""

    def __init__(self, char: str, position: int):
        self.char = char
        self.position = position
        super().__init__(f"Invalid character {char!r} at position {position}")


def encode(number: int, alphabet: str = ALPHABET) -> str:
    """Encode a non-negative integer.

    Args:
        number: Value to encode
        alphabet: Symbols to encode with, in value order

    Returns:
        str: Encoded value, never empty (``encode(0)`` is the first symbol)

    Raises:
        ValueError: If number is negative
    """
    if number < 0:
        raise ValueError("Cannot encode a negative number")

    base = len(alphabet)
    if number == 0:
        return alphabet[0]

    digits = []
    while number > 0:
        number, remainder = divmod(number, base)
        digits.append(alphabet[remainder])
    return "".join(reversed(digits))


def decode(value: str, alphabet: str = ALPHABET) -> int:
    """Decode a string produced by :func:`encode`.

    Raises:
        InvalidCharacterError: If value is empty or holds an unknown symbol
    """
    if not value:
        raise InvalidCharacterError("", 0)

    base = len(alphabet)
    positions = {char: index for index, char in enumerate(alphabet)}
    number = 0
    for position, char in enumerate(value):
        digit = positions.get(char)
        if digit is None:
            raise InvalidCharacterError(char, position)
        number = number * base + digit
    return number
