"""Short code (slug) generation and validation.

Generated slugs go through three gates before they are handed out:
format (length and characters), safety (reserved words, all-digit codes,
confusable runs) and uniqueness (an async predicate supplied by the
caller). Collisions past half of the retry budget grow the target length.
"""

import math
import random
import re
import time
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel, Field

from shorty.utils.base62 import ALPHABET, encode

DEFAULT_UNSAFE_WORDS = [
    "admin", "api", "www", "mail", "ftp", "root", "test", "debug",
    "config", "login", "auth", "user", "pass",
    "sex", "fuck", "shit", "damn", "hell", "porn",
]

# Codes built from a single confusable glyph class
CONFUSABLE_PATTERNS = [
    re.compile(r"^(0+|o+)$", re.IGNORECASE),
    re.compile(r"^(1+|l+|i+)$", re.IGNORECASE),
]

TIMESTAMP_ATTEMPTS = 3

ExistsChecker = Callable[[str], Awaitable[bool]]

_random = random.SystemRandom()


class SlugConfig(BaseModel):
    """Slug generator configuration."""

    length: int = Field(default=6, ge=1)
    min_length: int = Field(default=4, ge=1)
    max_length: int = Field(default=16, ge=1)
    max_retries: int = Field(default=10, ge=1)
    charset: str = ALPHABET
    exclude_chars: List[str] = Field(default_factory=list)
    unsafe_words: List[str] = Field(default_factory=lambda: list(DEFAULT_UNSAFE_WORDS))

    @property
    def usable_charset(self) -> str:
        excluded = set(self.exclude_chars)
        return "".join(char for char in self.charset if char not in excluded)


class SlugResult(BaseModel):
    """Outcome of a generation run."""

    success: bool
    slug: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None


class CustomSlugValidation(BaseModel):
    """Outcome of validating a user-supplied slug."""

    is_valid: bool
    slug: str
    errors: List[str] = Field(default_factory=list)


def generate_random_slug(length: int, charset: str = ALPHABET) -> str:
    """Pick every character uniformly from charset."""
    return "".join(_random.choice(charset) for _ in range(length))


def generate_timestamp_slug(
    length: int,
    charset: str = ALPHABET,
    now_ms: Optional[int] = None,
) -> str:
    """Derive a slug from the current millisecond clock.

    A random 0-999 suffix is folded into the number so that creations in
    the same millisecond still differ. The encoded value is left-padded
    with random characters and truncated from the left to ``length``.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    number = now_ms * 1000 + _random.randint(0, 999)
    encoded = encode(number, charset)

    if len(encoded) < length:
        encoded = generate_random_slug(length - len(encoded), charset) + encoded
    return encoded[-length:]


def is_valid_format(slug: str, config: Optional[SlugConfig] = None) -> bool:
    """Check length bounds and the character set."""
    config = config or SlugConfig()
    if not slug or not config.min_length <= len(slug) <= config.max_length:
        return False
    allowed = set(config.charset)
    excluded = set(config.exclude_chars)
    return all(char in allowed and char not in excluded for char in slug)


def is_safe(slug: str, config: Optional[SlugConfig] = None) -> bool:
    """Reject reserved words, all-digit codes and confusable runs."""
    config = config or SlugConfig()
    lowered = slug.lower()

    if any(word in lowered for word in config.unsafe_words):
        return False
    if slug.isdigit():
        return False
    return not any(pattern.match(slug) for pattern in CONFUSABLE_PATTERNS)


def validate_custom_slug(slug: str, config: Optional[SlugConfig] = None) -> CustomSlugValidation:
    """Trim and validate a user-supplied slug, itemizing every problem."""
    config = config or SlugConfig()
    slug = (slug or "").strip()
    errors = []

    if not slug:
        return CustomSlugValidation(is_valid=False, slug=slug, errors=["Slug cannot be empty"])

    if len(slug) < config.min_length:
        errors.append(f"Slug must be at least {config.min_length} characters long")
    if len(slug) > config.max_length:
        errors.append(f"Slug must be at most {config.max_length} characters long")

    allowed = set(config.charset)
    if any(char not in allowed for char in slug):
        errors.append("Slug may only contain letters and digits")
    excluded = sorted({char for char in slug if char in set(config.exclude_chars)})
    if excluded:
        errors.append(f"Slug contains excluded characters: {''.join(excluded)}")

    if not is_safe(slug, config):
        errors.append("Slug contains a reserved word or an unsafe pattern")

    return CustomSlugValidation(is_valid=not errors, slug=slug, errors=errors)


def possible_combinations(length: int, charset_size: int = len(ALPHABET)) -> int:
    return charset_size ** length


def collision_probability(
    existing_count: int,
    length: int,
    charset_size: int = len(ALPHABET),
) -> float:
    """Birthday-paradox estimate of a collision among existing codes.

    Advisory only: small alphabets saturate near 1.0 long before the
    code space is actually exhausted.
    """
    total = possible_combinations(length, charset_size)
    if existing_count <= 1:
        return 0.0
    if existing_count >= total:
        return 1.0
    exponent = -(existing_count * (existing_count - 1)) / (2 * total)
    return -math.expm1(exponent)


class SlugGenerator:
    """
    Generator of unique, safe short codes.

    The first attempts are time-based to spread bursts of creations,
    later attempts are purely random.
    """

    def __init__(self, config: Optional[SlugConfig] = None):
        self.config = config or SlugConfig()

    def _candidate(self, attempt: int, length: int) -> str:
        charset = self.config.usable_charset
        if attempt <= TIMESTAMP_ATTEMPTS:
            return generate_timestamp_slug(length, charset)
        return generate_random_slug(length, charset)

    async def generate(self, exists: Optional[ExistsChecker] = None) -> SlugResult:
        """
        Generate a slug, retrying on invalid candidates and collisions.

        Args:
            exists: Async predicate returning True when a candidate is taken.
                Called once per candidate that passes format and safety.

        Returns:
            SlugResult: ``success`` with the slug, or the failure reason
        """
        config = self.config
        length = min(max(config.length, config.min_length), config.max_length)
        attempts = 0

        while attempts < config.max_retries:
            attempts += 1
            candidate = self._candidate(attempts, length)

            if not is_valid_format(candidate, config) or not is_safe(candidate, config):
                continue

            if exists is not None and await exists(candidate):
                if attempts > config.max_retries / 2:
                    length = min(length + 1, config.max_length)
                continue

            return SlugResult(success=True, slug=candidate, attempts=attempts)

        return SlugResult(success=False, attempts=attempts, error="exceeded max retries")

    def suggestions(self, base: Optional[str] = None, count: int = 5) -> List[str]:
        """
        Produce ``count`` unique alternative slugs.

        Numeric suffixes of ``base`` come first, then random two-character
        suffixes, then purely random slugs.
        """
        config = self.config
        charset = config.usable_charset
        results: List[str] = []

        def offer(candidate: str) -> None:
            if (
                len(results) < count
                and candidate not in results
                and is_valid_format(candidate, config)
                and is_safe(candidate, config)
            ):
                results.append(candidate)

        base = (base or "").strip()
        if base:
            for suffix in range(1, 10):
                offer(f"{base}{suffix}")

            budget = count * 10
            while len(results) < count and budget > 0:
                budget -= 1
                offer(base + generate_random_slug(2, charset))

        length = min(max(config.length, config.min_length), config.max_length)
        while len(results) < count:
            offer(generate_random_slug(length, charset))

        return results


def generate_suggestions(base: Optional[str] = None, count: int = 5, config: Optional[SlugConfig] = None) -> List[str]:
    return SlugGenerator(config).suggestions(base, count)
