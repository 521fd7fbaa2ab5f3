"""Slug derivation and collision-driven uniqueness resolution.

A slug is ``<slugified text>-<disambiguator>``. Uniqueness is checked against
the store through an injected ``exists`` callable; the store's own unique
constraint remains the final gate at commit time.
"""

import asyncio
import logging
import secrets
import string
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from slugify import slugify as _slugify

from crawler_api.identity.errors import SlugExhaustedError, SlugResolutionAbortedError

logger = logging.getLogger(__name__)

SEPARATOR = "-"
DEFAULT_MAX_ATTEMPTS = 5
FALLBACK_SLUG = "untitled"

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_ENTROPY_CHARS = 2


@dataclass(frozen=True)
class SlugScope:
    """Namespace in which a slug must be unique.

    ``parent_id`` is None for globally scoped entities (sites) and holds the
    owning record's id for nested ones (categories within a site).
    """

    entity: str
    parent_id: str | None = None

    def __str__(self) -> str:
        if self.parent_id is None:
            return self.entity
        return f"{self.entity}@{self.parent_id}"


class ExistsInScope(Protocol):
    """Store lookup: does ``slug`` already exist in ``scope``, ignoring ``exclude_id``?"""

    def __call__(
        self, scope: SlugScope, slug: str, exclude_id: str | None = None
    ) -> Awaitable[bool]: ...


def slugify(text: str) -> str:
    """Lowercase, ASCII-only, hyphen-separated form of ``text``.

    Examples:
        >>> slugify("Example Site")
        'example-site'
        >>> slugify("  Trang chủ / Tin tức!  ")
        'trang-chu-tin-tuc'
    """
    slug = _slugify(text, lowercase=True, separator=SEPARATOR)
    return slug or FALLBACK_SLUG


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def make_disambiguator(now_ms: int | None = None) -> str:
    """Time-derived suffix: base36 milliseconds plus two random base36 chars."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    entropy = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(_ENTROPY_CHARS))
    return to_base36(now_ms) + entropy


def candidate_slug(text: str, disambiguator: str) -> str:
    """Join the base slug of ``text`` with a disambiguator."""
    return f"{slugify(text)}{SEPARATOR}{disambiguator}"


class UniqueSlugResolver:
    """Derive slugs and retry on collision, up to a fixed number of attempts.

    The resolver keeps no state between calls; all knowledge of taken slugs
    lives in the store behind ``exists``.
    """

    def __init__(
        self,
        exists: ExistsInScope,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        disambiguator: Callable[[], str] = make_disambiguator,
        timeout: float | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._exists = exists
        self.max_attempts = max_attempts
        self._disambiguator = disambiguator
        self.timeout = timeout

    async def resolve(
        self,
        text: str,
        scope: SlugScope,
        exclude_id: str | None = None,
        *,
        timeout: float | None = None,
        abort: asyncio.Event | None = None,
    ) -> str:
        """Return a slug for ``text`` that is free in ``scope`` right now.

        Args:
            text: Source text (e.g. a title). Must not be blank.
            scope: Namespace to check against.
            exclude_id: Record whose own slug does not count as a collision.
            timeout: Deadline in seconds for the whole attempt loop, checked
                around every existence check (defaults to the resolver's timeout).
            abort: Event that, once set, stops the attempt loop. An existence
                check already running is awaited, never cancelled.

        Raises:
            ValueError: If ``text`` is blank.
            SlugExhaustedError: If every attempt collided.
            SlugResolutionAbortedError: If ``abort`` was set or the deadline passed.
        """
        if not text or not text.strip():
            raise ValueError("Slug source text must be a non-empty string")

        if timeout is None:
            timeout = self.timeout
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        for attempt in range(1, self.max_attempts + 1):
            self._ensure_active(scope, deadline, abort)

            candidate = candidate_slug(text, self._disambiguator())
            # Never cancelled mid-flight: the check may share a database session
            taken = await self._exists(scope, candidate, exclude_id)

            self._ensure_active(scope, deadline, abort)
            if not taken:
                return candidate

            logger.warning(
                f"Slug collision in {scope} for '{candidate}' "
                f"(attempt {attempt}/{self.max_attempts})"
            )

        raise SlugExhaustedError(text, self.max_attempts)

    @staticmethod
    def _ensure_active(
        scope: SlugScope,
        deadline: float | None,
        abort: asyncio.Event | None,
    ) -> None:
        """Raise if the abort event is set or the deadline has passed."""
        if abort is not None and abort.is_set():
            raise SlugResolutionAbortedError(f"Slug resolution in {scope} cancelled")
        if deadline is not None and asyncio.get_running_loop().time() >= deadline:
            raise SlugResolutionAbortedError(f"Slug resolution in {scope} timed out")
