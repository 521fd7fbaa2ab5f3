"""Errors raised by identifier generation and slug resolution."""


class IdentityError(Exception):
    """Base class for identifier and slug failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class GeneratorConfigError(IdentityError, ValueError):
    """Generator was configured with an out-of-range node id or epoch."""


class ClockRegressedError(IdentityError):
    """System clock is behind the last millisecond an id was issued for.

    Issuance must pause until the clock catches up; retrying at the
    smaller timestamp would break ordering or produce duplicates.
    """

    def __init__(self, last_timestamp: int, now: int):
        self.last_timestamp = last_timestamp
        self.now = now
        super().__init__(
            f"Clock moved backwards by {last_timestamp - now}ms. "
            "Refusing to generate id."
        )


class SlugExhaustedError(IdentityError):
    """Every candidate slug collided within the retry budget."""

    def __init__(self, text: str, attempts: int):
        self.text = text
        self.attempts = attempts
        super().__init__(
            f"Failed to generate unique slug after {attempts} attempts. "
            "Please try a different title."
        )


class SlugResolutionAbortedError(IdentityError):
    """Slug resolution was cancelled or ran past its deadline."""


class SlugConflictError(IdentityError):
    """The store rejected a slug at commit time.

    The existence pre-check passed, but a concurrent writer claimed the
    same slug before this write committed.
    """

    def __init__(self, slug: str, message: str | None = None):
        self.slug = slug
        super().__init__(
            message
            or f"Slug '{slug}' was taken by a concurrent write. Please try a different title."
        )
