"""Identifier generation and unique slug resolution."""

from crawler_api.identity.errors import (
    ClockRegressedError,
    GeneratorConfigError,
    IdentityError,
    SlugConflictError,
    SlugExhaustedError,
    SlugResolutionAbortedError,
)
from crawler_api.identity.slugs import (
    ExistsInScope,
    SlugScope,
    UniqueSlugResolver,
    candidate_slug,
    make_disambiguator,
    slugify,
)
from crawler_api.identity.snowflake import (
    SnowflakeGenerator,
    SnowflakeParts,
    decode,
    generate_id,
    get_generator,
)

__all__ = [
    # Errors
    "IdentityError",
    "GeneratorConfigError",
    "ClockRegressedError",
    "SlugExhaustedError",
    "SlugResolutionAbortedError",
    "SlugConflictError",
    # Snowflake
    "SnowflakeGenerator",
    "SnowflakeParts",
    "decode",
    "generate_id",
    "get_generator",
    # Slugs
    "ExistsInScope",
    "SlugScope",
    "UniqueSlugResolver",
    "candidate_slug",
    "make_disambiguator",
    "slugify",
]
