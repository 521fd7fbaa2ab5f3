"""Command-line interface for inspecting identifiers and slugs."""

import argparse
import json
import sys

from crawler_api.config import get_settings
from crawler_api.identity.errors import IdentityError
from crawler_api.identity.slugs import candidate_slug, make_disambiguator, slugify
from crawler_api.identity.snowflake import SnowflakeGenerator, decode


def id_command(args: argparse.Namespace) -> None:
    """Print freshly generated identifiers."""
    settings = get_settings()
    generator = SnowflakeGenerator(
        datacenter_id=args.datacenter_id if args.datacenter_id is not None else settings.datacenter_id,
        worker_id=args.worker_id if args.worker_id is not None else settings.worker_id,
        epoch_ms=settings.id_epoch_ms,
    )
    for _ in range(args.count):
        print(generator.next_id())


def decode_command(args: argparse.Namespace) -> None:
    """Print the fields of an identifier."""
    parts = decode(args.id, epoch_ms=get_settings().id_epoch_ms)
    data = {
        "id": args.id,
        "timestamp_ms": parts.timestamp_ms,
        "created_at": parts.created_at.isoformat(),
        "datacenter_id": parts.datacenter_id,
        "worker_id": parts.worker_id,
        "sequence": parts.sequence,
    }
    if args.pretty:
        print(json.dumps(data, indent=2))
    else:
        print(json.dumps(data))


def slug_command(args: argparse.Namespace) -> None:
    """Print the base slug and one candidate for a title."""
    print(f"Base:      {slugify(args.text)}")
    print(f"Candidate: {candidate_slug(args.text, make_disambiguator())}")


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="crawler-api",
        description="Crawl task registry tools",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Id command
    id_parser = subparsers.add_parser("id", help="Generate snowflake ids")
    id_parser.add_argument(
        "-n",
        "--count",
        type=int,
        default=1,
        help="Number of ids to generate (default: 1)",
    )
    id_parser.add_argument(
        "--datacenter-id",
        type=int,
        help="Override DATACENTER_ID (0-31)",
    )
    id_parser.add_argument(
        "--worker-id",
        type=int,
        help="Override WORKER_ID (0-31)",
    )

    # Decode command
    decode_parser = subparsers.add_parser("decode", help="Decode a snowflake id")
    decode_parser.add_argument("id", type=str, help="Identifier to decode")
    decode_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty print JSON",
    )

    # Slug command
    slug_parser = subparsers.add_parser("slug", help="Show the slug for a title")
    slug_parser.add_argument("text", type=str, help="Title to slugify")

    args = parser.parse_args()

    try:
        if args.command == "id":
            id_command(args)
        elif args.command == "decode":
            decode_command(args)
        elif args.command == "slug":
            slug_command(args)
        else:
            parser.print_help()
            return 1
    except (IdentityError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
