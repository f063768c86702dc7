"""CLI command for adding credits to an account.

Usage:
    python -m photoai.cli --user-id USER --amount N [OPTIONS]

Examples:
    # Top up 50 credits
    python -m photoai.cli --user-id user_123 --amount 50

    # Manual correction with a note
    python -m photoai.cli --user-id user_123 --amount 5 --reason admin_adjustment \
        --reference "ticket 42"

    # Verbose logging
    python -m photoai.cli --user-id user_123 --amount 10 -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace

import structlog

from photoai.core.config import Settings, configure_logging
from photoai.core.database import setup_db_session
from photoai.models.credit import CreditReason
from photoai.uow import create_uow_factory

logger = structlog.get_logger()

GRANT_REASONS = [CreditReason.TOP_UP.value, CreditReason.ADMIN_ADJUSTMENT.value]


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(description="Grant credits to an account")

    parser.add_argument("--user-id", required=True, help="Account identifier")

    parser.add_argument(
        "--amount",
        type=int,
        required=True,
        help="Number of credits to add (must be positive)",
    )

    parser.add_argument(
        "--reason",
        choices=GRANT_REASONS,
        default=CreditReason.TOP_UP.value,
        help="Ledger reason (default: top_up)",
    )

    parser.add_argument("--reference", help="Free-text reference stored with the transaction")

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    args = parser.parse_args(argv)
    if args.amount <= 0:
        parser.error("--amount must be positive")
    return args


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]

    if args.verbose:
        settings.log_level = "DEBUG"

    configure_logging(settings)

    logger.info("cli.started", user_id=args.user_id, amount=args.amount, reason=args.reason)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    try:
        async with await uow_factory() as uow:
            balance = await uow.credits.credit(
                args.user_id,
                args.amount,
                reason=CreditReason(args.reason),
                reference=args.reference,
            )

        print(f"Granted {args.amount} credits to {args.user_id}. New balance: {balance}")
        logger.info("cli.success", user_id=args.user_id, balance=balance)
        return 0

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nInterrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT

    except Exception as e:
        logger.error(
            "cli.unexpected_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
