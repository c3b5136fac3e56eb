"""Quota engine command line interface.

Operational tools for:
- Schema creation
- Reconciliation of cached totals
- Quota and additional-quota queries
- Domestic recruitment waiting-period dates

Usage:
    python -m quota_engine.cli init-db
    python -m quota_engine.cli reconcile [--employer-id X]
    python -m quota_engine.cli quota --employer-id X [--include-expired]
    python -m quota_engine.cli additional-quota --employer-id X [--as-of 2024-06-30]
    python -m quota_engine.cli earliest-certificate-date --registry-date 2024-01-01

Every command prints JSON to stdout. Business errors are printed as JSON to
stderr with exit code 1.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any
from uuid import UUID

from quota_engine.config import get_rules, get_settings
from quota_engine.database import create_schema
from quota_engine.dates import parse_date
from quota_engine.engine import QuotaEngine
from quota_engine.errors import QuotaEngineError
from quota_engine.logging_config import configure_logging
from quota_engine.models import EmployerType
from quota_engine.services import compute_earliest_certificate_date


def parse_iso_date(s: str) -> date:
    """Parse ISO date string for argparse."""
    try:
        return parse_date(s, "date")
    except QuotaEngineError as exc:
        raise argparse.ArgumentTypeError(exc.message) from exc


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class QuotaCli:
    """Quota engine command line interface."""

    def __init__(self, engine_factory: Callable[[str | None], QuotaEngine] | None = None) -> None:
        self.engine_factory = engine_factory or self._default_engine
        self.parser = self._build_parser()

    @staticmethod
    def _default_engine(database_url: str | None) -> QuotaEngine:
        settings = get_settings()
        if database_url:
            settings = dataclasses.replace(settings, database_url=database_url)
        return QuotaEngine.from_settings(settings)

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m quota_engine.cli",
            description="Recruitment quota operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: $DATABASE_URL)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create all tables")

        reconcile = subparsers.add_parser(
            "reconcile",
            help="Recompute cached quota totals and report drift",
        )
        reconcile.add_argument(
            "--employer-id",
            type=parse_uuid,
            action="append",
            help="Employer to reconcile (repeatable; default: all)",
        )

        quota = subparsers.add_parser("quota", help="Show per-permit available quota")
        quota.add_argument("--employer-id", type=parse_uuid, required=True, help="Employer ID")
        quota.add_argument(
            "--include-expired",
            action="store_true",
            help="Include permits past their validity",
        )

        additional = subparsers.add_parser(
            "additional-quota",
            help="Calculate tiered additional quota",
        )
        additional.add_argument(
            "--employer-id", type=parse_uuid, required=True, help="Employer ID"
        )
        additional.add_argument(
            "--as-of",
            type=parse_iso_date,
            help="Evaluation date (default: today)",
        )

        earliest = subparsers.add_parser(
            "earliest-certificate-date",
            help="Earliest futility certificate date for a registration",
        )
        earliest.add_argument(
            "--registry-date",
            type=parse_iso_date,
            required=True,
            help="Domestic recruitment registry date (YYYY-MM-DD)",
        )
        earliest.add_argument(
            "--employer-type",
            type=str,
            choices=[t.value for t in EmployerType],
            default=EmployerType.CORPORATE.value,
            help="Employer type (default: corporate)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "reconcile": self._cmd_reconcile,
            "quota": self._cmd_quota,
            "additional-quota": self._cmd_additional_quota,
            "earliest-certificate-date": self._cmd_earliest_certificate_date,
        }

        handler = handlers.get(parsed.command)
        if handler:
            try:
                return handler(parsed)
            except QuotaEngineError as exc:
                print(json.dumps(exc.to_dict()), file=sys.stderr)
                return 1

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _with_engine(
        self,
        args: argparse.Namespace,
        operation: Callable[[QuotaEngine], Awaitable[Any]],
    ) -> Any:
        async def _main() -> Any:
            engine = self.engine_factory(args.database_url)
            try:
                return await operation(engine)
            finally:
                await engine.close()

        return asyncio.run(_main())

    @staticmethod
    def _emit(payload: Any) -> None:
        print(json.dumps(payload, indent=2, sort_keys=True))

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""

        async def operation(engine: QuotaEngine) -> None:
            if engine.db_engine is None:
                raise RuntimeError("init-db needs an engine that owns its connection pool")
            await create_schema(engine.db_engine)

        self._with_engine(args, operation)
        self._emit({"status": "ok"})
        return 0

    def _cmd_reconcile(self, args: argparse.Namespace) -> int:
        """Reconcile cached totals."""
        result = self._with_engine(args, lambda engine: engine.reconcile(args.employer_id))
        self._emit(result.to_dict())
        return 0

    def _cmd_quota(self, args: argparse.Namespace) -> int:
        """Print available quota."""

        async def operation(engine: QuotaEngine) -> dict[str, Any]:
            balances = await engine.available_quota(
                args.employer_id, include_expired=args.include_expired
            )
            total = await engine.employer_total_quota(args.employer_id)
            return {
                "employer_id": str(args.employer_id),
                "total_quota": total,
                "permits": [b.to_dict() for b in balances],
            }

        self._emit(self._with_engine(args, operation))
        return 0

    def _cmd_additional_quota(self, args: argparse.Namespace) -> int:
        """Print the additional-quota calculation."""
        result = self._with_engine(
            args,
            lambda engine: engine.calculate_additional_quota(args.employer_id, args.as_of),
        )
        self._emit(result.to_dict())
        return 0

    def _cmd_earliest_certificate_date(self, args: argparse.Namespace) -> int:
        """Print the earliest certificate date. No database access."""
        earliest = compute_earliest_certificate_date(
            args.registry_date, args.employer_type, get_rules()
        )
        self._emit(
            {
                "registry_date": args.registry_date.isoformat(),
                "employer_type": args.employer_type,
                "earliest_certificate_date": earliest.isoformat(),
            }
        )
        return 0


def main() -> None:
    """CLI entry point."""
    configure_logging()
    cli = QuotaCli()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
