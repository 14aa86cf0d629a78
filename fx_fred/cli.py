"""Command line interface for querying and importing FRED exchange rates."""

from __future__ import annotations

import argparse
import json
import signal
import threading
from typing import Sequence

from fx_fred import FxFred
from fx_fred.config import Settings
from fx_fred.errors import FxFredError
from fx_fred.models import CurrencySeries, ImportResult
from fx_fred.utils.date_range import parse_date
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="fx-fred", description=__doc__)
    parser.add_argument("--db-url", dest="db_url", help="Database URL (defaults to FXFRED_DB_URL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    rates = subparsers.add_parser("rates", help="Print gap-filled daily rates for a currency")
    rates.add_argument("currency", help="ISO 4217 code, e.g. EUR")
    rates.add_argument("--from", dest="start", type=parse_date, help="Start date (YYYY-MM-DD)")
    rates.add_argument("--to", dest="end", type=parse_date, help="End date (YYYY-MM-DD)")

    import_parser = subparsers.add_parser("import", help="Import rates from FRED")
    target = import_parser.add_mutually_exclusive_group()
    target.add_argument("--series-id", dest="series_id", type=int, help="Import one series by id")
    target.add_argument(
        "--missing", action="store_true", help="Only series that have no stored rates"
    )
    target.add_argument(
        "--locked",
        action="store_true",
        help="Run through the coordinator (lock, metrics, retries)",
    )

    series = subparsers.add_parser("series", help="Manage tracked currency series")
    series_commands = series.add_subparsers(dest="series_command", required=True)
    series_list = series_commands.add_parser("list", help="List series")
    series_list.add_argument("--enabled", action="store_true", help="Only enabled series")
    series_add = series_commands.add_parser("add", help="Track a new currency")
    series_add.add_argument("currency", help="ISO 4217 code")
    series_add.add_argument("provider_series_id", help="FRED series id, e.g. DEXUSEU")
    series_add.add_argument("--disabled", action="store_true", help="Create disabled")
    series_add.add_argument(
        "--no-import", dest="import_rates", action="store_false", help="Skip the initial import"
    )
    for name in ("enable", "disable"):
        toggle = series_commands.add_parser(name, help=f"{name.capitalize()} a series")
        toggle.add_argument("id", type=int, help="Series id")

    seed = subparsers.add_parser("seed-series", help="Insert the default FRED series")
    seed.add_argument("--enabled", action="store_true", help="Seed the series enabled")

    subparsers.add_parser("schedule", help="Run the daily import scheduler until interrupted")
    return parser.parse_args(argv)


def _print_series(rows: Sequence[CurrencySeries]) -> None:
    for row in rows:
        state = "enabled" if row.enabled else "disabled"
        print(f"{row.id:>4}  {row.currency_code}  {row.provider_series_id:<10}  {state}")


def _print_results(results: Sequence[ImportResult]) -> None:
    for result in results:
        print(
            f"{result.currency_code}: {result.new_records} new, "
            f"{result.updated_records} updated, {result.skipped_records} skipped"
        )


def _run_scheduler(fx: FxFred) -> None:
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    fx.startup()
    fx.start_scheduler()
    try:
        stop.wait()
    except KeyboardInterrupt:  # pragma: no cover - interactive
        pass
    finally:
        fx.stop_scheduler()


def run(args: argparse.Namespace, fx: FxFred) -> int:
    if args.command == "rates":
        payload = fx.rates_as_dicts(args.currency, args.start, args.end)
        print(json.dumps(payload, indent=2))
    elif args.command == "import":
        if args.series_id is not None:
            _print_results([fx.import_series(args.series_id)])
        elif args.missing:
            _print_results(fx.import_missing())
        elif args.locked:
            report = fx.run_import_now()
            if report.skipped:
                print("Skipped: another instance holds the import lock")
                return 0
            _print_results(report.results)
            return 0 if report.success else 1
        else:
            _print_results(fx.import_all_enabled())
    elif args.command == "series":
        if args.series_command == "list":
            _print_series(fx.list_series(enabled_only=args.enabled))
        elif args.series_command == "add":
            created = fx.create_series(
                args.currency,
                args.provider_series_id,
                enabled=not args.disabled,
                import_rates=args.import_rates,
            )
            _print_series([created])
        else:
            enabled = args.series_command == "enable"
            _print_series([fx.set_series_enabled(args.id, enabled)])
    elif args.command == "seed-series":
        print(f"Seeded {fx.seed_default_series(enabled=args.enabled)} series")
    elif args.command == "schedule":
        _run_scheduler(fx)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    with FxFred(settings, db_url=args.db_url) as fx:
        try:
            return run(args, fx)
        except FxFredError as exc:
            LOGGER.error("%s", exc)
            return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
