"""CLI argument parsing and dispatch tests."""

import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

from fx_fred import FxFred
from fx_fred.cli import parse_args, run
from fx_fred.config import Settings

from conftest import StubProvider


def test_parse_rates_arguments() -> None:
    args = parse_args(["rates", "EUR", "--from", "2024-01-01", "--to", "2024-01-07"])

    assert args.command == "rates"
    assert args.currency == "EUR"
    assert args.start == date(2024, 1, 1)
    assert args.end == date(2024, 1, 7)


def test_parse_series_add() -> None:
    args = parse_args(["--db-url", "sqlite://", "series", "add", "EUR", "DEXUSEU", "--no-import"])

    assert args.db_url == "sqlite://"
    assert (args.command, args.series_command) == ("series", "add")
    assert (args.currency, args.provider_series_id) == ("EUR", "DEXUSEU")
    assert args.import_rates is False
    assert args.disabled is False


def test_import_targets_are_exclusive() -> None:
    with pytest.raises(SystemExit):
        parse_args(["import", "--missing", "--series-id", "1"])


@pytest.fixture
def fx(tmp_path: Path):
    facade = FxFred(
        Settings(),
        db_url=f"sqlite:///{tmp_path / 'cli.db'}",
        provider=StubProvider({"DEXUSEU": {date(2024, 1, 1): Decimal("1.1000")}}),
        registry=CollectorRegistry(),
    )
    yield facade
    facade.close()


def test_series_and_rates_commands(fx: FxFred, capsys) -> None:
    assert run(parse_args(["series", "add", "EUR", "DEXUSEU"]), fx) == 0
    assert "DEXUSEU" in capsys.readouterr().out

    assert run(parse_args(["rates", "EUR"]), fx) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == [
        {
            "date": "2024-01-01",
            "rate": "1.1000",
            "published_date": "2024-01-01",
            "base_currency": "USD",
            "target_currency": "EUR",
            "inferred": False,
        }
    ]


def test_locked_import_command(fx: FxFred, capsys) -> None:
    run(parse_args(["series", "add", "EUR", "DEXUSEU", "--no-import"]), fx)
    capsys.readouterr()

    assert run(parse_args(["import", "--locked"]), fx) == 0
    assert "EUR: 1 new, 0 updated, 0 skipped" in capsys.readouterr().out


def test_seed_and_toggle_commands(fx: FxFred, capsys) -> None:
    assert run(parse_args(["seed-series"]), fx) == 0
    assert "Seeded 23 series" in capsys.readouterr().out

    jpy = next(series for series in fx.list_series() if series.currency_code == "JPY")
    assert run(parse_args(["series", "disable", str(jpy.id)]), fx) == 0
    assert "disabled" in capsys.readouterr().out
