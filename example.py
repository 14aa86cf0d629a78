from datetime import date

from fx_fred import FxFred

print(FxFred.__version__)  # 0.1.0

# Default Usage: FXFRED_* environment variables, bundled SQLite file
fx = FxFred()

# Register the 23 FRED DEX* series (disabled) and enable EUR
fx.seed_default_series()
eur = next(series for series in fx.list_series() if series.currency_code == "EUR")
fx.set_series_enabled(eur.id, True)  # imports the full EUR history

# Gap-filled daily rates, weekends carry Friday's rate forward
rates = fx.get_rates("EUR", start_date=date(2024, 1, 1), end_date=date(2024, 1, 7))
for record in rates:
    print(record.date, record.rate, "inferred" if record.inferred else "observed")

# Open bounds default to the first/last stored observation
print(fx.rates_as_dicts("EUR", start_date="2024-06-01")[:2])

# Incremental import of every enabled series
print(fx.import_all_enabled())

# Same import through the coordinator (distributed lock, metrics, retries)
report = fx.run_import_now()
print(report.success, report.results)

# Run the daily 23:00 UTC import in the background
fx.start_scheduler()
fx.close()
