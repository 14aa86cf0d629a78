"""Provider gateway: FRED HTTP client and exchange rate provider."""
