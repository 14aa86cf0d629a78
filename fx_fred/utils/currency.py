"""ISO 4217 helpers and the fixed base currency used across the package."""

from __future__ import annotations

import re
from typing import Final

BASE_CURRENCY: Final[str] = "USD"

_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")

# Active ISO 4217 alphabetic codes plus VEF, which FRED still publishes.
ISO_4217_CODES: Final[frozenset[str]] = frozenset(
    """
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
    BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF DKK DOP
    DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD HNL HTG HUF
    IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW KWD KYD KZT LAK
    LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR MVR MWK MXN MYR MZN
    NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN PYG QAR RON RSD RUB RWF
    SAR SBD SCR SDG SEK SGD SHP SLE SLL SOS SRD SSP STN SVC SYP SZL THB TJS TMT
    TND TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VED VEF VES VND VUV WST XAF XCD
    XCG XOF XPF YER ZAR ZMW ZWG ZWL
    """.split()
)


def normalise_code(code: str) -> str:
    """Return ``code`` stripped and upper-cased."""

    return (code or "").strip().upper()


def is_well_formed(code: str) -> bool:
    """Return True when ``code`` is three upper-case ASCII letters."""

    return bool(_CODE_PATTERN.match(code or ""))


def is_iso_4217(code: str) -> bool:
    """Return True when ``code`` is a known ISO 4217 alphabetic code."""

    return code in ISO_4217_CODES


__all__ = ["BASE_CURRENCY", "ISO_4217_CODES", "is_iso_4217", "is_well_formed", "normalise_code"]
