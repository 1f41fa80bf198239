# Overview: Sale ticket barcodes (YYYYMMDD + sale id padded to at least 6 digits).

from __future__ import annotations

import re
from datetime import date, datetime

SALE_BARCODE_RE = re.compile(r"^\d{14,}$")
CUSTOM_BARCODE_RE = re.compile(r"^\d{6,20}$")

MIN_YEAR = 2020
MAX_YEAR = 2030


def generate_sale_barcode(sale_id: int, when: date | datetime) -> str:
    """
    Encode a sale as the sale date then the id, zero-padded to six digits.

    Ids above 999999 keep all their digits, so the code grows past 14.
    """
    return f"{when:%Y%m%d}{sale_id:06d}"


def is_sale_barcode(code: str | None) -> bool:
    if not code or not SALE_BARCODE_RE.match(code):
        return False
    year, month, day = int(code[0:4]), int(code[4:6]), int(code[6:8])
    return MIN_YEAR <= year <= MAX_YEAR and 1 <= month <= 12 and 1 <= day <= 31


def parse_sale_barcode(code: str) -> tuple[date, int] | None:
    """Returns (sale date, sale id), or None if `code` is not a valid sale barcode."""
    if not is_sale_barcode(code):
        return None
    try:
        sold_on = date(int(code[0:4]), int(code[4:6]), int(code[6:8]))
    except ValueError:
        # e.g. 20240231
        return None
    return sold_on, int(code[8:])


def is_valid_custom_barcode(code: str | None) -> bool:
    """Manually assigned barcodes: digits only, 6 to 20 characters."""
    return bool(code) and bool(CUSTOM_BARCODE_RE.match(code))
