"""
Robinhood Activity CSV grammar.

Robinhood's account activity export has one header row and these columns:
    Activity Date, Process Date, Settle Date, Instrument, Description,
    Trans Code, Quantity, Price, Amount

Option rows describe the contract in free text, e.g. "AAPL 6/21/2024 Call $150.50".
Prices carry "$" and grouping commas and may be wrapped in parentheses.
Exports end with a disclaimer line that is not a real record.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ACTIVITY_COLUMNS = [
    'Activity Date',
    'Process Date',
    'Settle Date',
    'Instrument',
    'Description',
    'Trans Code',
    'Quantity',
    'Price',
    'Amount',
]

REQUIRED_COLUMNS = [
    'Activity Date',
    'Instrument',
    'Description',
    'Trans Code',
    'Quantity',
    'Price',
]

SELL_TO_OPEN = 'STO'

CONTRACT_MULTIPLIER = 100

# Cells beyond the header width land under this key instead of being dropped
EXTRA_CELLS_KEY = '__extra__'

OPTION_DESCRIPTION_PATTERN = re.compile(
    r'(?P<symbol>[A-Z]+) '
    r'(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4}) '
    r'(?P<option_type>Call|Put) '
    r'\$(?P<strike>\d+(?:\.\d+)?)'
)

PRICE_STRIP_PATTERN = re.compile(r'[$,()]')

PRICE_PATTERN = re.compile(r'-?\d+(?:\.\d+)?')

# Up to 999,999,999 contracts, grouped or not, with an optional ".0"
QUANTITY_PATTERN = re.compile(r'-?(?:\d{1,3}(?:,\d{3}){1,2}|\d{1,9})(?:\.0*)?')

# Prices and strikes must fit the money columns without rounding;
# premium (price x 100 x contracts) then stays within their 24 integer digits
MONEY_SCALE = 6
MAX_PRICE_DIGITS = 12

DATE_FORMATS = ('%m/%d/%Y', '%Y-%m-%d')


class CsvParseError(Exception):
    """Raised when uploaded text cannot be read as CSV at all."""


class OptionType(str, Enum):
    CALL = 'Call'
    PUT = 'Put'


class ActivityRow(BaseModel):
    """Shape of one raw activity record. Every column must be a string."""

    model_config = ConfigDict(frozen=True, extra='ignore')

    activity_date: str = Field(alias='Activity Date')
    process_date: str = Field(alias='Process Date')
    settle_date: str = Field(alias='Settle Date')
    instrument: str = Field(alias='Instrument')
    description: str = Field(alias='Description')
    trans_code: str = Field(alias='Trans Code')
    quantity: str = Field(alias='Quantity')
    price: str = Field(alias='Price')
    amount: str = Field(alias='Amount')


@dataclass(frozen=True)
class OptionContract:
    """Typed attributes extracted from an option description."""

    symbol: str
    expiry_date: date
    option_type: OptionType
    strike_price: Decimal


@dataclass(frozen=True)
class ParsedOption:
    """A sell-to-open row normalized into an option position."""

    symbol: str
    expiry_date: date
    option_type: OptionType
    strike_price: Decimal
    contracts: int
    open_date: date
    open_price: Decimal
    premium_total: Decimal


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------

def parse_option_description(description: str) -> Optional[OptionContract]:
    """
    Match "<SYMBOL> <M>/<D>/<YYYY> <Call|Put> $<STRIKE>".

    Returns None when the text does not follow the grammar, including dates
    that fit the pattern but are not real calendar days (e.g. 2/30/2024).
    """
    match = OPTION_DESCRIPTION_PATTERN.fullmatch(description)
    if not match:
        return None

    try:
        expiry = date(int(match['year']), int(match['month']), int(match['day']))
    except ValueError:
        return None

    return OptionContract(
        symbol=match['symbol'],
        expiry_date=expiry,
        option_type=OptionType(match['option_type']),
        strike_price=Decimal(match['strike']),
    )


def _check_money(value: Decimal, label: str, text: str) -> Decimal:
    """Reject amounts the money columns could only store by rounding or overflowing."""
    if value.as_tuple().exponent < -MONEY_SCALE or value.adjusted() >= MAX_PRICE_DIGITS:
        raise ValueError(f'{label} out of range: {text!r}')
    return value


def parse_price(text: str) -> Decimal:
    """Parse "$1,234.50" or "(2.50)" into a Decimal. Parentheses are dropped, not negated."""
    cleaned = PRICE_STRIP_PATTERN.sub('', text).strip()
    if not PRICE_PATTERN.fullmatch(cleaned):
        raise ValueError(f'Invalid price: {text!r}')
    return _check_money(Decimal(cleaned), 'Price', text)


def parse_quantity(text: str) -> int:
    """Parse a whole number of contracts ("2", "1,000" or "2.0")."""
    cleaned = text.strip()
    if not QUANTITY_PATTERN.fullmatch(cleaned):
        raise ValueError(f'Invalid quantity: {text!r}')
    return int(cleaned.split('.')[0].replace(',', ''))


def parse_activity_date(text: str) -> date:
    cleaned = text.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    raise ValueError(f'Invalid activity date: {text!r}')


def premium_total(price: Decimal, contracts: int) -> Decimal:
    """Total premium for a lot: price x 100 shares x contracts."""
    return price * CONTRACT_MULTIPLIER * contracts


def parse_option_row(row: ActivityRow) -> Optional[ParsedOption]:
    """
    Normalize a validated row into a ParsedOption.

    Returns None when the description is not an option description.
    Raises ValueError when quantity, price, strike or activity date are
    malformed or too large to store exactly.
    """
    contract = parse_option_description(row.description)
    if contract is None:
        return None

    strike = _check_money(contract.strike_price, 'Strike', row.description)
    contracts = parse_quantity(row.quantity)
    price = parse_price(row.price)

    return ParsedOption(
        symbol=contract.symbol,
        expiry_date=contract.expiry_date,
        option_type=contract.option_type,
        strike_price=strike,
        contracts=contracts,
        open_date=parse_activity_date(row.activity_date),
        open_price=price,
        premium_total=premium_total(price, contracts),
    )


# ---------------------------------------------------------------------------
# CSV reader
# ---------------------------------------------------------------------------

def read_activity_csv(text: str) -> tuple[list[str], list[dict]]:
    """
    Read header-keyed records from CSV text.

    Quoting is lenient: stray quote characters inside unquoted cells are kept
    as-is. Short rows leave the trailing columns as None, long rows put the
    surplus cells under EXTRA_CELLS_KEY. Blank lines are skipped.
    """
    # A single cell may be as long as the whole upload
    csv.field_size_limit(max(csv.field_size_limit(), len(text)))
    reader = csv.DictReader(io.StringIO(text, newline=''), restkey=EXTRA_CELLS_KEY)
    try:
        records = list(reader)
        header = list(reader.fieldnames or [])
    except csv.Error as e:
        raise CsvParseError(str(e)) from e
    return header, records
