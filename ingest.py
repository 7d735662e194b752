"""
CSV ingestion for Robinhood activity uploads.

Validates the upload as a whole, then folds every record into an
IngestionReport. Only sell-to-open option rows become positions; anything
else is counted as ignored, with a warning when the row looked wrong.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError

from models import db, OptionPosition, OptionTransaction
from robinhood_csv import (
    REQUIRED_COLUMNS, SELL_TO_OPEN, ActivityRow, CsvParseError,
    parse_option_row, read_activity_csv,
)

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 2 * 1024 * 1024
CSV_MIMETYPE = 'text/csv'


class UploadValidationError(Exception):
    """Upload rejected before any row was processed."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass
class IngestionReport:
    accepted_rows: int = 0
    ignored_rows: int = 0
    new_positions: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def total_rows(self):
        return self.accepted_rows + self.ignored_rows

    def add(self, outcome):
        if outcome.accepted:
            self.accepted_rows += 1
            self.new_positions += 1
        else:
            self.ignored_rows += 1
            if outcome.warning:
                self.warnings.append(outcome.warning)
        return self

    def to_dict(self):
        return {
            'acceptedRows': self.accepted_rows,
            'ignoredRows': self.ignored_rows,
            'newPositions': self.new_positions,
            'warnings': list(self.warnings),
        }


@dataclass(frozen=True)
class RowOutcome:
    accepted: bool
    warning: Optional[str] = None

    @classmethod
    def ignored(cls, warning=None):
        return cls(accepted=False, warning=warning)


ACCEPTED = RowOutcome(accepted=True)


class PositionStore:
    """Persists accepted option opens through the SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session or db.session

    def record_open(self, parsed, user_id):
        """
        Create the position and its STO transaction as one unit of work.

        The transaction is only added once the position insert has gone
        through; any failure rolls back both so no position is left without
        its transaction.
        """
        try:
            position = OptionPosition(
                user_id=user_id,
                symbol=parsed.symbol,
                option_type=parsed.option_type.value.upper(),
                strike_price=parsed.strike_price,
                expiry_date=parsed.expiry_date,
                open_date=parsed.open_date,
                open_price=parsed.open_price,
                contracts=parsed.contracts,
                premium_total=parsed.premium_total,
            )
            self.session.add(position)
            self.session.flush()

            self.session.add(OptionTransaction(
                position_id=position.id,
                action=SELL_TO_OPEN,
                trade_date=parsed.open_date,
                price_per_share=parsed.open_price,
                total_cash=parsed.premium_total,
            ))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return position


def describe_validation_error(error):
    """Flatten a pydantic ValidationError into one line."""
    parts = []
    for err in error.errors():
        location = '.'.join(str(loc) for loc in err.get('loc', ()))
        parts.append(f"{location}: {err['msg']}" if location else err['msg'])
    return '; '.join(parts)


# =============================================================================
# UPLOAD VALIDATION
# =============================================================================

def validate_upload(content, filename, mimetype, max_bytes=MAX_UPLOAD_BYTES):
    """
    Check an uploaded file and return its CSV records.

    Raises UploadValidationError with the message shown to the uploader.
    """
    filename = (filename or '').lower()
    if mimetype != CSV_MIMETYPE and not filename.endswith('.csv'):
        raise UploadValidationError('File must be a CSV')

    if len(content) > max_bytes:
        raise UploadValidationError('File size must be less than 2MB')

    try:
        text = content.decode('utf-8-sig')
        header, records = read_activity_csv(text)
    except (UnicodeDecodeError, CsvParseError) as e:
        logger.info("Rejected unparseable CSV upload %r: %s", filename, e)
        raise UploadValidationError('Unable to parse CSV file') from e

    if not records:
        raise UploadValidationError('CSV file is empty')

    missing = [col for col in REQUIRED_COLUMNS if col not in header]
    if missing:
        raise UploadValidationError(f"Missing required columns: {', '.join(missing)}")

    return records


# =============================================================================
# ROW PROCESSING
# =============================================================================

def process_row(record, store, user_id):
    """Turn one CSV record into a RowOutcome. Never raises."""
    try:
        row = ActivityRow.model_validate(record)
    except ValidationError as e:
        return RowOutcome.ignored(f'Invalid row format: {describe_validation_error(e)}')

    if row.trans_code != SELL_TO_OPEN:
        return RowOutcome.ignored()

    try:
        parsed = parse_option_row(row)
        if parsed is None:
            logger.debug("Unrecognized option description %r", row.description)
            return RowOutcome.ignored(f'Invalid option description format: {row.description}')

        store.record_open(parsed, user_id)
    except Exception as e:
        logger.warning("Skipping STO row %r: %s", row.description, e)
        return RowOutcome.ignored(f'Error processing row: {e}')

    return ACCEPTED


def ingest_records(records, store, user_id):
    """Fold records into a report, strictly in input order."""
    report = IngestionReport()
    for record in records:
        report.add(process_row(record, store, user_id))
    return report


def ingest(content, filename, mimetype, store, user_id, max_bytes=MAX_UPLOAD_BYTES):
    """Validate an uploaded activity CSV and persist its sell-to-open rows."""
    records = validate_upload(content, filename, mimetype, max_bytes=max_bytes)
    report = ingest_records(records, store, user_id)

    logger.info(
        "Ingested %s for user %s: %d accepted, %d ignored, %d warnings",
        filename, user_id, report.accepted_rows, report.ignored_rows, len(report.warnings)
    )
    return report
