"""CSV import and export for books.

Two pipelines share the tokenizer and column analysis but keep their own
rules:

* importing into an existing book maps each column to a system target or a
  book field, and skips rows whose date cannot be read;
* creating a new book from a file infers a schema from the columns and
  uses today's date for rows whose date cannot be read.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Sequence

from lekha.database.base import Database
from lekha.domain.book import BookService
from lekha.domain.column_analysis import (
    TARGET_AMOUNT_IN,
    TARGET_AMOUNT_NET,
    TARGET_AMOUNT_OUT,
    TARGET_CATEGORY,
    TARGET_CREATE_NEW,
    TARGET_DATE,
    TARGET_DESCRIPTION,
    TARGET_IGNORE,
    TARGET_MODE,
    TARGET_PARTY,
    TARGET_TIME,
    analyze_column_data,
    field_key_from_header,
    infer_field_type,
    suggest_target,
)
from lekha.domain.entities import (
    Book,
    CustomValue,
    FieldConfig,
    FieldType,
    Transaction,
    TransactionType,
)
from lekha.domain.errors import DomainError, ImportParseError, ValidationError
from lekha.domain.schema import generate_field_key, normalize_order
from lekha.domain.transaction import TransactionService
from lekha.domain.values import value_for_field_type
from lekha.utils.amount_parser import parse_loose_number
from lekha.utils.csv_parser import parse_csv, quote_cell
from lekha.utils.date_parser import parse_flexible_date

logger = logging.getLogger(__name__)

PROGRESS_EVERY_ROWS = 10

DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_PAYMENT_MODE = "Cash"
DEFAULT_IMPORT_DESCRIPTION = "Imported Transaction"
DEFAULT_NEW_BOOK_DESCRIPTION = "Imported"

# Target names accepted as synonyms when a mapping names a fixed column
TARGET_ALIASES = {
    "amount": TARGET_AMOUNT_NET,
    "category_id": TARGET_CATEGORY,
    "party_id": TARGET_PARTY,
    "payment_mode": TARGET_MODE,
}

# Targets whose cell text is used as is
PLAIN_TARGETS = (TARGET_DATE, TARGET_DESCRIPTION, TARGET_CATEGORY, TARGET_MODE, TARGET_PARTY)

MULTILINE_LABEL_KEYWORDS = ("description", "remark", "note", "address", "comment")
DESCRIPTION_LABEL_KEYWORDS = ("description", "narration", "remark")
PRIMARY_AMOUNT_KEYWORDS = ("amount", "cost", "price")
INCOME_LABEL_KEYWORDS = ("credit", "income", "deposit")
EXPENSE_LABEL_KEYWORDS = ("debit", "expense", "withdrawal")
SPLIT_INCOME_KEYWORDS = ("income", "credit", "deposit", "in")
SPLIT_EXPENSE_KEYWORDS = ("expense", "debit", "withdrawal", "out")
TIME_LABEL_KEYWORDS = ("time", "hour", "clock")

_TIME_PATTERN = re.compile(r"(\d+):(\d+)(?::(\d+))?")

ProgressCallback = Callable[[int], None]


class ImportStep(str, Enum):
    """Step of an interactive import."""

    UPLOAD = "upload"
    MAP = "map"
    PROCESSING = "processing"
    SUCCESS = "success"


class AmountMode(str, Enum):
    """How a new book reads amounts: one primary column or income/expense columns."""

    SINGLE = "single"
    SPLIT = "split"


@dataclass
class ColumnMapping:
    """Where one CSV column goes when importing into an existing book."""

    csv_header: str
    sample_value: str
    target: str = TARGET_IGNORE
    new_field_name: Optional[str] = None


@dataclass
class DetectedField:
    """A column of a file that will become a field of a new book."""

    header: str
    key: str
    label: str
    type: FieldType
    unique_values: tuple[str, ...] = ()
    options: tuple[str, ...] = ()
    include: bool = True
    sample_value: str = ""


@dataclass
class NewBookOptions:
    """Settings for creating a book from a file."""

    name: str
    currency: str = "USD"
    amount_mode: AmountMode = AmountMode.SINGLE
    primary_amount_field: Optional[str] = None
    income_field: Optional[str] = None
    expense_field: Optional[str] = None
    time_field: Optional[str] = None


@dataclass
class ImportResult:
    """Outcome of an import run."""

    book_id: str
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    created_fields: list[FieldConfig] = field(default_factory=list)


class SkipRowDatePolicy:
    """Rows without a readable date are not imported."""

    name = "skip-row"

    def resolve(self, value: Optional[str]) -> Optional[date]:
        return parse_flexible_date(value) if value else None


class TodayDatePolicy:
    """Rows without a readable date are dated today."""

    name = "today"

    def resolve(self, value: Optional[str]) -> Optional[date]:
        parsed = parse_flexible_date(value) if value else None
        return parsed or date.today()


def load_rows(text: str) -> list[list[str]]:
    """Parse CSV text and check that it has a header and a data row.

    Raises:
        ImportParseError: If the file has fewer than two rows
    """
    rows = parse_csv(text)
    if len(rows) < 2:
        raise ImportParseError("CSV file must have a header row and at least one data row.")
    return rows


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if index < len(row) else ""


def _is_blank_row(row: Sequence[str]) -> bool:
    return not any(cell.strip() for cell in row)


def _percent(done: int, total: int) -> int:
    return round(done / total * 100) if total else 100


def _parse_time(value: str) -> Optional[time]:
    match = _TIME_PATTERN.search(value)
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3)) if match.group(3) else 0
    if hours > 23 or minutes > 59 or seconds > 59:
        return None
    return time(hours, minutes, seconds)


def _coerce_for_field(book_field: Optional[FieldConfig], value: str) -> CustomValue:
    """Convert a cell for an existing field of the book."""
    if book_field is None:
        return value
    if book_field.type == FieldType.DATE:
        parsed = parse_flexible_date(value)
        return parsed.isoformat() if parsed else value
    return value_for_field_type(book_field.type, value)


def suggest_mappings(rows: Sequence[Sequence[str]], book: Book) -> list[ColumnMapping]:
    """Guess a mapping for each column of a file for import into ``book``."""
    headers, first_row = rows[0], rows[1] if len(rows) > 1 else []
    return [
        ColumnMapping(
            csv_header=header,
            sample_value=_cell(first_row, index),
            target=suggest_target(header, book.field_config),
        )
        for index, header in enumerate(headers)
    ]


def set_mapping_target(mapping: ColumnMapping, target: str) -> None:
    """Change a mapping's target; a new field defaults to the header as its name."""
    mapping.target = target
    mapping.new_field_name = mapping.csv_header if target == TARGET_CREATE_NEW else None


def detect_fields(rows: Sequence[Sequence[str]]) -> list[DetectedField]:
    """Infer a new book's fields from a file, one per column."""
    headers, first_row = rows[0], rows[1]
    total_rows = len(rows) - 1
    used_keys: set[str] = set()
    fields = []
    for index, header in enumerate(headers):
        analysis = analyze_column_data(rows, index)
        field_type, options = infer_field_type(header, analysis, total_rows)

        key = field_key_from_header(header) or f"column_{index + 1}"
        base, suffix = key, 2
        while key in used_keys:
            key = f"{base}_{suffix}"
            suffix += 1
        used_keys.add(key)

        fields.append(
            DetectedField(
                header=header,
                key=key,
                label=header or key,
                type=field_type,
                unique_values=analysis.unique_values,
                options=options,
                sample_value=_cell(first_row, index),
            )
        )
    return fields


def _first_label_match(
    fields: Sequence[DetectedField],
    keywords: Sequence[str],
    types: Sequence[FieldType],
    exclude: Sequence[Optional[str]] = (),
) -> Optional[str]:
    for f in fields:
        if f.key in exclude or f.type not in types:
            continue
        if any(word in f.label.lower() for word in keywords):
            return f.key
    return None


def suggest_new_book_options(fields: Sequence[DetectedField], name: str) -> NewBookOptions:
    """Pick the primary amount, split and time columns of a new book."""
    time_field = _first_label_match(
        fields, TIME_LABEL_KEYWORDS, (FieldType.TEXT, FieldType.NUMBER)
    )
    numeric = (FieldType.NUMBER,)
    primary = _first_label_match(fields, PRIMARY_AMOUNT_KEYWORDS, numeric, (time_field,))
    if primary is None:
        primary = next(
            (f.key for f in fields if f.type == FieldType.NUMBER and f.key != time_field), None
        )
    return NewBookOptions(
        name=name,
        primary_amount_field=primary,
        income_field=_first_label_match(fields, SPLIT_INCOME_KEYWORDS, numeric, (time_field,)),
        expense_field=_first_label_match(fields, SPLIT_EXPENSE_KEYWORDS, numeric, (time_field,)),
        time_field=time_field,
    )


def build_new_book_fields(
    fields: Sequence[DetectedField], options: NewBookOptions
) -> list[FieldConfig]:
    """Turn detected fields into a field configuration.

    The first included date column comes first and the primary amount last.
    Split amount columns and the time column are left out; split mode adds a
    synthetic required ``amount`` field instead.
    """
    split = options.amount_mode == AmountMode.SPLIT
    date_key = next((f.key for f in fields if f.include and f.type == FieldType.DATE), None)
    config = []
    position = 2
    for f in fields:
        if not f.include or f.key == options.time_field:
            continue
        if split and f.key in (options.income_field, options.expense_field):
            continue
        order = position
        position += 1
        if f.key == date_key:
            order = 1
        if not split and f.key == options.primary_amount_field:
            order = 100
        config.append(
            FieldConfig(
                key=f.key,
                label=f.label,
                type=f.type,
                order=order,
                options=tuple(f.options) if f.type == FieldType.DROPDOWN else (),
                multiline=any(word in f.label.lower() for word in MULTILINE_LABEL_KEYWORDS),
            )
        )
    if split and "amount" not in {c.key for c in config}:
        config.append(
            FieldConfig(
                key="amount", label="Amount", type=FieldType.NUMBER, required=True, order=100
            )
        )
    return normalize_order(config)


def export_transactions_csv(book: Book, transactions: Sequence[Transaction]) -> str:
    """Render a book's transactions as CSV.

    Columns are Date, Description, Amount, Type, Category followed by the
    labels of the book's other fields.
    """
    skipped_keys = ("date", "description", "amount", "type", "category_id")
    extra_fields = [f for f in book.field_config if f.key not in skipped_keys]
    headers = ["Date", "Description", "Amount", "Type", "Category"]
    headers += [f.label for f in extra_fields]

    lines = [",".join(quote_cell(h) if re.search(r'[",\r\n]', h) else h for h in headers)]
    for txn in transactions:
        row = [
            txn.transaction_date.isoformat(),
            quote_cell(txn.description),
            format(txn.amount, "f"),
            txn.type.value,
            txn.category_id or "",
        ]
        for f in extra_fields:
            value = txn.custom_data.get(f.key)
            if value is None and f.key in ("party", "party_id"):
                value = txn.party_id
            if value is None and f.key == "payment_mode":
                value = txn.payment_mode
            row.append(quote_cell("" if value is None else value))
        lines.append(",".join(row))
    return "\n".join(lines)


class CSVImportService:
    """Service for importing CSV files into books."""

    def __init__(self, db: Database, performed_by: Optional[str] = None):
        """Initialize CSV import service.

        Args:
            db: Database instance
            performed_by: Name recorded on the audit entries of imported rows
        """
        self.db = db
        self.book_service = BookService(db)
        self.transaction_service = TransactionService(db, performed_by=performed_by)

    def load(self, text: str) -> list[list[str]]:
        """Parse a file; see load_rows."""
        return load_rows(text)

    def _create_mapped_fields(
        self, book: Book, mappings: list[ColumnMapping]
    ) -> tuple[Book, list[FieldConfig]]:
        """Add a text field for every create_new mapping and persist the schema."""
        to_create = [m for m in mappings if m.target == TARGET_CREATE_NEW]
        if not to_create:
            return book, []
        start = len(book.field_config)
        created = []
        for i, mapping in enumerate(to_create):
            new_field = FieldConfig(
                key=generate_field_key(),
                label=mapping.new_field_name or mapping.csv_header,
                type=FieldType.TEXT,
                order=start + i + 1,
            )
            mapping.target = new_field.key
            created.append(new_field)
        book = self.book_service.save_fields(book.id, [*book.field_config, *created])
        return book, created

    def import_into_book(
        self,
        book_id: str,
        rows: Sequence[Sequence[str]],
        mappings: list[ColumnMapping],
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Import a file into an existing book.

        Columns mapped to create_new become text fields of the book, saved
        before any row is written; the mappings are updated to the new keys.
        Rows without a readable date are skipped with a warning. Amounts come
        from amount_in/amount_out columns or a signed amount_net column.

        Args:
            book_id: Target book
            rows: Parsed rows including the header
            mappings: One mapping per column
            progress: Optional callback receiving a percentage

        Returns:
            ImportResult with counts and the created fields

        Raises:
            NotFoundError: If the book doesn't exist
            ImportParseError: If the mappings don't match the columns
            StorageError: If a write fails; earlier rows stay imported
        """
        book = self.book_service.require_book(book_id)
        if len(mappings) != len(rows[0]):
            raise ImportParseError(
                f"Expected {len(rows[0])} column mappings, got {len(mappings)}"
            )
        for mapping in mappings:
            mapping.target = TARGET_ALIASES.get(mapping.target, mapping.target)

        book, created = self._create_mapped_fields(book, mappings)
        fields_by_key = {f.key: f for f in book.field_config}
        policy = SkipRowDatePolicy()
        result = ImportResult(book_id=book.id, created_fields=created)

        data_rows = rows[1:]
        total = len(data_rows)
        for i, row in enumerate(data_rows):
            if _is_blank_row(row):
                continue
            values = self._map_row(row, mappings, fields_by_key)
            transaction_date = policy.resolve(values.get("date"))
            if transaction_date is None:
                message = f"Row {i + 2} skipped: No valid date found."
                logger.warning(message)
                result.errors.append(message)
                result.skipped += 1
                continue

            txn_type, amount = self._reconcile_amount(values["amount_in"], values["amount_out"])
            self.transaction_service.create_transaction(
                book_id=book.id,
                amount=Decimal(str(amount)),
                transaction_date=transaction_date,
                description=values.get("description") or DEFAULT_IMPORT_DESCRIPTION,
                type=txn_type,
                category_id=values.get("category") or DEFAULT_CATEGORY,
                party_id=values.get("party"),
                payment_mode=values.get("mode") or DEFAULT_PAYMENT_MODE,
                custom_data=values["custom_data"],
            )
            result.imported += 1
            if progress is not None and i % PROGRESS_EVERY_ROWS == 0:
                progress(_percent(i + 1, total))

        if progress is not None:
            progress(100)
        logger.info(
            "Imported %d rows into book %s, skipped %d", result.imported, book.id, result.skipped
        )
        return result

    @staticmethod
    def _map_row(
        row: Sequence[str],
        mappings: Sequence[ColumnMapping],
        fields_by_key: dict[str, FieldConfig],
    ) -> dict:
        values: dict = {"amount_in": 0.0, "amount_out": 0.0, "custom_data": {}}
        for index, mapping in enumerate(mappings):
            if mapping.target == TARGET_IGNORE:
                continue
            value = _cell(row, index)
            if not value:
                continue

            target = mapping.target
            if target in PLAIN_TARGETS:
                values[target] = value
            elif target == TARGET_TIME:
                continue
            elif target == TARGET_AMOUNT_IN:
                values["amount_in"] = parse_loose_number(value) or 0.0
            elif target == TARGET_AMOUNT_OUT:
                values["amount_out"] = parse_loose_number(value) or 0.0
            elif target == TARGET_AMOUNT_NET:
                net = parse_loose_number(value) or 0.0
                if net >= 0:
                    values["amount_in"] = net
                else:
                    values["amount_out"] = abs(net)
            else:
                values["custom_data"][target] = _coerce_for_field(fields_by_key.get(target), value)
        return values

    @staticmethod
    def _reconcile_amount(amount_in: float, amount_out: float) -> tuple[TransactionType, float]:
        """Decide type and amount from the in/out columns.

        When both columns hold a positive value the row counts as income.
        """
        if amount_in > 0:
            return TransactionType.INCOME, amount_in
        if amount_out > 0:
            return TransactionType.EXPENSE, amount_out
        return TransactionType.EXPENSE, 0.0

    def detect_fields(self, rows: Sequence[Sequence[str]]) -> list[DetectedField]:
        """Infer new-book fields; see detect_fields."""
        return detect_fields(rows)

    def import_new_book(
        self,
        rows: Sequence[Sequence[str]],
        fields: Sequence[DetectedField],
        options: NewBookOptions,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Create a book from a file and import every row into it.

        Every included column is stored in ``custom_data`` under its field
        key. Rows without a readable date are dated today.

        Args:
            rows: Parsed rows including the header
            fields: Detected fields, possibly edited by the user
            options: Book name, currency and amount columns
            progress: Optional callback receiving a percentage

        Returns:
            ImportResult for the new book

        Raises:
            ValidationError: If the book name is empty
            StorageError: If a write fails; earlier rows stay imported
        """
        if not options.name.strip():
            raise ValidationError("Book name is required")

        config = build_new_book_fields(fields, options)
        split = options.amount_mode == AmountMode.SPLIT
        primary = options.primary_amount_field
        if not split and primary is not None and primary not in {c.key for c in config}:
            raise ValidationError(f"Primary amount column '{primary}' is not an included field")
        book = self.book_service.create_book(options.name, options.currency, field_config=config)
        book = self.book_service.update_book(
            book.id,
            primary_amount_field="amount" if split else primary,
        )
        policy = TodayDatePolicy()
        result = ImportResult(book_id=book.id, created_fields=list(book.field_config))

        date_index = next(
            (i for i, f in enumerate(fields) if f.include and f.type == FieldType.DATE), None
        )
        time_index = next(
            (i for i, f in enumerate(fields) if options.time_field and f.key == options.time_field),
            None,
        )

        data_rows = rows[1:]
        total = len(data_rows)
        for i, row in enumerate(data_rows):
            if _is_blank_row(row):
                continue
            self._create_new_book_row(book, row, fields, options, policy, date_index, time_index)
            result.imported += 1
            if progress is not None and i % PROGRESS_EVERY_ROWS == 0:
                progress(_percent(i + 1, total))

        if progress is not None:
            progress(100)
        logger.info("Created book %s from CSV with %d rows", book.id, result.imported)
        return result

    def _create_new_book_row(
        self,
        book: Book,
        row: Sequence[str],
        fields: Sequence[DetectedField],
        options: NewBookOptions,
        policy: TodayDatePolicy,
        date_index: Optional[int],
        time_index: Optional[int],
    ) -> Transaction:
        split = options.amount_mode == AmountMode.SPLIT
        custom_data: dict[str, CustomValue] = {}
        amount = 0.0
        txn_type = TransactionType.EXPENSE
        description = DEFAULT_NEW_BOOK_DESCRIPTION

        for index, f in enumerate(fields):
            if not f.include:
                continue
            value = _cell(row, index)
            if not value:
                continue

            if f.type == FieldType.NUMBER:
                number = parse_loose_number(value) or 0.0
                custom_data[f.key] = number
                if not split and f.key == options.primary_amount_field:
                    amount = abs(number)
                    label = f.label.lower()
                    if any(word in label for word in INCOME_LABEL_KEYWORDS):
                        txn_type = TransactionType.INCOME
                    elif any(word in label for word in EXPENSE_LABEL_KEYWORDS):
                        txn_type = TransactionType.EXPENSE
                if split and number > 0 and f.key in (options.income_field, options.expense_field):
                    amount = abs(number)
                    txn_type = TransactionType.EXPENSE
                    if f.key == options.income_field:
                        txn_type = TransactionType.INCOME
                    custom_data["amount"] = amount
            elif f.key != options.time_field:
                custom_data[f.key] = value_for_field_type(f.type, value)

            if f.type == FieldType.DATE:
                parsed = parse_flexible_date(value)
                if parsed is not None:
                    custom_data[f.key] = parsed.isoformat()

            label = f.label.lower()
            is_description = any(word in label for word in DESCRIPTION_LABEL_KEYWORDS)
            if f.type == FieldType.TEXT and is_description:
                description = value

        raw_date = _cell(row, date_index) if date_index is not None else None
        transaction_date = policy.resolve(raw_date)
        recorded_at = None
        if time_index is not None and raw_date and parse_flexible_date(raw_date) is not None:
            parsed_time = _parse_time(_cell(row, time_index))
            if parsed_time is not None:
                recorded_at = datetime.combine(transaction_date, parsed_time)

        return self.transaction_service.create_transaction(
            book_id=book.id,
            amount=Decimal(str(amount)),
            transaction_date=transaction_date,
            description=description,
            type=txn_type,
            custom_data=custom_data,
            recorded_at=recorded_at,
        )

    def export_csv(self, book_id: str) -> str:
        """Export a book's transactions as CSV text."""
        book = self.book_service.require_book(book_id)
        return export_transactions_csv(book, self.db.list_transactions(book_id))


class ImportSession:
    """Drives one interactive import through upload, map, processing and success.

    A failure while processing returns the session to the map step with the
    error message; the user's mapping edits are kept.
    """

    def __init__(
        self,
        service: CSVImportService,
        book_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """Start a session.

        Args:
            service: Import service
            book_id: Book to import into; None creates a new book from the file
            on_progress: Optional listener receiving the percentage while running
        """
        self.service = service
        self.book_id = book_id
        self.on_progress = on_progress
        self.step = ImportStep.UPLOAD
        self.error: Optional[str] = None
        self.progress = 0
        self.rows: list[list[str]] = []
        self.mappings: list[ColumnMapping] = []
        self.fields: list[DetectedField] = []
        self.options: Optional[NewBookOptions] = None
        self.result: Optional[ImportResult] = None

    @property
    def creates_book(self) -> bool:
        return self.book_id is None

    def upload(self, text: str, file_name: str = "") -> None:
        """Parse the file and prepare suggested mappings or fields.

        Raises:
            ImportParseError: If the file has fewer than two rows; the session
                stays at the upload step
        """
        if self.step != ImportStep.UPLOAD:
            raise ValidationError(f"Cannot upload a file during the {self.step.value} step")
        self.error = None
        try:
            self.rows = self.service.load(text)
        except ImportParseError as e:
            self.error = str(e)
            raise

        if self.creates_book:
            self.fields = self.service.detect_fields(self.rows)
            name = re.sub(r"\.[^/.]+$", "", file_name).replace("_", " ")
            self.options = suggest_new_book_options(self.fields, name)
        else:
            book = self.service.book_service.require_book(self.book_id)
            self.mappings = suggest_mappings(self.rows, book)
        self.step = ImportStep.MAP

    def _require_map_step(self) -> None:
        if self.step != ImportStep.MAP:
            raise ValidationError(
                f"Mappings can only be edited during the map step, not {self.step.value}"
            )

    def set_target(self, index: int, target: str) -> None:
        """Change where a column goes (existing-book import)."""
        self._require_map_step()
        set_mapping_target(self.mappings[index], target)

    def set_new_field_name(self, index: int, name: str) -> None:
        """Name the field a create_new column will become."""
        self._require_map_step()
        self.mappings[index].new_field_name = name

    def update_detected_field(self, index: int, **changes) -> None:
        """Edit a detected field (new-book import).

        Switching a field to dropdown without options adopts its unique values.
        """
        self._require_map_step()
        updated = replace(self.fields[index], **changes)
        if updated.type == FieldType.DROPDOWN and not updated.options:
            updated = replace(updated, options=updated.unique_values)
        self.fields[index] = updated

    def update_options(self, **changes) -> None:
        """Edit the new book's name, currency or amount columns."""
        self._require_map_step()
        self.options = replace(self.options, **changes)

    def _on_progress(self, percent: int) -> None:
        self.progress = percent
        if self.on_progress is not None:
            self.on_progress(percent)

    def _keep_created_fields(self, attempted: list[ColumnMapping]) -> None:
        """Point create_new columns at the fields a failed run already saved."""
        book = self.service.book_service.get_book(self.book_id) if self.book_id else None
        if book is None:
            return
        saved = {f.key for f in book.field_config}
        for mapping, tried in zip(self.mappings, attempted):
            if mapping.target == TARGET_CREATE_NEW and tried.target in saved:
                mapping.target = tried.target

    def run(self) -> Optional[ImportResult]:
        """Process every row.

        Returns:
            The ImportResult on success, or None when the run failed and the
            session went back to the map step with ``error`` set
        """
        self._require_map_step()
        self.step = ImportStep.PROCESSING
        self.progress = 0
        self.error = None
        # Work on copies; a failed run only keeps the keys of fields it saved
        mappings = [replace(m) for m in self.mappings]
        try:
            if self.creates_book:
                result = self.service.import_new_book(
                    self.rows, self.fields, self.options, progress=self._on_progress
                )
            else:
                result = self.service.import_into_book(
                    self.book_id, self.rows, mappings, progress=self._on_progress
                )
        except DomainError as e:
            logger.error("Import failed: %s", e)
            self._keep_created_fields(mappings)
            self.error = str(e)
            self.step = ImportStep.MAP
            return None

        self.result = result
        self.step = ImportStep.SUCCESS
        return result
