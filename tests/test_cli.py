"""Tests for individual CLI commands."""

import json
from datetime import date

import pytest

from lekha.cli.main import cli

BANK_CSV = (
    "Date,Narration,Credit,Debit\n"
    "2024-01-05,Salary,50,\n"
    "2024-01-06,Coffee,,4.5\n"
)


@pytest.fixture
def invoke(cli_runner, temp_db):
    """Run the CLI against the temporary database."""

    def _invoke(*args, input=None):
        return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args], input=input)

    return _invoke


@pytest.fixture
def household(invoke):
    """Create the active book 'Household' and return its ID."""
    result = invoke("book", "create", "Household")
    assert result.exit_code == 0
    return _created_id(result.output)


def _created_id(output):
    for line in output.split("\n"):
        if "ID:" in line:
            return line.split("ID:")[1].strip().rstrip(")")
    return None


def _add(invoke, amount="250", description="Groceries", day="2024-01-05", **fields):
    args = [
        "add",
        "-f", f"amount={amount}",
        "-f", f"date={day}",
        "-f", f"description={description}",
        "-f", f"category_id={fields.pop('category', 'Food')}",
        "-f", f"type={fields.pop('type', 'expense')}",
    ]
    for key, value in fields.items():
        args += ["-f", f"{key}={value}"]
    result = invoke(*args)
    assert result.exit_code == 0, result.output
    return result.output.split("\n")[0].split()[-1]


def test_help_does_not_need_database(cli_runner):
    """Help output works without touching storage."""
    result = cli_runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "book" in result.output
    assert "import-book" in result.output


def test_first_book_becomes_active(invoke, household):
    """The first book is made active; later ones are not."""
    result = invoke("book", "create", "Shop", "--currency", "USD")

    assert "Set as active book" not in result.output
    listing = invoke("book", "list").output
    assert "* Household" in listing
    assert "  Shop" in listing


def test_book_create_from_template(invoke):
    """Templates can be named when creating a book."""
    result = invoke("book", "create", "Shop", "--template", "Business Ledger")

    assert result.exit_code == 0
    assert "Invoice Number" in invoke("field", "list").output


def test_book_use_and_show(invoke, household):
    """Books can be selected by name and shown."""
    invoke("book", "create", "Shop")
    assert invoke("book", "use", "shop").output.strip() == "Active book: Shop"

    shown = invoke("book", "show", "Household").output

    assert f"Household (ID: {household})" in shown
    assert "Amount [amount] number (required)" in shown
    assert "Balance:" in shown


def test_unknown_book(invoke):
    """Unknown books are reported with a failing exit code."""
    result = invoke("book", "show", "Missing")

    assert result.exit_code == 1
    assert "Error: Book 'Missing' not found" in result.output


def test_no_active_book(invoke):
    """Commands that need a book fail without one."""
    result = invoke("add", "-f", "amount=1")

    assert result.exit_code == 1
    assert "No book given and no active book" in result.output


def test_book_update_and_rename(invoke, household, temp_db):
    """Settings and preferences are stored."""
    result = invoke(
        "book", "update", "--currency", "EUR", "--default-category", "Misc", "--decimal-places", "0"
    )
    assert result.exit_code == 0
    assert invoke("book", "rename", "Household", "Home").exit_code == 0

    temp_db.disconnect()
    book = temp_db.get_book(household)
    assert (book.name, book.currency) == ("Home", "EUR")
    assert book.preferences.default_category == "Misc"
    assert book.preferences.decimal_places == 0


def test_book_update_unknown_primary_field(invoke, household):
    """The primary amount field must exist in the book."""
    result = invoke("book", "update", "--primary-amount", "nope")

    assert result.exit_code == 1
    assert "is not part of book" in result.output


def test_book_delete_clears_active(invoke, household):
    """Deleting the active book leaves no active book."""
    result = invoke("book", "delete", "Household", "--yes")

    assert "Deleted book 'Household'" in result.output
    assert invoke("field", "list").exit_code == 1


def test_book_delete_can_be_cancelled(invoke, household):
    """Declining the prompt keeps the book."""
    result = invoke("book", "delete", "Household", input="n\n")

    assert "Deletion cancelled." in result.output
    assert "Household" in invoke("book", "list").output


def test_add_and_list(invoke, household):
    """Added entries show up in the list and search."""
    _add(invoke)
    _add(invoke, amount="1200", description="Pay", type="income", category="Salary", party="Acme")

    listing = invoke("transaction", "list").output
    assert "Found 2 transaction(s) in Household" in listing
    found = invoke("transaction", "list", "--search", "acme", "-v").output
    assert "Found 1 transaction(s)" in found
    assert "Party: Acme" in found


def test_add_reports_every_invalid_field(invoke, household):
    """All form errors are listed by field key."""
    result = invoke("add", "-f", "amount=abc", "-f", "date=2024-01-01")

    assert result.exit_code == 1
    assert "Error: the entry has invalid fields" in result.output
    assert "amount: Amount must be a number" in result.output
    assert "description: Description is required" in result.output


def test_add_rejects_malformed_pairs(invoke, household):
    """Field values must be KEY=VALUE."""
    result = invoke("add", "-f", "amount")

    assert result.exit_code == 1
    assert "Expected KEY=VALUE" in result.output


def test_list_date_filters(invoke, household):
    """Periods and explicit dates cannot be combined."""
    _add(invoke, day="2024-01-05")
    _add(invoke, description="Later", day="2024-03-05")

    result = invoke("transaction", "list", "--start-date", "2024-02-01")
    assert "Later" in result.output
    assert "Groceries" not in result.output

    conflict = invoke("transaction", "list", "--period", "all", "--end-date", "2024-01-01")
    assert conflict.exit_code == 1


def test_update_and_history(invoke, household):
    """Updates are recorded field by field, also after delete."""
    txn_id = _add(invoke)

    result = invoke("transaction", "update", txn_id, "-f", "amount=300")
    assert result.exit_code == 0
    assert invoke("transaction", "delete", txn_id, "--yes").exit_code == 0

    history = invoke("transaction", "history", txn_id).output
    assert "CREATE by tester" in history
    assert "UPDATE by tester" in history
    assert "DELETE by tester" in history
    assert "amount: 250.0 -> 300.0" in history


def test_update_missing_transaction(invoke, household):
    """Updating an unknown id fails."""
    result = invoke("transaction", "update", "nope", "-f", "amount=1")

    assert result.exit_code == 1
    assert "Transaction nope not found" in result.output


def test_book_log(invoke, household):
    """The book log lists changes of every entry, deleted ones too."""
    txn_id = _add(invoke)
    invoke("transaction", "update", txn_id, "-f", "amount=300")
    invoke("transaction", "delete", txn_id, "--yes")

    log = invoke("book", "log").output

    assert f"CREATE {txn_id} by tester" in log
    assert f"UPDATE {txn_id} by tester (amount)" in log
    assert f"DELETE {txn_id} by tester" in log


def test_book_log_empty(invoke, household):
    """Books without entries have no activity."""
    assert "No activity in Household." in invoke("book", "log").output


def test_user_is_recorded_on_history(invoke, household):
    """The current user is stored on audit entries."""
    assert invoke("user", "Asha").output.strip() == "Current user: Asha"
    txn_id = _add(invoke)

    assert "CREATE by Asha" in invoke("transaction", "history", txn_id).output
    assert invoke("user", "--clear").output.strip() == "Current user: tester"


def test_field_commands(invoke, household):
    """Fields can be added, moved, updated and deleted."""
    result = invoke("field", "add", "Invoice", "--key", "invoice", "--required")
    assert result.exit_code == 0
    assert "Added field 'Invoice' (invoice)" in result.output

    assert "Moved field 'Invoice' up" in invoke("field", "move", "invoice", "up").output
    assert "already at the top" in invoke("field", "move", "amount", "up").output
    assert invoke("field", "update", "invoice", "--label", "Bill", "--optional").exit_code == 0

    listing = invoke("field", "list").output
    assert "Bill" in listing
    assert " 6. Bill" in listing

    assert invoke("field", "delete", "Bill").exit_code == 0
    assert "Bill" not in invoke("field", "list").output


def test_field_add_duplicate_key(invoke, household):
    """Field keys must be unique."""
    result = invoke("field", "add", "Amount 2", "--key", "amount")

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_core_fields_are_protected(invoke, household):
    """Core fields cannot be deleted or retyped without --force."""
    deleted = invoke("field", "delete", "amount")
    retyped = invoke("field", "update", "date", "--type", "text")

    assert deleted.exit_code == 1
    assert "Error: Cannot delete core system fields." in deleted.output
    assert retyped.exit_code == 1
    assert "Cannot change the type" in retyped.output
    assert invoke("field", "delete", "description", "--force").exit_code == 0


def test_import_into_book(invoke, household, write_csv):
    """Bank statements import with guessed mappings."""
    path = write_csv(BANK_CSV)

    result = invoke("import", "Household", str(path))

    assert result.exit_code == 0, result.output
    assert "Narration" in result.output and "description" in result.output
    assert "Imported: 2 transactions" in result.output
    listing = invoke("transaction", "list").output
    assert "Salary" in listing
    assert "Coffee" in listing


def test_import_with_new_field(invoke, household, write_csv, temp_db):
    """create_new columns become fields named by --new-field."""
    path = write_csv(BANK_CSV)

    result = invoke(
        "import", "Household", str(path),
        "--map", "Narration=create_new", "--new-field", "Narration=Memo",
    )

    assert result.exit_code == 0, result.output
    assert "New fields: Memo" in result.output
    temp_db.disconnect()
    assert "Memo" in {f.label for f in temp_db.get_book(household).field_config}


def test_import_preview_and_bad_target(invoke, household, write_csv):
    """Preview imports nothing; unknown targets are rejected."""
    path = write_csv(BANK_CSV)

    preview = invoke("import", "Household", str(path), "--preview")
    assert "Imported" not in preview.output
    assert "No transactions found." in invoke("transaction", "list").output

    bad = invoke("import", "Household", str(path), "--map", "Credit=wallet")
    assert bad.exit_code == 1
    assert "Unknown target 'wallet'" in bad.output


def test_import_reports_skipped_rows(invoke, household, write_csv):
    """Rows without a date are listed."""
    path = write_csv("Date,Narration,Amount\nsoon,Bad,20\n2024-01-07,Good,5\n")

    result = invoke("import", "Household", str(path))

    assert "Imported: 1 transactions" in result.output
    assert "Row 2 skipped: No valid date found." in result.output


def test_import_header_only_file(invoke, household, write_csv):
    """Files without data rows are rejected."""
    path = write_csv("Date,Amount\n")

    result = invoke("import", "Household", str(path))

    assert result.exit_code == 1
    assert "at least one data row" in result.output


def test_import_new_book(invoke, write_csv, temp_db):
    """import-book creates a book from the file."""
    path = write_csv(BANK_CSV, "bank_2024.csv")

    result = invoke(
        "import-book", str(path), "--split", "--income", "credit", "--expense", "debit", "--use"
    )

    assert result.exit_code == 0, result.output
    assert "Created book 'bank 2024'" in result.output
    assert "Imported: 2 transactions" in result.output
    assert "Set as active book" in result.output
    assert "Found 2 transaction(s) in bank 2024" in invoke("transaction", "list").output


def test_import_new_book_unknown_column(invoke, write_csv):
    """Options naming missing columns fail with the known keys."""
    path = write_csv(BANK_CSV)

    result = invoke("import-book", str(path), "--exclude", "memo")

    assert result.exit_code == 1
    assert "No column with field key 'memo'" in result.output
    assert "narration" in result.output


def test_reports(invoke, household):
    """Report commands print aggregated figures."""
    today = date.today().isoformat()
    _add(invoke, amount="100", category="A", day=today)
    _add(invoke, amount="500", category="B", day=today, party="Landlord")
    _add(invoke, amount="1000", type="income", category="Salary", day=today)

    cash = invoke("report", "cash-flow").output
    assert "1,000.00" in cash
    assert "600.00" in cash
    assert "400.00" in cash

    category = invoke("report", "category").output
    assert "83%" in category
    assert "17%" in category

    assert "Landlord" in invoke("report", "party").output
    assert today[:7] in invoke("report", "trends").output
    assert "(2 entries)" in invoke("report", "custom", "Type").output


def test_report_period_filters(invoke, household):
    """Reports default to this month."""
    _add(invoke, amount="70", day="2020-01-01")

    assert "No expenses in this period." in invoke("report", "category").output
    assert "70.00" in invoke("report", "category", "--period", "all").output


def test_export_and_import_book_copy(invoke, household, two_entries, tmp_path):
    """A book exported to JSON can be imported as a copy."""
    target = tmp_path / "household.json"

    result = invoke("backup", "export-book", "-o", str(target))
    assert "(2 transactions)" in result.output
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["book"]["id"] == household

    copied = invoke("backup", "import-book", str(target), "--copy")
    assert "Book 'Household (Copy)' imported successfully" in copied.output
    assert "Found 2 transaction(s) in Household (Copy)" in invoke("transaction", "list").output


def test_import_book_prompt_declined_makes_copy(invoke, household, two_entries, tmp_path):
    """Declining the overwrite prompt imports a copy."""
    target = tmp_path / "household.json"
    invoke("backup", "export-book", "-o", str(target))

    result = invoke("backup", "import-book", str(target), input="n\n")

    assert "Household (Copy)" in result.output


def test_restore_full_backup(invoke, household, two_entries, tmp_path):
    """restore --replace brings back exactly the backup."""
    target = tmp_path / "all.json"
    assert "1 books and 2 transactions" in invoke("backup", "export-all", "-o", str(target)).output
    invoke("book", "create", "Extra")

    result = invoke("backup", "restore", str(target), "--replace", "--yes")

    assert "Restore completed successfully: 1 books, 2 transactions" in result.output
    assert "Extra" not in invoke("book", "list").output


def test_restore_rejects_invalid_file(invoke, tmp_path):
    """Files that are not backups are rejected."""
    target = tmp_path / "broken.json"
    target.write_text("{}", encoding="utf-8")

    result = invoke("backup", "restore", str(target), "--yes")

    assert result.exit_code == 1
    assert "Invalid backup format: missing books" in result.output


def test_export_csv_to_stdout(invoke, household, two_entries):
    """CSV export prints to stdout without --output."""
    result = invoke("export-csv")

    lines = result.output.split("\n")
    assert lines[0] == "Date,Description,Amount,Type,Category,Party"
    assert len(lines) == 3


def test_templates(invoke, household):
    """Templates can be listed, saved, applied and deleted."""
    assert "Simple Cashbook" in invoke("template", "list").output

    saved = invoke("template", "save", "Mine")
    assert "Saved 'Household' as template 'Mine'" in saved.output

    applied = invoke("template", "apply", "Simple Cashbook", "--yes")
    assert applied.exit_code == 0
    assert "Party" not in invoke("field", "list").output

    renamed = invoke("template", "update", "Mine", "--name", "Home", "--from-book", "Household")
    assert "Updated template 'Home'" in renamed.output
    assert invoke("template", "update", "Simple Cashbook", "--name", "X").exit_code == 1

    refused = invoke("template", "delete", "Simple Cashbook")
    assert refused.exit_code == 1
    assert "system default" in refused.output
    assert invoke("template", "delete", "Home").exit_code == 0


def test_sync_push_pull(invoke, household, two_entries, tmp_path):
    """Push writes the sync file; pull restores it."""
    pushed = invoke("sync", "push")
    assert pushed.exit_code == 0
    assert (tmp_path / "cloud" / "lekha_backup.json").exists()

    invoke("book", "create", "Local")
    pulled = invoke("sync", "pull", "--yes")

    assert "Restored 1 books and 2 transactions" in pulled.output
    assert "Local" not in invoke("book", "list").output
    assert "Remote backup:" in invoke("sync", "status").output


def test_pull_without_remote_backup(invoke):
    """Pulling before any push fails."""
    result = invoke("sync", "pull", "--yes")

    assert result.exit_code == 1
    assert "Backup file not found" in result.output


def test_auto_sync_after_changes(invoke, household, tmp_path):
    """With auto-sync on, commands that change data push a backup."""
    assert "Auto-sync enabled" in invoke("sync", "auto", "on").output

    listing = invoke("book", "list")
    assert "Auto-sync" not in listing.output
    assert not (tmp_path / "cloud" / "lekha_backup.json").exists()

    _add(invoke)
    assert (tmp_path / "cloud" / "lekha_backup.json").exists()
    assert "Auto-sync: on" in invoke("sync", "status").output


@pytest.fixture
def two_entries(invoke, household):
    """Add two entries to the active book."""
    _add(invoke)
    _add(invoke, amount="1200", description="Pay", type="income", category="Salary")
