"""Integration tests for end-to-end workflows."""

import json

from lekha.cli.main import cli
from lekha.database.factories import create_sqlite_database


def test_full_workflow(cli_runner, temp_db, write_csv, tmp_path):
    """Test workflow: book → fields → import → edit → report → backup → sync."""
    db_args = ["--db-path", temp_db.database_path]

    # Step 1: Create book from a template
    result = cli_runner.invoke(
        cli, [*db_args, "book", "create", "Shop", "--currency", "USD", "--template", "Business"]
    )
    assert result.exit_code == 1
    assert "not found" in result.output

    result = cli_runner.invoke(
        cli,
        [*db_args, "book", "create", "Shop", "--currency", "USD", "--template", "Business Ledger"],
    )
    assert result.exit_code == 0
    book_id = None
    for line in result.output.split("\n"):
        if "ID:" in line:
            # Extract book ID from output like "Created book 'Shop' (ID: 3f2a...)"
            parts = line.split("ID:")
            if len(parts) > 1:
                book_id = parts[1].strip().rstrip(")")
                break

    assert book_id is not None
    assert "Set as active book" in result.output

    # Step 2: Add a custom field for the bank reference
    result = cli_runner.invoke(cli, [*db_args, "field", "add", "Reference", "--key", "reference"])
    assert result.exit_code == 0

    # Step 3: Import a statement, sending the Ref column to the new field
    csv_path = write_csv(
        "Txn Date,Details,Withdrawal,Deposit,Ref\n"
        "01/02/2024,Stock purchase,300,,R-1\n"
        "03/02/2024,Sale to Asha,,1200,R-2\n"
        "not a date,Broken row,10,,R-3\n"
        ",,,,\n"
    )
    result = cli_runner.invoke(
        cli,
        [*db_args, "import", "Shop", str(csv_path), "--map", "Details=description",
         "--map", "Ref=reference"],
    )
    assert result.exit_code == 0, result.output
    assert "Imported: 2 transactions" in result.output
    assert "Skipped: 1 rows" in result.output

    # Step 4: Check what was stored
    temp_db.disconnect()
    transactions = temp_db.list_transactions(book_id)
    assert len(transactions) == 2
    by_description = {t.description: t for t in transactions}
    sale = by_description["Sale to Asha"]
    assert sale.type.value == "income"
    assert str(sale.amount) == "1200.00"
    assert sale.custom_data["reference"] == "R-2"
    assert by_description["Stock purchase"].transaction_date.isoformat() == "2024-02-01"
    temp_db.disconnect()

    # Step 5: Correct an entry and read its history
    result = cli_runner.invoke(
        cli, [*db_args, "transaction", "update", sale.id, "-f", "amount=1250"]
    )
    assert result.exit_code == 0, result.output

    result = cli_runner.invoke(cli, [*db_args, "transaction", "history", sale.id])
    assert result.exit_code == 0
    assert "CREATE" in result.output
    assert "amount: 1200.0 -> 1250.0" in result.output

    # Step 6: Reports
    result = cli_runner.invoke(cli, [*db_args, "report", "cash-flow", "--period", "all"])
    assert result.exit_code == 0
    assert "1,250.00" in result.output
    assert "950.00" in result.output

    result = cli_runner.invoke(cli, [*db_args, "report", "trends", "--period", "all"])
    assert "2024-02" in result.output

    # Step 7: Back up to a file
    backup_path = tmp_path / "shop.json"
    result = cli_runner.invoke(cli, [*db_args, "backup", "export-book", "-o", str(backup_path)])
    assert result.exit_code == 0
    data = json.loads(backup_path.read_text(encoding="utf-8"))
    assert data["version"] == "1.0"
    assert len(data["transactions"]) == 2

    # Step 8: Push to the sync folder and pull into a second database
    result = cli_runner.invoke(cli, [*db_args, "sync", "push"])
    assert result.exit_code == 0

    other = create_sqlite_database(database_path=str(tmp_path / "other.db"))
    other.connect()
    other.initialize_schema()
    other.disconnect()
    result = cli_runner.invoke(
        cli, ["--db-path", str(tmp_path / "other.db"), "sync", "pull", "--yes"]
    )
    assert result.exit_code == 0, result.output
    assert "Restored 1 books and 2 transactions" in result.output

    restored = [t for t in other.list_transactions(book_id) if t.id == sale.id]
    assert str(restored[0].amount) == "1250.00"
    assert other.get_book(book_id).currency == "USD"
    other.disconnect()


def test_new_book_from_csv_workflow(cli_runner, temp_db, write_csv):
    """Test workflow: import-book → field tweaks → add entry → custom report → export."""
    db_args = ["--db-path", temp_db.database_path]
    csv_path = write_csv(
        "Date,Time,Item,Cost,Paid\n"
        "2024-03-01,09:30,Tea,20,yes\n"
        "2024-03-02,18:15,Bus,35,no\n",
        "trip.csv",
    )

    # Step 1: Preview the detected fields
    result = cli_runner.invoke(
        cli, [*db_args, "import-book", str(csv_path), "--type", "paid=checkbox", "--preview"]
    )
    assert result.exit_code == 0
    assert "[time]" in result.output
    assert "[amount]" in result.output
    assert "checkbox" in result.output

    # Step 2: Create the book
    result = cli_runner.invoke(
        cli, [*db_args, "import-book", str(csv_path), "--type", "paid=checkbox", "--use"]
    )
    assert result.exit_code == 0, result.output
    assert "Created book 'trip'" in result.output
    assert "Imported: 2 transactions" in result.output

    # Step 3: Add an entry through the book's own fields
    result = cli_runner.invoke(
        cli,
        [*db_args, "add", "-f", "date=2024-03-03", "-f", "item=Lunch",
         "-f", "cost=80", "-f", "paid=true"],
    )
    assert result.exit_code == 0, result.output

    # Step 4: Group by the checkbox column
    result = cli_runner.invoke(
        cli, [*db_args, "report", "custom", "Paid", "--period", "all"]
    )
    assert result.exit_code == 0
    assert "true" in result.output
    assert "false" in result.output
    assert "(2 entries)" in result.output

    # Step 5: Export as CSV
    result = cli_runner.invoke(cli, [*db_args, "export-csv"])
    assert result.exit_code == 0
    assert result.output.split("\n")[0].startswith("Date,Description,Amount,Type,Category")
    assert "Lunch" in result.output
