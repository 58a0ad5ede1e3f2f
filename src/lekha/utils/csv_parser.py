"""CSV tokenizer for imported bank and spreadsheet exports."""


def parse_csv(text: str) -> list[list[str]]:
    """Split CSV text into rows of cells.

    Commas separate cells; "\\n" and "\\r\\n" end rows. Inside double quotes,
    commas and line breaks are part of the cell and a doubled quote ("")
    stands for a literal quote. A final row without a line terminator is kept.

    Args:
        text: Full file contents

    Returns:
        List of rows, each a list of raw cell strings
    """
    rows: list[list[str]] = []
    current_row: list[str] = []
    cell: list[str] = []
    inside_quotes = False
    i = 0
    length = len(text)

    while i < length:
        char = text[i]
        next_char = text[i + 1] if i + 1 < length else ""

        if char == '"':
            if inside_quotes and next_char == '"':
                cell.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == "," and not inside_quotes:
            current_row.append("".join(cell))
            cell = []
        elif char in ("\r", "\n") and not inside_quotes:
            if char == "\r" and next_char == "\n":
                i += 1
            current_row.append("".join(cell))
            rows.append(current_row)
            current_row = []
            cell = []
        else:
            cell.append(char)
        i += 1

    if cell or current_row:
        current_row.append("".join(cell))
        rows.append(current_row)

    return rows


def quote_cell(value: object) -> str:
    """Quote a value for CSV output, doubling embedded quotes."""
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'
