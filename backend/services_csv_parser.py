"""
Streaming CSV parser for graph uploads.

Turns an uploaded byte buffer into a lazy sequence of validated GraphEntry
records. Parsing stops at the first bad row: callers never see a partial
list of "the rows that were fine".
"""
import csv
import io
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from errors import BadInputError
from models import GraphEntry

# Header columns of the upload format, in the order they are documented
CSV_COLUMNS = [
    "label1",
    "label2",
    "relation",
    "entity1",
    "entity2",
    "score",
    "PMC_ID",
    "sent_id",
    "sentence",
]

EntryParser = Callable[[bytes], Iterable[GraphEntry]]


def _decode(content: bytes) -> str:
    try:
        # utf-8-sig drops the BOM spreadsheet exports like to add
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise BadInputError(f"CSV upload is not valid UTF-8: {e}") from e


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "row"
        parts.append(f"{field}: {err.get('msg')}")
    return "; ".join(parts)


def _check_header(fieldnames: Optional[List[str]]) -> None:
    if not fieldnames:
        raise BadInputError("CSV upload is empty or has no header row")
    missing = [c for c in CSV_COLUMNS if c not in fieldnames]
    if missing:
        raise BadInputError(f"CSV header is missing required columns: {', '.join(missing)}")


def parse_csv_entries(content: bytes) -> Iterator[GraphEntry]:
    """
    Lazily parse and validate a CSV upload.

    The first row is the header; columns are mapped by name and extra
    columns are ignored. Numeric columns are coerced from their text form.
    Raises BadInputError for undecodable bytes, a malformed CSV structure,
    a missing header column, or the first row that does not validate.
    """
    reader = csv.DictReader(io.StringIO(_decode(content), newline=""), strict=True)
    try:
        _check_header(reader.fieldnames)
        row_number = 0
        for row in reader:
            row_number += 1
            if None in row:
                raise BadInputError(
                    f"Row {row_number} (line {reader.line_num}) has more values than the header: {row[None]!r}"
                )
            try:
                yield GraphEntry.model_validate(row)
            except ValidationError as e:
                raise BadInputError(
                    f"Invalid row {row_number} (line {reader.line_num}): "
                    f"{_format_validation_error(e)}. Row content: {dict(row)!r}"
                ) from e
    except csv.Error as e:
        raise BadInputError(f"Malformed CSV near line {reader.line_num}: {e}") from e


# Parsers by declared media type; the upload route only accepts text/csv
PARSERS: Dict[str, EntryParser] = {
    "text/csv": parse_csv_entries,
}


def get_parser(media_type: Optional[str]) -> EntryParser:
    base = (media_type or "").split(";")[0].strip().lower()
    parser = PARSERS.get(base)
    if parser is None:
        raise BadInputError(f"Unsupported upload type {media_type!r}; expected text/csv")
    return parser
