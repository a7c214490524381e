"""
CSV decoder that turns raw delimited text into per-line field maps.

Quoted delimiters are not interpreted: a field containing a comma is split
like any other. Rows are produced lazily so one bad line never costs the
rest of the batch.
"""

import hashlib
import logging
import re
from typing import Iterator, List, Optional

from data_processing.errors import SourceUnavailableError
from data_processing.ingestion.models import RawRow

logger = logging.getLogger(__name__)

DELIMITER = ','
LINE_BREAK = re.compile(r'\r?\n')


def calculate_content_hash(content: bytes) -> str:
    """SHA256 of the raw object, logged for traceability of re-deliveries."""
    return hashlib.sha256(content).hexdigest()


def decode_bytes(content: bytes, source_name: str = None) -> str:
    """Decode object bytes as UTF-8, dropping a leading byte-order mark."""
    try:
        return content.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise SourceUnavailableError(
            f"{source_name or 'CSV content'} is not valid UTF-8: {e}"
        ) from e


def split_line(line: str) -> List[str]:
    return [value.strip() for value in line.split(DELIMITER)]


def decode_rows(text: str) -> Iterator[RawRow]:
    """Yield one RawRow per non-blank data line.

    The first non-blank line is the header. Values are matched to headers by
    position; a short row simply lacks the trailing keys and values past the
    last header are dropped. Only LF and CRLF end a line.
    """
    headers: Optional[List[str]] = None

    for line_number, line in enumerate(LINE_BREAK.split(text), start=1):
        if not line.strip():
            continue

        if headers is None:
            headers = split_line(line)
            logger.debug(f"Headers found: {', '.join(headers)}")
            continue

        values = split_line(line)
        fields = {}
        for index, header in enumerate(headers):
            if index < len(values):
                fields[header] = values[index]

        yield RawRow(line_number=line_number, fields=fields)
