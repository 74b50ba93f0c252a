import csv
import io
import itertools
import logging
from dataclasses import dataclass
from typing import IO, Iterable, Iterator

import pandas as pd

from services.import_errors import CsvParseError, SourceUnavailable

logger = logging.getLogger(__name__)

COLUMN_COUNT = 29
HOUJIN_BANGOU_POSITION = 1  # 2nd column
NAME_POSITION = 6           # 7th column

# a record still holding an open quote after this many lines is malformed
MAX_RECORD_LINES = 20

COLUMN_NAMES = [f"col_{i}" for i in range(COLUMN_COUNT)]
COLUMN_NAMES[HOUJIN_BANGOU_POSITION] = "houjin_bangou"
COLUMN_NAMES[NAME_POSITION] = "name"

# one spare column: anything landing in it came from a line that is too wide
OVERFLOW = "overflow"
READ_NAMES = COLUMN_NAMES + [OVERFLOW]


@dataclass(frozen=True)
class CsvRow:
    houjin_bangou: str
    name: str


def _text(value) -> str:
    # short lines are padded with missing values by pandas
    return value if isinstance(value, str) else ""


def _records(lines: Iterator[str]) -> Iterator[tuple[str, bool]]:
    """
    Groups physical lines into CSV records, yielding (text, balanced).

    A record runs on while it holds an odd number of quote characters. One
    that is still open after MAX_RECORD_LINES lines, or at end of input, is
    given up on its first line and the lines after it are framed again.
    """
    pending: list[str] = []
    quotes = 0
    pushback: list[str] = []
    exhausted = False

    while True:
        if pushback:
            line = pushback.pop()
        elif not exhausted:
            line = next(lines, None)
            if line is None:
                exhausted = True
                continue
        elif pending:
            line = None
        else:
            return

        if line is not None:
            pending.append(line)
            quotes += line.count('"')
            if quotes % 2 == 0:
                yield "".join(pending), True
                pending, quotes = [], 0
                continue
            if len(pending) <= MAX_RECORD_LINES:
                continue

        yield pending[0], False
        pushback.extend(reversed(pending[1:]))
        pending, quotes = [], 0


def _read_frame(text: str) -> pd.DataFrame:
    # index_col=False keeps pandas from sizing the columns off the first line
    try:
        return pd.read_csv(
            io.StringIO(text),
            header=None,
            names=READ_NAMES,
            dtype=object,
            keep_default_na=False,
            index_col=False,
            engine="python",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=READ_NAMES)


class HoujinCsvSource:
    """
    Streams (houjin_bangou, name) pairs out of the untitled zenkoku houjin CSV.

    Lines are framed into records and handed to pandas `chunk_size` records at
    a time, so only one block is held in memory. Rows without a houjin bangou
    never leave the source. Malformed records (too many fields, broken quoting,
    undecodable bytes) are logged and skipped, and `parse_errors` keeps them for
    the report. A block that fails to parse is re-read record by record, so
    the valid rows around a bad one survive.

    The source can be consumed once, either row by row or via `batches()`.
    """

    def __init__(self, stream: IO[str] | Iterable[str], chunk_size: int = 1000):
        self.stream = stream
        self.chunk_size = chunk_size
        self.parse_errors: list[CsvParseError] = []
        self.dropped = 0
        self._consumed = False

    def __iter__(self) -> Iterator[CsvRow]:
        return itertools.chain.from_iterable(self.batches())

    def batches(self) -> Iterator[list[CsvRow]]:
        if self._consumed:
            raise RuntimeError("HoujinCsvSource can only be consumed once")
        self._consumed = True
        return self._batches()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.stream.close()

    def _reject(self, record: str | None, reason: str, level: int = logging.WARNING) -> None:
        error = CsvParseError(record, reason)
        self.parse_errors.append(error)
        logger.log(level, "CSV parse error (skipped): %s", reason)

    def _batches(self) -> Iterator[list[CsvRow]]:
        block: list[str] = []
        try:
            for record, balanced in _records(iter(self.stream)):
                if not balanced:
                    self._reject(record, "unterminated quoted field")
                elif "\ufffd" in record:
                    self._reject(record, "undecodable bytes")
                else:
                    block.append(record if record.endswith("\n") else record + "\n")
                    if len(block) >= self.chunk_size:
                        rows = self._parse_block(block)
                        block = []
                        if rows:
                            yield rows
        except UnicodeDecodeError as exc:
            self._reject(None, f"undecodable input, stopping stream: {exc}", logging.ERROR)

        if block:
            rows = self._parse_block(block)
            if rows:
                yield rows

    def _parse_block(self, block: list[str]) -> list[CsvRow]:
        try:
            frames = [_read_frame("".join(block))]
        except (pd.errors.ParserError, csv.Error):
            frames = []
            for record in block:
                try:
                    frames.append(_read_frame(record))
                except (pd.errors.ParserError, csv.Error) as exc:
                    self._reject(record, str(exc))

        rows: list[CsvRow] = []
        for frame in frames:
            for bangou, name, overflow in zip(frame["houjin_bangou"], frame["name"], frame[OVERFLOW]):
                houjin_bangou = _text(bangou)
                if isinstance(overflow, str):
                    self._reject(None, f"more than {COLUMN_COUNT} fields (houjin_bangou {houjin_bangou!r})")
                    continue
                if not houjin_bangou:
                    self.dropped += 1
                    continue
                rows.append(CsvRow(houjin_bangou=houjin_bangou, name=_text(name)))
        return rows


def open_csv_source(path: str, encoding: str = "utf-8", chunk_size: int = 1000) -> HoujinCsvSource:
    try:
        # bad bytes become U+FFFD and only cost their own record
        stream = open(path, "r", encoding=encoding, errors="replace", newline="")
    except OSError as exc:
        raise SourceUnavailable(path, exc.strerror or str(exc)) from exc
    return HoujinCsvSource(stream, chunk_size=chunk_size)
