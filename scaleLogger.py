# file: scaleLogger.py
import os
import csv
from dataclasses import dataclass, astuple

COLUMNS = ["time_since_tare", "raw", "raw_weight", "raw_error"]


@dataclass
class Record:
    """One reading from the scale, fields kept as the strings received."""
    time_since_tare: str = ""
    raw: str = ""
    raw_weight: str = ""
    raw_error: str = ""

    def as_row(self):
        return list(astuple(self))


def split_fields(line: str):
    return line.strip().split(",")


def parse_record(line: str) -> Record:
    """Positional parse: extra tokens are dropped, missing ones left empty."""
    entries = split_fields(line)[:len(COLUMNS)]
    return Record(*entries)


class LineFramer:
    """Cuts a raw byte stream into stripped text lines on b'\\n'."""
    def __init__(self, encoding="utf-8"):
        self.encoding = encoding
        self._buf = b""

    def feed(self, chunk: bytes):
        self._buf += chunk
        *complete, self._buf = self._buf.split(b"\n")
        lines = []
        for raw in complete:
            # only a bare newline is skipped; "\r" or spaces give an empty line
            if raw:
                lines.append(raw.decode(self.encoding, errors="ignore").strip())
        return lines

    @property
    def pending(self) -> bytes:
        return self._buf


class CsvSink:
    """
    Append-only CSV file. Nothing touches the disk until the first record;
    the header goes in only when the file is new or empty.
    """
    def __init__(self, path, columns=COLUMNS):
        self.path = path
        self.columns = list(columns)
        self.rows = 0
        self._f = None
        self._writer = None

    def _open(self):
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        try:
            is_file_empty = os.path.getsize(self.path) == 0
        except FileNotFoundError:
            is_file_empty = True
        self._f = open(self.path, "a", newline="")
        self._writer = csv.writer(self._f)
        if is_file_empty:
            self._writer.writerow(self.columns)

    def write(self, record: Record):
        if self._f is None:
            self._open()
        self._writer.writerow(record.as_row())
        self._f.flush()
        self.rows += 1

    def close(self):
        if self._f is not None and not self._f.closed:
            self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
