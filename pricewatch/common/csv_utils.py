"""
CSV Utilities

Common functions for reading URL lists and appending result rows.
"""

import csv
from pathlib import Path
from typing import Dict, Iterator, List


def read_csv(file_path: str | Path, encoding: str = 'utf-8') -> Iterator[Dict[str, str]]:
    """
    Read CSV file and yield rows as dictionaries.

    Args:
        file_path: Path to CSV file
        encoding: File encoding (default: utf-8)

    Yields:
        Dictionary for each row with column names as keys
    """
    with open(file_path, 'r', encoding=encoding, newline='') as f:
        reader = csv.DictReader(f)
        for row in reader:
            yield row


def append_csv_row(
    file_path: str | Path,
    row: Dict[str, object],
    fieldnames: List[str],
    encoding: str = 'utf-8',
) -> None:
    """
    Append one row to a CSV file, writing the header if the file is new.

    Args:
        file_path: Path to output CSV file
        row: Row dictionary (keys must be a subset of fieldnames)
        fieldnames: Column order
        encoding: File encoding (default: utf-8)
    """
    path = Path(file_path)
    write_header = not path.exists() or path.stat().st_size == 0

    with open(path, 'a', encoding=encoding, newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction='ignore')
        if write_header:
            writer.writeheader()
        writer.writerow(row)


def read_url_list(file_path: str | Path, column: str = 'url') -> List[str]:
    """
    Read product URLs from a text file (one per line) or a CSV with a url column.

    Blank lines and lines starting with '#' are skipped.
    """
    path = Path(file_path)
    if path.suffix.lower() == '.csv':
        return [row[column].strip() for row in read_csv(path) if row.get(column, '').strip()]

    urls = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#'):
                urls.append(line)
    return urls
