#!/usr/bin/env python3
"""
Row extraction for statement files in statement-mapper.

Turns an uploaded statement into headers plus raw rows:
- CSV files (comma separated, optional UTF-8 BOM)
- Excel workbooks (first sheet unless told otherwise)

Every extractor produces the same ExtractionResult, so mapping and pattern
detection work identically whatever the source was. OCR/PDF text
extraction lives outside this package; it only has to implement
RowExtractor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pandas as pd

from .errors import ExtractionError, UnsupportedFileError
from .fuzzy import round_score
from .logging_config import get_logger

# Initialize logger for this module
logger = get_logger(__name__)

# progress(stage, message, percent)
ProgressCallback = Callable[[str, str, int], None]


@dataclass
class ExtractionResult:
    """Headers and raw rows read from a statement file."""

    headers: List[str]
    rows: List[Dict[str, Any]]
    quality: int = 0  # Share of non-empty cells (0-100)
    stats: Dict[str, Any] = field(default_factory=dict)


def _notify(progress: Optional[ProgressCallback], stage: str, message: str, percent: int) -> None:
    if progress is not None:
        progress(stage, message, percent)


def dataframe_to_result(df: pd.DataFrame, source: str) -> ExtractionResult:
    """
    Convert a string-typed DataFrame into an ExtractionResult.

    Headers are stripped, fully blank rows are dropped and missing cells
    become empty strings.
    """
    df = df.fillna("")
    df.columns = [str(col).strip() for col in df.columns]

    if len(df.columns) > 0 and len(df) > 0:
        blank = df.apply(lambda col: col.astype(str).str.strip() == "")
        df = df[~blank.all(axis=1)]

    headers = list(df.columns)
    rows = df.to_dict(orient="records")

    total_cells = len(rows) * len(headers)
    empty_cells = sum(1 for row in rows for value in row.values() if str(value).strip() == "")
    quality = round_score((total_cells - empty_cells) / total_cells * 100) if total_cells else 0

    return ExtractionResult(
        headers=headers,
        rows=rows,
        quality=quality,
        stats={
            "source": source,
            "row_count": len(rows),
            "column_count": len(headers),
            "empty_cells": empty_cells,
        },
    )


class RowExtractor(ABC):
    """Base class for anything that can turn a file into rows."""

    source = "unknown"

    @abstractmethod
    def read_dataframe(self, path: Path) -> pd.DataFrame:
        """Load the whole file as a string-typed DataFrame."""

    def extract_rows(
        self, path: Union[str, Path], progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        """
        Read a statement file.

        Args:
            path: File to read
            progress: Optional callback receiving (stage, message, percent)

        Returns:
            ExtractionResult with headers, rows, quality and stats

        Raises:
            ExtractionError: If the file is missing, empty or unreadable
        """
        path = Path(path)
        _notify(progress, "load", f"Reading {path.name}", 0)

        try:
            df = self.read_dataframe(path)
        except FileNotFoundError as e:
            raise ExtractionError(f"File not found: {path}") from e
        except pd.errors.EmptyDataError as e:
            raise ExtractionError(f"File appears empty: {path}") from e
        except (pd.errors.ParserError, ValueError, OSError) as e:
            raise ExtractionError(f"Error reading {path}: {e}") from e

        _notify(progress, "parse", f"Parsing {len(df)} rows", 50)
        result = dataframe_to_result(df, self.source)

        if not result.headers:
            raise ExtractionError(f"File appears empty or improperly formatted: {path}")

        logger.info(
            f"Extracted {result.stats['row_count']} rows x {result.stats['column_count']} "
            f"columns from {path.name} (quality {result.quality}%)"
        )
        _notify(progress, "done", "Extraction complete", 100)
        return result


class CsvExtractor(RowExtractor):
    """CSV statements, read as text without type inference."""

    source = "csv"

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def read_dataframe(self, path: Path) -> pd.DataFrame:
        return pd.read_csv(
            path,
            sep=self.delimiter,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )


class ExcelExtractor(RowExtractor):
    """Excel statements; reads the first sheet unless a sheet name is given."""

    source = "excel"

    def __init__(self, sheet: Union[str, int] = 0):
        self.sheet = sheet

    def read_dataframe(self, path: Path) -> pd.DataFrame:
        return pd.read_excel(path, sheet_name=self.sheet, dtype=str)


EXTRACTORS = {
    ".csv": CsvExtractor,
    ".txt": CsvExtractor,
    ".xlsx": ExcelExtractor,
    ".xls": ExcelExtractor,
}


def get_extractor(path: Union[str, Path]) -> RowExtractor:
    """Pick the extractor for a file by its extension."""
    suffix = Path(path).suffix.lower()
    extractor_cls = EXTRACTORS.get(suffix)
    if extractor_cls is None:
        raise UnsupportedFileError(
            f"Unsupported file type '{suffix or Path(path).name}'. Please upload a CSV or Excel file."
        )
    return extractor_cls()


def extract_rows(
    path: Union[str, Path], progress: Optional[ProgressCallback] = None
) -> ExtractionResult:
    """Read a CSV or Excel statement into headers and rows."""
    return get_extractor(path).extract_rows(path, progress)
