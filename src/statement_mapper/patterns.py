#!/usr/bin/env python3
"""
Date format, payment frequency and provider detection for statement-mapper.

Analyzes the date column of a statement to determine:
1. Date format (DD/MM/YYYY vs MM/DD/YYYY, ISO, month names, ...)
2. Payment frequency (weekly, monthly, quarterly, annual, custom, irregular)
3. Confidence scores for detected patterns

and identifies well-known UK pension providers from the file name and
headers.

Formats are written with DD/MM/YYYY-style tokens (YYYY YY MMMM MMM MM M DD
D HH mm ss). Parsing is strict: two-letter tokens need exactly two digits
and one-letter tokens reject a leading zero.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config_loader import DEFAULT_PATTERN_CONFIG, PatternConfig
from .fuzzy import round_score
from .logging_config import get_logger

# Initialize logger for this module
logger = get_logger(__name__)

# Known date formats to test (ordered by commonality in UK financial data)
DATE_FORMATS = (
    "DD/MM/YYYY",
    "DD-MM-YYYY",
    "DD.MM.YYYY",
    "D/M/YYYY",
    "D-M-YYYY",
    "DD/MM/YY",
    "D/M/YY",
    "YYYY-MM-DD",  # ISO format
    "MM/DD/YYYY",  # US format
    "M/D/YYYY",
    "DD MMM YYYY",  # 15 Jan 2024
    "D MMM YYYY",  # 5 Jan 2024
    "DD MMMM YYYY",  # 15 January 2024
    "MMMM D, YYYY",  # January 15, 2024
    "MMM D, YYYY",  # Jan 15, 2024
    "YYYY/MM/DD",
    "DD/MM/YYYY HH:mm:ss",
    "YYYY-MM-DD HH:mm:ss",
    "DD/MM/YYYY HH:mm",
)

DDMM_FORMAT = "DD/MM/YYYY"
MMDD_FORMAT = "MM/DD/YYYY"

MIN_YEAR = 1900
MAX_YEAR = 2100

# Frequency thresholds in days (with tolerance)
FREQUENCY_PATTERNS = {
    "weekly": {"target": 7, "tolerance": 2, "label": "Weekly"},
    "biweekly": {"target": 14, "tolerance": 3, "label": "Bi-weekly"},
    "monthly": {"target": 30, "tolerance": 5, "label": "Monthly"},
    "quarterly": {"target": 91, "tolerance": 10, "label": "Quarterly"},
    "annual": {"target": 365, "tolerance": 15, "label": "Annual"},
}

PROVIDER_SIGNATURES = {
    "Aviva": {
        "file_keywords": ["aviva"],
        "header_keywords": ["aviva", "policy number", "scheme name"],
        "confidence": 95,
    },
    "Scottish Widows": {
        "file_keywords": ["scottish", "widows", "sw"],
        "header_keywords": ["scottish widows", "plan number", "policy ref"],
        "confidence": 95,
    },
    "Standard Life": {
        "file_keywords": ["standard", "life", "sl"],
        "header_keywords": ["standard life", "policy id"],
        "confidence": 95,
    },
    "Nest Pension": {
        "file_keywords": ["nest", "nest pension"],
        "header_keywords": ["nest", "contribution id", "member id"],
        "confidence": 95,
    },
    "The People's Pension": {
        "file_keywords": ["peoples", "people's pension"],
        "header_keywords": ["people's pension", "member number"],
        "confidence": 95,
    },
    "Royal London": {
        "file_keywords": ["royal", "london"],
        "header_keywords": ["royal london", "plan ref"],
        "confidence": 95,
    },
    "Legal & General": {
        "file_keywords": ["legal", "general", "l&g"],
        "header_keywords": ["legal & general", "l&g", "policy number"],
        "confidence": 95,
    },
}

FILENAME_SCORE = 60
HEADER_SCORE = 40
UNKNOWN_PROVIDER = "Unknown"

# DD/MM/YYYY-style token -> (strptime directive, accepted text)
_TOKENS = {
    "YYYY": ("%Y", r"\d{4}"),
    "YY": ("%y", r"\d{2}"),  # 69-99 -> 1900s, 00-68 -> 2000s
    "MMMM": ("%B", r"[A-Za-z]+"),
    "MMM": ("%b", r"[A-Za-z]{3}"),
    "MM": ("%m", r"\d{2}"),
    "M": ("%m", r"[1-9]\d?"),
    "DD": ("%d", r"\d{2}"),
    "D": ("%d", r"[1-9]\d?"),
    "HH": ("%H", r"\d{2}"),
    "mm": ("%M", r"\d{2}"),
    "ss": ("%S", r"\d{2}"),
}
_TOKEN_PATTERN = re.compile(r"YYYY|YY|MMMM|MMM|MM|M|DD|D|HH|mm|ss")
_DIRECTIVE_KIND = {"%y": "%Y", "%B": "%m", "%b": "%m"}


@lru_cache(maxsize=64)
def translate_format(fmt: str) -> Tuple[str, "re.Pattern[str]"]:
    """
    Translate a DD/MM/YYYY-style format for pandas.

    Args:
        fmt: Format string built from the supported tokens

    Returns:
        Tuple of (strptime format, anchored width regex). strptime accepts
        "1" for %d and %m, so the regex is what keeps DD and MM strict.

    Raises:
        ValueError: If the format lacks a year, month or day, or repeats one
    """
    strptime_parts = []
    width_parts = []
    kinds = []
    position = 0
    for token in _TOKEN_PATTERN.finditer(fmt):
        literal = fmt[position:token.start()]
        directive, width = _TOKENS[token.group()]
        strptime_parts.extend([literal.replace("%", "%%"), directive])
        width_parts.extend([re.escape(literal), width])
        kinds.append(_DIRECTIVE_KIND.get(directive, directive))
        position = token.end()
    strptime_parts.append(fmt[position:].replace("%", "%%"))
    width_parts.append(re.escape(fmt[position:]))

    if len(set(kinds)) != len(kinds) or not {"%Y", "%m", "%d"} <= set(kinds):
        raise ValueError(f"Unsupported date format: {fmt!r}")
    return "".join(strptime_parts), re.compile("".join(width_parts), re.IGNORECASE)


def is_supported_format(fmt: str) -> bool:
    try:
        translate_format(fmt)
    except ValueError:
        return False
    return True


def parse_date(value: Any, fmt: str) -> Optional[datetime]:
    """
    Strictly parse a value with a DD/MM/YYYY-style format.

    Args:
        value: Raw cell value
        fmt: Format string built from the supported tokens

    Returns:
        Parsed datetime, or None when the value does not fit the format,
        is not a real calendar date, falls outside 1900-2100, or the
        format itself is unsupported
    """
    if value is None or not is_supported_format(fmt):
        return None
    strptime_format, width_pattern = translate_format(fmt)

    text = str(value).strip()
    if not width_pattern.fullmatch(text):
        return None

    parsed = pd.to_datetime(text, format=strptime_format, errors="coerce")
    if pd.isna(parsed):
        return None

    parsed = parsed.to_pydatetime()
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        return None
    return parsed


def _day_diff(earlier: datetime, later: datetime) -> int:
    """Whole days between two datetimes, truncated toward zero."""
    return int((later - earlier).total_seconds() / 86400)


@dataclass
class DateFormatResult:
    """Best date format for a column of values."""

    format: Optional[str]
    confidence: int
    parsed_dates: List[datetime] = field(default_factory=list)
    method: str = "none"


@dataclass
class FrequencyResult:
    """Payment frequency inferred from a series of dates."""

    frequency: str
    label: str
    confidence: int
    average_interval_days: Optional[int] = None
    standard_deviation: Optional[float] = None
    pattern_days: Optional[int] = None


@dataclass
class ProviderResult:
    """Provider identified from file name and headers."""

    provider: str
    confidence: int
    method: str


@dataclass(frozen=True)
class DateRange:
    earliest: str  # YYYY-MM-DD
    latest: str
    span_days: int


@dataclass(frozen=True)
class PatternAnalysis:
    """Snapshot of everything inferred from a date column."""

    date_format: Optional[str]
    format_confidence: int
    format_method: str
    frequency: str
    frequency_label: str
    frequency_confidence: int
    average_interval_days: Optional[int]
    standard_deviation: Optional[float]
    date_range: Optional[DateRange]
    total_dates: int
    valid_dates: int
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date_format": self.date_format,
            "format_confidence": self.format_confidence,
            "format_method": self.format_method,
            "frequency": self.frequency,
            "frequency_label": self.frequency_label,
            "frequency_confidence": self.frequency_confidence,
            "average_interval_days": self.average_interval_days,
            "standard_deviation": self.standard_deviation,
            "date_range": (
                {
                    "earliest": self.date_range.earliest,
                    "latest": self.date_range.latest,
                    "span_days": self.date_range.span_days,
                }
                if self.date_range
                else None
            ),
            "total_dates": self.total_dates,
            "valid_dates": self.valid_dates,
            "summary": self.summary,
        }


class PatternDetector:
    """Detects date formats, payment frequencies and providers."""

    def __init__(self, config: Optional[PatternConfig] = None):
        self.config = config or DEFAULT_PATTERN_CONFIG

    def detect_date_format(
        self, values: Sequence[Any], sample_size: Optional[int] = None
    ) -> DateFormatResult:
        """
        Detect the date format of a column.

        Args:
            values: Raw date strings
            sample_size: Number of non-empty values to test

        Returns:
            DateFormatResult; format is None when no format scores well enough
        """
        if sample_size is None:
            sample_size = self.config.sample_size

        clean_dates = [str(v).strip() for v in values or [] if v]
        clean_dates = [d for d in clean_dates if d][:sample_size]
        if not clean_dates:
            return DateFormatResult(None, 0)

        scored: List[Tuple[str, float, List[datetime]]] = []
        for fmt in DATE_FORMATS:
            parsed_dates = [
                parsed for parsed in (parse_date(d, fmt) for d in clean_dates) if parsed
            ]
            parse_rate = len(parsed_dates) / len(clean_dates)
            chronology_rate = self._chronology_rate(parsed_dates)
            score = (
                parse_rate * self.config.parse_weight
                + chronology_rate * self.config.chronology_weight
            )
            scored.append((fmt, score, parsed_dates))

        # Stable sort: UK-first list order breaks ties
        scored.sort(key=lambda item: item[1], reverse=True)
        best_format, best_score, best_dates = scored[0]

        if best_score < self.config.min_format_score:
            logger.debug(f"No date format reached {self.config.min_format_score} (best {best_format})")
            return DateFormatResult(None, 0)

        confidence = round_score(best_score * 100)
        method = "pattern_matching"

        if best_format in (DDMM_FORMAT, MMDD_FORMAT) and confidence < self.config.ambiguity_confidence:
            method = "ambiguity_resolved"
            disambiguation = self.disambiguate_day_month(clean_dates)
            if disambiguation.format:
                return disambiguation

        return DateFormatResult(best_format, confidence, best_dates, method)

    def _chronology_rate(self, parsed_dates: List[datetime]) -> float:
        """Share of consecutive pairs closer than the maximum plausible gap."""
        if len(parsed_dates) < 2:
            return 1.0
        consistent = sum(
            1
            for previous, current in zip(parsed_dates, parsed_dates[1:])
            if abs(_day_diff(previous, current)) < self.config.max_chronology_gap_days
        )
        return consistent / (len(parsed_dates) - 1)

    def disambiguate_day_month(self, values: Sequence[str]) -> DateFormatResult:
        """
        Decide between DD/MM/YYYY and MM/DD/YYYY from numeric ranges.

        A first number above 12 can only be a day, a second number above 12
        can only be a day in US order. Values where both are 12 or less give
        a small vote to the UK order.
        """
        ddmm_score = 0.0
        mmdd_score = 0.0

        for value in values[:30]:
            parts = [p for p in re.split(r"[\s,.\-/]+", value) if p.isdigit()]
            if len(parts) < 2:
                continue
            first, second = int(parts[0]), int(parts[1])

            if first > 12 and second <= 12:
                ddmm_score += 2
            elif second > 12 and first <= 12:
                mmdd_score += 2
            elif first <= 12 and second <= 12:
                ddmm_score += 0.5

        total = ddmm_score + mmdd_score
        if total == 0:
            return DateFormatResult(None, 0)

        fmt = DDMM_FORMAT if ddmm_score > mmdd_score else MMDD_FORMAT
        confidence = round_score(max(ddmm_score, mmdd_score) / total * 100)
        parsed_dates = [
            parsed for parsed in (parse_date(v, fmt) for v in values[:30]) if parsed
        ]
        return DateFormatResult(fmt, confidence, parsed_dates, "numeric_analysis")

    def detect_frequency(
        self, dates: Sequence[datetime], min_samples: Optional[int] = None
    ) -> FrequencyResult:
        """
        Detect payment frequency from parsed dates.

        Args:
            dates: Parsed dates in any order
            min_samples: Minimum number of dates for a reliable answer

        Returns:
            FrequencyResult (insufficient_data, a known pattern, custom or irregular)
        """
        if min_samples is None:
            min_samples = self.config.min_frequency_samples

        if not dates or len(dates) < min_samples:
            return FrequencyResult("insufficient_data", "Insufficient Data", 0)

        sorted_dates = sorted(dates)
        intervals = [
            diff
            for diff in (
                _day_diff(previous, current)
                for previous, current in zip(sorted_dates, sorted_dates[1:])
            )
            if diff > 0
        ]

        if not intervals:
            return FrequencyResult("irregular", "Irregular", 0)

        average = float(np.mean(intervals))
        std_dev = float(np.std(intervals))  # population standard deviation
        rounded_std = round_score(std_dev * 10) / 10

        best_match = None
        best_score = 0.0
        for key, pattern in FREQUENCY_PATTERNS.items():
            deviation = abs(average - pattern["target"])
            if deviation > pattern["tolerance"]:
                continue

            proximity = 1 - deviation / pattern["tolerance"]
            consistency = max(0.0, 1 - std_dev / (pattern["tolerance"] * 2))
            score = proximity * 0.6 + consistency * 0.4

            if score > best_score:
                best_score = score
                best_match = FrequencyResult(
                    frequency=key,
                    label=pattern["label"],
                    confidence=round_score(score * 100),
                    average_interval_days=round_score(average),
                    standard_deviation=rounded_std,
                    pattern_days=pattern["target"],
                )

        if best_match is not None:
            return best_match

        if std_dev < average * 0.3:
            # Consistent, just not a standard calendar period
            return FrequencyResult(
                frequency="custom",
                label=f"Every {round_score(average)} days",
                confidence=round_score(max(0.0, 1 - std_dev / average) * 100),
                average_interval_days=round_score(average),
                standard_deviation=rounded_std,
                pattern_days=round_score(average),
            )

        return FrequencyResult(
            frequency="irregular",
            label="Irregular",
            confidence=50,
            average_interval_days=round_score(average),
            standard_deviation=rounded_std,
        )

    def detect_provider(self, file_name: str = "", headers: Sequence[str] = ()) -> ProviderResult:
        """
        Identify a provider from the file name and column headers.

        A file name keyword scores 60 and a header keyword 40, capped at the
        provider's declared confidence. No hit, or a tie between providers
        for the top score, gives "Unknown".
        """
        file_name_lower = (file_name or "").lower()
        headers_lower = [str(h).lower() for h in headers or []]

        scored = []
        for provider, signature in PROVIDER_SIGNATURES.items():
            score = 0
            methods = []

            if any(keyword in file_name_lower for keyword in signature["file_keywords"]):
                score += FILENAME_SCORE
                methods.append("filename")

            if any(
                keyword in header
                for keyword in signature["header_keywords"]
                for header in headers_lower
            ):
                score += HEADER_SCORE
                methods.append("headers")

            if score > 0:
                scored.append((score, provider, signature["confidence"], " + ".join(methods)))

        if not scored:
            return ProviderResult(UNKNOWN_PROVIDER, 0, "none")

        top_score = max(item[0] for item in scored)
        leaders = [item for item in scored if item[0] == top_score]
        if len(leaders) > 1:
            logger.debug(f"Provider tie at {top_score}: {[item[1] for item in leaders]}")
            return ProviderResult(UNKNOWN_PROVIDER, 0, "ambiguous")

        score, provider, cap, method = leaders[0]
        return ProviderResult(provider, min(cap, score), method)

    def analyze_patterns(self, values: Sequence[Any]) -> PatternAnalysis:
        """
        Analyze a column of dates and return comprehensive pattern information.

        Args:
            values: Raw date strings from the mapped date column

        Returns:
            PatternAnalysis; a "no pattern" snapshot when no format is found
        """
        values = list(values or [])
        format_result = self.detect_date_format(values)

        if not format_result.format or not format_result.parsed_dates:
            return PatternAnalysis(
                date_format=None,
                format_confidence=0,
                format_method="none",
                frequency="insufficient_data",
                frequency_label="Insufficient Data",
                frequency_confidence=0,
                average_interval_days=None,
                standard_deviation=None,
                date_range=None,
                total_dates=len(values),
                valid_dates=0,
                summary="Unable to detect date pattern",
            )

        frequency_result = self.detect_frequency(format_result.parsed_dates)

        sorted_dates = sorted(format_result.parsed_dates)
        date_range = DateRange(
            earliest=sorted_dates[0].strftime("%Y-%m-%d"),
            latest=sorted_dates[-1].strftime("%Y-%m-%d"),
            span_days=_day_diff(sorted_dates[0], sorted_dates[-1]),
        )

        summary = (
            f"Detected {format_result.format} format ({format_result.confidence}% confidence) "
            f"with {frequency_result.label.lower()} payments"
        )

        return PatternAnalysis(
            date_format=format_result.format,
            format_confidence=format_result.confidence,
            format_method=format_result.method,
            frequency=frequency_result.frequency,
            frequency_label=frequency_result.label,
            frequency_confidence=frequency_result.confidence,
            average_interval_days=frequency_result.average_interval_days,
            standard_deviation=frequency_result.standard_deviation,
            date_range=date_range,
            total_dates=len(values),
            valid_dates=len(format_result.parsed_dates),
            summary=summary,
        )


def detect_date_format(
    values: Sequence[Any], sample_size: int = 20, config: Optional[PatternConfig] = None
) -> DateFormatResult:
    """Detect the date format of a column (see PatternDetector.detect_date_format)."""
    return PatternDetector(config).detect_date_format(values, sample_size)


def detect_frequency(
    dates: Sequence[datetime], min_samples: int = 3, config: Optional[PatternConfig] = None
) -> FrequencyResult:
    """Detect payment frequency (see PatternDetector.detect_frequency)."""
    return PatternDetector(config).detect_frequency(dates, min_samples)


def detect_provider(file_name: str = "", headers: Sequence[str] = ()) -> ProviderResult:
    """Identify the provider of a file (see PatternDetector.detect_provider)."""
    return PatternDetector().detect_provider(file_name, headers)


def analyze_patterns(values: Sequence[Any], config: Optional[PatternConfig] = None) -> PatternAnalysis:
    """Full date column analysis (see PatternDetector.analyze_patterns)."""
    return PatternDetector(config).analyze_patterns(values)
