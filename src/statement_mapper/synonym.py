#!/usr/bin/env python3
"""
Synonym catalog and context schemas for statement-mapper.

Contains the per-context dictionaries used for header matching:
- Canonical field definitions (key, label, type, examples)
- Header synonyms for every field (UK statement vocabulary)
- Required/optional field lists
- Shape validators applied to raw cell values

All tables are module-level constants built at import time and never
mutated afterwards.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .logging_config import get_logger

logger = get_logger(__name__)

Validator = Callable[[Any], bool]


class Context(str, Enum):
    """Domain of a financial statement."""

    PENSIONS = "pensions"
    SAVINGS = "savings"
    DEBTS = "debts"
    INVESTMENTS = "investments"


DEFAULT_CONTEXT = Context.SAVINGS


@dataclass(frozen=True)
class FieldDefinition:
    """Canonical field expected in a context."""

    key: str
    label: str
    description: str
    type: str  # "date", "currency", "number", "text", "select"
    examples: Tuple[str, ...] = ()
    options: Tuple[str, ...] = ()
    allow_empty: bool = False  # Sparse columns (debit/credit) leave cells blank


@dataclass(frozen=True)
class ContextSchema:
    """Expected fields for one context."""

    context: Context
    label: str
    required: Tuple[FieldDefinition, ...]
    optional: Tuple[FieldDefinition, ...]


# Header synonyms per context. Field order is the matching order.
SYNONYMS: Dict[Context, Dict[str, Tuple[str, ...]]] = {
    Context.PENSIONS: {
        "date": (
            "date", "contribution date", "payment date", "transaction date",
            "effective date", "date paid", "payment_date", "contrib_date",
            "trans_date",
        ),
        "provider": (
            "provider", "pension provider", "scheme", "pension scheme",
            "company", "employer", "fund", "pension fund", "scheme name",
            "provider name", "plan name",
        ),
        "amount": (
            "amount", "contribution", "payment", "amount paid",
            "contribution amount", "gross contribution", "net contribution",
            "total contribution", "value", "payment amount", "contrib_amount",
            "gross", "net", "total",
        ),
        "employee_contribution": (
            "employee contribution", "employee", "member contribution",
            "personal contribution", "your contribution", "ee contribution",
            "ee_contrib",
        ),
        "employer_contribution": (
            "employer contribution", "employer", "company contribution",
            "matched contribution", "er contribution", "er_contrib",
        ),
        "description": (
            "description", "reference", "details", "narrative", "memo",
        ),
    },
    Context.SAVINGS: {
        "date": (
            "date", "transaction date", "posting date", "value date",
            "date_posted", "trans_date",
        ),
        "description": (
            "description", "transaction description", "details", "narrative",
            "memo", "payee", "reference", "trans_desc",
        ),
        "debit": (
            "debit", "money out", "withdrawal", "debit amount", "paid out",
            "spent", "debits",
        ),
        "credit": (
            "credit", "money in", "deposit", "credit amount", "paid in",
            "received", "credits",
        ),
        "balance": (
            "balance", "account balance", "running balance", "current balance",
            "closing balance", "available balance",
        ),
        "amount": (
            "amount", "transaction amount", "value", "total", "trans_amount",
        ),
    },
    Context.DEBTS: {
        "date": (
            "date", "payment date", "transaction date", "due date", "date_paid",
        ),
        "description": (
            "description", "transaction type", "payment type", "details",
            "reference",
        ),
        "payment": (
            "payment", "amount paid", "payment amount", "value", "total payment",
        ),
        "balance": (
            "balance", "outstanding balance", "remaining balance",
            "balance outstanding", "amount owed",
        ),
        "interest_charged": (
            "interest", "interest charged", "interest rate", "apr", "charges",
        ),
        "fees": (
            "fees", "fee", "late fee", "fees charged", "admin fee",
        ),
    },
    Context.INVESTMENTS: {
        "date": (
            "date", "trade date", "transaction date", "settlement date",
            "date_time", "time",
        ),
        "action": (
            "action", "transaction type", "type", "buy/sell", "side", "activity",
        ),
        "ticker": (
            "ticker", "symbol", "ticker symbol", "instrument", "isin",
            "stock", "security",
        ),
        "shares": (
            "shares", "no. of shares", "number of shares", "quantity", "qty",
            "units",
        ),
        "price_per_share": (
            "price", "price per share", "price / share", "share price",
            "unit price",
        ),
        "total": (
            "total", "total value", "value", "consideration", "net amount",
        ),
        "currency": (
            "currency", "ccy", "currency code",
        ),
        "exchange_rate": (
            "exchange rate", "fx rate", "fx", "rate",
        ),
        "fees": (
            "fees", "fee", "commission", "charges", "transaction fee",
            "stamp duty",
        ),
    },
}


def _field(key, label, description, type_, examples=(), options=(), allow_empty=False):
    return FieldDefinition(
        key=key,
        label=label,
        description=description,
        type=type_,
        examples=tuple(examples),
        options=tuple(options),
        allow_empty=allow_empty,
    )


CONTEXT_SCHEMAS: Dict[Context, ContextSchema] = {
    Context.PENSIONS: ContextSchema(
        context=Context.PENSIONS,
        label="Pensions",
        required=(
            _field("date", "Date Column", "Date when the pension contribution was made",
                   "date", ["01/04/2024", "2024-04-01", "1 Apr 2024"]),
            _field("provider", "Provider Column", "Pension provider or scheme name",
                   "text", ["Aviva", "Nest Pension"]),
            _field("amount", "Amount Column", "Total contribution amount (£)",
                   "currency", ["£250.00", "250", "250.00"]),
        ),
        optional=(
            _field("employee_contribution", "Employee Contribution",
                   "Contribution paid by the member", "currency",
                   ["£150.00", "150.00"], allow_empty=True),
            _field("employer_contribution", "Employer Contribution",
                   "Contribution paid by the employer", "currency",
                   ["£100.00", "100.00"], allow_empty=True),
            _field("description", "Description Column",
                   "Optional description or reference for the contribution", "text"),
        ),
    ),
    Context.SAVINGS: ContextSchema(
        context=Context.SAVINGS,
        label="Savings",
        required=(
            _field("date", "Transaction Date", "Date of the transaction",
                   "date", ["01/04/2024", "2024-04-01"]),
        ),
        optional=(
            _field("description", "Transaction Description", "Details of the transaction",
                   "text", ["Direct Debit to UTILITY CO", "SALARY PAYMENT"]),
            _field("debit", "Debit (Money Out)", "Amount withdrawn or spent",
                   "currency", ["£50.00", "50", "50.00"], allow_empty=True),
            _field("credit", "Credit (Money In)", "Amount deposited or received",
                   "currency", ["£1500.00", "1500", "1500.00"], allow_empty=True),
            _field("balance", "Account Balance", "Balance after transaction",
                   "currency", ["£2450.00", "2450", "2450.00"]),
            _field("amount", "Transaction Amount", "Absolute transaction value",
                   "currency", ["£50.00", "-£50.00", "50"]),
        ),
    ),
    Context.DEBTS: ContextSchema(
        context=Context.DEBTS,
        label="Debts",
        required=(
            _field("date", "Payment Date", "Date of payment or transaction",
                   "date", ["01/04/2024", "2024-04-01"]),
            _field("payment", "Payment Amount", "Amount paid towards debt",
                   "currency", ["£100.00", "100", "100.00"]),
            _field("balance", "Outstanding Balance", "Remaining debt balance",
                   "currency", ["£2500.00", "2500", "2500.00"]),
        ),
        optional=(
            _field("description", "Transaction Description",
                   "Payment type or transaction details", "text",
                   ["Monthly Payment", "Additional Payment", "Purchase"]),
            _field("interest_charged", "Interest Charged", "Interest added to balance",
                   "currency", ["£15.50", "15.50"], allow_empty=True),
            _field("fees", "Fees Charged", "Any additional fees",
                   "currency", ["£5.00", "5.00"], allow_empty=True),
        ),
    ),
    Context.INVESTMENTS: ContextSchema(
        context=Context.INVESTMENTS,
        label="Investments",
        required=(
            _field("date", "Transaction Date", "Date of the investment transaction",
                   "date", ["01/04/2024", "2024-04-01"]),
            _field("action", "Action Type", "Type of transaction", "select",
                   ["Market buy", "Limit sell", "Dividend payment"],
                   options=["Buy", "Sell", "Dividend", "Interest"]),
            _field("ticker", "Ticker Symbol", "Stock or fund identifier",
                   "text", ["VUSA", "AAPL", "VWRL"]),
            _field("shares", "Number of Shares", "Quantity bought or sold",
                   "number", ["10", "2.5", "100"]),
            _field("price_per_share", "Price Per Share", "Share price at transaction",
                   "currency", ["£85.50", "85.50"]),
            _field("total", "Total Value", "Total transaction value",
                   "currency", ["£855.00", "855.00"]),
        ),
        optional=(
            _field("currency", "Currency", "Transaction currency",
                   "text", ["GBP", "USD", "EUR"]),
            _field("exchange_rate", "Exchange Rate",
                   "FX rate if currency conversion occurred", "number",
                   ["1.27", "1.1"], allow_empty=True),
            _field("fees", "Transaction Fees", "Broker fees or charges",
                   "currency", ["£0.00", "5.00"], allow_empty=True),
        ),
    ),
}


# Cell shape patterns. They only nudge confidence.
MONTH_NAME = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*"
DATE_PATTERNS = (
    re.compile(r"\d{1,4}[\s,.\-/]\d{1,2}[\s,.\-/]\d{1,4}"),
    re.compile(r"\d{1,2}(?:st|nd|rd|th)?\s+" + MONTH_NAME, re.IGNORECASE),
    re.compile(MONTH_NAME + r"\s+\d{1,2}", re.IGNORECASE),
)
CURRENCY_PATTERN = re.compile(r"^-?[£$€]?\s*-?\d+([,.]\d{3})*(\.\d{2})?$")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_date_like(value: Any) -> bool:
    """True when the value contains a date-shaped run of characters."""
    if _is_blank(value):
        return False
    text = str(value).strip()
    return any(pattern.search(text) for pattern in DATE_PATTERNS)


def is_currency_like(value: Any, allow_empty: bool = False) -> bool:
    """True for amounts like 100, £1,250.00 or -£50.00."""
    if _is_blank(value):
        return allow_empty
    if _is_numeric(value):
        return True
    return bool(CURRENCY_PATTERN.match(str(value).strip()))


def is_number_like(value: Any, allow_empty: bool = False) -> bool:
    """True for plain decimal numbers."""
    if _is_blank(value):
        return allow_empty
    if _is_numeric(value):
        return True
    return bool(NUMBER_PATTERN.match(str(value).strip()))


def is_option_like(value: Any, options: Tuple[str, ...]) -> bool:
    """True when the value overlaps one of the select options ("Market buy" ~ "Buy")."""
    if _is_blank(value):
        return False
    text = str(value).strip().lower()
    return any(opt.lower() in text or text in opt.lower() for opt in options)


def build_validator(definition: FieldDefinition) -> Optional[Validator]:
    """Return the cell validator for a field definition, or None for free text."""
    if definition.type == "date":
        return is_date_like
    if definition.type == "currency":
        return lambda value: is_currency_like(value, definition.allow_empty)
    if definition.type == "number":
        return lambda value: is_number_like(value, definition.allow_empty)
    if definition.type == "select":
        return lambda value: is_option_like(value, definition.options)
    return None


VALIDATORS: Dict[Context, Dict[str, Validator]] = {
    context: {
        definition.key: validator
        for definition in schema.required + schema.optional
        for validator in [build_validator(definition)]
        if validator is not None
    }
    for context, schema in CONTEXT_SCHEMAS.items()
}


class SynonymCatalog:
    """Lookup helpers over the per-context synonym and schema tables."""

    @staticmethod
    def resolve_context(context: Any) -> Context:
        """Coerce a context name to Context, falling back to savings for unknown names."""
        if isinstance(context, Context):
            return context
        try:
            return Context(str(context).strip().lower())
        except ValueError:
            logger.debug(f"Unknown context '{context}', using {DEFAULT_CONTEXT.value}")
            return DEFAULT_CONTEXT

    @classmethod
    def get_context_fields(cls, context: Any) -> List[str]:
        """Fields that carry synonyms, in matching order."""
        return list(SYNONYMS[cls.resolve_context(context)].keys())

    @classmethod
    def get_synonyms(cls, context: Any, field: str) -> List[str]:
        """Header synonyms for a field (empty list for unknown fields)."""
        return list(SYNONYMS[cls.resolve_context(context)].get(field, ()))

    @classmethod
    def get_validator(cls, context: Any, field: str) -> Optional[Validator]:
        """Cell shape validator for a field, or None if the field is free text."""
        return VALIDATORS[cls.resolve_context(context)].get(field)

    @classmethod
    def get_schema(cls, context: Any) -> ContextSchema:
        return CONTEXT_SCHEMAS[cls.resolve_context(context)]

    @classmethod
    def get_required_fields(cls, context: Any) -> List[str]:
        return [f.key for f in cls.get_schema(context).required]

    @classmethod
    def get_optional_fields(cls, context: Any) -> List[str]:
        return [f.key for f in cls.get_schema(context).optional]

    @classmethod
    def get_all_fields(cls, context: Any) -> List[FieldDefinition]:
        schema = cls.get_schema(context)
        return list(schema.required + schema.optional)

    @classmethod
    def get_field_definition(cls, context: Any, key: str) -> Optional[FieldDefinition]:
        for definition in cls.get_all_fields(context):
            if definition.key == key:
                return definition
        return None

    @classmethod
    def is_required_field(cls, context: Any, key: str) -> bool:
        return key in cls.get_required_fields(context)


# Module-level shortcuts
resolve_context = SynonymCatalog.resolve_context
get_context_fields = SynonymCatalog.get_context_fields
get_synonyms = SynonymCatalog.get_synonyms
get_validator = SynonymCatalog.get_validator
get_schema = SynonymCatalog.get_schema
get_required_fields = SynonymCatalog.get_required_fields
get_optional_fields = SynonymCatalog.get_optional_fields
get_all_fields = SynonymCatalog.get_all_fields
get_field_definition = SynonymCatalog.get_field_definition
is_required_field = SynonymCatalog.is_required_field
