"""
Pydantic validators for brokerage transaction exports.
"""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict

DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")

_CURRENCY_CHARS = re.compile(r"[$,]")


def _to_decimal(value: Any) -> Optional[Decimal]:
  if value is None:
    return None
  if isinstance(value, Decimal):
    return value if value.is_finite() else None
  if isinstance(value, (int, float)):
    value = str(value)
  cleaned = _CURRENCY_CHARS.sub("", str(value)).strip()
  if not cleaned:
    return None
  try:
    parsed = Decimal(cleaned)
  except InvalidOperation:
    return None
  return parsed if parsed.is_finite() else None


def parse_transaction_amount(value: Any) -> Decimal:
  """
  Parse a currency string like "$1,234.56" or "-$1,234.56".
  Empty or unparseable values are zero.
  """
  parsed = _to_decimal(value)
  return parsed if parsed is not None else Decimal(0)


def parse_quantity(value: Any) -> Optional[Decimal]:
  """Parse a quantity string like "1,200"; None when empty or unparseable."""
  return _to_decimal(value)


def parse_price(value: Any) -> Optional[Decimal]:
  """Parse a price string like "$24.285"; None when empty or unparseable."""
  return _to_decimal(value)


def strip_date_suffix(value: str) -> str:
  """
  Leading date token of a transaction date.
  "03/14/2024 as of 03/12/2024" -> "03/14/2024"
  """
  if not value:
    return ""
  parts = value.strip().split()
  return parts[0] if parts else ""


def parse_trade_date(value: str) -> Optional[date]:
  """Parse the leading date token; None when it matches no known format."""
  token = strip_date_suffix(value)
  for fmt in DATE_FORMATS:
    try:
      return datetime.strptime(token, fmt).date()
    except ValueError:
      continue
  return None


class RawBrokerageTransaction(BaseModel):
  """Validator for one row of a brokerage transaction export."""

  date: str = Field(alias="Date", min_length=1)
  action: str = Field(alias="Action", min_length=1)
  symbol: Optional[str] = Field(default=None, alias="Symbol")
  description: str = Field(default="", alias="Description")
  quantity: Optional[Decimal] = Field(default=None, alias="Quantity")
  price: Optional[Decimal] = Field(default=None, alias="Price")
  fees_and_comm: Optional[Decimal] = Field(default=None, alias="Fees & Comm")
  amount: Decimal = Field(default=Decimal(0), alias="Amount")
  acctg_rule_cd: str = Field(default="", alias="AcctgRuleCd")

  model_config = ConfigDict(populate_by_name=True)

  @field_validator("date", "action", mode="before")
  @classmethod
  def strip_text(cls, v):
    """Trim surrounding whitespace from required text fields."""
    if isinstance(v, str):
      return v.strip()
    return v

  @field_validator("symbol", mode="before")
  @classmethod
  def blank_symbol_is_none(cls, v):
    """Dividend, interest and fee rows carry an empty symbol."""
    if v is None:
      return None
    v = str(v).strip()
    return v or None

  @field_validator("description", "acctg_rule_cd", mode="before")
  @classmethod
  def none_is_empty(cls, v):
    return "" if v is None else v

  @field_validator("quantity", mode="before")
  @classmethod
  def parse_quantity_field(cls, v):
    return parse_quantity(v)

  @field_validator("price", "fees_and_comm", mode="before")
  @classmethod
  def parse_price_field(cls, v):
    return parse_price(v)

  @field_validator("amount", mode="before")
  @classmethod
  def parse_amount_field(cls, v):
    return parse_transaction_amount(v)


class RawTransactionFile(BaseModel):
  """Validator for the envelope of a brokerage transaction export."""

  from_date: str = Field(default="", alias="FromDate")
  to_date: str = Field(default="", alias="ToDate")
  total_transactions_amount: Decimal = Field(
    default=Decimal(0), alias="TotalTransactionsAmount"
  )
  total_fees_and_comm_amount: Decimal = Field(
    default=Decimal(0), alias="TotalFeesAndCommAmount"
  )
  transactions: List[Any] = Field(alias="BrokerageTransactions")

  model_config = ConfigDict(populate_by_name=True)

  @field_validator(
    "total_transactions_amount", "total_fees_and_comm_amount", mode="before"
  )
  @classmethod
  def parse_totals(cls, v):
    return parse_transaction_amount(v)


class NormalizedTransaction(BaseModel):
  """One ledger line after normalization. Never mutated after creation."""

  id: str = ""
  date: str
  action: str
  symbol: Optional[str] = None
  description: str = ""
  quantity: Optional[Decimal] = None
  price: Optional[Decimal] = None
  fees_and_comm: Optional[Decimal] = None
  amount: Decimal = Decimal(0)
  acctg_rule_cd: str = ""

  model_config = ConfigDict(frozen=True)

  @property
  def trade_date(self) -> Optional[date]:
    return parse_trade_date(self.date)


class TransactionFile(BaseModel):
  """Normalized brokerage export."""

  from_date: str = ""
  to_date: str = ""
  total_transactions_amount: Decimal = Decimal(0)
  total_fees_and_comm_amount: Decimal = Decimal(0)
  transactions: List[NormalizedTransaction] = Field(default_factory=list)


class ImportReport(BaseModel):
  """Report on data quality checks during import."""

  file_name: str
  records_processed: int = 0
  records_valid: int = 0
  records_failed: int = 0
  errors: List[str] = Field(default_factory=list)
  warnings: List[str] = Field(default_factory=list)
  import_id: Optional[int] = None

  @property
  def success_rate(self) -> float:
    """Calculate success rate percentage."""
    if self.records_processed == 0:
      return 0.0
    return (self.records_valid / self.records_processed) * 100

  @property
  def has_errors(self) -> bool:
    """Check if any errors occurred."""
    return self.records_failed > 0 or len(self.errors) > 0
