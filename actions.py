"""
Brokerage action vocabulary and classification.
"""
from enum import Enum
from typing import Union


class EquityAction(str, Enum):
  """Share trades that move an equity position."""

  BUY = "Buy"
  SELL = "Sell"
  SELL_SHORT = "Sell Short"
  BUY_TO_COVER = "Buy to Cover"


class OptionAction(str, Enum):
  """Option trades. OTHER covers open/close actions outside the canonical four."""

  BUY_TO_OPEN = "Buy to Open"
  SELL_TO_CLOSE = "Sell to Close"
  SELL_TO_OPEN = "Sell to Open"
  BUY_TO_CLOSE = "Buy to Close"
  OTHER = "Other"


class Ignored(str, Enum):
  """Actions with no position effect (dividends, interest, fees, transfers)."""

  IGNORED = "Ignored"


ActionClass = Union[EquityAction, OptionAction, Ignored]

INCOME_ACTIONS = (
  "Qualified Dividend",
  "Non-Qualified Dividend",
  "Bank Interest",
  "Credit Interest",
)
EXPENSE_ACTIONS = (
  "Margin Interest",
  "Foreign Tax Paid",
  "ADR Mgmt Fee",
)

_EQUITY_BY_NAME = {a.value: a for a in EquityAction}
_OPTION_BY_NAME = {
  a.value.lower(): a for a in OptionAction if a is not OptionAction.OTHER
}


def is_option_action(action: str) -> bool:
  lowered = action.lower()
  return "to open" in lowered or "to close" in lowered


def classify(action: str) -> ActionClass:
  """
  Map a raw action string onto the closed action vocabulary.

  Equity actions match exactly (case-sensitive). Any action mentioning
  "to open" or "to close" is option-class; the four canonical option
  actions match case-insensitively and anything else in that class is
  OptionAction.OTHER. Everything remaining is Ignored.
  """
  if not action:
    return Ignored.IGNORED

  equity = _EQUITY_BY_NAME.get(action)
  if equity is not None:
    return equity

  if is_option_action(action):
    return _OPTION_BY_NAME.get(action.strip().lower(), OptionAction.OTHER)

  return Ignored.IGNORED


def get_action_category(action: str) -> str:
  """Display category: trade, option, income, expense or other."""
  if action in _EQUITY_BY_NAME:
    return "trade"
  if action in {a.value for a in OptionAction if a is not OptionAction.OTHER}:
    return "option"
  if action in INCOME_ACTIONS:
    return "income"
  if action in EXPENSE_ACTIONS:
    return "expense"
  return "other"
