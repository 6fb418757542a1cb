"""
Aggregate statistics over a normalized transaction ledger.
"""
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from pydantic import BaseModel, Field

from validators import NormalizedTransaction, parse_trade_date, strip_date_suffix

ZERO = Decimal(0)


def _is_buy(action: str) -> bool:
  return "buy" in action.lower()


def _is_sell(action: str) -> bool:
  return "sell" in action.lower()


def _mean(values: List[Decimal]) -> Optional[Decimal]:
  if not values:
    return None
  return sum(values, ZERO) / len(values)


def _as_float(value: Optional[Decimal]) -> Optional[float]:
  return float(value) if value is not None else None


class TransactionSummary(BaseModel):
  total_transactions: int = 0
  total_volume: Decimal = ZERO
  total_buy_volume: Decimal = ZERO
  total_sell_volume: Decimal = ZERO
  total_fees: Decimal = ZERO
  net_cash_flow: Decimal = ZERO
  unique_symbols: int = 0
  date_from: Optional[date] = None
  date_to: Optional[date] = None
  action_breakdown: Dict[str, int] = Field(default_factory=dict)

  def to_dict(self) -> dict:
    return {
      "total_transactions": self.total_transactions,
      "total_volume": float(self.total_volume),
      "total_buy_volume": float(self.total_buy_volume),
      "total_sell_volume": float(self.total_sell_volume),
      "total_fees": float(self.total_fees),
      "net_cash_flow": float(self.net_cash_flow),
      "unique_symbols": self.unique_symbols,
      "date_range": {
        "from": self.date_from.isoformat() if self.date_from else None,
        "to": self.date_to.isoformat() if self.date_to else None,
      },
      "action_breakdown": self.action_breakdown,
    }


class SymbolSummary(BaseModel):
  symbol: str
  description: str
  total_buy_quantity: Decimal = ZERO
  total_sell_quantity: Decimal = ZERO
  buy_amount: Decimal = ZERO
  sell_amount: Decimal = ZERO
  net_amount: Decimal = ZERO
  total_fees: Decimal = ZERO
  transaction_count: int = 0
  avg_buy_price: Optional[Decimal] = None
  avg_sell_price: Optional[Decimal] = None

  def to_dict(self) -> dict:
    return {
      "symbol": self.symbol,
      "description": self.description,
      "total_buy_quantity": float(self.total_buy_quantity),
      "total_sell_quantity": float(self.total_sell_quantity),
      "buy_amount": float(self.buy_amount),
      "sell_amount": float(self.sell_amount),
      "net_amount": float(self.net_amount),
      "total_fees": float(self.total_fees),
      "transaction_count": self.transaction_count,
      "avg_buy_price": _as_float(self.avg_buy_price),
      "avg_sell_price": _as_float(self.avg_sell_price),
    }


class ActionSummary(BaseModel):
  action: str
  total_amount: Decimal = ZERO
  transaction_count: int = 0
  total_fees: Decimal = ZERO

  def to_dict(self) -> dict:
    return {
      "action": self.action,
      "total_amount": float(self.total_amount),
      "transaction_count": self.transaction_count,
      "total_fees": float(self.total_fees),
    }


class DailyVolume(BaseModel):
  date: str
  buy_volume: Decimal = ZERO
  sell_volume: Decimal = ZERO
  net_volume: Decimal = ZERO
  transaction_count: int = 0

  def to_dict(self) -> dict:
    return {
      "date": self.date,
      "buy_volume": float(self.buy_volume),
      "sell_volume": float(self.sell_volume),
      "net_volume": float(self.net_volume),
      "transaction_count": self.transaction_count,
    }


def calculate_transaction_summary(
  transactions: Iterable[NormalizedTransaction],
) -> TransactionSummary:
  """Headline totals for a ledger."""
  summary = TransactionSummary()
  symbols = set()
  dates = []

  for t in transactions:
    summary.total_transactions += 1
    summary.action_breakdown[t.action] = summary.action_breakdown.get(t.action, 0) + 1

    abs_amount = abs(t.amount)
    summary.total_volume += abs_amount
    if _is_buy(t.action):
      summary.total_buy_volume += abs_amount
    elif _is_sell(t.action):
      summary.total_sell_volume += abs_amount

    if t.fees_and_comm:
      summary.total_fees += t.fees_and_comm
    summary.net_cash_flow += t.amount

    if t.symbol:
      symbols.add(t.symbol)

    trade_date = t.trade_date
    if trade_date:
      dates.append(trade_date)

  summary.unique_symbols = len(symbols)
  if dates:
    summary.date_from = min(dates)
    summary.date_to = max(dates)
  return summary


def calculate_symbol_summaries(
  transactions: Iterable[NormalizedTransaction],
) -> List[SymbolSummary]:
  """
  Per-symbol buy/sell totals. Rows without a symbol are grouped under
  "[<action>]"; for those, positive amounts count as income (sell side)
  and negative amounts as expense (buy side).
  """
  summaries: Dict[str, SymbolSummary] = {}
  buy_prices = defaultdict(list)
  sell_prices = defaultdict(list)

  for t in transactions:
    key = t.symbol or f"[{t.action}]"
    summary = summaries.get(key)
    if summary is None:
      summary = summaries[key] = SymbolSummary(symbol=key, description=t.description)

    summary.transaction_count += 1
    summary.total_fees += t.fees_and_comm or ZERO

    if _is_buy(t.action):
      summary.total_buy_quantity += t.quantity or ZERO
      summary.buy_amount += abs(t.amount)
      if t.price:
        buy_prices[key].append(t.price)
    elif _is_sell(t.action):
      summary.total_sell_quantity += t.quantity or ZERO
      summary.sell_amount += abs(t.amount)
      if t.price:
        sell_prices[key].append(t.price)
    elif t.amount > 0:
      summary.sell_amount += t.amount
    else:
      summary.buy_amount += abs(t.amount)

  for key, summary in summaries.items():
    summary.net_amount = summary.sell_amount - summary.buy_amount
    summary.avg_buy_price = _mean(buy_prices[key])
    summary.avg_sell_price = _mean(sell_prices[key])

  return sorted(summaries.values(), key=lambda s: s.transaction_count, reverse=True)


def calculate_action_summaries(
  transactions: Iterable[NormalizedTransaction],
) -> List[ActionSummary]:
  """Per-action totals, most frequent first."""
  summaries: Dict[str, ActionSummary] = {}
  for t in transactions:
    summary = summaries.get(t.action)
    if summary is None:
      summary = summaries[t.action] = ActionSummary(action=t.action)
    summary.total_amount += t.amount
    summary.transaction_count += 1
    summary.total_fees += t.fees_and_comm or ZERO

  return sorted(summaries.values(), key=lambda s: s.transaction_count, reverse=True)


def calculate_daily_volume(
  transactions: Iterable[NormalizedTransaction],
) -> List[DailyVolume]:
  """Buy and sell volume per trade date, oldest first."""
  days: Dict[str, DailyVolume] = {}
  for t in transactions:
    day = strip_date_suffix(t.date)
    volume = days.get(day)
    if volume is None:
      volume = days[day] = DailyVolume(date=day)

    volume.transaction_count += 1
    if _is_buy(t.action):
      volume.buy_volume += abs(t.amount)
    elif _is_sell(t.action):
      volume.sell_volume += abs(t.amount)

  for volume in days.values():
    volume.net_volume = volume.sell_volume - volume.buy_volume

  return sorted(
    days.values(),
    key=lambda v: (parse_trade_date(v.date) is None, parse_trade_date(v.date) or date.max),
  )


def get_unique_symbols(transactions: Iterable[NormalizedTransaction]) -> List[str]:
  return sorted({t.symbol for t in transactions if t.symbol})


def get_unique_actions(transactions: Iterable[NormalizedTransaction]) -> List[str]:
  return sorted({t.action for t in transactions})
