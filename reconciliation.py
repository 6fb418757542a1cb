"""
Open-position reconciliation from a brokerage transaction ledger.

Transactions are split into an equity group and an option group, each group
is sorted by trade date, and each is folded into per-symbol position state.
Average-cost state is path dependent, so the sort must complete before any
fold starts. The two groups never share state: an equity symbol and an option
symbol with the same text are reported as separate positions.
"""
import logging
from datetime import date
from decimal import Decimal
from functools import reduce
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from actions import EquityAction, Ignored, OptionAction, classify
from validators import NormalizedTransaction

logger = logging.getLogger(__name__)

# Net positions smaller than this are treated as closed.
POSITION_EPSILON = Decimal("0.001")

EQUITY = "equity"
OPTION = "option"

ZERO = Decimal(0)


class PositionState(BaseModel):
  """Working state for one instrument while the ledger is folded."""

  symbol: str
  description: str = ""
  net_position: Decimal = ZERO  # positive = long, negative = short
  cost_basis: Decimal = ZERO
  trade_dates: Tuple[date, ...] = ()
  trade_count: int = 0

  model_config = ConfigDict(frozen=True)


class OpenPosition(BaseModel):
  """A position still open after every transaction has been applied."""

  symbol: str
  description: str
  instrument_class: str
  side: str
  quantity: Decimal
  avg_cost_basis: Decimal
  total_cost: Decimal
  first_trade_date: Optional[date] = None
  last_trade_date: Optional[date] = None
  trade_count: int

  def to_dict(self) -> dict:
    return {
      "symbol": self.symbol,
      "description": self.description,
      "instrument_class": self.instrument_class,
      "side": self.side,
      "quantity": float(self.quantity),
      "avg_cost_basis": float(self.avg_cost_basis),
      "total_cost": float(self.total_cost),
      "first_trade_date": self.first_trade_date.isoformat() if self.first_trade_date else None,
      "last_trade_date": self.last_trade_date.isoformat() if self.last_trade_date else None,
      "trade_count": self.trade_count,
    }


Classified = Tuple[NormalizedTransaction, object]
Transition = Callable[[PositionState, NormalizedTransaction, object], PositionState]


def resolve_price(txn: NormalizedTransaction) -> Decimal:
  """
  Per-unit price of a trade. Falls back to |amount| / quantity when the
  export left the price blank.
  """
  if txn.price:
    return txn.price
  qty = txn.quantity or ZERO
  if qty > 0:
    return abs(txn.amount) / qty
  return ZERO


def _shrink(cost_basis: Decimal, prior: Decimal, closed: Decimal) -> Decimal:
  """Scale cost basis down to the quantity left open after a partial close."""
  if prior == 0:
    return cost_basis
  return cost_basis * (prior - closed) / prior


def _record_trade(state: PositionState, txn: NormalizedTransaction) -> PositionState:
  trade_date = txn.trade_date
  trade_dates = state.trade_dates + (trade_date,) if trade_date else state.trade_dates
  return state.model_copy(update={
    "trade_dates": trade_dates,
    "trade_count": state.trade_count + 1,
  })


def apply_equity_transaction(
  state: PositionState, txn: NormalizedTransaction, action: EquityAction
) -> PositionState:
  """
  Apply one share trade. A buy against an open short covers it first and a
  sell against an open long closes it first; any excess quantity opens the
  opposite side at the trade price.
  """
  state = _record_trade(state, txn)
  qty = txn.quantity or ZERO
  price = resolve_price(txn)
  net = state.net_position
  cost = state.cost_basis

  if action in (EquityAction.BUY, EquityAction.BUY_TO_COVER):
    if net < 0:
      short = abs(net)
      cover_qty = min(qty, short)
      cost = _shrink(cost, short, cover_qty)
      net += cover_qty
      remaining = qty - cover_qty
      if remaining > 0:
        net += remaining
        cost += remaining * price
    else:
      net += qty
      cost += qty * price

  elif action is EquityAction.SELL:
    if net > 0:
      sell_qty = min(qty, net)
      cost = _shrink(cost, net, sell_qty)
      net -= sell_qty
      remaining = qty - sell_qty
      if remaining > 0:
        net -= remaining
        cost += remaining * price
    else:
      net -= qty
      cost += qty * price

  elif action is EquityAction.SELL_SHORT:
    # Layers onto whatever is open, including a long, without closing it first.
    net -= qty
    cost += qty * price

  return state.model_copy(update={"net_position": net, "cost_basis": cost})


def apply_option_transaction(
  state: PositionState, txn: NormalizedTransaction, action: OptionAction
) -> PositionState:
  """
  Apply one option trade. Cost basis only shrinks when a close meets the
  matching side. A Sell to Close against a short flattens it, and a Buy to
  Close against a long adds to it without adding cost.
  """
  state = _record_trade(state, txn)
  qty = txn.quantity or ZERO
  price = resolve_price(txn)
  net = state.net_position
  cost = state.cost_basis

  if action is OptionAction.BUY_TO_OPEN:
    net += qty
    cost += qty * price

  elif action is OptionAction.SELL_TO_CLOSE:
    # Against a short, min() yields the (negative) net, which flattens it.
    close_qty = min(qty, net)
    if net > 0:
      cost = _shrink(cost, net, close_qty)
    net -= close_qty

  elif action is OptionAction.SELL_TO_OPEN:
    net -= qty
    cost += qty * price

  elif action is OptionAction.BUY_TO_CLOSE:
    close_qty = min(qty, abs(net))
    if net < 0:
      cost = _shrink(cost, abs(net), close_qty)
    net += close_qty

  return state.model_copy(update={"net_position": net, "cost_basis": cost})


def _sort_key(item: Classified) -> Tuple[int, date]:
  trade_date = item[0].trade_date
  # Undated rows go last; sorted() is stable so file order breaks ties.
  if trade_date is None:
    return (1, date.max)
  return (0, trade_date)


def partition_transactions(
  transactions: Iterable[NormalizedTransaction],
) -> Tuple[List[Classified], List[Classified]]:
  """
  Split transactions into chronologically sorted equity and option groups.
  Rows without a symbol or with an ignored action are dropped.
  """
  equity: List[Classified] = []
  option: List[Classified] = []
  dropped = 0

  for txn in transactions:
    action = classify(txn.action)
    if not txn.symbol or action is Ignored.IGNORED:
      dropped += 1
      continue
    if isinstance(action, EquityAction):
      equity.append((txn, action))
    else:
      option.append((txn, action))

  logger.debug(
    f"Partitioned ledger: {len(equity)} equity, {len(option)} option, "
    f"{dropped} without position effect"
  )
  return sorted(equity, key=_sort_key), sorted(option, key=_sort_key)


def fold_positions(
  transactions: Sequence[Classified], transition: Transition
) -> Dict[str, PositionState]:
  """Left-fold date-ordered transactions into final per-symbol state."""

  def step(states: Dict[str, PositionState], item: Classified) -> Dict[str, PositionState]:
    txn, action = item
    prior = states.get(txn.symbol)
    if prior is None:
      prior = PositionState(symbol=txn.symbol, description=txn.description)
    states[txn.symbol] = transition(prior, txn, action)
    return states

  return reduce(step, transactions, {})


def to_open_position(state: PositionState, instrument_class: str) -> Optional[OpenPosition]:
  """Render a final state, or None when the position nets to zero."""
  net = state.net_position
  if abs(net) <= POSITION_EPSILON:
    return None

  quantity = abs(net)
  trade_dates = sorted(state.trade_dates)
  return OpenPosition(
    symbol=state.symbol,
    description=state.description,
    instrument_class=instrument_class,
    side="long" if net > 0 else "short",
    quantity=quantity,
    avg_cost_basis=state.cost_basis / quantity,
    total_cost=state.cost_basis,
    first_trade_date=trade_dates[0] if trade_dates else None,
    last_trade_date=trade_dates[-1] if trade_dates else None,
    trade_count=state.trade_count,
  )


def calculate_open_positions(
  transactions: Iterable[NormalizedTransaction],
) -> List[OpenPosition]:
  """
  Derive currently open positions from a transaction ledger.

  Equity and option positions are tracked independently, then merged and
  ranked by total cost, largest first. Malformed rows never raise; they are
  counted toward the trade count but move neither quantity nor cost.
  """
  equity, option = partition_transactions(transactions)

  equity_states = fold_positions(equity, apply_equity_transaction)
  option_states = fold_positions(option, apply_option_transaction)

  positions: List[OpenPosition] = []
  for states, instrument_class in ((equity_states, EQUITY), (option_states, OPTION)):
    for state in states.values():
      position = to_open_position(state, instrument_class)
      if position is not None:
        positions.append(position)

  closed = len(equity_states) + len(option_states) - len(positions)
  logger.info(f"Reconciled {len(positions)} open positions ({closed} closed)")

  return sorted(positions, key=lambda p: p.total_cost, reverse=True)
