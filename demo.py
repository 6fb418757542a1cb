#!/usr/bin/env python3
"""
Terminal demo for the ledger reconciliation API.
Uploads a transaction export and renders open positions and totals with Rich.
"""
import os
import sys
import argparse
import requests
from rich.console import Console
from rich.table import Table
from rich import box

# Base URL for API
BASE_URL = "http://localhost:5000"
DEFAULT_FILE = "sample_data/transactions.json"


def check_health(base_url: str) -> bool:
  try:
    response = requests.get(f"{base_url}/health", timeout=2)
  except requests.RequestException:
    return False
  return response.status_code == 200


def ingest(base_url: str, file_path: str) -> dict:
  """Upload a transaction file and return the import report."""
  with open(file_path, "rb") as f:
    response = requests.post(
      f"{base_url}/ingest",
      files={"file": (os.path.basename(file_path), f)},
      timeout=10,
    )
  report = response.json()
  if response.status_code not in (200, 207):
    raise RuntimeError(f"Ingestion failed ({response.status_code}): {report}")
  return report


def fetch(base_url: str, path: str, import_id: int) -> dict:
  response = requests.get(f"{base_url}{path}", params={"import_id": import_id}, timeout=5)
  response.raise_for_status()
  return response.json()


def render_rich(report: dict, positions: dict, summary: dict) -> None:
  """Render the import with Rich tables."""
  console = Console()

  console.print(
    f"[bold cyan]{report['file_name']}[/bold cyan]  "
    f"{report['records_valid']}/{report['records_processed']} records "
    f"({report['success_rate']})"
  )
  for error in report["errors"]:
    console.print(f"[red]  {error}[/red]")

  table = Table(
    title="Open Positions", box=box.ROUNDED, show_header=True, header_style="bold magenta"
  )
  table.add_column("Symbol", style="cyan")
  table.add_column("Class", style="yellow")
  table.add_column("Side")
  table.add_column("Qty", justify="right")
  table.add_column("Avg Cost", justify="right")
  table.add_column("Total Cost", justify="right", style="green")
  table.add_column("First", justify="right")
  table.add_column("Last", justify="right")
  table.add_column("Trades", justify="right")

  for p in positions["positions"]:
    side_style = "green" if p["side"] == "long" else "red"
    table.add_row(
      p["symbol"],
      p["instrument_class"],
      f"[{side_style}]{p['side']}[/{side_style}]",
      f"{p['quantity']:,.4g}",
      f"${p['avg_cost_basis']:,.2f}",
      f"${p['total_cost']:,.2f}",
      p["first_trade_date"] or "-",
      p["last_trade_date"] or "-",
      str(p["trade_count"]),
    )
  console.print(table)
  console.print(f"[bold]Total cost basis:[/bold] ${positions['total_cost']:,.2f}")

  totals = summary["summary"]
  stats = Table(title="Ledger Summary", box=box.SIMPLE, show_header=False)
  stats.add_column("Metric", style="cyan")
  stats.add_column("Value", justify="right")
  stats.add_row("Transactions", str(totals["total_transactions"]))
  stats.add_row("Unique symbols", str(totals["unique_symbols"]))
  stats.add_row("Buy volume", f"${totals['total_buy_volume']:,.2f}")
  stats.add_row("Sell volume", f"${totals['total_sell_volume']:,.2f}")
  stats.add_row("Fees", f"${totals['total_fees']:,.2f}")
  stats.add_row("Net cash flow", f"${totals['net_cash_flow']:,.2f}")
  stats.add_row(
    "Date range", f"{totals['date_range']['from']} to {totals['date_range']['to']}"
  )
  console.print(stats)


def render_simple(report: dict, positions: dict, summary: dict) -> None:
  """Generate simple ASCII output."""
  print("=" * 80)
  print(f"IMPORT {report['import_id']}: {report['file_name']} "
     f"({report['records_valid']}/{report['records_processed']} records)")
  print("=" * 80)
  for error in report["errors"]:
    print(f" ERROR: {error}")
  print()

  print("OPEN POSITIONS")
  print("-" * 80)
  if not positions["positions"]:
    print(" No open positions.")
  for p in positions["positions"]:
    print(f" {p['symbol']:26s} {p['instrument_class']:6s} {p['side']:5s} "
       f"{p['quantity']:10,.2f} @ ${p['avg_cost_basis']:10,.2f} "
       f"= ${p['total_cost']:12,.2f}")
  print(f" {'TOTAL':26s} {'':6s} {'':5s} {'':10s}   {'':11s} "
     f"= ${positions['total_cost']:12,.2f}")
  print()

  totals = summary["summary"]
  print("SUMMARY")
  print("-" * 80)
  print(f" Transactions:  {totals['total_transactions']}")
  print(f" Net cash flow: ${totals['net_cash_flow']:,.2f}")
  print(f" Fees:          ${totals['total_fees']:,.2f}")
  print()


def main():
  """Run the demo (Rich tables or simple mode)."""
  parser = argparse.ArgumentParser(description="Ledger Reconciliation Demo")
  parser.add_argument(
    "--file",
    default=DEFAULT_FILE,
    help="Transaction export to upload (.json, .yaml or .yml)",
  )
  parser.add_argument(
    "--base-url",
    default=BASE_URL,
    help="Base URL of the running API",
  )
  parser.add_argument(
    "--simple",
    action="store_true",
    help="Simple ASCII output instead of Rich tables",
  )

  args = parser.parse_args()

  if not check_health(args.base_url):
    print("ERROR: API is not running! Start with: python app.py", file=sys.stderr)
    sys.exit(1)

  try:
    report = ingest(args.base_url, args.file)
    positions = fetch(args.base_url, "/open-positions", report["import_id"])
    summary = fetch(args.base_url, "/summary", report["import_id"])
  except (OSError, RuntimeError, requests.RequestException) as e:
    print(f"ERROR: {e}", file=sys.stderr)
    sys.exit(1)

  if args.simple:
    render_simple(report, positions, summary)
  else:
    render_rich(report, positions, summary)


if __name__ == "__main__":
  main()
