#!/usr/bin/env python3
"""
Recompute open positions for a transaction export and print them.
Runs the engine directly, without the API or a database.

Run from the repository root after `pip install -e .`:

  python scripts/verify_positions.py [path/to/transactions.json]
"""
import sys
from pprint import pprint

from ingestion import read_transaction_file
from reconciliation import calculate_open_positions

file_path = sys.argv[1] if len(sys.argv) > 1 else "sample_data/transactions.json"

parsed, report = read_transaction_file(file_path)
print(f"{report.records_valid}/{report.records_processed} records read from {report.file_name}")
for error in report.errors:
  print(f"  {error}")

positions = calculate_open_positions(parsed.transactions)
result = {
  "positions": [p.to_dict() for p in positions],
  "total_cost": float(sum(p.total_cost for p in positions)),
}

pprint(result, sort_dicts=False)
