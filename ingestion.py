"""
Brokerage transaction file ingestion with quality checks.
"""
import json
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import TransactionImport, Transaction
from validators import (
  RawBrokerageTransaction,
  RawTransactionFile,
  NormalizedTransaction,
  TransactionFile,
  ImportReport,
)

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def transaction_id(index: int, row: RawBrokerageTransaction) -> str:
  """
  Stable per-file identifier for a ledger line.
  txn-3-01/02/2024-AAPL, or txn-4-01/05/2024-none for symbol-less rows
  """
  return f"txn-{index}-{row.date}-{row.symbol or 'none'}"


def load_raw_file(file_path: str) -> Dict[str, Any]:
  """Read a transaction export as JSON, or YAML for .yaml/.yml files."""
  path = Path(file_path)
  with open(path, "r") as f:
    if path.suffix.lower() in YAML_SUFFIXES:
      data = yaml.safe_load(f)
    else:
      data = json.load(f)

  if not isinstance(data, dict):
    raise ValueError(f"Expected a mapping at the top of {path.name}")
  return data


def parse_transaction_file(
  raw: Dict[str, Any], file_name: str = "<memory>"
) -> Tuple[TransactionFile, ImportReport]:
  """
  Normalize a raw transaction export.

  Rows that fail validation are reported and skipped; the rest are kept in
  file order.
  """
  report = ImportReport(file_name=file_name)
  envelope = RawTransactionFile.model_validate(raw)

  transactions: List[NormalizedTransaction] = []
  for index, row in enumerate(envelope.transactions):
    report.records_processed += 1
    try:
      validated = RawBrokerageTransaction.model_validate(row)
    except ValidationError as e:
      report.records_failed += 1
      report.errors.append(f"Row {index}: {str(e)}")
      logger.error(f"Failed to process row {index} in {file_name}: {e}")
      continue

    if validated.quantity is not None and validated.quantity < 0:
      report.warnings.append(
        f"Row {index}: negative quantity {validated.quantity} for {validated.action}"
      )

    transactions.append(
      NormalizedTransaction(
        id=transaction_id(index, validated),
        date=validated.date,
        action=validated.action,
        symbol=validated.symbol,
        description=validated.description,
        quantity=validated.quantity,
        price=validated.price,
        fees_and_comm=validated.fees_and_comm,
        amount=validated.amount,
        acctg_rule_cd=validated.acctg_rule_cd,
      )
    )
    report.records_valid += 1

  parsed = TransactionFile(
    from_date=envelope.from_date,
    to_date=envelope.to_date,
    total_transactions_amount=envelope.total_transactions_amount,
    total_fees_and_comm_amount=envelope.total_fees_and_comm_amount,
    transactions=transactions,
  )
  return parsed, report


def read_transaction_file(file_path: str) -> Tuple[TransactionFile, ImportReport]:
  """Load and normalize a transaction export from disk."""
  return parse_transaction_file(load_raw_file(file_path), Path(file_path).name)


def store_transaction_file(
  session: Session, parsed: TransactionFile, file_name: str
) -> TransactionImport:
  """Persist a normalized file, keeping each row's position in the file."""
  transaction_import = TransactionImport(
    file_name=file_name,
    from_date=parsed.from_date,
    to_date=parsed.to_date,
    total_transactions_amount=parsed.total_transactions_amount,
    total_fees_and_comm_amount=parsed.total_fees_and_comm_amount,
  )
  for line_number, txn in enumerate(parsed.transactions):
    transaction_import.transactions.append(
      Transaction(
        line_number=line_number,
        txn_key=txn.id,
        date=txn.date,
        action=txn.action,
        symbol=txn.symbol,
        description=txn.description,
        quantity=txn.quantity,
        price=txn.price,
        fees_and_comm=txn.fees_and_comm,
        amount=txn.amount,
        acctg_rule_cd=txn.acctg_rule_cd,
      )
    )
  session.add(transaction_import)
  return transaction_import


def ingest_transaction_file(
  session: Session, file_path: str, file_name: Optional[str] = None
) -> ImportReport:
  """
  Main ingestion entry point. Parses, validates and stores a transaction
  export in a single commit.
  """
  file_name = file_name or Path(file_path).name
  logger.info(f"Starting ingestion of {file_path}")

  try:
    raw = load_raw_file(file_path)
    parsed, report = parse_transaction_file(raw, file_name)
  except (OSError, ValueError, ValidationError, yaml.YAMLError) as e:
    report = ImportReport(file_name=file_name)
    report.errors.append(f"File processing error: {str(e)}")
    logger.error(f"Failed to read file {file_path}: {e}")
    return report

  try:
    transaction_import = store_transaction_file(session, parsed, file_name)
    session.commit()
    report.import_id = transaction_import.id
    logger.info(
      f"Ingested {report.records_valid}/{report.records_processed} "
      f"records from {report.file_name} as import {report.import_id}"
    )

  except SQLAlchemyError as e:
    session.rollback()
    report.errors.append(f"File processing error: {str(e)}")
    logger.error(f"Failed to store file {file_path}: {e}")

  return report


def load_transactions(session: Session, import_id: int) -> Optional[List[NormalizedTransaction]]:
  """Stored transactions for an import in file order, or None if unknown."""
  transaction_import = session.get(TransactionImport, import_id)
  if transaction_import is None:
    return None
  return [t.to_normalized() for t in transaction_import.transactions]


def latest_import_id(session: Session) -> Optional[int]:
  latest = (
    session.query(TransactionImport)
    .order_by(TransactionImport.id.desc())
    .first()
  )
  return latest.id if latest else None
