"""
Flask application for brokerage ledger reconciliation.
"""
import os
import logging
import tempfile
from datetime import datetime
from decimal import Decimal
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from sqlalchemy.orm import Session

from models import init_db, get_session, TransactionImport
from ingestion import ingest_transaction_file, load_transactions, latest_import_id
from reconciliation import calculate_open_positions
from summary import (
  calculate_transaction_summary,
  calculate_symbol_summaries,
  calculate_action_summaries,
  calculate_daily_volume,
  get_unique_symbols,
  get_unique_actions,
)
from actions import get_action_category
from config.logger_config import setup_logging

app = Flask(__name__)

# Initialize logging
setup_logging()
logger = logging.getLogger(__name__)

# Database setup
DB_URL = os.environ.get("DATABASE_URL", "sqlite:///ledger.db")

ALLOWED_SUFFIXES = (".json", ".yaml", ".yml")

# Wipe database on startup for clean demos
if DB_URL.startswith("sqlite:///"):
  db_path = DB_URL.replace("sqlite:///", "")
  if os.path.exists(db_path):
    os.remove(db_path)
    logger.info(f"Removed existing database: {db_path}")

# Initialize fresh database
engine = init_db(DB_URL)
logger.info(f"Initialized fresh database at: {DB_URL}")


def get_db_session() -> Session:
  """Get database session for request."""
  return get_session(engine)


def load_ledger(session: Session):
  """
  Resolve the import_id query parameter (latest import when omitted) and
  load its transactions.

  Returns (import_id, transactions, None) or (None, None, error_response).
  """
  raw_id = request.args.get("import_id")
  if raw_id is None or raw_id == "":
    import_id = latest_import_id(session)
    if import_id is None:
      return None, None, (jsonify({"error": "No transaction files have been ingested"}), 404)
  else:
    try:
      import_id = int(raw_id)
    except ValueError:
      return None, None, (jsonify({"error": "import_id must be an integer"}), 400)

  transactions = load_transactions(session, import_id)
  if transactions is None:
    return None, None, (jsonify({"error": f"Unknown import_id: {import_id}"}), 404)
  return import_id, transactions, None


@app.before_request
def log_request():
  """Log incoming request details."""
  logger.info(
    f"REQUEST: {request.method} {request.path} | "
    f"Args: {dict(request.args)} | "
    f"Remote: {request.remote_addr}"
  )


@app.after_request
def log_response(response):
  """Log response details."""
  logger.info(
    f"RESPONSE: {request.method} {request.path} | "
    f"Status: {response.status_code} | "
    f"Size: {response.content_length or 0} bytes"
  )
  return response


@app.errorhandler(Exception)
def handle_error(error):
  """Global error handler."""
  if isinstance(error, HTTPException):
    return error
  logger.error(f"Unhandled error: {str(error)}", exc_info=True)
  return jsonify({"error": str(error)}), 500


@app.route("/health", methods=["GET"])
def health():
  """Health check endpoint."""
  return jsonify({"status": "healthy", "timestamp": datetime.now().isoformat()})


@app.route("/ingest", methods=["POST"])
def ingest():
  """
  Ingest a brokerage transaction export via file upload.

  Expected multipart/form-data:
  - file: JSON (.json) or YAML (.yaml/.yml) transaction export (required)
  """
  if "file" not in request.files:
    return jsonify({"error": "No file provided in request"}), 400

  uploaded_file = request.files["file"]

  if uploaded_file.filename == "":
    return jsonify({"error": "Empty filename"}), 400

  suffix = os.path.splitext(uploaded_file.filename)[1].lower()
  if suffix not in ALLOWED_SUFFIXES:
    return jsonify({
      "error": f"Unsupported file type: {suffix or '(none)'}",
      "hint": "Upload a .json, .yaml or .yml transaction export",
    }), 400

  session = get_db_session()
  try:
    # Save uploaded file to a temporary location
    with tempfile.NamedTemporaryFile(mode="wb", delete=False, suffix=suffix) as tmp_file:
      uploaded_file.save(tmp_file)
      tmp_path = tmp_file.name

    try:
      report = ingest_transaction_file(session, tmp_path, file_name=uploaded_file.filename)
    finally:
      # Clean up temp file
      if os.path.exists(tmp_path):
        os.unlink(tmp_path)

    response_data = {
      "import_id": report.import_id,
      "file_name": report.file_name,
      "records_processed": report.records_processed,
      "records_valid": report.records_valid,
      "records_failed": report.records_failed,
      "success_rate": f"{report.success_rate:.2f}%",
      "errors": report.errors,
      "warnings": report.warnings,
      "status": "success" if not report.has_errors else "partial_success",
    }

    if report.import_id is None:
      response_data["status"] = "failed"
      logger.warning(f"Ingestion failed: {report.file_name} - {report.errors}")
      return jsonify(response_data), 400

    logger.info(f"Ingestion completed: {report.file_name} - {report.records_valid} records")
    return jsonify(response_data), 200 if not report.has_errors else 207

  finally:
    session.close()


@app.route("/imports", methods=["GET"])
def list_imports():
  """List ingested transaction files, newest first."""
  session = get_db_session()
  try:
    imports = (
      session.query(TransactionImport)
      .order_by(TransactionImport.id.desc())
      .all()
    )
    return jsonify({
      "imports": [
        {
          "import_id": i.id,
          "file_name": i.file_name,
          "from_date": i.from_date,
          "to_date": i.to_date,
          "transaction_count": len(i.transactions),
          "created_at": i.created_at.isoformat(),
        }
        for i in imports
      ]
    }), 200
  finally:
    session.close()


@app.route("/open-positions", methods=["GET"])
def open_positions():
  """
  Open positions reconstructed from an import's transaction ledger.

  Query params:
  - import_id: Import to reconcile (optional, defaults to the latest)
  """
  session = get_db_session()
  try:
    import_id, transactions, error = load_ledger(session)
    if error:
      return error

    positions = calculate_open_positions(transactions)
    total_cost = sum((p.total_cost for p in positions), Decimal(0))

    logger.info(f"Open positions for import {import_id}: {len(positions)} positions")
    return jsonify({
      "import_id": import_id,
      "positions": [p.to_dict() for p in positions],
      "position_count": len(positions),
      "total_cost": float(total_cost),
    }), 200

  finally:
    session.close()


@app.route("/summary", methods=["GET"])
def transaction_summary():
  """
  Transaction totals and per-action breakdown for an import.

  Query params:
  - import_id: Import to summarize (optional, defaults to the latest)
  """
  session = get_db_session()
  try:
    import_id, transactions, error = load_ledger(session)
    if error:
      return error

    return jsonify({
      "import_id": import_id,
      "summary": calculate_transaction_summary(transactions).to_dict(),
      "actions": [a.to_dict() for a in calculate_action_summaries(transactions)],
    }), 200

  finally:
    session.close()


@app.route("/symbols", methods=["GET"])
def symbol_summaries():
  """
  Per-symbol buy/sell totals for an import, plus the distinct symbols and
  actions (with their display category) for filter lists.
  """
  session = get_db_session()
  try:
    import_id, transactions, error = load_ledger(session)
    if error:
      return error

    actions = get_unique_actions(transactions)
    return jsonify({
      "import_id": import_id,
      "symbols": [s.to_dict() for s in calculate_symbol_summaries(transactions)],
      "filters": {
        "symbols": get_unique_symbols(transactions),
        "actions": actions,
        "categories": {a: get_action_category(a) for a in actions},
      },
    }), 200

  finally:
    session.close()


@app.route("/daily-volume", methods=["GET"])
def daily_volume():
  """Daily buy/sell volume for an import, oldest first."""
  session = get_db_session()
  try:
    import_id, transactions, error = load_ledger(session)
    if error:
      return error

    return jsonify({
      "import_id": import_id,
      "days": [d.to_dict() for d in calculate_daily_volume(transactions)],
    }), 200

  finally:
    session.close()


if __name__ == "__main__":
  app.run(debug=True, host="0.0.0.0", port=5000)
