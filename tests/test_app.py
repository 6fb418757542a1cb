"""
Unit tests for ledger ingestion, storage and the HTTP API.
"""
import unittest
import io
import os
import json
import tempfile
from decimal import Decimal

from models import init_db, get_session, TransactionImport, Transaction
from ingestion import (
    ingest_transaction_file,
    load_transactions,
    latest_import_id,
    parse_transaction_file,
    read_transaction_file,
)
from validators import (
    parse_transaction_amount,
    parse_quantity,
    parse_price,
    parse_trade_date,
    strip_date_suffix,
)

SAMPLE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "sample_data")
SAMPLE_JSON = os.path.join(SAMPLE_DIR, "transactions.json")
SAMPLE_YAML = os.path.join(SAMPLE_DIR, "transactions.yaml")


class TestParsing(unittest.TestCase):
    """Test currency, quantity and date parsing."""

    def test_parse_amount(self):
        self.assertEqual(parse_transaction_amount("$1,234.56"), Decimal("1234.56"))
        self.assertEqual(parse_transaction_amount("-$1,234.56"), Decimal("-1234.56"))
        self.assertEqual(parse_transaction_amount(""), Decimal(0))
        self.assertEqual(parse_transaction_amount("n/a"), Decimal(0))
        self.assertEqual(parse_transaction_amount(None), Decimal(0))

    def test_parse_quantity(self):
        self.assertEqual(parse_quantity("1,200"), Decimal(1200))
        self.assertIsNone(parse_quantity(""))
        self.assertIsNone(parse_quantity("   "))
        self.assertIsNone(parse_quantity("abc"))

    def test_parse_price(self):
        self.assertEqual(parse_price("$24.285"), Decimal("24.285"))
        self.assertIsNone(parse_price(""))
        self.assertIsNone(parse_price("NaN"))

    def test_strip_date_suffix(self):
        self.assertEqual(strip_date_suffix("03/14/2024 as of 03/12/2024"), "03/14/2024")
        self.assertEqual(strip_date_suffix("03/14/2024"), "03/14/2024")
        self.assertEqual(strip_date_suffix(""), "")

    def test_parse_trade_date(self):
        self.assertEqual(parse_trade_date("03/14/2024 as of 03/12/2024").isoformat(), "2024-03-14")
        self.assertEqual(parse_trade_date("2024-03-14").isoformat(), "2024-03-14")
        self.assertIsNone(parse_trade_date("yesterday"))


class TestNormalizer(unittest.TestCase):
    """Test raw export normalization."""

    def test_parse_sample_json(self):
        parsed, report = read_transaction_file(SAMPLE_JSON)

        self.assertEqual(report.records_processed, 15)
        self.assertEqual(report.records_valid, 15)
        self.assertFalse(report.has_errors)
        self.assertEqual(parsed.total_transactions_amount, Decimal("-19190.23"))
        self.assertEqual(parsed.total_fees_and_comm_amount, Decimal("2.29"))

        first = parsed.transactions[0]
        self.assertEqual(first.id, "txn-0-01/30/2024-GME")
        self.assertEqual(first.quantity, Decimal(25))
        self.assertEqual(first.price, Decimal("22.00"))

        interest = parsed.transactions[3]
        self.assertEqual(interest.action, "Margin Interest")
        self.assertIsNone(interest.symbol)
        self.assertIsNone(interest.quantity)
        self.assertEqual(interest.id, "txn-3-01/25/2024-none")
        self.assertEqual(interest.amount, Decimal("-12.34"))

    def test_parse_sample_yaml_reports_bad_row(self):
        parsed, report = read_transaction_file(SAMPLE_YAML)

        self.assertEqual(report.records_processed, 3)
        self.assertEqual(report.records_valid, 2)
        self.assertEqual(report.records_failed, 1)
        self.assertTrue(report.has_errors)
        self.assertEqual(len(parsed.transactions), 2)

    def test_non_mapping_row_is_reported(self):
        raw = {"BrokerageTransactions": ["not a row", {"Date": "01/02/2024", "Action": "Buy"}]}
        parsed, report = parse_transaction_file(raw)
        self.assertEqual(report.records_failed, 1)
        self.assertEqual(len(parsed.transactions), 1)

    def test_negative_quantity_warns(self):
        raw = {"BrokerageTransactions": [
            {"Date": "01/02/2024", "Action": "Buy", "Symbol": "X", "Quantity": "-5", "Amount": "-$50.00"},
        ]}
        _, report = parse_transaction_file(raw)
        self.assertEqual(report.records_valid, 1)
        self.assertEqual(len(report.warnings), 1)


class TestIngestion(unittest.TestCase):
    """Test storing imports in the database."""

    def setUp(self):
        """Set up test database."""
        self.db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
        self.db_file.close()
        self.engine = init_db(f"sqlite:///{self.db_file.name}")
        self.session = get_session(self.engine)

    def tearDown(self):
        """Clean up test database."""
        self.session.close()
        self.engine.dispose()
        os.unlink(self.db_file.name)

    def test_ingest_json(self):
        report = ingest_transaction_file(self.session, SAMPLE_JSON)

        self.assertEqual(report.records_valid, 15)
        self.assertIsNotNone(report.import_id)
        self.assertEqual(self.session.query(Transaction).count(), 15)
        self.assertEqual(latest_import_id(self.session), report.import_id)

    def test_round_trip_keeps_file_order(self):
        report = ingest_transaction_file(self.session, SAMPLE_JSON)
        transactions = load_transactions(self.session, report.import_id)

        self.assertEqual(len(transactions), 15)
        self.assertEqual(transactions[0].symbol, "GME")
        self.assertEqual(transactions[-1].symbol, "AAPL")
        self.assertEqual(transactions[5].quantity, Decimal(10))
        self.assertIsNone(transactions[5].price)

    def test_ingest_yaml_partial(self):
        report = ingest_transaction_file(self.session, SAMPLE_YAML)

        self.assertEqual(report.records_valid, 2)
        self.assertEqual(report.records_failed, 1)
        stored = self.session.get(TransactionImport, report.import_id)
        self.assertEqual(len(stored.transactions), 2)

    def test_missing_file(self):
        report = ingest_transaction_file(self.session, "does/not/exist.json")
        self.assertIsNone(report.import_id)
        self.assertTrue(report.has_errors)

    def test_unknown_import(self):
        self.assertIsNone(load_transactions(self.session, 999))
        self.assertIsNone(latest_import_id(self.session))


class TestEndpoints(unittest.TestCase):
    """Test Flask API endpoints."""

    def setUp(self):
        """Set up test client and database."""
        self.db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
        self.db_file.close()
        self.test_engine = init_db(f"sqlite:///{self.db_file.name}")

        session = get_session(self.test_engine)
        self.import_id = ingest_transaction_file(session, SAMPLE_JSON).import_id
        session.close()

        # Replace the engine in the app module
        import app as app_module
        app_module.engine = self.test_engine

        self.app = app_module.app
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

    def tearDown(self):
        """Clean up test database."""
        self.test_engine.dispose()
        os.unlink(self.db_file.name)

    def test_health_endpoint(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "healthy")

    def test_ingest_endpoint(self):
        with open(SAMPLE_JSON, "rb") as f:
            response = self.client.post(
                "/ingest",
                data={"file": (f, "transactions.json")},
                content_type="multipart/form-data",
            )

        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data["records_processed"], 15)
        self.assertEqual(data["status"], "success")
        self.assertEqual(data["import_id"], self.import_id + 1)

    def test_ingest_partial_success(self):
        with open(SAMPLE_YAML, "rb") as f:
            response = self.client.post(
                "/ingest",
                data={"file": (f, "transactions.yaml")},
                content_type="multipart/form-data",
            )

        self.assertEqual(response.status_code, 207)
        self.assertEqual(response.get_json()["status"], "partial_success")

    def test_ingest_rejects_unknown_suffix(self):
        response = self.client.post(
            "/ingest",
            data={"file": (io.BytesIO(b"a,b"), "transactions.csv")},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("hint", response.get_json())

    def test_ingest_without_file(self):
        response = self.client.post("/ingest", data={}, content_type="multipart/form-data")
        self.assertEqual(response.status_code, 400)

    def test_ingest_unreadable_file(self):
        response = self.client.post(
            "/ingest",
            data={"file": (io.BytesIO(b"{not json"), "broken.json")},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["status"], "failed")

    def test_imports_endpoint(self):
        response = self.client.get("/imports")
        self.assertEqual(response.status_code, 200)
        imports = response.get_json()["imports"]
        self.assertEqual(len(imports), 1)
        self.assertEqual(imports[0]["transaction_count"], 15)

    def test_open_positions_endpoint(self):
        response = self.client.get(f"/open-positions?import_id={self.import_id}")
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data["import_id"], self.import_id)
        self.assertEqual(data["position_count"], 6)
        for position in data["positions"]:
            self.assertGreater(position["quantity"], 0)
            self.assertIn(position["side"], ("long", "short"))

    def test_open_positions_defaults_to_latest(self):
        response = self.client.get("/open-positions")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["import_id"], self.import_id)

    def test_bad_import_id(self):
        response = self.client.get("/open-positions?import_id=abc")
        self.assertEqual(response.status_code, 400)

    def test_unknown_import_id(self):
        response = self.client.get("/summary?import_id=999")
        self.assertEqual(response.status_code, 404)

    def test_summary_endpoint(self):
        response = self.client.get("/summary")
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data["summary"]["total_transactions"], 15)
        self.assertGreater(len(data["actions"]), 0)

    def test_symbols_endpoint(self):
        response = self.client.get("/symbols")
        self.assertEqual(response.status_code, 200)
        symbols = {s["symbol"] for s in response.get_json()["symbols"]}
        self.assertIn("AAPL", symbols)
        self.assertIn("[Margin Interest]", symbols)

    def test_symbols_endpoint_filters(self):
        response = self.client.get("/symbols")
        filters = response.get_json()["filters"]

        self.assertEqual(len(filters["symbols"]), 8)
        self.assertEqual(filters["symbols"][0], "AAPL")
        self.assertNotIn("", filters["symbols"])
        self.assertEqual(filters["actions"], sorted(filters["actions"]))
        self.assertEqual(set(filters["categories"]), set(filters["actions"]))
        self.assertEqual(filters["categories"]["Buy"], "trade")
        self.assertEqual(filters["categories"]["Sell to Open"], "option")
        self.assertEqual(filters["categories"]["Qualified Dividend"], "income")
        self.assertEqual(filters["categories"]["Margin Interest"], "expense")

    def test_unknown_route_returns_404(self):
        response = self.client.get("/no-such-route")
        self.assertEqual(response.status_code, 404)

    def test_wrong_method_returns_405(self):
        response = self.client.get("/ingest")
        self.assertEqual(response.status_code, 405)

    def test_daily_volume_endpoint(self):
        response = self.client.get("/daily-volume")
        self.assertEqual(response.status_code, 200)
        days = response.get_json()["days"]
        self.assertEqual(days[0]["date"], "01/02/2024")
        self.assertEqual(days[-1]["date"], "01/30/2024")


if __name__ == "__main__":
    unittest.main()
