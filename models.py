"""
SQLAlchemy database models for imported brokerage transactions.
"""
from datetime import datetime
from sqlalchemy import (
  create_engine,
  Column,
  Integer,
  String,
  Numeric,
  DateTime,
  ForeignKey,
  Index,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from validators import NormalizedTransaction

Base = declarative_base()


class TransactionImport(Base):
  """One uploaded brokerage transaction file."""

  __tablename__ = "transaction_imports"

  id = Column(Integer, primary_key=True, autoincrement=True)
  file_name = Column(String(255), nullable=False)
  from_date = Column(String(20), nullable=True)
  to_date = Column(String(20), nullable=True)
  total_transactions_amount = Column(Numeric(15, 2), nullable=True)
  total_fees_and_comm_amount = Column(Numeric(15, 2), nullable=True)
  created_at = Column(DateTime, default=lambda: datetime.now(), nullable=False)

  # Relationships
  transactions = relationship(
    "Transaction",
    back_populates="transaction_import",
    order_by="Transaction.line_number",
    cascade="all, delete-orphan",
  )

  def __repr__(self):
    return f"<TransactionImport(id={self.id}, file='{self.file_name}')>"


class Transaction(Base):
  """A single ledger line as exported by the broker."""

  __tablename__ = "transactions"

  id = Column(Integer, primary_key=True, autoincrement=True)
  import_id = Column(Integer, ForeignKey("transaction_imports.id"), nullable=False)
  line_number = Column(Integer, nullable=False) # Position in the source file
  txn_key = Column(String(255), nullable=False)
  date = Column(String(50), nullable=False) # Raw date, may include "as of ..."
  action = Column(String(100), nullable=False)
  symbol = Column(String(100), nullable=True)
  description = Column(String(255), nullable=True)
  quantity = Column(Numeric(18, 6), nullable=True)
  price = Column(Numeric(18, 6), nullable=True)
  fees_and_comm = Column(Numeric(15, 2), nullable=True)
  amount = Column(Numeric(15, 2), nullable=False)
  acctg_rule_cd = Column(String(20), nullable=True)
  created_at = Column(DateTime, default=lambda: datetime.now(), nullable=False)

  # Relationship
  transaction_import = relationship("TransactionImport", back_populates="transactions")

  # Indexes for common queries
  __table_args__ = (
    Index("idx_txn_import_line", "import_id", "line_number"),
    Index("idx_txn_import_symbol", "import_id", "symbol"),
  )

  def to_normalized(self) -> NormalizedTransaction:
    return NormalizedTransaction(
      id=self.txn_key,
      date=self.date,
      action=self.action,
      symbol=self.symbol,
      description=self.description or "",
      quantity=self.quantity,
      price=self.price,
      fees_and_comm=self.fees_and_comm,
      amount=self.amount,
      acctg_rule_cd=self.acctg_rule_cd or "",
    )

  def __repr__(self):
    return (
      f"<Transaction(date={self.date}, action={self.action}, "
      f"symbol={self.symbol}, qty={self.quantity})>"
    )


# Database initialization
def init_db(db_url="sqlite:///ledger.db"):
  """Initialize database and create all tables."""
  engine = create_engine(db_url, echo=False)
  Base.metadata.create_all(engine)
  return engine


def get_session(engine):
  """Get database session."""
  Session = sessionmaker(bind=engine)
  return Session()
