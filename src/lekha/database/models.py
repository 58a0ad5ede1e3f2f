"""SQLAlchemy models for lekha database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


class Book(Base):
    """Book model. The field configuration is stored as a JSON list."""

    __tablename__ = "books"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    currency = Column(String, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    field_config = Column(JSON, nullable=False, default=list)
    primary_amount_field = Column(String, nullable=True)
    preferences = Column(JSON, nullable=True)


class Transaction(Base):
    """Transaction model.

    book_id is deliberately not a foreign key: deleting a book leaves its
    transactions in place.
    """

    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    book_id = Column(String, nullable=False)
    type = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    transaction_date = Column(Date, nullable=False)
    recorded_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    description = Column(String, nullable=False, default="")
    category_id = Column(String, nullable=False, default="Uncategorized")
    party_id = Column(String, nullable=True)
    payment_mode = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    custom_data = Column(JSON, nullable=False, default=dict)
    created_by = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_transactions_by_book", "book_id"),
        Index("ix_transactions_by_date", "transaction_date"),
    )


class AuditLog(Base):
    """Append-only audit log model."""

    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True)
    book_id = Column(String, nullable=False)
    transaction_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    changes = Column(JSON, nullable=False, default=list)
    performed_by = Column(String, nullable=False)
    timestamp = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_by_book", "book_id"),
        Index("ix_audit_logs_by_transaction", "transaction_id"),
    )


class Template(Base):
    """Field template model."""

    __tablename__ = "templates"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    field_config = Column(JSON, nullable=False, default=list)
    preferences = Column(JSON, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
