"""
Module: burnwise_kernel.models.party
Responsibility: ORM persistence for customers, vendors and other
    counterparties that debts, receivables and projects reference.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from enum import Enum

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from burnwise_kernel.db.base import TrackedBase


class PartyType(str, Enum):
    """Classification of parties."""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    OTHER = "other"


class Party(TrackedBase):
    """
    Counterparty of a debt, receivable or project.

    Non-goals:
        - Does NOT hold balances; those are derived from installments.
    """

    __tablename__ = "parties"

    __table_args__ = (
        Index("idx_party_type", "party_type"),
        Index("idx_party_name", "name"),
    )

    party_type: Mapped[PartyType] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    tax_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Party {self.party_type}: {self.name}>"
