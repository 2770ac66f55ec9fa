"""
PetMatch Backend - Pet SQLAlchemy Model
=======================================

What:  ORM model for the `pets` table.
Who:   Listings are managed by the pet catalogue component. The adoption
       lifecycle engine is the only writer of adoption_status transitions
       available → pending → adopted (and pending → available on release),
       plus adopted_date / adopted_by / adoption_history.

Concurrency:
    adoption_status is written from more than one call path (submission,
    rejection, completion), so the row carries a version counter. A
    concurrent writer that loses the race gets StaleDataError on flush.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import DateTime, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONDocument, Money, utcnow

# ── Adoption Status Values ────────────────────────────────────────────────
PET_AVAILABLE = "available"
PET_PENDING = "pending"
PET_ADOPTED = "adopted"
PET_NOT_AVAILABLE = "not-available"
PET_HOLD = "hold"

PET_STATUSES = frozenset({PET_AVAILABLE, PET_PENDING, PET_ADOPTED, PET_NOT_AVAILABLE, PET_HOLD})


class Pet(Base):
    """A pet listed for adoption by a shelter."""

    __tablename__ = "pets"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    species: Mapped[str] = mapped_column(String(50), nullable=False, default="dog")

    shelter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shelters.id"), nullable=False, index=True,
    )

    # ── Adoption ──────────────────────────────────────────────────────────
    adoption_fee: Mapped[float] = mapped_column(Money, nullable=False, default=0.0)

    adoption_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PET_AVAILABLE,
        server_default=text(f"'{PET_AVAILABLE}'"),
        index=True,
    )

    adopted_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    adopted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Entries: {"adopted_by", "adoption_date", "application_id", "status"}
    adoption_history: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Pet(id={self.id}, name='{self.name}', adoption_status='{self.adoption_status}')>"
