"""
PetMatch Backend - Shelter SQLAlchemy Model
===========================================

What:  ORM model for the `shelters` table.
Who:   Created and managed by the shelter administration component. The
       adoption lifecycle only writes the adoption statistics columns.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class Shelter(Base):
    """
    A shelter or rescue organization that lists pets.

    Statistics:
        adoptions_total / adoptions_this_year are incremented when an adoption
        for one of the shelter's pets completes. stats_year records which
        calendar year adoptions_this_year refers to; the counter resets the
        first time an adoption completes in a new year.
    """

    __tablename__ = "shelters"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # ── Adoption Statistics ───────────────────────────────────────────────
    adoptions_total: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )
    adoptions_this_year: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )
    stats_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def record_adoption(self, when: datetime) -> None:
        """Increment the adoption counters, rolling the yearly counter over if needed."""
        if self.stats_year != when.year:
            self.stats_year = when.year
            self.adoptions_this_year = 0
        self.adoptions_this_year = (self.adoptions_this_year or 0) + 1
        self.adoptions_total = (self.adoptions_total or 0) + 1

    def __repr__(self) -> str:
        return f"<Shelter(id={self.id}, name='{self.name}')>"
