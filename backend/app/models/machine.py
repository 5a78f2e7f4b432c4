"""
Machine model - cutting tables, sewing machines, pressing stations
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime

from app.db.base import Base


class Machine(Base):
    """
    A physical machine that work order operations are assigned to.

    Examples:
    - "Juki DDL-8700" - lockstitch
    - "Brother 3034D" - overlock
    """
    __tablename__ = "machines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    serial_number = Column(String(100), unique=True, nullable=False, index=True)

    # Must equal the operation's machine_type to be assignable
    machine_type = Column(String(100), nullable=False, index=True)

    # Status: operational, maintenance, offline
    status = Column(String(50), default="operational", nullable=False, index=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Machine {self.serial_number}: {self.name} ({self.status})>"

    @property
    def is_operational(self):
        """True if machine can take new assignments"""
        return self.status == "operational"
