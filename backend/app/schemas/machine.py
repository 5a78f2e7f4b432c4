"""
Machine Pydantic Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.core.status_config import MachineStatus


class MachineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    serial_number: str = Field(..., min_length=1, max_length=100)
    machine_type: str = Field(..., min_length=1, max_length=100)
    status: MachineStatus = MachineStatus.OPERATIONAL
    notes: Optional[str] = None


class MachineResponse(BaseModel):
    id: int
    name: str
    serial_number: str
    machine_type: str
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
