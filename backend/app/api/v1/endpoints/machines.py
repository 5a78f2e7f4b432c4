"""
Machines API Endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.status_config import MachineStatus
from app.schemas.machine import MachineCreate, MachineResponse
from app.services.operation_planning import create_machine, list_machines

router = APIRouter()


@router.get("/", response_model=List[MachineResponse])
def list_machines_endpoint(
    machine_type: Optional[str] = Query(None, description="Filter by machine type"),
    status: Optional[MachineStatus] = Query(None),
    db: Session = Depends(get_db),
):
    return list_machines(db, machine_type=machine_type, status=status.value if status else None)


@router.post("/", response_model=MachineResponse, status_code=201)
def register_machine(request: MachineCreate, db: Session = Depends(get_db)):
    machine = create_machine(
        db,
        name=request.name,
        serial_number=request.serial_number,
        machine_type=request.machine_type,
        status=request.status.value,
        notes=request.notes,
    )
    db.commit()
    db.refresh(machine)
    return machine
