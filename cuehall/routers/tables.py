# cuehall/routers/tables.py
from sqlalchemy.exc import IntegrityError
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from datetime import datetime, timezone
from decimal import Decimal

from cuehall.db import get_db
from cuehall.deps import require_auth, require_perm
from cuehall.models.core import PoolTable, TableSession, SessionStatus
from cuehall.schemas.catalog import PoolTableIn
from cuehall.util.audit import log_action

router = APIRouter(prefix="/tables", tags=["tables"])


def _row_from_table(t: PoolTable, occupied: bool = False) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "hourly_rate": float(t.hourly_rate or 0),
        "is_active": bool(t.is_active),
        "occupied": occupied,
    }


# ------------------------------------------------------------------
# POST /tables  -> create a pool table
# ------------------------------------------------------------------
@router.post("")
def create_table(
    body: PoolTableIn,
    db: Session = Depends(get_db),
    sub: str = Depends(require_perm("SETTINGS_EDIT")),
):
    try:
        t = PoolTable(name=body.name, hourly_rate=Decimal(str(body.hourly_rate)), is_active=body.is_active)
        db.add(t)
        db.flush()
        log_action(db, sub, "CREATE_TABLE", "pool_table", t.id, {"name": t.name, "hourly_rate": t.hourly_rate})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="table with this name already exists")

    return _row_from_table(t)


# ------------------------------------------------------------------
# GET /tables  -> list tables with their occupancy
# ------------------------------------------------------------------
@router.get("")
def list_tables(
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    """
    Returns pool tables that are not soft-deleted, ordered by name.
    `occupied` is true while an OPEN session still holds the table.
    """
    rows: List[PoolTable] = (
        db.query(PoolTable)
        .filter(PoolTable.deleted_at.is_(None))
        .order_by(PoolTable.name.asc())
        .all()
    )
    busy = {
        row[0] for row in
        db.query(TableSession.pool_table_id)
        .filter(TableSession.status == SessionStatus.OPEN, TableSession.pool_table_id.isnot(None))
        .all()
    }
    return [_row_from_table(t, t.id in busy) for t in rows]


# ------------------------------------------------------------------
# DELETE /tables/{table_id}  -> soft delete
# ------------------------------------------------------------------
@router.delete("/{table_id}")
def delete_table(
    table_id: str,
    db: Session = Depends(get_db),
    sub: str = Depends(require_perm("SETTINGS_EDIT")),
):
    t: PoolTable | None = db.get(PoolTable, table_id)
    if not t or t.deleted_at is not None:
        raise HTTPException(status_code=404, detail="table not found")

    in_use = (
        db.query(TableSession)
        .filter(TableSession.pool_table_id == table_id, TableSession.status == SessionStatus.OPEN)
        .first()
    )
    if in_use:
        raise HTTPException(status_code=409, detail="table has an open session")

    t.deleted_at = datetime.now(timezone.utc)
    t.is_active = False
    log_action(db, sub, "DELETE_TABLE", "pool_table", t.id)
    db.commit()
    return {"ok": True, "id": table_id}
