from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from decimal import Decimal

from cuehall.db import get_db
from cuehall.deps import require_perm
from cuehall.models.core import PayMethod, SessionType
from cuehall.schemas.sessions import SessionOpenIn, WalkInIn, PayIn, TableBillOut, PayOut
from cuehall.services import sessions as svc

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _http(e: svc.SessionError) -> HTTPException:
    if isinstance(e, svc.SessionNotFound):
        return HTTPException(404, detail=str(e))
    if isinstance(e, (svc.InvalidTender, svc.TableUnavailable)):
        return HTTPException(400, detail=str(e))
    return HTTPException(409, detail=str(e))


def _load(db: Session, session_id: str):
    try:
        return svc.get_session(db, session_id)
    except svc.SessionError as e:
        raise _http(e)


def _fields(body) -> dict:
    data = body.model_dump(exclude={"pool_table_id"})
    data["prepaid_method"] = PayMethod(data["prepaid_method"])
    data["session_type"] = SessionType(data["session_type"])
    for k in ("bet_amount", "override_hourly_rate", "prepaid_amount"):
        if data.get(k) is not None:
            data[k] = Decimal(str(data[k]))
    return data


# ------------------------------------------------------------------
# POST /sessions  -> open a pool table (returns the open one if any)
# ------------------------------------------------------------------
@router.post("")
def open_session(body: SessionOpenIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    now = datetime.now(timezone.utc)
    try:
        s, created = svc.open_table_session(db, body.pool_table_id, now, actor_user_id=sub, **_fields(body))
    except svc.SessionError as e:
        raise _http(e)
    return {**svc.session_row(s), "created": created}


@router.post("/walk-in")
def open_walk_in(body: WalkInIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    s = svc.open_walk_in(db, datetime.now(timezone.utc), actor_user_id=sub,
                         customer_name=body.customer_name, customer_id=body.customer_id)
    return svc.session_row(s)


@router.get("/{session_id}")
def get_session(session_id: str, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    s = _load(db, session_id)
    try:
        order = svc.get_order(db, s)
    except svc.SessionError as e:
        raise _http(e)
    return {**svc.session_row(s), "order_id": order.id, "order_status": order.status.value}


@router.post("/{session_id}/pause")
def pause(session_id: str, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    s = _load(db, session_id)
    try:
        s = svc.pause_session(db, s, datetime.now(timezone.utc), actor_user_id=sub)
    except svc.SessionError as e:
        raise _http(e)
    return svc.session_row(s)


@router.post("/{session_id}/resume")
def resume(session_id: str, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    s = _load(db, session_id)
    try:
        s = svc.resume_session(db, s, datetime.now(timezone.utc), actor_user_id=sub)
    except svc.SessionError as e:
        raise _http(e)
    return svc.session_row(s)


@router.get("/{session_id}/bill", response_model=TableBillOut)
def bill(session_id: str, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    """
    Live estimate for the counter display, polled about once a second.
    Nothing is written.
    """
    s = _load(db, session_id)
    try:
        return svc.live_bill(db, s, datetime.now(timezone.utc)).as_dict()
    except svc.SessionError as e:
        raise _http(e)


@router.post("/{session_id}/release")
def release(session_id: str, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    s = _load(db, session_id)
    now = datetime.now(timezone.utc)
    try:
        s = svc.release_table(db, s, now, actor_user_id=sub)
        bill = svc.live_bill(db, s, now)
    except svc.SessionError as e:
        raise _http(e)
    return {**svc.session_row(s), "bill": bill.as_dict()}


@router.post("/{session_id}/pay", response_model=PayOut)
def pay(session_id: str, body: PayIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    s = _load(db, session_id)
    try:
        result = svc.pay_and_close(db, s, PayMethod(body.method), body.tendered_amount,
                                   datetime.now(timezone.utc), actor_user_id=sub)
    except svc.SessionError as e:
        raise _http(e)
    return result.as_dict()
