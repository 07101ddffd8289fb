import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from cuehall.schemas.common import Token
from cuehall.util.security import create_token, verify_pw
from cuehall.util.audit import log_action
from cuehall.models.core import User
from cuehall.db import get_db

router = APIRouter(prefix="/auth", tags=["auth"])
log = logging.getLogger(__name__)

@router.post("/login", response_model=Token)
def login(mobile: str, password: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.mobile == mobile).first()
    if not user or not user.active or not verify_pw(user.pass_hash, password):
        log.warning("failed login for %s", mobile)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    log_action(db, user.id, "LOGIN", "user", user.id)
    db.commit()
    return Token(access_token=create_token(user.id, user.role.value), role=user.role.value)
