from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session
from cuehall.util.security import decode_token
from cuehall.db import get_db
from cuehall.models.core import User, UserRoleCode

auth_scheme = HTTPBearer(auto_error=False)

# ADMIN bypasses the map entirely
ROLE_PERMISSIONS: dict[UserRoleCode, set[str]] = {
    UserRoleCode.CASHIER: {"SESSION_OPERATE", "ORDER_EDIT"},
}

def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials)
        return data["sub"]
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def has_perm(user: User, code: str) -> bool:
    if user.role == UserRoleCode.ADMIN:
        return True
    return code in ROLE_PERMISSIONS.get(user.role, set())

def require_perm(code: str):
    def _dep(sub: str = Depends(require_auth), db: Session = Depends(get_db)):
        user = db.get(User, sub)
        if not user or not user.active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
        if not has_perm(user, code):
            raise HTTPException(status_code=403, detail=f"Missing permission: {code}")
        return sub
    return _dep
