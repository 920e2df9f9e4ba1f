"""Resolves the identity-provider uid sent by the client to a stored user.

Sign-in itself happens in the identity provider; the client forwards the
provider's uid in the ``x-user-uid`` header.
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from . import crud
from .db import get_db
from .models import User

USER_UID_HEADER = "x-user-uid"


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    uid = request.headers.get(USER_UID_HEADER, "").strip()
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = crud.get_user_by_firebase_uid(db, uid)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user
