import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pymongo.database import Database

from config import ACCESS_TOKEN_EXPIRE_DAYS, JWT_ALGORITHM, JWT_SECRET
from database import get_db
from utils import sanitize

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/jwt")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def require_auth(request: Request, token: str = Depends(oauth2_scheme)) -> dict:
    payload = decode_token(token)
    if not payload.get("email"):
        raise HTTPException(status_code=401, detail="Invalid token")
    request.state.claims = payload
    return payload


def require_role(*roles: str):
    # Role comes from the stored user on every call, never from the token,
    # so a role change applies even to tokens issued before it.
    def role_dep(claims: dict = Depends(require_auth), db: Database = Depends(get_db)):
        user = db["user"].find_one({"email": claims["email"]})
        if not user or user.get("role") not in roles:
            logger.info("Denied %s access to %s", claims["email"], "/".join(roles))
            raise HTTPException(status_code=403, detail="Forbidden access")
        return sanitize(user)
    return role_dep
