from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from pydantic import BaseModel
from typing import List
import jwt
from datetime import datetime, timedelta, timezone
from exambank.core.config import APP_SECRET, TOKEN_TTL_MINUTES
from exambank.models.orm import UserRole


class TokenData(BaseModel):
    sub: str
    roles: List[str]

    @property
    def user_id(self) -> int:
        return int(self.sub)

    @property
    def is_admin(self) -> bool:
        return UserRole.ADMIN.value in self.roles


bearer = HTTPBearer()
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_token(user_id: int, roles: List[str], ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "roles": roles, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp())}
    return jwt.encode(payload, APP_SECRET, algorithm="HS256")


def get_current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> TokenData:
    try:
        payload = jwt.decode(creds.credentials, APP_SECRET, algorithms=["HS256"])
        return TokenData(sub=payload["sub"], roles=payload.get("roles", []))
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")


def require_roles(*required: str):
    def checker(user: TokenData = Depends(get_current_user)):
        roles = set(user.roles)
        if not roles.intersection(set(required)):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user
    return checker
