from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, constr
from typing import List
from sqlalchemy.orm import Session
from exambank.core.auth import TokenData, create_token, get_current_user, hash_password, verify_password
from exambank.core.database import get_db
from exambank.core.errors import ConflictError
from exambank.models.orm import UserRole
from exambank.services.stores import SqlUserStore

router = APIRouter()


class Credentials(BaseModel):
    username: constr(min_length=1, max_length=100)
    password: constr(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    roles: List[str]


@router.post("/register", status_code=201)
def register(payload: Credentials, db: Session = Depends(get_db)):
    users = SqlUserStore(db)
    if users.get_by_username(payload.username) is not None:
        raise ConflictError("Username already taken", {"username": payload.username})
    u = users.add(payload.username, hash_password(payload.password), UserRole.STUDENT)
    db.commit()
    return {"id": u.id, "username": u.username, "role": u.role}


@router.post("/login", response_model=TokenOut)
def login(payload: Credentials, db: Session = Depends(get_db)):
    u = SqlUserStore(db).get_by_username(payload.username)
    if u is None or not verify_password(payload.password, u.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    roles = [u.role]
    return TokenOut(access_token=create_token(u.id, roles), user_id=u.id, roles=roles)


@router.get("/me")
def me(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"user_id": user.user_id, "username": SqlUserStore(db).get_username(user.user_id), "roles": user.roles}
