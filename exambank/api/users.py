from fastapi import APIRouter, Depends
from typing import List
from sqlalchemy.orm import Session
from exambank.core.database import get_db
from exambank.core.auth import require_roles
from exambank.models.schemas import StudentOut
from exambank.services.stores import SqlUserStore

router = APIRouter()


@router.get("/students", response_model=List[StudentOut], dependencies=[Depends(require_roles("admin"))])
def list_students(db: Session = Depends(get_db)):
    return SqlUserStore(db).list_students()
