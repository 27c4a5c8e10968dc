import argparse, json, logging
from typing import Iterable, List
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from exambank.core.auth import hash_password
from exambank.core.config import SEED_STUDENT_PASSWORD, LOG_LEVEL
from exambank.core.database import SessionLocal, init_db
from exambank.models.orm import UserRole
from exambank.models.schemas import QuestionIn
from exambank.services.stores import SqlQuestionStore, SqlUserStore

logger = logging.getLogger("exambank.seed")


def import_questions(db: Session, records: Iterable[dict]) -> int:
    """Add every valid record to the bank; invalid ones are logged and left out."""
    store = SqlQuestionStore(db)
    added = 0
    for i, rec in enumerate(records):
        try:
            q = QuestionIn.model_validate(rec)
        except PydanticValidationError as e:
            logger.warning("Skipping question #%d: %s", i, e.errors()[0].get("msg"))
            continue
        data = q.model_dump(); data["type"] = int(q.type)
        store.add(**data)
        added += 1
    return added


def add_test_students(db: Session, count: int, password: str = SEED_STUDENT_PASSWORD) -> List[str]:
    users = SqlUserStore(db)
    if count <= 0 or users.has_students():
        return []
    pw = hash_password(password)
    names = [f"student{i}" for i in range(1, count + 1)]
    for name in names:
        users.add(name, pw, UserRole.STUDENT)
    return names


def create_admin(db: Session, username: str, password: str) -> bool:
    users = SqlUserStore(db)
    if users.get_by_username(username) is not None:
        return False
    users.add(username, hash_password(password), UserRole.ADMIN)
    return True


def main(argv=None):
    ap = argparse.ArgumentParser(description="Seed the exam bank database")
    ap.add_argument("--questions", help="JSON file holding a list of question objects")
    ap.add_argument("--students", type=int, default=0, help="create student1..N when no student exists")
    ap.add_argument("--student-password", dest="student_password", default=SEED_STUDENT_PASSWORD)
    ap.add_argument("--admin", default=None, help="admin username to create")
    ap.add_argument("--admin-password", dest="admin_password", default=None)
    ap.add_argument("--no-create-tables", dest="create_tables", action="store_false")
    args = ap.parse_args(argv)
    if args.admin and not args.admin_password:
        ap.error("--admin-password is required with --admin")

    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    if args.create_tables:
        init_db()

    db = SessionLocal()
    try:
        if args.questions:
            with open(args.questions, encoding="utf-8") as f:
                records = json.load(f)
            logger.info("Imported %d questions from %s", import_questions(db, records), args.questions)
        if args.students:
            names = add_test_students(db, args.students, args.student_password)
            if names:
                logger.info("Created %d test students", len(names))
            else:
                logger.info("Students already present, none created")
        if args.admin:
            created = create_admin(db, args.admin, args.admin_password)
            logger.info("Admin %s %s", args.admin, "created" if created else "already exists")
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__=="__main__": main()
