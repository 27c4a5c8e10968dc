import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from exambank.core.config import LOG_LEVEL, CORS_ORIGINS, AUTO_CREATE_TABLES
from exambank.core.database import init_db
from exambank.core.errors import ExamError
from exambank.api.auth import router as auth_router
from exambank.api.users import router as users_router
from exambank.api.questions import router as questions_router
from exambank.api.exams import router as exams_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database tables ensured")
    yield


app = FastAPI(title="Exam Bank API", version="1.0.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
app.include_router(auth_router, prefix="/v1/auth", tags=["auth"])
app.include_router(users_router, prefix="/v1/users", tags=["users"])
app.include_router(questions_router, prefix="/v1/questions", tags=["questions"])
app.include_router(exams_router, prefix="/v1/exams", tags=["exams"])


def _error(status_code: int, message, type_: str, details=None) -> JSONResponse:
    body = {"message": message, "type": type_}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    return _error(exc.status_code, exc.message, exc.code, exc.details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, exc.detail, "http_error")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", "validation_error", jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal error occurred", "internal_error")


@app.get("/health")
def health(): return {"status": "ok"}
