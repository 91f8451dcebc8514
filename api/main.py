import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import chat, conversations, parameters
from core.config import settings
from core.segments import SegmentIntegrityError
from core.validation import SemanticRuleViolation, ValidationError
from db.database import init_db

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database ready")
    yield


app = FastAPI(lifespan=lifespan, title="Conversational Flight Search", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origin_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    max_age=86400,
)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    kind = "Semantic rule violation" if isinstance(exc, SemanticRuleViolation) else "Validation error"
    return JSONResponse(status_code=400, content={"error": kind, "details": exc.details()})


@app.exception_handler(SegmentIntegrityError)
async def segment_error_handler(request: Request, exc: SegmentIntegrityError):
    return JSONResponse(status_code=400, content={"error": "Segment integrity error", "details": [exc.to_dict()]})


app.include_router(conversations.router)
app.include_router(parameters.router)
app.include_router(chat.router)

