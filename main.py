import logging
import random
import re
import shutil
import time
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

from fastapi import FastAPI, APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

import database
import models
from config import settings
from logging_config import setup_logging
from store import ConversationNotFound, ConversationStore
from translator.providers import ProviderClient, create_provider_client
from translator.services import SummarizationService, TranslationService

logger = logging.getLogger(__name__)

NO_MESSAGES_SUMMARY = "No messages yet."
DEFAULT_AUDIO_EXT = ".webm"
_SAFE_EXT = re.compile(r"\.[A-Za-z0-9]{1,10}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    logger.info("...Selecting LLM provider and setting up database...")
    app.state.provider = create_provider_client(settings)
    logger.info("LLM provider: %s", app.state.provider.name)
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    async with database.engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    logger.info("...Startup complete.")
    yield
    await database.engine.dispose()


app = FastAPI(title="Medical Interpreter API", version="1.0.0", lifespan=lifespan)
app.state.provider = None
router = APIRouter(prefix="/api")


# --- Dependencies ---

def get_store(db: AsyncSession = Depends(database.get_db)) -> ConversationStore:
    return ConversationStore(db)

def get_provider(request: Request) -> ProviderClient:
    return request.app.state.provider

def get_translation_service(provider: ProviderClient = Depends(get_provider)) -> TranslationService:
    return TranslationService(provider)

def get_summarization_service(provider: ProviderClient = Depends(get_provider)) -> SummarizationService:
    return SummarizationService(provider)

def get_upload_dir() -> Path:
    return Path(settings.upload_dir)


# --- Schemas ---

Role = Literal["doctor", "patient"]

class ConversationCreate(BaseModel): title: Optional[str] = None

class MessageCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    role: Role
    text: str
    source_language: str = Field(alias="sourceLanguage", min_length=1)
    target_language: str = Field(alias="targetLanguage", min_length=1)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v

class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    created_at: Optional[datetime] = None

class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    conversation_id: int
    role: str
    source_language: str
    target_language: str
    text: str
    translated_text: str
    audio_path: Optional[str] = None
    created_at: Optional[datetime] = None

class ConversationDetail(BaseModel): conversation: ConversationOut; messages: list[MessageOut]
class SearchResult(MessageOut): title: str
class SummaryOut(BaseModel): summary: str


# --- Error handling ---

@app.exception_handler(ConversationNotFound)
async def conversation_not_found_handler(request: Request, exc: ConversationNotFound):
    return JSONResponse(status_code=404, content={"error": "Not found"})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())})

@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Storage failure"})

@app.exception_handler(OSError)
async def file_error_handler(request: Request, exc: OSError):
    logger.exception("File system failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Failed to store upload"})


# --- Routes ---

@app.get("/")
async def health():
    return {"status": "ok"}

@router.post("/conversations", response_model=ConversationOut)
async def create_conversation(payload: Optional[ConversationCreate] = None, store: ConversationStore = Depends(get_store)):
    return await store.create_conversation(payload.title if payload else None)

@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(store: ConversationStore = Depends(get_store)):
    return await store.list_conversations()

@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(conversation_id: int, store: ConversationStore = Depends(get_store)):
    convo, messages = await store.get_conversation(conversation_id)
    return {"conversation": convo, "messages": messages}

@router.post("/conversations/{conversation_id}/messages", response_model=MessageOut)
async def add_message(
    conversation_id: int,
    payload: MessageCreate,
    store: ConversationStore = Depends(get_store),
    translator: TranslationService = Depends(get_translation_service),
):
    await store.require_conversation(conversation_id)
    translated = await translator.translate(payload.text, payload.source_language, payload.target_language)
    return await store.append_message(
        conversation_id, payload.role, payload.source_language, payload.target_language, payload.text, translated,
    )

def unique_audio_filename(original_name: Optional[str]) -> str:
    """<epoch millis>-<random><ext>, so concurrent uploads never collide.

    Only a short alphanumeric extension is kept from the client's name;
    anything else (none, too long, odd characters) becomes ``.webm``.
    """
    ext = Path(original_name or "").suffix
    if not _SAFE_EXT.fullmatch(ext):
        ext = DEFAULT_AUDIO_EXT
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"

def _save_upload(upload: UploadFile, upload_dir: Path, filename: str) -> None:
    upload_dir.mkdir(parents=True, exist_ok=True)
    with (upload_dir / filename).open("wb") as out:
        shutil.copyfileobj(upload.file, out)

@router.post("/conversations/{conversation_id}/audio", response_model=MessageOut)
async def upload_audio(
    conversation_id: int,
    audio: UploadFile = File(...),
    role: Role = Form(...),
    source_language: str = Form(..., alias="sourceLanguage", min_length=1),
    target_language: str = Form(..., alias="targetLanguage", min_length=1),
    text: str = Form(""),
    store: ConversationStore = Depends(get_store),
    translator: TranslationService = Depends(get_translation_service),
    upload_dir: Path = Depends(get_upload_dir),
):
    await store.require_conversation(conversation_id)

    # file first: a failed write must not cost a vendor call
    filename = unique_audio_filename(audio.filename)
    await run_in_threadpool(_save_upload, audio, upload_dir, filename)

    translated = await translator.translate(text, source_language, target_language)
    return await store.append_message(
        conversation_id, role, source_language, target_language, text, translated, audio_path=f"/uploads/{filename}",
    )

@router.get("/search", response_model=list[SearchResult])
async def search(q: str = "", store: ConversationStore = Depends(get_store)):
    rows = await store.search(q)
    return [SearchResult(**MessageOut.model_validate(message).model_dump(), title=title) for message, title in rows]

@router.get("/conversations/{conversation_id}/summary", response_model=SummaryOut)
async def summarize_conversation(
    conversation_id: int,
    store: ConversationStore = Depends(get_store),
    summarizer: SummarizationService = Depends(get_summarization_service),
):
    await store.require_conversation(conversation_id)
    messages = await store.list_messages(conversation_id)
    if not messages:
        return {"summary": NO_MESSAGES_SUMMARY}
    return {"summary": await summarizer.summarize(messages)}


app.include_router(router)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.host, port=settings.port, log_config=None)
