"""
FastAPI endpoints for the reference message relay.

The relay stores envelope ciphertext as opaque base64 text: it never sees
keys or plaintext.  Field names are camelCase on the wire to match the
wallet's RelayClient.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from Shielded_Ledger.ledger_server import config, db
from Shielded_Ledger.ledger_server.message_store import MessageStore
from Shielded_Ledger.ledger_shared import config as shared_config
from Shielded_Ledger.ledger_shared.errors import MessageStoreError
from Shielded_Ledger.ledger_shared.types import EncryptedMessage, MessageFilter


# ── Pydantic request/response models ──


class PostMessageRequest(BaseModel):
    recipientKey: str = Field(min_length=1, max_length=66)
    ciphertextB64: str = Field(min_length=1)
    kind: str
    senderKey: Optional[str] = Field(default=None, max_length=66)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v):
        if v not in shared_config.VALID_MESSAGE_KINDS:
            raise ValueError(f"Invalid kind: {v}")
        return v


class MessageOut(BaseModel):
    id: str
    recipientKey: str
    senderKey: Optional[str] = None
    ciphertextB64: str
    kind: str
    createdAt: str
    readAt: Optional[str] = None


class PostMessageResponse(BaseModel):
    success: bool
    message: MessageOut


class MessagesResponse(BaseModel):
    messages: list[MessageOut]
    total: int


class MarkReadResponse(BaseModel):
    success: bool


class PurgeRequest(BaseModel):
    max_age_days: int = config.PURGE_READ_MAX_AGE_DAYS


class DeleteResponse(BaseModel):
    deleted: int


class HealthResponse(BaseModel):
    status: str
    db_connected: bool


def _message_out(msg: EncryptedMessage) -> MessageOut:
    return MessageOut(
        id=msg.id,
        recipientKey=msg.recipient_key,
        senderKey=msg.sender_key,
        ciphertextB64=msg.ciphertext,
        kind=msg.kind,
        createdAt=msg.created_at,
        readAt=msg.read_at,
    )


# ── App lifecycle ──


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.create_pool(
        config.PG_DSN,
        min_size=config.PG_POOL_MIN_SIZE,
        max_size=config.PG_POOL_MAX_SIZE,
    )
    yield
    await db.close_pool()


app = FastAPI(title="Shielded Ledger Relay", version="1.0.0", lifespan=lifespan)


def _get_store() -> MessageStore:
    if db.pool is None:
        raise HTTPException(status_code=503, detail="Database pool not initialized")
    return MessageStore(db.pool)


# ── Endpoints ──


@app.post("/api/v1/messages", response_model=PostMessageResponse)
async def post_message(req: PostMessageRequest):
    store = _get_store()
    try:
        msg = await store.post_message(req.recipientKey, req.ciphertextB64, req.kind, req.senderKey)
    except MessageStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return PostMessageResponse(success=True, message=_message_out(msg))


@app.get("/api/v1/messages", response_model=MessagesResponse)
async def get_messages(
    recipientKey: Optional[str] = Query(None),
    senderKey: Optional[str] = Query(None),
    unreadOnly: bool = Query(False),
    limit: int = Query(shared_config.DEFAULT_FETCH_LIMIT, gt=0, le=config.FETCH_MAX_LIMIT),
    offset: int = Query(0, ge=0),
):
    store = _get_store()
    try:
        page = await store.fetch_messages(MessageFilter(
            recipient_key=recipientKey,
            sender_key=senderKey,
            unread_only=unreadOnly,
            limit=limit,
            offset=offset,
        ))
    except MessageStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return MessagesResponse(messages=[_message_out(m) for m in page.messages], total=page.total)


@app.post("/api/v1/messages/{message_id}/read", response_model=MarkReadResponse)
async def mark_read(message_id: int):
    store = _get_store()
    try:
        found = await store.mark_read(message_id)
    except MessageStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not found:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return MarkReadResponse(success=True)


@app.post("/api/v1/admin/purge-read", response_model=DeleteResponse)
async def purge_read(req: PurgeRequest):
    store = _get_store()
    try:
        deleted = await store.purge_read(max_age_days=req.max_age_days)
    except MessageStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DeleteResponse(deleted=deleted)


@app.get("/api/v1/health", response_model=HealthResponse)
async def health():
    connected = await db.health_check()
    return HealthResponse(
        status="ok" if connected else "degraded",
        db_connected=connected,
    )
