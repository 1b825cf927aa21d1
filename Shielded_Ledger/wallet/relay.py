"""
HTTP clients for the messaging relay and the account-overview service.

Both speak JSON over the same backend and attach ``Authorization: Bearer``
when a token is configured.  Transport and HTTP errors surface as
UpstreamUnavailableError; nothing here retries on its own.

Identical concurrent ``fetch_messages`` calls (same filter) share a single
in-flight request.
"""

import asyncio
from typing import Any, Optional, Sequence
from urllib.parse import urlencode

import httpx

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.errors import (
    InvalidMessageKindError,
    MalformedNoteError,
    UpstreamUnavailableError,
)
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.note_codec import note_from_dict, note_to_dict, parse_field
from Shielded_Ledger.ledger_shared.types import (
    EncryptedMessage,
    MessageFilter,
    MessagePage,
    Note,
    NoteStatus,
)

logger = get_logger(__name__)


class _ApiClient:
    def __init__(
        self,
        base_url: str = config.RELAY_BASE_URL,
        token: Optional[str] = config.RELAY_AUTH_TOKEN,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(operation, str(e)) from e

        if resp.status_code >= 400:
            detail = resp.text
            try:
                body = resp.json()
                if isinstance(body, dict):
                    detail = body.get("message") or body.get("detail") or resp.text
            except ValueError:
                pass
            raise UpstreamUnavailableError(operation, str(detail), resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamUnavailableError(operation, "response is not JSON") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _filter_params(message_filter: MessageFilter) -> dict[str, str]:
    params = {}
    if message_filter.recipient_key:
        params["recipientKey"] = message_filter.recipient_key
    if message_filter.sender_key:
        params["senderKey"] = message_filter.sender_key
    if message_filter.unread_only:
        params["unreadOnly"] = "true"
    params["limit"] = str(message_filter.limit)
    params["offset"] = str(message_filter.offset)
    return params


def _parse_message(raw: dict) -> EncryptedMessage:
    return EncryptedMessage(
        id=str(raw.get("id", "")),
        recipient_key=raw.get("recipientKey", ""),
        ciphertext=raw.get("ciphertext") or raw.get("ciphertextB64") or "",
        kind=raw.get("kind", ""),
        created_at=str(raw.get("createdAt", "")),
        sender_key=raw.get("senderKey"),
        read_at=raw.get("readAt"),
    )


class RelayClient(_ApiClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._in_flight: dict[str, asyncio.Task] = {}

    async def _get_messages(self, params: dict[str, str]) -> MessagePage:
        body = await self._request("fetch_messages", "GET", config.MESSAGES_PATH, params=params)
        if not isinstance(body, dict):
            raise UpstreamUnavailableError("fetch_messages", "unexpected response shape")
        raw_messages = body.get("messages") or []
        messages = [_parse_message(m) for m in raw_messages if isinstance(m, dict)]
        try:
            total = int(body.get("total", len(messages)))
        except (TypeError, ValueError):
            raise UpstreamUnavailableError("fetch_messages", "malformed total")
        return MessagePage(messages=messages, total=total)

    async def fetch_messages(self, message_filter: MessageFilter = MessageFilter()) -> MessagePage:
        params = _filter_params(message_filter)
        key = f"{config.MESSAGES_PATH}?{urlencode(params)}"

        task = self._in_flight.get(key)
        if task is not None:
            logger.debug("Reusing in-flight request for %s", key)
        else:
            task = asyncio.ensure_future(self._get_messages(params))
            self._in_flight[key] = task

            def _forget(t: asyncio.Task, k: str = key) -> None:
                if self._in_flight.get(k) is t:
                    del self._in_flight[k]

            task.add_done_callback(_forget)

        return await asyncio.shield(task)

    async def fetch_all_messages(self, message_filter: MessageFilter = MessageFilter()) -> list[EncryptedMessage]:
        """Page through every message matching ``message_filter``."""
        messages: list[EncryptedMessage] = []
        offset = message_filter.offset
        while True:
            page = await self.fetch_messages(MessageFilter(
                recipient_key=message_filter.recipient_key,
                sender_key=message_filter.sender_key,
                unread_only=message_filter.unread_only,
                limit=message_filter.limit,
                offset=offset,
            ))
            messages.extend(page.messages)
            offset += len(page.messages)
            if not page.messages or offset >= page.total:
                return messages

    async def post_message(self, recipient_key: str, ciphertext_b64: str, kind: str) -> dict:
        if kind not in config.VALID_MESSAGE_KINDS:
            raise InvalidMessageKindError(kind)
        return await self._request(
            "post_message", "POST", config.MESSAGES_PATH,
            json={"recipientKey": recipient_key, "ciphertextB64": ciphertext_b64, "kind": kind},
        )

    async def mark_read(self, message_id: str) -> dict:
        return await self._request("mark_read", "POST", f"{config.MESSAGES_PATH}/{message_id}/read")


class OverviewClient(_ApiClient):
    async def compute_overview(self, notes: Sequence[Note], check_on_chain: bool = False) -> list[NoteStatus]:
        body = await self._request(
            "compute_overview", "POST", config.OVERVIEW_PATH,
            json={"notes": [note_to_dict(n) for n in notes], "checkOnChain": check_on_chain},
        )
        try:
            return [
                NoteStatus(
                    note=note_from_dict(entry["note"], bare_hex=False),
                    nullifier_hex=str(entry["nullifierHex"]),
                    is_spent=bool(entry["isSpent"]),
                    amount=parse_field(entry["amount"], "amount", bare_hex=False),
                )
                for entry in body["notes"]
            ]
        except (KeyError, TypeError, MalformedNoteError) as e:
            raise UpstreamUnavailableError("compute_overview", f"malformed response: {e}") from e
