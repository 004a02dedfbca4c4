"""HTTP client for the conversation API."""

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from adal_core.client.errors import NetworkError, SessionExpiredError, StoreError
from adal_models import Conversation, Message

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class HttpConversationStore:
    """Conversation persistence through ``/api/conversations``.

    A 401 means the session is gone and surfaces as SessionExpiredError; a
    403 is an ownership violation and is reported as FALLO_INTEGRIDAD_USUARIO.
    """

    def __init__(self, http: httpx.AsyncClient, access_token: str):
        self.http = http
        self.access_token = access_token

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(str(e)) from e

        if response.status_code == 401:
            raise SessionExpiredError()
        if response.status_code == 403:
            raise StoreError("FALLO_INTEGRIDAD_USUARIO: operación rechazada por el almacén.")
        if response.is_error:
            try:
                detail = response.json().get("message", response.text)
            except (ValueError, AttributeError):
                detail = response.text
            logger.error(f"Conversation store {method} {path} failed ({response.status_code}): {detail}")
            raise StoreError(f"ERROR_REGISTRO_DATOS: ({response.status_code}) {detail}")
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"ERROR_REGISTRO_DATOS: respuesta ilegible del almacén: {e}") from e

    @staticmethod
    def _parse(data: Any, model: type[T], key: str | None = None) -> Any:
        """Validate a store reply; a malformed one is a store failure."""
        try:
            if key is None:
                return model.model_validate(data)
            return [model.model_validate(item) for item in data[key]]
        except (KeyError, TypeError, ValidationError) as e:
            raise StoreError(f"ERROR_REGISTRO_DATOS: respuesta inesperada del almacén: {e}") from e

    async def list_conversations(self) -> list[Conversation]:
        data = await self._request("GET", "/api/conversations")
        return self._parse(data, Conversation, "conversations")

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        data = await self._request(
            "POST", "/api/conversations", json={"title": title, "user_id": user_id}
        )
        return self._parse(data, Conversation)

    async def get_messages(self, conversation_id: str) -> list[Message]:
        data = await self._request("GET", f"/api/conversations/{conversation_id}/messages")
        return self._parse(data, Message, "messages")

    async def save_message(self, conversation_id: str, message: Message) -> Message:
        data = await self._request(
            "POST",
            f"/api/conversations/{conversation_id}/messages",
            json={
                "role": message.role,
                "content": message.content,
                "model": message.model,
                "is_error": message.is_error,
            },
        )
        return self._parse(data, Message)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/api/conversations/{conversation_id}")

    async def purge_stale(self) -> int:
        data = await self._request("POST", "/api/conversations/purge")
        try:
            return int(data["deleted"])
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"ERROR_REGISTRO_DATOS: respuesta inesperada del almacén: {e}") from e
