"""Wire models for the streaming chat endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class Attachment(BaseModel):
    """An inline file sent along with the user message."""

    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(..., alias="mimeType", description="MIME type of the file")
    data: str = Field(..., description="Base64-encoded file contents")


class StreamRequest(BaseModel):
    """Body accepted by every provider endpoint.

    Content fields are optional here so that the endpoint can answer a
    missing message with its own 400 instead of a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    model: str | None = Field(None, description="Provider id echoed by the client")
    system: str = Field("", description="System prompt")
    user_content: str | None = Field(None, alias="userContent", description="User message")
    attachment: Attachment | None = Field(None, description="Optional inline file")
    language: str | None = Field(None, description="Reply language name")
