"""FastAPI application: provider streaming endpoints and the conversation API."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from adal_core.config import Settings, configure_logging, get_settings, settings
from adal_core.db import db
from adal_core.errors import (
    AuthError,
    ChatServiceError,
    ForbiddenError,
    MethodNotAllowedError,
    UnexpectedError,
)
from adal_core.identity import AuthUser, IdentityClient, build_identity_client
from adal_core.models import (
    ConversationCreate,
    ConversationListResponse,
    MessageCreate,
    MessageListResponse,
    PurgeResponse,
)
from adal_core.providers import PROVIDERS, ProviderAdapter, ProviderSpec
from adal_core.services.chat_proxy import open_provider_stream, parse_stream_request
from adal_core.services.conversations import ConversationService
from adal_core.streaming import create_text_stream_response, encode_fragments
from adal_models import Conversation, Message, ProviderId

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the conversation store for the lifetime of the app."""
    await db.connect()
    await db.ensure_tables_exist()
    logger.info(f"Conversation store ready ({settings.store_backend})")
    yield
    await db.disconnect()


app = FastAPI(
    title="Adal Core API",
    description="Multi-provider streaming chat proxy and conversation store",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def cors_allow_list(request: Request, call_next):
    """Answer preflights with an empty 200 and tag allow-listed origins.

    Only origins on the allow-list receive Access-Control-Allow-Origin.
    """
    origin = request.headers.get("origin")
    if request.method == "OPTIONS":
        response = Response(status_code=status.HTTP_200_OK)
    else:
        response = await call_next(request)
    response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    if origin and origin in settings.allowed_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
    return response


# ============= Error Rendering =============


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError):
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"error": "BAD_REQUEST", "message": "Parámetros incorrectos para este endpoint."},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    codes = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}
    return JSONResponse(
        {"error": codes.get(exc.status_code, "HTTP_ERROR"), "message": str(exc.detail)},
        status_code=exc.status_code,
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = UnexpectedError("Fallo crítico en el servidor.")
    return JSONResponse(error.to_dict(), status_code=error.status_code)


# ============= Dependencies =============


def get_store():
    """The conversation store (PostgreSQL or in-memory)."""
    return db


def get_identity_client(settings: Settings = Depends(get_settings)) -> IdentityClient:
    return build_identity_client(settings)


async def get_current_user(
    authorization: str | None = Header(None),
    identity: IdentityClient = Depends(get_identity_client),
) -> AuthUser:
    """Resolve the bearer token; nothing downstream runs without it."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Token de autenticación no proporcionado.")
    return await identity.get_user(token.strip())


def get_adapters(settings: Settings = Depends(get_settings)) -> dict[ProviderId, ProviderAdapter]:
    return {provider: spec.build_adapter(settings) for provider, spec in PROVIDERS.items()}


def get_conversation_service(
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ConversationService:
    return ConversationService(
        store,
        limit_policy=settings.conversation_limit_policy,
        stale_days=settings.stale_conversation_days,
    )


# ============= Health =============


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "store": settings.store_backend}


# ============= Conversation Endpoints =============


@app.get("/api/conversations", response_model=ConversationListResponse)
async def list_conversations(
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """List the caller's non-archived conversations, newest first."""
    conversations = await service.list_conversations(user.id)
    return ConversationListResponse(
        conversations=conversations,
        total=len(conversations),
        limit=await service.limit_for(user.id),
    )


@app.post(
    "/api/conversations",
    response_model=Conversation,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    request: ConversationCreate,
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Create a conversation, archiving the oldest one at the tier limit."""
    if request.user_id and request.user_id != user.id:
        raise ForbiddenError("Intento de suplantación de identidad detectado.")
    return await service.create_conversation(user.id, request.title)


@app.get("/api/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: str,
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Get a conversation's messages, oldest first."""
    messages = await service.get_messages(conversation_id, user.id)
    return MessageListResponse(conversation_id=conversation_id, messages=messages)


@app.post(
    "/api/conversations/{conversation_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def save_message(
    conversation_id: str,
    request: MessageCreate,
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Persist one finished message."""
    return await service.save_message(
        conversation_id,
        user.id,
        role=request.role,
        content=request.content,
        model=request.model,
        is_error=request.is_error,
    )


@app.delete("/api/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Delete a conversation and its messages."""
    await service.delete_conversation(conversation_id, user.id)
    return {"status": "ok"}


@app.post("/api/conversations/purge", response_model=PurgeResponse)
async def purge_stale_conversations(
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Delete conversations that have not been touched for the stale window."""
    return PurgeResponse(deleted=await service.purge_stale(user.id))


# ============= Provider Streaming Endpoints =============


def _provider_endpoint(spec: ProviderSpec):
    provider = spec.provider

    async def stream_endpoint(
        request: Request,
        user: AuthUser = Depends(get_current_user),
        adapters: dict[ProviderId, ProviderAdapter] = Depends(get_adapters),
        settings: Settings = Depends(get_settings),
    ):
        logger.info(f"[{provider.value}] stream requested by {user.id}")
        payload = parse_stream_request(await request.body())
        fragments = await open_provider_stream(spec, adapters[provider], payload, settings)
        return create_text_stream_response(encode_fragments(fragments, label=provider.value))

    stream_endpoint.__name__ = f"stream_{provider.value}"
    return stream_endpoint


async def method_not_allowed():
    raise MethodNotAllowedError("Method Not Allowed")


for _spec in PROVIDERS.values():
    app.add_api_route(
        _spec.endpoint_path,
        _provider_endpoint(_spec),
        methods=["POST"],
        tags=["Providers"],
    )
    app.add_api_route(
        _spec.endpoint_path,
        method_not_allowed,
        methods=["GET", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )


def main():
    """Run the API server."""
    import uvicorn

    configure_logging()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
