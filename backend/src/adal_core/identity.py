"""Client for the hosted identity service (Supabase Auth HTTP API)."""

import logging

import httpx
from pydantic import BaseModel

from adal_core.config import Settings
from adal_core.errors import AuthError, ConfigError

logger = logging.getLogger(__name__)


class AuthUser(BaseModel):
    """Identity resolved from a bearer token."""

    id: str
    email: str | None = None


class IdentityClient:
    """Resolves bearer tokens to users via ``GET /auth/v1/user``."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self._transport = transport

    async def get_user(self, token: str) -> AuthUser:
        """Validate a token, raising AuthError when it is rejected."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers={
                        "apikey": self.anon_key,
                        "Authorization": f"Bearer {token}",
                    },
                )
            except httpx.RequestError as e:
                logger.error(f"Identity service request error: {e}")
                raise AuthError("No se pudo validar la sesión.") from e

        if response.status_code in (401, 403):
            raise AuthError("Token de sesión inválido o expirado.")
        if response.is_error:
            logger.error(f"Identity service HTTP error {response.status_code}: {response.text[:200]}")
            raise AuthError("No se pudo validar la sesión.")

        data = response.json()
        if not data.get("id"):
            raise AuthError("Token de sesión inválido o expirado.")
        return AuthUser(id=str(data["id"]), email=data.get("email"))


def build_identity_client(settings: Settings) -> IdentityClient:
    if not settings.identity_configured:
        logger.error("Identity service credentials are not configured")
        raise ConfigError(
            "Error de configuración del servidor: Faltan las credenciales de Supabase. "
            "El administrador ha sido notificado."
        )
    return IdentityClient(settings.supabase_url, settings.supabase_anon_key)
