"""Map raw provider/endpoint failures to the user-facing chat message."""

import re
from enum import Enum


class ErrorCategory(str, Enum):
    SERVER_CONFIG = "server_config"
    NETWORK = "network"
    SESSION_EXPIRED = "session_expired"
    CREDENTIAL_MISSING = "credential_missing"
    RATE_LIMIT = "rate_limit"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    BAD_REQUEST = "bad_request"
    UPSTREAM_AUTH = "upstream_auth"
    UNEXPECTED = "unexpected"


_NODE_PREFIX_RE = re.compile(r"ERROR_NODO_[A-Z]+:")


def classify_error(error: str) -> ErrorCategory:
    """First matching category wins; configuration and credential checks
    come before the generic status-code checks because their messages can
    also carry a 5xx code.
    """
    if not error:
        return ErrorCategory.UNEXPECTED
    lower = error.lower()

    if "server_config_error" in lower:
        return ErrorCategory.SERVER_CONFIG
    if "failed to fetch" in lower:
        return ErrorCategory.NETWORK
    if (
        "sesión_expirada" in lower
        or "fallo_integridad_usuario" in lower
        or "operación_no_autorizada" in lower
    ):
        return ErrorCategory.SESSION_EXPIRED
    if "api_key_missing" in lower:
        return ErrorCategory.CREDENTIAL_MISSING
    if "429" in error or "límite" in lower or "rate_limited" in lower:
        return ErrorCategory.RATE_LIMIT
    if "500" in error or "502" in error or "503" in error or "network_error" in lower:
        return ErrorCategory.UPSTREAM_UNAVAILABLE
    if "400" in error or "bad_request" in lower:
        return ErrorCategory.BAD_REQUEST
    if "401" in error or "403" in error:
        return ErrorCategory.UPSTREAM_AUTH
    return ErrorCategory.UNEXPECTED


def parse_error_message(error: str | None, provider: str) -> str:
    """Render the chat message shown for a failed send.

    Never raises and never returns an empty string.
    """
    node = (provider or "desconocido").upper()
    default_message = (
        f"El nodo {node} no responde. Verifica tu conexión o intenta más tarde."
    )
    if not error:
        return default_message

    lower = error.lower()
    category = classify_error(error)

    if category is ErrorCategory.SERVER_CONFIG:
        return (
            "[FALLA DE INTEGRIDAD DEL SISTEMA]\n"
            "El núcleo no puede comunicarse con los servicios de autenticación. "
            "Las credenciales del servidor parecen estar desconfiguradas. "
            "El administrador ha sido notificado para una recalibración inmediata."
        )
    if category is ErrorCategory.NETWORK:
        return (
            "[ERROR DE RED]\n"
            f"No se pudo establecer conexión con el nodo {node}. "
            "Tu conexión a internet parece inestable o el servidor no está accesible. "
            "Por favor, verifica tu red e inténtalo de nuevo."
        )
    if category is ErrorCategory.SESSION_EXPIRED:
        if "sesión_expirada" in lower:
            return (
                "[FALLA DE SEGURIDAD]\n"
                "Tu sesión ha expirado. Por favor, refresca la página para volver a iniciar sesión."
            )
        return (
            "[FALLA DE SEGURIDAD]\n"
            "Tu sesión parece ser inválida. Intenta refrescar la página o volver a iniciar sesión."
        )
    if category is ErrorCategory.CREDENTIAL_MISSING:
        return (
            "[ERROR DE ENLACE SEGURO]\n"
            f"La clave de API para el nodo {node} no está configurada en el servidor. "
            "El administrador del sistema ha sido notificado."
        )
    if category is ErrorCategory.RATE_LIMIT:
        return (
            "[LÍMITE DE TASA EXCEDIDO]\n"
            f"Se han enviado demasiadas solicitudes al nodo {node}. "
            "Por favor, espera unos momentos antes de volver a intentarlo."
        )
    if category is ErrorCategory.UPSTREAM_UNAVAILABLE:
        return (
            "[ERROR DEL NODO REMOTO]\n"
            f"El servidor de {node} está experimentando problemas o está en mantenimiento. "
            "Intenta de nuevo más tarde."
        )
    if category is ErrorCategory.BAD_REQUEST:
        return (
            "[SOLICITUD INVÁLIDA]\n"
            "El comando enviado contiene un formato no válido o no pudo ser procesado "
            "por el modelo. Intenta reformular tu pregunta."
        )
    if category is ErrorCategory.UPSTREAM_AUTH:
        return (
            "[ERROR DE AUTENTICACIÓN]\n"
            f"Fallo de seguridad en la conexión con el servidor de {node}. "
            "El administrador ha sido notificado."
        )

    cleaned = _NODE_PREFIX_RE.sub("", error, count=1).strip()
    return f"[ERROR INESPERADO]\n{cleaned or default_message}"
