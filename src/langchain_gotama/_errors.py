from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class GotamaError(RuntimeError):
    """Error base de la librería."""


@dataclass(slots=True)
class GotamaAPIError(GotamaError):
    """
    Error de transporte o de API de Anthropic con soporte para respuestas estructuradas.

    Cuando el backend retorna un error JSON con formato:
    {
        "type": "error",
        "error": {
            "type": "invalid_request_error" | "authentication_error" | "overloaded_error" | ...,
            "message": "..."
        }
    }

    Los campos estructurados se parsean automáticamente para facilitar debugging.
    status_code es None cuando la conexión falla antes de recibir una respuesta (timeouts incluidos).
    """
    status_code: int | None
    message: str
    body: str | None = None

    error_type: str | None = None
    request_id: str | None = None

    def __str__(self) -> str:
        parts = [f"GotamaAPIError(status_code={self.status_code}"]
        if self.error_type:
            parts.append(f", type={self.error_type!r}")
        parts.append(f", message={self.message!r}")
        if self.request_id:
            parts.append(f", request_id={self.request_id!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convierte el error a dict para logging estructurado."""
        return {
            "status_code": self.status_code,
            "message": self.message,
            "error_type": self.error_type,
            "request_id": self.request_id,
            "body": self.body,
        }

    @property
    def is_connection_error(self) -> bool:
        """True si no hubo respuesta HTTP (conexión rechazada, timeout, etc.)."""
        return self.status_code is None

    @property
    def is_client_error(self) -> bool:
        """True si es un error 4xx (problema del cliente)."""
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True si es un error 5xx (problema del servidor)."""
        return self.status_code is not None and 500 <= self.status_code < 600

    @property
    def is_auth_error(self) -> bool:
        """True si es un error de autenticación (401) o de permisos (403)."""
        return self.status_code in (401, 403)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_overloaded(self) -> bool:
        """True si Anthropic reporta sobrecarga (529 / overloaded_error)."""
        return self.status_code == 529 or self.error_type == "overloaded_error"


# Alias con el nombre usado en la taxonomía de errores del stream.
TransportError = GotamaAPIError


class DecodeError(GotamaError):
    """Payload `data:` con JSON inválido. Fatal para el stream."""

    def __init__(self, payload: str, detail: str) -> None:
        super().__init__(f"decode error: {detail}")
        self.payload = payload
        self.detail = detail


class ProtocolError(GotamaError):
    """Evento `error` emitido por la API en medio del stream."""

    def __init__(self, message: str, error_type: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
