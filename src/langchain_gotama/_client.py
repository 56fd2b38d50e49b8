from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from langchain_gotama._auth import AuthConfig
from langchain_gotama._errors import GotamaAPIError

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_VERSION = "2023-06-01"
_SECRET_HEADERS = ("authorization", "x-api-key")


@dataclass(frozen=True, slots=True)
class HttpConfig:
    base_url: str
    timeout_s: float = 120.0
    anthropic_version: str = DEFAULT_ANTHROPIC_VERSION


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
    request_id: str | None = None,
) -> GotamaAPIError:
    """
    Parsea una respuesta de error de Anthropic.

    Si el body no es JSON o no matchea el envelope esperado,
    retorna GotamaAPIError con error_type en None y el body crudo como mensaje.
    """
    message = f"HTTP {status_code}"
    error_type: str | None = None

    if body_text and body_text.strip():
        message = body_text.strip()

    # Solo parsear JSON si Content-Type lo indica
    if "application/json" not in content_type.lower():
        return GotamaAPIError(
            status_code=status_code,
            message=message,
            body=body_text,
            request_id=request_id,
        )

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        return GotamaAPIError(
            status_code=status_code,
            message=message,
            body=body_text,
            request_id=request_id,
        )

    if not isinstance(data, dict):
        return GotamaAPIError(
            status_code=status_code,
            message=str(data) if data else message,
            body=body_text,
            request_id=request_id,
        )

    # Envelope: { "type": "error", "error": { "type": ..., "message": ... } }
    error_obj = data.get("error")

    if isinstance(error_obj, dict):
        et = error_obj.get("type")
        if isinstance(et, str) and et.strip():
            error_type = et.strip()

        msg = error_obj.get("message")
        if isinstance(msg, str) and msg.strip():
            message = msg.strip()
    else:
        msg = data.get("message")
        if isinstance(msg, str) and msg.strip():
            message = msg.strip()

    return GotamaAPIError(
        status_code=status_code,
        message=message,
        body=body_text,
        error_type=error_type,
        request_id=request_id,
    )


def transport_error_from_exception(exc: httpx.HTTPError) -> GotamaAPIError:
    """Convierte fallos de conexión/timeout de httpx en GotamaAPIError sin status."""
    kind = "timeout" if isinstance(exc, httpx.TimeoutException) else "connection error"
    return GotamaAPIError(status_code=None, message=f"{kind}: {exc}", error_type=type(exc).__name__)


def _redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
    out = dict(headers)
    for k in list(out):
        if k.lower() in _SECRET_HEADERS:
            out[k] = "***REDACTED***"
    return out


class AnthropicHttpClient:
    """
    Wrapper HTTPX ligero para la Messages API:
    - JSON requests
    - Streaming SSE via httpx.Client.stream / AsyncClient.stream
    - Debug logging opcional (GOTAMA_HTTP_DEBUG)
    """

    def __init__(self, *, config: HttpConfig, api_key: str) -> None:
        self._config = config
        self._auth = AuthConfig(api_key=api_key)
        self._debug_http = os.getenv("GOTAMA_HTTP_DEBUG", "").lower() in {"1", "true", "yes", "on"}

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logger.warning("HTTPX REQUEST %s %s", request.method, request.url)
            logger.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))
            if request.content:
                try:
                    logger.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8"))
                except (UnicodeDecodeError, AttributeError, ValueError):
                    logger.warning("HTTPX REQUEST body=(binary) len=%s", len(request.content))

        def _log_response_headers(response: httpx.Response) -> bool:
            req = response.request
            logger.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
            logger.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
            ctype = response.headers.get("content-type", "")
            if "text/event-stream" in ctype:
                # Leer el body aquí consumiría el stream antes que el decoder.
                logger.warning("HTTPX RESPONSE body=(event-stream; not auto-logged)")
                return False
            return True

        def _log_response_sync(response: httpx.Response) -> None:
            if not self._debug_http:
                return
            if not _log_response_headers(response):
                return
            try:
                response.read()
                logger.warning("HTTPX RESPONSE body=%s", response.text)
            except httpx.HTTPError as e:
                logger.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        async def _log_request_async(request: httpx.Request) -> None:
            _log_request(request)

        async def _log_response_async(response: httpx.Response) -> None:
            if not self._debug_http:
                return
            if not _log_response_headers(response):
                return
            try:
                await response.aread()
                logger.warning("HTTPX RESPONSE body=%s", response.text)
            except httpx.HTTPError as e:
                logger.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        EventHooksDict = dict[str, list[Callable[..., Any]]]

        hooks_sync: EventHooksDict = {"request": [_log_request], "response": [_log_response_sync]}
        hooks_async: EventHooksDict = {"request": [_log_request_async], "response": [_log_response_async]}

        self._client = httpx.Client(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_sync)
        self._aclient = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_async)

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    def _headers(self, *, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {
            **self._auth.headers(),
            "anthropic-version": self._config.anthropic_version,
            "Content-Type": "application/json",
        }
        if accept:
            headers["Accept"] = accept
        return headers

    @staticmethod
    def raise_for_status(resp: httpx.Response) -> None:
        """Verifica status y levanta GotamaAPIError estructurado."""
        if 200 <= resp.status_code < 300:
            return

        body_text: str | None = None
        try:
            body_text = resp.text
        except httpx.ResponseNotRead:
            # Respuestas en streaming: hay que leer el body antes de acceder a .text
            try:
                resp.read()
                body_text = resp.text
            except httpx.HTTPError:
                body_text = None
        except (httpx.HTTPError, UnicodeDecodeError):
            body_text = None

        headers = getattr(resp, "headers", None) or {}
        error = _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=headers.get("content-type", ""),
            request_id=headers.get("request-id"),
        )
        if body_text is None:
            error.body = None

        raise error

    @staticmethod
    async def araise_for_status(resp: httpx.Response) -> None:
        """Versión async: lee el body de respuestas en streaming antes de parsear el error."""
        if 200 <= resp.status_code < 300:
            return
        try:
            await resp.aread()
        except httpx.HTTPError:
            pass
        AnthropicHttpClient.raise_for_status(resp)

    def post_json(self, path: str, payload: dict[str, Any], *, stream: bool = False) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        headers = self._headers(accept="text/event-stream" if stream else None)
        try:
            resp = self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise transport_error_from_exception(e) from e
        self.raise_for_status(resp)
        return resp

    async def apost_json(self, path: str, payload: dict[str, Any], *, stream: bool = False) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        headers = self._headers(accept="text/event-stream" if stream else None)
        try:
            resp = await self._aclient.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise transport_error_from_exception(e) from e
        self.raise_for_status(resp)
        return resp

    def stream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Retorna un httpx stream context manager.

        Uso:
            with client.stream_post_json(...) as r:
                client.raise_for_status(r)
                for line in r.iter_lines():
                    ...
        """
        url = f"{self._config.base_url}{path}"
        headers = self._headers(accept="text/event-stream")
        return self._client.stream("POST", url, headers=headers, json=payload)

    def astream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Retorna un httpx stream context manager asíncrono.

        Usage:
            async with client.astream_post_json(...) as r:
                await client.araise_for_status(r)
                async for line in r.aiter_lines():
                    ...
        """
        url = f"{self._config.base_url}{path}"
        headers = self._headers(accept="text/event-stream")
        return self._aclient.stream("POST", url, headers=headers, json=payload)
