from __future__ import annotations

from typing import Annotated, Any, AsyncIterator, Iterator, Optional

import httpx
from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.messages.ai import UsageMetadata
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from langchain_gotama._anthropic_compat import lc_messages_to_anthropic
from langchain_gotama._auth import AuthConfig
from langchain_gotama._client import (
    DEFAULT_ANTHROPIC_VERSION,
    AnthropicHttpClient,
    HttpConfig,
    transport_error_from_exception,
)
from langchain_gotama.blocks import DEFAULT_LIVE_BLOCK_KINDS, BlockBuffer, BlockKind, CompletedBlock, ReleaseUnit
from langchain_gotama.stream import AsyncReleaseStream, ReleaseStream, StreamOutcome

MESSAGES_PATH = "/v1/messages"
DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_TOKENS = 1024

FloatUnit = Annotated[float, Field(ge=0, le=1)]
PositiveInt = Annotated[int, Field(ge=1)]


class GotamaRequestConfig(BaseModel):
    """
    Request body para POST /v1/messages (excepto messages).
    Solo se envían los campos configurados explícitamente.
    """

    model_config = ConfigDict(extra="forbid")

    model: Optional[str] = None
    max_tokens: Optional[PositiveInt] = None
    temperature: Optional[FloatUnit] = None
    top_p: Optional[FloatUnit] = None
    top_k: Optional[Annotated[int, Field(ge=0)]] = None
    stop_sequences: Optional[list[str]] = None
    system: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Response parsing helpers
# ---------------------------------------------------------------------------


def _extract_text_from_content_blocks(obj: Any) -> str:
    """
    Extrae solo el texto de bloques tipo 'text', ignorando 'tool_use', 'thinking', etc.
    """
    if not isinstance(obj, list):
        return ""

    parts: list[str] = []
    for block in obj:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text":
            txt = block.get("text")
            if isinstance(txt, str) and txt:
                parts.append(txt)
    return "".join(parts)


def _usage_metadata_from_usage(usage: Any) -> UsageMetadata | None:
    if not isinstance(usage, dict):
        return None
    input_tokens = usage.get("input_tokens")
    output_tokens = usage.get("output_tokens")
    if not isinstance(input_tokens, int) and not isinstance(output_tokens, int):
        return None
    in_t = input_tokens if isinstance(input_tokens, int) else 0
    out_t = output_tokens if isinstance(output_tokens, int) else 0
    return UsageMetadata(input_tokens=in_t, output_tokens=out_t, total_tokens=in_t + out_t)


def _response_metadata_from_response(obj: dict[str, Any]) -> dict[str, Any]:
    md: dict[str, Any] = {}
    for k in ("id", "model", "stop_reason", "stop_sequence"):
        if obj.get(k) is not None:
            md[k] = obj[k]
    return md


def _chunk_from_unit(unit: ReleaseUnit) -> ChatGenerationChunk:
    msg_chunk = AIMessageChunk(content=unit.text)
    if isinstance(unit, CompletedBlock):
        return ChatGenerationChunk(message=msg_chunk, generation_info={"block_kind": unit.kind.value})
    return ChatGenerationChunk(message=msg_chunk)


# ------------------------------------------------------------------------------------
# Chat wrapper: streaming real via .stream/.astream con extracción de bloques
# ------------------------------------------------------------------------------------


class ChatGotama(BaseChatModel):
    """
    LangChain ChatModel para la Messages API de Anthropic: /v1/messages

    Contrato para el Streaming:
    - .invoke/.ainvoke usan respuesta no-streaming
    - .stream/.astream realizan streaming real; los bloques <citation> llegan en un solo chunk
      (marcado con generation_info["block_kind"]), nunca partidos entre chunks
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    api_key: Optional[str] = Field(default=None, exclude=True, repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 120.0
    anthropic_version: str = DEFAULT_ANTHROPIC_VERSION

    request_defaults: GotamaRequestConfig = Field(default_factory=GotamaRequestConfig)

    # Bloques que el buffer en vivo retiene hasta cerrarse.
    live_block_kinds: tuple[BlockKind, ...] = DEFAULT_LIVE_BLOCK_KINDS

    # Si el stream termina con un bloque abierto, emitirlo como texto plano al final.
    flush_unterminated_blocks: bool = True

    _http: AnthropicHttpClient = PrivateAttr()

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 120.0,
        anthropic_version: str = DEFAULT_ANTHROPIC_VERSION,
        request_defaults: GotamaRequestConfig | None = None,
        live_block_kinds: tuple[BlockKind, ...] = DEFAULT_LIVE_BLOCK_KINDS,
        flush_unterminated_blocks: bool = True,
        **kwargs: Any,
    ) -> None:
        rd_keys = set(GotamaRequestConfig.model_fields.keys())
        rd_kwargs = {k: v for k, v in kwargs.items() if k in rd_keys}
        lc_kwargs = {k: v for k, v in kwargs.items() if k not in rd_keys}

        if request_defaults is not None and rd_kwargs:
            raise ValueError("Do not mix request_defaults=... with loose request body parameters.")

        rd = request_defaults or GotamaRequestConfig(**rd_kwargs)

        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout_s=timeout_s,
            anthropic_version=anthropic_version,
            request_defaults=rd,
            live_block_kinds=tuple(live_block_kinds),
            flush_unterminated_blocks=flush_unterminated_blocks,
            **lc_kwargs,
        )

        auth = AuthConfig.from_env_or_value(self.api_key)
        self._http = AnthropicHttpClient(
            config=HttpConfig(
                base_url=self.base_url,
                timeout_s=self.timeout_s,
                anthropic_version=self.anthropic_version,
            ),
            api_key=auth.api_key,
        )

    @property
    def _llm_type(self) -> str:
        return "gotama-anthropic-chat"

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {
            "model": self.request_defaults.model or DEFAULT_MODEL,
            "base_url": self.base_url,
            "timeout_s": self.timeout_s,
            "live_block_kinds": [k.value for k in self.live_block_kinds],
            "flush_unterminated_blocks": self.flush_unterminated_blocks,
        }

    def _build_payload(self, messages: list[BaseMessage], stop: list[str] | None, **kwargs: Any) -> dict[str, Any]:
        """
        Construye el request payload.
        Importante: ignora los kwargs ajenos al proveedor que la capa Runnable pueda pasar.
        """
        system, anthropic_messages = lc_messages_to_anthropic(messages)

        payload: dict[str, Any] = {
            "model": DEFAULT_MODEL,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "messages": anthropic_messages,
        }
        payload.update(self.request_defaults.model_dump(exclude_none=True))

        provider_kwargs = {
            k: v for k, v in kwargs.items() if v is not None and k in GotamaRequestConfig.model_fields
        }
        if provider_kwargs:
            validated = GotamaRequestConfig(**provider_kwargs)
            payload.update(validated.model_dump(exclude_none=True))

        if stop is not None:
            payload["stop_sequences"] = stop

        # El system de los mensajes se añade tras el configurado por defecto.
        systems = [s for s in (payload.get("system"), system) if s]
        if systems:
            payload["system"] = "\n\n".join(systems)

        return payload

    def _parse_message_result(self, data: dict[str, Any]) -> ChatResult:
        response_metadata = _response_metadata_from_response(data)
        usage_metadata = _usage_metadata_from_usage(data.get("usage"))

        msg = AIMessage(
            content=_extract_text_from_content_blocks(data.get("content")),
            response_metadata=response_metadata,
            usage_metadata=usage_metadata,
        )
        gen_info: dict[str, Any] = {}
        if data.get("stop_reason") is not None:
            gen_info["finish_reason"] = data.get("stop_reason")

        llm_output: dict[str, Any] = {
            "model_name": data.get("model") or self.request_defaults.model or DEFAULT_MODEL,
            "token_usage": data.get("usage"),
        }
        return ChatResult(generations=[ChatGeneration(message=msg, generation_info=gen_info or None)], llm_output=llm_output)

    def _final_chunks(self, outcome: StreamOutcome | None) -> list[ChatGenerationChunk]:
        """Chunks emitidos una sola vez al final: bloque sin cerrar (según política) y uso."""
        if outcome is None or not outcome.is_completed:
            return []

        chunks: list[ChatGenerationChunk] = []
        if outcome.unterminated is not None and self.flush_unterminated_blocks:
            chunks.append(
                ChatGenerationChunk(
                    message=AIMessageChunk(content=outcome.unterminated.text),
                    generation_info={"unterminated_block": outcome.unterminated.kind.value},
                )
            )

        usage_md = _usage_metadata_from_usage(outcome.usage)
        if usage_md is not None or outcome.stop_reason is not None:
            response_metadata: dict[str, Any] = {}
            if outcome.stop_reason is not None:
                response_metadata["stop_reason"] = outcome.stop_reason
            gen_info: dict[str, Any] = {"usage": True}
            if outcome.stop_reason is not None:
                gen_info["finish_reason"] = outcome.stop_reason
            chunks.append(
                ChatGenerationChunk(
                    message=AIMessageChunk(
                        content="",
                        response_metadata=response_metadata,
                        usage_metadata=usage_md,
                    ),
                    generation_info=gen_info,
                )
            )
        return chunks

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        payload = self._build_payload(messages, stop, **kwargs)
        resp = self._http.post_json(MESSAGES_PATH, payload, stream=False)
        return self._parse_message_result(resp.json())

    async def _agenerate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        payload = self._build_payload(messages, stop, **kwargs)
        resp = await self._http.apost_json(MESSAGES_PATH, payload, stream=False)
        return self._parse_message_result(resp.json())

    def _stream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        payload = self._build_payload(messages, stop, **kwargs)
        payload["stream"] = True

        try:
            with self._http.stream_post_json(MESSAGES_PATH, payload) as r:
                self._http.raise_for_status(r)
                stream = ReleaseStream(
                    r.iter_lines(),
                    buffer=BlockBuffer(self.live_block_kinds),
                    on_close=r.close,
                )
                for unit in stream:
                    chunk = _chunk_from_unit(unit)
                    if run_manager:
                        run_manager.on_llm_new_token(chunk.text, chunk=chunk)
                    yield chunk
        except httpx.HTTPError as e:
            # Fallo al conectar (antes de que el stream exista).
            raise transport_error_from_exception(e) from e

        # Emitir el resto exactamente una vez al final.
        for chunk in self._final_chunks(stream.outcome):
            if run_manager and chunk.text:
                run_manager.on_llm_new_token(chunk.text, chunk=chunk)
            yield chunk

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        payload = self._build_payload(messages, stop, **kwargs)
        payload["stream"] = True

        try:
            async with self._http.astream_post_json(MESSAGES_PATH, payload) as r:
                await self._http.araise_for_status(r)
                stream = AsyncReleaseStream(
                    r.aiter_lines(),
                    buffer=BlockBuffer(self.live_block_kinds),
                    on_close=r.aclose,
                )
                async for unit in stream:
                    chunk = _chunk_from_unit(unit)
                    if run_manager:
                        await run_manager.on_llm_new_token(chunk.text, chunk=chunk)
                    yield chunk
        except httpx.HTTPError as e:
            raise transport_error_from_exception(e) from e

        for chunk in self._final_chunks(stream.outcome):
            if run_manager and chunk.text:
                await run_manager.on_llm_new_token(chunk.text, chunk=chunk)
            yield chunk
