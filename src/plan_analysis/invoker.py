"""Vision model invocation with a single fallback on unknown model names."""

import asyncio
import base64
from typing import TYPE_CHECKING, Any, Final

from plan_analysis.errors import EmptyResponseError, ModelNotFoundError, UpstreamError
from plan_analysis.logging import get_logger
from plan_analysis.models import ImageAsset, ModelResponse
from plan_analysis.utils.image_processing import prepare_image

if TYPE_CHECKING:
    import anthropic

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS: Final = 4096
REQUEST_TIMEOUT: Final = 180.0  # vision requests on large plans are slow


class ModelInvoker:
    """Sends one plan image plus instructions to a Claude vision model."""

    def __init__(
        self,
        api_key: str,
        *,
        primary_model: str,
        fallback_model: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the invoker.

        Args:
            api_key: Anthropic API key.
            primary_model: Model tried first.
            fallback_model: Model tried once if the primary is reported not found.
            max_tokens: Output token limit per call.
            timeout: Request timeout in seconds.
        """
        self._api_key = api_key
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> "anthropic.AsyncAnthropic":
        """Get or create the Anthropic client."""
        if self._client is None:
            import anthropic as _anthropic
            import httpx

            self._client = _anthropic.AsyncAnthropic(
                api_key=self._api_key,
                # Each model gets exactly one request; the fallback is the only retry
                max_retries=0,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def invoke(
        self,
        system_instruction: str,
        user_instruction: str,
        image: ImageAsset,
    ) -> ModelResponse:
        """Run the analysis call, retrying once on the fallback model if needed.

        Raises:
            UpstreamError: Non-success response (including not-found on the
                fallback model) or transport failure.
            EmptyResponseError: Success status without any text.
        """
        content = await self._build_content(system_instruction, user_instruction, image)
        fallback = self.fallback_model

        try:
            text = await self._call(self.primary_model, content)
            return ModelResponse(text=text, model_name=self.primary_model)
        except ModelNotFoundError as e:
            if not fallback or fallback == self.primary_model:
                raise UpstreamError(
                    e.details, model_name=self.primary_model, upstream_status=404
                ) from e
            logger.warning(
                "model_not_found_trying_fallback",
                model=self.primary_model,
                fallback_model=fallback,
            )

        try:
            text = await self._call(fallback, content)
        except ModelNotFoundError as e:
            raise UpstreamError(e.details, model_name=fallback, upstream_status=404) from e
        return ModelResponse(text=text, model_name=fallback, used_fallback=True)

    async def _build_content(
        self, system_instruction: str, user_instruction: str, image: ImageAsset
    ) -> list[dict[str, Any]]:
        data, media_type = await asyncio.to_thread(prepare_image, image.data, image.mime_type)
        return [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.standard_b64encode(data).decode("utf-8"),
                },
            },
            {"type": "text", "text": f"{system_instruction}\n\n{user_instruction}"},
        ]

    async def _call(self, model: str, content: list[dict[str, Any]]) -> str:
        """Make one Messages API call and return the concatenated text output."""
        from anthropic import APIConnectionError, APIStatusError, NotFoundError

        client = self._get_client()
        logger.info("model_call_started", model=model)

        try:
            response = await client.messages.create(
                model=model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": content}],  # type: ignore[typeddict-item]
            )
        except NotFoundError as e:
            raise ModelNotFoundError(str(e), model_name=model) from e
        except APIStatusError as e:
            logger.error(
                "model_call_failed",
                model=model,
                status_code=e.status_code,
                error=str(e),
                request_id=getattr(e, "request_id", None),
            )
            raise UpstreamError(
                f"Model API error ({e.status_code}) on {model}: {e.message}",
                model_name=model,
                upstream_status=e.status_code,
            ) from e
        except APIConnectionError as e:
            logger.error("model_connection_failed", model=model, error=str(e))
            raise UpstreamError(
                f"Could not reach model API for {model}: {e}", model_name=model
            ) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()

        if response.stop_reason == "max_tokens":
            logger.warning("model_output_truncated", model=model, max_tokens=self._max_tokens)

        if not text:
            logger.warning("model_empty_response", model=model, stop_reason=response.stop_reason)
            raise EmptyResponseError(f"Model {model} returned no text", model_name=model)

        logger.info(
            "model_call_succeeded",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return text

    async def close(self) -> None:
        """Close the API client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
