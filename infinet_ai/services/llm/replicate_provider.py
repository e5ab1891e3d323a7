import asyncio
import base64
from typing import Optional

import httpx

from infinet_ai.errors import ProviderError
from infinet_ai.logging_config import get_logger
from infinet_ai.services.llm.base import (
    GenerationProvider,
    GenerationRequest,
    GenerationResult,
    ImagePayload,
)

logger = get_logger("llm.replicate")

REPLICATE_BASE_URL = "https://api.replicate.com/v1"
TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


class ReplicateProvider(GenerationProvider):
    """Replicate predictions for image-to-image models."""

    name = "replicate"

    def __init__(
        self,
        api_token: str,
        model: str = "google/nano-banana",
        *,
        poll_interval_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token
        self.model = model
        self.poll_interval_seconds = poll_interval_seconds
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def _check(self, response: httpx.Response) -> dict:
        if response.status_code not in (200, 201):
            logger.warning(f"Replicate error: {response.status_code} - {response.text[:300]}")
            raise ProviderError.from_response(self.name, response.status_code, response.text)
        return response.json()

    async def generate(self, request: GenerationRequest, *, timeout_seconds: float) -> GenerationResult:
        payload = request.payload
        if not isinstance(payload, ImagePayload):
            raise ProviderError("replicate accepts image payloads only", status_code=415, provider=self.name)

        data_url = f"data:{payload.mime_type};base64,{base64.b64encode(payload.data).decode('ascii')}"
        body = {"input": {"prompt": payload.prompt, "image_input": [data_url]}}

        async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                f"{REPLICATE_BASE_URL}/models/{self.model}/predictions",
                headers=self._headers(),
                json=body,
            )
            prediction = self._check(response)

            while prediction.get("status") not in TERMINAL_STATUSES:
                poll_url = (prediction.get("urls") or {}).get("get")
                if not poll_url:
                    break
                await asyncio.sleep(self.poll_interval_seconds)
                prediction = self._check(await client.get(poll_url, headers=self._headers()))

        status = prediction.get("status")
        if status in {"failed", "canceled"}:
            error = str(prediction.get("error") or status)
            raise ProviderError(f"Replicate prediction {status}: {error}", body=error, provider=self.name)

        output = prediction.get("output")
        if output is None:
            raise ProviderError("Replicate prediction returned no output", provider=self.name)

        logger.info("Replicate prediction finished", extra={"context": {"id": prediction.get("id"), "status": status}})
        return GenerationResult(model=self.model, raw=output)
