# contentbot/services/llm_client.py
import json
import logging
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from contentbot.config import settings
from contentbot.services.errors import LLMError, StructuredOutputError

log = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json_string(text: str) -> str:
    """Strip markdown code fences and surrounding prose from a model's JSON answer."""
    m = _FENCE.search(text)
    if m:
        text = m.group(1)
    text = text.strip()
    start = min((i for i in (text.find("{"), text.find("[")) if i != -1), default=-1)
    if start == -1:
        return text
    end = max(text.rfind("}"), text.rfind("]"))
    return text[start:end + 1] if end > start else text[start:]


class LLMClient:
    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token if api_token is not None else settings.llm_api_token
        self.base_url = (base_url or settings.llm_api_base).rstrip("/")
        self.headers = {"Authorization": f"Bearer {self.api_token}"}
        self.client = httpx.AsyncClient(timeout=timeout or settings.llm_timeout, transport=transport)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def text_generation(self, model: str, inputs: str, params: Optional[Dict[str, Any]] = None) -> str:
        if not self.api_token:
            raise LLMError("LLM_API_TOKEN is not set. Put it in .env or set it in the environment.")
        url = f"{self.base_url}/{model}"
        payload: Dict[str, Any] = {"inputs": inputs}
        if params:
            payload.update({"parameters": params})
        try:
            r = await self.client.post(url, headers=self.headers, json=payload)
        except httpx.RequestError as e:
            raise LLMError(f"LLM request to {model} failed: {e}") from e
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = r.text[:500]
            raise LLMError(f"LLM API error {r.status_code}: {detail}") from e
        try:
            data = r.json()
        except ValueError as e:
            raise LLMError(f"LLM API returned a non-JSON body from {model}: {r.text[:200]}") from e
        # Handle common response shapes
        if isinstance(data, list) and data and isinstance(data[0], dict):
            if "generated_text" in data[0]:
                return data[0]["generated_text"]
        if isinstance(data, dict) and "generated_text" in data:
            return data["generated_text"]
        return str(data)

    async def generate_text(
        self,
        prompt: str,
        models: Optional[List[str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        candidates = models or settings.writer_models
        if not candidates:
            raise LLMError("No models configured")
        base = {"max_new_tokens": 2048, "temperature": 0.7, "return_full_text": False}
        base.update(params or {})
        errors = []
        for model in candidates:
            try:
                out = (await self.text_generation(model, prompt, base)).strip()
            except LLMError as e:
                log.warning("[llm] %s failed: %s", model, e)
                errors.append(f"{model}: {e}")
                continue
            if out:
                return out
            errors.append(f"{model}: empty output")
        raise LLMError("All models failed. Tried -> " + " | ".join(errors))

    async def generate_object(
        self,
        prompt: str,
        schema: Type[T],
        models: Optional[List[str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Ask for JSON matching `schema`. Raises StructuredOutputError if the answer does not parse."""
        shape = json.dumps(schema.model_json_schema())
        full = f"{prompt}\n\nRespond with a single JSON object matching this JSON schema and nothing else:\n{shape}"
        raw = await self.generate_text(full, models=models, params={"temperature": 0.2, **(params or {})})
        try:
            return schema.model_validate_json(extract_json_string(raw))
        except ValidationError as e:
            raise StructuredOutputError(f"{schema.__name__} could not be parsed: {e.error_count()} errors", raw=raw) from e
