"""Thin async client for the Gemini generateContent REST endpoint.

Every failure (missing credential, transport error, non-2xx status, empty
candidate list) is raised as GenerationError.
"""

from dataclasses import dataclass

import httpx

from lexassist.errors import GenerationError
from lexassist.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    """One prior turn of a conversation in provider-neutral form."""

    role: str  # user | assistant
    text: str


class GeminiClient:
    """Calls Gemini through a shared httpx.AsyncClient.

    Args:
        http_client: Shared async HTTP client (owned by the application).
        api_key: Gemini API key; None disables the client.
        model: Model name, e.g. "gemini-1.5-pro".
        base_url: API root up to and including the version segment.
        timeout_seconds: Per-request timeout. A timeout surfaces as GenerationError.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: float = 60.0,
    ) -> None:
        self._client = http_client
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def generate(
        self,
        prompt: str,
        history: list[ChatTurn] | None = None,
        system_instruction: str | None = None,
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
        response_mime_type: str | None = None,
    ) -> str:
        """Send a prompt (optionally with chat history) and return the text reply.

        Args:
            prompt: The final user turn.
            history: Prior turns, oldest first.
            system_instruction: Optional system prompt.
            temperature: Sampling temperature.
            max_output_tokens: Upper bound on reply length.
            response_mime_type: Set to "application/json" to request JSON output.

        Returns:
            Concatenated text of the first candidate.

        Raises:
            GenerationError: On any failure to obtain a text reply.
        """
        if not self._api_key:
            raise GenerationError("Gemini API key is not configured")

        contents = [
            {"role": "model" if turn.role == "assistant" else "user", "parts": [{"text": turn.text}]}
            for turn in history or []
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        generation_config: dict = {
            "temperature": temperature,
            "topP": 0.8,
            "topK": 40,
            "maxOutputTokens": max_output_tokens,
        }
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type

        body: dict = {"contents": contents, "generationConfig": generation_config}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        try:
            response = await self._client.post(
                f"{self._base_url}/models/{self._model}:generateContent",
                json=body,
                headers={"x-goog-api-key": self._api_key},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.RequestError, httpx.HTTPStatusError) as exc:
            logger.warning("Gemini request failed", model=self._model, reason=str(exc))
            raise GenerationError(f"Gemini request failed: {exc}") from exc
        except ValueError as exc:
            raise GenerationError("Gemini returned a non-JSON envelope") from exc

        text = _candidate_text(payload)
        if not text:
            raise GenerationError("Gemini returned no candidate text")
        return text


def _candidate_text(payload: object) -> str:
    candidates = payload.get("candidates") if isinstance(payload, dict) else None
    if not isinstance(candidates, list) or not candidates:
        return ""
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    ).strip()
