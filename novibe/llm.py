"""AI client adapter: one async ``generate`` call over Gemini, Anthropic or OpenAI.

The provider is chosen by ``LLM_PROVIDER`` and the API key is checked when the
client is constructed, so misconfiguration surfaces before any network call.
No retries are performed here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from novibe import mock_data
from novibe.config import Settings, get_settings
from novibe.errors import EmptyResponse, NoVibeError, ProviderError, ProviderUnavailable

log = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "anthropic", "openai", "openai_compatible")

# task -> sampling temperature
TASK_TEMPERATURES: dict[str, float] = {
    "analysis": 0.3,
    "hackathon": 0.3,
    "frankenstein": 0.7,
    "document": 0.5,
}

OPENAI_TTS_MODEL = "gpt-4o-mini-tts"
OPENAI_TTS_VOICE = "alloy"


@dataclass
class RawResponse:
    """Unparsed provider output."""
    text: str = ""
    audio: bytes | None = None
    mime_type: str = "text/plain"
    model: str = ""


class LLMClient:
    """Unified async client for Gemini (default), Anthropic and OpenAI."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.provider = (provider or settings.llm_provider).lower()
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ProviderUnavailable(f"Unknown LLM provider: {self.provider!r}")
        self.model = model or settings.model_for(self.provider)
        self.frankenstein_model = settings.frankenstein_model if self.provider == "gemini" else self.model
        self.tts_model = settings.tts_model if self.provider == "gemini" else OPENAI_TTS_MODEL
        self.tts_voice = settings.tts_voice if self.provider == "gemini" else OPENAI_TTS_VOICE
        self._api_key = api_key or settings.api_key_for(self.provider)
        self._base_url = base_url or settings.openai_base_url
        if not self._api_key and not (self.provider == "openai_compatible" and self._base_url):
            raise ProviderUnavailable(f"No API key configured for provider {self.provider!r}")
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "gemini":
            from google import genai
            self._client = genai.Client(api_key=self._api_key)
        elif self.provider == "anthropic":
            import anthropic
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        else:
            import openai
            kwargs: dict[str, Any] = {}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = openai.AsyncOpenAI(**kwargs)

    def model_for_task(self, task: str) -> str:
        if task == "speech":
            return self.tts_model
        if task == "frankenstein":
            return self.frankenstein_model
        return self.model

    async def generate(self, prompt: str, modality: str = "text", task: str = "analysis") -> RawResponse:
        """Send *prompt* and return the raw reply for the requested modality."""
        if modality not in ("text", "audio"):
            raise ValueError(f"Unsupported modality: {modality!r}")
        model = self.model_for_task("speech" if modality == "audio" else task)
        try:
            if modality == "audio":
                audio, mime_type = await self._generate_audio(prompt, model)
                if not audio:
                    raise EmptyResponse("The AI provider returned no audio")
                return RawResponse(audio=audio, mime_type=mime_type, model=model)
            text = await self._generate_text(prompt, model, TASK_TEMPERATURES.get(task, 0.3), task)
        except NoVibeError:
            raise
        except Exception as exc:
            log.error("%s call failed (model=%s, task=%s): %s", self.provider, model, task, exc, exc_info=True)
            raise ProviderError(f"AI provider call failed: {exc}", retryable=True) from exc
        if not text or not text.strip():
            raise EmptyResponse()
        return RawResponse(text=text.strip(), mime_type="text/plain", model=model)

    async def _generate_text(self, prompt: str, model: str, temperature: float, task: str) -> str:
        if self.provider == "gemini":
            from google.genai import types
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=types.GenerateContentConfig(temperature=temperature),
            )
            return response.text or ""
        if self.provider == "anthropic":
            response = await self._client.messages.create(
                model=model,
                max_tokens=8192,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
            return "".join(getattr(block, "text", "") for block in response.content)
        kwargs: dict[str, Any] = {}
        if task != "document":
            kwargs["response_format"] = {"type": "json_object"}
        response = await self._client.chat.completions.create(
            model=model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        return response.choices[0].message.content or ""

    async def _generate_audio(self, text: str, model: str) -> tuple[bytes | None, str]:
        if self.provider == "gemini":
            from google.genai import types
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.tts_voice),
                        ),
                    ),
                ),
            )
            for candidate in response.candidates or []:
                for part in (candidate.content.parts if candidate.content else None) or []:
                    if part.inline_data and part.inline_data.data:
                        return part.inline_data.data, part.inline_data.mime_type or "audio/L16;rate=24000"
            return None, ""
        if self.provider == "anthropic":
            raise ProviderUnavailable("The anthropic provider does not support audio output")
        response = await self._client.audio.speech.create(
            model=model, voice=self.tts_voice, input=text, response_format="mp3",
        )
        return response.content, "audio/mpeg"


# ---------------------------------------------------------------------------
# Mock client
# ---------------------------------------------------------------------------


class MockLLMClient:
    """Offline stand-in for LLMClient driven by a named scenario.

    ``calls`` records ``(prompt, modality, task)`` for every request.
    """

    provider = "mock"

    def __init__(self, scenario: str = "success"):
        if scenario not in mock_data.MOCK_SCENARIOS:
            raise ProviderUnavailable(f"Unknown mock scenario: {scenario!r}")
        self.scenario = scenario
        self.model = "mock-model"
        self.calls: list[tuple[str, str, str]] = []

    def mock_status(self) -> dict[str, Any]:
        return {
            "mockMode": True,
            "scenario": self.scenario,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def generate(self, prompt: str, modality: str = "text", task: str = "analysis") -> RawResponse:
        self.calls.append((prompt, modality, task))
        if self.scenario == "api_error":
            raise ProviderError("Mock API error: the provider returned HTTP 500")
        if self.scenario == "timeout":
            raise ProviderError("Mock timeout: the provider did not answer in time")
        if self.scenario == "rate_limit":
            raise ProviderError("Mock rate limit: HTTP 429 from provider")
        if self.scenario == "empty_response":
            raise EmptyResponse()
        if modality == "audio":
            return RawResponse(audio=mock_data.MOCK_AUDIO, mime_type="audio/wav", model=self.model)
        if self.scenario == "invalid_response":
            return RawResponse(text=mock_data.INVALID_RESPONSE_TEXT, model=self.model)
        return RawResponse(text=self._canned_text(prompt, task), model=self.model)

    @staticmethod
    def _canned_text(prompt: str, task: str) -> str:
        if task == "hackathon":
            return mock_data.fenced(mock_data.MOCK_HACKATHON_ANALYSIS)
        if task == "frankenstein":
            return mock_data.fenced(mock_data.MOCK_FRANKENSTEIN_IDEA)
        if task == "document":
            first_line = next((line for line in prompt.splitlines() if line.startswith("Write a ")), "")
            title = first_line.removeprefix("Write a ").split(" for the")[0] or "Document"
            return mock_data.MOCK_DOCUMENT_MARKDOWN.format(title=title)
        return mock_data.fenced(mock_data.MOCK_ANALYSIS)


def create_llm_client(settings: Settings | None = None) -> LLMClient | MockLLMClient:
    """Build the client the app injects into the pipeline."""
    settings = settings or get_settings()
    if settings.mock_mode:
        log.info("MOCK_MODE enabled, scenario=%s", settings.mock_scenario)
        return MockLLMClient(settings.mock_scenario)
    return LLMClient(settings=settings)
