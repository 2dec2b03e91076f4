"""Provider routing for text generation.

A caller-supplied model identifier is resolved once to a closed
``ProviderKind`` and dispatched to a single completion call:

- OpenAI receives a two-role chat completion (system + user).
- Gemini receives one combined prompt with headed sections and the most
  permissive safety configuration, because news and crime reporting must not
  be silently blocked.

There are no retries; a failed call surfaces immediately as a provider-tagged
error so the interactive caller can decide whether to resubmit.
"""

from __future__ import annotations

import logging
from enum import Enum
from threading import Lock
from typing import Callable, Optional

import google.generativeai as genai
import openai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from openai import OpenAI

from .config import Settings
from .errors import (
    InvalidCredential,
    MissingCredential,
    ProviderError,
    UnsupportedModel,
)

logger = logging.getLogger(__name__)

# Reasoning models are addressed without a "gpt" marker (o1-mini, o3, o4-mini...).
REASONING_MODEL_PREFIXES: tuple[str, ...] = ("o1", "o3", "o4")

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}

# genai.configure() stores the key process-wide; configure + generate must not interleave.
_GEMINI_LOCK = Lock()


class ProviderKind(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"

    @property
    def label(self) -> str:
        return "OpenAI" if self is ProviderKind.OPENAI else "Gemini"


def resolve_provider(model_identifier: Optional[str]) -> ProviderKind:
    """
    Map a free-text model identifier to a provider.

    Unknown identifiers raise UnsupportedModel instead of defaulting, so a
    credential is never sent to a provider the caller did not ask for.
    """
    name = (model_identifier or "").strip().lower()
    if "gpt" in name or name.startswith(REASONING_MODEL_PREFIXES):
        return ProviderKind.OPENAI
    if "gemini" in name or "flash" in name:
        return ProviderKind.GEMINI
    raise UnsupportedModel(model_identifier or "")


def normalize_gemini_model(model_identifier: str, settings: Settings) -> str:
    """Collapse caller aliases onto the configured, known-good Gemini models."""
    name = model_identifier.lower()
    if "flash" in name:
        return settings.gemini_flash_model
    if "pro" in name:
        return settings.gemini_pro_model
    return settings.gemini_flash_model


def combine_prompt(system_instruction: str, user_content: str) -> str:
    return f"[System Instructions]\n{system_instruction}\n\n[User Request]\n{user_content}"


def _openai_error_message(exc: Exception) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return getattr(exc, "message", None) or str(exc)


def _is_gemini_key_error(exc: Exception) -> bool:
    if isinstance(exc, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return True
    text = str(exc).lower()
    return isinstance(exc, google_exceptions.InvalidArgument) and (
        "api key" in text or "api_key" in text
    )


class ProviderRouter:
    """Dispatch completions to OpenAI or Gemini based on the model identifier."""

    def __init__(
        self,
        settings: Settings,
        *,
        openai_factory: Callable[[str], OpenAI] | None = None,
    ) -> None:
        self.settings = settings
        self._openai_factory = openai_factory or self._build_openai_client

    def _build_openai_client(self, api_key: str) -> OpenAI:
        return OpenAI(api_key=api_key, timeout=self.settings.model_timeout, max_retries=0)

    def fallback_credential(self, model_identifier: Optional[str]) -> Optional[str]:
        """Return the configured default key for the model's provider, if any."""
        try:
            kind = resolve_provider(model_identifier)
        except UnsupportedModel:
            return None
        if kind is ProviderKind.OPENAI:
            return self.settings.openai_api_key
        return self.settings.gemini_api_key

    def complete(
        self,
        system_instruction: str,
        user_content: str,
        model_identifier: Optional[str],
        credential: Optional[str],
    ) -> str:
        api_key = (credential or "").strip()
        if not api_key:
            raise MissingCredential()
        kind = resolve_provider(model_identifier)
        model_name = (model_identifier or "").strip()
        if kind is ProviderKind.OPENAI:
            logger.info("Completion request: provider=openai model=%s", model_name)
            return self._complete_openai(system_instruction, user_content, model_name, api_key)
        upstream = normalize_gemini_model(model_name, self.settings)
        logger.info(
            "Completion request: provider=gemini model=%s (requested %s)", upstream, model_name
        )
        return self._complete_gemini(system_instruction, user_content, upstream, api_key)

    def _complete_openai(
        self, system_instruction: str, user_content: str, model: str, api_key: str
    ) -> str:
        request_kwargs = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_content},
            ],
        }
        # Reasoning models reject the temperature parameter; omit it for compatibility.
        if not model.lower().startswith(REASONING_MODEL_PREFIXES):
            request_kwargs["temperature"] = self.settings.temperature

        client = self._openai_factory(api_key)
        try:
            response = client.chat.completions.create(**request_kwargs)
        except openai.AuthenticationError as exc:
            raise InvalidCredential("OpenAI", _openai_error_message(exc)) from exc
        except openai.OpenAIError as exc:
            logger.warning("OpenAI call failed: %s", exc)
            raise ProviderError("OpenAI", _openai_error_message(exc)) from exc

        choices = getattr(response, "choices", None) or []
        text = choices[0].message.content if choices else None
        if not text:
            raise ProviderError("OpenAI", "response missing output text.")
        return text

    def _complete_gemini(
        self, system_instruction: str, user_content: str, model: str, api_key: str
    ) -> str:
        prompt = combine_prompt(system_instruction, user_content)
        try:
            with _GEMINI_LOCK:
                genai.configure(api_key=api_key)
                generative_model = genai.GenerativeModel(
                    model_name=model, safety_settings=SAFETY_SETTINGS
                )
                response = generative_model.generate_content(
                    prompt, request_options={"timeout": self.settings.model_timeout}
                )
            text = response.text
        except ValueError as exc:
            # response.text raises when the candidate was blocked or empty.
            raise ProviderError("Gemini", f"response contained no text ({exc})") from exc
        except Exception as exc:
            if _is_gemini_key_error(exc):
                raise InvalidCredential("Gemini", str(exc)) from exc
            logger.warning("Gemini call failed: %s", exc)
            raise ProviderError("Gemini", str(exc)) from exc

        if not text:
            raise ProviderError("Gemini", "response missing output text.")
        return text
