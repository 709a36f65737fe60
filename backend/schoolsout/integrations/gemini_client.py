"""
Gemini generateContent transport shared by both pipeline stages.

One request in, one synchronous POST, text out. There is no retry loop: every
failure is raised as a distinct UpstreamAPIError subclass so the caller can
log it and decide what the end user sees.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from schoolsout.config import DEFAULT_MODEL, DEFAULT_TIMEOUT_SECONDS
from schoolsout.integrations.exceptions import (
    ConfigurationError,
    EmptyResponseError,
    MalformedResponseError,
    TransportError,
    UpstreamStatusError,
)

logger = logging.getLogger(__name__)

GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:generateContent"
)


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Part(_Wire):
    text: str = ""


class Content(_Wire):
    parts: List[Part] = Field(default_factory=list)


class Tool(_Wire):
    google_search: Optional[Dict[str, Any]] = None


class GenerateContentRequest(_Wire):
    system_instruction: Optional[Content] = None
    contents: List[Content]
    tools: Optional[List[Tool]] = None

    @classmethod
    def from_prompt(cls, prompt: str, system_instruction: Optional[str] = None, grounded: bool = False):
        """Single-turn request; ``grounded`` attaches the Google Search tool."""
        return cls(
            system_instruction=Content(parts=[Part(text=system_instruction)]) if system_instruction else None,
            contents=[Content(parts=[Part(text=prompt)])],
            tools=[Tool(google_search={})] if grounded else None,
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class SafetyRating(_Wire):
    category: str = ""
    probability: str = ""


class Candidate(_Wire):
    content: Content = Field(default_factory=Content)
    finish_reason: Optional[str] = None
    safety_ratings: List[SafetyRating] = Field(default_factory=list)


class GenerateContentResponse(_Wire):
    candidates: List[Candidate] = Field(default_factory=list)


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        if not api_key or not api_key.strip():
            raise ConfigurationError("Gemini API key not configured")
        self._api_key = api_key.strip()
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, secret_provider=None, session=None) -> "GeminiClient":
        """Resolve the API key once and build a client.

        GEMINI_API_KEY wins when set (local development); otherwise the key is
        read from Secret Manager. Any failure raises ConfigurationError.
        """
        api_key = settings.gemini_api_key
        if api_key:
            logger.info("Using Gemini API key from environment")
        else:
            if not settings.project_id:
                raise ConfigurationError(
                    "No GCP project ID found in environment (GOOGLE_CLOUD_PROJECT or GCP_PROJECT_ID)"
                )
            if secret_provider is None:
                from schoolsout.integrations.secret_store import SecretManagerProvider
                secret_provider = SecretManagerProvider()
            logger.info("Using project ID: %s", settings.project_id)
            api_key = secret_provider.get(settings.project_id, settings.gemini_secret_name)
            if not api_key or not api_key.strip():
                raise ConfigurationError(f"secret {settings.gemini_secret_name} is empty")
        return cls(api_key, model=settings.gemini_model, timeout=settings.gemini_timeout, session=session)

    @property
    def url(self) -> str:
        return GEMINI_URL_TEMPLATE.format(model=self.model)

    def generate_parts(self, request: GenerateContentRequest) -> List[str]:
        """Return the text of every part of the first candidate."""
        payload = request.to_payload()
        logger.debug("Gemini request: %s", json.dumps(payload))

        try:
            resp = self.session.post(
                self.url,
                params={"key": self._api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            # the exception text can include the request URL, which carries the key
            raise TransportError(f"failed to send request: {type(e).__name__}") from e

        if resp.status_code != 200:
            raise UpstreamStatusError(resp.status_code, resp.text)

        logger.debug("Gemini response body: %s", resp.text)

        try:
            envelope = GenerateContentResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise MalformedResponseError(f"failed to parse response: {e.error_count()} errors") from e

        if not envelope.candidates:
            raise EmptyResponseError("no candidates in Gemini response")

        candidate = envelope.candidates[0]
        if not candidate.content.parts:
            raise EmptyResponseError(
                f"no content parts in Gemini response (finishReason={candidate.finish_reason})"
            )
        return [part.text for part in candidate.content.parts]

    def send(self, request: GenerateContentRequest) -> str:
        """Concatenated text of the first candidate."""
        text = "".join(self.generate_parts(request))
        if not text:
            raise EmptyResponseError("empty response text from Gemini")
        return text
