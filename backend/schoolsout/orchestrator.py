"""
Request orchestration for activity search.

Per request: rate limit -> access gate -> body parsing -> stage 1 -> stage 2
-> normalization. Only the pre-flight steps produce distinct failure outcomes.
Anything that goes wrong after admission is logged with its full diagnostic
detail and turned into a successful, empty result so upstream failure detail
never reaches the caller. ``pipeline_failed`` keeps the two cases apart for
logging; it is not serialized.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import ValidationError

from schoolsout.config import Settings
from schoolsout.graph.build_graph import build_graph
from schoolsout.graph.state import RunState
from schoolsout.integrations.exceptions import (
    RateLimited,
    StructuredParseFailure,
    UpstreamStatusError,
)
from schoolsout.integrations.gemini_client import GeminiClient
from schoolsout.models.entities import Activity
from schoolsout.models.search_query import SearchQuery
from schoolsout.prompting.prompt_builder import get_prompt_builder
from schoolsout.security import AccessGate, RateLimiter

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again later."
UNAUTHORIZED_MESSAGE = "Invalid or missing App Check token"
INVALID_JSON_MESSAGE = "Invalid JSON format"
INVALID_PARAMETERS_MESSAGE = "Invalid search parameters"
BLANK_QUERY_MESSAGE = "Query parameter is required and cannot be empty"


class SearchStatus(str, enum.Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    INVALID_JSON = "invalid_json"
    INVALID_PARAMETERS = "invalid_parameters"
    BLANK_QUERY = "blank_query"


@dataclass(frozen=True)
class SearchOutcome:
    status: SearchStatus
    activities: List[Activity] = field(default_factory=list)
    error: Optional[str] = None
    pipeline_failed: bool = False
    reason: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is SearchStatus.OK

    @property
    def retry_after(self) -> Optional[float]:
        return getattr(self.reason, "retry_after", None)

    @property
    def message(self) -> str:
        return f"Found {len(self.activities)} activities"

    @classmethod
    def rejected(cls, status: SearchStatus, error: str, **kwargs) -> "SearchOutcome":
        return cls(status=status, error=error, **kwargs)


class ActivitySearchOrchestrator:
    def __init__(self, client, rate_limiter: RateLimiter, access_gate: AccessGate, prompt_builder=None):
        self.client = client
        self.rate_limiter = rate_limiter
        self.access_gate = access_gate
        self.prompt_builder = prompt_builder or get_prompt_builder()
        self.graph = build_graph(client, self.prompt_builder)

    @classmethod
    def from_settings(cls, settings: Settings, secret_provider=None, verifier=None, session=None):
        """Build the production wiring. Raises ConfigurationError if the Gemini key can't be resolved."""
        client = GeminiClient.from_settings(settings, secret_provider=secret_provider, session=session)
        if verifier is None:
            from schoolsout.integrations.app_check import FirebaseAppCheckVerifier
            verifier = FirebaseAppCheckVerifier()
        rate_limiter = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            sweep_interval=settings.rate_limit_sweep_seconds,
        )
        access_gate = AccessGate(verifier, allowed_ips=settings.allowed_ips, bypass_all=settings.skip_app_check)
        return cls(client, rate_limiter, access_gate)

    def start(self) -> None:
        self.rate_limiter.start()

    def stop(self) -> None:
        self.rate_limiter.stop()

    # -- pre-flight ----------------------------------------------------------

    def admit(self, client_key: str, token: Optional[str]) -> Optional[SearchOutcome]:
        """None when the request may proceed, else the rejection outcome."""
        if not self.rate_limiter.allow(client_key):
            return SearchOutcome.rejected(
                SearchStatus.RATE_LIMITED,
                RATE_LIMITED_MESSAGE,
                reason=RateLimited(client_key, retry_after=self.rate_limiter.retry_after(client_key)),
            )

        decision = self.access_gate.decide(client_key, token)
        if not decision.admitted:
            logger.info("Rejected request from %s: %s", client_key, type(decision.reason).__name__)
            return SearchOutcome.rejected(SearchStatus.UNAUTHORIZED, UNAUTHORIZED_MESSAGE, reason=decision.reason)
        return None

    def parse_query(self, body: Union[bytes, str]) -> Union[SearchQuery, SearchOutcome]:
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.info("Invalid JSON: %s", e)
            return SearchOutcome.rejected(SearchStatus.INVALID_JSON, INVALID_JSON_MESSAGE)

        if not isinstance(data, dict):
            return SearchOutcome.rejected(SearchStatus.INVALID_PARAMETERS, INVALID_PARAMETERS_MESSAGE)

        try:
            query = SearchQuery.model_validate(data)
        except ValidationError as e:
            logger.info("Invalid search parameters: %s", e.errors(include_url=False))
            return SearchOutcome.rejected(SearchStatus.INVALID_PARAMETERS, INVALID_PARAMETERS_MESSAGE)

        logger.info("Incoming request body: %s", query.model_dump_json(by_alias=True, exclude_none=True))

        if query.is_blank:
            return SearchOutcome.rejected(SearchStatus.BLANK_QUERY, BLANK_QUERY_MESSAGE)
        return query

    # -- pipeline ------------------------------------------------------------

    def run_pipeline(self, query: SearchQuery) -> SearchOutcome:
        logger.info("Processing search query: %s", query.query)
        try:
            result = self.graph.invoke(RunState(query=query))
        except Exception as e:
            self._log_pipeline_failure(query, e)
            return SearchOutcome(status=SearchStatus.OK, activities=[], pipeline_failed=True, reason=e)

        activities = list(result["activities"])
        logger.info("Search for '%s' returned %d activities (logs=%s)", query.query, len(activities), result.get("logs", []))
        return SearchOutcome(status=SearchStatus.OK, activities=activities)

    def search(self, query: SearchQuery) -> List[Activity]:
        return self.run_pipeline(query).activities

    def handle(self, client_key: str, token: Optional[str], body: Union[bytes, str]) -> SearchOutcome:
        """Full per-request flow used by the HTTP layer."""
        rejection = self.admit(client_key, token)
        if rejection is not None:
            return rejection

        parsed = self.parse_query(body)
        if isinstance(parsed, SearchOutcome):
            return parsed
        return self.run_pipeline(parsed)

    @staticmethod
    def _log_pipeline_failure(query: SearchQuery, error: Exception) -> None:
        if isinstance(error, UpstreamStatusError):
            logger.error(
                "Gemini returned status %d for query '%s': %s", error.status_code, query.query, error.body
            )
        elif isinstance(error, StructuredParseFailure):
            logger.error("Could not parse activities for query '%s'. Raw text: %s", query.query, error.raw_text)
        else:
            logger.error("Error querying Gemini API for query '%s': %s", query.query, error, exc_info=error)
