"""
Shared fixtures for the activity search tests.

The Gemini endpoint is replaced by FakeSession, which plays back canned HTTP
responses and records every request, so the real GeminiClient code runs.
"""

import json

import pytest
import requests

from schoolsout.integrations.exceptions import AuthInvalid, AuthServiceError
from schoolsout.integrations.gemini_client import GeminiClient
from schoolsout.orchestrator import ActivitySearchOrchestrator
from schoolsout.security import AccessGate, RateLimiter


STAGE1_INTRO = "Okay, I will search for science museum activities in Springfield."

STAGE1_TEXT = """- Name: Springfield Science Center Holiday Lab
  - Description: Hands-on experiments for kids during the school break.
  - URL: https://www.springfieldsciencecenter.org/holiday-lab?src=gs&ref=1
  - Category: Science
  - Location: Springfield Science Center
  - Price: $15
- Name: Planetarium Star Nights
  - Description: Evening planetarium shows for families.
  - URL: https://planetarium.example.org/star-nights
  - Category: Educational
  - Location: Springfield Planetarium
  - Price: Free
- Name: Museum Makers Camp
  - Description: Three-day maker camp at the natural history museum.
  - URL: https://springfield-museum.example.com/camps/makers#summer
  - Category: Science
  - Location: Springfield Natural History Museum
  - Price: $120
"""

BOOKING_URLS = [
    "https://www.springfieldsciencecenter.org/holiday-lab?src=gs&ref=1",
    "https://planetarium.example.org/star-nights",
    "https://springfield-museum.example.com/camps/makers#summer",
]

ACTIVITIES_JSON = json.dumps([
    {
        "id": "activity-1",
        "title": "Springfield Science Center Holiday Lab",
        "description": "Hands-on experiments for kids during the school break.",
        "category": "Science",
        "location": "Springfield Science Center",
        "ageRange": "",
        "date": "",
        "price": "$15",
        "imageUrl": "",
        "bookingUrl": BOOKING_URLS[0],
    },
    {
        "id": "activity-2",
        "title": "Planetarium Star Nights",
        "description": "Evening planetarium shows for families.",
        "category": "Educational",
        "location": "Springfield Planetarium",
        "ageRange": "",
        "date": "",
        "price": "Free",
        "imageUrl": "",
        "bookingUrl": BOOKING_URLS[1],
    },
    {
        "id": "activity-3",
        "title": "Museum Makers Camp",
        "description": "Three-day maker camp at the natural history museum.",
        "category": "Science",
        "location": "Springfield Natural History Museum",
        "ageRange": "",
        "date": "",
        "price": "$120",
        "imageUrl": "",
        "bookingUrl": BOOKING_URLS[2],
    },
], indent=2)


def gemini_envelope(*texts, finish_reason="STOP"):
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": t} for t in texts]},
                "finishReason": finish_reason,
                "safetyRatings": [{"category": "HARM_CATEGORY_HARASSMENT", "probability": "NEGLIGIBLE"}],
            }
        ]
    }


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        if body is None:
            body = {}
        self.status_code = status_code
        self.text = body if isinstance(body, str) else json.dumps(body)
        self.content = self.text.encode("utf-8")


class FakeSession:
    """Stands in for requests.Session; each item is a FakeResponse or an exception to raise."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "json": json, "headers": headers, "timeout": timeout})
        if not self.responses:
            raise AssertionError("unexpected Gemini call")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def prompts(self):
        return [call["json"]["contents"][0]["parts"][0]["text"] for call in self.calls]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeVerifier:
    """Accepts only ``valid_token``; ``service_down`` simulates an unreachable verifier."""

    def __init__(self, valid_token="good-token", service_down=False):
        self.valid_token = valid_token
        self.service_down = service_down
        self.calls = []

    def verify(self, token):
        self.calls.append(token)
        if self.service_down:
            raise AuthServiceError("authentication service error")
        if token != self.valid_token:
            raise AuthInvalid("invalid App Check token")
        return {"app_id": "1:1234:web:abcd"}


class FakeSecretProvider:
    def __init__(self, value="secret-key", error=None):
        self.value = value
        self.error = error
        self.calls = []

    def get(self, project_id, secret_name):
        self.calls.append((project_id, secret_name))
        if self.error is not None:
            raise self.error
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def happy_session():
    return FakeSession(
        FakeResponse(200, gemini_envelope(STAGE1_INTRO, STAGE1_TEXT)),
        FakeResponse(200, gemini_envelope(ACTIVITIES_JSON)),
    )


@pytest.fixture
def make_orchestrator(verifier):
    def _make(session, allowed_ips=(), bypass_all=False, max_requests=100, clock=None, gate_verifier=None):
        client = GeminiClient("test-key", model="gemini-2.0-flash", session=session)
        limiter_kwargs = {"max_requests": max_requests, "window_seconds": 3600}
        if clock is not None:
            limiter_kwargs["clock"] = clock
        rate_limiter = RateLimiter(**limiter_kwargs)
        gate = AccessGate(gate_verifier or verifier, allowed_ips=allowed_ips, bypass_all=bypass_all)
        return ActivitySearchOrchestrator(client, rate_limiter, gate)
    return _make


@pytest.fixture
def connection_error():
    return requests.ConnectionError(
        "HTTPSConnectionPool(host='generativelanguage.googleapis.com'): "
        "Max retries exceeded with url: /v1beta/models/gemini-2.0-flash:generateContent?key=test-key"
    )
