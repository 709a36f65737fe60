"""
Decides whether a request has to present a valid App Check token.

Order of checks:
1. client IP in the allowlist -> bypass, the token is never looked at
2. global bypass switch (SKIP_APP_CHECK) -> bypass, logged loudly
3. no token -> rejected (AuthRequired)
4. verifier says invalid / is unreachable -> rejected (AuthInvalid / AuthServiceError)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from schoolsout.integrations.exceptions import (
    AuthInvalid,
    AuthRequired,
    AuthServiceError,
    IntegrationError,
)

logger = logging.getLogger(__name__)


class AccessOutcome(str, enum.Enum):
    BYPASS = "bypass"
    ALLOWED = "allowed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    reason: Optional[IntegrationError] = None

    @property
    def admitted(self) -> bool:
        return self.outcome in (AccessOutcome.BYPASS, AccessOutcome.ALLOWED)


class AccessGate:
    def __init__(self, verifier, allowed_ips: Iterable[str] = (), bypass_all: bool = False):
        """
        Args:
            verifier: object with ``verify(token)`` raising AuthInvalid or
                AuthServiceError on failure
            allowed_ips: client keys that skip verification entirely
            bypass_all: disables verification for everyone; never on by default
        """
        self.verifier = verifier
        self.allowed_ips = frozenset(ip.strip() for ip in allowed_ips if ip and ip.strip())
        self.bypass_all = bypass_all
        if bypass_all:
            logger.warning("AccessGate created with bypass_all=True: App Check is not enforced")

    def decide(self, client_key: str, token: Optional[str]) -> AccessDecision:
        if client_key in self.allowed_ips:
            logger.info("Request from allowlisted IP: %s - bypassing App Check", client_key)
            return AccessDecision(AccessOutcome.BYPASS)

        if self.bypass_all:
            logger.warning("App Check bypassed for IP %s (SKIP_APP_CHECK)", client_key)
            return AccessDecision(AccessOutcome.BYPASS)

        logger.info("Request from IP: %s - App Check required", client_key)

        if not token or not token.strip():
            logger.info("App Check verification failed for IP %s: missing token", client_key)
            return AccessDecision(AccessOutcome.REJECTED, AuthRequired("missing App Check token"))

        try:
            self.verifier.verify(token)
        except AuthInvalid as e:
            logger.info("App Check verification failed for IP %s: %s", client_key, e)
            return AccessDecision(AccessOutcome.REJECTED, e)
        except AuthServiceError as e:
            logger.error("App Check service error for IP %s: %s", client_key, e)
            return AccessDecision(AccessOutcome.REJECTED, e)

        logger.info("App Check verification successful for IP: %s", client_key)
        return AccessDecision(AccessOutcome.ALLOWED)
