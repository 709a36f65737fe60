"""Firebase App Check token verification."""

import logging
import threading

import firebase_admin
from firebase_admin import app_check

from schoolsout.integrations.exceptions import AuthInvalid, AuthServiceError

logger = logging.getLogger(__name__)


class FirebaseAppCheckVerifier:
    """Verifies App Check tokens against the default Firebase app.

    The Firebase app is initialized on first use with application default
    credentials, so constructing the verifier never touches the network.
    """

    def __init__(self, app=None):
        self._app = app
        self._lock = threading.Lock()

    def _get_app(self):
        with self._lock:
            if self._app is not None:
                return self._app
            try:
                self._app = firebase_admin.get_app()
            except ValueError:
                try:
                    self._app = firebase_admin.initialize_app()
                except Exception as e:
                    logger.error("Error initializing Firebase app: %s", e)
                    raise AuthServiceError("authentication service error") from e
            return self._app

    def verify(self, token: str) -> dict:
        app = self._get_app()
        try:
            return app_check.verify_token(token, app=app)
        except ValueError as e:
            raise AuthInvalid("invalid App Check token") from e
        except Exception as e:
            logger.error("Error verifying App Check token: %s", e)
            raise AuthServiceError("authentication service error") from e
