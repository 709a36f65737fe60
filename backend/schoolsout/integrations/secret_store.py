"""Google Cloud Secret Manager access for service credentials."""

import logging

from google.api_core import exceptions as google_exceptions
from google.cloud import secretmanager

from schoolsout.integrations.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class SecretManagerProvider:
    """Reads the latest version of a named secret."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = secretmanager.SecretManagerServiceClient()
            except Exception as e:
                raise ConfigurationError(f"failed to create secret manager client: {e}") from e
        return self._client

    def get(self, project_id: str, secret_name: str) -> str:
        # projects/{project}/secrets/{secret}/versions/latest
        name = f"projects/{project_id}/secrets/{secret_name}/versions/latest"
        try:
            result = self.client.access_secret_version(request={"name": name})
        except google_exceptions.GoogleAPIError as e:
            raise ConfigurationError(f"failed to access secret version {name}: {e}") from e
        logger.info("Loaded secret %s from project %s", secret_name, project_id)
        return result.payload.data.decode("utf-8")
