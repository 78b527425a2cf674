"""Minimal GitLab REST client for engagement projects."""
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from integration_profiler.core.errors import RemoteError
from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30


class GitLabClient:
    """Talks to the GitLab projects API with a private token."""

    def __init__(
        self,
        api_root: str,
        access_token: str,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            api_root: API base URL, e.g. ``https://gitlab.example.com/api/v4/``
            access_token: Personal or group access token
            timeout: Request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.api_root = api_root if api_root.endswith("/") else api_root + "/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"PRIVATE-TOKEN": access_token})

    def project_url(self, group: str, name: str) -> str:
        """URL of a project addressed by its full path."""
        return f"{self.api_root}projects/{quote(f'{group}/{name}', safe='')}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteError(f"Request to {url} failed: {e}") from e

    def get_project(self, group: str, name: str) -> Optional[Dict[str, Any]]:
        """Look up a project.

        Returns:
            Project JSON if it exists, None on 404.

        Raises:
            RemoteError: For any other status or a network failure.
        """
        url = self.project_url(group, name)
        logger.info(f"Checking this project to see if it exists: {url}")
        response = self._request("GET", url)

        if response.status_code == 404:
            return None
        if response.status_code == 200:
            return response.json()

        raise RemoteError(
            f"GitLab API returned status {response.status_code}: {response.text}"
        )

    def create_project(self, name: str, namespace_id: int) -> Dict[str, Any]:
        """Create a project in a group namespace."""
        response = self._request(
            "POST",
            f"{self.api_root}projects",
            json={"name": name, "namespace_id": namespace_id},
        )
        if response.status_code not in (200, 201):
            raise RemoteError(
                f"Failed to create project '{name}': {response.status_code} {response.text}"
            )
        project = response.json()
        logger.info(f"✓ GitLab project created: {project.get('web_url', name)}")
        return project

    def create_variable(self, project_id: int, key: str, value: str) -> Dict[str, Any]:
        """Create a CI/CD variable on a project."""
        response = self._request(
            "POST",
            f"{self.api_root}projects/{project_id}/variables",
            json={"key": key, "value": value},
        )
        if response.status_code not in (200, 201):
            raise RemoteError(
                f"Failed to create variable '{key}' on project {project_id}: "
                f"{response.status_code} {response.text}"
            )
        return response.json()
