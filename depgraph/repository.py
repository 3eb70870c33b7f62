"""Client for fetching POM files from a Maven repository."""

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Optional

import requests

from . import __version__
from .errors import MetadataLookupError

logger = logging.getLogger(__name__)

MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2"
DEFAULT_LOCAL_REPOSITORY = Path.home() / ".m2" / "repository"


def pom_path(group_id: str, artifact_id: str, version: str) -> str:
    """The repository layout path of a POM: group/as/path/artifact/version/artifact-version.pom."""
    group_path = group_id.replace('.', '/')
    return f"{group_path}/{artifact_id}/{version}/{artifact_id}-{version}.pom"


def default_local_repository() -> Optional[Path]:
    """~/.m2/repository if it exists."""
    if DEFAULT_LOCAL_REPOSITORY.is_dir():
        return DEFAULT_LOCAL_REPOSITORY
    return None


class MavenRepository:
    """
    Fetches POM files, looking in the local repository before the remote one.

    Each POM is requested once per run: parsed documents are cached, and a
    failing request is not retried.
    """

    def __init__(self, url: str = MAVEN_CENTRAL_URL, local_repository: Optional[os.PathLike] = None,
                 timeout: int = 30):
        """
        Initialize the repository client.

        Args:
            url: Base URL of the remote repository
            local_repository: Directory of a local repository, None to only use the remote one
            timeout: Timeout in seconds for each HTTP request
        """
        self.url = url.rstrip('/')
        self.local_repository = Path(local_repository) if local_repository else None
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/xml, text/xml",
            "User-Agent": f"depgraph/{__version__}"
        })
        self._cache: Dict[str, ET.Element] = {}

    def fetch_pom(self, group_id: str, artifact_id: str, version: str) -> ET.Element:
        """
        Get the parsed POM of an artifact.

        Returns:
            The root element of the POM

        Raises:
            MetadataLookupError: If the POM cannot be found, downloaded or parsed
        """
        coordinates = f"{group_id}:{artifact_id}:pom:{version}"
        path = pom_path(group_id, artifact_id, version)
        if path in self._cache:
            return self._cache[path]

        content = self._read_local(path)
        if content is None:
            content = self._download(path, coordinates)

        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise MetadataLookupError(coordinates, f"invalid POM: {e}") from e

        self._cache[path] = root
        return root

    def _read_local(self, path: str) -> Optional[bytes]:
        if self.local_repository is None:
            return None
        local_file = self.local_repository / path
        if not local_file.is_file():
            return None
        logger.debug(f"Reading POM from local repository: {local_file}")
        return local_file.read_bytes()

    def _download(self, path: str, coordinates: str) -> bytes:
        url = f"{self.url}/{path}"
        logger.debug(f"Downloading POM {coordinates}")
        logger.debug(f"  URL: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise MetadataLookupError(coordinates, f"error downloading {url}: {e}") from e
        if response.status_code != 200:
            raise MetadataLookupError(coordinates, f"HTTP {response.status_code} from {url}")
        return response.content

    def close(self):
        """Close the session and clean up resources."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
