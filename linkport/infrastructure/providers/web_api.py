import logging
from typing import Any, Dict, Optional

import requests

from linkport.domain.errors import NotFound, PermanentFailure, RateLimited, TemporaryFailure

logger = logging.getLogger(__name__)


def map_http_error(error: Exception, platform: str, operation: str) -> Exception:
    """Translate requests errors from a platform web API into domain errors."""
    if isinstance(error, requests.exceptions.HTTPError) and error.response is not None:
        response = error.response
        status = response.status_code
        if status == 429:
            try:
                retry_after = int(response.headers.get('Retry-After', 1))
            except (TypeError, ValueError):
                retry_after = 1
            return RateLimited(retry_after_ms=retry_after * 1000,
                               message=f"{platform} rate limit exceeded during {operation}")
        if status in (401, 403):
            return PermanentFailure(f"{platform} rejected the API key during {operation} "
                                    f"(HTTP {status}); it may be invalid or out of quota")
        if status == 404:
            return NotFound(f"{platform} resource not found during {operation}")
        return TemporaryFailure(f"{platform} error during {operation} (HTTP {status})")
    if isinstance(error, requests.exceptions.RequestException):
        return TemporaryFailure(f"Network error during {platform} {operation}: {error}")
    return TemporaryFailure(f"Unexpected error during {platform} {operation}: {error}")


class WebApiClient:
    """Small JSON GET client sharing one session and one request timeout."""

    def __init__(self, platform: str, base_url: str, auth_params: Dict[str, str],
                 timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.platform = platform
        self.base_url = base_url.rstrip('/')
        self.auth_params = dict(auth_params)
        self.timeout = timeout
        self.session = session or requests.Session()

    def get(self, path: str, operation: str, **params: Any) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {k: v for k, v in params.items() if v is not None}
        query.update(self.auth_params)
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except Exception as e:
            raise map_http_error(e, self.platform, operation) from e
