"""
Content API Client
==================

REST client for the portfolio backend. Every resource lives under the API
base URL and answers with the envelope ``{"success", "message", "data"}``.

This module translates HTTP outcomes into the typed errors of
``portfolio_admin.core.errors`` so nothing above it ever inspects status
codes. Calls are blocking; async callers run them on a worker thread.

Usage:
    ```python
    credentials = SessionCredentials(token="...")
    api = ContentAPI("https://example.com/api", credentials)
    projects = api.projects.list()
    created = api.projects.create({"title": "New project", ...})
    ```

Author: Portfolio Admin Project
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from portfolio_admin.core.config import DEFAULT_API_URL, NETWORK_TIMEOUT_SECONDS, UPLOAD_TIMEOUT_SECONDS
from portfolio_admin.core.errors import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    NetworkUnreachableError,
    NotFoundError,
    PayloadTooLargeError,
    PermissionDeniedError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from portfolio_admin.utils.logger import log_api_request, log_api_response

# Fragments the backend emits when a unique index (slug) is violated
DUPLICATE_KEY_MARKERS = ("e11000", "duplicate key", "already exists")


# ============================================================================
# MAIN API CLIENT
# ============================================================================

class ContentAPI:
    """
    Content API client.

    Attributes:
        projects: ProjectsAPI - Project CRUD, views and likes
        blogs: BlogsAPI - Blog CRUD and comments
        skills: SkillsAPI - Skill CRUD with flattened listings
        experience: ExperienceAPI - Work experience CRUD
        quotes: QuotesAPI - Quote CRUD, featured quotes and stats
        resumes: ResumesAPI - Resume uploads and activation
        contacts: ContactsAPI - Contact messages and their status
        analytics: AnalyticsAPI - Visit statistics
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        credentials=None,
        timeout: int = NETWORK_TIMEOUT_SECONDS,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the Content API client.

        Args:
            base_url: API root (e.g. "https://example.com/api")
            credentials: ``SessionCredentials`` supplying the bearer token
            timeout: Request timeout in seconds
            on_unauthorized: Called after a 401 has cleared the credentials
        """
        self.base_url = base_url.rstrip('/')
        self.credentials = credentials
        self.timeout = timeout
        self.on_unauthorized = on_unauthorized
        self.logger = logging.getLogger(__name__)

        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

        # Initialize sub-APIs
        self.projects = ProjectsAPI(self)
        self.blogs = BlogsAPI(self)
        self.skills = SkillsAPI(self)
        self.experience = ExperienceAPI(self)
        self.quotes = QuotesAPI(self)
        self.resumes = ResumesAPI(self)
        self.contacts = ContactsAPI(self)
        self.analytics = AnalyticsAPI(self)

        self.logger.info(f"Initialized ContentAPI for {self.base_url}")

    # ------------------------------------------------------------------------
    # CONTEXT MANAGER
    # ------------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self):
        """Release the underlying HTTP session and connection pool."""
        self.session.close()

    # ------------------------------------------------------------------------
    # REQUEST HANDLING
    # ------------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        if self.credentials is not None and self.credentials.is_authenticated:
            return {"Authorization": self.credentials.authorization_header()}
        return {}

    def _make_request(
        self,
        endpoint: str,
        method: str = "GET",
        data: Optional[Any] = None,
        params: Optional[Dict] = None,
        form: Optional[Dict] = None,
        files: Optional[Dict] = None,
        timeout: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Make an API request and return the decoded response envelope.

        Args:
            endpoint: Path below the API root (e.g., "/projects")
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            data: Optional JSON body
            params: Optional URL query parameters
            form: Optional form fields for multipart requests
            files: Optional files for multipart requests
            timeout: Override for the client timeout

        Returns:
            The decoded JSON envelope (empty dict for empty bodies)

        Raises:
            RemoteCallError: A subclass matching the failure
        """
        url = f"{self.base_url}{endpoint}"
        headers = self._auth_headers()

        log_api_request(self.logger, method, url, headers=headers, data=data or form, params=params)

        start = time.time()
        try:
            response = self.session.request(
                method,
                url,
                json=data,
                params=params,
                data=form,
                files=files,
                headers=headers,
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(f"{method} {endpoint} timed out: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkUnreachableError(f"{method} {endpoint} could not connect: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkUnreachableError(f"{method} {endpoint} failed: {e}") from e

        elapsed = time.time() - start
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        log_api_response(self.logger, response.status_code, body, elapsed)

        if response.status_code >= 400:
            self._raise_for_status(method, endpoint, response.status_code, body)

        if body.get("success") is False:
            message = body.get("message") or "Request was not successful"
            raise BadRequestError(f"{method} {endpoint}: {message}", status_code=response.status_code,
                                  user_message=message)

        return body

    def _raise_for_status(self, method: str, endpoint: str, status: int, body: Dict[str, Any]):
        """Map an HTTP error status onto the error taxonomy."""
        message = body.get("message") or body.get("error") or ""
        if not isinstance(message, str):
            message = str(message)
        detail = f"HTTP {status} on {method} {endpoint}" + (f": {message}" if message else "")
        self.logger.warning(f"Content API error - {detail}")

        if status == 401:
            if self.credentials is not None:
                self.credentials.clear()
            if self.on_unauthorized:
                self.on_unauthorized()
            raise AuthenticationError(detail, status_code=status)
        if status == 403:
            raise PermissionDeniedError(detail, status_code=status)
        if status == 404:
            raise NotFoundError(detail, status_code=status)
        if status == 409 or (status == 400 and any(m in message.lower() for m in DUPLICATE_KEY_MARKERS)):
            raise ConflictError(detail, status_code=status)
        if status == 413:
            raise PayloadTooLargeError(detail, status_code=status)
        if status == 429:
            raise RateLimitError(detail, status_code=status)
        if status >= 500:
            raise ServerError(detail, status_code=status)
        raise BadRequestError(detail, status_code=status, user_message=message or None)


# ============================================================================
# SUB-API CLASSES
# ============================================================================

class BaseAPI:
    """Base class for sub-API implementations."""

    def __init__(self, client: ContentAPI):
        self.client = client

    def _request(self, *args, **kwargs):
        """Shortcut to client._make_request()"""
        return self.client._make_request(*args, **kwargs)


def _entity_or_none(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    data = body.get("data")
    return data if isinstance(data, dict) and data else None


class ResourceAPI(BaseAPI):
    """CRUD operations shared by every collection resource."""

    path = ""

    def list(self, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        """Fetch the collection. Returns an empty list when the body has no data."""
        data = self._request(self.path, params=params).get("data")
        return list(data) if isinstance(data, list) else []

    def create(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Create an entity. Returns the stored entity, or None if the response omitted it."""
        return _entity_or_none(self._request(self.path, method="POST", data=payload))

    def update(self, entity_id: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update an entity. Returns the stored entity, or None if the response omitted it."""
        return _entity_or_none(self._request(f"{self.path}/{entity_id}", method="PUT", data=payload))

    def delete(self, entity_id: str) -> bool:
        self._request(f"{self.path}/{entity_id}", method="DELETE")
        return True


class ProjectsAPI(ResourceAPI):
    """Project operations."""
    path = "/projects"


class BlogsAPI(ResourceAPI):
    """Blog post operations."""
    path = "/blogs"


class SkillsAPI(ResourceAPI):
    """Skill operations. Listings come back grouped by category."""
    path = "/skills"

    def list(self, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        """
        Fetch skills as a flat list.

        The server returns ``{"data": {category: [skills]}, "list": [skills]}``.
        ``list`` is preferred; otherwise the grouped values are concatenated.
        """
        body = self._request(self.path, params=params)
        flat = body.get("list")
        if isinstance(flat, list):
            return list(flat)
        grouped = body.get("data")
        if isinstance(grouped, dict):
            return [skill for group in grouped.values() for skill in (group or [])]
        if isinstance(grouped, list):
            return list(grouped)
        return []


class ExperienceAPI(ResourceAPI):
    """Work experience operations."""
    path = "/experience"


class QuotesAPI(ResourceAPI):
    """Quote operations."""
    path = "/quotes"


class ResumesAPI(ResourceAPI):
    """Resume documents. Files are uploaded to the backend, not the media host."""
    path = "/resume"

    def upload(
        self,
        filename: str,
        content: bytes,
        title: str,
        description: str = "",
        media_type: str = "application/pdf",
    ) -> Optional[Dict[str, Any]]:
        """Upload a resume as multipart form data under the ``resume`` field."""
        return _entity_or_none(self._request(
            f"{self.path}/upload",
            method="POST",
            form={"title": title, "description": description},
            files={"resume": (filename, content, media_type)},
            timeout=UPLOAD_TIMEOUT_SECONDS,
        ))

    def toggle(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Flip a resume's active flag. Activating one deactivates the others server-side."""
        return _entity_or_none(self._request(f"{self.path}/{entity_id}/toggle", method="PATCH"))


class ContactsAPI(ResourceAPI):
    """Contact form messages."""
    path = "/contact"

    def update_status(self, entity_id: str, status: str) -> Optional[Dict[str, Any]]:
        return self.update(entity_id, {"status": status})


class AnalyticsAPI(BaseAPI):
    """Visit statistics."""

    def overview(self) -> Dict[str, Any]:
        return self._request("/analytics/overview").get("data") or {}
