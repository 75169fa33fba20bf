"""
Media Host Client
=================

REST client for a Cloudinary-compatible unsigned upload endpoint. Images are
sent as multipart form data to ``{api_base}/v1_1/{cloud_name}/image/upload``
together with the upload preset, an optional folder and comma-joined tags.

Upload progress is reported by streaming the encoded multipart body through
a reader that counts the bytes handed to the socket.

Author: Portfolio Admin Project
"""

import logging
import re
from typing import Callable, Dict, List, Optional

import requests

from portfolio_admin.core.config import DEFAULT_MEDIA_API_BASE, UPLOAD_TIMEOUT_SECONDS
from portfolio_admin.core.errors import (
    MediaTransferError,
    NetworkUnreachableError,
    RateLimitError,
    RequestTimeoutError,
    UploadConfigurationError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
UPLOAD_PATH = "/v1_1/{cloud_name}/image/upload"
DELIVERY_SEGMENT = "/upload/"
DELIVERY_HOST_MARKER = "cloudinary"
STREAM_CHUNK_SIZE = 64 * 1024

# Fragments of media host error messages that point at account configuration
# rather than at the file being uploaded.
CONFIGURATION_ERROR_MARKERS = (
    "upload preset",
    "cloud_name",
    "cloud name",
    "api key",
    "unsigned",
)


class _ProgressReader:
    """File-like wrapper that reports how much of ``data`` has been read."""

    def __init__(self, data: bytes, callback: Optional[Callable[[int, int], None]] = None):
        self._data = data
        self._offset = 0
        self._callback = callback

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = STREAM_CHUNK_SIZE
        chunk = self._data[self._offset:self._offset + size]
        self._offset += len(chunk)
        if chunk and self._callback:
            self._callback(self._offset, len(self._data))
        return chunk


class MediaHostClient:
    """Client for the media host's unsigned image upload API.

    Attributes:
        cloud_name (str): Account identifier embedded in the upload URL.
        upload_preset (str): Name of the unsigned upload preset.
        api_base (str): Scheme and host of the upload API.
    """

    def __init__(
        self,
        cloud_name: str = "",
        upload_preset: str = "",
        api_base: str = DEFAULT_MEDIA_API_BASE,
        timeout: int = UPLOAD_TIMEOUT_SECONDS,
    ):
        self.cloud_name = (cloud_name or "").strip()
        self.upload_preset = (upload_preset or "").strip()
        self.api_base = (api_base or DEFAULT_MEDIA_API_BASE).rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        """Return True when both the cloud name and the upload preset are set."""
        return bool(self.cloud_name and self.upload_preset)

    @property
    def upload_url(self) -> str:
        return self.api_base + UPLOAD_PATH.format(cloud_name=self.cloud_name)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self,
        filename: str,
        content: bytes,
        media_type: str,
        folder: Optional[str] = None,
        tags: Optional[List[str]] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> Dict:
        """Upload one image and return the media host's descriptor.

        Blocking; callers on an event loop run it in a worker thread.

        Args:
            filename: Original file name sent with the file part.
            content: Raw file bytes.
            media_type: Declared MIME type of the file.
            folder: Optional destination folder on the media host.
            tags: Optional tags, sent comma-joined.
            on_progress: Called with ``(bytes_sent, bytes_total)`` as the body streams.

        Returns:
            Dict with keys ``url``, ``public_id``, ``width``, ``height``,
            ``format`` and ``bytes``.

        Raises:
            UploadConfigurationError: Missing or rejected cloud name / preset.
            RateLimitError: The media host answered 429.
            RequestTimeoutError / NetworkUnreachableError: No response received.
            MediaTransferError: Any other rejection of the file.
        """
        if not self.is_available():
            raise UploadConfigurationError(
                "Media host is not configured: cloud name and upload preset are required"
            )

        fields = {
            "upload_preset": self.upload_preset,
            "cloud_name": self.cloud_name,
        }
        if folder:
            fields["folder"] = folder
        if tags:
            fields["tags"] = ",".join(tags)

        # Let requests build the multipart body, then stream it ourselves
        prepared = requests.Request(
            "POST",
            self.upload_url,
            data=fields,
            files={"file": (filename, content, media_type)},
        ).prepare()
        body = _ProgressReader(prepared.body, on_progress)

        logger.info(f"[MEDIA] Uploading {filename} ({len(content)} bytes) to {self.upload_url}")
        try:
            resp = self.session.post(
                self.upload_url,
                data=body,
                headers={"Content-Type": prepared.headers["Content-Type"]},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise RequestTimeoutError(f"Upload of {filename} timed out: {exc}") from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkUnreachableError(f"Upload of {filename} failed to connect: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        finally:
            resp.close()

        if resp.status_code >= 400:
            self._raise_for_error(filename, resp.status_code, data)

        logger.info(f"[MEDIA] Uploaded {filename} -> {data.get('public_id')}")
        return {
            "url": data.get("secure_url") or data.get("url", ""),
            "public_id": data.get("public_id", ""),
            "width": data.get("width"),
            "height": data.get("height"),
            "format": data.get("format"),
            "bytes": data.get("bytes"),
        }

    def _raise_for_error(self, filename: str, status_code: int, data: Dict):
        """Translate an error response into the matching exception."""
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            detail = error.get("message", "")
        else:
            detail = str(error or "")
        detail = detail or f"HTTP {status_code}"

        logger.error(f"[MEDIA] Upload of {filename} rejected ({status_code}): {detail}")

        if status_code == 429:
            raise RateLimitError(f"Media host rate limit: {detail}", status_code=status_code)
        if any(marker in detail.lower() for marker in CONFIGURATION_ERROR_MARKERS):
            raise UploadConfigurationError(
                f"Media host configuration error: {detail}", status_code=status_code
            )
        raise MediaTransferError(
            f"Upload of {filename} failed: {detail}",
            status_code=status_code,
            user_message=f"Upload failed: {detail}",
        )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self):
        """Release the underlying HTTP session and connection pool."""
        self.session.close()


# ---------------------------------------------------------------------------
# Stored media URLs
# ---------------------------------------------------------------------------

# ".../upload/v1712345678/portfolio/projects/shop.png" -> "portfolio/projects/shop"
_VERSIONED_PATH = re.compile(r"/v\d+/(.+?)\.[A-Za-z0-9]+$")


def media_id_from_url(url: str) -> Optional[str]:
    """Recover the media id from a delivery URL, or None if it has no version segment."""
    if not url:
        return None
    match = _VERSIONED_PATH.search(url)
    return match.group(1) if match else None


def optimized_url(
    url: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    crop: str = "fill",
    quality: str = "auto",
    image_format: str = "auto",
) -> str:
    """Insert resize and delivery transformations into a media host URL.

    URLs served from elsewhere, or without an ``/upload/`` segment, are
    returned unchanged.
    """
    if not url or DELIVERY_HOST_MARKER not in url:
        return url
    head, sep, tail = url.partition(DELIVERY_SEGMENT)
    if not sep or DELIVERY_SEGMENT in tail:
        return url

    transformation = []
    if width:
        transformation.append(f"w_{width}")
    if height:
        transformation.append(f"h_{height}")
    transformation += [f"c_{crop}", f"q_{quality}", f"f_{image_format}"]
    return f"{head}{DELIVERY_SEGMENT}{','.join(transformation)}/{tail}"
