import unittest
from unittest.mock import MagicMock, patch

import requests

from portfolio_admin.core.errors import (
    MediaTransferError,
    NetworkUnreachableError,
    RateLimitError,
    RequestTimeoutError,
    UploadConfigurationError,
)
from portfolio_admin.integrations.media_host_client import (
    MediaHostClient,
    _ProgressReader,
    media_id_from_url,
    optimized_url,
)


def _response(status_code, body):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


class TestMediaHostClient(unittest.TestCase):
    def setUp(self):
        self.client = MediaHostClient(cloud_name="demo", upload_preset="portfolio_unsigned")

    def tearDown(self):
        self.client.close()

    def test_upload_url(self):
        self.assertEqual(self.client.upload_url, "https://api.cloudinary.com/v1_1/demo/image/upload")

    @patch('portfolio_admin.integrations.media_host_client.requests.Session.post')
    def test_upload_success(self, mock_post):
        mock_post.return_value = _response(200, {
            "secure_url": "https://res.example.com/demo/a.png",
            "public_id": "portfolio/a",
            "width": 640,
            "height": 480,
            "format": "png",
            "bytes": 1234,
        })

        result = self.client.upload("a.png", b"png-bytes", "image/png", folder="portfolio", tags=["project"])

        self.assertEqual(result["url"], "https://res.example.com/demo/a.png")
        self.assertEqual(result["public_id"], "portfolio/a")
        self.assertEqual(result["width"], 640)

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], self.client.upload_url)
        self.assertIn("multipart/form-data", kwargs["headers"]["Content-Type"])
        body = kwargs["data"].read(len(kwargs["data"]))
        self.assertIn(b'name="upload_preset"', body)
        self.assertIn(b"portfolio_unsigned", body)
        self.assertIn(b'name="folder"', body)
        self.assertIn(b"png-bytes", body)

    @patch('portfolio_admin.integrations.media_host_client.requests.Session.post')
    def test_unconfigured_client_never_calls_network(self, mock_post):
        client = MediaHostClient()
        self.assertFalse(client.is_available())
        with self.assertRaises(UploadConfigurationError):
            client.upload("a.png", b"x", "image/png")
        mock_post.assert_not_called()

    @patch('portfolio_admin.integrations.media_host_client.requests.Session.post')
    def test_error_mapping(self, mock_post):
        cases = [
            (429, {"error": {"message": "Rate limit exceeded"}}, RateLimitError),
            (400, {"error": {"message": "Upload preset not found"}}, UploadConfigurationError),
            (400, {"error": {"message": "Invalid image file"}}, MediaTransferError),
        ]
        for status, body, expected in cases:
            mock_post.return_value = _response(status, body)
            with self.assertRaises(expected) as ctx:
                self.client.upload("a.png", b"x", "image/png")
            self.assertEqual(ctx.exception.status_code, status)

        mock_post.return_value = _response(400, {"error": {"message": "Invalid image file"}})
        with self.assertRaises(MediaTransferError) as ctx:
            self.client.upload("a.png", b"x", "image/png")
        self.assertEqual(ctx.exception.user_message, "Upload failed: Invalid image file")

    @patch('portfolio_admin.integrations.media_host_client.requests.Session.post')
    def test_transport_errors(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(RequestTimeoutError):
            self.client.upload("a.png", b"x", "image/png")

        mock_post.side_effect = requests.exceptions.ConnectionError("down")
        with self.assertRaises(NetworkUnreachableError):
            self.client.upload("a.png", b"x", "image/png")


class TestProgressReader(unittest.TestCase):
    def test_reports_cumulative_progress(self):
        events = []
        reader = _ProgressReader(b"abcdefghij", lambda sent, total: events.append((sent, total)))
        self.assertEqual(reader.read(4), b"abcd")
        self.assertEqual(reader.read(4), b"efgh")
        self.assertEqual(reader.read(4), b"ij")
        self.assertEqual(reader.read(4), b"")
        self.assertEqual(events, [(4, 10), (8, 10), (10, 10)])


class TestStoredMediaUrls(unittest.TestCase):
    URL = "https://res.cloudinary.com/demo/image/upload/v1712345678/portfolio/projects/shop.png"

    def test_media_id_from_url(self):
        self.assertEqual(media_id_from_url(self.URL), "portfolio/projects/shop")
        self.assertIsNone(media_id_from_url("https://example.com/images/shop.png"))
        self.assertIsNone(media_id_from_url(""))

    def test_optimized_url(self):
        self.assertEqual(
            optimized_url(self.URL, width=400, height=300),
            "https://res.cloudinary.com/demo/image/upload/w_400,h_300,c_fill,q_auto,f_auto/"
            "v1712345678/portfolio/projects/shop.png",
        )
        self.assertEqual(
            optimized_url(self.URL, crop="limit", image_format="webp"),
            "https://res.cloudinary.com/demo/image/upload/c_limit,q_auto,f_webp/"
            "v1712345678/portfolio/projects/shop.png",
        )

    def test_foreign_urls_unchanged(self):
        self.assertEqual(optimized_url("https://example.com/a.png", width=10), "https://example.com/a.png")
        self.assertEqual(optimized_url("", width=10), "")


if __name__ == '__main__':
    unittest.main()
