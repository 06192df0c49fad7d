"""Tests for page scraping and image loading."""

import httpx
import pytest

from cmsai.services.images import ImageLoadError, load_image
from cmsai.services.scraper import ScrapeError, extract_readable, scrape_url


def mock_client(response: httpx.Response) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(lambda request: response))


@pytest.fixture
def created_clients(monkeypatch):
    """Serve clients built inside the module from a mock transport and keep them."""
    created = []
    real_client = httpx.Client

    def build(**kwargs):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="Plain page"))
        client = real_client(transport=transport, **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(httpx, "Client", build)
    return created


class TestExtractReadable:
    """Tests for HTML to text extraction."""

    def test_strips_chrome_and_scripts(self):
        """Test navigation, scripts and comments are removed."""
        html = (
            "<html><head><style>p {color: red}</style></head><body>"
            "<nav>Home | About</nav><!-- tracking --><article><h1>Title</h1>"
            "<p>First &amp; second.</p></article><footer>(c) 2024</footer></body></html>"
        )
        assert extract_readable(html) == "Title First & second."

    def test_collapses_whitespace(self):
        """Test runs of whitespace become single spaces."""
        assert extract_readable("<p>a\n\n   b</p>\t<p>c</p>") == "a b c"


class TestScrapeUrl:
    """Tests for fetching pages."""

    def test_html_page(self):
        """Test HTML pages are reduced to readable text."""
        client = mock_client(httpx.Response(200, html="<body><p>Hello world</p></body>"))
        assert scrape_url("https://example.com", client) == "Hello world"

    def test_plain_text_page(self):
        """Test non-HTML bodies are returned as text."""
        client = mock_client(httpx.Response(200, text="  plain body \n"))
        assert scrape_url("https://example.com/robots.txt", client) == "plain body"

    def test_truncates(self):
        """Test long pages are truncated."""
        client = mock_client(httpx.Response(200, text="x" * 50))
        assert scrape_url("https://example.com", client, max_chars=10) == "x" * 10

    def test_rejects_non_http(self):
        """Test only http and https URLs are fetched."""
        with pytest.raises(ScrapeError):
            scrape_url("file:///etc/passwd")

    def test_http_error(self):
        """Test non-200 responses raise."""
        client = mock_client(httpx.Response(404))
        with pytest.raises(ScrapeError, match="HTTP 404"):
            scrape_url("https://example.com/missing", client)

    def test_empty_page(self):
        """Test pages without readable text raise."""
        client = mock_client(httpx.Response(200, html="<script>only()</script>"))
        with pytest.raises(ScrapeError, match="No readable content"):
            scrape_url("https://example.com", client)


class TestLoadImage:
    """Tests for image loading."""

    def test_local_file_media_type(self, tmp_path):
        """Test media type is guessed from the file name."""
        path = tmp_path / "photo.gif"
        path.write_bytes(b"\x00\x01")
        block = load_image(str(path))
        assert block.media_type == "image/gif"
        assert block.data == "AAE="

    def test_unknown_extension_defaults_to_jpeg(self, tmp_path):
        """Test unknown types fall back to JPEG."""
        path = tmp_path / "photo.bin"
        path.write_bytes(b"\x00")
        assert load_image(str(path)).media_type == "image/jpeg"

    def test_missing_file(self, tmp_path):
        """Test missing files raise ImageLoadError."""
        with pytest.raises(ImageLoadError):
            load_image(str(tmp_path / "nope.png"))

    def test_remote_error(self):
        """Test failed downloads raise ImageLoadError."""
        client = mock_client(httpx.Response(403))
        with pytest.raises(ImageLoadError, match="HTTP 403"):
            load_image("https://example.com/cat.png", client)


class TestClientLifecycle:
    """Tests for closing HTTP clients."""

    def test_scrape_closes_own_client(self, created_clients):
        """Test the client built for a scrape is closed afterwards."""
        assert scrape_url("https://example.com") == "Plain page"
        assert len(created_clients) == 1
        assert created_clients[0].is_closed

    def test_image_closes_own_client(self, created_clients):
        """Test the client built for an image download is closed afterwards."""
        load_image("https://example.com/cat.png")
        assert len(created_clients) == 1
        assert created_clients[0].is_closed

    def test_injected_client_left_open(self):
        """Test a caller's client is never closed."""
        client = mock_client(httpx.Response(200, text="Plain page"))
        scrape_url("https://example.com", client)
        load_image("https://example.com/cat.png", client)
        assert not client.is_closed
