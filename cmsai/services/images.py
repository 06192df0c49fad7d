"""Loading user-supplied images for image turns."""

import base64
import mimetypes
from pathlib import Path

import httpx

from cmsai.models.llm import ImageBlock
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MEDIA_TYPE = "image/jpeg"


class ImageLoadError(RuntimeError):
    """The image could not be fetched or read."""


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _fetch(source: str, client: httpx.Client) -> tuple[bytes, str]:
    try:
        response = client.get(source)
    except httpx.HTTPError as e:
        raise ImageLoadError(f"Could not fetch image {source}: {e}") from e
    if response.status_code != 200:
        raise ImageLoadError(f"Could not fetch image {source}: HTTP {response.status_code}")
    return response.content, response.headers.get("content-type", "").split(";")[0].strip()


def load_image(source: str, http_client: httpx.Client | None = None) -> ImageBlock:
    """Read an image from a URL or a local path into a base64 ImageBlock."""
    if is_url(source):
        if http_client is not None:
            data, media_type = _fetch(source, http_client)
        else:
            with httpx.Client(follow_redirects=True) as client:
                data, media_type = _fetch(source, client)
    else:
        path = Path(source)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageLoadError(f"Could not read image {source}: {e}") from e
        media_type = mimetypes.guess_type(path.name)[0] or ""

    if not media_type.startswith("image/"):
        logger.debug(f"Unrecognized media type {media_type!r} for {source}, assuming {DEFAULT_MEDIA_TYPE}")
        media_type = DEFAULT_MEDIA_TYPE

    return ImageBlock(media_type=media_type, data=base64.b64encode(data).decode("ascii"))
