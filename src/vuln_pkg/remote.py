"""Plain HTTP(S) GET for manifests, Dockerfiles and build contexts."""
import requests

from .errors import RemoteFetchError
from .logger import get_logger

logger = get_logger(__name__)


def fetch_bytes(url: str, error_cls: type[RemoteFetchError] = RemoteFetchError) -> bytes:
    """GET `url` and return the body, raising `error_cls` on any network or HTTP failure."""
    logger.debug(f"GET {url}")
    try:
        response = requests.get(url)
        response.raise_for_status()
    except requests.RequestException as e:
        raise error_cls(url, e) from e
    return response.content


def fetch_text(url: str, error_cls: type[RemoteFetchError] = RemoteFetchError) -> str:
    body = fetch_bytes(url, error_cls)
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise error_cls(url, f"response is not valid UTF-8: {e}") from e
