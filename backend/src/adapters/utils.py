"""Shared HTTP plumbing for adapter implementations."""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import openai
import requests

from errors import ProviderResponseError, ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
MAX_RETRIES_CAP = 1

# Statuses that mean "the provider cannot serve us right now".
UNAVAILABLE_STATUSES = {401, 403, 408, 429, 500, 502, 503, 504}


def create_session_with_pooling(
    pool_connections: int = 10,
    pool_maxsize: int = 20,
    max_retries: int = 0,
) -> requests.Session:
    """Create a requests Session with connection pooling.

    Transport retries are capped at one so a dead provider cannot stretch a
    search beyond roughly two timeouts.
    """
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=min(max(max_retries, 0), MAX_RETRIES_CAP),
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def post_json(
    session: requests.Session,
    url: str,
    payload: dict[str, Any],
    provider: str,
    timeout: float = DEFAULT_TIMEOUT,
    headers: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """POST a JSON payload and return the decoded JSON object.

    Raises:
        ProviderUnavailableError: Connection failure, timeout, auth failure,
            rate limiting or a server-side error.
        ProviderResponseError: Any other HTTP error, or a body that is not a
            JSON object.
    """
    try:
        response = session.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.exceptions.Timeout as e:
        raise ProviderUnavailableError(
            f"{provider} request timed out after {timeout}s", provider=provider
        ) from e
    except requests.exceptions.RequestException as e:
        raise ProviderUnavailableError(
            f"{provider} is unreachable: {e}", provider=provider
        ) from e

    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        status = getattr(e.response, "status_code", None) or response.status_code
        error_cls = (
            ProviderUnavailableError
            if status in UNAVAILABLE_STATUSES
            else ProviderResponseError
        )
        raise error_cls(f"{provider} returned HTTP {status}", provider=provider) from e

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderResponseError(
            f"{provider} returned a non-JSON body", provider=provider
        ) from e
    if not isinstance(data, dict):
        raise ProviderResponseError(
            f"{provider} returned {type(data).__name__}, expected an object",
            provider=provider,
        )
    return data


@contextmanager
def translate_openai_errors(provider: str = "openai") -> Iterator[None]:
    """Re-raise OpenAI SDK exceptions as provider errors."""
    try:
        yield
    except (
        openai.APIConnectionError,
        openai.AuthenticationError,
        openai.PermissionDeniedError,
        openai.RateLimitError,
        openai.InternalServerError,
    ) as e:
        raise ProviderUnavailableError(
            f"{provider} is unavailable: {type(e).__name__}", provider=provider
        ) from e
    except openai.OpenAIError as e:
        raise ProviderResponseError(
            f"{provider} request failed: {type(e).__name__}", provider=provider
        ) from e


def require_key(data: dict[str, Any], key: str, provider: str) -> Any:
    """Fetch a required key from a provider response."""
    if key not in data:
        raise ProviderResponseError(
            f"{provider} response is missing '{key}'", provider=provider
        )
    return data[key]


def truncate(text: str, max_chars: int) -> str:
    """Cap text at max_chars characters."""
    return text if len(text) <= max_chars else text[:max_chars]
