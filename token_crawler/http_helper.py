import logging
import time

import requests

logger = logging.getLogger(__name__)

RETRY_STATUS = (429, 500, 502, 503, 504)


class HttpError(RuntimeError):
    """Raised when an HTTP error occurs (e.g., 401 Unauthorized, 429 Rate Limit)"""
    def __init__(self, status_code: int, message: str, url: str):
        super().__init__(f"HTTP {status_code} error for {url}: {message}")
        self.status_code = status_code
        self.message = message
        self.url = url


def post_json_with_retries(url, payload, retries=3, backoff=1.5, timeout=60, session=None):
    """
    POST a JSON body and return the decoded JSON response.

    Rate limits (429), gateway errors (5xx) and connection failures are retried
    with exponential backoff. Any other non-200 status, or running out of
    retries, raises HttpError.
    """
    poster = session or requests
    attempt = 0
    while True:
        try:
            r = poster.post(url, json=payload, timeout=timeout)
        except requests.RequestException as e:
            attempt += 1
            if attempt > retries:
                raise HttpError(0, f"request failed: {e}", url) from e
            logger.warning("Request error for %s: %s (attempt %d/%d)", url, e, attempt, retries)
            time.sleep(backoff ** attempt)
            continue

        if r.status_code == 200:
            try:
                return r.json()
            except ValueError as e:
                raise HttpError(r.status_code, f"invalid JSON body: {r.text[:200]!r}", url) from e
        if r.status_code in RETRY_STATUS and attempt < retries:
            attempt += 1
            retry_after = r.headers.get("Retry-After")
            delay = float(retry_after) if retry_after and retry_after.isdigit() else backoff ** attempt
            logger.warning("HTTP %d for %s, retrying in %.1fs (attempt %d/%d)", r.status_code, url, delay, attempt, retries)
            time.sleep(delay)
            continue
        raise HttpError(r.status_code, r.text[:200], url)
