"""
Pull documents from an HTTP endpoint that returns one JSON document per request.
"""

import time
from typing import Any, Dict, Iterator, Optional

import requests


def stream_documents(
    url: str,
    max_documents: Optional[int] = None,
    delay: float = 0.0,
    max_errors: int = 10,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
    verbose: bool = True,
) -> Iterator[Dict[str, Any]]:
    """
    Yield documents fetched from an HTTP endpoint.

    Args:
        url: The endpoint URL
        max_documents: Stop after this many documents (None = until errors stop us)
        delay: Delay between requests in seconds
        max_errors: Give up after this many failed requests in a row
        timeout: Per-request timeout in seconds
        session: Optional requests session (connection reuse, testing)
        verbose: Print a line for every failed request
    """
    http = session or requests.Session()
    fetched = 0
    errors = 0

    try:
        while max_documents is None or fetched < max_documents:
            try:
                response = http.get(url, timeout=timeout)
                response.raise_for_status()
                document = response.json()
            except (requests.RequestException, ValueError) as e:
                errors += 1
                if verbose:
                    print(f"   ✗ API error: {e}")
                if errors >= max_errors:
                    if verbose:
                        print("   Too many errors, stopping...")
                    return
                time.sleep(delay)
                continue

            errors = 0
            fetched += 1
            yield document

            if delay:
                time.sleep(delay)
    finally:
        if session is None:
            http.close()
