#!/usr/bin/env python3
"""
Quick Start: Rolling-window fetching

Fetches a handful of Wikipedia pages with at most five transfers in flight and
collects the bodies keyed by a caller-supplied request id.
"""

import logging
from typing import Dict, Union

from RollingFetch import FetchRequest, RollingScheduler, TransferInfo

logging.basicConfig(level=logging.INFO)
LOGGER = logging.getLogger(__name__)

URLS = [
    "https://en.wikipedia.org/wiki/Moon",
    "https://en.wikipedia.org/wiki/Earth",
    "https://en.wikipedia.org/wiki/Saturn",
    "https://en.wikipedia.org/wiki/Jupiter",
    "https://en.wikipedia.org/wiki/Mars",
]


def main() -> Dict[int, Union[bytes, str]]:
    scheduler = RollingScheduler()

    for request_id, url in enumerate(URLS):
        # attributes travel with the request and come back in the callback
        scheduler.add(FetchRequest(url, attributes={"request_id": request_id}))

    results: Dict[int, Union[bytes, str]] = {}

    def on_result(output, info: TransferInfo, request: FetchRequest) -> None:
        request_id = request.attributes["request_id"]
        if info.status_code == 200:
            results[request_id] = output
        else:
            results[request_id] = "KO response"

    scheduler.execute(on_result)

    for request_id in sorted(results):
        body = results[request_id]
        size = len(body) if isinstance(body, bytes) else 0
        LOGGER.info("%s: %s -> %d bytes", request_id, URLS[request_id], size)
    return results


if __name__ == "__main__":
    main()
