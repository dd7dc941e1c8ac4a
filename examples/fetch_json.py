"""
Example: fetch a resource as text, JSON or a Blob.

Each call opens one connection and raises a FetchError subclass on failure.
"""

import asyncio

from relayfetch import AsyncFetcher, FetchError, Fetcher


def sync_example():
    """Synchronous fetches."""
    with Fetcher(base_url="https://httpbin.org/") as fetcher:
        data = fetcher.get_json("json")
        print(f"JSON keys: {list(data)}")

        image = fetcher.get_blob("image/png")
        print(f"Blob: {image.type}, {image.size} bytes")

        echoed = fetcher.request(
            "post",
            method="POST",
            headers={"content-type": "application/json"},
            body=b'{"name": "relayfetch"}',
        )
        print(f"POST echoed {len(echoed)} bytes")

        try:
            fetcher.get_text("status/418")
        except FetchError as exc:
            print(f"Expected failure: {exc} (status={exc.status_code})")


async def async_example():
    """Concurrent asynchronous fetches."""
    async with AsyncFetcher(base_url="https://httpbin.org/") as fetcher:
        results = await asyncio.gather(
            fetcher.get_json("uuid"),
            fetcher.get_json("ip"),
            fetcher.get_text("robots.txt"),
        )
        for result in results:
            print(result)


if __name__ == "__main__":
    print("=== Sync Example ===")
    sync_example()

    print("\n=== Async Example ===")
    asyncio.run(async_example())
