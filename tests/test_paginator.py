import sys
import unittest
from pathlib import Path

# Ensure local imports work when running this file directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_api.errors import RemoteFetchError
from spotify_api.models import Page
from spotify_api.paginator import DEFAULT_PAGE_SIZE, PaginatedFetcher


class SyntheticSource:
    def __init__(self, n: int, *, fail_at_offset=None):
        self.items = list(range(n))
        self.fail_at_offset = fail_at_offset
        self.requests = []

    def __call__(self, offset: int, limit: int) -> Page:
        self.requests.append((offset, limit))
        if offset == self.fail_at_offset:
            raise RemoteFetchError("boom", stage="request", status_code=503)
        chunk = self.items[offset : offset + limit]
        return Page(items=chunk, next="more" if offset + limit < len(self.items) else None)


class TestPaginatedFetcher(unittest.TestCase):
    def test_returns_all_items_in_order(self):
        for n in (0, 1, 2, 49, 50, 51, 100, 137):
            for p in (1, 3, 50):
                with self.subTest(n=n, p=p):
                    source = SyntheticSource(n)
                    out = PaginatedFetcher(p).fetch_all(source)
                    self.assertEqual(out, list(range(n)))
                    expected_calls = max(1, -(-n // p))
                    self.assertEqual(len(source.requests), expected_calls)
                    self.assertEqual([o for o, _ in source.requests], [i * p for i in range(expected_calls)])

    def test_empty_source_makes_exactly_one_call(self):
        source = SyntheticSource(0)
        self.assertEqual(PaginatedFetcher().fetch_all(source), [])
        self.assertEqual(source.requests, [(0, DEFAULT_PAGE_SIZE)])

    def test_failure_carries_partial_items_and_stage(self):
        source = SyntheticSource(120, fail_at_offset=100)
        with self.assertRaises(RemoteFetchError) as ctx:
            PaginatedFetcher(50).fetch_all(source, stage="tracks")
        self.assertEqual(ctx.exception.stage, "tracks")
        self.assertEqual(ctx.exception.partial, list(range(100)))
        self.assertEqual(ctx.exception.status_code, 503)

    def test_on_page_sees_each_page_before_next_request(self):
        source = SyntheticSource(7)
        seen = []

        def on_page(items):
            seen.append((list(items), len(source.requests)))

        PaginatedFetcher(3).fetch_all(source, on_page=on_page)
        self.assertEqual(seen, [([0, 1, 2], 1), ([3, 4, 5], 2), ([6], 3)])

    def test_empty_page_claiming_next_stops(self):
        calls = []

        def broken(offset, limit):
            calls.append(offset)
            return Page(items=[], next="again")

        self.assertEqual(PaginatedFetcher(10).fetch_all(broken), [])
        self.assertEqual(calls, [0])

    def test_invalid_page_size(self):
        with self.assertRaises(ValueError):
            PaginatedFetcher(0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
