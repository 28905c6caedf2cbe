#!/usr/bin/env python3
"""
GitHub Tag Fetcher Tests
Tests tag filtering, latest-tag selection and sequential repository processing.
"""

import asyncio
import re
import sys
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))


def _raw(name, sha="abc123"):
    return {"name": name, "commit": {"sha": sha, "url": f"https://api.github.com/commits/{sha}"}}


class TestTagSelection(unittest.TestCase):
    """Test pure tag filtering and ordering."""

    def test_numeric_not_lexicographic(self):
        print("\n🧪 Testing Numeric Tag Ordering...")

        from acu_publish.github_tags import select_matching_tags

        pattern = re.compile(r"^app-v\d+\.\d+\.\d+$")
        tags = select_matching_tags([_raw("app-v1.2.9"), _raw("app-v1.2.10")], pattern)

        self.assertEqual([t.name for t in tags], ["app-v1.2.10", "app-v1.2.9"])
        print("✅ app-v1.2.10 sorts above app-v1.2.9")

    def test_filters_non_matching(self):
        from acu_publish.github_tags import select_matching_tags

        pattern = re.compile(r"^v\d{4}\.\d{2}\.\d{2}$")
        raw = [_raw("v2024.03.07"), _raw("nightly"), _raw("v2024.03.12-rc"), _raw("v2024.02.28")]
        tags = select_matching_tags(raw, pattern)

        self.assertEqual([t.name for t in tags], ["v2024.02.28", "v2024.03.07"])

    def test_first_has_max_trailing_number(self):
        from acu_publish.github_tags import select_matching_tags, tag_sort_key

        pattern = re.compile(r"^rel-")
        names = ["rel-1.4", "rel-2.1", "rel-0.33", "rel-5.7", "rel-9.0"]
        tags = select_matching_tags([_raw(n) for n in names], pattern)

        self.assertEqual(tag_sort_key(tags[0].name), max(tag_sort_key(n) for n in names))
        self.assertEqual(tags[0].name, "rel-0.33")

    def test_ties_keep_original_order(self):
        from acu_publish.github_tags import select_matching_tags

        pattern = re.compile(r"\.\d+$")
        tags = select_matching_tags([_raw("a.1.5"), _raw("b.2.5"), _raw("c.0.4")], pattern)

        self.assertEqual([t.name for t in tags], ["a.1.5", "b.2.5", "c.0.4"])

    def test_sort_key_without_digits(self):
        from acu_publish.github_tags import tag_sort_key

        self.assertEqual(tag_sort_key("v2024.03.07"), 7)
        self.assertEqual(tag_sort_key("release.12-hotfix"), 12)
        self.assertEqual(tag_sort_key("latest"), -1)

    def test_commit_fields_captured(self):
        from acu_publish.github_tags import select_matching_tags

        tags = select_matching_tags([_raw("v1.0.1", sha="deadbeef")], re.compile(r"^v"))
        self.assertEqual(tags[0].sha, "deadbeef")
        self.assertTrue(tags[0].url.endswith("/deadbeef"))


class TestFetchLatestTag(unittest.TestCase):
    """Test tag fetching against a mocked GitHub API."""

    def setUp(self):
        self.requests = []
        self.pattern = re.compile(r"^v\d+\.\d+\.\d+$")

    def _client(self, handler, token=""):
        from acu_publish.github_tags import GitHubTagClient

        def recording(request):
            self.requests.append(request)
            return handler(request)

        return GitHubTagClient("https://api.github.test", token, transport=httpx.MockTransport(recording))

    def test_latest_tag_result(self):
        print("\n🧪 Testing Latest Tag Fetch...")

        from acu_publish.github_tags import fetch_latest_tag

        client = self._client(
            lambda r: httpx.Response(200, json=[_raw("v1.0.9", "s9"), _raw("v1.0.11", "s11"), _raw("misc")]),
            token="gh-token",
        )
        result = asyncio.run(fetch_latest_tag(client, "USSBI/acumatica-uss-fence", self.pattern))

        self.assertIsNotNone(result)
        self.assertIsNone(result.error)
        self.assertEqual(result.latest_tag, "v1.0.11")
        self.assertEqual(result.sha, "s11")
        self.assertEqual(result.total_matching_tags, 2)
        self.assertEqual(result.all_matching_tags, ["v1.0.11", "v1.0.9"])

        request = self.requests[0]
        self.assertEqual(request.url.path, "/repos/USSBI/acumatica-uss-fence/tags")
        self.assertEqual(request.url.params["per_page"], "100")
        self.assertEqual(request.headers["Authorization"], "Bearer gh-token")
        self.assertEqual(request.headers["Accept"], "application/vnd.github.v3+json")
        print("✅ Latest tag fetched with expected request")

    def test_no_token_no_auth_header(self):
        from acu_publish.github_tags import fetch_latest_tag

        client = self._client(lambda r: httpx.Response(200, json=[_raw("v1.0.0")]))
        asyncio.run(fetch_latest_tag(client, "o/r", self.pattern))

        self.assertNotIn("Authorization", self.requests[0].headers)

    def test_no_match_is_none(self):
        from acu_publish.github_tags import fetch_latest_tag

        client = self._client(lambda r: httpx.Response(200, json=[_raw("nightly"), _raw("beta")]))
        result = asyncio.run(fetch_latest_tag(client, "o/r", self.pattern))

        self.assertIsNone(result)

    def test_http_error_is_recorded(self):
        from acu_publish.github_tags import fetch_latest_tag

        client = self._client(lambda r: httpx.Response(404, json={"message": "Not Found"}))
        result = asyncio.run(fetch_latest_tag(client, "o/missing", self.pattern))

        self.assertIsNotNone(result)
        self.assertEqual(result.repository, "o/missing")
        self.assertIn("404", result.error)
        self.assertIsNone(result.latest_tag)
        self.assertFalse(result.succeeded)

    def test_transport_error_is_recorded(self):
        from acu_publish.github_tags import fetch_latest_tag

        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self._client(boom)
        result = asyncio.run(fetch_latest_tag(client, "o/r", self.pattern))

        self.assertIn("connection refused", result.error)

    def test_malformed_tag_entries_are_recorded(self):
        print("\n🧪 Testing Malformed Tag Entries...")

        from acu_publish.github_tags import fetch_latest_tag

        for payload in ([{"name": "v1.0.2", "commit": "abc"}], [None], ["v1.0.2"]):
            client = self._client(lambda r, p=payload: httpx.Response(200, json=p))
            result = asyncio.run(fetch_latest_tag(client, "o/r", self.pattern))

            self.assertIsNotNone(result)
            self.assertIsNotNone(result.error)
            self.assertFalse(result.succeeded)

        print("✅ Malformed entries recorded as errors")

    def test_malformed_entry_does_not_abort_batch(self):
        from acu_publish.github_tags import GitHubTagClient, process_repositories

        def handler(request):
            if "/repos/o/bad/" in request.url.path:
                return httpx.Response(200, json=[{"name": "v1.0.2", "commit": "abc"}])
            return httpx.Response(200, json=[_raw("v1.0.3")])

        client = GitHubTagClient("https://api.github.test", transport=httpx.MockTransport(handler))
        results = asyncio.run(process_repositories(client, ["o/bad", "o/good"], self.pattern, delay_seconds=0))

        self.assertEqual([r.repository for r in results], ["o/bad", "o/good"])
        self.assertIsNotNone(results[0].error)
        self.assertEqual(results[1].latest_tag, "v1.0.3")

    def test_unexpected_payload_is_recorded(self):
        from acu_publish.github_tags import fetch_latest_tag

        client = self._client(lambda r: httpx.Response(200, json={"message": "API rate limit exceeded"}))
        result = asyncio.run(fetch_latest_tag(client, "o/r", self.pattern))

        self.assertIsNotNone(result.error)


class TestProcessRepositories(unittest.TestCase):
    """Test sequential processing with rate-limit delays."""

    def test_order_delay_and_dropped_results(self):
        print("\n🧪 Testing Repository Processing...")

        from acu_publish import github_tags
        from acu_publish.models import FetchResult

        outcomes = {
            "o/a": FetchResult(repository="o/a", latest_tag="v1.0.2"),
            "o/b": None,
            "o/c": FetchResult(repository="o/c", error="HTTP 500"),
        }
        calls = []

        async def fake_fetch(client, repository, pattern):
            calls.append(repository)
            return outcomes[repository]

        with patch.object(github_tags, "fetch_latest_tag", side_effect=fake_fetch), \
             patch.object(github_tags.asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            results = asyncio.run(
                github_tags.process_repositories(None, ["o/a", "o/b", "o/c"], re.compile("."), delay_seconds=1.0)
            )

        self.assertEqual(calls, ["o/a", "o/b", "o/c"])
        self.assertEqual([r.repository for r in results], ["o/a", "o/c"])
        self.assertEqual(mock_sleep.await_count, 2)
        mock_sleep.assert_awaited_with(1.0)
        print("✅ Repositories processed in order with delays")

    def test_zero_delay_skips_sleep(self):
        from acu_publish import github_tags

        with patch.object(github_tags, "fetch_latest_tag", new=AsyncMock(return_value=None)), \
             patch.object(github_tags.asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            results = asyncio.run(github_tags.process_repositories(None, ["o/a", "o/b"], re.compile("."), 0))

        self.assertEqual(results, [])
        mock_sleep.assert_not_awaited()


if __name__ == '__main__':
    unittest.main()
