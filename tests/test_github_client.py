import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from githubconfig.domain.exceptions import GitHubQueryError, RateLimitExceededException
from githubconfig.infrastructure.github_client import GitHubGraphQLClient, MAX_RETRIES


def _response(status, body=None, headers=None):
    response = AsyncMock()
    response.status = status
    response.headers = headers or {}
    response.raise_for_status = MagicMock()
    response.json = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    return response


def _body(entries, remaining=4999):
    return {
        "data": {
            "repository": {"object": {"entries": entries} if entries is not None else None},
            "rateLimit": {"cost": 1, "remaining": remaining, "resetAt": "2026-01-01T00:00:00Z"},
        }
    }


class TestGitHubGraphQLClient(unittest.TestCase):
    def test_headers_carry_token_and_user_agent(self) -> None:
        client = GitHubGraphQLClient(token="test-token")

        self.assertEqual(client.headers["Authorization"], "Bearer test-token")
        self.assertEqual(client.headers["User-Agent"], "githubconfig-watcher")


class TestFetchTree(unittest.IsolatedAsyncioTestCase):
    async def test_variables_are_passed(self) -> None:
        client = GitHubGraphQLClient(token="test-token")
        entry = {"name": "hello.yml", "type": "blob", "object": {"oid": "abc", "text": "message: hi"}}

        session = AsyncMock()
        session.post = MagicMock(return_value=_response(200, _body([entry])))

        entries = await client.fetch_tree(session, "oklahomer", "go-sarah", "master:bot/config/slack")

        self.assertEqual(entries, [entry])
        variables = session.post.call_args.kwargs["json"]["variables"]
        self.assertEqual(variables, {
            "owner": "oklahomer",
            "name": "go-sarah",
            "expression": "master:bot/config/slack",
        })

    async def test_missing_directory_yields_no_entries(self) -> None:
        client = GitHubGraphQLClient(token="test-token")

        session = AsyncMock()
        session.post = MagicMock(return_value=_response(200, _body(None)))

        entries = await client.fetch_tree(session, "owner", "name", "master:missing")

        self.assertEqual(entries, [])

    async def test_403_retry_after_is_respected(self) -> None:
        """When GitHub returns 403 + Retry-After, the client sleeps and retries."""
        client = GitHubGraphQLClient(token="test-token")
        entry = {"name": "hello.json", "type": "blob", "object": {"oid": "abc", "text": "{}"}}

        session = AsyncMock()
        session.post = MagicMock(side_effect=[
            _response(403, headers={"Retry-After": "1"}),
            _response(200, _body([entry])),
        ])

        with patch("githubconfig.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            entries = await client.fetch_tree(session, "owner", "name", "master:config/slack")

        # Should have slept for the Retry-After value (1 second)
        mock_sleep.assert_any_call(1)
        self.assertEqual(entries, [entry])

    async def test_gives_up_after_max_retries(self) -> None:
        client = GitHubGraphQLClient(token="test-token")

        session = AsyncMock()
        session.post = MagicMock(side_effect=[_response(502) for _ in range(MAX_RETRIES)])

        with patch("githubconfig.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock):
            with self.assertRaises(GitHubQueryError):
                await client.fetch_tree(session, "owner", "name", "master:config/slack")

        self.assertEqual(session.post.call_count, MAX_RETRIES)

    async def test_graphql_error_is_not_retried(self) -> None:
        client = GitHubGraphQLClient(token="test-token")
        body = {"data": None, "errors": [{"message": "Could not resolve to a Repository"}]}

        session = AsyncMock()
        session.post = MagicMock(return_value=_response(200, body))

        with self.assertRaises(GitHubQueryError):
            await client.fetch_tree(session, "owner", "missing", "master:config/slack")

        self.assertEqual(session.post.call_count, 1)

    async def test_low_rate_limit_raises(self) -> None:
        client = GitHubGraphQLClient(token="test-token")

        session = AsyncMock()
        session.post = MagicMock(return_value=_response(200, _body([], remaining=3)))

        with self.assertRaises(RateLimitExceededException) as ctx:
            await client.fetch_tree(session, "owner", "name", "master:config/slack")

        self.assertEqual(ctx.exception.reset_at, "2026-01-01T00:00:00Z")
