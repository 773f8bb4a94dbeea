import aiohttp
import asyncio
import logging
import random
from typing import Dict, Any, List

from githubconfig.domain.exceptions import GitHubQueryError, RateLimitExceededException

logger = logging.getLogger(__name__)

# Lists the entries of one directory ("tree") at the given "<branch>:<path>" expression.
# Blob text is null for binary files; object is null when the path does not exist.
GRAPHQL_QUERY = """
query ($owner: String!, $name: String!, $expression: String!) {
  repository(owner: $owner, name: $name) {
    object(expression: $expression) {
      ... on Tree {
        entries {
          name
          type
          object {
            ... on Blob {
              oid
              text
            }
          }
        }
      }
    }
  }
  rateLimit {
    cost
    remaining
    resetAt
  }
}
"""

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)
# Kept low since a fetch blocks the watcher until it returns
MAX_RETRIES = 3
RATE_LIMIT_FLOOR = 10

class GitHubGraphQLClient:
    """
    Client for interacting with the GitHub GraphQL API.
    Handles authentication, query execution, and rate limit management.
    """

    def __init__(self, token: str):
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "githubconfig-watcher",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.api_url = "https://api.github.com/graphql"

    async def fetch_tree(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        name: str,
        expression: str,
    ) -> List[Dict[str, Any]]:
        """
        Fetches the entries of the directory pointed to by expression.

        Returns:
            List of raw tree entries; empty when the directory does not exist.
        """
        payload = {
            "query": GRAPHQL_QUERY,
            "variables": {"owner": owner, "name": name, "expression": expression},
        }

        for attempt in range(MAX_RETRIES):
          try:
            async with session.post(self.api_url, json=payload, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                # Handle secondary rate limit (abuse detection)
                if response.status == 403:
                  retry_after = response.headers.get('Retry-After')
                  sleep_time = int(retry_after) if retry_after else 60
                  logger.warning(f"Secondary rate limit (403). Sleeping {sleep_time}s...")
                  await asyncio.sleep(sleep_time)
                  continue

                if response.status in {500, 502, 503, 504}:
                  sleep_time = (2 ** attempt) + random.uniform(0, 1)
                  logger.warning(
                      f"Server error ({response.status}) for '{expression}', "
                      f"retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                  )
                  await asyncio.sleep(sleep_time)
                  continue

                response.raise_for_status()
                data = await response.json()

          except (aiohttp.ClientError, asyncio.TimeoutError) as e:
              sleep_time = (2 ** attempt) + random.uniform(0, 1)
              logger.warning(
                  f"Request failed for '{expression}' (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                  f"Retrying in {sleep_time:.1f}s..."
              )
              await asyncio.sleep(sleep_time)
              continue

          # GraphQL-level errors come with HTTP 200; they are not transient
          if 'errors' in data:
              error_msg = data['errors'][0].get('message', 'Unknown GraphQL error')
              if data.get('data') is None:
                  raise GitHubQueryError(f"GraphQL error for '{expression}': {error_msg}")
              logger.warning(f"GraphQL partial error for '{expression}': {error_msg}")

          body = data.get('data') or {}
          rate_limit = body.get('rateLimit') or {}
          if rate_limit.get('remaining', RATE_LIMIT_FLOOR) < RATE_LIMIT_FLOOR:
              raise RateLimitExceededException(reset_at=rate_limit.get('resetAt'))

          repository = body.get('repository')
          if repository is None:
              raise GitHubQueryError(f"Repository {owner}/{name} could not be resolved.")

          tree = repository.get('object') or {}
          return tree.get('entries') or []

        raise GitHubQueryError(f"Failed to fetch '{expression}' after {MAX_RETRIES} attempts.")
