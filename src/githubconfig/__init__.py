"""Live configuration for chat bots, polled from a GitHub repository."""

from githubconfig.application.watcher_service import ConfigWatcher, Querier
from githubconfig.domain.exceptions import (
    ClientNotConfiguredError,
    ConfigNotFoundError,
    ConfigWatcherException,
    ConstructionFailure,
    DecodeFailure,
    FetchFailure,
    GitHubQueryError,
    RateLimitExceededException,
    SubscriptionTimeout,
    UnsupportedExtensionError,
)
from githubconfig.domain.models import BotType, ConfigFile, WatcherConfig, new_config
from githubconfig.infrastructure.github_client import GitHubGraphQLClient

__all__ = [
    "BotType",
    "ClientNotConfiguredError",
    "ConfigFile",
    "ConfigNotFoundError",
    "ConfigWatcher",
    "ConfigWatcherException",
    "ConstructionFailure",
    "DecodeFailure",
    "FetchFailure",
    "GitHubGraphQLClient",
    "GitHubQueryError",
    "Querier",
    "RateLimitExceededException",
    "SubscriptionTimeout",
    "UnsupportedExtensionError",
    "WatcherConfig",
    "new_config",
]
