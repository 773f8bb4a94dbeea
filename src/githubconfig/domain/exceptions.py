class ConfigWatcherException(Exception):
    """Base exception for all config-watcher errors."""
    pass

class SubscriptionTimeout(ConfigWatcherException):
    """
    Raised when Read does not get a reply in time.
    The request may still be processed; it is safe to retry.
    """
    def __init__(self, message: str = "timeout"):
        super().__init__(message)

class ConfigNotFoundError(ConfigWatcherException):
    """Raised when no configuration file exists for the given BotType and id."""
    def __init__(self, bot_type: str, id: str):
        self.bot_type = bot_type
        self.id = id
        super().__init__(f"Configuration not found. BotType: {bot_type}. ID: {id}.")

class FetchFailure(ConfigWatcherException):
    """Raised when the configuration files could not be fetched."""
    pass

class GitHubQueryError(FetchFailure):
    """Raised when the GitHub GraphQL API returns an error or keeps failing."""
    pass

class RateLimitExceededException(FetchFailure):
    """Raised when the GitHub GraphQL rate limit is hit."""
    def __init__(self, reset_at: str, message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class DecodeFailure(ConfigWatcherException):
    """Raised when a configuration file cannot be decoded into the requested output."""
    pass

class UnsupportedExtensionError(DecodeFailure):
    """Raised for a file extension no decoder is registered for."""
    def __init__(self, extension: str, message: str = "Unsupported file extension."):
        self.extension = extension
        super().__init__(f"{message} Extension: {extension}")

class ConstructionFailure(ConfigWatcherException):
    """Raised when a ConfigWatcher cannot be built."""
    pass

class ClientNotConfiguredError(ConstructionFailure):
    """Raised when neither a GraphQL client nor a token is given."""
    def __init__(self, message: str = "A GitHub GraphQL client must be given via the client or token argument."):
        super().__init__(message)
