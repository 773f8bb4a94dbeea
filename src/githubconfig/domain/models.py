import os
from pydantic import BaseModel, Field, ConfigDict

# Opaque namespace key, e.g. one per chat platform.
BotType = str

DEFAULT_BRANCH = "master"
DEFAULT_INTERVAL = 60.0
DEFAULT_TIMEOUT = 5.0


class WatcherConfig(BaseModel):
    """
    Static settings of a ConfigWatcher.
    Built once at start-up and never modified afterwards.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    owner: str = Field(..., description="Login name of the repository owner")
    name: str = Field(..., description="Name of the repository holding configuration files")
    base_dir: str = Field(..., description="Directory under which one sub-directory per BotType lives")
    branch: str = Field(DEFAULT_BRANCH, description="Branch to read configuration files from")
    interval: float = Field(DEFAULT_INTERVAL, gt=0, description="Seconds between two polls")
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0, description="Seconds a Read call waits for a reply")

    @classmethod
    def from_env(cls, prefix: str = "GITHUBCONFIG_") -> "WatcherConfig":
        """
        Builds a WatcherConfig from environment variables.

        Required: {prefix}OWNER, {prefix}NAME, {prefix}BASE_DIR.
        Optional: {prefix}BRANCH, {prefix}INTERVAL, {prefix}TIMEOUT.

        Raises:
            KeyError: When a required variable is not set.
        """
        values = {
            "owner": os.environ[f"{prefix}OWNER"],
            "name": os.environ[f"{prefix}NAME"],
            "base_dir": os.environ[f"{prefix}BASE_DIR"],
        }
        for key in ("branch", "interval", "timeout"):
            raw = os.getenv(f"{prefix}{key.upper()}")
            if raw:
                values[key] = raw
        return cls(**values)


def new_config(owner: str, name: str, base_dir: str) -> WatcherConfig:
    """Returns a WatcherConfig with the default branch, interval and timeout."""
    return WatcherConfig(owner=owner, name=name, base_dir=base_dir)


class ConfigFile(BaseModel):
    """
    Immutable domain model representing one configuration file in the remote tree.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="File name without its extension; the key callers read by")
    file_name: str = Field(..., description="File name as stored in the repository")
    extension: str = Field(..., description="Extension including the leading dot, e.g. '.yml'")
    object_id: str = Field(..., description="Git object ID of the blob; changes whenever the content does")
    content: str = Field(default="", description="Raw text of the blob")
