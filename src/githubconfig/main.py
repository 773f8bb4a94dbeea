import asyncio
import os
import sys
import logging
from dotenv import load_dotenv
from pydantic import BaseModel

from githubconfig.application.watcher_service import ConfigWatcher
from githubconfig.domain.exceptions import ConfigWatcherException
from githubconfig.domain.models import WatcherConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

SLACK = "slack"


class HelloConfig(BaseModel):
    message: str = "Hello!"


class HelloCommand:
    """
    Stand-in for a bot command whose reply text is live-updated.
    Its configuration is expected at <base_dir>/slack/hello.(yml|yaml|json).
    """
    identifier = "hello"
    bot_type = SLACK

    def __init__(self, config: HelloConfig):
        self.config = config

    def execute(self, message: str):
        if message.startswith(".hello"):
            return self.config.message
        return None


async def main():
    # Load environment variables from .env file
    load_dotenv()

    token = os.getenv("GITHUB_TOKEN")
    if not token:
        logger.error("GITHUB_TOKEN is not set in the environment.")
        sys.exit(1)

    try:
        config = WatcherConfig.from_env()
    except KeyError as e:
        logger.error(f"{e.args[0]} is not set in the environment.")
        sys.exit(1)

    command = HelloCommand(HelloConfig())

    async with ConfigWatcher(config, token=token) as watcher:

        async def rebuild():
            # Runs outside the watcher's own task, so reading from here is fine
            try:
                command.config = await watcher.read(command.bot_type, command.identifier, HelloConfig)
            except ConfigWatcherException as e:
                logger.warning(f"Keeping current configuration of '{command.identifier}': {e}")
                return
            logger.info(f"'{command.identifier}' now replies: {command.execute('.hello')}")

        await rebuild()
        await watcher.watch(command.bot_type, command.identifier, rebuild)

        # Serve until interrupted
        await asyncio.Event().wait()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting gracefully.")

if __name__ == "__main__":
    run()
