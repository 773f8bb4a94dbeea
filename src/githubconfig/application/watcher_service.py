import asyncio
import functools
import inspect
import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set, Union

import aiohttp

from githubconfig.domain.models import BotType, ConfigFile, WatcherConfig
from githubconfig.domain.exceptions import (
    ClientNotConfiguredError,
    ConfigNotFoundError,
    ConfigWatcherException,
    FetchFailure,
    SubscriptionTimeout,
)
from githubconfig.infrastructure.github_client import GitHubGraphQLClient
from githubconfig.infrastructure.acl import GitHubTranslator
from githubconfig.infrastructure.decoder import decode

logger = logging.getLogger(__name__)

CONNECTOR_LIMIT = 4

# Takes no argument; a returned awaitable is scheduled on the loop
Callback = Callable[[], Union[None, Awaitable[None]]]


class Querier(Protocol):
    async def fetch_tree(
        self, session: aiohttp.ClientSession, owner: str, name: str, expression: str,
    ) -> List[Dict[str, Any]]:
        ...


@dataclass
class _Subscription:
    bot_type: BotType
    id: str
    callback: Callback


@dataclass
class _Unsubscription:
    bot_type: BotType


@dataclass
class _Request:
    bot_type: BotType
    id: str
    out: Any
    reply: asyncio.Future


class _Tick:
    pass


_TICK = _Tick()


class ConfigWatcher:
    """
    Watches configuration files stored in a GitHub repository and serves them to
    the bot framework without a restart.

    Files for a given BotType live under "<base_dir>/<bot_type>/" on the configured
    branch; a file's id is its name without the extension.

    All state (the cached files and the subscriptions) is owned by a single actor
    task. read, watch and unwatch only put messages on the actor's inbox, and a
    ticker task puts a tick message there every config.interval seconds, so every
    mutation is applied one at a time in arrival order and no lock is needed.
    """

    def __init__(
            self,
            config: WatcherConfig,
            client: Optional[Querier] = None,
            token: Optional[str] = None,
    ):
        if client is None and token:
            client = GitHubGraphQLClient(token=token)
        if client is None:
            raise ClientNotConfiguredError()

        self.config = config
        self.client = client

        # Touched by the actor only
        self._cache: Dict[BotType, Dict[str, ConfigFile]] = {}
        self._subscriptions: Dict[BotType, Dict[str, Callback]] = {}

        self._inbox: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._callbacks: Set[asyncio.Future] = set()

    async def __aenter__(self) -> "ConfigWatcher":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.stop()
        return False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Spawns the actor on the running event loop.
        Calling it more than once, even after stop(), has no effect.
        """
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._operate())

    async def stop(self) -> None:
        """
        Stops the actor for good. Messages still in the inbox are never processed,
        so pending read calls end with SubscriptionTimeout.
        """
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    async def read(self, bot_type: BotType, id: str, out: Any = None) -> Any:
        """
        Reads the configuration file identified by bot_type and id.

        Args:
            bot_type (BotType): Namespace the file belongs to.
            id (str): File name without its extension.
            out (Any): Output target; see githubconfig.infrastructure.decoder.decode.

        Returns:
            Any: The decoded configuration.

        Raises:
            SubscriptionTimeout: When no reply arrives within config.timeout. The request
                is not withdrawn and may still fill the cache; retrying is safe.
            ConfigNotFoundError: When no such file exists.
            FetchFailure: When the files could not be fetched.
            DecodeFailure: When the file could not be decoded into out.
        """
        reply = asyncio.get_running_loop().create_future()
        await self._inbox.put(_Request(bot_type=bot_type, id=id, out=out, reply=reply))

        try:
            return await asyncio.wait_for(reply, timeout=self.config.timeout)
        except asyncio.TimeoutError:
            raise SubscriptionTimeout() from None

    async def watch(self, bot_type: BotType, id: str, callback: Callback) -> None:
        """
        Registers callback to be run whenever the file identified by bot_type and id changes.
        Replaces any callback already registered for the same pair.

        Returns as soon as the subscription is queued, not when it is applied.
        """
        await self._inbox.put(_Subscription(bot_type=bot_type, id=id, callback=callback))

    async def unwatch(self, bot_type: BotType) -> None:
        """
        Drops every subscription and the cached files of bot_type, so that the
        next read for it fetches the files again.
        """
        await self._inbox.put(_Unsubscription(bot_type=bot_type))

    def _expression(self, bot_type: BotType) -> str:
        # e.g. "master:bot/config/slack"
        directory = posixpath.join(self.config.base_dir, bot_type).lstrip("/")
        return f"{self.config.branch}:{directory}"

    async def _get(self, session: aiohttp.ClientSession, bot_type: BotType) -> Dict[str, ConfigFile]:
        """Fetches the current files of bot_type, keyed by id."""
        expression = self._expression(bot_type)
        try:
            raw_entries = await self.client.fetch_tree(
                session, self.config.owner, self.config.name, expression,
            )
            files = [GitHubTranslator.to_domain(entry) for entry in raw_entries if GitHubTranslator.is_blob(entry)]
        except Exception as e:
            raise FetchFailure(f"Failed to query GitHub API for '{expression}': {e}") from e

        return {file.id: file for file in files}

    async def _operate(self) -> None:
        ticker = asyncio.create_task(self._tick())
        logger.info(f"Started watching {self.config.owner}/{self.config.name} every {self.config.interval}s.")

        try:
            async with aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
            ) as session:
                while True:
                    message = await self._inbox.get()
                    try:
                        await self._handle(session, message)
                    except Exception as e:
                        # Whatever a file or the client throws must not end the actor
                        logger.error(f"Failed to handle {type(message).__name__}: {e!r}")
                        if isinstance(message, _Request):
                            self._reply(message.reply, error=e)
        finally:
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)
            logger.info(f"Stopped watching {self.config.owner}/{self.config.name}.")

    async def _handle(self, session: aiohttp.ClientSession, message: Any) -> None:
        if isinstance(message, _Subscription):
            self._subscriptions.setdefault(message.bot_type, {})[message.id] = message.callback
            logger.debug(f"Subscribed to {message.bot_type}/{message.id}.")

        elif isinstance(message, _Unsubscription):
            self._cache.pop(message.bot_type, None)
            self._subscriptions.pop(message.bot_type, None)
            logger.debug(f"Unsubscribed from {message.bot_type}.")

        elif isinstance(message, _Request):
            await self._serve(session, message)

        elif isinstance(message, _Tick):
            await self._reconcile(session)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval)
            await self._inbox.put(_TICK)

    async def _serve(self, session: aiohttp.ClientSession, request: _Request) -> None:
        files = self._cache.get(request.bot_type)
        if files is None:
            try:
                files = await self._get(session, request.bot_type)
            except FetchFailure as e:
                # Left uncached so that the next read tries again
                self._reply(request.reply, error=e)
                return
            self._cache[request.bot_type] = files
            logger.debug(f"Cached {len(files)} file(s) for {request.bot_type}.")

        file = files.get(request.id)
        if file is None:
            self._reply(request.reply, error=ConfigNotFoundError(request.bot_type, request.id))
            return

        try:
            value = decode(file.content, file.extension, request.out)
        except ConfigWatcherException as e:
            self._reply(request.reply, error=e)
            return
        self._reply(request.reply, result=value)

    @staticmethod
    def _reply(reply: asyncio.Future, result: Any = None, error: Optional[Exception] = None) -> None:
        # Cancelled when the caller already timed out
        if reply.done():
            return
        if error is not None:
            reply.set_exception(error)
        else:
            reply.set_result(result)

    async def _reconcile(self, session: aiohttp.ClientSession) -> None:
        """Fetches every subscribed BotType and runs the callbacks of changed files."""
        for bot_type, subscribed in list(self._subscriptions.items()):
            if not subscribed:
                continue

            try:
                files = await self._get(session, bot_type)
            except FetchFailure as e:
                logger.warning(f"Skipping {bot_type} this cycle: {e}")
                continue

            cached = self._cache.get(bot_type, {})
            for id, callback in subscribed.items():
                file = files.get(id)
                if file is None:
                    continue

                old = cached.get(id)
                if old is None or old.object_id != file.object_id:
                    logger.info(f"Configuration changed: {bot_type}/{id} ({file.object_id}).")
                    self._dispatch(bot_type, id, callback)

            self._cache[bot_type] = files

    def _dispatch(self, bot_type: BotType, id: str, callback: Callback) -> None:
        # Never awaited: a callback may call read(), which is served by this very actor
        if inspect.iscoroutinefunction(callback):
            future = asyncio.ensure_future(callback())
        else:
            future = asyncio.get_running_loop().run_in_executor(None, callback)

        self._callbacks.add(future)
        future.add_done_callback(functools.partial(self._on_callback_done, bot_type, id))

    def _on_callback_done(self, bot_type: BotType, id: str, future: asyncio.Future) -> None:
        self._callbacks.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Callback for {bot_type}/{id} raised: {error!r}")
            return

        # A plain callable may hand back a coroutine, e.g. lambda: rebuild()
        result = future.result()
        if inspect.isawaitable(result):
            awaited = asyncio.ensure_future(result)
            self._callbacks.add(awaited)
            awaited.add_done_callback(functools.partial(self._on_callback_done, bot_type, id))
