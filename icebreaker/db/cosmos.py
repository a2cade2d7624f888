"""
icebreaker/db/cosmos.py

Purpose: Cosmos DB connection setup

- Opens one async client shared by every data operation
- Creates the database and the pairs/teams/users containers if missing
- Falls back to per-container throughput when shared offers are disabled
- Runs the setup at most once, however many callers ask for it
- Health check and connection lifecycle management
"""

import asyncio
import concurrent.futures
import logging
import threading
from functools import partial
from typing import Callable, Optional

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosHttpResponseError

from icebreaker.core.config import Settings, settings as default_settings
from icebreaker.core.exceptions import DataStoreError, DataStoreInitializationError
from icebreaker.core.logging import get_logger
from icebreaker.core.secrets import SecretsProvider, SettingsSecretsProvider
from icebreaker.core.telemetry import Telemetry

logger = get_logger(__name__)

# Every document is its own logical partition
PARTITION_KEY_PATH = "/id"

SHARED_OFFER_DISABLED_MARKER = "SharedOffer is Disabled"


def is_shared_offer_disabled(exc: CosmosHttpResponseError) -> bool:
    """
    True when the account rejected database-level (shared) throughput.
    """
    message = getattr(exc, "message", None) or str(exc)
    return SHARED_OFFER_DISABLED_MARKER in message


class CosmosConnection:
    """
    Owns the Cosmos DB client and the three container handles.

    State is scoped to the instance: it is created with the connection,
    resolved once by ``ensure_initialized`` and discarded by ``close``.
    A failed setup is remembered and re-raised to later callers until the
    connection is closed; there is no automatic retry.

    Callers may come from several threads, each with its own event loop.
    The setup runs on the loop of the first caller and its outcome is held
    in a thread-safe future that every caller awaits. The client itself is
    bound to that loop, so data operations belong there too.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        secrets: Optional[SecretsProvider] = None,
        telemetry: Optional[Telemetry] = None,
        client_factory: Callable[..., CosmosClient] = CosmosClient,
    ):
        self.config = config or default_settings
        self.secrets = secrets or SettingsSecretsProvider(self.config)
        self.telemetry = telemetry or Telemetry()
        self._client_factory = client_factory

        self._init_lock = threading.Lock()
        self._init_future: Optional[concurrent.futures.Future] = None
        self._init_task: Optional[asyncio.Task] = None
        self._client: Optional[CosmosClient] = None
        self._database: Optional[DatabaseProxy] = None
        self._pairs: Optional[ContainerProxy] = None
        self._teams: Optional[ContainerProxy] = None
        self._users: Optional[ContainerProxy] = None
        self.uses_shared_throughput: Optional[bool] = None

    async def ensure_initialized(self) -> None:
        """
        Waits for the one-time setup, starting it if nobody has yet.

        Every concurrent caller, on any thread, awaits the same outcome.
        A caller being cancelled does not cancel the setup.

        Raises:
            DataStoreInitializationError: If the setup failed
        """
        outcome = self._start_setup()
        await asyncio.shield(asyncio.wrap_future(outcome))

    def _start_setup(self) -> concurrent.futures.Future:
        with self._init_lock:
            if self._init_future is None:
                outcome = concurrent.futures.Future()
                task = asyncio.ensure_future(self._initialize())
                task.add_done_callback(partial(self._settle, outcome))
                self._init_future = outcome
                self._init_task = task
            return self._init_future

    @staticmethod
    def _settle(outcome: concurrent.futures.Future, task: asyncio.Task) -> None:
        if task.cancelled():
            outcome.set_exception(
                DataStoreInitializationError("Data store setup was cancelled by close()")
            )
        elif task.exception() is not None:
            outcome.set_exception(task.exception())
        else:
            outcome.set_result(None)

    @property
    def is_initialized(self) -> bool:
        outcome = self._init_future
        return (
            outcome is not None
            and outcome.done()
            and outcome.exception() is None
        )

    async def _initialize(self) -> None:
        self.telemetry.track_trace("Initializing data store")

        config = self.config
        throughput = config.COSMOS_DEFAULT_THROUGHPUT
        client = None

        try:
            client = self._client_factory(
                config.COSMOS_DB_ENDPOINT_URL,
                credential=self.secrets.cosmos_db_key,
            )

            use_shared_offer = True
            try:
                database = await client.create_database_if_not_exists(
                    id=config.COSMOS_DB_DATABASE_NAME,
                    offer_throughput=throughput,
                )
            except CosmosHttpResponseError as e:
                if not is_shared_offer_disabled(e):
                    raise
                self.telemetry.track_trace(
                    "Database shared offer is disabled for the account, "
                    "will provision throughput at container level",
                    logging.INFO,
                )
                use_shared_offer = False
                database = await client.create_database_if_not_exists(
                    id=config.COSMOS_DB_DATABASE_NAME,
                )

            container_throughput = None if use_shared_offer else throughput

            pairs = await self._create_container(database, config.COSMOS_COLLECTION_PAIRS, container_throughput)
            teams = await self._create_container(database, config.COSMOS_COLLECTION_TEAMS, container_throughput)
            users = await self._create_container(database, config.COSMOS_COLLECTION_USERS, container_throughput)

        except Exception as e:
            self.telemetry.track_exception(e, operation="initialize")
            if client is not None:
                await client.close()
            raise DataStoreInitializationError(
                f"Could not initialize data store: {e}",
                details={"database": config.COSMOS_DB_DATABASE_NAME},
            ) from e
        except BaseException:
            # Cancelled by close(); the client was never handed over
            if client is not None:
                await client.close()
            raise

        with self._init_lock:
            current = self._init_task is asyncio.current_task()
            if current:
                self._client = client
                self._database = database
                self._pairs = pairs
                self._teams = teams
                self._users = users
                self.uses_shared_throughput = use_shared_offer

        if not current:
            await client.close()
            raise DataStoreInitializationError("Data store setup finished after close()")

        self.telemetry.track_trace("Data store initialized")

    async def _create_container(
        self,
        database: DatabaseProxy,
        name: str,
        throughput: Optional[int],
    ) -> ContainerProxy:
        container = await database.create_container_if_not_exists(
            id=name,
            partition_key=PartitionKey(path=PARTITION_KEY_PATH),
            offer_throughput=throughput,
        )
        logger.debug(f"Container ready: {name}", extra={"container": name})
        return container

    def _require(self, container: Optional[ContainerProxy], name: str) -> ContainerProxy:
        if container is None:
            raise DataStoreError(
                f"Container '{name}' requested before the data store was initialized. "
                "Await ensure_initialized() first."
            )
        return container

    @property
    def pairs(self) -> ContainerProxy:
        return self._require(self._pairs, "pairs")

    @property
    def teams(self) -> ContainerProxy:
        return self._require(self._teams, "teams")

    @property
    def users(self) -> ContainerProxy:
        return self._require(self._users, "users")

    async def check_health(self) -> bool:
        """
        Checks if the database connection is healthy.

        Triggers the lazy setup if it has not run yet.

        Returns:
            True if the store is initialized and reachable, False otherwise
        """
        try:
            await self.ensure_initialized()
            await self._database.read()
            return True

        except Exception as e:
            logger.error(f"Database health check failed: {str(e)}")
            return False

    async def close(self) -> None:
        """
        Closes the client and forgets the setup outcome.
        The next ensure_initialized() call starts a fresh setup.
        """
        with self._init_lock:
            task, self._init_task = self._init_task, None
            self._init_future = None
            client, self._client = self._client, None
            self._database = None
            self._pairs = None
            self._teams = None
            self._users = None
            self.uses_shared_throughput = None

        if task is not None and not task.done():
            loop = task.get_loop()
            if loop is asyncio.get_running_loop():
                task.cancel()
            else:
                loop.call_soon_threadsafe(task.cancel)

        if client is not None:
            logger.info("Closing Cosmos DB connection")
            await client.close()
            logger.info("Cosmos DB connection closed")
