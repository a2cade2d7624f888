"""
icebreaker/services/data_provider.py

Purpose: Data access for the pairing bot

- Installed teams: install/uninstall, lookup, listing
- Users: opt-in per team, profile, lookup, bulk opt-in/profile maps
- Pair history: append-only records of pairings made
- Every operation waits for the one-time data store setup first
"""

from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Type, TypeVar

from azure.core.exceptions import AzureError
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from pydantic import ValidationError

from icebreaker.core.exceptions import DataStoreError, UserNotFoundError
from icebreaker.core.logging import get_logger
from icebreaker.core.telemetry import Telemetry
from icebreaker.db.cosmos import CosmosConnection
from icebreaker.models.pair import PairInfo
from icebreaker.models.results import LookupResult, ScanResult
from icebreaker.models.team import TeamInstallInfo
from icebreaker.models.user import UserInfo

logger = get_logger(__name__)

T = TypeVar("T")

OPT_IN_QUERY = "SELECT c.id, c.optedIn FROM c"
PROFILE_QUERY = "SELECT c.id, c.profile FROM c"

# Let the service choose the page size
DYNAMIC_PAGE_SIZE = -1

# Store errors, plus stored documents that do not match the model
READ_FAILURES = (AzureError, ValidationError, KeyError, TypeError, ValueError)


class BotDataProvider:
    """
    Reads and writes teams, users and pairs.

    Reads never raise for store failures or for stored documents that do
    not fit the model: lookups return a LookupResult and scans return a
    ScanResult, both of which record the failure. Writes let the store's
    exceptions propagate.

    Users are written as whole documents. Paths that change one field
    (profile, team opt-in) read the stored record and write it back with
    every other field carried over. Two such updates racing on the same
    user can still lose one of them; there is no etag check.
    """

    def __init__(self, connection: CosmosConnection, telemetry: Optional[Telemetry] = None):
        self.connection = connection
        self.telemetry = telemetry or connection.telemetry

    async def ensure_initialized(self) -> None:
        await self.connection.ensure_initialized()

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def update_team_install_status(self, team: TeamInstallInfo, installed: bool) -> None:
        """
        Saves the team when the bot is installed, deletes it otherwise.

        Raises:
            CosmosResourceNotFoundError: If uninstalling a team that was never stored
        """
        await self.ensure_initialized()

        context = {"team_id": team.team_id, "operation": "update_team_install_status"}
        if installed:
            await self.connection.teams.upsert_item(body=team.to_document())
            logger.info("Team installation saved", extra=context)
        else:
            await self.connection.teams.delete_item(item=team.id, partition_key=team.id)
            logger.info("Team installation removed", extra=context)

    async def get_installed_team(self, team_id: str) -> LookupResult[TeamInstallInfo]:
        await self.ensure_initialized()
        return await self._read(self.connection.teams, team_id, TeamInstallInfo, team_id=team_id)

    async def get_installed_teams(self) -> ScanResult[List[TeamInstallInfo]]:
        """
        Lists every team the bot is installed in.

        A failure part way through returns the teams read so far with the
        error attached.
        """
        await self.ensure_initialized()
        return await self._scan_all(self.connection.teams, TeamInstallInfo, "get_installed_teams")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user_info(self, user_id: str) -> LookupResult[UserInfo]:
        await self.ensure_initialized()
        return await self._read(self.connection.users, user_id, UserInfo, user_id=user_id)

    async def set_user_info(
        self,
        tenant_id: str,
        user_id: str,
        opted_in: Dict[str, bool],
        service_url: str,
        profile: Optional[str] = None,
    ) -> UserInfo:
        """
        Replaces the whole user document.

        Args:
            tenant_id: Tenant id
            user_id: User id
            opted_in: Opt-in status for each team the user is in
            service_url: Service URL used to message the user
            profile: Profile to store; omitted means no profile

        Returns:
            The stored user
        """
        await self.ensure_initialized()

        user = UserInfo(
            tenant_id=tenant_id,
            user_id=user_id,
            opted_in=dict(opted_in),
            service_url=service_url,
            profile=profile,
        )
        await self.connection.users.upsert_item(body=user.to_document())
        logger.debug("User info saved", extra={"user_id": user_id})
        return user

    async def set_user_profile(self, user_id: str, profile: str) -> UserInfo:
        """
        Sets the profile of an existing user, keeping everything else.

        Raises:
            UserNotFoundError: If the user has no stored record
            DataStoreError: If the user could not be read
        """
        await self.ensure_initialized()

        user = await self._require_user(user_id)
        updated = await self.set_user_info(
            user.tenant_id,
            user_id,
            user.opted_in,
            user.service_url,
            profile=profile,
        )
        logger.info("User profile updated", extra={"user_id": user_id, "operation": "set_user_profile"})
        return updated

    async def add_user_team(self, tenant_id: str, user_id: str, team_id: str, service_url: str) -> UserInfo:
        """
        Opts the user in to a team, creating the user record if needed.

        The stored profile is kept. Tenant and service URL are taken from
        the arguments since they come from the latest activity.
        """
        await self.ensure_initialized()

        result = await self.get_user_info(user_id)
        if result.is_failed:
            raise DataStoreError(
                f"Could not read user {user_id}", details=str(result.error)
            ) from result.error

        existing = result.value
        opted_in = dict(existing.opted_in) if existing else {}
        opted_in[team_id] = True

        user = await self.set_user_info(
            tenant_id,
            user_id,
            opted_in,
            service_url,
            profile=existing.profile if existing else None,
        )
        logger.info(
            "User opted in to team",
            extra={"user_id": user_id, "team_id": team_id, "operation": "add_user_team"},
        )
        return user

    async def remove_user_team(self, user_id: str, team_id: str) -> bool:
        """
        Removes a team from the user's opt-in map.

        Removing a team the user does not have leaves the map unchanged.

        Returns:
            True if the team was present and has been removed

        Raises:
            UserNotFoundError: If the user has no stored record
            DataStoreError: If the user could not be read
        """
        await self.ensure_initialized()

        user = await self._require_user(user_id)

        opted_in = dict(user.opted_in)
        removed = opted_in.pop(team_id, None) is not None

        await self.set_user_info(
            user.tenant_id,
            user_id,
            opted_in,
            user.service_url,
            profile=user.profile,
        )

        context = {"user_id": user_id, "team_id": team_id, "operation": "remove_user_team"}
        if removed:
            logger.info("Team removed from user", extra=context)
        else:
            logger.debug("Team was not in user's opt-in map", extra=context)
        return removed

    async def get_all_users_opt_in_status(self) -> ScanResult[Dict[str, Dict[str, bool]]]:
        """
        Maps every user id to its opt-in map.

        On failure the items are empty and the error is set, which is not
        the same thing as an empty success.
        """
        await self.ensure_initialized()
        return await self._scan_projection(
            OPT_IN_QUERY,
            lambda doc: dict(doc.get("optedIn") or {}),
            "get_all_users_opt_in_status",
        )

    async def get_all_users_profile(self) -> ScanResult[Dict[str, Optional[str]]]:
        await self.ensure_initialized()
        return await self._scan_projection(
            PROFILE_QUERY,
            lambda doc: doc.get("profile"),
            "get_all_users_profile",
        )

    async def get_opted_in_users(self, team_id: str) -> ScanResult[List[str]]:
        """
        Ids of users currently opted in to the team.
        """
        status = await self.get_all_users_opt_in_status()
        user_ids = [
            user_id
            for user_id, opted_in in status.items.items()
            if opted_in.get(team_id, False)
        ]
        return ScanResult(items=user_ids, error=status.error)

    # ------------------------------------------------------------------
    # Pairs
    # ------------------------------------------------------------------

    async def add_pair(self, user1_id: str, user2_id: str, iteration: int) -> PairInfo:
        """
        Records a pairing that was made. Repeated calls add repeated records.

        Args:
            user1_id: First member of the pair
            user2_id: Second member of the pair
            iteration: Pairing round the pair belongs to

        Returns:
            The stored pair record
        """
        await self.ensure_initialized()

        pair = PairInfo(user1_id=user1_id, user2_id=user2_id, iteration=iteration)
        await self.connection.pairs.create_item(body=pair.to_document())
        logger.debug(f"Pair recorded for iteration {iteration}", extra={"operation": "add_pair"})
        return pair

    async def get_pair_history(self) -> ScanResult[List[PairInfo]]:
        await self.ensure_initialized()
        return await self._scan_all(self.connection.pairs, PairInfo, "get_pair_history")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_user(self, user_id: str) -> UserInfo:
        result = await self.get_user_info(user_id)
        if result.is_not_found:
            raise UserNotFoundError(user_id)
        if result.is_failed:
            raise DataStoreError(
                f"Could not read user {user_id}", details=str(result.error)
            ) from result.error
        return result.value

    async def _read(self, container, item_id: str, model: Type[T], **context: Any) -> LookupResult[T]:
        try:
            document = await container.read_item(item=item_id, partition_key=item_id)
            value = model.model_validate(document)
        except CosmosResourceNotFoundError:
            return LookupResult.not_found()
        except READ_FAILURES as e:
            self.telemetry.track_exception(e, container=container.id, **context)
            return LookupResult.failed(e)

        return LookupResult.found(value)

    async def _iter_pages(self, pager) -> AsyncIterator[List[dict]]:
        async for page in pager.by_page():
            yield [document async for document in page]

    async def _scan_all(self, container, model: Type[T], operation: str) -> ScanResult[List[T]]:
        items: List[T] = []
        try:
            pager = container.read_all_items()
            async for page in self._iter_pages(pager):
                items.extend(model.model_validate(document) for document in page)

        except READ_FAILURES as e:
            self.telemetry.track_exception(e, container=container.id, operation=operation)
            if items:
                logger.warning(
                    f"Scan of {container.id} stopped after {len(items)} documents",
                    extra={"operation": operation},
                )
            return ScanResult(items=items, error=e)

        return ScanResult(items=items)

    async def _scan_projection(
        self,
        query: str,
        select: Callable[[dict], T],
        operation: str,
    ) -> ScanResult[Dict[str, T]]:
        container = self.connection.users
        lookup: Dict[str, T] = {}
        try:
            pager = container.query_items(query=query, max_item_count=DYNAMIC_PAGE_SIZE)
            # A page can hold many users
            async for page in self._iter_pages(pager):
                for document in page:
                    lookup[document["id"]] = select(document)

        except READ_FAILURES as e:
            self.telemetry.track_exception(e, container=container.id, operation=operation)
            return ScanResult(items={}, error=e)

        return ScanResult(items=lookup)
