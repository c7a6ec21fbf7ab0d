import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Set

from ytprofile.application.completion import AllOfLatch, TerminalSignal
from ytprofile.crosscutting.logging import (
    CorrelationContext, log_error, log_stage_complete, log_stage_start
)
from ytprofile.domain.entities import Identity, PlaylistRef, Profile
from ytprofile.domain.errors import (
    MalformedResponseError, ProfileError, TransportError, UpstreamError
)
from ytprofile.domain.ports import ProfileCallback, ProtectedResourceClient


logger = logging.getLogger(__name__)

STAGE_IDENTITY = 'identity'
STAGE_COLLECTION = 'collection'
STAGE_ITEM = 'item'

_FAILURE_MESSAGES = {
    STAGE_IDENTITY: 'failed to fetch user profile',
    STAGE_COLLECTION: 'failed to fetch user playlists',
    STAGE_ITEM: 'failed to fetch playlist items',
}


class PipelineState(Enum):
    """Lifecycle of one profile cascade."""

    IDLE = 'idle'
    IDENTITY = 'identity'
    COLLECTION = 'collection'
    AGGREGATING = 'aggregating'
    COMPLETED = 'completed'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)


@dataclass
class FetchStats:
    """Requests issued per stage, plus item results dropped after settlement."""

    identity_requests: int = 0
    collection_requests: int = 0
    item_requests: int = 0
    discarded_results: int = 0

    @property
    def total_requests(self) -> int:
        return self.identity_requests + self.collection_requests + self.item_requests


class ProfilePipeline:
    """Builds a YouTube profile by cascading channel, playlist and item reads.

    One instance serves exactly one authentication attempt: it owns the Profile
    it builds and the state of that run.
    """

    def __init__(self,
                 client: ProtectedResourceClient,
                 identity_url: str,
                 collection_url: str,
                 item_url: str,
                 request_id: Optional[str] = None):
        """Initialize profile pipeline.

        Args:
            client: Capability performing authenticated GETs
            identity_url: Channel endpoint for the authenticated user
            collection_url: Playlist endpoint; the channel id is appended
            item_url: Playlist-items endpoint; the playlist id is appended
            request_id: Correlation id attached to log records
        """
        self._client = client
        self.identity_url = identity_url
        self.collection_url = collection_url
        self.item_url = item_url
        self.request_id = request_id
        self.state = PipelineState.IDLE
        self.stats = FetchStats()
        self._inflight: Set[asyncio.Task] = set()

    async def _get(self, stage: str, url: str, access_token: str,
                   playlist_id: Optional[str] = None) -> str:
        if stage == STAGE_IDENTITY:
            self.stats.identity_requests += 1
        elif stage == STAGE_COLLECTION:
            self.stats.collection_requests += 1
        else:
            self.stats.item_requests += 1

        log_stage_start(logger, stage, url, playlist_id=playlist_id)
        try:
            return await self._client.get_protected_resource(url, access_token)
        except TransportError as e:
            raise UpstreamError(stage, _FAILURE_MESSAGES[stage], cause=e, playlist_id=playlist_id) from e

    @staticmethod
    def _parse(stage: str, body: str, require_object: bool = True,
               playlist_id: Optional[str] = None) -> Any:
        try:
            parsed = json.loads(body)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(stage, 'response body is not valid JSON',
                                         cause=e, playlist_id=playlist_id) from e
        if require_object and not isinstance(parsed, dict):
            raise MalformedResponseError(stage, 'expected a JSON object', playlist_id=playlist_id)
        return parsed

    async def fetch_identity(self, access_token: str) -> Identity:
        """Fetch the authenticated user's channel.

        A response without channels is not an error: the returned Identity
        then carries only the raw response.
        """
        body = await self._get(STAGE_IDENTITY, self.identity_url, access_token)
        parsed = self._parse(STAGE_IDENTITY, body)

        items = parsed.get('items')
        if items is None:
            items = []
        if not isinstance(items, list):
            raise MalformedResponseError(STAGE_IDENTITY, 'channel items must be a list')
        if not items:
            logger.info("No channel found for the authenticated user")
            return Identity(raw=body, raw_parsed=parsed)

        channel = items[0]
        if not isinstance(channel, dict) or not isinstance(channel.get('id'), str):
            raise MalformedResponseError(STAGE_IDENTITY, 'channel record has no string id')

        try:
            snippet = channel.get('snippet') or {}
            return Identity(
                id=channel['id'],
                display_name=snippet.get('title'),
                picture_url=((snippet.get('thumbnails') or {}).get('default') or {}).get('url'),
                raw=body,
                raw_parsed=parsed,
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise MalformedResponseError(STAGE_IDENTITY, 'channel record has an unexpected shape', cause=e) from e

    async def fetch_collection(self, access_token: str, identity_id: Optional[str]) -> List[PlaylistRef]:
        """Fetch the playlists of a channel, in provider order."""
        url = self.collection_url + (identity_id or '')
        body = await self._get(STAGE_COLLECTION, url, access_token)
        parsed = self._parse(STAGE_COLLECTION, body)

        items = parsed.get('items')
        if items is None:
            return []
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise MalformedResponseError(STAGE_COLLECTION, 'playlist items must be a list of objects')
        if not all(isinstance(i.get('id'), str) and i['id'] for i in items):
            raise MalformedResponseError(STAGE_COLLECTION, 'playlist record has no string id')
        return [PlaylistRef.from_item(item) for item in items]

    async def aggregate(self, access_token: str, profile: Profile) -> Profile:
        """Attach playlist items to every playlist of ``profile``.

        All item reads are dispatched at once. The call returns after the last
        of them succeeded, or raises the first failure; results arriving after
        that are dropped.
        """
        playlists = profile.playlists
        latch = AllOfLatch(range(len(playlists)))
        if latch.settled:
            return profile

        for index, entry in enumerate(playlists):
            task = asyncio.ensure_future(self._fetch_items(access_token, index, entry, latch))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

        await latch.wait()
        return profile

    async def _fetch_items(self, access_token: str, index: int, entry: PlaylistRef,
                           latch: AllOfLatch) -> None:
        with CorrelationContext(playlist_id=entry.id):
            try:
                body = await self._get(STAGE_ITEM, self.item_url + entry.id, access_token,
                                       playlist_id=entry.id)
                data = self._parse(STAGE_ITEM, body, require_object=False, playlist_id=entry.id)
            except Exception as e:
                if not latch.fail(e):
                    self.stats.discarded_results += 1
                    logger.debug(f"Dropping failure for playlist {entry.id}: cascade already settled")
                return

            entry.load(data)
            if not latch.complete(index):
                self.stats.discarded_results += 1
                logger.debug(f"Dropping items for playlist {entry.id}: cascade already settled")

    async def run(self, access_token: str) -> Profile:
        """Run the whole cascade and return the completed profile.

        Raises:
            UpstreamError: A read failed at some stage
            MalformedResponseError: A response could not be parsed
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Pipeline already used (state: {self.state.value})")

        with CorrelationContext(request_id=self.request_id):
            try:
                self.state = PipelineState.IDENTITY
                identity = await self.fetch_identity(access_token)
                profile = Profile.from_identity(identity)
                log_stage_complete(logger, STAGE_IDENTITY, channel_found=identity.has_channel)

                self.state = PipelineState.COLLECTION
                profile.playlists = await self.fetch_collection(access_token, identity.id)
                log_stage_complete(logger, STAGE_COLLECTION, playlist_count=len(profile.playlists))

                self.state = PipelineState.AGGREGATING
                await self.aggregate(access_token, profile)
                log_stage_complete(logger, STAGE_ITEM, playlist_count=len(profile.playlists),
                                   requests=self.stats.total_requests)
            except ProfileError as e:
                self.state = PipelineState.FAILED
                log_error(logger, 'Profile cascade failed', e, stage=getattr(e, 'stage', None))
                raise
            except Exception:
                self.state = PipelineState.FAILED
                raise

            self.state = PipelineState.COMPLETED
            return profile

    async def run_with_callback(self, access_token: str, done: ProfileCallback) -> None:
        """Run the cascade and report through ``done(error, profile)`` exactly once."""
        signal = TerminalSignal(done)
        try:
            profile = await self.run(access_token)
        except Exception as e:
            signal.failure(e)
            return
        signal.success(profile)
