"""
Brief Aggregator for the Morning Brief.

Top-level entry point of the pipeline. For one user it:
1. Works out which adapters apply (connected integrations, or the configured alternate source)
2. Runs every adapter concurrently, each behind its own timeout
3. Classifies each signal and builds a brief item candidate
4. Returns the stored item for anything seen before, creates the rest

A failing provider never affects the others, and generate() itself never raises.
"""

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from monitoring import capture_exception

from ..adapters.base import Clock, ProviderAdapter
from ..config import BriefSettings, get_brief_settings
from ..errors import DuplicateItemError
from ..models import BriefItemCreate, BriefItemRecord, IntegrationRecord, RawSignal, SourceMode, utc_now
from ..stores.base import IntegrationStore, ItemStore
from .token_manager import TokenLifecycleManager
from .urgency import classify

logger = logging.getLogger(__name__)


class AggregatorOptions(BaseModel):
    """Explicit generation settings; adapter selection depends only on these."""
    source_mode: SourceMode = SourceMode.INTEGRATIONS
    adapter_timeout_seconds: float = 30.0
    generation_timeout_seconds: Optional[float] = None
    default_list_limit: int = 50

    @classmethod
    def from_settings(cls, settings: Optional[BriefSettings] = None) -> "AggregatorOptions":
        settings = settings or get_brief_settings()
        return cls(
            source_mode=SourceMode(settings.source_mode),
            adapter_timeout_seconds=settings.adapter_timeout_seconds,
            generation_timeout_seconds=settings.generation_timeout_seconds,
            default_list_limit=settings.default_list_limit,
        )


class BriefAggregator:
    """
    Orchestrates adapters, the urgency classifier and the item store.

    Responsibilities:
    - Pick the adapters that apply for a user
    - Isolate per-provider failures and timeouts
    - Deduplicate on (user_id, source, external_id)
    - Serve and delete stored brief items
    """

    def __init__(
        self,
        integrations: IntegrationStore,
        items: ItemStore,
        adapters: Mapping[str, ProviderAdapter],
        options: Optional[AggregatorOptions] = None,
        token_manager: Optional[TokenLifecycleManager] = None,
        clock: Clock = utc_now,
    ):
        self.integrations = integrations
        self.items = items
        self.adapters = adapters
        self.options = options or AggregatorOptions()
        self.clock = clock
        self.token_manager = token_manager or TokenLifecycleManager(integrations, adapters, clock=clock)

    @classmethod
    def create(
        cls,
        integrations: IntegrationStore,
        items: ItemStore,
        options: Optional[AggregatorOptions] = None,
        settings: Optional[BriefSettings] = None,
        redis_client=None,
        clock: Clock = utc_now,
    ) -> "BriefAggregator":
        """Build an aggregator with the adapter registry for options.source_mode."""
        from ..adapters.registry import build_adapter_registry

        settings = settings or get_brief_settings()
        options = options or AggregatorOptions.from_settings(settings)
        adapters = build_adapter_registry(options.source_mode, settings, clock=clock)
        token_manager = TokenLifecycleManager(
            integrations,
            adapters,
            refresh_window_seconds=settings.token_refresh_window_seconds,
            clock=clock,
            redis_client=redis_client,
        )
        return cls(integrations, items, adapters, options, token_manager, clock)

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(
        self,
        user_id: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[BriefItemRecord]:
        """
        Generate the brief for a user.

        Args:
            user_id: User to generate for
            timeout: Overall deadline in seconds (defaults to options.generation_timeout_seconds)
            cancel_event: Set it to stop early

        Returns:
            Stored items (new and previously seen). On timeout or cancellation, whatever
            was persisted so far. Empty on unexpected failure.
        """
        try:
            return await self._generate(user_id, timeout, cancel_event)
        except Exception as e:
            logger.error(f"Brief generation failed for user {user_id}: {e}")
            capture_exception(e, {"user_id": user_id, "source_mode": self.options.source_mode.value})
            return []

    async def _active_targets(self, user_id: str) -> List[Tuple[ProviderAdapter, Optional[IntegrationRecord]]]:
        targets = [(a, None) for a in self.adapters.values() if not a.requires_integration]

        if any(a.requires_integration for a in self.adapters.values()):
            for integration in await self.integrations.list_for_user(user_id):
                adapter = self.adapters.get(integration.provider)
                if integration.is_active and adapter is not None and adapter.requires_integration:
                    targets.append((adapter, integration))

        return targets

    async def _generate(
        self,
        user_id: str,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> List[BriefItemRecord]:
        targets = await self._active_targets(user_id)
        if not targets:
            logger.info(f"No active integrations for user {user_id}, brief is empty")
            return []

        if timeout is None:
            timeout = self.options.generation_timeout_seconds

        collected: Dict[str, List[BriefItemRecord]] = {adapter.provider: [] for adapter, _ in targets}
        tasks = {
            asyncio.create_task(self._run_provider(user_id, adapter, collected[adapter.provider]))
            for adapter, _ in targets
        }

        await self._wait(user_id, tasks, timeout, cancel_event)

        # Provider order, then listing order within a provider
        results = [item for adapter, _ in targets for item in collected[adapter.provider]]
        logger.info(f"Brief for user {user_id}: {len(results)} items from {len(targets)} providers")
        return results

    async def _wait(
        self,
        user_id: str,
        tasks: set,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        """Wait for provider tasks until done, deadline or cancellation; cancel stragglers."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        cancel_waiter = asyncio.create_task(cancel_event.wait()) if cancel_event is not None else None
        pending = set(tasks)

        try:
            while pending:
                remaining = None if deadline is None else deadline - loop.time()
                if remaining is not None and remaining <= 0:
                    logger.warning(f"Brief generation for user {user_id} hit its deadline, returning partial results")
                    break

                wait_on = (pending | {cancel_waiter}) if cancel_waiter is not None else pending
                done, _ = await asyncio.wait(wait_on, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)

                if cancel_waiter is not None and cancel_waiter in done:
                    logger.warning(f"Brief generation for user {user_id} cancelled, returning partial results")
                    break
                pending -= done
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            if cancel_waiter is not None:
                cancel_waiter.cancel()

    async def _fetch(self, user_id: str, adapter: ProviderAdapter) -> List[RawSignal]:
        integration = None
        if adapter.requires_integration:
            integration = await self.token_manager.get_valid_credentials(user_id, adapter.provider)
        return await adapter.fetch_signals(user_id, integration)

    async def _run_provider(
        self,
        user_id: str,
        adapter: ProviderAdapter,
        sink: List[BriefItemRecord],
    ) -> None:
        """Fetch, classify and persist one provider's signals into sink."""
        provider = adapter.provider
        try:
            signals = await asyncio.wait_for(
                self._fetch(user_id, adapter),
                timeout=self.options.adapter_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"{provider} timed out after {self.options.adapter_timeout_seconds}s for user {user_id}, skipping"
            )
            return
        except Exception as e:
            logger.error(f"Failed to fetch {provider} signals for user {user_id}: {e}")
            return

        for signal in signals:
            item = await self._persist(self.build_candidate(user_id, signal))
            if item is not None:
                sink.append(item)

    def build_candidate(self, user_id: str, signal: RawSignal) -> BriefItemCreate:
        now = self.clock()
        return BriefItemCreate(
            user_id=user_id,
            type=signal.item_type,
            source=signal.source,
            urgency=signal.urgency or classify(signal.factors, now),
            text=signal.text,
            metadata=signal.provider_metadata,
            external_id=signal.external_id,
            external_url=signal.source_url,
            processed_at=now,
        )

    async def _persist(self, candidate: BriefItemCreate) -> Optional[BriefItemRecord]:
        """Existing item when seen before, otherwise the newly created one. None on failure."""
        user_id, source, external_id = candidate.user_id, candidate.source, candidate.external_id
        try:
            if external_id:
                existing = await self.items.find_by_external_id(user_id, external_id, source)
                if existing is not None:
                    return existing
            return await self.items.create(candidate)

        except DuplicateItemError:
            # A concurrent run created it between lookup and insert
            try:
                return await self.items.find_by_external_id(user_id, external_id, source)
            except Exception as e:
                logger.warning(f"Skipping {source} item {external_id} for user {user_id}: {e}")
                return None

        except Exception as e:
            logger.warning(f"Skipping {source} item {external_id} for user {user_id}: {e}")
            return None

    # =========================================================================
    # Read / delete
    # =========================================================================

    async def list_brief(self, user_id: str, limit: Optional[int] = None) -> List[BriefItemRecord]:
        """Stored items for a user, most urgent first."""
        if limit is None:
            limit = self.options.default_list_limit
        return await self.items.list_for_user(user_id, limit)

    async def delete_item(self, user_id: str, item_id: str) -> bool:
        deleted = await self.items.delete(user_id, item_id)
        if deleted:
            logger.info(f"Deleted brief item {item_id} for user {user_id}")
        return deleted
