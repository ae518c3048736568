"""Publishing service.

Drives the three entry points of the publish pipeline:
- ``submit``: a third party asks for a plugin commit to be published
- ``handle_interaction``: a reviewer pressed a button on the review message
- ``handle_workflow_run``: the plugin build workflow finished

All state changes go through ``approval.transition``; this module only
executes the effects it returns against Redis, Discord and GitHub.
Network calls never run inside a store transaction.
"""

import logging
from dataclasses import replace
from typing import Any

import httpx
import redis.asyncio as redis

from ..config import Settings
from ..infrastructure.build_slot import BuildHolder, BuildSlot
from ..infrastructure.store import (
    PluginRepoLedger,
    PublishRequest,
    PublishRequestStore,
    create_redis,
)
from ..integrations.discord import DiscordClient, ephemeral_response, update_message_response
from ..integrations.github import GitHubClient
from ..observability import record, record_publish, trace_span
from ..schemas.publishing import Interaction, InteractionMember, WorkflowRunEvent
from . import messages
from .approval import (
    BUILD_BUSY,
    DISPATCH_FAILED,
    NO_PERMISSION,
    UNKNOWN_BUTTON,
    UNKNOWN_REQUEST,
    ApprovalEvent,
    ApprovalState,
    Effect,
    Transition,
    event_for_conclusion,
    transition,
)
from .diff import DiffRenderer
from .errors import ExtractionError, InvalidTransitionError, PublishValidationError, UpstreamInconsistencyError
from .history import CommitHistory, reconcile
from .requests import PublishRequests, SubmitResult
from .workflow_logs import DispatchInputs, WorkflowLogExtractor, ZipLogExtractor

logger = logging.getLogger(__name__)

OUTCOME_COUNTERS = {
    ApprovalState.APPROVED: "builds_approved",
    ApprovalState.DENIED: "requests_denied",
    ApprovalState.SKIPPED_CI: "requests_skipped_ci",
    ApprovalState.BUILD_COMPLETED: "builds_succeeded",
    ApprovalState.PENDING: "builds_failed",
}


def mention(member: InteractionMember | None) -> str:
    if member is None or member.user is None:
        return "unknown"
    return f"<@{member.user.id}>"


class PublishingService:
    """Orchestrates publish requests, reviews and build results."""

    def __init__(
        self,
        settings: Settings,
        *,
        requests: PublishRequests,
        ledger: PluginRepoLedger,
        slot: BuildSlot,
        github: GitHubClient,
        discord: DiscordClient,
        extractor: WorkflowLogExtractor,
        diff_renderer: DiffRenderer,
    ) -> None:
        self.settings = settings
        self.requests = requests
        self.store = requests.store
        self.ledger = ledger
        self.slot = slot
        self.github = github
        self.discord = discord
        self.extractor = extractor
        self.diff_renderer = diff_renderer
        self.allowed_roles = frozenset(settings.allowed_roles)

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(self, owner: str, repo: str, plugin: str, target_commit: str) -> str:
        """Create or update the publish request and its review message.

        Returns:
            Link to the review message

        Raises:
            PublishValidationError: If the plugin name is banned
        """
        if plugin in self.settings.banned_plugins:
            record("requests_rejected")
            raise PublishValidationError(f"The {plugin} plugin is banned from being published!")

        result = await self._open_request(owner, repo, plugin, target_commit)

        known_commits = await self.ledger.get(owner, repo)
        history = await self.commit_history(owner, repo, known_commits)
        diff = await self.diff_renderer.render(owner, repo, history.last_shared, target_commit)

        embed = messages.build_request_embed(
            messages.RequestSummary(
                owner=owner,
                repo=repo,
                plugin=plugin,
                target_commit=target_commit,
                updates=result.updates,
                history=history,
                diff=diff,
            )
        )

        if result.created:
            try:
                message_id = await self.discord.create_message(
                    messages.AWAITING_APPROVAL,
                    embeds=[embed],
                    components=messages.request_buttons(result.request.id),
                )
            except httpx.HTTPError:
                await self.requests.finalize(result.request)
                raise
            if await self.store.set_message_id(result.request, message_id) is None:
                logger.warning(f"Request {result.request.id} was replaced before message {message_id} was attached")
            record("requests_created")
        else:
            message_id = result.message_id
            await self.discord.edit_message(message_id, embeds=[embed])
            record("requests_updated")

        record_publish(owner, plugin, new_repository=known_commits is None and result.created)
        return self.settings.message_link(message_id)

    async def _open_request(self, owner: str, repo: str, plugin: str, target_commit: str) -> SubmitResult:
        """Submit, waiting on a concurrent first submission for its message.

        A request whose message never shows up is treated as abandoned and
        replaced by a fresh one.
        """
        result = await self.requests.submit(owner, repo, plugin, target_commit)
        if not result.in_flight:
            return result

        message_id = await self.requests.await_message(result.request, self.settings.pending_message_timeout)
        if message_id is not None:
            return replace(result, message_id=message_id)

        await self.requests.evict(result.request)
        result = await self.requests.submit(owner, repo, plugin, target_commit)
        if result.in_flight:
            raise UpstreamInconsistencyError(
                f"Publish request for {owner}/{repo} -> {plugin} is still awaiting its review message"
            )
        return result

    async def commit_history(self, owner: str, repo: str, known_commits: list[str] | None) -> CommitHistory:
        """Reconcile the ledger of a repository with its upstream commits."""
        if known_commits is None:
            return reconcile(None, [])

        upstream = await self.github.list_commits(owner, repo, self.settings.commit_window)
        history = reconcile(known_commits, upstream)
        if history.force_pushed:
            logger.warning(
                f"Force push detected on {owner}/{repo}: last approved {history.last_approved}, "
                f"last shared {history.last_shared}"
            )
        return history

    # =========================================================================
    # Button interactions
    # =========================================================================

    def is_authorized(self, roles: list[str]) -> bool:
        return any(role in self.allowed_roles for role in roles)

    async def handle_interaction(self, interaction: Interaction) -> dict[str, Any]:
        """Apply a reviewer's button press.

        Returns:
            Discord interaction response (ephemeral notice or message update)
        """
        member = interaction.member
        if not self.is_authorized(member.roles if member else []):
            return ephemeral_response(NO_PERMISSION)

        parsed = messages.parse_button_id(interaction.data.custom_id if interaction.data else None)
        if parsed is None:
            return ephemeral_response(UNKNOWN_BUTTON)

        request_id, action = parsed
        request = await self.store.get_by_id(request_id)
        if request is None:
            return ephemeral_response(UNKNOWN_REQUEST)

        try:
            result = transition(
                ApprovalState(request.status),
                ApprovalEvent(action),
                authorized=True,
                slot_free=await self.slot.is_free(),
            )
        except InvalidTransitionError:
            return ephemeral_response(UNKNOWN_REQUEST)

        if result.refused:
            return ephemeral_response(result.notice)

        user = mention(member)
        content = {
            ApprovalState.APPROVED: messages.building(user),
            ApprovalState.DENIED: messages.denied(user),
            ApprovalState.SKIPPED_CI: messages.skipped_ci(user),
        }[result.state]

        response: dict[str, Any] = {}
        for effect in result.effects:
            if effect is Effect.ACQUIRE_SLOT:
                holder = BuildHolder(request.id, request.owner, request.repo, request.plugin, request.target_commit)
                if not await self.slot.acquire(holder):
                    return ephemeral_response(BUILD_BUSY)
            elif effect is Effect.DISPATCH_BUILD:
                if not await self.dispatch_build(request):
                    return ephemeral_response(DISPATCH_FAILED)
            elif effect is Effect.UPDATE_MESSAGE:
                response = update_message_response(content, self._buttons(request, result))
            else:
                await self._apply(effect, request, result)

        record(OUTCOME_COUNTERS[result.state])
        logger.info(f"Request {request.id} {action} by {user} -> {result.state.value}")
        return response

    async def dispatch_build(self, request: PublishRequest) -> bool:
        """Start the plugin build workflow, releasing the slot on failure."""
        inputs = DispatchInputs(request.owner, request.repo, request.plugin, request.target_commit)
        try:
            await self.github.dispatch_workflow(
                self.settings.build_repo_owner,
                self.settings.build_repo_name,
                self.settings.build_workflow,
                self.settings.build_ref,
                inputs.as_workflow_inputs(),
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to dispatch build for request {request.id}: {e}")
            await self.slot.release(request.owner, request.repo, request.plugin)
            return False
        return True

    # =========================================================================
    # CI completion
    # =========================================================================

    async def handle_workflow_run(self, event: WorkflowRunEvent) -> dict[str, Any]:
        """Reconcile a finished build with its publish request.

        Raises:
            UpstreamInconsistencyError: For an unknown conclusion, or when the
                review message could not be edited (before any ledger write)
        """
        record("webhooks_received")
        if event.action != "completed":
            return {"status": "ignored", "action": event.action}

        run = event.workflow_run
        async with trace_span("workflow_run", run_url=run.html_url) as span:
            try:
                inputs = await self.extractor.extract(run)
            except ExtractionError as e:
                logger.warning(f"Skipping workflow run {run.html_url}: {e.message}")
                record("extraction_failures")
                span["status"] = "skipped"
                return {"status": "skipped", "reason": e.message}

            await self.slot.release(inputs.owner, inputs.repository, inputs.plugin)

            request = await self.store.get(inputs.owner, inputs.repository, inputs.plugin)
            if request is None:
                logger.info(f"No open publish request for {inputs}, ignoring")
                return {"status": "ignored", "reason": "no open request"}

            if request.message_id is None:
                logger.warning(f"Publish request {request.id} has no review message, ignoring")
                return {"status": "ignored", "reason": "no review message"}

            if not await self.requests.verify_or_evict(request):
                return {"status": "evicted", "request_id": request.id}

            result = transition(ApprovalState(request.status), event_for_conclusion(run.conclusion))
            content = (
                messages.BUILD_SUCCESS
                if result.state is ApprovalState.BUILD_COMPLETED
                else messages.build_failure(run.html_url)
            )

            for effect in result.effects:
                if effect is Effect.UPDATE_MESSAGE:
                    await self._edit_after_build(request, result, content, run.conclusion)
                else:
                    await self._apply(effect, request, result)

            record(OUTCOME_COUNTERS[result.state])
            span["status"] = result.state.value
            return {"status": "processed", "conclusion": run.conclusion, "request_id": request.id}

    async def _edit_after_build(
        self,
        request: PublishRequest,
        result: Transition,
        content: str,
        conclusion: str | None,
    ) -> None:
        try:
            await self.discord.edit_message(
                request.message_id,
                content=content,
                components=self._buttons(request, result),
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to edit message after workflow run ({conclusion}). "
                f"Message: {self.settings.message_link(request.message_id)}"
            )
            raise UpstreamInconsistencyError(
                f"Could not update review message for request {request.id}"
            ) from e

    # =========================================================================
    # Shared effects
    # =========================================================================

    def _buttons(self, request: PublishRequest, result: Transition) -> list[dict[str, Any]]:
        return messages.request_buttons(request.id) if result.keep_buttons else []

    async def _apply(self, effect: Effect, request: PublishRequest, result: Transition) -> None:
        if effect is Effect.PERSIST_STATUS:
            await self.store.set_status(request, result.state.value)
        elif effect is Effect.COMMIT_LEDGER:
            await self.commit_ledger(request.owner, request.repo)
        elif effect is Effect.FINALIZE:
            await self.requests.finalize(request)
        else:
            raise ValueError(f"Unhandled effect {effect}")

    async def commit_ledger(self, owner: str, repo: str) -> None:
        """Snapshot the current upstream commit window as approved."""
        commits = await self.github.list_commits(owner, repo, self.settings.commit_window)
        await self.ledger.replace(owner, repo, commits)

    async def current_build(self) -> dict[str, Any] | None:
        holder = await self.slot.current()
        return holder.to_dict() if holder else None


def create_service(
    settings: Settings,
    *,
    redis_client: redis.Redis | None = None,
    github: GitHubClient | None = None,
    discord: DiscordClient | None = None,
) -> PublishingService:
    """Wire a PublishingService from settings.

    Clients not passed in are built from ``settings``.
    """
    client = redis_client or create_redis(settings.redis_url)
    github = github or GitHubClient(
        settings.github_token,
        base_url=settings.github_api_url,
        timeout=settings.http_timeout,
    )
    discord = discord or DiscordClient(
        settings.discord_token,
        settings.discord_channel_id,
        base_url=settings.discord_api_url,
        timeout=settings.http_timeout,
    )

    return PublishingService(
        settings,
        requests=PublishRequests(PublishRequestStore(client), discord),
        ledger=PluginRepoLedger(client),
        slot=BuildSlot(client, ttl=settings.build_slot_ttl),
        github=github,
        discord=discord,
        extractor=ZipLogExtractor(github, step=settings.build_log_step),
        diff_renderer=DiffRenderer(github, max_chars=settings.diff_max_chars),
    )
