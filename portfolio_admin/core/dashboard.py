"""
Dashboard Orchestrator
======================

Composes the Content API client, the retry executor, the upload
orchestrator, the form wizard and the reconciler into the admin console's
workflows.

Key Features:
-------------
- Parallel Load: one retry-wrapped fetch per entity kind, dispatched
  together. Non-critical kinds degrade to empty defaults; any other failure
  puts the dashboard into a retryable error state.
- Editor Flows: editors open as ``FormWizard`` instances; submitting uploads
  pending media first, persists the payload, and folds the response back
  into the owning collection.
- Guarded Deletes: nothing is sent until the confirmation callback agrees.
  Failed deletes leave the collection untouched.
- Single Owner: collections are only ever replaced with the output of the
  reconciler's pure functions, applied to the collection current at the time
  the response arrives.

Author: Portfolio Admin Project
"""

import asyncio
import copy
import inspect
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from portfolio_admin.core import config
from portfolio_admin.core.drafts import EntityDraft, new_draft
from portfolio_admin.core.errors import (
    DraftValidationError,
    RateLimitError,
    UploadValidationError,
    describe_error,
)
from portfolio_admin.core.reconciler import (
    OrderedCollection,
    RefetchRequired,
    build_collection,
    entity_id,
    reconcile_create,
    reconcile_delete,
    reconcile_update,
)
from portfolio_admin.core.retry import DEFAULT_RETRY_POLICY, RemoteCallResult, RetryExecutor, RetryPolicy
from portfolio_admin.core.slugs import find_slug_conflict
from portfolio_admin.core.uploads import (
    DOCUMENT_RULES,
    MediaFile,
    UploadOptions,
    UploadOrchestrator,
    summarize_batch,
    validate_upload,
)
from portfolio_admin.core.wizard import FormWizard
from portfolio_admin.utils.concurrency import DaemonThreadPoolExecutor

ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]

# Entity kind -> attribute of ContentAPI serving it
RESOURCES = {
    config.KIND_PROJECT: "projects",
    config.KIND_BLOG: "blogs",
    config.KIND_EXPERIENCE: "experience",
    config.KIND_QUOTE: "quotes",
    config.KIND_SKILL: "skills",
    config.KIND_RESUME: "resumes",
    config.KIND_CONTACT: "contacts",
}


@dataclass
class DashboardState:
    """
    Everything the console renders.

    Attributes:
        analytics: Visit statistics (defaults when unavailable)
        collections: Ordered entity lists keyed by kind
        is_loading: True while ``load`` runs
        error: Dashboard-level error message, if the last load failed
        can_retry: True when ``error`` can be cleared by ``retry_load``
        notices: Non-fatal messages (failed uploads, failed deletes, ...)
    """
    analytics: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(config.DEFAULT_ANALYTICS))
    collections: Dict[str, OrderedCollection] = field(default_factory=dict)
    is_loading: bool = False
    error: Optional[str] = None
    can_retry: bool = False
    notices: List[str] = field(default_factory=list)

    def collection(self, kind: str) -> OrderedCollection:
        return self.collections.get(kind) or build_collection(kind)


class DashboardOrchestrator:
    """
    Drives the admin console.

    Usage:
        ```python
        dashboard = DashboardOrchestrator(api, uploader, confirm=ask_user)
        await dashboard.load()
        wizard = dashboard.open_editor("project")
        wizard.update_field("title", "My project")
        ...
        await dashboard.submit(wizard)
        ```
    """

    def __init__(
        self,
        api,
        uploader: Optional[UploadOrchestrator] = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        retry_executor: Optional[RetryExecutor] = None,
        executor: Optional[DaemonThreadPoolExecutor] = None,
        confirm: Optional[ConfirmCallback] = None,
    ):
        self.api = api
        self.uploader = uploader
        self.retry_policy = retry_policy
        self.retry_executor = retry_executor or RetryExecutor()
        self.executor = executor or DaemonThreadPoolExecutor()
        self.confirm = confirm
        self.state = DashboardState()
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Remote calls
    # ------------------------------------------------------------------

    def _resource(self, kind: str):
        try:
            return getattr(self.api, RESOURCES[kind])
        except KeyError:
            raise ValueError(f"Unknown entity kind '{kind}'") from None

    async def _call(self, fn, *args, label: str) -> RemoteCallResult:
        """Run a blocking API call on the worker pool under the retry policy."""
        return await self.retry_executor.execute(
            lambda: self.executor.run(fn, *args),
            self.retry_policy,
            label=label,
        )

    def _notify(self, message: str):
        self.logger.warning(f"[DASHBOARD] {message}")
        self.state.notices.append(message)

    def dismiss_notices(self):
        self.state.notices.clear()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> DashboardState:
        """Fetch analytics and every entity collection concurrently."""
        self.state.is_loading = True
        self.state.error = None
        self.state.can_retry = False
        self.logger.info("[DASHBOARD] Loading dashboard data")

        kinds = list(RESOURCES)
        try:
            analytics, *listings = await asyncio.gather(
                self._call(self.api.analytics.overview, label="load analytics"),
                *(self._call(self._resource(kind).list, label=f"load {kind}") for kind in kinds),
            )
        finally:
            self.state.is_loading = False

        if analytics.ok:
            merged = copy.deepcopy(config.DEFAULT_ANALYTICS)
            merged.update(analytics.value or {})
            self.state.analytics = merged
        else:
            self.logger.warning(f"[DASHBOARD] Analytics unavailable, using defaults: {analytics.error}")
            self.state.analytics = copy.deepcopy(config.DEFAULT_ANALYTICS)

        critical_failure = None
        for kind, outcome in zip(kinds, listings):
            if outcome.ok:
                self.state.collections[kind] = build_collection(kind, outcome.value)
            elif kind in config.NON_CRITICAL_KINDS:
                self.logger.warning(f"[DASHBOARD] {kind} unavailable, showing none: {outcome.error}")
                self.state.collections[kind] = build_collection(kind)
            else:
                self.logger.error(f"[DASHBOARD] Failed to load {kind}: {outcome.error}")
                critical_failure = critical_failure or outcome.error

        if critical_failure is not None:
            # Rate limiting gets its own message; anything else is reported generically
            if isinstance(critical_failure, RateLimitError):
                self.state.error = critical_failure.user_message
            else:
                self.state.error = config.DASHBOARD_LOAD_FAILED_MESSAGE
            self.state.can_retry = True
        else:
            counts = ", ".join(f"{k}={len(self.state.collection(k))}" for k in kinds)
            self.logger.info(f"[DASHBOARD] Loaded: {counts}")
        return self.state

    async def retry_load(self) -> DashboardState:
        """Repeat the initial load after a dashboard-level error."""
        return await self.load()

    async def refetch(self, kind: str) -> bool:
        """Rebuild one collection from the server."""
        outcome = await self._call(self._resource(kind).list, label=f"refetch {kind}")
        if not outcome.ok:
            self._notify(f"Could not refresh {kind} list: {outcome.error.user_message}")
            return False
        self.state.collections[kind] = build_collection(kind, outcome.value)
        return True

    async def _apply(self, kind: str, reconcile: Callable[[OrderedCollection], OrderedCollection]):
        """Fold a server response into the current collection, refetching if it is ambiguous."""
        try:
            self.state.collections[kind] = reconcile(self.state.collection(kind))
        except RefetchRequired as e:
            self.logger.info(f"[DASHBOARD] {e}")
            await self.refetch(kind)

    # ------------------------------------------------------------------
    # Editors
    # ------------------------------------------------------------------

    def open_editor(self, kind: str, entity: Optional[Dict[str, Any]] = None) -> FormWizard:
        """Open a create editor, or an edit editor pre-filled from ``entity``."""
        self.logger.debug(f"[DASHBOARD] Opening {kind} editor ({'edit' if entity else 'create'})")
        return FormWizard(new_draft(kind, entity))

    async def submit(self, wizard: FormWizard) -> bool:
        """Submit an editor. Errors end up on the wizard, never raised."""
        return await wizard.submit(self._persist_draft)

    async def _persist_draft(self, draft: EntityDraft) -> RemoteCallResult:
        kind = draft.KIND

        # The wizard only checks the step it is on; the payload needs every step
        errors = draft.validate_all()
        if errors:
            raise DraftValidationError(errors)

        slug = getattr(draft, "slug", None)
        if slug is not None:
            conflict = find_slug_conflict(draft.resolved_slug(), self.state.collection(kind), draft.entity_id)
            if conflict is not None:
                raise DraftValidationError({"slug": "This slug is already used by another item"})

        if draft.pending_media:
            await self._upload_pending_media(draft)

        payload = draft.to_payload()
        resource = self._resource(kind)
        if draft.is_edit:
            outcome = await self._call(resource.update, draft.entity_id, payload, label=f"update {kind}")
        else:
            outcome = await self._call(resource.create, payload, label=f"create {kind}")

        if not outcome.ok:
            return outcome

        saved = outcome.value
        if draft.is_edit:
            await self._apply(kind, lambda c: reconcile_update(c, draft.entity_id, saved))
        else:
            await self._apply(kind, lambda c: reconcile_create(c, saved))
        self.logger.info(f"[DASHBOARD] Saved {kind} {entity_id(saved) or ''}".rstrip())
        return outcome

    async def _upload_pending_media(self, draft: EntityDraft):
        """Upload a draft's pending files. Failures become notices; successes attach."""
        if self.uploader is None:
            self._notify("Image uploads are not configured; saving without the selected images.")
            draft.attach_media([])
            return

        files = list(draft.pending_media)
        results = await self.uploader.upload_batch(
            files,
            UploadOptions(folder=draft.UPLOAD_FOLDER, tags=[draft.KIND]),
        )
        uploaded, failed = summarize_batch(files, results)
        for file, error in failed:
            self._notify(f"{file.filename}: {describe_error(error)}")
        draft.attach_media(uploaded)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def _confirmed(self, message: str) -> bool:
        if self.confirm is None:
            return False
        answer = self.confirm(message)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def delete(self, kind: str, id_: str) -> bool:
        """Delete an entity after explicit confirmation."""
        resource = self._resource(kind)
        message = config.DELETE_CONFIRMATION_TEMPLATE.format(kind=kind)
        if not await self._confirmed(message):
            self.logger.info(f"[DASHBOARD] Delete of {kind} {id_} cancelled")
            return False

        outcome = await self._call(resource.delete, id_, label=f"delete {kind}")
        if not outcome.ok:
            self._notify(f"Failed to delete {kind}. {outcome.error.user_message}")
            return False

        self.state.collections[kind] = reconcile_delete(self.state.collection(kind), id_)
        self.logger.info(f"[DASHBOARD] Deleted {kind} {id_}")
        return True

    # ------------------------------------------------------------------
    # Resumes and messages
    # ------------------------------------------------------------------

    async def upload_resume(self, file: MediaFile, title: str = "", description: str = "") -> bool:
        """Validate and upload a resume document, then add it to the resume list."""
        try:
            validate_upload(file, DOCUMENT_RULES)
        except UploadValidationError as e:
            self._notify(f"{file.filename}: {e}")
            return False

        title = title.strip() or f"Resume - {date.today().isoformat()}"
        outcome = await self._call(
            self.api.resumes.upload, file.filename, file.content, title, description, file.media_type,
            label="upload resume",
        )
        if not outcome.ok:
            self._notify(f"Failed to upload resume. {outcome.error.user_message}")
            return False

        await self._apply(config.KIND_RESUME, lambda c: reconcile_create(c, outcome.value))
        return True

    async def toggle_resume(self, id_: str) -> bool:
        """Flip a resume's active flag. Only one resume can be active."""
        outcome = await self._call(self.api.resumes.toggle, id_, label="toggle resume")
        if not outcome.ok:
            self._notify(f"Failed to update resume status. {outcome.error.user_message}")
            return False

        saved = outcome.value

        def reconcile(collection: OrderedCollection) -> OrderedCollection:
            collection = reconcile_update(collection, id_, saved)
            if saved.get("isActive"):
                for item in collection.as_list():
                    other_id = entity_id(item)
                    if other_id != id_ and item.get("isActive"):
                        collection = reconcile_update(collection, other_id, dict(item, isActive=False))
            return collection

        await self._apply(config.KIND_RESUME, reconcile)
        return True

    async def update_contact_status(self, id_: str, status: str) -> bool:
        """Change a contact message's status (new, read, replied, archived)."""
        if status not in config.CONTACT_STATUSES:
            self._notify(f"Unknown message status '{status}'")
            return False

        outcome = await self._call(self.api.contacts.update_status, id_, status, label="update contact")
        if not outcome.ok:
            self._notify(f"Failed to update message. {outcome.error.user_message}")
            return False

        await self._apply(config.KIND_CONTACT, lambda c: reconcile_update(c, id_, outcome.value))
        return True

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self):
        self.executor.shutdown(wait=False)
