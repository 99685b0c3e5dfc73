"""Publication pipeline — document → content store → ledger record.

A run moves through ``validating → uploading_content → committing → done``
and stops in ``failed`` on the first error, remembering which phase
failed.  Upload always finishes before the commit starts because the
commit payload carries the upload's content reference.

If the commit fails after a successful upload, the raised
``LedgerCommitError`` carries that reference.  Retrying is up to the
caller: pass ``content_ref`` back to ``publish`` and the upload is skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from ledgerpub.address import AddressDeriver, max_title_bytes, title_byte_length
from ledgerpub.config import LedgerPubConfig
from ledgerpub.content import ContentStore
from ledgerpub.dedup import DedupGuard
from ledgerpub.errors import (
    ContentStoreError,
    DuplicateError,
    LedgerCommitError,
    LedgerPubError,
    PipelineBusyError,
    ValidationError,
)
from ledgerpub.ledger import Ledger, build_create_instruction, sign_instruction
from ledgerpub.models import (
    PipelineRun,
    PipelineState,
    PublishRequest,
    PublishResult,
    Record,
    RecordPayload,
)
from ledgerpub.signer import Signer

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[PipelineRun], None]


class PublicationPipeline:
    """Orchestrates validation, content upload and the ledger commit.

    Only one run per author identity may be in flight; a second call while
    one is active raises ``PipelineBusyError`` instead of interleaving two
    commits for the same derived address.
    """

    def __init__(
        self,
        config: LedgerPubConfig,
        content_store: ContentStore,
        ledger: Ledger,
        *,
        deriver: AddressDeriver | None = None,
        dedup: DedupGuard | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        self.config = config
        self._content_store = content_store
        self._ledger = ledger
        self._deriver = deriver or AddressDeriver.from_config(config)
        self._dedup = dedup or DedupGuard(self._deriver, ledger)
        self._on_transition = on_transition
        self._active: set[str] = set()
        self.last_run: PipelineRun | None = None

    @property
    def deriver(self) -> AddressDeriver:
        return self._deriver

    def is_active(self, author: str) -> bool:
        return author in self._active

    # ── Validation ───────────────────────────────────────────────

    def validate(self, request: PublishRequest, *, require_document: bool = True) -> None:
        """Check a request without side effects.

        Raises:
            ValidationError: On the first failed check.
        """
        title = request.title
        if not title.strip():
            raise ValidationError("Please provide a title", field="title")

        limit = max_title_bytes(self._deriver.schema_version)
        size = title_byte_length(title)
        if size > limit:
            raise ValidationError(
                f"Title is {size} bytes; the limit is {limit} bytes", field="title"
            )

        if require_document:
            document = request.document
            if document is None:
                raise ValidationError("Please select a file", field="document")
            if document.size == 0:
                raise ValidationError("The selected file is empty", field="document")
            max_bytes = self.config.content.max_file_bytes
            if document.size > max_bytes:
                raise ValidationError(
                    f"File is {document.size} bytes; the limit is {max_bytes} bytes",
                    field="document",
                )
            allowed = self.config.content.allowed_extensions
            if allowed and document.extension not in allowed:
                raise ValidationError(
                    f"File type '{document.extension or document.filename}' is not allowed",
                    field="document",
                )

        if not request.consent:
            raise ValidationError("You must agree to the terms before publishing", field="consent")

    # ── Public API ───────────────────────────────────────────────

    async def publish(
        self,
        request: PublishRequest,
        signer: Signer,
        *,
        content_ref: str | None = None,
    ) -> PublishResult:
        """Publish a document and commit its index record.

        Args:
            request: Title, attached document and consent flag.
            signer: Signs the create instruction; its identity is the author.
            content_ref: Reference from a previous ``LedgerCommitError``.
                When given, the upload phase is skipped and no document is
                required.

        Returns:
            The committed record with its transaction reference.

        Raises:
            PipelineBusyError: If a run for this author is already active.
            ValidationError: If the request fails validation.
            DuplicateError: If the derived address is already occupied.
            ContentStoreError: If the upload fails.
            LedgerCommitError: If the commit fails after a successful upload.
            ReadError: If the duplicate pre-check cannot reach the ledger.
        """
        return await self._guarded(request, signer, content_ref=content_ref, include_legacy=True)

    async def migrate(self, record: Record, signer: Signer) -> PublishResult:
        """Re-commit a legacy record under the canonical address.

        Reuses the record's existing content reference; nothing is uploaded.
        Only the record's author can migrate it.
        """
        if record.schema_version == self._deriver.schema_version:
            raise ValidationError(
                f"Record {record.ledger_address} already uses the canonical scheme",
                field="schema_version",
            )
        if signer.identity != record.author:
            raise ValidationError("Only the original author can migrate a record", field="author")

        request = PublishRequest(title=record.title, consent=True)
        logger.info("Migrating v%d record %s", record.schema_version, record.ledger_address)
        return await self._guarded(
            request, signer, content_ref=record.content_ref, include_legacy=False
        )

    # ── Private helpers ──────────────────────────────────────────

    async def _guarded(
        self,
        request: PublishRequest,
        signer: Signer,
        *,
        content_ref: str | None,
        include_legacy: bool,
    ) -> PublishResult:
        author = signer.identity
        if author in self._active:
            raise PipelineBusyError(f"A publish run is already active for {author}")

        self._active.add(author)
        try:
            run = PipelineRun(author=author, title=request.title)
            self.last_run = run
            return await self._run(run, request, signer, content_ref, include_legacy)
        finally:
            self._active.discard(author)

    async def _run(
        self,
        run: PipelineRun,
        request: PublishRequest,
        signer: Signer,
        content_ref: str | None,
        include_legacy: bool,
    ) -> PublishResult:
        # Validating
        self._enter(run, PipelineState.VALIDATING)
        try:
            self.validate(request, require_document=content_ref is None)
            address = self._deriver.derive(run.author, request.title)
            run.ledger_address = address
            if self.config.publish.dedup_precheck:
                existing = await self._dedup.find(
                    run.author, request.title, include_legacy=include_legacy
                )
                if existing is not None:
                    raise DuplicateError(
                        f"'{request.title}' is already published by this author",
                        address=existing,
                        content_ref=content_ref,
                    )
        except LedgerPubError as exc:
            self._fail(run, exc)
            raise

        # UploadingContent
        if content_ref is None:
            self._enter(run, PipelineState.UPLOADING_CONTENT)
            document = request.document
            if document is None:
                error = ValidationError("A document is required to upload", field="document")
                self._fail(run, error)
                raise error
            try:
                content_ref = await self._content_store.put(document)
            except ContentStoreError as exc:
                self._fail(run, exc)
                raise
            except Exception as exc:
                error = ContentStoreError(f"Upload failed: {exc}")
                self._fail(run, error)
                raise error from exc
            if not content_ref:
                error = ContentStoreError("Content store returned an empty reference")
                self._fail(run, error)
                raise error
        else:
            logger.info("Reusing content %s, skipping upload", content_ref)
        run.content_ref = content_ref

        # Committing
        self._enter(run, PipelineState.COMMITTING)
        payload = RecordPayload(
            schema_version=self._deriver.schema_version,
            title=request.title,
            content_ref=content_ref,
            author=run.author,
        )
        instruction = build_create_instruction(self.config.ledger.program_id, address, payload)
        try:
            tx_ref = await self._ledger.submit(sign_instruction(instruction, signer))
        except DuplicateError as exc:
            error = DuplicateError(str(exc), address=address, content_ref=content_ref)
            self._fail(run, error)
            raise error from exc
        except Exception as exc:
            error = LedgerCommitError(
                f"Saving to the ledger failed: {exc}", content_ref=content_ref, address=address
            )
            self._fail(run, error)
            raise error from exc

        run.tx_ref = tx_ref
        self._enter(run, PipelineState.DONE)
        logger.info("Published '%s' at %s (tx %s)", request.title, address, tx_ref)

        record = Record(
            author=run.author,
            title=request.title,
            content_ref=content_ref,
            ledger_address=address,
            schema_version=payload.schema_version,
            tx_ref=tx_ref,
            created_at=datetime.now(tz=UTC),
        )
        return PublishResult(record=record, content_ref=content_ref, tx_ref=tx_ref)

    def _enter(self, run: PipelineRun, state: PipelineState) -> None:
        run.state = state
        run.history.append(state)
        logger.info("Publish '%s': %s", run.title, state.value)
        self._notify(run)

    def _fail(self, run: PipelineRun, exc: Exception) -> None:
        run.failed_phase = run.state
        run.error = str(exc)
        run.state = PipelineState.FAILED
        run.history.append(PipelineState.FAILED)
        logger.warning("Publish '%s' failed during %s: %s", run.title, run.failed_phase, exc)
        self._notify(run)

    def _notify(self, run: PipelineRun) -> None:
        if self._on_transition is not None:
            self._on_transition(run)
