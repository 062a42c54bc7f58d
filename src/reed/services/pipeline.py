"""Import pipeline that turns candidate files into library records."""

from __future__ import annotations

import errno
import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, Sequence

from reed.errors import MatchError, ParseError
from reed.logs import get_logger
from reed.models import Library, LibraryRecord, MetadataRecord
from .bibliography import ParseResult, parse_bibliography
from .digest import DigestResult, digest_files
from .matching import ImportCandidate, MatchContext, RecordMatcher, default_matcher
from .naming import NameAllocator, NameTemplate, NamingOptions, fit_name
from .storage import JsonLibraryStore, LibraryStore

logger = get_logger(__name__)

DEFAULT_STORE_FILENAME = "library.json"


class ImportStatus(str, Enum):
    COMMITTED = "committed"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"


class ImportStage(str, Enum):
    """Where a file was in the pipeline when it reached its outcome."""

    DIGESTING = "digesting"
    MATCHING = "matching"
    CHECKING_STORE = "checking_store"
    MOVING = "moving"
    COMMITTING = "committing"


@dataclass(slots=True)
class ImportOutcome:
    source: Path
    status: ImportStatus
    stage: ImportStage
    library_path: Path | None = None
    digest: str | None = None
    linked_key: str | None = None
    reason: str | None = None


@dataclass(slots=True)
class ImportReport:
    outcomes: list[ImportOutcome] = field(default_factory=list)
    parse_errors: list[ParseError] = field(default_factory=list)

    def _with_status(self, status: ImportStatus) -> list[ImportOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    @property
    def committed(self) -> list[ImportOutcome]:
        return self._with_status(ImportStatus.COMMITTED)

    @property
    def skipped(self) -> list[ImportOutcome]:
        return self._with_status(ImportStatus.SKIPPED_DUPLICATE)

    @property
    def failed(self) -> list[ImportOutcome]:
        return self._with_status(ImportStatus.FAILED)


class ImportPipeline:
    """Coordinates digesting, matching, naming, moving and persistence.

    The library is loaded once before any file is touched and persisted once
    after every file reached an outcome. Errors on one file never stop the
    others; bibliography and store errors abort before anything is moved.
    """

    def __init__(
        self,
        store: LibraryStore,
        template: NameTemplate | str,
        *,
        matcher: RecordMatcher | None = None,
        transfer_mode: Literal["move", "copy"] = "move",
        digest_workers: int = 1,
    ) -> None:
        self._store = store
        self._template = template if isinstance(template, NameTemplate) else NameTemplate(template)
        self._matcher = matcher or default_matcher()
        self._transfer_mode = transfer_mode
        self._digest_workers = digest_workers

    def import_bibliography(
        self,
        bibliography: str | bytes | None,
        candidates: Sequence[Path | ImportCandidate],
    ) -> ImportReport:
        parsed = parse_bibliography(bibliography) if bibliography else ParseResult()
        return self.run(candidates, parsed.records, parse_errors=parsed.errors)

    def run(
        self,
        candidates: Sequence[Path | ImportCandidate],
        records: Sequence[MetadataRecord] = (),
        *,
        parse_errors: Sequence[ParseError] = (),
    ) -> ImportReport:
        library = self._store.load()
        items = [_as_candidate(candidate) for candidate in candidates]
        context = MatchContext(records=list(records), batch_size=len(items))
        allocator = NameAllocator(
            library.root,
            reserved=library.library_paths(),
            max_length=self._template.options.max_length,
        )
        digests = digest_files([item.path for item in items], workers=self._digest_workers)

        report = ImportReport(parse_errors=list(parse_errors))
        for candidate, digest in zip(items, digests):
            outcome = self._import_one(candidate, digest, library, context, allocator)
            logger.info(
                f"import.{outcome.status.value}",
                source=str(outcome.source),
                library_path=str(outcome.library_path) if outcome.library_path else None,
                reason=outcome.reason,
            )
            report.outcomes.append(outcome)

        if report.committed:
            self._store.persist(library)
        return report

    def _import_one(
        self,
        candidate: ImportCandidate,
        digested: DigestResult,
        library: Library,
        context: MatchContext,
        allocator: NameAllocator,
    ) -> ImportOutcome:
        source = candidate.path
        if digested.digest is None:
            return _failed(source, ImportStage.DIGESTING, f"Cannot read file: {digested.error}")
        digest = digested.digest

        try:
            record = self._matcher.match(candidate, context)
        except MatchError as exc:
            return _failed(source, ImportStage.MATCHING, str(exc), digest=digest)
        linked_key = record.key if record else None

        existing = library.find_by_digest(digest)
        if existing is not None:
            return ImportOutcome(
                source=source,
                status=ImportStatus.SKIPPED_DUPLICATE,
                stage=ImportStage.CHECKING_STORE,
                library_path=library.absolute_path(existing),
                digest=digest,
                linked_key=existing.linked_key,
            )

        stem, extension = self._template.render(record, source.name, fallback=digest[:16])
        name = self._adopt_in_place(source, stem, extension, library, allocator)
        if name is None:
            name = allocator.allocate(stem, extension)
            try:
                self._transfer(source, library.root / name)
            except OSError as exc:
                allocator.release(name)
                return _failed(
                    source, ImportStage.MOVING, str(exc), digest=digest, linked_key=linked_key
                )
        target = library.root / name

        library.insert(
            LibraryRecord(
                digest=digest,
                library_path=name,
                linked_key=linked_key,
                fields=self._template.provenance(record),
                source_name=source.name,
            )
        )
        return ImportOutcome(
            source=source,
            status=ImportStatus.COMMITTED,
            stage=ImportStage.COMMITTING,
            library_path=target,
            digest=digest,
            linked_key=linked_key,
        )

    def _adopt_in_place(
        self,
        source: Path,
        stem: str,
        extension: str,
        library: Library,
        allocator: NameAllocator,
    ) -> str | None:
        """Keep a file that already sits in the root under its canonical name.

        This is the state an interrupted batch leaves behind: moved on disk but
        never recorded.
        """
        name = fit_name(stem, extension, self._template.options.max_length)
        if source.name != name or allocator.is_reserved(name):
            return None
        if source.parent.resolve() != library.root.resolve():
            return None
        allocator.reserve(name)
        return name

    def _transfer(self, source: Path, target: Path) -> None:
        if os.path.lexists(target):
            raise FileExistsError(errno.EEXIST, "Destination already exists", str(target))
        target.parent.mkdir(parents=True, exist_ok=True)
        if self._transfer_mode == "copy":
            shutil.copy2(source, target)
        else:
            shutil.move(str(source), str(target))


def import_files(
    bibliography: str | bytes | None,
    candidate_files: Sequence[Path | ImportCandidate],
    library_root: Path,
    template: str,
    *,
    store: LibraryStore | None = None,
    matcher: RecordMatcher | None = None,
    options: NamingOptions | None = None,
    transfer_mode: Literal["move", "copy"] = "move",
) -> ImportReport:
    """Import one batch of files into the library at ``library_root``."""
    if store is None:
        store = JsonLibraryStore(library_root / DEFAULT_STORE_FILENAME, library_root)
    pipeline = ImportPipeline(
        store,
        NameTemplate(template, options),
        matcher=matcher,
        transfer_mode=transfer_mode,
    )
    return pipeline.import_bibliography(bibliography, candidate_files)


def _as_candidate(candidate: Path | ImportCandidate) -> ImportCandidate:
    if isinstance(candidate, ImportCandidate):
        return candidate
    return ImportCandidate(path=Path(candidate))


def _failed(
    source: Path,
    stage: ImportStage,
    reason: str,
    *,
    digest: str | None = None,
    linked_key: str | None = None,
) -> ImportOutcome:
    return ImportOutcome(
        source=source,
        status=ImportStatus.FAILED,
        stage=stage,
        digest=digest,
        linked_key=linked_key,
        reason=reason,
    )
