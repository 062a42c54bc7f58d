"""Service layer: parsing, digesting, naming, storage and the import pipeline."""

from .bibliography import ParseResult, parse_bibliography
from .digest import DigestResult, digest_bytes, digest_files, sha256_file
from .matching import (
    DoiMatcher,
    ExplicitKeyMatcher,
    FilenameKeyMatcher,
    ImportCandidate,
    MatchContext,
    MatcherChain,
    RecordMatcher,
    SingleRecordMatcher,
    default_matcher,
)
from .naming import NameAllocator, NameTemplate, NamingOptions, render
from .pipeline import (
    ImportOutcome,
    ImportPipeline,
    ImportReport,
    ImportStage,
    ImportStatus,
    import_files,
)
from .resolvers import CrossrefResolver
from .storage import (
    JsonLibraryStore,
    LibraryStore,
    MemoryLibraryStore,
    load_store,
    persist_store,
)

__all__ = [
    "ParseResult",
    "parse_bibliography",
    "DigestResult",
    "digest_bytes",
    "digest_files",
    "sha256_file",
    "DoiMatcher",
    "ExplicitKeyMatcher",
    "FilenameKeyMatcher",
    "ImportCandidate",
    "MatchContext",
    "MatcherChain",
    "RecordMatcher",
    "SingleRecordMatcher",
    "default_matcher",
    "NameAllocator",
    "NameTemplate",
    "NamingOptions",
    "render",
    "ImportOutcome",
    "ImportPipeline",
    "ImportReport",
    "ImportStage",
    "ImportStatus",
    "import_files",
    "CrossrefResolver",
    "JsonLibraryStore",
    "LibraryStore",
    "MemoryLibraryStore",
    "load_store",
    "persist_store",
]
