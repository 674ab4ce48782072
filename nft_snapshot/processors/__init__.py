from .batching import chunks, run_in_batches
from .ledger_scanner import LedgerScanner
from .content_resolver import (
    ContentResolver,
    FetchFailure,
    ResolvedContent,
    UnresolvableContentError,
    is_valid_cid,
)
from .color_tagger import ColorTagger, merge_colors, parse_labels

__all__ = [
    'chunks',
    'run_in_batches',
    'LedgerScanner',
    'ContentResolver',
    'FetchFailure',
    'ResolvedContent',
    'UnresolvableContentError',
    'is_valid_cid',
    'ColorTagger',
    'merge_colors',
    'parse_labels',
]
