"""
Ledger NFT snapshot pipeline.
"""

from .core import NFTSnapshotWorker, ColorEnrichmentWorker
from .models import NFTRecord, RawTokenEntry

__all__ = ['NFTSnapshotWorker', 'ColorEnrichmentWorker', 'NFTRecord', 'RawTokenEntry']
