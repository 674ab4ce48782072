from .main import NFTSnapshotWorker
from .enrichment import ColorEnrichmentWorker

__all__ = ['NFTSnapshotWorker', 'ColorEnrichmentWorker']
