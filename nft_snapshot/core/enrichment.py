import logging
import time
from typing import Optional

from ..clients import OpenRouterClient
from ..config import Config
from ..processors import ColorTagger, merge_colors
from ..storage import ColorCache, SnapshotWriter
from .report import log_performance_report, log_results

logger = logging.getLogger(__name__)


class ColorEnrichmentWorker:
    """
    Second pass over an existing snapshot: tag untagged images, persist the
    colour cache, then merge labels into the snapshot and rewrite it.
    """

    def __init__(self, snapshot_path: Optional[str] = None, cache_path: Optional[str] = None,
                 batch_size: Optional[int] = None, client: Optional[OpenRouterClient] = None):
        self.writer = SnapshotWriter(snapshot_path or Config.SNAPSHOT_PATH)
        self.cache = ColorCache.load(cache_path or Config.COLOR_CACHE_PATH)
        self.tagger = ColorTagger(client or OpenRouterClient(), self.cache, batch_size=batch_size)
        self.performance_metrics = {}

    def run(self) -> int:
        total_start = time.time()
        logger.info('=' * 100)
        logger.info('STARTING COLOR ENRICHMENT')
        logger.info('=' * 100)

        snapshot = self.writer.read()
        logger.info(f'Loaded {len(snapshot.records):,} NFTs from {self.writer.path} (fetched {snapshot.fetched_at})')

        step_start = time.time()
        tagged = self.tagger.tag_records(snapshot.records)
        self.performance_metrics['tag_colors'] = time.time() - step_start

        step_start = time.time()
        self.cache.save()
        merge_colors(snapshot.records, self.cache)
        self.writer.write(snapshot.records, fetched_at=snapshot.fetched_at)
        logger.info(f'Updated {self.writer.path} with color tags')
        self.performance_metrics['merge_and_write'] = time.time() - step_start

        self.performance_metrics['total'] = time.time() - total_start
        log_results(snapshot.records, title='COLOR ENRICHMENT RESULTS')
        log_performance_report(self.performance_metrics)
        return tagged
