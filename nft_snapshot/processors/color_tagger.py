import logging
from typing import List, Optional, Sequence

from ..clients import ClassificationFailure, OpenRouterClient
from ..config import Config
from ..models import NFTRecord
from ..storage import ColorCache
from .batching import run_in_batches

logger = logging.getLogger(__name__)

NO_LABEL = 'none'


def parse_labels(reply: str, vocabulary: Sequence[str] = Config.COLOR_VOCABULARY) -> List[str]:
    """
    Parse a reply like "blue, red" into vocabulary labels.

    "none" yields []. Unknown words are dropped; order of first mention is kept.
    """
    text = reply.strip().lower()
    if text.strip('."\'') == NO_LABEL:
        return []
    allowed = set(vocabulary)
    labels: List[str] = []
    for part in text.split(','):
        label = part.strip().strip('."\'').strip()
        if label in allowed and label not in labels:
            labels.append(label)
    return labels


def merge_colors(records: Sequence[NFTRecord], cache: ColorCache) -> Sequence[NFTRecord]:
    """Set every record's colors from the cache, [] when it has no entry."""
    for record in records:
        record.colors = cache.get(record.id) or []
    return records


class ColorTagger:
    """
    Tags NFT images with colour labels through a vision model.
    Only records with an image and no cache entry are sent.
    """

    def __init__(self, client: OpenRouterClient, cache: ColorCache, batch_size: Optional[int] = None,
                 vocabulary: Sequence[str] = Config.COLOR_VOCABULARY):
        self.client = client
        self.cache = cache
        self.batch_size = batch_size or Config.COLOR_BATCH_SIZE
        self.vocabulary = tuple(vocabulary)
        self.stats = {'candidates': 0, 'tagged': 0, 'failed': 0, 'batches': 0}

    def tag_image(self, nft_id: str, image_url: str) -> Optional[List[str]]:
        """Labels for one image, or None when the call failed and nothing should be cached."""
        try:
            reply = self.client.classify_image(image_url)
        except ClassificationFailure as e:
            logger.warning(f'Failed to tag {nft_id} ({image_url[-40:]}): {e}')
            return None
        return parse_labels(reply, self.vocabulary)

    def untagged(self, records: Sequence[NFTRecord]) -> List[NFTRecord]:
        seen = set()
        pending = []
        for record in records:
            if record.image_url and record.id not in self.cache and record.id not in seen:
                seen.add(record.id)
                pending.append(record)
        return pending

    def tag_records(self, records: Sequence[NFTRecord]) -> int:
        """
        Tag every untagged record, writing to the cache after each batch joins.

        Returns:
            Number of new cache entries
        """
        pending = self.untagged(records)
        self.stats['candidates'] = len(pending)
        logger.info(f'Color cache: {len(self.cache):,} entries cached. {len(pending):,} NFTs to tag.')

        done = 0
        for batch, results in run_in_batches(pending, lambda r: self.tag_image(r.id, r.image_url), self.batch_size):
            self.stats['batches'] += 1
            for record, labels in zip(batch, results):
                if labels is None:
                    self.stats['failed'] += 1
                elif self.cache.put(record.id, labels):
                    self.stats['tagged'] += 1
            done += len(batch)
            logger.info(f'  Tagged: {done}/{len(pending)}')

        logger.info(f'Tagged {self.stats["tagged"]:,} new NFTs ({self.stats["failed"]:,} failed, will retry next run)')
        return self.stats['tagged']
