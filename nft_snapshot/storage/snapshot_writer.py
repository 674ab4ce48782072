import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..models import NFTRecord
from .atomic import write_text_atomic

logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision and a 'Z' suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass
class Snapshot:
    fetched_at: str
    records: List[NFTRecord]


class SnapshotWriter:

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def write(self, records: Sequence[NFTRecord], fetched_at: Optional[str] = None) -> Snapshot:
        snapshot = Snapshot(fetched_at=fetched_at or utc_timestamp(), records=list(records))
        document = {
            'fetched_at': snapshot.fetched_at,
            'count': len(snapshot.records),
            'nfts': [r.to_dict() for r in snapshot.records],
        }
        write_text_atomic(self.path, json.dumps(document, separators=(',', ':'), ensure_ascii=False))
        logger.info(f'Saved {len(snapshot.records):,} NFTs to {self.path}')
        return snapshot

    def read(self) -> Snapshot:
        with open(self.path, 'r', encoding='utf-8') as f:
            document = json.load(f)
        records = [NFTRecord.from_dict(item) for item in document.get('nfts') or []]
        return Snapshot(fetched_at=document.get('fetched_at') or '', records=records)
