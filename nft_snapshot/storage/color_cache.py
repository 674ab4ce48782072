import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .atomic import write_text_atomic

logger = logging.getLogger(__name__)


class ColorCache:
    """
    Persisted NFT id -> colour labels.

    Append-only: an id that has an entry keeps it forever, even if the NFT
    leaves the ledger. A missing id means "never tagged"; an empty list
    means "tagged, nothing matched".
    """

    def __init__(self, path: Union[str, Path], entries: Optional[Dict[str, List[str]]] = None):
        self.path = Path(path)
        self._entries: Dict[str, List[str]] = dict(entries or {})

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ColorCache':
        path = Path(path)
        if not path.exists():
            logger.info(f'No color cache at {path}, starting empty')
            return cls(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f'Color cache {path} must be a JSON object, got {type(data).__name__}')
        entries = {str(k): [str(c) for c in (v or [])] for k, v in data.items()}
        return cls(path, entries)

    def get(self, nft_id: str) -> Optional[List[str]]:
        labels = self._entries.get(nft_id)
        return list(labels) if labels is not None else None

    def put(self, nft_id: str, labels: Iterable[str]) -> bool:
        """Record labels for an id seen for the first time; returns False if already cached."""
        if nft_id in self._entries:
            return False
        self._entries[nft_id] = list(labels)
        return True

    def __contains__(self, nft_id: str) -> bool:
        return nft_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def to_json(self) -> str:
        return json.dumps(self._entries, indent=2) + '\n'

    def save(self):
        write_text_atomic(self.path, self.to_json())
        logger.info(f'Saved {len(self._entries):,} color cache entries to {self.path}')
