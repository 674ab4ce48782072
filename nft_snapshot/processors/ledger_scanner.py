import json
import logging
from typing import Any, Iterable, Iterator, List, Optional

from ..clients import LedgerQueryError, LedgerRpcClient
from ..codec import AddressCodec, MalformedIdentifierError, decode_token
from ..config import Config
from ..models import NFTRecord, RawTokenEntry

logger = logging.getLogger(__name__)


def _marker_key(marker: Any) -> str:
    # Markers are opaque; some nodes return objects rather than strings
    return json.dumps(marker, sort_keys=True) if not isinstance(marker, str) else marker


class LedgerScanner:
    """
    Ledger scanner.
    Pages through every NFTokenPage of the latest validated ledger, one
    request at a time, following the marker until a page comes back without one.
    """

    def __init__(self, rpc_client: LedgerRpcClient, address_codec: Optional[AddressCodec] = None,
                 page_limit: Optional[int] = None, abort_on_malformed: Optional[bool] = None):
        self.rpc_client = rpc_client
        self.address_codec = address_codec or AddressCodec()
        self.page_limit = page_limit or Config.LEDGER_PAGE_LIMIT
        self.abort_on_malformed = Config.ABORT_ON_MALFORMED_ID if abort_on_malformed is None else abort_on_malformed
        self.stats = {'pages': 0, 'tokens': 0, 'skipped': 0}

    def scan(self) -> Iterator[RawTokenEntry]:
        """
        Yield every NFToken occurrence in request order.

        Raises:
            LedgerQueryError: If any page fails or the node hands back a marker already requested
        """
        requested = set()
        marker = None
        while True:
            if marker is not None:
                key = _marker_key(marker)
                if key in requested:
                    raise LedgerQueryError(f'Node returned marker {key!r} twice; refusing to re-request it',
                                           code='repeated_marker')
                requested.add(key)

            result = self.rpc_client.ledger_data_nft_page(self.page_limit, marker)
            page_tokens = 0
            for entry in result.get('state') or []:
                for wrapper in entry.get('NFTokens') or []:
                    token = wrapper.get('NFToken') or {}
                    page_tokens += 1
                    yield RawTokenEntry(token_id=token.get('NFTokenID'), uri_hex=token.get('URI') or None)

            self.stats['pages'] += 1
            self.stats['tokens'] += page_tokens
            logger.info(f"  Page {self.stats['pages']}: {self.stats['tokens']:,} NFTs collected")

            marker = result.get('marker')
            if marker is None:
                return

    def build_records(self, entries: Iterable[RawTokenEntry]) -> List[NFTRecord]:
        """
        Decode raw entries into NFT records.

        Malformed NFTokenIDs are skipped with a warning, or re-raised when
        abort_on_malformed is set.
        """
        records: List[NFTRecord] = []
        for entry in entries:
            try:
                decoded = decode_token(entry.token_id, entry.uri_hex)
            except MalformedIdentifierError as e:
                if self.abort_on_malformed:
                    raise
                self.stats['skipped'] += 1
                logger.warning(f'Skipping token: {e}')
                continue

            records.append(NFTRecord(
                id=entry.token_id,
                issuer=self.address_codec.address_for(decoded.issuer_id),
                seq=decoded.seq,
                uri=decoded.uri,
            ))

        logger.info(f'Decoded {len(records):,} NFTs from {len(self.address_codec.cache):,} issuers '
                    f'({self.stats["skipped"]:,} malformed skipped)')
        return records

    def scan_records(self) -> List[NFTRecord]:
        return self.build_records(self.scan())
