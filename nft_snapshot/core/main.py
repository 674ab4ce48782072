import logging
import time
from typing import Optional

from ..clients import LedgerRpcClient
from ..codec import AddressCache, AddressCodec
from ..config import Config, setup_logging
from ..processors import ContentResolver, LedgerScanner
from ..storage import SnapshotWriter
from .report import log_performance_report, log_results

logger = logging.getLogger(__name__)


class NFTSnapshotWorker:
    """
    Ledger → snapshot worker.
    Scans every NFT page, decodes ids and issuers, resolves content and
    writes nft-data.json once at the very end. A failed scan writes nothing.
    """

    def __init__(self, snapshot_path: Optional[str] = None, resolve_batch_size: Optional[int] = None,
                 rpc_client: Optional[LedgerRpcClient] = None, resolver: Optional[ContentResolver] = None,
                 abort_on_malformed: Optional[bool] = None):
        logger.info('Initializing NFT Snapshot Worker')
        self.address_cache = AddressCache()
        self.scanner = LedgerScanner(
            rpc_client or LedgerRpcClient(),
            address_codec=AddressCodec(self.address_cache),
            abort_on_malformed=abort_on_malformed,
        )
        self.resolver = resolver or ContentResolver(batch_size=resolve_batch_size)
        self.writer = SnapshotWriter(snapshot_path or Config.SNAPSHOT_PATH)
        self.performance_metrics = {}
        logger.info(f'RPC: {self.scanner.rpc_client.rpc_url} | gateway: {self.resolver.gateway} | '
                    f'resolve batch size: {self.resolver.batch_size}')

    def run(self) -> int:
        total_start = time.time()
        logger.info('=' * 100)
        logger.info('STARTING NFT SNAPSHOT')
        logger.info('=' * 100)

        logger.info('Step 1/3: Scanning ledger NFT pages')
        step_start = time.time()
        records = self.scanner.scan_records()
        self.performance_metrics['scan_ledger'] = time.time() - step_start
        logger.info(f'Scanned {self.scanner.stats["pages"]:,} pages, {len(records):,} NFTs '
                    f'in {self.performance_metrics["scan_ledger"]:.2f}s')

        logger.info('Step 2/3: Resolving off-chain content')
        step_start = time.time()
        self.resolver.resolve_records(records)
        self.performance_metrics['resolve_content'] = time.time() - step_start

        logger.info('Step 3/3: Writing snapshot')
        step_start = time.time()
        self.writer.write(records)
        self.performance_metrics['write_snapshot'] = time.time() - step_start

        self.performance_metrics['total'] = time.time() - total_start
        log_results(records)
        log_performance_report(self.performance_metrics)
        return len(records)


def main():
    setup_logging()
    logger.info('=' * 100)
    logger.info('LEDGER NFT SNAPSHOT WORKER')
    logger.info('=' * 100)

    worker = NFTSnapshotWorker()
    try:
        nft_count = worker.run()
        logger.info(f'Successfully saved {nft_count:,} NFTs')
    except Exception as e:
        logger.error(f'Error in main: {e}', exc_info=True)
        raise


if __name__ == '__main__':
    main()
