#!/usr/bin/env python3
"""
NFT Snapshot Worker

Stages:
  fetch   : scan the ledger, resolve content, write nft-data.json
  colors  : tag untagged images, update nft-colors.json, merge colors into nft-data.json
  all     : fetch then colors (default)

A failed ledger scan exits with status 1 and leaves the previous snapshot untouched.
"""

import argparse
import logging
import sys

from nft_snapshot.clients import LedgerQueryError
from nft_snapshot.codec import MalformedIdentifierError
from nft_snapshot.config import Config, ConfigError, setup_logging
from nft_snapshot.core import ColorEnrichmentWorker, NFTSnapshotWorker

logger = logging.getLogger(__name__)

STAGES = ('fetch', 'colors', 'all')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Ledger NFT snapshot worker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python snapshot_worker.py
  python snapshot_worker.py --stage fetch --output public/nft-data.json
  python snapshot_worker.py --stage colors --color-cache public/nft-colors.json
        """
    )
    parser.add_argument('--stage', choices=STAGES, default='all', help='Pipeline stage to run')
    parser.add_argument('--output', default=Config.SNAPSHOT_PATH, help='Snapshot file (default: %(default)s)')
    parser.add_argument('--color-cache', default=Config.COLOR_CACHE_PATH, help='Color cache file (default: %(default)s)')
    parser.add_argument('--resolve-batch-size', type=int, default=Config.RESOLVE_BATCH_SIZE,
                        help='Concurrent content fetches per batch (default: %(default)s)')
    parser.add_argument('--color-batch-size', type=int, default=Config.COLOR_BATCH_SIZE,
                        help='Concurrent classification calls per batch (default: %(default)s)')
    parser.add_argument('--abort-on-malformed', action='store_true', default=Config.ABORT_ON_MALFORMED_ID,
                        help='Abort instead of skipping NFTokenIDs that fail to decode')
    return parser


def run(args) -> int:
    if args.resolve_batch_size <= 0 or args.color_batch_size <= 0:
        raise ConfigError('Batch sizes must be positive integers')
    if args.stage in ('colors', 'all'):
        Config.require_openrouter()

    if args.stage in ('fetch', 'all'):
        worker = NFTSnapshotWorker(
            snapshot_path=args.output,
            resolve_batch_size=args.resolve_batch_size,
            abort_on_malformed=args.abort_on_malformed,
        )
        nft_count = worker.run()
        logger.info(f'Successfully saved {nft_count:,} NFTs to {args.output}')

    if args.stage in ('colors', 'all'):
        enricher = ColorEnrichmentWorker(
            snapshot_path=args.output,
            cache_path=args.color_cache,
            batch_size=args.color_batch_size,
        )
        tagged = enricher.run()
        logger.info(f'Color enrichment complete: {tagged:,} new tags')
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging()

    logger.info('=' * 100)
    logger.info(f'NFT SNAPSHOT WORKER - stage: {args.stage}')
    logger.info('=' * 100)

    try:
        sys.exit(run(args))
    except ConfigError as e:
        logger.error(f'Configuration error: {e}')
        sys.exit(1)
    except (LedgerQueryError, MalformedIdentifierError) as e:
        logger.error(f'Ledger scan failed, snapshot not written: {e}', exc_info=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f'Worker failed: {e}', exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
