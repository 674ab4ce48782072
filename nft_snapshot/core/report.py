import logging
from typing import Dict, Sequence

import polars as pl

from ..models import NFTRecord

logger = logging.getLogger(__name__)


def records_frame(records: Sequence[NFTRecord]) -> pl.DataFrame:
    return pl.DataFrame(
        [
            {
                'id': r.id,
                'issuer': r.issuer,
                'seq': r.seq,
                'has_image': r.image_url is not None,
                'has_name': r.name is not None,
                'colors': list(r.colors),
            }
            for r in records
        ],
        schema={
            'id': pl.Utf8,
            'issuer': pl.Utf8,
            'seq': pl.Int64,
            'has_image': pl.Boolean,
            'has_name': pl.Boolean,
            'colors': pl.List(pl.Utf8),
        },
    )


def issuer_summary(df: pl.DataFrame, top: int = 10) -> pl.DataFrame:
    return (
        df.group_by('issuer')
        .agg([
            pl.len().alias('nfts'),
            pl.col('has_image').sum().alias('with_image'),
        ])
        .sort(['nfts', 'issuer'], descending=[True, False])
        .head(top)
    )


def color_summary(df: pl.DataFrame) -> pl.DataFrame:
    return (
        df.select(pl.col('colors').explode().alias('color'))
        .drop_nulls()
        .group_by('color')
        .agg(pl.len().alias('nfts'))
        .sort(['nfts', 'color'], descending=[True, False])
    )


def log_results(records: Sequence[NFTRecord], title: str = 'FINAL RESULTS'):
    logger.info('')
    logger.info('=' * 100)
    logger.info(title)
    logger.info('=' * 100)

    if not records:
        logger.info('No NFTs in snapshot')
        logger.info('=' * 100)
        return

    df = records_frame(records)
    logger.info(f'Top issuers:\n{issuer_summary(df)}')

    colors = color_summary(df)
    if colors.height:
        logger.info(f'Color tags:\n{colors}')

    logger.info('=' * 100)
    logger.info(f'Total NFTs: {df.height:,}')
    logger.info(f'Distinct issuers: {df["issuer"].n_unique():,}')
    logger.info(f'NFTs with image: {df.filter(pl.col("has_image")).height:,}')
    logger.info(f'NFTs with name: {df.filter(pl.col("has_name")).height:,}')
    logger.info('=' * 100)


def log_performance_report(metrics: Dict[str, float]):
    logger.info('')
    logger.info('=' * 100)
    logger.info('PERFORMANCE REPORT')
    logger.info('=' * 100)
    logger.info(f"{'Step':<40} {'Time (s)':<15} {'% of Total':<15}")
    logger.info('-' * 100)

    total_time = metrics.get('total') or 0.0

    for step, duration in metrics.items():
        if step != 'total':
            percentage = (duration / total_time) * 100 if total_time else 0.0
            logger.info(f'{step:<40} {duration:>10.2f}s     {percentage:>10.1f}%')

    logger.info('-' * 100)
    logger.info(f'{"TOTAL TIME":<40} {total_time:>10.2f}s     {100.0:>10.1f}%')
    logger.info('=' * 100)
