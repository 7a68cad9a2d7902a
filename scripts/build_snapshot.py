"""
Build a catalog snapshot file from the IMDb datasets without starting the server.

Usage:
    python scripts/build_snapshot.py --output databases/imdb/20240101.snap

    # Import from a mirror
    python scripts/build_snapshot.py --output /tmp/test.snap --base-url http://localhost:8000/
"""

import sys
from pathlib import Path

# Add parent directory to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

import logging
import argparse
import time

from tvratings_service.repos import CatalogSnapshot
from tvratings_service.services.dataset_importer import IMDB_DATASETS_URL, ImdbDatasetImporter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def build_snapshot(output_path: Path, base_url: str = IMDB_DATASETS_URL, chunk_size: int = 100_000) -> dict:
    """
    Import the datasets into a new snapshot file.

    Args:
        output_path: Snapshot file to create (must not exist)
        base_url: Where the .tsv.gz files are served
        chunk_size: Rows inserted per batch

    Returns:
        Statistics dictionary
    """
    if output_path.exists():
        raise FileExistsError(f"Snapshot already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    start_time = time.time()
    snapshot = CatalogSnapshot(output_path).open()
    try:
        importer = ImdbDatasetImporter(
            snapshot,
            base_url=base_url,
            work_dir=output_path.parent,
            chunk_size=chunk_size
        )
        importer.start()

        stats = {
            'shows': snapshot.count_shows(),
            'episodes': snapshot.count_episodes(),
            'genres': len(snapshot.get_genres()),
            'seconds': time.time() - start_time,
        }
    finally:
        snapshot.close()

    return stats


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description='Build a catalog snapshot from the IMDb datasets'
    )
    parser.add_argument(
        '--output',
        type=str,
        required=True,
        help='Snapshot file to create'
    )
    parser.add_argument(
        '--base-url',
        type=str,
        default=IMDB_DATASETS_URL,
        help=f'Dataset base URL (default: {IMDB_DATASETS_URL})'
    )
    parser.add_argument(
        '--chunk-size',
        type=int,
        default=100_000,
        help='Rows inserted per batch (default: 100000)'
    )

    args = parser.parse_args()

    output_path = Path(args.output)

    logger.info("="*70)
    logger.info("BUILD CATALOG SNAPSHOT")
    logger.info("="*70)
    logger.info(f"Output: {output_path}")
    logger.info(f"Base URL: {args.base_url}")
    logger.info("="*70)

    try:
        stats = build_snapshot(output_path, base_url=args.base_url, chunk_size=args.chunk_size)

        logger.info("\n" + "="*70)
        logger.info("✓ SNAPSHOT COMPLETE")
        logger.info("="*70)
        logger.info(f"Shows: {stats['shows']}")
        logger.info(f"Episodes: {stats['episodes']}")
        logger.info(f"Genres: {stats['genres']}")
        logger.info(f"Time: {stats['seconds']:.1f} s")

    except Exception as e:
        logger.error(f"Error while building snapshot: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
