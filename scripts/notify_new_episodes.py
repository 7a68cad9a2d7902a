"""
Diff two catalog snapshots and email followers of shows with new episodes.

Usage:
    python scripts/notify_new_episodes.py --new databases/imdb/20240102.snap --old databases/imdb/20240101.snap

    # Only print who would be notified
    python scripts/notify_new_episodes.py --new ... --old ... --dry-run
"""

import sys
from pathlib import Path

# Add parent directory to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

import logging
import argparse

from tvratings_service.config import get_configuration, get_user_store_path
from tvratings_service.repos import CatalogSnapshot
from tvratings_service.services.mail_service import Mailer
from tvratings_service.services.notification_service import NewEpisodeNotifier, group_by_email

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def find_followers_with_new_episodes(new_path: Path, old_path: Path, user_store_path: Path) -> dict:
    """
    Returns:
        email -> [(showId, title)]
    """
    snapshot = CatalogSnapshot(new_path).open()
    try:
        rows = snapshot.get_users_following_shows_with_new_episodes(old_path, user_store_path)
    finally:
        snapshot.close()
    return group_by_email(rows)


def send_notifications(new_path: Path, old_path: Path, user_store_path: Path, mailer: Mailer) -> int:
    """
    Returns:
        Number of emails sent
    """
    snapshot = CatalogSnapshot(new_path).open()
    try:
        return NewEpisodeNotifier(mailer).notify(snapshot, old_path, user_store_path)
    finally:
        snapshot.close()


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description='Email followers of shows with new episodes'
    )
    parser.add_argument(
        '--new',
        type=str,
        required=True,
        help='The newer snapshot file'
    )
    parser.add_argument(
        '--old',
        type=str,
        required=True,
        help='The older snapshot file'
    )
    parser.add_argument(
        '--user-store',
        type=str,
        default=None,
        help='User store file (default: <DATABASE_DIRECTORY>/users.snap)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print who would be notified without sending emails'
    )

    args = parser.parse_args()

    new_path = Path(args.new)
    old_path = Path(args.old)
    user_store_path = Path(args.user_store) if args.user_store else get_user_store_path()

    logger.info("="*70)
    logger.info("NOTIFY NEW EPISODES")
    logger.info("="*70)
    logger.info(f"New snapshot: {new_path}")
    logger.info(f"Old snapshot: {old_path}")
    logger.info(f"User store: {user_store_path}")
    logger.info(f"Dry run: {args.dry_run}")
    logger.info("="*70)

    try:
        for path in (new_path, old_path, user_store_path):
            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")

        if args.dry_run:
            shows_by_email = find_followers_with_new_episodes(new_path, old_path, user_store_path)
            for email, shows in shows_by_email.items():
                titles = ", ".join(title or show_id for show_id, title in shows)
                logger.info(f"  {email}: {titles}")
            logger.info(f"✓ {len(shows_by_email)} users would be notified")
        else:
            mailer = Mailer.from_configuration(get_configuration())
            sent = send_notifications(new_path, old_path, user_store_path, mailer)
            logger.info(f"✓ Sent {sent} emails")

    except Exception as e:
        logger.error(f"Error while notifying users: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
