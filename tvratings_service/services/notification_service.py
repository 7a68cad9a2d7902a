"""Emails followers of shows with newly aired episodes."""

import html
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Tuple

from tvratings_service.exceptions import TransientError
from tvratings_service.repos import CatalogSnapshot
from tvratings_service.services.mail_service import Mailer

logger = logging.getLogger(__name__)

NEW_EPISODES_SUBJECT = "new episodes available"

SHOW_URL = "https://tvratin.gs?showId={show_id}"


def group_by_email(rows: Iterable[Mapping]) -> Dict[str, List[Tuple[str, str]]]:
    """
    Group diff rows into email -> [(showId, title)], without duplicates.

    Shows keep the order in which they first appear.
    """
    shows_by_email: Dict[str, Dict[Tuple[str, str], None]] = {}
    for row in rows:
        show = (row["showId"], row["title"])
        shows_by_email.setdefault(row["email"], {})[show] = None
    return {email: list(shows) for email, shows in shows_by_email.items()}


def build_email_content(shows: Iterable[Tuple[str, str]]) -> str:
    items = "".join(
        "<li><a href='{url}'><h4>{title}</h4></a></li>".format(
            url=SHOW_URL.format(show_id=html.escape(show_id, quote=True)),
            title=html.escape(title or show_id),
        )
        for show_id, title in shows
    )
    return f"<html><h3>shows you follow have new episodes: </h3><ul>{items}</ul></html>"


class NewEpisodeNotifier:
    """Sends one email per follower after a catalog promotion."""

    def __init__(self, mailer: Mailer):
        self.mailer = mailer

    def notify(
            self,
            new_snapshot: CatalogSnapshot,
            old_snapshot_path: Path | str,
            user_store_path: Path | str
    ) -> int:
        """
        Diff the new snapshot against the previous one and email the followers.

        A failed email is logged and does not stop the others.

        Returns:
            Number of emails sent
        """
        start_time = time.time()
        rows = new_snapshot.get_users_following_shows_with_new_episodes(old_snapshot_path, user_store_path)
        shows_by_email = group_by_email(rows)

        sent = 0
        for email, shows in shows_by_email.items():
            try:
                self.mailer.send_mail(email, NEW_EPISODES_SUBJECT, build_email_content(shows))
                sent += 1
            except TransientError as e:
                logger.error(f"Error while sending email to {email}: {e}")

        logger.info(
            f"✓ Notified {sent}/{len(shows_by_email)} users about new episodes "
            f"in {time.time() - start_time:.1f} s"
        )
        return sent
