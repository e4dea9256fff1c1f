"""
Command line entry points for the newsletter jobs.

Example: python -m services.newsletter newsletter-subscribe ali@gmail.com
"""

import sys
from typing import Callable, Dict, Optional, Sequence

from services.common.cli import JobOutcome, create_parser, dispatch, emit, run_job
from services.common.client import HTTPClient
from services.common.db import engine_scope
from services.common.helpers.email import clean_email_list

from . import __version__
from .client import get_mailerlite_client
from .settings import NewsletterSettings, settings
from .sync import retry_unsynced, subscribe


def _http_client(config: NewsletterSettings) -> HTTPClient:
    return HTTPClient(max_retries=config.http_max_retries, timeout=config.http_timeout)


def newsletter_subscribe_main(argv: Optional[Sequence[str]] = None) -> int:
    """Store a newsletter subscriber and sync it to MailerLite."""
    parser = create_parser(
        "newsletter-subscribe",
        "Add a newsletter subscriber and sync it to MailerLite.",
        __version__,
    )
    parser.add_argument("email", metavar="EMAIL", help="Subscriber email")
    args = parser.parse_args(argv)

    def action(config: NewsletterSettings) -> JobOutcome:
        email = clean_email_list([args.email])[0]
        with _http_client(config) as http, \
                engine_scope(config.database_url, application_name=config.db_application_name) as engine:
            client = get_mailerlite_client(config, http)
            result = subscribe(
                engine, client, email,
                source=config.newsletter_source,
                group_id=config.mailerlite_group_id,
            )

        status = "synced to MailerLite" if result.synced else "stored locally, MailerLite sync pending"
        emit([f"Subscribed {email} ({status})"])
        return result.to_dict(), 0

    return run_job("newsletter_subscribe", args, action, settings, version=__version__)


def newsletter_retry_main(argv: Optional[Sequence[str]] = None) -> int:
    """Retry MailerLite sync for every unsynced subscriber."""
    parser = create_parser(
        "newsletter-retry",
        "Retry the MailerLite sync of subscribers that failed to sync.",
        __version__,
    )
    args = parser.parse_args(argv)

    def action(config: NewsletterSettings) -> JobOutcome:
        with _http_client(config) as http, \
                engine_scope(config.database_url, application_name=config.db_application_name) as engine:
            client = get_mailerlite_client(config, http)
            result = retry_unsynced(engine, client, group_id=config.mailerlite_group_id)

        lines = [f"Retried {result.attempted} subscriber(s): {len(result.synced)} synced, {len(result.failed)} failed"]
        lines.extend(f"  - [failed] {subscriber.email}" for subscriber in result.failed)
        emit(lines)
        return result.to_dict(), len(result.failed)

    return run_job("newsletter_retry", args, action, settings, version=__version__)


COMMANDS: Dict[str, Callable[[Optional[Sequence[str]]], int]] = {
    "newsletter-subscribe": newsletter_subscribe_main,
    "newsletter-retry": newsletter_retry_main,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Dispatch ``python -m services.newsletter <command> [args]``."""
    return dispatch("python -m services.newsletter", "Newsletter jobs", COMMANDS, argv)


if __name__ == "__main__":
    sys.exit(main())
