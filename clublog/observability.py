"""Composition root: builds the process-wide event log and failure classifier."""

import logging
from dataclasses import dataclass

from clublog.config import Config
from clublog.event_log import EventLog
from clublog.failures import FailureClassifier
from clublog.navigation import NavigationScheduler
from clublog.notify import NotificationFeed
from clublog.storage import JsonFileStore

logger = logging.getLogger(__name__)


@dataclass
class Observability:
    event_log: EventLog
    classifier: FailureClassifier
    feed: NotificationFeed
    navigation: NavigationScheduler | None


def build_observability(
    config: Config,
    store=None,
    scheduler=None,
    notifier=None,
    navigator=None,
    save_file=None,
    origin_provider=None,
    is_online=None,
    on_failure=None,
) -> Observability:
    """Wire one EventLog and one FailureClassifier from config.

    The feed is the default notifier and navigator. Without a scheduler no
    forced navigation is ever scheduled.
    """
    logger_cfg = config["logger"]
    nav_cfg = config["navigation"]

    if store is None:
        store = JsonFileStore(config["storage"]["path"])

    event_log = EventLog(
        store,
        max_logs=logger_cfg["max_logs"],
        development=logger_cfg["development"],
        storage_key=logger_cfg["storage_key"],
        save_file=save_file,
        origin_provider=origin_provider,
        on_failure=on_failure,
    )

    feed = NotificationFeed(max_items=config["notifications"]["max_items"])
    navigation = None
    if scheduler is not None:
        navigation = NavigationScheduler(scheduler, navigator or feed)

    classifier = FailureClassifier(
        event_log,
        notifier=notifier or feed,
        navigation=navigation,
        is_online=is_online,
        login_path=nav_cfg["login_path"],
        redirect_delay_seconds=nav_cfg["redirect_delay_seconds"],
    )
    logger.info(
        "Observability ready: %d entries loaded, max_logs=%d, development=%s",
        len(event_log), event_log.max_logs, event_log.development,
    )
    return Observability(event_log=event_log, classifier=classifier, feed=feed, navigation=navigation)
