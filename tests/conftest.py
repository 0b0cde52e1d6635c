from datetime import datetime, timezone

import pytest
from apscheduler.jobstores.base import JobLookupError

from clublog.app import create_app
from clublog.config import Config
from clublog.event_log import EventLog
from clublog.failures import FailureClassifier
from clublog.navigation import NavigationScheduler
from clublog.storage import MemoryStore

FIXED_NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class FakeScheduler:
    """Stands in for an APScheduler scheduler; jobs run only via run_all()."""

    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger, run_date=None, args=None, id=None, **options):
        self.jobs[id] = {
            "func": func,
            "trigger": trigger,
            "run_date": run_date,
            "args": list(args or []),
            "options": options,
        }

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def drop(self, job_id):
        """Lose a job without running it, as a scheduler does with a misfire."""
        del self.jobs[job_id]

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def run_all(self):
        jobs, self.jobs = self.jobs, {}
        for job in jobs.values():
            job["func"](*job["args"])


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, severity, message):
        self.calls.append((severity, message))


class RecordingNavigator:
    def __init__(self):
        self.targets = []

    def navigate(self, target):
        self.targets.append(target)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def failures():
    """Collects (stage, exc) pairs reported by an EventLog."""
    return []


@pytest.fixture
def make_log(store, failures):
    def _make(**kwargs):
        kwargs.setdefault("time_func", lambda: FIXED_NOW)
        kwargs.setdefault("on_failure", lambda stage, exc: failures.append((stage, exc)))
        return EventLog(kwargs.pop("store", store), **kwargs)
    return _make


@pytest.fixture
def event_log(make_log):
    return make_log()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def navigation(scheduler, navigator):
    return NavigationScheduler(scheduler, navigator, time_func=lambda: FIXED_NOW)


@pytest.fixture
def online():
    """Mutable connectivity flag read by the classifier."""
    return {"value": True}


@pytest.fixture
def classifier(event_log, notifier, navigation, online):
    return FailureClassifier(
        event_log,
        notifier=notifier,
        navigation=navigation,
        is_online=lambda: online["value"],
    )


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def app(config, scheduler):
    """Create a Flask test app over an in-memory store."""
    application = create_app(config=config, store=MemoryStore(), scheduler=scheduler)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
