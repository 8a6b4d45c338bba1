"""
Pytest configuration for the Exam Guard tests
"""
import asyncio
import os
import sys
import tempfile
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

_TEST_DIR = tempfile.mkdtemp(prefix="examguard-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-chars")
os.environ["DATABASE_URL_OVERRIDE"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'examguard.db')}"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

from examguard.services.auto_submission import AutoSubmitter  # noqa: E402
from examguard.services.client_environment import ClientEnvironment  # noqa: E402
from examguard.services.exam_security_monitor import ExamSecurityMonitor  # noqa: E402
from examguard.services.exam_session import ExamSession, Identity  # noqa: E402
from examguard.services.violation_recorder import ViolationRecorder  # noqa: E402


class InMemoryStore:
    """Stand-in for SecurityRecordService"""

    def __init__(self):
        self.violations = []
        self.submissions = []
        self.fail_violation_types = set()
        self.fail_submissions = False
        self.submission_attempts = 0

    async def log_violation(self, **fields):
        await asyncio.sleep(0)
        if fields["violation_type"] in self.fail_violation_types:
            raise RuntimeError("violation insert failed")
        self.violations.append(fields)
        return fields

    async def create_forced_submission(self, quiz_id, student_id):
        self.submission_attempts += 1
        await asyncio.sleep(0)
        if self.fail_submissions:
            raise RuntimeError("submission insert failed")
        record = {
            "quiz_id": quiz_id,
            "student_id": student_id,
            "answers": {},
            "score": 0,
            "total_questions": 0,
            "correct_answers": 0,
        }
        self.submissions.append(record)
        return record

    def violation_types(self):
        return [v["violation_type"] for v in self.violations]


class RecordingBroadcaster:
    def __init__(self, fail=False):
        self.published = []
        self.fail = fail

    async def publish(self, payload):
        await asyncio.sleep(0)
        if self.fail:
            raise ConnectionError("channel unavailable")
        self.published.append(payload)
        return 1


class StaticIdentityProvider:
    def __init__(self, identity=None, error=None):
        self.identity = identity
        self.error = error
        self.calls = 0

    async def get_current_identity(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.identity


class ScriptedEnvironment(ClientEnvironment):
    """Client environment whose browser grants (or refuses) fullscreen on request"""

    def __init__(self, grant_fullscreen=True, fullscreen=False):
        super().__init__()
        self.grant_fullscreen = grant_fullscreen
        self.is_fullscreen = fullscreen
        self.fullscreen_requests = 0
        self.navigations = []

    async def request_fullscreen(self):
        self.fullscreen_requests += 1
        if not self.grant_fullscreen:
            raise PermissionError("fullscreen denied")
        await self.deliver("fullscreenchange", fullscreen=True)

    async def navigate(self, route):
        self.navigations.append(route)


class FakeCache:
    """Cache with canned values and a finite pub/sub stream"""

    def __init__(self, values=None, messages=None, hold_open=False):
        self.values = values or {}
        self.messages = messages or []
        self.hold_open = hold_open
        self.subscribed = False
        self.unsubscribed = False

    async def aget(self, key):
        return self.values.get(key)

    async def asubscribe(self, channel):
        self.subscribed = True
        try:
            for message in self.messages:
                yield message
            if self.hold_open:
                await asyncio.Event().wait()
        finally:
            self.unsubscribed = True


STUDENT = Identity(id="student-1", email="student@example.com", full_name="Ada Student")


def build_monitor(strict_mode=True, identity=STUDENT, identity_error=None, fullscreen=False,
                  grant_fullscreen=True, broadcast_fails=False, duration_minutes=None,
                  max_violations=3, on_submitted=None, timer_tick=0.001, publish_view=None):
    session = ExamSession(
        quiz_id="quiz-1",
        teacher_id="teacher-1",
        student_name="Ada Student",
        quiz_title="Cell Biology",
        strict_mode=strict_mode,
        duration_minutes=duration_minutes,
    )
    environment = ScriptedEnvironment(grant_fullscreen=grant_fullscreen, fullscreen=fullscreen)
    store = InMemoryStore()
    broadcaster = RecordingBroadcaster(fail=broadcast_fails)
    identity_provider = StaticIdentityProvider(identity=identity, error=identity_error)
    auto_submitter = AutoSubmitter(session, identity_provider, store, environment, on_submitted=on_submitted)
    recorder = ViolationRecorder(session, identity_provider, store, broadcaster,
                                 auto_submitter=auto_submitter, max_violations=max_violations)
    monitor = ExamSecurityMonitor(session, environment, recorder, auto_submitter=auto_submitter,
                                  timer_tick=timer_tick, publish_view=publish_view)
    return SimpleNamespace(
        session=session,
        environment=environment,
        store=store,
        broadcaster=broadcaster,
        identity=identity_provider,
        auto_submitter=auto_submitter,
        recorder=recorder,
        monitor=monitor,
    )


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
async def harness():
    """Strict-mode monitor already in fullscreen and listening"""
    h = build_monitor(strict_mode=True, fullscreen=True)
    await h.monitor.start()
    yield h
    await h.monitor.stop()


async def _reset_database():
    import examguard.models  # noqa: F401
    from examguard.core.database import Base, async_engine

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def db_session():
    from examguard.core.database import AsyncSessionLocal

    await _reset_database()
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def fresh_database():
    """Sync variant for TestClient based tests"""
    asyncio.run(_reset_database())
