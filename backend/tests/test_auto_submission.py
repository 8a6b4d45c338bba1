"""
Tests for AutoSubmitter
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import build_monitor
from examguard.services.auto_submission import AutoSubmitter
from examguard.services.exam_session import Severity


class TestForcedSubmission:

    @pytest.mark.asyncio
    async def test_submits_zero_score_logs_and_redirects(self):
        hook = AsyncMock()
        h = build_monitor(on_submitted=hook)

        submitted = await h.auto_submitter.trigger()

        assert submitted is True
        assert h.store.submissions == [{
            "quiz_id": "quiz-1",
            "student_id": "student-1",
            "answers": {},
            "score": 0,
            "total_questions": 0,
            "correct_answers": 0,
        }]
        assert h.store.violation_types() == ["max_violations_reached"]
        assert h.environment.navigations == ["/stdinbox"]
        assert h.session.submitted is True
        assert h.session.is_submitting is True
        hook.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_triggers_submit_once(self):
        h = build_monitor()

        results = await asyncio.gather(
            h.auto_submitter.trigger(),
            h.auto_submitter.trigger(final_violation=None),
        )

        assert sorted(results) == [False, True]
        assert h.store.submission_attempts == 1
        assert len(h.store.submissions) == 1
        assert h.environment.navigations == ["/stdinbox"]

    @pytest.mark.asyncio
    async def test_without_final_violation_nothing_extra_is_logged(self):
        h = build_monitor()

        await h.auto_submitter.trigger(final_violation=None)

        assert len(h.store.submissions) == 1
        assert h.store.violations == []
        assert h.environment.navigations == ["/stdinbox"]


class TestSubmissionFailures:

    @pytest.mark.asyncio
    async def test_authentication_failure_leaves_student_submitting(self):
        h = build_monitor(identity=None)

        submitted = await h.auto_submitter.trigger()

        assert submitted is False
        assert h.store.submission_attempts == 0
        assert h.environment.navigations == []
        assert h.session.is_submitting is True
        assert h.session.notice.severity == Severity.ERROR
        assert h.session.notice.message == "Authentication failed during submission"

    @pytest.mark.asyncio
    async def test_insert_failure_stops_before_navigation_and_never_retries(self):
        h = build_monitor()
        h.store.fail_submissions = True

        assert await h.auto_submitter.trigger() is False
        assert await h.auto_submitter.trigger() is False

        assert h.store.submission_attempts == 1
        assert h.environment.navigations == []
        assert h.session.notice.title == "Submission Error"
        assert h.session.submitted is False

    @pytest.mark.asyncio
    async def test_final_log_failure_is_a_warning(self):
        h = build_monitor()
        h.store.fail_violation_types.add("max_violations_reached")

        submitted = await h.auto_submitter.trigger()

        assert submitted is True
        assert len(h.store.submissions) == 1
        assert h.environment.navigations == ["/stdinbox"]
        assert h.session.notice.severity == Severity.WARNING

    @pytest.mark.asyncio
    async def test_hook_failure_does_not_block_redirect(self):
        hook = AsyncMock(side_effect=ConnectionError("broker down"))
        h = build_monitor(on_submitted=hook)

        assert await h.auto_submitter.trigger() is True
        assert h.environment.navigations == ["/stdinbox"]


class TestRedirect:

    def test_default_route_comes_from_settings(self):
        h = build_monitor()

        assert h.auto_submitter.inbox_route == "/stdinbox"

    @pytest.mark.asyncio
    async def test_explicit_empty_route_is_kept(self):
        h = build_monitor()
        submitter = AutoSubmitter(h.session, h.identity, h.store, h.environment, inbox_route="")

        assert await submitter.trigger() is True
        assert h.environment.navigations == [""]
