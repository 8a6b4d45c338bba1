from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import asyncio
import logging

from ....core.database import get_async_db
from ....api import deps
from ....models.user import User
from ....schemas.exam_security import ClientMessage, MonitorView, SecurityAlert, SecurityNotification
from ....services.auth_service import AuthService, TokenIdentityProvider
from ....services.auto_submission import AutoSubmitter, SubmittedCallback
from ....services.client_environment import WebSocketClientEnvironment
from ....services.exam_security_monitor import ExamSecurityMonitor
from ....services.exam_session import ExamSession, Identity
from ....services.security_notification_service import SecurityNotificationService
from ....services.security_record_service import SecurityRecordService
from ....services.violation_broadcaster import ViolationBroadcaster
from ....services.violation_recorder import ViolationRecorder

logger = logging.getLogger(__name__)

router = APIRouter()


def get_violation_broadcaster() -> ViolationBroadcaster:
    return ViolationBroadcaster()


async def notify_teacher_of_forced_submission(session: ExamSession, identity: Identity):
    from ....tasks.notifications import send_forced_submission_alert

    send_forced_submission_alert.delay(session.teacher_id, {
        "quiz_id": session.quiz_id,
        "quiz_title": session.quiz_title,
        "student_id": identity.id,
        "student_name": session.student_name,
        "violation_count": session.violation_count,
    })


def get_submission_hook() -> SubmittedCallback:
    return notify_teacher_of_forced_submission


def get_notification_service(db: AsyncSession = Depends(get_async_db)) -> SecurityNotificationService:
    return SecurityNotificationService(db)


async def _next_message(websocket: WebSocket, finished: asyncio.Event) -> Optional[str]:
    """Next raw client message, or None once the attempt was submitted from the timer"""
    receive = asyncio.create_task(websocket.receive_text())
    submitted = asyncio.create_task(finished.wait())
    try:
        done, _ = await asyncio.wait({receive, submitted}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (receive, submitted):
            if not task.done():
                task.cancel()
    if receive in done:
        return receive.result()
    return None


async def _wait_for_disconnect(websocket: WebSocket):
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/quizzes/{quiz_id}/monitor")
async def exam_monitor(
    websocket: WebSocket,
    quiz_id: str,
    token: str = Query(...),
    db: AsyncSession = Depends(get_async_db),
    broadcaster: ViolationBroadcaster = Depends(get_violation_broadcaster),
    on_submitted: SubmittedCallback = Depends(get_submission_hook),
):
    """Integrity monitor for one student taking one quiz"""
    user = await AuthService(db).get_current_user(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Could not validate credentials")
        return

    records = SecurityRecordService(db)
    quiz = await records.get_quiz(quiz_id)
    if quiz is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Quiz not found")
        return

    await websocket.accept()

    session = ExamSession(
        quiz_id=quiz.id,
        teacher_id=quiz.teacher_id,
        student_name=user.full_name or user.email or "",
        quiz_title=quiz.title,
        strict_mode=bool(quiz.strict_mode),
        duration_minutes=quiz.duration_minutes,
    )

    async def send_view(view: MonitorView):
        await websocket.send_json(view.model_dump(mode="json"))

    environment = WebSocketClientEnvironment(websocket)
    identity_provider = TokenIdentityProvider(db, token)
    auto_submitter = AutoSubmitter(session, identity_provider, records, environment, on_submitted=on_submitted)
    recorder = ViolationRecorder(session, identity_provider, records, broadcaster, auto_submitter=auto_submitter)
    monitor = ExamSecurityMonitor(session, environment, recorder, auto_submitter=auto_submitter,
                                  publish_view=send_view)

    await monitor.start()
    try:
        await monitor.push_view()
        while not session.submitted:
            raw = await _next_message(websocket, monitor.finished)
            if raw is None:
                break
            try:
                message = ClientMessage.model_validate_json(raw)
            except ValidationError as e:
                async with monitor.lock:
                    await websocket.send_json({
                        "type": "error",
                        "detail": e.errors(include_url=False, include_context=False),
                    })
                continue
            await monitor.handle(message)
        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"Monitor connection closed for quiz {quiz_id} ({session.student_name})")
    finally:
        await monitor.stop()


@router.get("/notifications/recent", response_model=List[SecurityNotification])
async def get_recent_notifications(
    current_user: User = Depends(deps.get_current_teacher),
    service: SecurityNotificationService = Depends(get_notification_service),
):
    """Latest violations across the teacher's quizzes"""
    return await service.get_recent(current_user.id)


@router.get("/notifications/alerts", response_model=List[SecurityAlert])
async def get_security_alerts(
    current_user: User = Depends(deps.get_current_teacher),
    service: SecurityNotificationService = Depends(get_notification_service),
):
    return await service.get_alerts(current_user.id)


@router.websocket("/notifications/live")
async def live_notifications(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_async_db),
    service: SecurityNotificationService = Depends(get_notification_service),
):
    user = await AuthService(db).get_current_user(token)
    if user is None or not user.is_teacher:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Teacher credentials required")
        return

    await websocket.accept()
    try:
        recent = await service.get_recent(user.id)
        await websocket.send_json({
            "type": "initial",
            "notifications": [n.model_dump(mode="json") for n in recent],
        })
    except WebSocketDisconnect:
        logger.info(f"Live notification feed closed for teacher {user.id}")
        return

    async def forward():
        async for notification in service.stream_live(user.id):
            await websocket.send_json({
                "type": "security_violation",
                "notification": notification.model_dump(mode="json"),
            })

    feed = asyncio.create_task(forward())
    watcher = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, _ = await asyncio.wait({feed, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (feed, watcher):
            if not task.done():
                task.cancel()
        # the channel subscription is released when the feed task unwinds
        await asyncio.gather(feed, watcher, return_exceptions=True)

    if watcher in done:
        logger.info(f"Live notification feed closed for teacher {user.id}")
        return
    error = feed.exception()
    if isinstance(error, WebSocketDisconnect):
        logger.info(f"Live notification feed closed for teacher {user.id}")
        return
    if error is not None:
        logger.error(f"Live notification feed for teacher {user.id} failed: {error}")
    await websocket.close()
