"""
Notification Service - persists notifications and routes delivery.

``create_notification`` is the single delivery primitive: it stores the row,
pushes a realtime event for dashboard delivery and hands email to the email
collaborator. The ``notify_*`` triggers encode who hears about each business
event and are best-effort: a failure is logged and never reaches the
business caller.
"""

import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFound, ValidationFailed
from app.db.base import utcnow
from app.db.enums import (
    ApplicationStatus,
    NotificationBulkAction,
    NotificationChannel,
    NotificationPriority,
    NotificationTargetType,
    NotificationType,
    Role,
)
from app.db.models import Application, Notification, ServiceRequest, Student, Task, User
from app.services import email_service, realtime_events

logger = logging.getLogger(__name__)

DASHBOARD_CHANNELS = {NotificationChannel.DASHBOARD, NotificationChannel.BOTH}
EMAIL_CHANNELS = {NotificationChannel.EMAIL, NotificationChannel.BOTH}


class RecipientNotFound(NotFound):
    default_message = "Recipient not found"


# =============================================================================
# Delivery primitive
# =============================================================================


def create_notification(
    db: Session,
    recipient_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    channel: NotificationChannel = NotificationChannel.DASHBOARD,
    priority: NotificationPriority = NotificationPriority.NORMAL,
    action_url: str | None = None,
    action_text: str | None = None,
    related_service_request_id: UUID | None = None,
    related_task_id: UUID | None = None,
    metadata: dict[str, Any] | None = None,
    sent_by_id: UUID | None = None,
    target_type: NotificationTargetType | None = None,
    target_role: str | None = None,
) -> dict:
    """
    Persist a notification and deliver it on its channel(s).

    Email failure never rolls back the stored row; it is recorded in
    ``email_error`` instead.

    Returns:
        Delivery report ``{notificationId, dashboard, email, errors}``

    Raises:
        RecipientNotFound: recipient does not exist
    """
    recipient = db.get(User, recipient_id)
    if not recipient:
        raise RecipientNotFound()

    channel = NotificationChannel(channel)
    notification = Notification(
        recipient_id=recipient.id,
        type=NotificationType(type).value,
        channel=channel.value,
        title=title,
        message=message,
        priority=NotificationPriority(priority).value,
        action_url=action_url,
        action_text=action_text,
        related_service_request_id=related_service_request_id,
        related_task_id=related_task_id,
        meta=metadata or {},
        sent_by_id=sent_by_id,
        target_type=target_type.value if target_type else None,
        target_role=target_role,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    report = {
        "notificationId": str(notification.id),
        "dashboard": False,
        "email": False,
        "errors": [],
    }

    if channel in DASHBOARD_CHANNELS:
        realtime_events.notify_user(recipient.id, notification)
        report["dashboard"] = True

    if channel in EMAIL_CHANNELS:
        _deliver_email(db, notification, recipient, report)

    return report


def _deliver_email(db: Session, notification: Notification, recipient: User, report: dict) -> None:
    link = f"{settings.FRONTEND_URL}{notification.action_url}" if notification.action_url else None
    try:
        result = email_service.send_email(
            to_email=recipient.email,
            subject=notification.title,
            html_body=email_service.render_notification_html(
                notification.title, notification.message, link, notification.action_text
            ),
            text=notification.message,
            idempotency_key=f"notification:{notification.id}",
        )
    except Exception as exc:
        logger.exception("Email delivery raised for notification %s", notification.id)
        result = {"success": False, "error": f"Email delivery failed: {type(exc).__name__}"}

    if result.get("success"):
        notification.email_sent = True
        notification.email_sent_at = utcnow()
        report["email"] = True
    else:
        notification.email_error = result.get("error") or "Email delivery failed"
        report["errors"].append(notification.email_error)

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to record email state for notification %s", notification.id)


def _deliver(db: Session, **kwargs) -> dict | None:
    """Best-effort wrapper used by the business triggers."""
    try:
        return create_notification(db, **kwargs)
    except Exception:
        db.rollback()
        logger.exception(
            "Notification %s to %s failed", kwargs.get("type"), kwargs.get("recipient_id")
        )
        return None


def _deliver_many(db: Session, recipient_ids: Iterable[UUID], **kwargs) -> list[dict]:
    reports = []
    for recipient_id in dict.fromkeys(recipient_ids):
        report = _deliver(db, recipient_id=recipient_id, **kwargs)
        if report:
            reports.append(report)
    return reports


def active_admin_ids(db: Session) -> list[UUID]:
    rows = db.query(User.id).filter(
        User.role == Role.SUPER_ADMIN.value,
        User.is_active.is_(True),
    ).all()
    return [row[0] for row in rows]


def _student_user_id(db: Session, student_id: UUID) -> UUID | None:
    student = db.get(Student, student_id)
    return student.user_id if student else None


def _label(value: str) -> str:
    return value.replace("_", " ").title()


# =============================================================================
# Read state
# =============================================================================


def list_for_recipient(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    notification_type: str | None = None,
):
    """Query for a recipient's notifications, newest first (archived excluded)."""
    query = db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_archived.is_(False),
    )
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    if notification_type:
        query = query.filter(Notification.type == notification_type)
    return query.order_by(Notification.created_at.desc())


def get_unread_count(db: Session, user_id: UUID) -> int:
    return db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
        Notification.is_archived.is_(False),
    ).count()


def mark_read(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    """Mark one notification read. Idempotent: a second call changes nothing."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == user_id,
    ).first()
    if not notification:
        raise NotFound("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)

    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark all of a recipient's unread notifications read. Returns count updated."""
    count = db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
    db.commit()
    return count


# =============================================================================
# Admin broadcast
# =============================================================================


def resolve_broadcast_recipients(
    db: Session,
    target_type: NotificationTargetType,
    target_role: Role | None = None,
    target_user_id: UUID | None = None,
) -> list[User]:
    query = db.query(User).filter(User.is_active.is_(True))
    if target_type == NotificationTargetType.ALL:
        return query.order_by(User.created_at).all()
    if target_type == NotificationTargetType.ROLE:
        if not target_role:
            raise ValidationFailed("targetRole is required for ROLE notifications")
        return query.filter(User.role == target_role.value).order_by(User.created_at).all()
    if not target_user_id:
        raise ValidationFailed("targetUserId is required for USER notifications")
    return query.filter(User.id == target_user_id).all()


def create_admin_notification(
    db: Session,
    sent_by_id: UUID,
    target_type: NotificationTargetType,
    title: str,
    message: str,
    type: NotificationType = NotificationType.GENERAL,
    channel: NotificationChannel = NotificationChannel.DASHBOARD,
    priority: NotificationPriority = NotificationPriority.NORMAL,
    target_role: Role | None = None,
    target_user_id: UUID | None = None,
    action_url: str | None = None,
    action_text: str | None = None,
) -> dict:
    """
    Fan a broadcast out to every resolved recipient.

    Returns ``{total, dashboard, email, failed, notificationIds}`` and emits
    one ``admin_notification_created`` event on the super_admin role room.
    """
    recipients = resolve_broadcast_recipients(db, target_type, target_role, target_user_id)
    if not recipients:
        raise ValidationFailed("No recipients found for this notification")

    report = {"total": len(recipients), "dashboard": 0, "email": 0, "failed": 0, "notificationIds": []}

    for recipient in recipients:
        try:
            delivery = create_notification(
                db,
                recipient_id=recipient.id,
                type=type,
                title=title,
                message=message,
                channel=channel,
                priority=priority,
                action_url=action_url,
                action_text=action_text,
                sent_by_id=sent_by_id,
                target_type=target_type,
                target_role=target_role.value if target_role else None,
            )
        except Exception:
            db.rollback()
            logger.exception("Broadcast delivery to %s failed", recipient.id)
            report["failed"] += 1
            continue

        report["notificationIds"].append(delivery["notificationId"])
        if delivery["dashboard"]:
            report["dashboard"] += 1
        if delivery["email"]:
            report["email"] += 1
        if delivery["errors"]:
            report["failed"] += 1

    realtime_events.broadcast_admin_notification(
        {
            "title": title,
            "targetType": target_type.value,
            "targetRole": target_role.value if target_role else None,
            "total": report["total"],
            "failed": report["failed"],
        }
    )
    return report


def list_broadcasts(
    db: Session,
    target_type: str | None = None,
    is_archived: bool | None = None,
    notification_type: str | None = None,
):
    """Query for admin-sent notifications, newest first."""
    query = db.query(Notification).filter(Notification.sent_by_id.isnot(None))
    if target_type:
        query = query.filter(Notification.target_type == target_type)
    if is_archived is not None:
        query = query.filter(Notification.is_archived.is_(is_archived))
    if notification_type:
        query = query.filter(Notification.type == notification_type)
    return query.order_by(Notification.created_at.desc())


def get_notification(db: Session, notification_id: UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification:
        raise NotFound("Notification not found")
    return notification


def set_archived(db: Session, notification_id: UUID, archived: bool) -> Notification:
    notification = get_notification(db, notification_id)
    if notification.is_archived != archived:
        notification.is_archived = archived
        notification.archived_at = utcnow() if archived else None
        db.commit()
        db.refresh(notification)
    return notification


def delete_notification(db: Session, notification_id: UUID) -> None:
    notification = get_notification(db, notification_id)
    db.delete(notification)
    db.commit()


def bulk_action(db: Session, notification_ids: list[UUID], action: NotificationBulkAction) -> int:
    """Apply one action to many notifications. Returns the number affected."""
    if not notification_ids:
        raise ValidationFailed("notificationIds must not be empty")

    query = db.query(Notification).filter(Notification.id.in_(notification_ids))
    now = utcnow()
    if action == NotificationBulkAction.ARCHIVE:
        count = query.update({"is_archived": True, "archived_at": now}, synchronize_session=False)
    elif action == NotificationBulkAction.UNARCHIVE:
        count = query.update({"is_archived": False, "archived_at": None}, synchronize_session=False)
    elif action == NotificationBulkAction.MARK_READ:
        count = query.update({"is_read": True, "read_at": now}, synchronize_session=False)
    else:
        count = query.delete(synchronize_session=False)
    db.commit()
    return count


def get_stats(db: Session) -> dict:
    total = db.query(func.count(Notification.id)).scalar() or 0
    unread = db.query(func.count(Notification.id)).filter(Notification.is_read.is_(False)).scalar() or 0
    archived = db.query(func.count(Notification.id)).filter(Notification.is_archived.is_(True)).scalar() or 0
    rows = db.query(Notification.type, func.count(Notification.id)).group_by(Notification.type).all()
    return {
        "total": total,
        "unread": unread,
        "archived": archived,
        "byType": {notification_type: count for notification_type, count in rows},
    }


# =============================================================================
# Notification Triggers (called from service request/task/application services)
# =============================================================================


def notify_student_onboarded(db: Session, student: Student, user: User) -> None:
    """A student finished onboarding: every active super_admin."""
    _deliver_many(
        db,
        active_admin_ids(db),
        type=NotificationType.GENERAL,
        title="New student registration",
        message=f"{user.display_name} completed onboarding.",
        channel=NotificationChannel.DASHBOARD,
        action_url=f"/admin/students/{student.id}",
        metadata={"studentId": str(student.id)},
    )


def notify_service_request_created(db: Session, sr: ServiceRequest) -> None:
    """Student-initiated request: every active super_admin."""
    _deliver_many(
        db,
        active_admin_ids(db),
        type=NotificationType.SERVICE_REQUEST_CREATED,
        title="New service request",
        message=f"A student requested {_label(sr.service_type)}. It is waiting for assignment.",
        channel=NotificationChannel.BOTH,
        action_url=f"/admin/service-requests/{sr.id}",
        action_text="Assign",
        related_service_request_id=sr.id,
    )


def notify_service_request_referred(db: Session, sr: ServiceRequest) -> None:
    """Agent-initiated request: every active super_admin plus the student."""
    _deliver_many(
        db,
        active_admin_ids(db),
        type=NotificationType.AGENT_SERVICE_REQUEST_PENDING,
        title="Agent service request awaiting approval",
        message=f"An agent requested {_label(sr.service_type)} for a student.",
        channel=NotificationChannel.BOTH,
        priority=NotificationPriority.HIGH,
        action_url=f"/admin/agent-requests/{sr.id}",
        action_text="Review",
        related_service_request_id=sr.id,
    )
    student_user_id = _student_user_id(db, sr.student_id)
    if student_user_id:
        _deliver(
            db,
            recipient_id=student_user_id,
            type=NotificationType.SERVICE_REQUEST_CREATED,
            title="Service requested on your behalf",
            message=f"Your agent requested {_label(sr.service_type)} for you. It is pending admin approval.",
            channel=NotificationChannel.BOTH,
            action_url=f"/student/service-requests/{sr.id}",
            related_service_request_id=sr.id,
        )


def notify_service_request_assigned(db: Session, sr: ServiceRequest, assignee_ids: Iterable[UUID]) -> None:
    """Admin assignment: each assignee plus the student."""
    _deliver_many(
        db,
        assignee_ids,
        type=NotificationType.SERVICE_REQUEST_ASSIGNED,
        title="New case assigned to you",
        message=f"You have been assigned a {_label(sr.service_type)} case.",
        channel=NotificationChannel.BOTH,
        action_url=f"/cases/{sr.id}",
        action_text="Open case",
        related_service_request_id=sr.id,
    )
    student_user_id = _student_user_id(db, sr.student_id)
    if student_user_id:
        _deliver(
            db,
            recipient_id=student_user_id,
            type=NotificationType.SERVICE_REQUEST_ASSIGNED,
            title="Your advisor has been assigned",
            message=f"An advisor is now handling your {_label(sr.service_type)} request.",
            channel=NotificationChannel.BOTH,
            action_url=f"/student/service-requests/{sr.id}",
            related_service_request_id=sr.id,
        )


def notify_service_request_status_changed(
    db: Session, sr: ServiceRequest, from_status: str, to_status: str
) -> None:
    """Status change: the student."""
    student_user_id = _student_user_id(db, sr.student_id)
    if not student_user_id:
        return
    _deliver(
        db,
        recipient_id=student_user_id,
        type=NotificationType.SERVICE_REQUEST_STATUS_CHANGED,
        title="Service request updated",
        message=(
            f"Your {_label(sr.service_type)} request moved from "
            f"{_label(from_status)} to {_label(to_status)}."
        ),
        channel=NotificationChannel.BOTH,
        action_url=f"/student/service-requests/{sr.id}",
        related_service_request_id=sr.id,
        metadata={"fromStatus": from_status, "toStatus": to_status},
    )


def notify_service_completed(db: Session, sr: ServiceRequest) -> None:
    """Completion: the student and every active super_admin."""
    recipients = []
    student_user_id = _student_user_id(db, sr.student_id)
    if student_user_id:
        recipients.append(student_user_id)
    recipients.extend(active_admin_ids(db))
    _deliver_many(
        db,
        recipients,
        type=NotificationType.SERVICE_COMPLETED,
        title="Service completed",
        message=f"The {_label(sr.service_type)} service has been completed.",
        channel=NotificationChannel.BOTH,
        action_url=f"/service-requests/{sr.id}",
        related_service_request_id=sr.id,
    )


def notify_agent_request_approved(db: Session, sr: ServiceRequest) -> None:
    if sr.assigned_agent_id:
        _deliver(
            db,
            recipient_id=sr.assigned_agent_id,
            type=NotificationType.AGENT_REQUEST_APPROVED,
            title="Service request approved",
            message=f"Your {_label(sr.service_type)} request was approved. You can start working on it.",
            channel=NotificationChannel.BOTH,
            action_url=f"/agent/cases/{sr.id}",
            related_service_request_id=sr.id,
        )
    student_user_id = _student_user_id(db, sr.student_id)
    if student_user_id:
        _deliver(
            db,
            recipient_id=student_user_id,
            type=NotificationType.SERVICE_REQUEST_APPROVED,
            title="Service request approved",
            message=f"Your {_label(sr.service_type)} request was approved.",
            channel=NotificationChannel.BOTH,
            action_url=f"/student/service-requests/{sr.id}",
            related_service_request_id=sr.id,
        )


def notify_agent_request_rejected(db: Session, sr: ServiceRequest, reason: str) -> None:
    recipients = [sr.requested_by_id or sr.assigned_agent_id, _student_user_id(db, sr.student_id)]
    _deliver_many(
        db,
        [r for r in recipients if r],
        type=NotificationType.SERVICE_REQUEST_REJECTED,
        title="Service request rejected",
        message=f"The {_label(sr.service_type)} request was rejected: {reason}",
        channel=NotificationChannel.BOTH,
        related_service_request_id=sr.id,
        metadata={"reason": reason},
    )


def notify_task_assigned(db: Session, task: Task) -> None:
    """New task: the student. Priority mirrors HIGH/URGENT tasks."""
    priority = NotificationPriority.NORMAL
    if task.priority in (NotificationPriority.HIGH.value, NotificationPriority.URGENT.value):
        priority = NotificationPriority(task.priority)
    _deliver(
        db,
        recipient_id=task.assigned_to_id,
        type=NotificationType.TASK_ASSIGNED,
        title="New task assigned",
        message=f"You have a new task: {task.title}",
        channel=NotificationChannel.BOTH,
        priority=priority,
        action_url=f"/student/tasks/{task.id}",
        action_text="View task",
        related_service_request_id=task.service_request_id,
        related_task_id=task.id,
    )


def notify_task_submitted(db: Session, task: Task) -> None:
    """Submission: the advisor who created the task."""
    if not task.assigned_by_id:
        return
    _deliver(
        db,
        recipient_id=task.assigned_by_id,
        type=NotificationType.TASK_SUBMITTED,
        title="Task submitted for review",
        message=f"The student submitted: {task.title}",
        channel=NotificationChannel.BOTH,
        action_url=f"/tasks/{task.id}",
        action_text="Review",
        related_service_request_id=task.service_request_id,
        related_task_id=task.id,
    )


def notify_task_reviewed(db: Session, task: Task, requires_revision: bool) -> None:
    """Review outcome: the student (revision requests are HIGH)."""
    if requires_revision:
        _deliver(
            db,
            recipient_id=task.assigned_to_id,
            type=NotificationType.TASK_REVISION_REQUIRED,
            title="Revision required",
            message=f"Your advisor asked for changes on: {task.title}",
            channel=NotificationChannel.BOTH,
            priority=NotificationPriority.HIGH,
            action_url=f"/student/tasks/{task.id}",
            related_service_request_id=task.service_request_id,
            related_task_id=task.id,
        )
        return
    _deliver(
        db,
        recipient_id=task.assigned_to_id,
        type=NotificationType.TASK_REVIEWED,
        title="Task approved",
        message=f"Your submission was approved: {task.title}",
        channel=NotificationChannel.BOTH,
        action_url=f"/student/tasks/{task.id}",
        related_service_request_id=task.service_request_id,
        related_task_id=task.id,
    )


def notify_application_created(db: Session, application: Application) -> None:
    """New application: the student and every active super_admin."""
    recipients = []
    student_user_id = _student_user_id(db, application.student_id)
    if student_user_id:
        recipients.append(student_user_id)
    recipients.extend(active_admin_ids(db))
    _deliver_many(
        db,
        recipients,
        type=NotificationType.APPLICATION_CREATED,
        title="New university application",
        message=(
            f"Application to {application.university_name} for "
            f"{application.program_name} ({application.intake}) has been created."
        ),
        channel=NotificationChannel.BOTH,
        action_url=f"/admissions/{application.id}",
        metadata={"applicationId": str(application.id)},
    )


def notify_application_agent_assigned(db: Session, application: Application) -> None:
    """Admin handed the application to an agent: that agent (HIGH)."""
    _deliver(
        db,
        recipient_id=application.agent_id,
        type=NotificationType.APPLICATION_AGENT_ASSIGNED,
        title="New application assigned",
        message=(
            f"You have been assigned a new application for "
            f"{application.university_name} - {application.program_name}."
        ),
        channel=NotificationChannel.BOTH,
        priority=NotificationPriority.HIGH,
        action_url=f"/agent/admissions/{application.id}",
        metadata={"applicationId": str(application.id)},
    )


def notify_application_status_changed(
    db: Session, application: Application, from_status: str, to_status: str
) -> None:
    """Status change: the student. An offer is HIGH priority."""
    student_user_id = _student_user_id(db, application.student_id)
    if not student_user_id:
        return
    priority = (
        NotificationPriority.HIGH
        if to_status == ApplicationStatus.OFFER_RECEIVED.value
        else NotificationPriority.NORMAL
    )
    _deliver(
        db,
        recipient_id=student_user_id,
        type=NotificationType.APPLICATION_STATUS_CHANGED,
        title="Application status updated",
        message=f"Your application to {application.university_name} is now {to_status}.",
        channel=NotificationChannel.BOTH,
        priority=priority,
        action_url=f"/student/admissions/{application.id}",
        metadata={"applicationId": str(application.id), "fromStatus": from_status, "toStatus": to_status},
    )


def notify_offer_accepted(db: Session, application: Application) -> None:
    """Student accepted an offer: the agent (HIGH)."""
    _deliver(
        db,
        recipient_id=application.agent_id,
        type=NotificationType.APPLICATION_STATUS_CHANGED,
        title="Offer accepted",
        message=f"The student accepted the offer from {application.university_name}.",
        channel=NotificationChannel.BOTH,
        priority=NotificationPriority.HIGH,
        action_url=f"/agent/admissions/{application.id}",
        metadata={"applicationId": str(application.id), "toStatus": ApplicationStatus.ACCEPTED.value},
    )


def notify_application_document_uploaded(
    db: Session, application: Application, uploader_role: Role, document_name: str
) -> None:
    """Document upload: the counterparty of the uploader."""
    if uploader_role == Role.STUDENT:
        recipient_id = application.agent_id
    else:
        recipient_id = _student_user_id(db, application.student_id)
    if not recipient_id:
        return
    _deliver(
        db,
        recipient_id=recipient_id,
        type=NotificationType.APPLICATION_DOCUMENT_UPLOADED,
        title="New application document",
        message=f"{document_name} was uploaded to the {application.university_name} application.",
        channel=NotificationChannel.BOTH,
        action_url=f"/admissions/{application.id}",
        metadata={"applicationId": str(application.id)},
    )
