"""
Task notification emails.

Renders the task notification template and enqueues one email per recipient
who has email notifications enabled. Delivery happens later, through the
email queue.
"""

import html
from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, Field

from outbox_scheduler.domain.queue_item import QueueItem
from outbox_scheduler.queue import EmailQueue


class TaskNotificationType(str, Enum):
    TASK_CREATED = "task_created"
    TASK_PRIORITY_ESCALATED = "task_priority_escalated"


class TaskPriority(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    REAL_TIME = "real_time"


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"


PRIORITY_LABELS = {
    TaskPriority.VERY_LOW: "Very low",
    TaskPriority.LOW: "Low",
    TaskPriority.MEDIUM: "Medium",
    TaskPriority.HIGH: "High",
    TaskPriority.REAL_TIME: "Real time",
}

STATUS_LABELS = {
    TaskStatus.BACKLOG: "Backlog",
    TaskStatus.TODO: "Todo",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.IN_REVIEW: "In review",
    TaskStatus.DONE: "Done",
}


class NotificationRecipient(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    email_notifications_enabled: Optional[bool] = None


class NotificationActor(BaseModel):
    email: str
    name: Optional[str] = None


class NotificationTask(BaseModel):
    id: str
    name: str
    status: TaskStatus
    priority: TaskPriority
    workspace_id: str


class TaskNotification(BaseModel):
    type: TaskNotificationType
    task: NotificationTask
    workspace_name: str
    project_name: Optional[str] = None
    actor: NotificationActor
    recipients: List[NotificationRecipient] = Field(default_factory=list)


class RenderedEmail(NamedTuple):
    html: str
    text: str


def get_priority_label(priority: TaskPriority) -> str:
    return PRIORITY_LABELS.get(priority, priority.value)


def get_status_label(status: TaskStatus) -> str:
    return STATUS_LABELS.get(status, status.value)


def build_task_url(site_url: Optional[str], workspace_id: str, task_id: str) -> Optional[str]:
    if not site_url:
        return None
    base_url = site_url[:-1] if site_url.endswith("/") else site_url
    return f"{base_url}/workspaces/{workspace_id}/tasks/{task_id}"


_DETAIL_ROW = (
    '<tr>'
    '<td style="padding:8px 0;font-size:13px;color:#6b7280;width:140px;">{label}</td>'
    '<td style="padding:8px 0;font-size:13px;color:#111827;">{value}</td>'
    '</tr>'
)

_HTML_TEMPLATE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{title}</title>
  </head>
  <body style="margin:0;background:#f5f6f8;color:#111827;">
    <span style="display:none;max-height:0;max-width:0;opacity:0;overflow:hidden;">{preheader}</span>
    <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="padding:24px 16px;">
      <tr>
        <td align="center">
          <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:640px;background:#ffffff;border-radius:16px;border:1px solid #e5e7eb;">
            <tr>
              <td style="padding:28px 28px 8px 28px;font-family:Arial, sans-serif;">
                <h1 style="margin:0 0 8px 0;font-size:20px;line-height:1.3;">{title}</h1>
                <p style="margin:0 0 16px 0;font-size:14px;line-height:1.6;color:#4b5563;">{message}</p>
              </td>
            </tr>
            <tr>
              <td style="padding:0 28px 20px 28px;font-family:Arial, sans-serif;">
                <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="border-collapse:collapse;">
                  {details}
                </table>
              </td>
            </tr>
            {button}
          </table>
          <p style="margin:16px 0 0 0;font-size:12px;color:#9ca3af;font-family:Arial, sans-serif;">
            You are receiving this because you enabled email notifications.
          </p>
        </td>
      </tr>
    </table>
  </body>
</html>"""

_BUTTON_TEMPLATE = """<tr>
              <td style="padding:0 28px 28px 28px;font-family:Arial, sans-serif;">
                <a href="{url}" style="display:inline-block;background:#111827;color:#ffffff;text-decoration:none;padding:10px 16px;border-radius:10px;font-size:13px;">
                  View task
                </a>
              </td>
            </tr>"""


def render_task_notification_email(
    title: str,
    preheader: str,
    message: str,
    task_name: str,
    project_name: str,
    workspace_name: str,
    actor_name: str,
    priority_label: str,
    status_label: str,
    task_url: Optional[str] = None,
) -> RenderedEmail:
    """
    Render the HTML and plain text bodies of a task notification.

    Every interpolated value is HTML-escaped in the HTML body.
    """
    details = [
        ("Task", task_name),
        ("Project", project_name),
        ("Workspace", workspace_name),
        ("Priority", priority_label),
        ("Status", status_label),
        ("Actor", actor_name),
    ]
    html_body = _HTML_TEMPLATE.format(
        title=html.escape(title),
        preheader=html.escape(preheader),
        message=html.escape(message),
        details="\n                  ".join(
            _DETAIL_ROW.format(label=label, value=html.escape(value)) for label, value in details
        ),
        button=_BUTTON_TEMPLATE.format(url=html.escape(task_url)) if task_url else "",
    )

    text_lines = [title, message, ""]
    text_lines.extend(f"{label}: {value}" for label, value in details)
    if task_url:
        text_lines.extend(["", f"Open task: {task_url}"])

    return RenderedEmail(html=html_body, text="\n".join(text_lines))


async def send_task_notification_emails(
    queue: EmailQueue,
    notification: TaskNotification,
    site_url: Optional[str] = None,
) -> List[QueueItem]:
    """
    Enqueue a task notification for every recipient with notifications enabled.

    Returns:
        List[QueueItem]: The queued items, one per notified recipient.
    """
    recipients = [
        recipient for recipient in notification.recipients
        if recipient.email_notifications_enabled is not False
    ]
    if not recipients:
        return []

    task = notification.task
    actor_name = notification.actor.name or notification.actor.email
    project_name = notification.project_name or "Workspace"
    priority_label = get_priority_label(task.priority)

    if notification.type == TaskNotificationType.TASK_CREATED:
        subject = f"New task: {task.name}"
        message = f"A new task was created in {project_name}."
    else:
        subject = f"Priority {priority_label}: {task.name}"
        message = f"Priority was updated to {priority_label}."

    rendered = render_task_notification_email(
        title=subject,
        preheader=message,
        message=message,
        task_name=task.name,
        project_name=project_name,
        workspace_name=notification.workspace_name,
        actor_name=actor_name,
        priority_label=priority_label,
        status_label=get_status_label(task.status),
        task_url=build_task_url(site_url, task.workspace_id, task.id),
    )

    items = []
    for recipient in recipients:
        items.append(await queue.enqueue(
            recipient=recipient.email,
            subject=subject,
            html=rendered.html,
            text=rendered.text,
            user_id=recipient.id,
        ))
    return items
