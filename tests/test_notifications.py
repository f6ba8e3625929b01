import pytest

from outbox_scheduler.domain.queue_item import QueueItemStatus
from outbox_scheduler.notifications import (
    NotificationActor,
    NotificationRecipient,
    NotificationTask,
    TaskNotification,
    TaskNotificationType,
    TaskPriority,
    TaskStatus,
    build_task_url,
    render_task_notification_email,
    send_task_notification_emails,
)
from outbox_scheduler.queue import EmailQueue


def make_notification(type_: TaskNotificationType, recipients, project_name="Launch") -> TaskNotification:
    return TaskNotification(
        type=type_,
        task=NotificationTask(
            id="tsk_1",
            name="Ship <beta>",
            status=TaskStatus.IN_PROGRESS,
            priority=TaskPriority.HIGH,
            workspace_id="ws_1",
        ),
        workspace_name="Acme",
        project_name=project_name,
        actor=NotificationActor(email="lead@example.com"),
        recipients=recipients,
    )


def test_build_task_url():
    assert build_task_url("https://app.example.com/", "ws_1", "tsk_1") == "https://app.example.com/workspaces/ws_1/tasks/tsk_1"
    assert build_task_url("https://app.example.com", "ws_1", "tsk_1") == "https://app.example.com/workspaces/ws_1/tasks/tsk_1"
    assert build_task_url(None, "ws_1", "tsk_1") is None


def test_render_escapes_html_but_not_text():
    rendered = render_task_notification_email(
        title="New task: <b>x</b>",
        preheader="pre",
        message="A new task was created in R&D.",
        task_name="<script>alert(1)</script>",
        project_name="R&D",
        workspace_name="Acme",
        actor_name="O'Neil",
        priority_label="High",
        status_label="Todo",
    )
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in rendered.html
    assert "<script>" not in rendered.html
    assert "R&amp;D" in rendered.html
    assert "O&#x27;Neil" in rendered.html
    assert "View task" not in rendered.html

    lines = rendered.text.split("\n")
    assert lines[:3] == ["New task: <b>x</b>", "A new task was created in R&D.", ""]
    assert "Task: <script>alert(1)</script>" in lines
    assert "Actor: O'Neil" in lines
    assert "Open task" not in rendered.text


def test_render_with_task_url():
    rendered = render_task_notification_email(
        title="t", preheader="p", message="m", task_name="n", project_name="p",
        workspace_name="w", actor_name="a", priority_label="Low", status_label="Done",
        task_url="https://app.example.com/workspaces/ws_1/tasks/tsk_1?a=1&b=2",
    )
    assert 'href="https://app.example.com/workspaces/ws_1/tasks/tsk_1?a=1&amp;b=2"' in rendered.html
    assert rendered.text.endswith("\n\nOpen task: https://app.example.com/workspaces/ws_1/tasks/tsk_1?a=1&b=2")


@pytest.mark.asyncio
async def test_task_created_enqueues_for_enabled_recipients(memory_storage):
    queue = EmailQueue(memory_storage)
    notification = make_notification(TaskNotificationType.TASK_CREATED, [
        NotificationRecipient(id="usr_1", email="ana@example.com", email_notifications_enabled=True),
        NotificationRecipient(id="usr_2", email="bo@example.com", email_notifications_enabled=False),
        NotificationRecipient(id="usr_3", email="cy@example.com"),
    ])

    items = await send_task_notification_emails(queue, notification, site_url="https://app.example.com")

    assert [item.recipient for item in items] == ["ana@example.com", "cy@example.com"]
    assert [item.user_id for item in items] == ["usr_1", "usr_3"]
    for item in items:
        stored = await queue.get_item(item.id)
        assert stored.status == QueueItemStatus.PENDING
        assert stored.subject == "New task: Ship <beta>"
        assert "A new task was created in Launch." in stored.text_body
        assert "Actor: lead@example.com" in stored.text_body
        assert "Open task: https://app.example.com/workspaces/ws_1/tasks/tsk_1" in stored.text_body
        assert "Ship &lt;beta&gt;" in stored.html_body


@pytest.mark.asyncio
async def test_priority_escalated_subject(memory_storage):
    queue = EmailQueue(memory_storage)
    notification = make_notification(
        TaskNotificationType.TASK_PRIORITY_ESCALATED,
        [NotificationRecipient(id="usr_1", email="ana@example.com")],
        project_name=None,
    )

    [item] = await send_task_notification_emails(queue, notification)
    assert item.subject == "Priority High: Ship <beta>"
    assert "Priority was updated to High." in item.text_body
    assert "Project: Workspace" in item.text_body
    assert "Status: In progress" in item.text_body
    assert "Open task" not in item.text_body


@pytest.mark.asyncio
async def test_no_enabled_recipients_enqueues_nothing(memory_storage):
    queue = EmailQueue(memory_storage)
    notification = make_notification(TaskNotificationType.TASK_CREATED, [
        NotificationRecipient(id="usr_2", email="bo@example.com", email_notifications_enabled=False),
    ])

    assert await send_task_notification_emails(queue, notification) == []
    assert sum((await queue.stats()).values()) == 0
