"""User-facing message templates for the launch dashboard."""
from __future__ import annotations

import os

DEFAULT_PRODUCT_NAME = "LaunchPad"

ALERT_MESSAGE = (
    'Task "{task_name}" in the {department} department is overdue. '
    "Please follow up with {assignee}."
)
EMAIL_SUBJECT = "[DELAY] Task Overdue: {task_name}"
EMAIL_BODY = (
    "This is an automated notification from {product}. The following task is overdue: "
    "<strong>{task_name}</strong> assigned to the <strong>{department}</strong> department. "
    "This may affect the project timeline."
)

MISSING_TASK_FIELDS = "Please fill all task fields."
MISSING_PROJECT_FIELDS = "Please fill project name and launch date."
LOAD_FAILED = "Could not load projects."
PROJECT_CREATED = "Project created successfully!"
PROJECT_CREATE_FAILED = "Failed to create project."
PROJECT_UPDATED = "Project updated successfully!"
PROJECT_UPDATE_FAILED = "Failed to update project."
TASK_ADDED = "Task added to draft."
TASK_MOVE_FAILED = "Failed to update task."
NOTIFY_SENDING = "Notifying {email}..."
NOTIFY_SENT = "Notification sent!"
NOTIFY_FAILED = "Failed to send notification."


def get_product_name() -> str:
    """Return the configured product name used in outgoing mail."""

    override = os.environ.get("LAUNCHPAD_PRODUCT_NAME")
    if override and override.strip():
        return override.strip()
    return DEFAULT_PRODUCT_NAME
