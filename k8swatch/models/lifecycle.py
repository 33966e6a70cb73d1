"""Lifecycle states shared by watchers and controllers."""

from __future__ import annotations

from enum import StrEnum


class LifecycleState(StrEnum):
    """NOT_STARTED -> RUNNING -> STOPPING -> STOPPED.  A stopped instance never restarts."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
