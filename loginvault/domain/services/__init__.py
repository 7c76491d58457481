"""Domain services for business logic."""

from .auth import generate_temp_password, hash_password, verify_password
from .delivery import deliver
from .email import TemplateVariables, compose_message, html_to_text, resolve_server_identifier
from .mail_session import MailSession, build_session
from .recovery import Caller, CredentialRecovery, RecoveryResult, RecoveryState, persist_snapshot
from .tasks import AsyncTaskPool, RecordingScheduler, TaskScheduler

__all__ = [
    "hash_password",
    "verify_password",
    "generate_temp_password",
    "build_session",
    "MailSession",
    "compose_message",
    "html_to_text",
    "resolve_server_identifier",
    "TemplateVariables",
    "deliver",
    "Caller",
    "CredentialRecovery",
    "RecoveryResult",
    "RecoveryState",
    "persist_snapshot",
    "AsyncTaskPool",
    "RecordingScheduler",
    "TaskScheduler",
]
