"""Dependency injection for FastAPI endpoints"""

from fastapi import BackgroundTasks, Depends, Request
from debt_ledger.domain.models import DebtAlert
from debt_ledger.infrastructure.clients.sms import SmsClient


class BackgroundTaskNotifier:
    """Notifier that defers SMS delivery until after the response is sent"""

    def __init__(self, background_tasks: BackgroundTasks, sms_client: SmsClient):
        self.background_tasks = background_tasks
        self.sms_client = sms_client

    def notify(self, alert: DebtAlert) -> None:
        self.background_tasks.add_task(self.sms_client.deliver_debt_alert, alert)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_sms_client() -> SmsClient:
    """Provide SMS gateway client instance"""
    return SmsClient()


def get_notifier(
    background_tasks: BackgroundTasks,
    sms_client: SmsClient = Depends(get_sms_client),
) -> BackgroundTaskNotifier:
    """Provide a non-blocking notifier bound to this request's background tasks"""
    return BackgroundTaskNotifier(background_tasks, sms_client)
