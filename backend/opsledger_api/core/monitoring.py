import sentry_sdk

from opsledger.exceptions import OpsLedgerError
from opsledger_api.core.config import settings


def _drop_domain_errors(event, hint):
    # Domain errors become 4xx responses; they are not incidents.
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], OpsLedgerError):
        return None
    return event


def configure_error_monitoring() -> None:
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.env,
            traces_sample_rate=0.2,
            before_send=_drop_domain_errors,
        )
