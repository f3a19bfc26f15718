import logging

from libs.core.application.console import OperatorConsole
from libs.core.application.contracts import OperatorBackend
from libs.core.domain.entities import Alert
from libs.infra.http.backend_client import HttpOperatorBackend
from services.console_gateway.infrastructure.memory_store import (
    InMemoryActiveAlertStore,
    InMemoryDatabase,
    InMemoryTelemetryStore,
)
from services.console_gateway.settings import ConsoleSettings

logger = logging.getLogger(__name__)

settings = ConsoleSettings.from_env()
db = InMemoryDatabase()


def _chime(alert: Alert) -> None:
    logger.info("New alert %s: %s", alert.alert_id, alert.message)


def _build_console(backend: OperatorBackend) -> OperatorConsole:
    return OperatorConsole(
        backend=backend,
        alert_store=InMemoryActiveAlertStore(db),
        telemetry_store=InMemoryTelemetryStore(db),
        liveness_window_sec=settings.liveness_window_sec,
        loss_window_sec=settings.loss_window_sec,
        tick_interval_sec=settings.tick_interval_sec,
        poll_interval_sec=settings.poll_interval_sec,
        neutralise_reason=settings.neutralise_reason,
        payload_pin=settings.payload_pin,
        command_cooldown_sec=settings.command_cooldown_sec,
        chime_throttle_sec=settings.chime_throttle_sec,
        chime=_chime,
    )


console = _build_console(
    HttpOperatorBackend(
        api_base=settings.backend_url,
        timeout_sec=settings.request_timeout_sec,
    )
)


def get_console() -> OperatorConsole:
    return console


def reset_state(backend: OperatorBackend | None = None) -> OperatorConsole:
    """Swap in a fresh console for tests that never start the app lifespan.

    The old console's ticker and map polling belong to the loop that started
    them, so a console with running background work is refused.
    """
    global console
    if console.ticker.running or console.maps.polling:
        raise RuntimeError("Stop the running console before resetting state")
    db.clear()
    console = _build_console(backend or console.backend)
    return console
