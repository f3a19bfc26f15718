"""Console configuration read from the environment."""

import os
from dataclasses import dataclass

from libs.core.application.alert_feed import ALERT_CHIME_THROTTLE_SEC
from libs.core.application.dispatch_service import (
    COMMAND_COOLDOWN_SEC,
    DEFAULT_NEUTRALISE_REASON,
    PAYLOAD_PIN,
)
from libs.core.application.drone_liveness import (
    LIVENESS_TICK_SEC,
    LIVENESS_WINDOW_SEC,
    LOSS_WINDOW_SEC,
)
from libs.core.application.polling_guard import POLL_INTERVAL_SEC
from libs.infra.http.backend_client import DEFAULT_TIMEOUT_SEC


@dataclass
class ConsoleSettings:
    """Tunable engine parameters."""

    backend_url: str = "http://localhost:5000"
    liveness_window_sec: float = LIVENESS_WINDOW_SEC
    loss_window_sec: float = LOSS_WINDOW_SEC
    tick_interval_sec: float = LIVENESS_TICK_SEC
    poll_interval_sec: float = POLL_INTERVAL_SEC
    request_timeout_sec: float = DEFAULT_TIMEOUT_SEC
    neutralise_reason: str = DEFAULT_NEUTRALISE_REASON
    payload_pin: str = PAYLOAD_PIN
    command_cooldown_sec: float = COMMAND_COOLDOWN_SEC
    chime_throttle_sec: float = ALERT_CHIME_THROTTLE_SEC

    def __post_init__(self) -> None:
        if self.liveness_window_sec <= 0:
            raise ValueError("liveness window must be positive")
        if self.loss_window_sec <= self.liveness_window_sec:
            raise ValueError("loss window must exceed liveness window")
        for name in ("tick_interval_sec", "poll_interval_sec", "request_timeout_sec"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.command_cooldown_sec < 0 or self.chime_throttle_sec < 0:
            raise ValueError("cooldowns must not be negative")

    @classmethod
    def from_env(cls) -> "ConsoleSettings":
        return cls(
            backend_url=os.getenv("CONSOLE_BACKEND_URL", cls.backend_url),
            liveness_window_sec=_env_float(
                "CONSOLE_LIVENESS_WINDOW_SEC", cls.liveness_window_sec
            ),
            loss_window_sec=_env_float("CONSOLE_LOSS_WINDOW_SEC", cls.loss_window_sec),
            tick_interval_sec=_env_float(
                "CONSOLE_LIVENESS_TICK_SEC", cls.tick_interval_sec
            ),
            poll_interval_sec=_env_float(
                "CONSOLE_POLL_INTERVAL_SEC", cls.poll_interval_sec
            ),
            request_timeout_sec=_env_float(
                "CONSOLE_REQUEST_TIMEOUT_SEC", cls.request_timeout_sec
            ),
            neutralise_reason=os.getenv(
                "CONSOLE_NEUTRALISE_REASON", cls.neutralise_reason
            ),
            payload_pin=os.getenv("CONSOLE_PAYLOAD_PIN", cls.payload_pin),
            command_cooldown_sec=_env_float(
                "CONSOLE_COMMAND_COOLDOWN_SEC", cls.command_cooldown_sec
            ),
            chime_throttle_sec=_env_float(
                "CONSOLE_ALERT_CHIME_THROTTLE_SEC", cls.chime_throttle_sec
            ),
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be a number, got {raw!r}") from error
