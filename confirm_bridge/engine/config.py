"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via CONFIRM_BRIDGE_* env vars.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONFIRM_BRIDGE_"


@dataclass
class BridgeConfig:
    """Confirmation bridge configuration."""

    # Well-known executable name of the presentation adapter.
    ui_command: str = "confirm-bridge-ui"
    # Max wall-clock time a human may take to answer.
    # Set to 0 (or a negative value) to disable timeout.
    timeout_seconds: float = 0.0
    # Max time for the `<ui_command> --version` probe on PATH.
    probe_timeout_seconds: float = 10.0
    # Grace period between terminate() and kill() on timeout.
    kill_grace_seconds: float = 5.0
    # Where request artifacts are written.
    artifact_dir: str = field(default_factory=tempfile.gettempdir)
    # Artifacts older than this are swept on server start.
    # Set to 0 (or a negative value) to disable the sweep.
    stale_artifact_max_age_seconds: float = 86400.0

    # Logging
    log_level: str = "INFO"

    @property
    def timeout_enabled(self) -> bool:
        return self.timeout_seconds > 0

    @classmethod
    def from_env(cls) -> BridgeConfig:
        """Load configuration from CONFIRM_BRIDGE_* environment variables."""
        bridge_vars = {
            k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)
        }
        if bridge_vars:
            logger.info(
                "BridgeConfig.from_env: env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(bridge_vars.items())),
            )
        else:
            logger.debug("BridgeConfig.from_env: no overrides set, using defaults")

        defaults = cls()
        config = cls(
            ui_command=os.getenv(
                f"{ENV_PREFIX}UI_COMMAND", defaults.ui_command
            ),
            timeout_seconds=float(os.getenv(
                f"{ENV_PREFIX}TIMEOUT", str(defaults.timeout_seconds)
            )),
            probe_timeout_seconds=float(os.getenv(
                f"{ENV_PREFIX}PROBE_TIMEOUT",
                str(defaults.probe_timeout_seconds),
            )),
            kill_grace_seconds=float(os.getenv(
                f"{ENV_PREFIX}KILL_GRACE", str(defaults.kill_grace_seconds)
            )),
            artifact_dir=(
                os.getenv(f"{ENV_PREFIX}ARTIFACT_DIR") or defaults.artifact_dir
            ),
            stale_artifact_max_age_seconds=float(os.getenv(
                f"{ENV_PREFIX}STALE_ARTIFACT_MAX_AGE",
                str(defaults.stale_artifact_max_age_seconds),
            )),
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", defaults.log_level),
        )
        logger.info(
            "BridgeConfig.from_env: ui_command=%s timeout=%s artifact_dir=%s",
            config.ui_command, config.timeout_seconds, config.artifact_dir,
        )
        return config
