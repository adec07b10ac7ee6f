"""Connecting to a vCenter Server."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

from .multistep import ConfigError, StateBag, Step, StepAction


@dataclass
class ConnectConfig:
    """Where and how to log in to vCenter."""

    vcenter_server: str = ""
    username: str = ""
    password: str = ""
    insecure_connection: bool = False
    datacenter: str = ""

    def prepare(self) -> None:
        """Check required fields; raise ConfigError listing every missing one."""
        errors = [
            f"'{name}' is required"
            for name in ("vcenter_server", "username", "password")
            if not getattr(self, name)
        ]
        if errors:
            raise ConfigError(errors)


class StepConnect(Step):
    """Open a driver session and store it in the state as "driver"."""

    def __init__(self, config: ConnectConfig, new_driver: Callable[[ConnectConfig], Any]):
        self.config = config
        self.new_driver = new_driver

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        try:
            driver = self.new_driver(self.config)
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        state.put("driver", driver)
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""