"""Shutting the VM down at the end of a build."""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta

from .multistep import StateBag, Step, StepAction, StepError

log = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT = timedelta(minutes=5)


@dataclass
class ShutdownConfig:
    """How the guest is shut down and how long to wait for it."""

    command: str = ""
    timeout: timedelta = timedelta(0)
    disable_shutdown: bool = False

    def prepare(self, communicator_type: str) -> list[str]:
        """Fill in defaults and return any warnings."""
        warnings = []
        if not self.timeout:
            self.timeout = DEFAULT_SHUTDOWN_TIMEOUT
        if communicator_type == "none" and self.command:
            warnings.append(
                "The parameter `shutdown_command` is ignored as it requires a `communicator`."
            )
        return warnings


@dataclass
class RemoteCmd:
    """A command to run on the guest through the communicator."""

    command: str
    stdout: io.StringIO = field(default_factory=io.StringIO)
    stderr: io.StringIO = field(default_factory=io.StringIO)


class StepShutdown(Step):
    """Ask the guest to shut down and wait until it is powered off."""

    def __init__(self, config: ShutdownConfig):
        self.config = config

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")

        try:
            already_off = vm.is_powered_off()
        except Exception:
            already_off = False
        if already_off:
            ui.say("VM is already powered off")
            return StepAction.CONTINUE

        comm = state.get("communicator")
        if comm is None:
            ui.message(f"Please shutdown virtual machine within {self.config.timeout}.")
        elif self.config.disable_shutdown:
            ui.say("Automatic shutdown disabled. Please shutdown virtual machine.")
        elif self.config.command:
            ui.say("Executing shutdown command...")
            log.info("Shutdown command: %s", self.config.command)
            try:
                comm.start(cancel, RemoteCmd(self.config.command))
            except Exception as err:
                error = StepError(f"Failed to send shutdown command: {err}")
                error.__cause__ = err
                state.put("error", error)
                return StepAction.HALT
        else:
            ui.say("Shutting down VM...")
            try:
                vm.start_shutdown()
            except Exception as err:
                error = StepError(f"Cannot shut down VM: {err}")
                error.__cause__ = err
                state.put("error", error)
                return StepAction.HALT

        log.info("Waiting max %s for shutdown to complete", self.config.timeout)
        try:
            vm.wait_for_shutdown(cancel, self.config.timeout)
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""