"""Passing extra configuration parameters through to the VM."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .multistep import StateBag, Step, StepAction, StepError


@dataclass
class ConfigParamsConfig:
    """Raw configuration parameters and VMware Tools options."""

    config_params: dict[str, str] | None = None
    tools_sync_time: bool = False
    tools_upgrade_policy: bool = False


@dataclass
class ToolsConfigInfo:
    """VMware Tools settings sent along with the parameters."""

    sync_time_with_host: bool | None = None
    tools_upgrade_policy: str = ""


class StepConfigParams(Step):
    """Add configuration parameters and Tools settings to the VM."""

    def __init__(self, config: ConfigParamsConfig):
        self.config = config

    def _tools_info(self) -> ToolsConfigInfo | None:
        if not (self.config.tools_sync_time or self.config.tools_upgrade_policy):
            return None
        info = ToolsConfigInfo()
        if self.config.tools_sync_time:
            info.sync_time_with_host = True
        if self.config.tools_upgrade_policy:
            info.tools_upgrade_policy = "UpgradeAtPowerCycle"
        return info

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")
        params = self.config.config_params if self.config.config_params is not None else {}

        ui.say("Adding configuration parameters...")
        try:
            vm.add_config_params(params, self._tools_info())
        except Exception as err:
            error = StepError(f"error adding configuration parameters: {err}")
            error.__cause__ = err
            state.put("error", error)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""