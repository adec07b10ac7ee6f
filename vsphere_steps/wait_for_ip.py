"""Waiting for the VM to report a stable IP address."""

from __future__ import annotations

import ipaddress
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Union

from .multistep import STATE_CANCELLED, ConfigError, StateBag, Step, StepAction, StepError

log = logging.getLogger(__name__)

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

DEFAULT_SETTLE_TIMEOUT = timedelta(seconds=5)
DEFAULT_WAIT_TIMEOUT = timedelta(minutes=30)
DEFAULT_WAIT_ADDRESS = "0.0.0.0/0"

_POLL = 0.1


class IpWaitCancelled(StepError):
    """Waiting was cancelled; ``ip`` holds the last address seen, if any."""

    def __init__(self, message: str, ip: str = ""):
        super().__init__(message)
        self.ip = ip


@dataclass
class WaitIpConfig:
    """How long to wait for an IP and which network it must be in."""

    wait_timeout: timedelta = timedelta(0)
    settle_timeout: timedelta = timedelta(0)
    wait_address: str | None = None
    _network: IPNetwork | None = field(default=None, init=False, repr=False, compare=False)

    def prepare(self) -> None:
        """Fill in defaults and parse the address range."""
        if not self.settle_timeout:
            self.settle_timeout = DEFAULT_SETTLE_TIMEOUT
        if not self.wait_timeout:
            self.wait_timeout = DEFAULT_WAIT_TIMEOUT
        if self.wait_address is None:
            self.wait_address = DEFAULT_WAIT_ADDRESS

        self._network = None
        if self.wait_address:
            try:
                if "/" not in self.wait_address:
                    raise ValueError(f"invalid CIDR address: {self.wait_address}")
                self._network = ipaddress.ip_network(self.wait_address, strict=False)
            except ValueError as err:
                raise ConfigError([f'unable to parse "ip_wait_address": {err}']) from err

    def ipnet(self) -> IPNetwork | None:
        return self._network


def _poll_interval(settle: timedelta) -> float:
    seconds = settle.total_seconds()
    if seconds >= 120:
        return 30.0
    if seconds >= 60:
        return 15.0
    if seconds >= 10:
        return 5.0
    return 1.0


def wait_for_stable_ip(vm: Any, cancel: threading.Event | None, config: WaitIpConfig) -> str:
    """Return the VM's IP once it has stayed the same for the settle timeout."""
    cancel = cancel if cancel is not None else threading.Event()
    interval = _poll_interval(config.settle_timeout)
    settle = config.settle_timeout.total_seconds()
    previous = ""
    stop_time = 0.0

    while True:
        ip = vm.wait_for_ip(cancel, config.ipnet())
        if cancel.is_set():
            raise IpWaitCancelled("IP wait cancelled.", ip)

        if ip != previous:
            if not previous:
                log.info("VM IP aquired: %s", ip)
            else:
                log.info("VM IP changed from %s to %s", previous, ip)
            previous = ip
            stop_time = time.monotonic() + settle
            continue

        log.info("VM IP is still the same: %s", previous)
        if time.monotonic() >= stop_time:
            log.info("VM IP seems stable enough: %s", ip)
            return ip
        if cancel.wait(interval):
            raise IpWaitCancelled("IP wait cancelled")


class StepWaitForIp(Step):
    """Wait for a settled IP and store it in the state as "ip"."""

    def __init__(self, config: WaitIpConfig):
        self.config = config

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")
        cancel = cancel if cancel is not None else threading.Event()
        sub = threading.Event()
        done = threading.Event()
        result: dict[str, Any] = {"ip": "", "error": None}

        def worker() -> None:
            try:
                result["ip"] = wait_for_stable_ip(vm, sub, self.config)
            except IpWaitCancelled as err:
                result["ip"] = err.ip
                result["error"] = err
            except Exception as err:
                result["error"] = err
            finally:
                done.set()

        ui.say("Waiting for IP...")
        log.info("Waiting for IP, up to total timeout: %s, settle timeout: %s",
                 self.config.wait_timeout, self.config.settle_timeout)
        deadline = time.monotonic() + self.config.wait_timeout.total_seconds()
        thread = threading.Thread(target=worker, daemon=True)
        thread.start()
        try:
            while True:
                remaining = deadline - time.monotonic()
                if done.wait(max(0.0, min(_POLL, remaining))):
                    if result["error"] is not None:
                        state.put("error", result["error"])
                        return StepAction.HALT
                    state.put("ip", result["ip"])
                    ui.say(f"IP address: {result['ip']}")
                    return StepAction.CONTINUE
                if cancel.is_set():
                    log.warning("Interrupt detected, quitting waiting for IP.")
                    return StepAction.HALT
                if STATE_CANCELLED in state:
                    return StepAction.HALT
                if time.monotonic() >= deadline:
                    sub.set()
                    done.wait()
                    if result["ip"]:
                        state.put("ip", result["ip"])
                        log.warning("API timeout waiting for IP but one IP was found. "
                                    "Using IP: %s", result["ip"])
                        return StepAction.CONTINUE
                    error = StepError("Timeout waiting for IP.")
                    state.put("error", error)
                    ui.error(str(error))
                    return StepAction.HALT
        finally:
            sub.set()

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""