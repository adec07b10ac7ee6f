"""Uploading boot media to a remote datastore."""

from __future__ import annotations

import logging
import posixpath
import threading
from dataclasses import dataclass
from typing import Any

from .multistep import STATE_CANCELLED, STATE_HALTED, StateBag, Step, StepAction, StepError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteLocation:
    """Where a local file is cached on a datastore."""

    filename: str
    remote_path: str
    remote_directory: str
    full_remote_path: str


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return posixpath.basename(stripped)


def get_remote_directory_and_path(path: str, datastore: Any) -> RemoteLocation:
    """Work out the cache location of ``path`` on ``datastore``."""
    filename = _base_name(path)
    remote_directory = f"[{datastore.name}] packer_cache/"
    return RemoteLocation(
        filename=filename,
        remote_path=f"packer_cache/{filename}",
        remote_directory=remote_directory,
        full_remote_path=f"{remote_directory}/{filename}",
    )


class StepRemoteUpload(Step):
    """Upload the boot ISO and the generated CD image to the datastore."""

    def __init__(self, datastore: str = "", host: str = "",
                 set_host_for_datastore_uploads: bool = False):
        self.datastore = datastore
        self.host = host
        self.set_host_for_datastore_uploads = set_host_for_datastore_uploads
        self.uploaded_custom_cd = False

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        driver = state.get("driver")
        try:
            if "iso_path" in state:
                state.put("iso_remote_path", self._upload_file(state.get("iso_path"), driver, ui))
            if "cd_path" in state:
                remote = self._upload_file(state.get("cd_path"), driver, ui)
                self.uploaded_custom_cd = True
                state.put("cd_path", remote)
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def _upload_file(self, path: str, driver: Any, ui: Any) -> str:
        try:
            datastore = driver.find_datastore(self.datastore, self.host)
        except Exception as err:
            raise StepError(f"datastore doesn't exist: {err}") from err

        location = get_remote_directory_and_path(path, datastore)

        if datastore.file_exists(location.remote_path):
            ui.say(f"File {location.full_remote_path} already exists; skipping upload.")
            return location.full_remote_path

        ui.say(f"Uploading {location.filename} to {location.remote_path}")

        if not datastore.dir_exists(location.remote_path):
            log.info("Remote directory doesn't exist; creating...")
            datastore.make_directory(location.remote_directory)

        datastore.upload_file(path, location.remote_path, self.host,
                              self.set_host_for_datastore_uploads)
        return location.full_remote_path

    def cleanup(self, state: StateBag) -> None:
        """Delete the uploaded CD image when the build did not succeed."""
        if STATE_CANCELLED not in state and STATE_HALTED not in state:
            return
        if not self.uploaded_custom_cd or "cd_path" not in state:
            return

        ui = state.get("ui")
        driver = state.get("driver")
        ui.say("Deleting cd_files image from remote datastore ...")

        try:
            datastore = driver.find_datastore(self.datastore, self.host)
        except Exception as err:
            log.warning("Error finding datastore to delete custom CD; please delete manually: %s", err)
            return
        try:
            datastore.delete(state.get("cd_path"))
        except Exception as err:
            log.warning("Error deleting custom CD from remote datastore; please delete manually: %s",
                        err)