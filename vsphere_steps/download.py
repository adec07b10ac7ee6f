"""Skipping downloads of images that already sit on the datastore."""

from __future__ import annotations

import abc
import threading
from typing import Sequence

from .multistep import StateBag, Step, StepAction, StepError
from .remote_upload import get_remote_directory_and_path


class DownloadStep(Step):
    """A step that downloads an image and can say where it caches it."""

    @abc.abstractmethod
    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        """Download the image."""

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo by default."""

    @abc.abstractmethod
    def cache_target(self, source: str) -> str:
        """Return the local cache path that ``source`` downloads to."""


class StepDownload(Step):
    """Run the wrapped download only if no image is on the datastore yet."""

    def __init__(self, download_step: DownloadStep, urls: Sequence[str] = (),
                 result_key: str = "", datastore: str = "", host: str = ""):
        self.download_step = download_step
        self.urls = list(urls)
        self.result_key = result_key
        self.datastore = datastore
        self.host = host

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        driver = state.get("driver")
        ui = state.get("ui")

        try:
            datastore = driver.find_datastore(self.datastore, self.host)
        except Exception as err:
            error = StepError(f"datastore doesn't exist: {err}")
            error.__cause__ = err
            state.put("error", error)
            return StepAction.HALT

        for source in self.urls:
            try:
                target_path = self.download_step.cache_target(source)
            except Exception as err:
                error = StepError(f"Error getting target path: {err}")
                error.__cause__ = err
                state.put("error", error)
                return StepAction.HALT
            location = get_remote_directory_and_path(target_path, datastore)
            if datastore.file_exists(location.remote_path):
                ui.say(f"File {target_path} already uploaded; continuing")
                state.put(self.result_key, target_path)
                state.put("SourceImageURL", source)
                return StepAction.CONTINUE

        return self.download_step.run(state, cancel)

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""