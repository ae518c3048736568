"""Recover dispatch inputs of a finished build from its log archive.

GitHub's API does not return the inputs a ``workflow_dispatch`` run was
started with, so the build workflow echoes them in a dedicated step and we
parse that step's log out of the run's zipped log archive. This is the most
format-coupled part of the pipeline, hence the narrow extractor interface.
"""

import io
import logging
import re
import zipfile
from dataclasses import dataclass
from typing import Protocol

import httpx

from ..integrations.github import GitHubClient
from ..schemas.publishing import WorkflowRun
from .errors import ExtractionError

logger = logging.getLogger(__name__)

DEFAULT_STEP = "build/2_Echo_Inputs"

INPUTS_PATTERN = re.compile(r"owner:(.+?);repository:(.+?);plugin:(.+?);commit:(.+?);")


@dataclass(frozen=True)
class DispatchInputs:
    """Inputs a build workflow run was dispatched with."""

    owner: str
    repository: str
    plugin: str
    commit: str

    def as_workflow_inputs(self) -> dict[str, str]:
        return {
            "owner": self.owner,
            "repository": self.repository,
            "plugin": self.plugin,
            "commit": self.commit,
        }


class WorkflowLogExtractor(Protocol):
    """Maps a completed workflow run back to its dispatch inputs."""

    async def extract(self, run: WorkflowRun) -> DispatchInputs:
        ...


def parse_inputs(log: str) -> DispatchInputs:
    """Parse the echoed inputs line out of a step log.

    Raises:
        ExtractionError: If no inputs line is present
    """
    match = INPUTS_PATTERN.search(log)
    if match is None:
        raise ExtractionError("Could not find inputs in workflow log")

    owner, repository, plugin, commit = match.groups()
    return DispatchInputs(owner=owner, repository=repository, plugin=plugin, commit=commit)


def read_step_log(archive: bytes, step: str = DEFAULT_STEP) -> str:
    """Return the text of one step log from a run log archive.

    Entries are matched by name with or without a ``.txt`` suffix.

    Raises:
        ExtractionError: If the archive is unreadable or the step is missing
    """
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
            for name in bundle.namelist():
                if name in (step, f"{step}.txt"):
                    return bundle.read(name).decode("utf-8", errors="replace")
    except zipfile.BadZipFile as e:
        raise ExtractionError(f"Workflow log archive is not a zip file: {e}") from e

    raise ExtractionError(f"Could not find step {step} in workflow logs")


class ZipLogExtractor:
    """Extractor that downloads and searches the run's zipped logs."""

    def __init__(self, github: GitHubClient, step: str = DEFAULT_STEP) -> None:
        self.github = github
        self.step = step

    async def extract(self, run: WorkflowRun) -> DispatchInputs:
        try:
            archive = await self.github.download_run_logs(run.logs_url)
        except httpx.HTTPError as e:
            raise ExtractionError(f"Failed to download workflow logs: {e}") from e

        inputs = parse_inputs(read_step_log(archive, self.step))
        logger.info(f"Extracted dispatch inputs {inputs} from {run.html_url}")
        return inputs
