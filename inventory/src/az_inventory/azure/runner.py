from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..logging import get_logger
from ..util.errors import AzCliError, AzCliNotFound

LOG = get_logger(__name__)

DEFAULT_AZ_PATH = "az"
DEFAULT_TIMEOUT_SECONDS = 300


def _describe(args: Sequence[str]) -> str:
    return " ".join(["az", *args])


@dataclass(frozen=True)
class AzCli:
    """
    Runs az subcommands and returns their parsed JSON output.

    Every call appends `--output json`; callers pass only the subcommand and its
    own flags. A subscription, when given, is passed per call rather than
    switched globally with `az account set`.
    """

    az_path: str = DEFAULT_AZ_PATH
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS

    def executable(self) -> str:
        resolved = shutil.which(self.az_path)
        if not resolved:
            raise AzCliNotFound(
                f"az CLI executable '{self.az_path}' was not found on PATH. "
                "Install the Azure CLI or pass --az-path."
            )
        return resolved

    def run_json(self, args: Sequence[str], *, subscription: Optional[str] = None) -> Any:
        cmd: List[str] = [self.executable(), *args]
        if subscription:
            cmd.extend(["--subscription", subscription])
        cmd.extend(["--output", "json"])
        LOG.debug("Running az", extra={"step": "az", "phase": "start", "command": _describe(args)})
        try:
            proc = subprocess.run(
                cmd,
                text=True,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise AzCliError(f"{_describe(args)} timed out after {self.timeout}s") from e
        except OSError as e:
            raise AzCliNotFound(f"Failed to execute {cmd[0]}: {e}") from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            detail = stderr or (proc.stdout or "").strip() or f"exit code {proc.returncode}"
            raise AzCliError(
                f"{_describe(args)} failed: {detail}",
                returncode=proc.returncode,
                stderr=stderr,
            )

        out = (proc.stdout or "").strip()
        if not out:
            return None
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise AzCliError(f"{_describe(args)} printed output that is not JSON: {e}") from e

    def run_list(self, args: Sequence[str], *, subscription: Optional[str] = None) -> List[Any]:
        """
        Run a listing command. Empty output is an empty listing; anything other
        than a JSON array is an error.
        """
        data = self.run_json(args, subscription=subscription)
        if data is None:
            return []
        if not isinstance(data, list):
            raise AzCliError(f"{_describe(args)} did not return a JSON array")
        return data
