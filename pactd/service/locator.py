from pathlib import Path

from pactd.errors import LaunchError
from pactd.logging_config import get_logger
from pactd.utils.executable import ensure_executable, find_pact_executable

log = get_logger(__name__)


class BinaryLocator:
    """Finds one Pact binary once, and keeps trying on demand if that failed."""

    def __init__(self, name: str, env_var: str, bin_dir: Path | None = None):
        self.name = name
        self.env_var = env_var
        self._bin_dir = bin_dir
        self._path: Path | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    def setup(self) -> None:
        try:
            self._path = self._locate()
        except (FileNotFoundError, PermissionError) as e:
            log.warning("Pact binary not available yet", binary=self.name, reason=str(e))
            return

        log.info("Located pact binary", binary=self.name, path=str(self._path))

    def require(self) -> Path:
        if self._path is not None:
            return self._path

        try:
            self._path = self._locate()
        except (FileNotFoundError, PermissionError) as e:
            raise LaunchError(str(e)) from e

        return self._path

    def _locate(self) -> Path:
        return ensure_executable(find_pact_executable(self.name, self.env_var, self._bin_dir))
