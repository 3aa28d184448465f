import glob
import os
import shutil
from pathlib import Path


def find_pact_executable(
    name: str,
    env_var: str,
    bin_dir: Path | None = None,
) -> Path:
    """Find the executable for one of the Pact binaries.

    Lookup order: the `env_var` override, then `bin_dir` (searched
    recursively for `**/{name}` and `**/{name}.bat`), then `PATH`.
    """
    override = os.environ.get(env_var)
    if override:
        path = Path(override)
        if not path.exists():
            raise FileNotFoundError(f"{env_var} points at {path}, which does not exist")
        return path

    if bin_dir is not None:
        matches = sorted(
            glob.glob(str(bin_dir / f"**/{name}"), recursive=True)
            + glob.glob(str(bin_dir / f"**/{name}.bat"), recursive=True),
        )
        if matches:
            return Path(matches[0])

    found = shutil.which(name)
    if found is None:
        searched = f"{bin_dir} or PATH" if bin_dir is not None else "PATH"
        raise FileNotFoundError(
            f"No {name} executable found in {searched}; set {env_var} to its location",
        )

    return Path(found)


def ensure_executable(exe_path: Path) -> Path:
    if not exe_path.exists():
        raise FileNotFoundError(f"Executable not found at {exe_path}")
    if not os.access(exe_path, os.X_OK):
        raise PermissionError(f"File is not executable: {exe_path}")

    return exe_path
