from __future__ import annotations

import contextlib
import logging
import os
import platform
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .control import CONTROL_FILE
from .errors import ConfigurationError, DependencyMissingError, EstimatorTimeoutError
from .logs import PROGRESS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimatorProgram:
    """Files that make up an EMIBD9 install on one operating system."""

    executable: str
    libraries: Tuple[str, ...] = ()

    @property
    def files(self) -> Tuple[str, ...]:
        return (self.executable,) + self.libraries

    def command(self, scratch_dir: Path) -> List[str]:
        # EMIBD9 resolves the control file relative to its working directory.
        return [str(scratch_dir / self.executable), f"INP:{CONTROL_FILE}"]


PROGRAMS: Dict[str, EstimatorProgram] = {
    "Windows": EstimatorProgram("EM_IBD_P.exe", ("impi.dll", "libiomp5md.dll")),
    "Linux": EstimatorProgram("EM_IBD_P"),
    "Darwin": EstimatorProgram("EM_IBD_P"),
}


def resolve_program(system: Optional[str] = None) -> EstimatorProgram:
    """Pick the EMIBD9 file set for the running (or given) operating system."""
    system = system or platform.system()
    try:
        return PROGRAMS[system]
    except KeyError:
        raise ConfigurationError(
            f"EMIBD9 is not distributed for '{system}' "
            f"(supported: {', '.join(sorted(PROGRAMS))})"
        ) from None


def check_dependencies(install_dir: str | Path, program: EstimatorProgram) -> List[Path]:
    """Return absolute paths of all required files, or raise if any is absent.

    Only reads the filesystem, so a failure here leaves no artifacts behind.
    """
    install_dir = Path(install_dir).expanduser().resolve()
    paths = [install_dir / name for name in program.files]
    missing = [p.name for p in paths if not p.is_file()]
    if missing:
        raise DependencyMissingError(install_dir, missing)
    logger.log(PROGRESS, "Found necessary files to run EMIBD9 in %s", install_dir)
    return paths


def stage_program(
    install_dir: str | Path,
    scratch_dir: str | Path,
    program: EstimatorProgram,
) -> List[Path]:
    """Copy executable and libraries into the scratch directory."""
    sources = check_dependencies(install_dir, program)
    scratch_dir = Path(scratch_dir)
    scratch_dir.mkdir(parents=True, exist_ok=True)
    staged = []
    for src in sources:
        dst = scratch_dir / src.name
        if src.resolve() != dst.resolve():
            shutil.copy2(src, dst)
        staged.append(dst)
    logger.debug("Staged %s into %s", ", ".join(p.name for p in staged), scratch_dir)
    return staged


@contextlib.contextmanager
def working_directory(path: str | Path) -> Iterator[Path]:
    """Temporarily change directory, restoring the previous one on any exit."""
    old = Path.cwd()
    os.chdir(path)
    try:
        yield Path(path)
    finally:
        os.chdir(old)


def run_estimator(
    scratch_dir: str | Path,
    program: EstimatorProgram,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """Run EMIBD9 in ``scratch_dir`` and block until it exits.

    The child gets ``scratch_dir`` as its working directory; the caller's
    own working directory is never changed. A non-zero exit status is only
    logged: whether the run succeeded is decided by the report parser.
    """
    scratch_dir = Path(scratch_dir).resolve()
    cmd = program.command(scratch_dir)
    logger.log(PROGRESS, "Running: %s (in %s)", " ".join(cmd), scratch_dir)
    try:
        proc = subprocess.run(
            cmd,
            cwd=scratch_dir,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise EstimatorTimeoutError(float(timeout)) from exc

    if proc.stdout:
        logger.debug("EMIBD9 stdout:\n%s", proc.stdout)
    if proc.stderr:
        logger.debug("EMIBD9 stderr:\n%s", proc.stderr)
    if proc.returncode != 0:
        logger.warning("EMIBD9 exited with status %d", proc.returncode)
    return proc
