from __future__ import annotations

import stat
import sys
from pathlib import Path
from typing import Optional

from pyemibd.invoke import resolve_program

# Stand-in EM_IBD_P scripts. Each checks it was launched the way EMIBD9
# expects (INP:MyData.par, control file in the working directory).
_PREAMBLE = '''
import pathlib
import sys

if sys.argv[1:] != ["INP:MyData.par"]:
    sys.exit(2)
par = pathlib.Path("MyData.par").read_text().split()
if not pathlib.Path(par[4]).is_file():
    sys.exit(3)
print("EMIBD9 stand-in started")
'''

_WRITE_REPORT = '''
pathlib.Path(par[5]).write_text(REPORT)
'''

_HANG = '''
import time
time.sleep(60)
'''

_CRASH = '''
print("stand-in failure", file=sys.stderr)
sys.exit(1)
'''


def _interpreter() -> str:
    # Linux truncates long shebang lines.
    if len(sys.executable) < 100 and " " not in sys.executable:
        return sys.executable
    return "/usr/bin/env python3"


def install_fake_estimator(
    install_dir: Path,
    mode: str = "report",
    report_text: Optional[str] = None,
) -> Path:
    """Write an executable stand-in for EM_IBD_P into ``install_dir``."""
    program = resolve_program()
    body = [f"#!{_interpreter()}", _PREAMBLE]
    if mode == "report":
        body.append(f"REPORT = {report_text!r}")
        body.append(_WRITE_REPORT)
    elif mode == "hang":
        body.append(_HANG)
    elif mode == "crash":
        body.append(_CRASH)
    else:
        raise ValueError(f"Unknown stand-in mode '{mode}'")

    install_dir.mkdir(parents=True, exist_ok=True)
    exe = install_dir / program.executable
    exe.write_text("\n".join(body))
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    for lib in program.libraries:
        (install_dir / lib).write_bytes(b"")
    return exe
