import subprocess
from typing import List, Optional, Tuple

from apex_batch.shared.logging import get_logger

logger = get_logger(__name__)

COMMAND_NOT_FOUND = 127


def run_cmd(cmd: List[str], timeout: Optional[float] = None, cwd: Optional[str] = None) -> Tuple[int, str, str]:
    """Run a command without a shell. Returns (returncode, stdout, stderr).

    A missing executable is reported as return code 127 with the reason on
    stderr, like a POSIX shell would. subprocess.TimeoutExpired propagates so
    callers can keep whatever output was produced before the deadline.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        completed = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except FileNotFoundError:
        return COMMAND_NOT_FOUND, '', f'Command not found: {cmd[0]}'
    return completed.returncode, completed.stdout or '', completed.stderr or ''
