"""Path management for mesh-bootstrap.

Manages the ~/.mesh-bootstrap/ directory used for state and logs.
"""

from pathlib import Path

# Base directory for all mesh-bootstrap data
BOOTSTRAP_DIR = Path.home() / ".mesh-bootstrap"

# Values carried between invocations (gateway address, completed stages)
STATE_FILE = BOOTSTRAP_DIR / "state.yaml"


def get_log_file(name: str = "istio_setup") -> Path:
    """Get path to a log file.

    Args:
        name: Log file name (without extension)

    Returns:
        Path to the log file
    """
    return BOOTSTRAP_DIR / f"{name}.log"
