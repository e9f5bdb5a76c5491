"""Open the demo's home page in the user's browser (WSL aware)."""
import logging
import os
import subprocess
import webbrowser

logger = logging.getLogger(__name__)


def is_wsl() -> bool:
    """Check if running inside WSL."""
    if os.environ.get("WSL_DISTRO_NAME"):
        return True
    try:
        with open("/proc/version", "r") as f:
            version = f.read().lower()
    except OSError:
        return False
    return "microsoft" in version or "wsl" in version


def open_browser(url: str) -> bool:
    """Open URL in browser, handling WSL gracefully.

    Returns True if a browser was launched.
    """
    if is_wsl():
        # wslview (wslu package) first, then the Windows shell
        for command in (["wslview", url], ["cmd.exe", "/c", "start", url]):
            try:
                result = subprocess.run(command, capture_output=True, timeout=5)
            except (FileNotFoundError, subprocess.TimeoutExpired):
                continue
            if result.returncode == 0:
                return True

    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.warning(f"[STARTUP] Could not open browser: {e}")
        return False

    if not opened:
        logger.warning(f"[STARTUP] No browser available, visit {url}")
    return opened
