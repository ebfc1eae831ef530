"""Open a URL in the user's default browser via the host OS handler."""

from __future__ import annotations

import asyncio
import logging
import sys

from caldav_cli.errors import BrowserLaunchError

logger = logging.getLogger(__name__)

_LAUNCH_TIMEOUT_SECONDS = 10.0


def browser_command(url: str, platform: str | None = None) -> list[str]:
    """Return the argv that opens *url* on *platform* (defaults to ``sys.platform``)."""
    platform = platform or sys.platform
    if platform == "darwin":
        return ["open", url]
    if platform == "win32":
        # ``start`` is a cmd builtin; the empty string is the window title.
        return ["cmd", "/c", "start", "", url]
    return ["xdg-open", url]


async def open_browser(url: str, *, platform: str | None = None) -> None:
    """Launch the OS URL handler for *url*.

    Only the handler's exit status is awaited.  A handler that is still
    running after the launch timeout is left alone and treated as launched,
    since it may now be the browser itself.

    Raises
    ------
    BrowserLaunchError
        If the handler cannot be executed or exits non-zero.
    """
    cmd = browser_command(url, platform)
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        raise BrowserLaunchError(f"Failed to open browser: {exc}") from exc

    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout=_LAUNCH_TIMEOUT_SECONDS)
    except TimeoutError:
        logger.debug(
            "%s still running after %gs; assuming the browser opened",
            cmd[0],
            _LAUNCH_TIMEOUT_SECONDS,
        )
        return

    if returncode:
        raise BrowserLaunchError(
            f"Failed to open browser: {cmd[0]} exited with code {returncode}"
        )
    logger.debug("Browser launched with %s", cmd[0])
