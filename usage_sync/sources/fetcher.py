"""
Concurrent fetching of provider reports.

Each provider's report comes from an external command printing JSON.
Fetches run together and fail independently: a failed fetch yields None
and the run continues with the other provider's data.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """A report command failed or printed something that is not JSON."""


async def run_report_command(command: str) -> str:
    """Run ``command`` in a shell and return its stdout.

    Raises:
        FetchError: If the command exits with a non-zero status
    """
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise FetchError(f"'{command}' exited with status {process.returncode}: {detail}")
    return stdout.decode("utf-8")


async def fetch_report(label: str, command: str) -> Optional[Any]:
    """Fetch and parse one provider report, or None on any failure."""
    logger.info("Fetching %s data...", label)
    try:
        output = await run_report_command(command)
        return json.loads(output)
    except (FetchError, OSError, ValueError) as e:
        logger.warning("Failed to fetch %s data: %s", label, e)
        return None


async def fetch_reports(commands: Dict[str, str]) -> Dict[str, Optional[Any]]:
    """Fetch every provider's report concurrently.

    Args:
        commands: Provider label -> shell command

    Returns:
        Provider label -> parsed JSON, or None where the fetch failed
    """
    labels = list(commands)
    results = await asyncio.gather(*(fetch_report(label, commands[label]) for label in labels))
    return dict(zip(labels, results))
