"""
SSE progress tracking for indexing runs
"""
import asyncio
from utils.logging import log

# Progress tracking for indexing runs
# {run_id: {"status": str, "project_id": str, "queues": [asyncio.Queue]}}
index_progress = {}


async def send_progress(run_id: str, status: str):
    """Send progress update to all connected SSE clients."""
    if run_id in index_progress:
        progress_data = index_progress[run_id]
        progress_data["status"] = status
        for queue in progress_data.get("queues", []):
            await queue.put({"status": status, "project_id": progress_data.get("project_id", "")})
        # Yield control to event loop so SSE handler can process the queue
        await asyncio.sleep(0)
    else:
        log(f"WARNING: send_progress called for unknown run_id: {run_id}")


def init_index_progress(run_id: str, project_id: str):
    """Initialize or update progress tracking entry, preserving existing queues."""
    if run_id not in index_progress:
        index_progress[run_id] = {
            "status": "Loading repository...",
            "project_id": project_id,
            "queues": []
        }
    else:
        # Update existing entry but keep the queues
        index_progress[run_id]["project_id"] = project_id
        index_progress[run_id]["status"] = "Loading repository..."


def progress_reporter(run_id: str):
    """Return an async callback that forwards pipeline status lines to SSE clients."""
    async def report(status: str):
        await send_progress(run_id, status)
    return report


def cleanup_index_progress(run_id: str):
    """Clean up progress tracking for a finished run."""
    if run_id in index_progress:
        del index_progress[run_id]
