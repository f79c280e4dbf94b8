"""
qBittorrent integration.

qBittorrent's Web API authenticates with a form login that sets an ``SID``
cookie. Credentials are stored either as username/password or as
``username:password`` in the API key field; sessions are shared through the
session cache (see client.py).

API Documentation: https://github.com/qbittorrent/qBittorrent/wiki/WebUI-API-(qBittorrent-4.1)
"""
import asyncio
from typing import Any, Dict, List, Optional

from mediahub.integrations.auth import FormLoginAuth
from mediahub.integrations.base import Capability, ServiceDefinition, capability_map
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.errors import with_tool_error_handling
from mediahub.integrations.health import form_login_probe
from mediahub.integrations.schemas import CapabilityCategory

SERVICE_NAME = "qbittorrent"
DISPLAY_NAME = "qBittorrent"
API_VERSION = "/api/v2"

TORRENT_FILTERS = (
    "all", "downloading", "seeding", "completed", "paused",
    "active", "inactive", "resumed", "stalled", "errored",
)
DOWNLOADING_STATES = {"downloading", "metaDL", "stalledDL", "forcedDL"}
SEEDING_STATES = {"uploading", "stalledUP", "forcedUP"}
PAUSED_STATES = {"pausedDL", "pausedUP", "stoppedDL", "stoppedUP"}
ALL_TORRENTS = "all"

qbittorrent_client = ServiceClient(
    service_name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    api_version=API_VERSION,
    auth_strategy=FormLoginAuth(login_path=f"{API_VERSION}/auth/login"),
)


def format_bytes(num_bytes: Optional[float]) -> str:
    """Render a byte count with a binary unit, e.g. ``1.5 GB``."""
    value = float(num_bytes or 0)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def format_eta(seconds: Optional[int]) -> Optional[str]:
    # qBittorrent reports 8640000 for "infinite"
    if seconds is None or seconds < 0 or seconds >= 8640000:
        return None
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _format_torrent(torrent: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "hash": torrent.get("hash"),
        "name": torrent.get("name"),
        "state": torrent.get("state"),
        "progress": round((torrent.get("progress") or 0) * 100, 1),
        "size": format_bytes(torrent.get("size")),
        "downloadSpeed": f"{format_bytes(torrent.get('dlspeed'))}/s",
        "uploadSpeed": f"{format_bytes(torrent.get('upspeed'))}/s",
        "eta": format_eta(torrent.get("eta")),
        "ratio": round(torrent.get("ratio") or 0, 2),
    }


@with_tool_error_handling(DISPLAY_NAME, "get torrents")
async def get_torrents(
    client: ServiceClient,
    user_id: str,
    filter: str = "all",
    limit: int = 20,
    sort: str = "added_on",
) -> Dict[str, Any]:
    if filter not in TORRENT_FILTERS:
        return {"error": f"Invalid filter '{filter}'. Expected one of: {', '.join(TORRENT_FILTERS)}."}

    torrents: List[Dict[str, Any]] = await client.get(
        user_id,
        "/torrents/info",
        params={"filter": filter, "limit": limit, "sort": sort, "reverse": True},
    )
    if not torrents:
        message = "No torrents found in qBittorrent." if filter == "all" else f"No {filter} torrents found."
        return {"torrents": [], "message": message}

    plural = "" if len(torrents) == 1 else "s"
    filtered = f" (filtered by: {filter})" if filter != "all" else ""
    return {
        "torrents": [_format_torrent(t) for t in torrents],
        "summary": {
            "total": len(torrents),
            "downloading": sum(1 for t in torrents if t.get("state") in DOWNLOADING_STATES),
            "seeding": sum(1 for t in torrents if t.get("state") in SEEDING_STATES),
            "paused": sum(1 for t in torrents if t.get("state") in PAUSED_STATES),
        },
        "message": f"Found {len(torrents)} torrent{plural}{filtered}.",
    }


@with_tool_error_handling(DISPLAY_NAME, "get transfer info")
async def get_transfer_info(client: ServiceClient, user_id: str) -> Dict[str, Any]:
    transfer, main_data = await asyncio.gather(
        client.get(user_id, "/transfer/info"),
        client.get(user_id, "/sync/maindata"),
    )
    server_state = main_data.get("server_state") or {}
    torrents = list((main_data.get("torrents") or {}).values())

    def limit(value: Optional[int]) -> str:
        return f"{format_bytes(value)}/s" if value and value > 0 else "Unlimited"

    return {
        "speeds": {
            "download": f"{format_bytes(transfer.get('dl_info_speed'))}/s",
            "upload": f"{format_bytes(transfer.get('up_info_speed'))}/s",
        },
        "limits": {
            "download": limit(transfer.get("dl_rate_limit")),
            "upload": limit(transfer.get("up_rate_limit")),
        },
        "session": {
            "downloaded": format_bytes(transfer.get("dl_info_data")),
            "uploaded": format_bytes(transfer.get("up_info_data")),
        },
        "allTime": {
            "downloaded": format_bytes(server_state.get("alltime_dl")),
            "uploaded": format_bytes(server_state.get("alltime_ul")),
        },
        "freeSpace": format_bytes(server_state.get("free_space_on_disk")),
        "activeTorrents": {
            "downloading": sum(1 for t in torrents if t.get("state") in DOWNLOADING_STATES),
            "seeding": sum(1 for t in torrents if t.get("state") in SEEDING_STATES),
        },
        "connectionStatus": transfer.get("connection_status"),
    }


@with_tool_error_handling(DISPLAY_NAME, "pause or resume torrent")
async def pause_resume_torrent(
    client: ServiceClient,
    user_id: str,
    hash: str,
    action: str,
) -> Dict[str, Any]:
    """Pause or resume one torrent by hash, or every torrent with ``hash="all"``."""
    if action not in ("pause", "resume"):
        return {"error": f"Invalid action '{action}'. Expected 'pause' or 'resume'."}
    endpoint = "/torrents/pause" if action == "pause" else "/torrents/resume"
    done = "paused" if action == "pause" else "resumed"

    if hash == ALL_TORRENTS:
        await client.post_form(user_id, endpoint, {"hashes": ALL_TORRENTS})
        return {"success": True, "action": action, "message": f"Successfully {done} all torrents."}

    existing = await client.get(user_id, "/torrents/info", params={"hashes": hash})
    if not existing:
        return {
            "success": False,
            "message": f'Torrent with hash "{hash}" not found. Please check the hash and try again.',
        }

    await client.post_form(user_id, endpoint, {"hashes": hash})

    updated = await client.get(user_id, "/torrents/info", params={"hashes": hash})
    torrent = (updated or existing)[0]
    return {
        "success": True,
        "action": action,
        "message": f'Successfully {done} torrent "{torrent.get("name")}".',
        "torrent": {"hash": torrent.get("hash"), "name": torrent.get("name"), "state": torrent.get("state")},
    }


QBITTORRENT = ServiceDefinition(
    name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    description="Torrent client. Use this to monitor and control downloads.",
    client=qbittorrent_client,
    capabilities=capability_map(
        Capability(
            name="getQBittorrentTorrents",
            display_name="List Torrents (qBittorrent)",
            category=CapabilityCategory.DOWNLOAD,
            description="List torrents with progress, state and speeds",
            handler=get_torrents,
        ),
        Capability(
            name="getQBittorrentTransferInfo",
            display_name="Transfer Info (qBittorrent)",
            category=CapabilityCategory.DOWNLOAD,
            description="View global transfer statistics",
            handler=get_transfer_info,
        ),
        Capability(
            name="pauseResumeQBittorrentTorrent",
            display_name="Pause/Resume Torrent",
            category=CapabilityCategory.DOWNLOAD,
            description="Pause or resume a torrent",
            handler=pause_resume_torrent,
            requires_approval=True,
        ),
    ),
    health_check=form_login_probe,
)
