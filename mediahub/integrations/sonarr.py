"""
Sonarr integration.

Sonarr is Radarr's counterpart for TV series. Same API family (v3, API key
header), so the handlers here mirror the movie ones.
"""
from typing import Any, Dict, Optional

from mediahub.integrations.auth import ApiKeyHeaderAuth
from mediahub.integrations.base import Capability, ServiceDefinition, capability_map
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.errors import with_tool_error_handling
from mediahub.integrations.health import status_endpoint_probe
from mediahub.integrations.schemas import CapabilityCategory

SERVICE_NAME = "sonarr"
DISPLAY_NAME = "Sonarr"
API_VERSION = "/api/v3"

SEARCH_RESULT_LIMIT = 10

sonarr_client = ServiceClient(
    service_name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    api_version=API_VERSION,
    auth_strategy=ApiKeyHeaderAuth("X-Api-Key"),
)


def _summarize_series(series: Dict[str, Any]) -> Dict[str, Any]:
    poster = series.get("remotePoster")
    if not poster:
        poster = next(
            (i.get("remoteUrl") for i in series.get("images") or [] if i.get("coverType") == "poster"),
            None,
        )
    statistics = series.get("statistics") or {}
    return {
        "title": series.get("title"),
        "year": series.get("year"),
        "mediaType": "tv",
        "posterUrl": poster,
        "network": series.get("network"),
        "seasonCount": statistics.get("seasonCount") or len(series.get("seasons") or []),
        "episodeFileCount": statistics.get("episodeFileCount"),
        "status": series.get("status"),
        "monitored": series.get("monitored"),
        "serviceId": series.get("id") or 0,
        "externalIds": {"tvdb": series.get("tvdbId"), "imdb": series.get("imdbId")},
    }


@with_tool_error_handling(DISPLAY_NAME, "search series")
async def search_series(client: ServiceClient, user_id: str, query: str) -> Dict[str, Any]:
    results = await client.get(user_id, "/series/lookup", params={"term": query})
    if not results:
        return {"results": [], "message": f'No series found matching "{query}".'}
    series = [_summarize_series(s) for s in results[:SEARCH_RESULT_LIMIT]]
    return {
        "results": series,
        "message": (
            f'Found {len(results)} series matching "{query}". '
            f"Showing top {len(series)} results."
        ),
    }


@with_tool_error_handling(DISPLAY_NAME, "get library")
async def get_library(client: ServiceClient, user_id: str, limit: int = 50) -> Dict[str, Any]:
    series = await client.get(user_id, "/series")
    series = sorted(series, key=lambda s: (s.get("sortTitle") or s.get("title") or "").lower())
    return {
        "results": [_summarize_series(s) for s in series[:limit]],
        "totalResults": len(series),
    }


@with_tool_error_handling(DISPLAY_NAME, "get queue")
async def get_queue(client: ServiceClient, user_id: str, page_size: int = 20) -> Dict[str, Any]:
    queue = await client.get(
        user_id,
        "/queue",
        params={"pageSize": page_size, "includeSeries": True, "includeEpisode": True},
    )
    records = queue.get("records", []) if isinstance(queue, dict) else []
    items = []
    for record in records:
        episode = record.get("episode") or {}
        items.append({
            "id": record.get("id"),
            "series": (record.get("series") or {}).get("title"),
            "episode": episode.get("title"),
            "seasonNumber": episode.get("seasonNumber"),
            "episodeNumber": episode.get("episodeNumber"),
            "status": record.get("status"),
            "timeLeft": record.get("timeleft"),
        })
    return {"items": items, "totalRecords": len(items)}


@with_tool_error_handling(DISPLAY_NAME, "add series")
async def add_series(
    client: ServiceClient,
    user_id: str,
    tvdb_id: int,
    quality_profile_id: Optional[int] = None,
    monitor: str = "all",
    search_for_missing_episodes: bool = True,
) -> Dict[str, Any]:
    lookup = await client.get(user_id, "/series/lookup", params={"term": f"tvdb:{tvdb_id}"})
    if not lookup:
        return {"error": f"No series found with TVDB ID {tvdb_id}."}
    series = lookup[0]

    existing = await client.get(user_id, "/series", params={"tvdbId": tvdb_id})
    if existing:
        return {"error": f'"{series.get("title")}" is already in your Sonarr library.'}

    if quality_profile_id is None:
        profiles = await client.get(user_id, "/qualityprofile")
        if not profiles:
            return {"error": "No quality profiles configured in Sonarr."}
        quality_profile_id = profiles[0]["id"]

    root_folders = await client.get(user_id, "/rootfolder")
    if not root_folders:
        return {"error": "No root folders configured in Sonarr."}

    added = await client.post(user_id, "/series", json={
        **series,
        "qualityProfileId": quality_profile_id,
        "rootFolderPath": root_folders[0]["path"],
        "monitored": True,
        "seasonFolder": True,
        "addOptions": {
            "monitor": monitor,
            "searchForMissingEpisodes": search_for_missing_episodes,
        },
    })
    return {
        "success": True,
        "message": f'Successfully added "{added.get("title")}" to Sonarr.',
        "series": {
            "id": added.get("id"),
            "title": added.get("title"),
            "year": added.get("year"),
            "path": added.get("path"),
        },
    }


@with_tool_error_handling(DISPLAY_NAME, "delete series")
async def delete_series(
    client: ServiceClient,
    user_id: str,
    series_id: int,
    delete_files: bool = True,
    add_import_list_exclusion: bool = False,
) -> Dict[str, Any]:
    await client.delete(
        user_id,
        f"/series/{series_id}",
        params={"deleteFiles": delete_files, "addImportListExclusion": add_import_list_exclusion},
    )
    return {"success": True, "message": f"Series with ID {series_id} deleted successfully"}


SONARR = ServiceDefinition(
    name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    description="TV series collection manager. Use this to manage the user's TV library.",
    client=sonarr_client,
    capabilities=capability_map(
        Capability(
            name="searchSonarrSeries",
            display_name="Search Series (Sonarr)",
            category=CapabilityCategory.SEARCH,
            description="Search for TV series to add to Sonarr",
            handler=search_series,
        ),
        Capability(
            name="getSonarrLibrary",
            display_name="Get Library (Sonarr)",
            category=CapabilityCategory.LIBRARY,
            description="View series in the library",
            handler=get_library,
        ),
        Capability(
            name="getSonarrQueue",
            display_name="View Queue (Sonarr)",
            category=CapabilityCategory.QUEUE,
            description="View download queue",
            handler=get_queue,
        ),
        Capability(
            name="addSonarrSeries",
            display_name="Add Series",
            category=CapabilityCategory.MANAGEMENT,
            description="Add a TV series to the Sonarr library",
            handler=add_series,
            requires_approval=True,
        ),
        Capability(
            name="deleteSonarrSeries",
            display_name="Delete Series",
            category=CapabilityCategory.MANAGEMENT,
            description="Remove a TV series from the library",
            handler=delete_series,
            requires_approval=True,
        ),
    ),
    health_check=status_endpoint_probe(f"{API_VERSION}/system/status"),
)
