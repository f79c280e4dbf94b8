"""
Jellyfin integration.

Jellyfin is a media server. Its API has no version prefix and authenticates
with ``Authorization: MediaBrowser Token="<api key>"``. Most item endpoints
are scoped to a Jellyfin user, which is resolved per call.
"""
from typing import Any, Dict, Optional

from mediahub.integrations.auth import BearerTokenAuth
from mediahub.integrations.base import Capability, ServiceDefinition, capability_map
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.errors import ServiceClientError, with_tool_error_handling
from mediahub.integrations.health import status_endpoint_probe
from mediahub.integrations.schemas import CapabilityCategory

SERVICE_NAME = "jellyfin"
DISPLAY_NAME = "Jellyfin"

ITEM_FIELDS = "Overview,Genres,CommunityRating,DateCreated"
MEDIA_TYPE_FILTERS = {
    "movies": "Movie",
    "shows": "Episode",
    "all": "Movie,Episode",
}
SEARCH_TYPE_FILTERS = {
    "movies": "Movie",
    "shows": "Series",
    "all": "Movie,Series,Episode",
}

jellyfin_client = ServiceClient(
    service_name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    auth_strategy=BearerTokenAuth('MediaBrowser Token="{api_key}"'),
)


async def resolve_user_id(client: ServiceClient, user_id: str) -> str:
    """
    Find the Jellyfin user the API key acts as.

    API keys created in the dashboard are not tied to a user, so /Users/Me
    can fail; fall back to the first user on the server.
    """
    try:
        me = await client.get(user_id, "/Users/Me")
        if isinstance(me, dict) and me.get("Id"):
            return me["Id"]
    except ServiceClientError as e:
        if e.status_code is None:
            raise

    users = await client.get(user_id, "/Users")
    if not users:
        raise ServiceClientError("No Jellyfin users found.", DISPLAY_NAME)
    return users[0]["Id"]


def _summarize_item(item: Dict[str, Any], base_url: Optional[str] = None) -> Dict[str, Any]:
    is_episode = item.get("Type") == "Episode"
    summary = {
        "id": item.get("Id"),
        "title": item.get("SeriesName") if is_episode else item.get("Name"),
        "type": item.get("Type"),
        "year": item.get("ProductionYear"),
        "overview": item.get("Overview"),
        "genres": item.get("Genres") or [],
        "rating": item.get("CommunityRating"),
        "dateAdded": item.get("DateCreated"),
    }
    if is_episode:
        summary["episode"] = {
            "name": item.get("Name"),
            "seasonNumber": item.get("ParentIndexNumber"),
            "episodeNumber": item.get("IndexNumber"),
        }
    if base_url and item.get("Id"):
        summary["posterUrl"] = f"{base_url.rstrip('/')}/Items/{item['Id']}/Images/Primary"
    return summary


@with_tool_error_handling(DISPLAY_NAME, "get recently added items")
async def get_recently_added(
    client: ServiceClient,
    user_id: str,
    limit: int = 20,
    media_type: str = "all",
) -> Dict[str, Any]:
    config = await client.require_config(user_id)
    jellyfin_user_id = await resolve_user_id(client, user_id)
    items = await client.get(
        user_id,
        f"/Users/{jellyfin_user_id}/Items/Latest",
        params={
            "Limit": limit,
            "IncludeItemTypes": MEDIA_TYPE_FILTERS.get(media_type, MEDIA_TYPE_FILTERS["all"]),
            "Fields": ITEM_FIELDS,
            "EnableImages": True,
        },
    )
    results = [_summarize_item(item, config.base_url) for item in items or []]
    return {
        "results": results,
        "totalResults": len(results),
        "message": f"Found {len(results)} recently added item(s).",
    }


@with_tool_error_handling(DISPLAY_NAME, "get continue watching")
async def get_continue_watching(client: ServiceClient, user_id: str, limit: int = 10) -> Dict[str, Any]:
    config = await client.require_config(user_id)
    jellyfin_user_id = await resolve_user_id(client, user_id)
    response = await client.get(
        user_id,
        f"/Users/{jellyfin_user_id}/Items/Resume",
        params={"Limit": limit, "MediaTypes": "Video", "Fields": ITEM_FIELDS},
    )
    results = []
    for item in response.get("Items", []):
        summary = _summarize_item(item, config.base_url)
        user_data = item.get("UserData") or {}
        summary["progressPercent"] = round(user_data.get("PlayedPercentage") or 0, 1)
        results.append(summary)
    return {"results": results, "totalResults": len(results)}


@with_tool_error_handling(DISPLAY_NAME, "search media")
async def search_media(
    client: ServiceClient,
    user_id: str,
    query: str,
    media_type: str = "all",
    limit: int = 20,
) -> Dict[str, Any]:
    config = await client.require_config(user_id)
    jellyfin_user_id = await resolve_user_id(client, user_id)
    response = await client.get(
        user_id,
        f"/Users/{jellyfin_user_id}/Items",
        params={
            "SearchTerm": query,
            "Recursive": True,
            "Limit": limit,
            "IncludeItemTypes": SEARCH_TYPE_FILTERS.get(media_type, SEARCH_TYPE_FILTERS["all"]),
            "Fields": ITEM_FIELDS,
        },
    )
    results = [_summarize_item(item, config.base_url) for item in response.get("Items", [])]
    if not results:
        return {"results": [], "message": f'No media found matching "{query}" in your library.'}
    return {
        "results": results,
        "totalResults": response.get("TotalRecordCount", len(results)),
        "message": f'Found {len(results)} item(s) matching "{query}".',
    }


JELLYFIN = ServiceDefinition(
    name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    description="Media server. Use this to see what the user has and is watching.",
    client=jellyfin_client,
    capabilities=capability_map(
        Capability(
            name="getJellyfinRecentlyAdded",
            display_name="Recently Added (Jellyfin)",
            category=CapabilityCategory.LIBRARY,
            description="View media recently added to the server",
            handler=get_recently_added,
        ),
        Capability(
            name="getJellyfinContinueWatching",
            display_name="Continue Watching (Jellyfin)",
            category=CapabilityCategory.PLAYBACK,
            description="View partially watched media",
            handler=get_continue_watching,
        ),
        Capability(
            name="searchJellyfinMedia",
            display_name="Search Library (Jellyfin)",
            category=CapabilityCategory.SEARCH,
            description="Search the media server library",
            handler=search_media,
        ),
    ),
    health_check=status_endpoint_probe("/System/Info"),
)
