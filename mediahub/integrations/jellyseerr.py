"""
Jellyseerr integration.

Jellyseerr is a request manager in front of Radarr/Sonarr: users search for
content and request it, and approved requests are forwarded downstream.
"""
from enum import IntEnum
from typing import Any, Dict, List, Optional

from mediahub.integrations.auth import ApiKeyHeaderAuth
from mediahub.integrations.base import Capability, ServiceDefinition, capability_map
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.errors import with_tool_error_handling
from mediahub.integrations.health import status_endpoint_probe
from mediahub.integrations.schemas import CapabilityCategory

SERVICE_NAME = "jellyseerr"
DISPLAY_NAME = "Jellyseerr"
API_VERSION = "/api/v1"


class MediaStatus(IntEnum):
    UNKNOWN = 1
    PENDING = 2
    PROCESSING = 3
    PARTIALLY_AVAILABLE = 4
    AVAILABLE = 5


class RequestStatus(IntEnum):
    PENDING_APPROVAL = 1
    APPROVED = 2
    DECLINED = 3
    FAILED = 4
    COMPLETED = 5


REQUEST_STATUS_TEXT = {
    RequestStatus.PENDING_APPROVAL: "Pending Approval",
    RequestStatus.APPROVED: "Approved",
    RequestStatus.DECLINED: "Declined",
    RequestStatus.FAILED: "Failed",
    RequestStatus.COMPLETED: "Completed",
}

jellyseerr_client = ServiceClient(
    service_name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    api_version=API_VERSION,
    auth_strategy=ApiKeyHeaderAuth("X-Api-Key"),
)


def request_status_text(status: Optional[int]) -> str:
    try:
        return REQUEST_STATUS_TEXT[RequestStatus(status)]
    except ValueError:
        return "Unknown"


def _summarize_result(result: Dict[str, Any]) -> Dict[str, Any]:
    media_info = result.get("mediaInfo") or {}
    date = result.get("releaseDate") or result.get("firstAirDate") or ""
    poster_path = result.get("posterPath")
    return {
        "tmdbId": result.get("id"),
        "mediaType": result.get("mediaType"),
        "title": result.get("title") or result.get("name"),
        "year": int(date[:4]) if date[:4].isdigit() else None,
        "overview": result.get("overview"),
        "posterUrl": f"https://image.tmdb.org/t/p/w500{poster_path}" if poster_path else None,
        "rating": result.get("voteAverage"),
        "mediaStatus": media_info.get("status"),
    }


@with_tool_error_handling(DISPLAY_NAME, "search content")
async def search_content(client: ServiceClient, user_id: str, query: str, page: int = 1) -> Dict[str, Any]:
    response = await client.get(user_id, "/search", params={"query": query, "page": page})
    results = [
        _summarize_result(r)
        for r in response.get("results", [])
        if r.get("mediaType") in ("movie", "tv")
    ]
    if not results:
        return {"results": [], "message": f'No content found matching "{query}".'}
    return {
        "results": results,
        "page": response.get("page", page),
        "totalPages": response.get("totalPages", 1),
        "totalResults": response.get("totalResults", len(results)),
    }


@with_tool_error_handling(DISPLAY_NAME, "get requests")
async def get_requests(
    client: ServiceClient,
    user_id: str,
    take: int = 20,
    skip: int = 0,
    filter: str = "all",
) -> Dict[str, Any]:
    response = await client.get(
        user_id,
        "/request",
        params={"take": take, "skip": skip, "filter": filter, "sort": "added"},
    )
    requests: List[Dict[str, Any]] = []
    for request in response.get("results", []):
        media = request.get("media") or {}
        requests.append({
            "id": request.get("id"),
            "status": request_status_text(request.get("status")),
            "mediaType": media.get("mediaType") or request.get("type"),
            "tmdbId": media.get("tmdbId"),
            "is4k": request.get("is4k", False),
            "requestedBy": (request.get("requestedBy") or {}).get("displayName"),
            "createdAt": request.get("createdAt"),
        })
    page_info = response.get("pageInfo") or {}
    return {"requests": requests, "totalResults": page_info.get("results", len(requests))}


@with_tool_error_handling(DISPLAY_NAME, "request media")
async def request_media(
    client: ServiceClient,
    user_id: str,
    tmdb_id: int,
    media_type: str,
    seasons: Optional[List[int]] = None,
    is4k: bool = False,
) -> Dict[str, Any]:
    if media_type not in ("movie", "tv"):
        return {"error": f"Invalid media type '{media_type}'. Expected 'movie' or 'tv'."}

    details = await client.get(user_id, f"/{media_type}/{tmdb_id}")
    title = details.get("title") or details.get("name")
    status = (details.get("mediaInfo") or {}).get("status")
    if status == MediaStatus.AVAILABLE:
        return {"success": False, "error": f'"{title}" is already available in the library.'}
    if status in (MediaStatus.PENDING, MediaStatus.PROCESSING):
        return {
            "success": False,
            "error": f'"{title}" has already been requested and is being processed.',
        }

    body: Dict[str, Any] = {"mediaType": media_type, "mediaId": tmdb_id, "is4k": is4k}
    if media_type == "tv":
        body["seasons"] = seasons if seasons else "all"

    created = await client.post(user_id, "/request", json=body)
    status_text = request_status_text(created.get("status"))
    result = {
        "success": True,
        "requestId": created.get("id"),
        "tmdbId": tmdb_id,
        "title": title,
        "mediaType": media_type,
        "status": status_text,
        "message": f'Successfully requested "{title}". Status: {status_text}.',
    }
    if media_type == "tv" and seasons:
        result["requestedSeasons"] = seasons
    return result


@with_tool_error_handling(DISPLAY_NAME, "delete request")
async def delete_request(client: ServiceClient, user_id: str, request_id: int) -> Dict[str, Any]:
    await client.delete(user_id, f"/request/{request_id}")
    return {"success": True, "message": f"Request {request_id} deleted successfully."}


JELLYSEERR = ServiceDefinition(
    name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    description="Media request manager. Use this to search for and request new movies and shows.",
    client=jellyseerr_client,
    capabilities=capability_map(
        Capability(
            name="searchJellyseerrContent",
            display_name="Search Content (Jellyseerr)",
            category=CapabilityCategory.DISCOVERY,
            description="Search movies and TV shows that can be requested",
            handler=search_content,
        ),
        Capability(
            name="getJellyseerrRequests",
            display_name="View Requests (Jellyseerr)",
            category=CapabilityCategory.REQUEST,
            description="View media requests and their status",
            handler=get_requests,
        ),
        Capability(
            name="requestJellyseerrMedia",
            display_name="Request Media",
            category=CapabilityCategory.REQUEST,
            description="Request a movie or TV show",
            handler=request_media,
            requires_approval=True,
        ),
        Capability(
            name="deleteJellyseerrRequest",
            display_name="Delete Request",
            category=CapabilityCategory.REQUEST,
            description="Delete a media request",
            handler=delete_request,
            requires_approval=True,
        ),
    ),
    health_check=status_endpoint_probe(f"{API_VERSION}/status"),
)
