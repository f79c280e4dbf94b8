"""
Radarr integration.

Radarr manages a movie collection: it looks movies up, tracks them in a
library, and drives downloads through its queue.

API Documentation: https://radarr.video/docs/api/
"""
from typing import Any, Dict, List, Optional

from mediahub.integrations.auth import ApiKeyHeaderAuth
from mediahub.integrations.base import Capability, ServiceDefinition, capability_map
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.errors import with_tool_error_handling
from mediahub.integrations.health import status_endpoint_probe
from mediahub.integrations.schemas import CapabilityCategory

SERVICE_NAME = "radarr"
DISPLAY_NAME = "Radarr"
API_VERSION = "/api/v3"

SEARCH_RESULT_LIMIT = 10
OVERVIEW_MAX_LENGTH = 200

radarr_client = ServiceClient(
    service_name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    api_version=API_VERSION,
    auth_strategy=ApiKeyHeaderAuth("X-Api-Key"),
)


def _truncate(text: Optional[str], limit: int = OVERVIEW_MAX_LENGTH) -> Optional[str]:
    if not text or len(text) <= limit:
        return text
    return text[:limit] + "..."


def _poster_url(movie: Dict[str, Any]) -> Optional[str]:
    if movie.get("remotePoster"):
        return movie["remotePoster"]
    for image in movie.get("images") or []:
        if image.get("coverType") == "poster":
            return image.get("remoteUrl")
    return None


def _media_status(movie: Dict[str, Any]) -> str:
    if movie.get("hasFile"):
        return "available"
    if movie.get("monitored"):
        return "wanted"
    return "missing"


def _summarize_movie(movie: Dict[str, Any]) -> Dict[str, Any]:
    ratings = movie.get("ratings") or {}
    rating = (ratings.get("tmdb") or {}).get("value") or (ratings.get("imdb") or {}).get("value")
    return {
        "title": movie.get("title"),
        "year": movie.get("year"),
        "mediaType": "movie",
        "posterUrl": _poster_url(movie),
        "overview": _truncate(movie.get("overview")),
        "rating": rating,
        "genres": movie.get("genres") or [],
        "status": _media_status(movie),
        "serviceId": movie.get("id") or 0,
        "externalIds": {"tmdb": movie.get("tmdbId"), "imdb": movie.get("imdbId")},
    }


# ================================================================================
# CAPABILITY HANDLERS
# ================================================================================

@with_tool_error_handling(DISPLAY_NAME, "search movies")
async def search_movies(client: ServiceClient, user_id: str, query: str) -> Dict[str, Any]:
    results = await client.get(user_id, "/movie/lookup", params={"term": query})
    if not results:
        return {"results": [], "message": f'No movies found matching "{query}".'}

    movies = [_summarize_movie(movie) for movie in results[:SEARCH_RESULT_LIMIT]]
    return {
        "results": movies,
        "message": (
            f'Found {len(results)} movies matching "{query}". '
            f"Showing top {len(movies)} results."
        ),
    }


@with_tool_error_handling(DISPLAY_NAME, "get library")
async def get_library(
    client: ServiceClient,
    user_id: str,
    genre: Optional[str] = None,
    year: Optional[int] = None,
    limit: int = 50,
) -> Dict[str, Any]:
    movies = await client.get(user_id, "/movie")
    if genre:
        wanted = genre.lower()
        movies = [m for m in movies if wanted in (g.lower() for g in m.get("genres") or [])]
    if year is not None:
        movies = [m for m in movies if m.get("year") == year]

    return {
        "results": [_summarize_movie(movie) for movie in movies[:limit]],
        "totalResults": len(movies),
    }


@with_tool_error_handling(DISPLAY_NAME, "get queue")
async def get_queue(client: ServiceClient, user_id: str, page_size: int = 20) -> Dict[str, Any]:
    queue = await client.get(user_id, "/queue", params={"pageSize": page_size, "includeMovie": True})
    records = queue.get("records", []) if isinstance(queue, dict) else []
    items = []
    for record in records:
        size = record.get("size") or 0
        size_left = record.get("sizeleft") or 0
        progress = round((size - size_left) / size * 100, 1) if size else 0.0
        items.append({
            "id": record.get("id"),
            "title": (record.get("movie") or {}).get("title") or record.get("title"),
            "status": record.get("status"),
            "progress": progress,
            "timeLeft": record.get("timeleft"),
        })
    return {
        "items": items,
        "totalRecords": queue.get("totalRecords", len(items)) if isinstance(queue, dict) else len(items),
    }


@with_tool_error_handling(DISPLAY_NAME, "get calendar")
async def get_calendar(
    client: ServiceClient,
    user_id: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> Dict[str, Any]:
    params = {"unmonitored": False}
    if start:
        params["start"] = start
    if end:
        params["end"] = end
    movies = await client.get(user_id, "/calendar", params=params)
    return {
        "results": [
            {
                **_summarize_movie(movie),
                "inCinemas": movie.get("inCinemas"),
                "digitalRelease": movie.get("digitalRelease"),
                "physicalRelease": movie.get("physicalRelease"),
            }
            for movie in movies
        ],
    }


@with_tool_error_handling(DISPLAY_NAME, "get quality profiles")
async def get_quality_profiles(client: ServiceClient, user_id: str) -> Dict[str, Any]:
    profiles = await client.get(user_id, "/qualityprofile")
    return {"profiles": [{"id": p.get("id"), "name": p.get("name")} for p in profiles]}


@with_tool_error_handling(DISPLAY_NAME, "add movie")
async def add_movie(
    client: ServiceClient,
    user_id: str,
    tmdb_id: int,
    quality_profile_id: Optional[int] = None,
    minimum_availability: str = "released",
    search_for_movie: bool = True,
) -> Dict[str, Any]:
    lookup = await client.get(user_id, "/movie/lookup/tmdb", params={"tmdbId": tmdb_id})
    if isinstance(lookup, dict):
        lookup = [lookup] if lookup else []
    if not lookup:
        return {"error": f"No movie found with TMDB ID {tmdb_id}."}
    movie = lookup[0]

    existing = await client.get(user_id, "/movie", params={"tmdbId": tmdb_id})
    if existing:
        return {"error": f'"{movie.get("title")}" is already in your Radarr library.'}

    if quality_profile_id is None:
        profiles: List[Dict[str, Any]] = await client.get(user_id, "/qualityprofile")
        if not profiles:
            return {"error": "No quality profiles configured in Radarr."}
        quality_profile_id = profiles[0]["id"]

    root_folders = await client.get(user_id, "/rootfolder")
    if not root_folders:
        return {"error": "No root folders configured in Radarr."}

    added = await client.post(user_id, "/movie", json={
        "tmdbId": movie.get("tmdbId"),
        "title": movie.get("title"),
        "titleSlug": movie.get("titleSlug"),
        "images": movie.get("images") or [],
        "qualityProfileId": quality_profile_id,
        "rootFolderPath": root_folders[0]["path"],
        "monitored": True,
        "minimumAvailability": minimum_availability,
        "addOptions": {"monitor": "movieOnly", "searchForMovie": search_for_movie},
    })
    return {
        "success": True,
        "message": f'Successfully added "{added.get("title")}" to Radarr.',
        "movie": {
            "id": added.get("id"),
            "title": added.get("title"),
            "year": added.get("year"),
            "path": added.get("path"),
            "searchingForMovie": search_for_movie,
        },
    }


@with_tool_error_handling(DISPLAY_NAME, "delete movie")
async def delete_movie(
    client: ServiceClient,
    user_id: str,
    movie_id: int,
    delete_files: bool = True,
    add_import_list_exclusion: bool = False,
) -> Dict[str, Any]:
    await client.delete(
        user_id,
        f"/movie/{movie_id}",
        params={
            "deleteFiles": delete_files,
            "addImportListExclusion": add_import_list_exclusion,
        },
    )
    return {"success": True, "message": f"Movie with ID {movie_id} deleted successfully"}


@with_tool_error_handling(DISPLAY_NAME, "trigger search")
async def trigger_search(client: ServiceClient, user_id: str, movie_id: int) -> Dict[str, Any]:
    await client.post(user_id, "/command", json={"name": "MoviesSearch", "movieIds": [movie_id]})
    return {
        "success": True,
        "message": (
            f"Search triggered for movie ID {movie_id}. "
            "Radarr will now look for available releases."
        ),
    }


# ================================================================================
# SERVICE DEFINITION
# ================================================================================

RADARR = ServiceDefinition(
    name=SERVICE_NAME,
    display_name=DISPLAY_NAME,
    description="Movie collection manager. Use this to manage the user's movie library.",
    client=radarr_client,
    capabilities=capability_map(
        Capability(
            name="searchRadarrMovies",
            display_name="Search Movies (Radarr)",
            category=CapabilityCategory.SEARCH,
            description="Search for movies to add to Radarr",
            handler=search_movies,
        ),
        Capability(
            name="getRadarrLibrary",
            display_name="Get Library (Radarr)",
            category=CapabilityCategory.LIBRARY,
            description="View movies in the library, optionally filtered by genre or year",
            handler=get_library,
        ),
        Capability(
            name="getRadarrQueue",
            display_name="View Queue (Radarr)",
            category=CapabilityCategory.QUEUE,
            description="View download queue",
            handler=get_queue,
        ),
        Capability(
            name="getRadarrCalendar",
            display_name="View Calendar (Radarr)",
            category=CapabilityCategory.CALENDAR,
            description="View upcoming releases",
            handler=get_calendar,
        ),
        Capability(
            name="getRadarrQualityProfiles",
            display_name="List Quality Profiles (Radarr)",
            category=CapabilityCategory.LIBRARY,
            description="View available quality profiles",
            handler=get_quality_profiles,
        ),
        Capability(
            name="addRadarrMovie",
            display_name="Add Movie",
            category=CapabilityCategory.MANAGEMENT,
            description="Add a movie to the Radarr library",
            handler=add_movie,
            requires_approval=True,
        ),
        Capability(
            name="deleteRadarrMovie",
            display_name="Delete Movie",
            category=CapabilityCategory.MANAGEMENT,
            description="Remove a movie from the library",
            handler=delete_movie,
            requires_approval=True,
        ),
        Capability(
            name="triggerRadarrSearch",
            display_name="Search Downloads (Radarr)",
            category=CapabilityCategory.DOWNLOAD,
            description="Trigger a search for downloads",
            handler=trigger_search,
        ),
    ),
    health_check=status_endpoint_probe(f"{API_VERSION}/system/status"),
)
