"""
Unit tests for service capability handlers.

Each handler is called with a ServiceClient wired to an httpx.MockTransport
that routes by (method, path).
"""
import json
from typing import Dict, Tuple

import httpx
import pytest

from mediahub.integrations import jellyfin, jellyseerr, qbittorrent, radarr, sonarr
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.errors import is_error_response


def router(routes: Dict[Tuple[str, str], httpx.Response]):
    """Build a transport handler answering 404 for unknown routes."""

    def handler(request: httpx.Request) -> httpx.Response:
        response = routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": f"No route for {request.url.path}"})
        return response

    return handler


@pytest.fixture
def service_client(make_transport, make_store, make_config, session_cache, no_delay_retry_policy):
    """Factory: clone a service's client onto a mock transport."""

    def _make(service_client: ServiceClient, routes, **config_overrides):
        transport = make_transport(router(routes))
        store = make_store(make_config(service_client.service_name, **config_overrides))
        client = ServiceClient(
            service_name=service_client.service_name,
            display_name=service_client.display_name,
            api_version=service_client.api_version,
            auth_strategy=service_client.auth_strategy,
            config_store=store,
            session_cache=session_cache,
            http_client=transport.client(),
            retry_policy=no_delay_retry_policy,
        )
        return client, transport

    return _make


@pytest.mark.asyncio
class TestRadarr:

    async def test_search_movies(self, service_client):
        movie = {
            "title": "Alien",
            "year": 1979,
            "tmdbId": 348,
            "overview": "x" * 250,
            "images": [{"coverType": "poster", "remoteUrl": "http://img/alien.jpg"}],
            "ratings": {"tmdb": {"value": 8.1}},
            "hasFile": False,
            "monitored": True,
        }
        client, transport = service_client(radarr.radarr_client, {
            ("GET", "/api/v3/movie/lookup"): httpx.Response(200, json=[movie]),
        })

        result = await radarr.search_movies(client, "user-1", query="Alien")

        assert result["results"][0]["title"] == "Alien"
        assert result["results"][0]["posterUrl"] == "http://img/alien.jpg"
        assert result["results"][0]["status"] == "wanted"
        assert result["results"][0]["overview"].endswith("...")
        assert transport.requests[0].url.params["term"] == "Alien"

    async def test_search_movies_no_results(self, service_client):
        client, _ = service_client(radarr.radarr_client, {
            ("GET", "/api/v3/movie/lookup"): httpx.Response(200, json=[]),
        })

        result = await radarr.search_movies(client, "user-1", query="zzz")

        assert result == {"results": [], "message": 'No movies found matching "zzz".'}

    async def test_auth_failure_is_formatted(self, service_client):
        client, _ = service_client(radarr.radarr_client, {
            ("GET", "/api/v3/movie/lookup"): httpx.Response(401, json={"message": "Unauthorized"}),
        })

        result = await radarr.search_movies(client, "user-1", query="Alien")

        assert is_error_response(result)
        assert "Radarr authentication failed" in result["error"]

    async def test_disabled_service_is_reported_verbatim(self, service_client):
        client, transport = service_client(radarr.radarr_client, {}, is_enabled=False)

        result = await radarr.get_library(client, "user-1")

        assert result == {"error": "Radarr is disabled. Please enable it in settings."}
        assert transport.requests == []

    async def test_add_movie(self, service_client):
        client, transport = service_client(radarr.radarr_client, {
            ("GET", "/api/v3/movie/lookup/tmdb"): httpx.Response(
                200, json={"title": "Alien", "tmdbId": 348, "titleSlug": "alien-348", "images": []}
            ),
            ("GET", "/api/v3/movie"): httpx.Response(200, json=[]),
            ("GET", "/api/v3/qualityprofile"): httpx.Response(200, json=[{"id": 4, "name": "HD-1080p"}]),
            ("GET", "/api/v3/rootfolder"): httpx.Response(200, json=[{"path": "/movies"}]),
            ("POST", "/api/v3/movie"): httpx.Response(201, json={"id": 12, "title": "Alien", "path": "/movies/Alien"}),
        })

        result = await radarr.add_movie(client, "user-1", tmdb_id=348)

        assert result["success"] is True
        assert result["movie"]["id"] == 12
        body = json.loads(transport.requests[-1].content)
        assert body["qualityProfileId"] == 4
        assert body["rootFolderPath"] == "/movies"
        assert body["addOptions"] == {"monitor": "movieOnly", "searchForMovie": True}

    async def test_add_movie_already_in_library(self, service_client):
        client, transport = service_client(radarr.radarr_client, {
            ("GET", "/api/v3/movie/lookup/tmdb"): httpx.Response(200, json={"title": "Alien", "tmdbId": 348}),
            ("GET", "/api/v3/movie"): httpx.Response(200, json=[{"id": 1, "title": "Alien"}]),
        })

        result = await radarr.add_movie(client, "user-1", tmdb_id=348)

        assert result == {"error": '"Alien" is already in your Radarr library.'}
        assert all(request.method == "GET" for request in transport.requests)

    async def test_get_queue_progress(self, service_client):
        client, _ = service_client(radarr.radarr_client, {
            ("GET", "/api/v3/queue"): httpx.Response(200, json={
                "totalRecords": 1,
                "records": [{"id": 1, "title": "Alien.1979", "size": 200, "sizeleft": 50, "status": "downloading"}],
            }),
        })

        result = await radarr.get_queue(client, "user-1")

        assert result["items"][0]["progress"] == 75.0
        assert result["totalRecords"] == 1

    async def test_delete_movie_sends_flags(self, service_client):
        client, transport = service_client(radarr.radarr_client, {
            ("DELETE", "/api/v3/movie/12"): httpx.Response(200),
        })

        result = await radarr.delete_movie(client, "user-1", movie_id=12, delete_files=False)

        assert result["success"] is True
        assert transport.requests[0].url.params["deleteFiles"] == "false"

    async def test_trigger_search(self, service_client):
        client, transport = service_client(radarr.radarr_client, {
            ("POST", "/api/v3/command"): httpx.Response(201, json={"id": 99}),
        })

        await radarr.trigger_search(client, "user-1", movie_id=12)

        assert json.loads(transport.requests[0].content) == {"name": "MoviesSearch", "movieIds": [12]}


@pytest.mark.asyncio
class TestSonarr:

    async def test_search_series(self, service_client):
        client, _ = service_client(sonarr.sonarr_client, {
            ("GET", "/api/v3/series/lookup"): httpx.Response(200, json=[{"title": "Severance", "tvdbId": 371980}]),
        })

        result = await sonarr.search_series(client, "user-1", query="Severance")

        assert result["results"][0]["externalIds"]["tvdb"] == 371980

    async def test_add_series_without_root_folder(self, service_client):
        client, _ = service_client(sonarr.sonarr_client, {
            ("GET", "/api/v3/series/lookup"): httpx.Response(200, json=[{"title": "Severance", "tvdbId": 371980}]),
            ("GET", "/api/v3/series"): httpx.Response(200, json=[]),
            ("GET", "/api/v3/qualityprofile"): httpx.Response(200, json=[{"id": 1}]),
            ("GET", "/api/v3/rootfolder"): httpx.Response(200, json=[]),
        })

        result = await sonarr.add_series(client, "user-1", tvdb_id=371980)

        assert result == {"error": "No root folders configured in Sonarr."}

    async def test_validation_error_is_formatted(self, service_client):
        client, _ = service_client(sonarr.sonarr_client, {
            ("GET", "/api/v3/series/lookup"): httpx.Response(200, json=[{"title": "Severance", "tvdbId": 1}]),
            ("GET", "/api/v3/series"): httpx.Response(200, json=[]),
            ("GET", "/api/v3/qualityprofile"): httpx.Response(200, json=[{"id": 1}]),
            ("GET", "/api/v3/rootfolder"): httpx.Response(200, json=[{"path": "/tv"}]),
            ("POST", "/api/v3/series"): httpx.Response(
                400, json=[{"propertyName": "Path", "errorMessage": "Path is already configured"}]
            ),
        })

        result = await sonarr.add_series(client, "user-1", tvdb_id=1)

        assert result == {"error": "Sonarr validation error: Path: Path is already configured"}


@pytest.mark.asyncio
class TestJellyfin:

    async def test_user_resolved_from_users_me(self, service_client):
        client, transport = service_client(jellyfin.jellyfin_client, {
            ("GET", "/Users/Me"): httpx.Response(200, json={"Id": "u-me"}),
            ("GET", "/Users/u-me/Items/Latest"): httpx.Response(200, json=[{"Id": "i1", "Name": "Alien", "Type": "Movie"}]),
        })

        result = await jellyfin.get_recently_added(client, "user-1", media_type="movies")

        assert result["results"][0]["title"] == "Alien"
        assert result["results"][0]["posterUrl"].endswith("/Items/i1/Images/Primary")
        assert transport.requests[-1].url.params["IncludeItemTypes"] == "Movie"
        assert transport.requests[0].headers["Authorization"] == 'MediaBrowser Token="test-api-key"'

    async def test_user_falls_back_to_first_user(self, service_client):
        client, transport = service_client(jellyfin.jellyfin_client, {
            ("GET", "/Users/Me"): httpx.Response(400, json={"message": "No user for API key"}),
            ("GET", "/Users"): httpx.Response(200, json=[{"Id": "u-first"}, {"Id": "u-second"}]),
            ("GET", "/Users/u-first/Items"): httpx.Response(200, json={"Items": [], "TotalRecordCount": 0}),
        })

        result = await jellyfin.search_media(client, "user-1", query="Alien")

        assert result["results"] == []
        assert "/Users/u-first/Items" in transport.paths()

    async def test_continue_watching_progress(self, service_client):
        client, _ = service_client(jellyfin.jellyfin_client, {
            ("GET", "/Users/Me"): httpx.Response(200, json={"Id": "u"}),
            ("GET", "/Users/u/Items/Resume"): httpx.Response(200, json={"Items": [{
                "Id": "e1",
                "Type": "Episode",
                "Name": "Pilot",
                "SeriesName": "Severance",
                "ParentIndexNumber": 1,
                "IndexNumber": 1,
                "UserData": {"PlayedPercentage": 42.345},
            }]}),
        })

        result = await jellyfin.get_continue_watching(client, "user-1")

        item = result["results"][0]
        assert item["title"] == "Severance"
        assert item["episode"] == {"name": "Pilot", "seasonNumber": 1, "episodeNumber": 1}
        assert item["progressPercent"] == 42.3


@pytest.mark.asyncio
class TestJellyseerr:

    async def test_request_available_media_is_refused(self, service_client):
        client, transport = service_client(jellyseerr.jellyseerr_client, {
            ("GET", "/api/v1/movie/348"): httpx.Response(200, json={"title": "Alien", "mediaInfo": {"status": 5}}),
        })

        result = await jellyseerr.request_media(client, "user-1", tmdb_id=348, media_type="movie")

        assert result["success"] is False
        assert "already available" in result["error"]
        assert len(transport.requests) == 1

    async def test_request_tv_defaults_to_all_seasons(self, service_client):
        client, transport = service_client(jellyseerr.jellyseerr_client, {
            ("GET", "/api/v1/tv/95396"): httpx.Response(200, json={"name": "Severance"}),
            ("POST", "/api/v1/request"): httpx.Response(201, json={"id": 3, "status": 1}),
        })

        result = await jellyseerr.request_media(client, "user-1", tmdb_id=95396, media_type="tv")

        assert result["success"] is True
        assert result["status"] == "Pending Approval"
        body = json.loads(transport.requests[-1].content)
        assert body == {"mediaType": "tv", "mediaId": 95396, "is4k": False, "seasons": "all"}

    async def test_search_content_filters_people(self, service_client):
        client, _ = service_client(jellyseerr.jellyseerr_client, {
            ("GET", "/api/v1/search"): httpx.Response(200, json={"page": 1, "totalPages": 1, "results": [
                {"id": 348, "mediaType": "movie", "title": "Alien", "releaseDate": "1979-05-25"},
                {"id": 5, "mediaType": "person", "name": "Sigourney Weaver"},
            ]}),
        })

        result = await jellyseerr.search_content(client, "user-1", query="Alien")

        assert [r["title"] for r in result["results"]] == ["Alien"]
        assert result["results"][0]["year"] == 1979

    async def test_delete_request(self, service_client):
        client, _ = service_client(jellyseerr.jellyseerr_client, {
            ("DELETE", "/api/v1/request/3"): httpx.Response(204),
        })

        assert (await jellyseerr.delete_request(client, "user-1", request_id=3))["success"] is True


class TestJellyseerrStatusText:

    def test_request_status_text(self):
        assert jellyseerr.request_status_text(2) == "Approved"
        assert jellyseerr.request_status_text(99) == "Unknown"
        assert jellyseerr.request_status_text(None) == "Unknown"


class QBittorrentServer:
    """Logs in and serves torrent endpoints."""

    def __init__(self):
        self.torrents = [{"hash": "abc", "name": "ubuntu.iso", "state": "pausedDL", "progress": 0.5, "size": 2048}]
        self.posted = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/v2/auth/login":
            return httpx.Response(200, text="Ok.", headers={"Set-Cookie": "SID=s1; path=/"})
        if path == "/api/v2/torrents/info":
            wanted = request.url.params.get("hashes")
            return httpx.Response(200, json=[t for t in self.torrents if wanted in (None, t["hash"])])
        if path in ("/api/v2/torrents/pause", "/api/v2/torrents/resume"):
            self.posted.append((path, request.content))
            if path.endswith("resume"):
                self.torrents[0]["state"] = "downloading"
            return httpx.Response(200, text="")
        return httpx.Response(404)


@pytest.mark.asyncio
class TestQBittorrent:

    @pytest.fixture
    def qb_client(self, make_transport, make_store, make_config, session_cache, no_delay_retry_policy):
        server = QBittorrentServer()
        transport = make_transport(server)
        client = ServiceClient(
            service_name="qbittorrent",
            display_name="qBittorrent",
            api_version="/api/v2",
            auth_strategy=qbittorrent.qbittorrent_client.auth_strategy,
            config_store=make_store(make_config("qbittorrent", api_key="admin:secret")),
            session_cache=session_cache,
            http_client=transport.client(),
            retry_policy=no_delay_retry_policy,
        )
        return client, server

    async def test_get_torrents(self, qb_client):
        client, _ = qb_client

        result = await qbittorrent.get_torrents(client, "user-1")

        assert result["torrents"][0]["progress"] == 50.0
        assert result["torrents"][0]["size"] == "2.0 KB"
        assert result["summary"]["paused"] == 1
        assert result["message"] == "Found 1 torrent."

    async def test_invalid_filter(self, qb_client):
        client, _ = qb_client

        result = await qbittorrent.get_torrents(client, "user-1", filter="bogus")

        assert is_error_response(result)

    async def test_resume_torrent(self, qb_client):
        client, server = qb_client

        result = await qbittorrent.pause_resume_torrent(client, "user-1", hash="abc", action="resume")

        assert result["success"] is True
        assert result["torrent"]["state"] == "downloading"
        assert server.posted == [("/api/v2/torrents/resume", b"hashes=abc")]

    async def test_unknown_torrent(self, qb_client):
        client, server = qb_client

        result = await qbittorrent.pause_resume_torrent(client, "user-1", hash="nope", action="pause")

        assert result["success"] is False
        assert server.posted == []

    async def test_pause_all(self, qb_client):
        client, server = qb_client

        result = await qbittorrent.pause_resume_torrent(client, "user-1", hash="all", action="pause")

        assert result["message"] == "Successfully paused all torrents."
        assert server.posted == [("/api/v2/torrents/pause", b"hashes=all")]


class TestQBittorrentFormatting:

    @pytest.mark.parametrize("value,expected", [
        (0, "0 B"),
        (512, "512 B"),
        (1536, "1.5 KB"),
        (5 * 1024 ** 3, "5.0 GB"),
        (None, "0 B"),
    ])
    def test_format_bytes(self, value, expected):
        assert qbittorrent.format_bytes(value) == expected

    @pytest.mark.parametrize("seconds,expected", [
        (8640000, None),
        (-1, None),
        (45, "45s"),
        (125, "2m 5s"),
        (7260, "2h 1m"),
    ])
    def test_format_eta(self, seconds, expected):
        assert qbittorrent.format_eta(seconds) == expected
