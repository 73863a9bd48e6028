from unittest.mock import Mock, patch

import pytest
import requests
from spotipy.exceptions import SpotifyException

from linkport.crosscutting.config import ConfigError, Settings
from linkport.domain.entities import Track
from linkport.domain.errors import (
    InvalidUrl, NotFound, PermanentFailure, PlaylistParseError, RateLimited, TemporaryFailure
)
from linkport.infrastructure.providers.spotify import (
    SpotifyPlaylistParser, SpotifySearchSupplier, client_from_settings, create_client,
    extract_playlist_id, map_spotify_error, spotify_track_to_domain
)


PLAYLIST_ID = "37i9dQZF1DXcBWIGoYBM5M"
PLAYLIST_URL = f"https://open.spotify.com/playlist/{PLAYLIST_ID}"


def _spotify_track(name, artists, album="Album", duration_ms=200400, track_id="abc"):
    return {
        "name": name,
        "uri": f"spotify:track:{track_id}",
        "artists": [{"name": a} for a in artists],
        "album": {"name": album},
        "duration_ms": duration_ms,
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
    }


class TestExtractPlaylistId:

    @pytest.mark.parametrize("url", [
        PLAYLIST_URL,
        f"{PLAYLIST_URL}?si=0123456789",
        f"https://open.spotify.com/intl-de/playlist/{PLAYLIST_ID}",
        f"spotify:playlist:{PLAYLIST_ID}",
    ])
    def test_valid(self, url):
        assert extract_playlist_id(url) == PLAYLIST_ID

    @pytest.mark.parametrize("url", [
        "https://open.spotify.com/album/1DFixLWuPkv3KT3TnV35m3x",
        "https://open.spotify.com/playlist/short",
        "",
    ])
    def test_invalid(self, url):
        with pytest.raises(InvalidUrl):
            extract_playlist_id(url)


class TestMapSpotifyError:
    """Tests for spotipy/requests error translation."""

    def test_rate_limited_uses_retry_after(self):
        error = SpotifyException(429, -1, "rate limited", headers={"Retry-After": "3"})
        mapped = map_spotify_error(error, "search")
        assert isinstance(mapped, RateLimited)
        assert mapped.retry_after_ms == 3000

    def test_rate_limited_without_header(self):
        mapped = map_spotify_error(SpotifyException(429, -1, "rate limited"), "search")
        assert mapped.retry_after_ms == 1000

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors_are_permanent(self, status):
        assert isinstance(map_spotify_error(SpotifyException(status, -1, "denied"), "search"), PermanentFailure)

    def test_not_found(self):
        assert isinstance(map_spotify_error(SpotifyException(404, -1, "missing"), "search"), NotFound)

    def test_server_error_is_temporary(self):
        assert isinstance(map_spotify_error(SpotifyException(503, -1, "unavailable"), "search"), TemporaryFailure)

    def test_network_error_is_temporary(self):
        mapped = map_spotify_error(requests.exceptions.ConnectionError("reset"), "search")
        assert isinstance(mapped, TemporaryFailure)
        assert "Network error" in str(mapped)

    def test_unexpected_error_is_temporary(self):
        assert isinstance(map_spotify_error(KeyError("tracks"), "search"), TemporaryFailure)


class TestSpotifyTrackToDomain:

    def test_conversion(self):
        track = spotify_track_to_domain(_spotify_track("Creepin'", ["Metro Boomin", "The Weeknd", "21 Savage"]))

        assert track.title == "Creepin'"
        assert track.artist == "Metro Boomin, The Weeknd, 21 Savage"
        assert track.album == "Album"
        assert track.duration_seconds == 200
        assert track.platform_ref == "https://open.spotify.com/track/abc"

    def test_falls_back_to_uri(self):
        data = _spotify_track("Song", ["Band"])
        data["external_urls"] = {}
        assert spotify_track_to_domain(data).platform_ref == "spotify:track:abc"

    @pytest.mark.parametrize("data", [None, {}, {"name": ""}])
    def test_unusable_items(self, data):
        assert spotify_track_to_domain(data) is None


class TestClientFactory:

    def test_create_client_uses_client_credentials(self):
        with patch('linkport.infrastructure.providers.spotify.SpotifyClientCredentials') as credentials, \
                patch('spotipy.Spotify') as spotify:
            client = create_client("id", "secret")

        credentials.assert_called_once_with(client_id="id", client_secret="secret")
        spotify.assert_called_once_with(auth_manager=credentials.return_value, requests_timeout=15)
        assert client is spotify.return_value

    def test_client_from_settings_bounds_requests(self):
        settings = Settings(spotify_client_id="id", spotify_client_secret="secret", request_timeout=4.0)
        with patch('linkport.infrastructure.providers.spotify.create_client') as create:
            client_from_settings(settings)
        create.assert_called_once_with("id", "secret", requests_timeout=4.0)

    def test_client_from_settings_requires_credentials(self):
        with pytest.raises(ConfigError):
            client_from_settings(Settings())


class TestSpotifySearchSupplier:
    """Tests for Spotify catalog search."""

    def setup_method(self):
        self.client = Mock()
        self.supplier = SpotifySearchSupplier(self.client, limit=3, market="US")

    def test_build_query_strips_quotes(self):
        query = SpotifySearchSupplier.build_query(Track('Say "Hello"', "Band"))
        assert query == 'track:"Say Hello" artist:"Band"'

    def test_search(self):
        self.client.search.return_value = {"tracks": {"items": [
            _spotify_track("As It Was", ["Harry Styles"], track_id="1"),
            None,
            _spotify_track("As It Was (Live)", ["Harry Styles"], track_id="2"),
        ]}}

        candidates = self.supplier(Track("As It Was", "Harry Styles"))

        self.client.search.assert_called_once_with(
            q='track:"As It Was" artist:"Harry Styles"', type='track', limit=3, market="US"
        )
        assert [c.title for c in candidates] == ["As It Was", "As It Was (Live)"]

    def test_empty_response(self):
        self.client.search.return_value = {}
        assert self.supplier(Track("A", "B")) == []

    def test_errors_are_mapped(self):
        self.client.search.side_effect = SpotifyException(429, -1, "slow down", headers={"Retry-After": "2"})

        with pytest.raises(RateLimited) as exc_info:
            self.supplier(Track("A", "B"))
        assert exc_info.value.retry_after_ms == 2000


class TestSpotifyPlaylistParser:
    """Tests for reading Spotify playlists."""

    def setup_method(self):
        self.client = Mock()
        self.parser = SpotifyPlaylistParser(self.client)

    def test_parse_with_pagination(self):
        self.client.playlist.return_value = {
            "name": "Road Trip",
            "description": "Songs for the road",
            "tracks": {"items": [{"track": _spotify_track("As It Was", ["Harry Styles"])}], "next": "page-2"},
        }
        self.client.next.return_value = {
            "items": [{"track": None}, {"track": _spotify_track("Flowers", ["Miley Cyrus"])}],
            "next": None,
        }

        playlist = self.parser.parse(PLAYLIST_URL)

        self.client.playlist.assert_called_once_with(PLAYLIST_ID, fields=SpotifyPlaylistParser.FIELDS)
        assert playlist.title == "Road Trip"
        assert playlist.description == "Songs for the road"
        assert playlist.platform == "spotify"
        assert playlist.original_url == PLAYLIST_URL
        assert [s.title for s in playlist.songs] == ["As It Was", "Flowers"]
        assert all(s.platform_ref is None for s in playlist.songs)

    def test_track_cap(self):
        parser = SpotifyPlaylistParser(self.client, max_tracks=1)
        self.client.playlist.return_value = {
            "name": "Big",
            "tracks": {"items": [{"track": _spotify_track("A", ["B"])}], "next": "page-2"},
        }

        playlist = parser.parse(PLAYLIST_URL)

        assert len(playlist.songs) == 1
        self.client.next.assert_not_called()

    def test_private_playlist(self):
        self.client.playlist.side_effect = SpotifyException(404, -1, "Not found")

        with pytest.raises(NotFound, match="private or deleted"):
            self.parser.parse(PLAYLIST_URL)

    def test_auth_failure(self):
        self.client.playlist.side_effect = SpotifyException(401, -1, "expired")

        with pytest.raises(PermanentFailure):
            self.parser.parse(PLAYLIST_URL)

    def test_unexpected_response(self):
        self.client.playlist.return_value = {"tracks": {"items": []}}

        with pytest.raises(PlaylistParseError):
            self.parser.parse(PLAYLIST_URL)

    def test_invalid_url_not_fetched(self):
        with pytest.raises(InvalidUrl):
            self.parser.parse("https://open.spotify.com/album/1DFixLWuPkv3KT3TnV35m3x")
        self.client.playlist.assert_not_called()
