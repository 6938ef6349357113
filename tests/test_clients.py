"""
Tests for the Radarr/Sonarr clients against Flask mock servers.
"""

import pytest

from janitarr.clients import APIError, RadarrClient, RateLimitError, SonarrClient, create_client
from janitarr.clients.base import PAGE_SIZE, normalize_url
from janitarr.config import ServerInstance
from janitarr.context import CancelledError, Context

from mock_servers import API_KEY, ArrState, make_episodes, make_movies, start_radarr, start_sonarr


@pytest.fixture
def radarr_server():
    server = start_radarr(ArrState(missing=make_movies(250), cutoff=make_movies(7, 5001)))
    yield server
    server.stop()


@pytest.fixture
def sonarr_server():
    server = start_sonarr(ArrState(missing=make_episodes(30), cutoff=make_episodes(2, 9001)))
    yield server
    server.stop()


def test_normalize_url():
    assert normalize_url("radarr.local:7878/") == "http://radarr.local:7878"
    assert normalize_url(" https://sonarr.example.com ") == "https://sonarr.example.com"


def test_radarr_pages_through_missing(radarr_server):
    client = RadarrClient(radarr_server.url, API_KEY, "Radarr1")

    items = client.get_missing(Context.background())

    assert len(items) == 250
    assert items[0].id == 1001
    assert items[0].type == 'movie'
    assert [i.id for i in items] == sorted(i.id for i in items)
    pages = radarr_server.state.requests
    assert [int(p['page']) for p in pages] == [1, 2, 3]
    assert all(p['pageSize'] == str(PAGE_SIZE) for p in pages)
    assert all(p['sortKey'] == 'id' and p['sortDirection'] == 'ascending' for p in pages)


def test_radarr_cutoff(radarr_server):
    items = RadarrClient(radarr_server.url, API_KEY).get_cutoff_unmet()
    assert [i.id for i in items] == list(range(5001, 5008))


def test_radarr_trigger_search(radarr_server):
    client = RadarrClient(radarr_server.url, API_KEY)
    item = client.get_missing()[0]

    client.trigger_search(item)

    assert radarr_server.state.commands == [{'name': 'MoviesSearch', 'movieIds': [1001]}]


def test_sonarr_episodes_carry_series(sonarr_server):
    client = SonarrClient(sonarr_server.url, API_KEY, "Sonarr1")

    items = client.get_missing()

    assert len(items) == 30
    assert items[0].series_title == "Starfall Academy"
    assert items[0].label == "Starfall Academy - S01E01 - Episode 1"
    assert all(p['includeSeries'] == 'true' for p in sonarr_server.state.requests)


def test_sonarr_trigger_search(sonarr_server):
    client = SonarrClient(sonarr_server.url, API_KEY)
    item = client.get_cutoff_unmet()[1]

    client.trigger_search(item)

    assert sonarr_server.state.commands == [{'name': 'EpisodeSearch', 'episodeIds': [9002]}]


def test_bad_api_key(radarr_server):
    client = RadarrClient(radarr_server.url, "wrong-key")

    with pytest.raises(APIError) as excinfo:
        client.get_missing()

    assert excinfo.value.status_code == 401
    assert "invalid API key" in str(excinfo.value)


def test_rate_limited_command(radarr_server):
    radarr_server.state.mode = 'rate_limited'
    client = RadarrClient(radarr_server.url, API_KEY)

    with pytest.raises(RateLimitError) as excinfo:
        client.trigger_search(make_item())

    assert excinfo.value.retry_after == 30
    assert excinfo.value.status_code == 429


def test_server_error(radarr_server):
    radarr_server.state.mode = 'error'

    with pytest.raises(APIError) as excinfo:
        RadarrClient(radarr_server.url, API_KEY).get_missing()

    assert excinfo.value.status_code == 500


def test_connection_refused():
    server = start_radarr()
    url = server.url
    server.stop()

    with pytest.raises(APIError):
        RadarrClient(url, API_KEY, timeout=2).get_missing()


def test_cancelled_context_stops_before_request(radarr_server):
    ctx = Context.background()
    ctx.cancel()

    with pytest.raises(CancelledError):
        RadarrClient(radarr_server.url, API_KEY).get_missing(ctx)

    assert radarr_server.state.requests == []


def test_request_bounded_by_context_deadline(radarr_server):
    radarr_server.state.delay = 2.0
    client = RadarrClient(radarr_server.url, API_KEY, timeout=15)

    with pytest.raises(CancelledError):
        client.get_missing(Context.background().with_timeout(0.3))


def test_test_connection(sonarr_server):
    result = SonarrClient(sonarr_server.url, API_KEY).test_connection()

    assert result['success']
    assert result['appName'] == 'Sonarr'

    failed = SonarrClient(sonarr_server.url, 'nope').test_connection()
    assert not failed['success']


def test_create_client_by_type():
    radarr = create_client(ServerInstance(name="R", type="radarr", url="localhost:7878", api_key="k"))
    sonarr = create_client(ServerInstance(name="S", type="sonarr", url="localhost:8989", api_key="k"))

    assert isinstance(radarr, RadarrClient)
    assert isinstance(sonarr, SonarrClient)
    assert sonarr.base_url == "http://localhost:8989"


def make_item():
    from janitarr.models import MediaItem
    return MediaItem(id=1001, title="Quantum Paradox", type='movie', year=2025)
