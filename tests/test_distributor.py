"""
Tests for fair-share distribution and search execution.
"""

from collections import Counter

import pytest
from hypothesis import given, strategies as st

from janitarr.clients import APIError
from janitarr.context import Context
from janitarr.automation import FairShareDistributor, distribute
from janitarr.metrics import Metrics
from janitarr.models import Category

from conftest import ClientFactory, FakeClient, episodes, movies, radarr, sonarr


def allocation(assignments):
    return Counter(a.server.name for a in assignments)


# ==================== distribute ====================

def test_two_servers_split_evenly():
    r1, r2 = radarr("Radarr1"), radarr("Radarr2")
    result = distribute(Category.MISSING_MOVIES, 10, [(r1, movies(50)), (r2, movies(30, 100))])

    assert allocation(result) == {"Radarr1": 5, "Radarr2": 5}
    # Alternates, starting with the first server
    assert [a.server.name for a in result[:4]] == ["Radarr1", "Radarr2", "Radarr1", "Radarr2"]
    # Each server's items are taken in order
    assert [a.item.id for a in result if a.server is r1] == [1, 2, 3, 4, 5]


def test_single_server_takes_whole_limit():
    s1 = sonarr("Sonarr1")
    result = distribute(Category.MISSING_EPISODES, 10, [(s1, episodes(100))])

    assert len(result) == 10
    assert allocation(result) == {"Sonarr1": 10}


def test_odd_limit_favours_first_server():
    r1, r2 = radarr("Radarr1"), radarr("Radarr2")
    result = distribute(Category.CUTOFF_MOVIES, 5, [(r1, movies(10)), (r2, movies(15, 100))])

    assert allocation(result) == {"Radarr1": 3, "Radarr2": 2}


def test_zero_limit_yields_nothing():
    result = distribute(Category.MISSING_MOVIES, 0, [(radarr("Radarr1"), movies(5))])
    assert result == []


def test_exhausted_server_gives_way():
    r1, r2 = radarr("Radarr1"), radarr("Radarr2")
    result = distribute(Category.MISSING_MOVIES, 10, [(r1, movies(2)), (r2, movies(30, 100))])

    assert allocation(result) == {"Radarr1": 2, "Radarr2": 8}


def test_wrong_server_type_ignored():
    result = distribute(Category.MISSING_EPISODES, 10,
                        [(radarr("Radarr1"), movies(5)), (sonarr("Sonarr1"), episodes(3))])

    assert allocation(result) == {"Sonarr1": 3}
    assert all(a.category is Category.MISSING_EPISODES for a in result)


def test_no_candidates():
    assert distribute(Category.MISSING_MOVIES, 10, []) == []
    assert distribute(Category.MISSING_MOVIES, 10, [(radarr("Radarr1"), [])]) == []


# ==================== properties ====================

server_counts = st.lists(st.integers(min_value=0, max_value=30), min_size=0, max_size=5)
limits = st.integers(min_value=0, max_value=60)


def build(counts):
    return [(radarr(f"Radarr{i}"), movies(n, start=i * 1000)) for i, n in enumerate(counts)]


@given(server_counts, limits)
def test_allocates_min_of_limit_and_candidates(counts, limit):
    result = distribute(Category.MISSING_MOVIES, limit, build(counts))
    assert len(result) == min(limit, sum(counts))


@given(server_counts, limits)
def test_no_item_assigned_twice(counts, limit):
    result = distribute(Category.MISSING_MOVIES, limit, build(counts))
    keys = [(a.server.id, a.item.id) for a in result]
    assert len(keys) == len(set(keys))


@given(server_counts, limits)
def test_servers_with_items_left_are_never_behind(counts, limit):
    candidates = build(counts)
    got = allocation(distribute(Category.MISSING_MOVIES, limit, candidates))
    for x, x_items in candidates:
        if got[x.name] >= len(x_items):
            continue
        # X still had candidates, so nobody got more than one pick ahead of it
        for y, _ in candidates:
            assert got[x.name] >= got[y.name] - 1


@given(st.integers(min_value=1, max_value=25), st.integers(min_value=0, max_value=20),
       st.integers(min_value=0, max_value=20))
def test_two_servers_with_enough_items_get_equal_share(k, extra_x, extra_y):
    x, y = radarr("X"), radarr("Y")
    result = distribute(Category.MISSING_MOVIES, 2 * k,
                        [(x, movies(k + extra_x)), (y, movies(k + extra_y, 500))])
    got = allocation(result)
    assert got["X"] == k
    assert got["Y"] == k


@given(server_counts, limits)
def test_deterministic(counts, limit):
    first = distribute(Category.MISSING_MOVIES, limit, build(counts))
    second = distribute(Category.MISSING_MOVIES, limit, build(counts))
    assert first == second


# ==================== execute ====================

def plan(server, count):
    return distribute(Category.MISSING_MOVIES, count, [(server, movies(count))])


def test_execute_triggers_each_assignment():
    r1 = radarr("Radarr1")
    client = FakeClient()
    metrics = Metrics()
    distributor = FairShareDistributor(ClientFactory({r1.id: client}), metrics=metrics, search_delay=0)

    summary = distributor.execute(plan(r1, 3))

    assert summary.triggered == 3
    assert summary.failed == 0
    assert [i.id for i in client.searched] == [1, 2, 3]
    assert metrics.searches_total[("radarr", "missing")] == 3


def test_dry_run_makes_no_calls():
    r1 = radarr("Radarr1")
    client = FakeClient()
    metrics = Metrics()
    distributor = FairShareDistributor(ClientFactory({r1.id: client}), metrics=metrics, search_delay=0)

    summary = distributor.execute(plan(r1, 4), dry_run=True)

    assert summary.triggered == 4
    assert client.attempts == 0
    assert metrics.searches_total == {}


def test_failure_does_not_stop_run():
    r1 = radarr("Radarr1")
    client = FakeClient(search_errors=[None, APIError("HTTP 500: boom", 500), None])
    distributor = FairShareDistributor(ClientFactory({r1.id: client}), search_delay=0)

    summary = distributor.execute(plan(r1, 3))

    assert summary.triggered == 2
    assert summary.failed == 1
    count = summary.counts[(r1.id, Category.MISSING_MOVIES)]
    assert count.last_error == "HTTP 500: boom"


def test_rate_limited_server_is_skipped_after_three_strikes(rate_limited):
    r1, r2 = radarr("Radarr1"), radarr("Radarr2")
    limited = FakeClient(search_errors=[rate_limited] * 3)
    healthy = FakeClient()
    distributor = FairShareDistributor(ClientFactory({r1.id: limited, r2.id: healthy}), search_delay=0)
    assignments = distribute(Category.MISSING_MOVIES, 10, [(r1, movies(5)), (r2, movies(5, 100))])

    summary = distributor.execute(assignments)

    assert limited.attempts == 3
    assert summary.counts[(r1.id, Category.MISSING_MOVIES)].failed == 5
    assert summary.counts[(r2.id, Category.MISSING_MOVIES)].triggered == 5
    assert len(healthy.searched) == 5


def test_other_error_resets_strikes(rate_limited):
    r1 = radarr("Radarr1")
    client = FakeClient(search_errors=[rate_limited, rate_limited, APIError("HTTP 502"),
                                       rate_limited, rate_limited])
    distributor = FairShareDistributor(ClientFactory({r1.id: client}), search_delay=0)

    summary = distributor.execute(plan(r1, 6))

    assert client.attempts == 6
    assert summary.triggered == 1
    assert summary.failed == 5


def test_client_setup_failure_is_recorded():
    r1 = radarr("Radarr1")
    distributor = FairShareDistributor(ClientFactory({}), search_delay=0)

    summary = distributor.execute(plan(r1, 2))

    assert summary.failed == 2
    assert "no client" in summary.counts[(r1.id, Category.MISSING_MOVIES)].last_error


def test_cancelled_context_skips_remaining():
    r1 = radarr("Radarr1")
    client = FakeClient()
    distributor = FairShareDistributor(ClientFactory({r1.id: client}), search_delay=0)
    ctx = Context.background()
    ctx.cancel()

    summary = distributor.execute(plan(r1, 3), ctx=ctx)

    assert client.attempts == 0
    assert summary.skipped == 3
    assert summary.triggered == 0
    assert summary.failed == 0


def test_requires_client_factory():
    with pytest.raises(ValueError):
        FairShareDistributor(None)
