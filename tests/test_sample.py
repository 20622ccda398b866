import math

import pytest

from fakes import FakeClient, FakeCluster, ScriptedSource
from redis_errors import ConfigError, RetryExhausted, SourceEmpty, SourceError
from redis_sample import RedisSizeSource, SampleCollector, collect, collection_stats


def test_stats_population_stddev():
    stats = collection_stats([10, 20, 30])
    assert stats.mean == 20
    assert stats.stddev == pytest.approx(math.sqrt(200 / 3))
    assert stats.stddev == pytest.approx(8.165, abs=1e-3)


def test_collect_returns_exactly_n_samples():
    samples, stats = collect(ScriptedSource([10, 20, 30, 40]), 3)
    assert samples == [10, 20, 30]
    assert stats.mean == 20


def test_zero_size_retries_same_slot():
    source = ScriptedSource([0, 0, 7, 0, 9])
    samples, _ = collect(source, 2)
    assert samples == [7, 9]
    assert source.key_requests == 5


def test_zero_sizes_exhaust_retry_budget():
    source = ScriptedSource([5] + [0] * 10)
    with pytest.raises(RetryExhausted):
        SampleCollector(source, 2, max_zero_retries=3).collect()
    assert source.key_requests == 4


def test_empty_dataset_aborts_immediately():
    source = ScriptedSource([], empty=True)
    with pytest.raises(SourceEmpty):
        collect(source, 5)
    assert source.key_requests == 1


@pytest.mark.parametrize("n", [0, -3])
def test_sample_count_must_be_positive(n):
    source = ScriptedSource([1])
    with pytest.raises(ConfigError):
        SampleCollector(source, n)
    assert source.key_requests == 0


def test_redis_source_debug_object():
    client = FakeClient({b"a": (12, 56)})
    samples, _ = collect(RedisSizeSource(client), 2)
    assert samples == [12, 12]
    assert "MEMORY USAGE" not in client.calls


def test_redis_source_memory_usage():
    client = FakeClient({b"a": (12, 56)})
    samples, _ = collect(RedisSizeSource(client, "memory"), 1)
    assert samples == [56]


def test_redis_source_empty_db():
    with pytest.raises(SourceEmpty):
        collect(RedisSizeSource(FakeClient()), 1)


def test_redis_source_command_error():
    client = FakeClient({b"a": (1, 1)}, randomkey_error="LOADING Redis is loading")
    with pytest.raises(SourceError, match="RANDOMKEY"):
        collect(RedisSizeSource(client), 1)


def test_redis_source_missing_key_is_unavailable(capsys):
    source = RedisSizeSource(FakeClient({b"a": (3, 3)}))
    assert source.serialized_size(b"gone") == 0
    assert "no such key" in capsys.readouterr().out


def test_redis_source_rejects_unknown_size_source():
    with pytest.raises(ConfigError):
        RedisSizeSource(FakeClient(), "strlen")


def test_cluster_source_skips_empty_primaries():
    cluster = FakeCluster(
        {"10.0.0.1:6379": {}, "10.0.0.2:6379": {b"user:1": (40, 90)}}
    )
    source = RedisSizeSource(cluster, nodes=cluster.get_primaries())
    samples, _ = collect(source, 3)
    assert samples == [40, 40, 40]
    targets = {target for command, target in cluster.calls if command == "RANDOMKEY"}
    assert None not in targets
    assert targets <= set(cluster.get_primaries())


def test_cluster_source_all_primaries_empty():
    cluster = FakeCluster({"10.0.0.1:6379": {}, "10.0.0.2:6379": {}})
    source = RedisSizeSource(cluster, nodes=cluster.get_primaries())
    with pytest.raises(SourceEmpty):
        collect(source, 1)
    assert len(cluster.calls) == 2


def test_retry_exhausted_names_the_size_command():
    client = FakeClient({b"a": (0, 0)})
    with pytest.raises(RetryExhausted, match="MEMORY USAGE"):
        source = RedisSizeSource(client, "memory")
        SampleCollector(source, 1, max_zero_retries=2).collect()
