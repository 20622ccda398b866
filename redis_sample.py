import math
import random
from collections import namedtuple

from redis.exceptions import ResponseError

from redis_errors import ConfigError, RetryExhausted, SourceEmpty, SourceError

MAX_ZERO_RETRIES = 1000

CollectionStats = namedtuple("CollectionStats", ["mean", "stddev"])


class RedisSizeSource:
    """Random keys and their sizes, read from a redis-py client.

    size_source "debug" reads serializedlength from DEBUG OBJECT, "memory"
    uses MEMORY USAGE for servers where DEBUG is disabled. With a cluster,
    pass the primaries as nodes: RANDOMKEY otherwise only reaches the
    default node.
    """

    COMMANDS = {"debug": "DEBUG OBJECT", "memory": "MEMORY USAGE"}

    def __init__(self, client, size_source="debug", nodes=None, rng=None):
        if size_source not in self.COMMANDS:
            raise ConfigError(f"unknown size source {size_source!r}")
        self.client = client
        self.size_source = size_source
        self.command = self.COMMANDS[size_source]
        self.nodes = list(nodes) if nodes is not None else None
        self.rng = rng if rng is not None else random.Random()

    def random_key(self):
        try:
            if self.nodes is None:
                return self.client.randomkey()
            # a node may be empty while others still hold keys
            for node in self.rng.sample(self.nodes, len(self.nodes)):
                key = self.client.randomkey(target_nodes=node)
                if key is not None:
                    return key
            return None
        except ResponseError as e:
            raise SourceError(f"RANDOMKEY failed: {e}") from e

    def serialized_size(self, key) -> int:
        # the key may have expired since RANDOMKEY, report it and let the
        # collector draw again
        try:
            if self.size_source == "debug":
                size = self.client.debug_object(key).get("serializedlength")
            else:
                size = self.client.memory_usage(key)
        except ResponseError as e:
            print(f"{key!r}: {e}")
            return 0
        if size is None:
            return 0
        return int(size)


def collection_stats(samples):
    n = len(samples)
    if n == 0:
        raise ConfigError("no samples")
    mean = sum(samples) / n
    stddev = math.sqrt(sum((mean - s) ** 2 for s in samples) / n)
    return CollectionStats(mean, stddev)


class SampleCollector:
    def __init__(self, source, sample_count, max_zero_retries=MAX_ZERO_RETRIES):
        if sample_count <= 0:
            raise ConfigError(f"sample count must be positive, got {sample_count}")
        if max_zero_retries <= 0:
            raise ConfigError(
                f"max zero retries must be positive, got {max_zero_retries}"
            )
        self.source = source
        self.sample_count = sample_count
        self.max_zero_retries = max_zero_retries

    def sample_one(self, slot):
        # zero sizes don't consume the slot
        for _ in range(self.max_zero_retries):
            key = self.source.random_key()
            if key is None:
                raise SourceEmpty("Sorry but DB 0 is empty")
            size = self.source.serialized_size(key)
            if size > 0:
                return size
        raise RetryExhausted(
            f"sample {slot}: {self.source.command} gave no nonzero size "
            f"after {self.max_zero_retries} keys"
        )

    def collect(self):
        samples = [self.sample_one(slot) for slot in range(self.sample_count)]
        return samples, collection_stats(samples)


def collect(source, n, max_zero_retries=MAX_ZERO_RETRIES):
    return SampleCollector(source, n, max_zero_retries).collect()
