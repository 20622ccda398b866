#!/usr/bin/env python3
import argparse
import sys

import redis
from redis.cluster import RedisCluster
from redis.cluster import ClusterNode as Node

import redis_monitor
from redis_errors import StatError
from redis_graph import HistogramBinner, render
from redis_sample import MAX_ZERO_RETRIES, RedisSizeSource, SampleCollector
from redis_vmpage import RETRY_LIMIT, VMPAGE_PAGES, PageSizeSimulator

STATS = ["overview", "vmstat", "vmpage", "ondisk-size", "latency"]


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Redis stat utility: live counters and dataset size analysis"
    )
    p.add_argument(
        "stat",
        nargs="?",
        choices=STATS,
        default="overview",
        help="overview (default): general information about a Redis instance. "
        "vmstat: VM activity. "
        "vmpage: guess the best vm-page-size for your dataset. "
        "ondisk-size: stats and graphs about values len once stored on disk. "
        "latency: measure server latency.",
    )
    p.add_argument("--host", type=str, default="127.0.0.1")
    p.add_argument("--port", type=int, default=6379)
    p.add_argument("--password", "--auth", type=str, default=None)
    p.add_argument("--cluster", action="store_true", help="Connect to a Redis Cluster")
    p.add_argument(
        "--delay",
        type=int,
        default=1000,
        help="Delay between requests in milliseconds (default: 1000)",
    )
    p.add_argument(
        "--samplesize",
        type=int,
        default=10000,
        help="Number of keys to sample for 'vmpage' and 'ondisk-size'",
    )
    p.add_argument(
        "--logscale",
        action="store_true",
        help="Use power-of-two logarithmic scale in graphs",
    )
    p.add_argument(
        "--size-source",
        choices=["debug", "memory"],
        default="debug",
        help="Read sizes from DEBUG OBJECT serializedlength or MEMORY USAGE",
    )
    p.add_argument(
        "--max-zero-retries",
        type=int,
        default=MAX_ZERO_RETRIES,
        help="Keys to draw for one sample before giving up on zero sizes",
    )
    p.add_argument(
        "--pages",
        type=int,
        default=VMPAGE_PAGES,
        help="Pages in the simulated swap file (default: 1000000)",
    )
    p.add_argument("--seed", type=int, default=None, help="Seed the page simulation")
    p.add_argument(
        "--count",
        type=int,
        default=None,
        help="Stop polling stats after N rows (default: run forever)",
    )
    p.add_argument("--verbose", "-v", action="store_true")
    args = p.parse_args(argv)
    if args.delay < 0:
        p.error("--delay can't be negative")
    if args.samplesize <= 0:
        p.error("--samplesize must be positive")
    return args


def connect(args):
    if args.cluster:
        client = RedisCluster(
            startup_nodes=[Node(args.host, args.port)], password=args.password
        )
    else:
        client = redis.Redis(host=args.host, port=args.port, password=args.password)
    client.ping()
    if args.password is not None:
        print("AUTH succeeded.")
    return client


def sample_dataset(client, args):
    print(f"Sampling {args.samplesize} random keys from DB 0...")
    nodes = client.get_primaries() if args.cluster else None
    source = RedisSizeSource(client, args.size_source, nodes=nodes)
    samples, stats = SampleCollector(
        source, args.samplesize, args.max_zero_retries
    ).collect()
    print(f"  Average: {stats.mean:.2f}")
    print(f"  Standard deviation: {stats.stddev:.2f}")
    print()
    return samples


def report_candidate(result):
    print(
        f"{result.page_size}: bytes per page: {result.bytes_per_page:.2f}, "
        f"space efficiency: {result.efficiency:.2f}%"
    )


def vmpage(client, args):
    samples = sample_dataset(client, args)
    print("Simulate fragmentation with different page sizes...")
    simulator = PageSizeSimulator(
        samples, total_pages=args.pages, retry_limit=RETRY_LIMIT, seed=args.seed
    )
    best, _ = simulator.simulate(report=report_candidate)
    print()
    print(f"The best compromise between bytes per page and swap file size: {best}")


def ondisk_size(client, args):
    samples = sample_dataset(client, args)
    if args.verbose:
        for s in samples:
            print(f"SAMPLE: {s}")
    binner = HistogramBinner("pow2" if args.logscale else "auto")
    for line in render(binner.histogram(samples)):
        print(line)


def run(client, args):
    target_nodes = RedisCluster.PRIMARIES if args.cluster else None
    if args.stat == "overview":
        redis_monitor.overview(client, args.delay, args.count, target_nodes)
    elif args.stat == "vmstat":
        redis_monitor.vmstat(client, args.delay, args.count, target_nodes)
    elif args.stat == "vmpage":
        vmpage(client, args)
    elif args.stat == "ondisk-size":
        ondisk_size(client, args)
    elif args.stat == "latency":
        redis_monitor.latency(client, args.delay, args.count)


def main(argv=None):
    args = parse_args(argv)

    try:
        client = connect(args)
    except redis.exceptions.AuthenticationError as e:
        print(f"AUTH failed: {e}")
        sys.exit(1)
    except redis.exceptions.RedisError as e:
        print(f"Error connecting to Redis server: {e}")
        sys.exit(1)

    try:
        run(client, args)
    except StatError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except redis.exceptions.RedisError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
