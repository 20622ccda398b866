import itertools
import time

from redis_errors import VMDisabled

HEADER_EVERY = 20
DB_COUNT = 20

CHILDS = {1: "BGSAVE", 2: "AOFREWRITE", 3: "BGSAVE+AOF"}


def sizeof_fmt(num, suffix="B"):
    for unit in ["", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi"]:
        if abs(num) < 1024.0:
            return f"{num:3.1f}{unit}{suffix}"
        num /= 1024.0
    return f"{num:.1f}Yi{suffix}"


def node_infos(info):
    # redis-py cluster can return dict keyed by node name -> dict
    if info and all(isinstance(v, dict) for v in info.values()):
        return list(info.values())
    return [info]


def info_field(info, field, *fallbacks):
    """Numeric INFO field summed over nodes, None if no node reports it."""
    total = None
    for blob in node_infos(info):
        for name in (field,) + fallbacks:
            if name in blob:
                total = (total or 0) + int(blob[name])
                break
    return total


def total_keys(info):
    keys = 0
    for blob in node_infos(info):
        for j in range(DB_COUNT):
            db = blob.get(f"db{j}")
            if isinstance(db, dict):
                keys += int(db.get("keys", 0))
    return keys


def signed(delta, text):
    if delta == 0:
        return " " + text
    if delta > 0:
        return "+" + text
    return text


def ticks(count):
    return itertools.count() if count is None else range(count)


def overview_row(info, requests):
    used_memory = info_field(info, "used_memory") or 0
    commands = info_field(info, "total_commands_processed") or 0
    bgsave = info_field(info, "rdb_bgsave_in_progress", "bgsave_in_progress") or 0
    aof = info_field(info, "aof_rewrite_in_progress", "bgrewriteaof_in_progress") or 0
    childs = CHILDS.get(min(bgsave, 1) | (min(aof, 1) << 1), "")

    requests_str = f"{commands} (+{commands - requests})"
    line = (
        f" {total_keys(info):<10}"
        f"{sizeof_fmt(used_memory):<9}"
        f" {info_field(info, 'connected_clients') or 0:<8}"
        f"{info_field(info, 'blocked_clients') or 0:<8}"
        f"{requests_str:<19}"
        f" {info_field(info, 'total_connections_received') or 0:<12}"
        f"{childs}"
    )
    return line, commands


def fetch_info(client, target_nodes=None):
    if target_nodes is None:
        return client.info()
    return client.info(target_nodes=target_nodes)


def overview(client, delay, count=None, target_nodes=None):
    requests = 0
    for c in ticks(count):
        info = fetch_info(client, target_nodes)
        if c % HEADER_EVERY == 0:
            print(
                " ------- data ------ ------------ load -----------------------------"
                " - childs -"
            )
            print(" keys      used-mem  clients blpops  requests            connections")
        line, requests = overview_row(info, requests)
        print(line)
        time.sleep(delay / 1000)


def vmstat_row(info, last):
    """Format one vmstat line; last holds the previous counters and is updated."""
    pagein = info_field(info, "vm_stats_swappin_count")
    if pagein is None:
        raise VMDisabled("Redis instance has VM disabled?")
    pageout = info_field(info, "vm_stats_swappout_count") or 0
    swapped = info_field(info, "vm_stats_swapped_objects") or 0
    used_pages = info_field(info, "vm_stats_used_pages") or 0
    used_memory = info_field(info, "used_memory") or 0

    swapped_delta = swapped - last["swapped"]
    pages_delta = used_pages - last["used_pages"]
    memory_delta = used_memory - last["used_memory"]
    line = (
        f" {pagein - last['pagein']:<9}"
        f"{pageout - last['pageout']:<9}"
        f" {swapped:<10}"
        f"{signed(swapped_delta, str(swapped_delta)):<11}"
        f"{used_pages:<9}"
        f"{signed(pages_delta, str(pages_delta)):<10}"
        f" {sizeof_fmt(used_memory):<9}"
        f"{signed(memory_delta, sizeof_fmt(memory_delta))}"
    )
    last.update(
        pagein=pagein,
        pageout=pageout,
        swapped=swapped,
        used_pages=used_pages,
        used_memory=used_memory,
    )
    return line


def vmstat(client, delay, count=None, target_nodes=None):
    last = dict(pagein=0, pageout=0, swapped=0, used_pages=0, used_memory=0)
    for c in ticks(count):
        info = fetch_info(client, target_nodes)
        if c % HEADER_EVERY == 0:
            print(
                " --------------- objects --------------- ------ pages ------"
                " ----- memory -----"
            )
            print(
                " load-in  swap-out  swapped   delta      used     delta"
                "      used     delta    "
            )
        print(vmstat_row(info, last))
        time.sleep(delay / 1000)


def latency(client, delay, count=None):
    for seq in ticks(count):
        start = time.time()
        client.ping()
        print(f"{seq + 1}: {(time.time() - start) * 1000:.2f} ms")
        time.sleep(delay / 1000)
