from collections import namedtuple

from redis_errors import ConfigError

GRAPH_ROWS = 20
GRAPH_BAR_LEN = 50

SCALES = {
    "pow2": lambda j: 2**j,
    "small": lambda j: j + 1,
    "medium": lambda j: (j + 1) * 5,
    "large": lambda j: (j + 1) * 50,
}

Bucket = namedtuple("Bucket", ["upper_bound", "frequency"])
GraphRow = namedtuple("GraphRow", ["label", "frequency", "percent", "bar"])


def resolve_scale(samples, scale, rows=GRAPH_ROWS):
    """Pick the smallest linear scale that fits the samples when scale is "auto"."""
    if scale != "auto":
        if scale not in SCALES:
            raise ConfigError(f"unknown scale {scale!r}")
        return scale

    scale = "small"
    for s in samples:
        if scale == "small" and s > 1 * rows:
            scale = "medium"
        if scale == "medium" and s > 5 * rows:
            # nothing bigger than large
            return "large"
    return scale


def upper_bound(scale, j):
    return SCALES[scale](j)


class HistogramBinner:
    def __init__(self, scale="auto", rows=GRAPH_ROWS, bar_len=GRAPH_BAR_LEN):
        if scale != "auto" and scale not in SCALES:
            raise ConfigError(f"unknown scale {scale!r}")
        if rows <= 0 or bar_len <= 0:
            raise ConfigError("histogram needs at least one row and one bar column")
        self.scale = scale
        self.rows = rows
        self.bar_len = bar_len

    def bin(self, samples):
        if not samples:
            raise ConfigError("can't graph an empty sample")
        scale = resolve_scale(samples, self.scale, self.rows)
        bounds = [upper_bound(scale, j) for j in range(self.rows)]
        freq = [0] * self.rows
        for s in samples:
            i = self.rows - 1
            while i > 0 and bounds[i - 1] >= s:
                i -= 1
            freq[i] += 1
        return [Bucket(b, f) for b, f in zip(bounds, freq)]

    def histogram(self, samples):
        buckets = self.bin(samples)

        # drop the empty tail of the graph
        high = len(buckets) - 1
        while high > 0 and buckets[high].frequency == 0:
            high -= 1
        shown = buckets[: high + 1]
        max_freq = max(b.frequency for b in shown)
        total = sum(b.frequency for b in shown)

        rows = []
        for j, bucket in enumerate(shown):
            if j == high and j > 0:
                label = f">  {shown[j - 1].upper_bound}"
            else:
                label = f"<= {bucket.upper_bound}"
            bar = bucket.frequency * self.bar_len // max_freq
            percent = bucket.frequency * 100 / total
            rows.append(GraphRow(label, bucket.frequency, percent, bar))
        return rows


def render(rows):
    return [f"{row.label:<13} |{'-' * row.bar} ({row.percent:.2f}%)" for row in rows]


def histogram(samples, scale="auto"):
    return HistogramBinner(scale).histogram(samples)
