import logging
import time

import pandas as pd
import requests

from decision.errors import TransportError
from decision.models import MetricSample, MetricSeries

METRICS = {
    "cpu": "100 - (avg(rate(node_cpu_seconds_total{mode='idle'}[1m])) * 100)",
    "memory": "avg((node_memory_MemTotal_bytes - node_memory_MemAvailable_bytes) / node_memory_MemTotal_bytes * 100)",
    "networkIn": "sum(rate(node_network_receive_bytes_total{device!='lo'}[1m]))",
    "networkOut": "sum(rate(node_network_transmit_bytes_total{device!='lo'}[1m]))",
}


def to_series(name, values) -> MetricSeries:
    """
    Convert Prometheus [[ts, "value"], ...] pairs into a MetricSeries.

    Non-numeric values ("NaN", "+Inf") are dropped.
    """
    if not values:
        return MetricSeries(name=name)

    df = pd.DataFrame(values, columns=["timestamp", name])
    df["timestamp"] = pd.to_numeric(df["timestamp"], errors="coerce")
    df[name] = pd.to_numeric(df[name], errors="coerce")
    df = df.replace([float("inf"), float("-inf")], float("nan")).dropna()
    df = df.sort_values("timestamp")

    samples = tuple(
        MetricSample(timestamp=float(ts), value=float(v))
        for ts, v in zip(df["timestamp"], df[name])
    )
    return MetricSeries(name=name, samples=samples)


class PrometheusMetricsSource:
    """MetricsSource reading node_exporter metrics through Prometheus query_range."""

    def __init__(self, base_url, queries=None, timeout=10.0, session=None, clock=time.time):
        self.base_url = base_url.rstrip("/")
        self.queries = dict(queries or METRICS)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock

    def fetch_metric(self, query, name, start, end, step):
        """Fetch a single metric from Prometheus."""
        params = {
            "query": query,
            "start": start,
            "end": end,
            "step": step,
        }

        try:
            r = self.session.get(f"{self.base_url}/api/v1/query_range", params=params, timeout=self.timeout)
            r.raise_for_status()
            data = r.json().get("data", {}).get("result", [])
        except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
            logging.error(f"Failed to fetch metric {name}: {e}")
            raise TransportError(f"Prometheus query for {name} failed: {e}") from e

        if not data:
            logging.warning(f"No data returned for metric {name}")
            return MetricSeries(name=name)

        return to_series(name, data[0].get("values", []))

    def fetch(self, lookback_seconds, interval_seconds):
        """
        Fetch every configured dimension over the lookback window.

        A dimension that fails comes back empty; only when all of them fail is
        the source considered unreachable.
        """
        end = int(self.clock())
        start = end - int(lookback_seconds)
        step = f"{max(1, int(interval_seconds))}s"

        snapshot = {}
        failures = []
        for name, query in self.queries.items():
            try:
                snapshot[name] = self.fetch_metric(query, name, start, end, step)
            except TransportError as e:
                logging.error(f"Skipping metric {name} due to fetch error.")
                failures.append(e)
                snapshot[name] = MetricSeries(name=name)

        if self.queries and len(failures) == len(self.queries):
            raise TransportError(f"All metric queries failed: {failures[-1]}")

        return snapshot
