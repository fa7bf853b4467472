"""In-memory metrics registry."""
from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Dict, Iterable, Tuple, TypeVar

from .base import CounterMetric, DistributionMetric, Metric

M = TypeVar("M", bound=Metric)


class MetricsRegistry:
    """Holds named metrics and renders them for the metrics endpoint."""

    def __init__(self) -> None:
        self._metrics: Dict[str, Metric] = {}
        self._lock = Lock()

    def _get_or_create(self, name: str, kind: type[M], factory: Callable[[], M]) -> M:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = factory()
        if not isinstance(metric, kind):
            raise TypeError(f"Metric '{name}' already exists as a {metric.kind}")
        return metric

    def counter(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> CounterMetric:
        return self._get_or_create(
            name,
            CounterMetric,
            lambda: CounterMetric(name, description=description, label_names=label_names),
        )

    def distribution(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> DistributionMetric:
        return self._get_or_create(
            name,
            DistributionMetric,
            lambda: DistributionMetric(name, description=description, label_names=label_names),
        )

    def metrics(self) -> Tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Return a JSON friendly view keyed by metric name.

        Label values are joined as ``key=value`` pairs; unlabelled series use
        an empty string key.
        """

        payload: dict[str, dict[str, Any]] = {}
        for metric in self.metrics():
            series = {
                ",".join(f"{name}={value}" for name, value in zip(metric.label_names, key)): values
                for key, values in metric.snapshot().items()
            }
            payload[metric.name] = {"type": metric.kind, "description": metric.description, "series": series}
        return payload
