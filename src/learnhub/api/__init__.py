"""HTTP surface: health probes, cache operations and metrics."""
