"""OwnTracks exporter: interpolated location metrics from OwnTracks HTTP pings."""

__version__ = "0.1.0"
