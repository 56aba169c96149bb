"""Version information for stream_anonymize."""

try:
    from stream_anonymize._version_info import __version__, __version_tuple__
except ImportError:
    __version__ = "unknown"
    __version_tuple__ = (0, 0, 0, "unknown", "unknown")
