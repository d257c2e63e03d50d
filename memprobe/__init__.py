"""memprobe: periodic memory-accounting probe."""

PROBE_VERSION = "0.1.0"
