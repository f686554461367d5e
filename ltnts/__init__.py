"""MPEG transport stream tools: bitstreams, SEI timestamps, sections, statistics, PCR smoothing and recording."""

__version__ = "0.1.0"

__all__ = [
    "bitstream",
    "memsearch",
    "timeval",
    "sei_timestamp",
    "packet",
    "sectionextractor",
    "stats",
    "segmentwriter",
    "smoother_pcr",
]