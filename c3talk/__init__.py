"""C3Talk translation core: dual-provider LLM orchestration with credit metering."""

__version__ = "0.1.0"
