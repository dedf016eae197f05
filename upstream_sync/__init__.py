"""Keep installed agentic workflows in sync with their upstream source."""

__version__ = "0.1.0"
