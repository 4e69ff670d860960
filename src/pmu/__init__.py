"""pmu - a background audio player driven by short-lived CLI invocations."""

__version__ = "0.1.0"
