"""devshare: share one development server between independent agents."""

__version__ = "0.1.0"
