"""cadence: a frequency-divided cascade of generative layers."""

__version__ = "0.1.0"
