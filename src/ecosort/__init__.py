"""EcoSort: waste image classification with on-device, remote and simulated backends."""

__version__ = "0.1.0"
