"""apiprobe: compose, resolve, dispatch and classify API test requests."""

__version__ = "0.4.0"
