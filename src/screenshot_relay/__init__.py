"""Screenshot relay: fetch a screenshot, cut out the interesting part, send it on."""

__version__ = "0.1.0"
