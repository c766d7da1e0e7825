"""ClimbScan: climbing wall capture, AI route analysis and overlay rendering."""

__version__ = "0.1.0"
