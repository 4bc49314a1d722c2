"""
Tracklog command line tools.

Available tools:
- tracking_cli: Version lifecycle, reports and exports
"""
