"""Service configuration: environment settings and the feature catalogue."""
