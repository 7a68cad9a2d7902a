"""IMDb TV ratings service: catalog snapshots, search and follow lists."""

__version__ = "1.0.0"
