"""
MSOA Health Choropleth
Package for joining MSOA-level public-health indicators to MSOA boundaries
and rendering them as an interactive choropleth.
"""

__version__ = "1.0.0"

# Lazy imports to keep `import msoa_map` cheap (geopandas/folium load on use)
# Import as needed in code

__all__ = ["config", "models", "io", "cleaning", "spatial", "classify", "webmap", "qc", "pipeline"]
