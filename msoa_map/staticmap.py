"""
Static map module: matplotlib PNG of the classified choropleth (for reports and the README).
"""

from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches

from .classify import bin_labels, check_palette, color_of
from .spatial import to_web_crs


def plot_static_map(gdf, palette, breaks, out_path=None, title=None, dpi=300):
    """
    Plot classified polygons with one patch per bin and a 'No data' patch.

    Args:
        gdf: GeoDataFrame with 'bin_index' (from classify.classify_frame)
        palette: bin colours + trailing no-data colour
        breaks: breaks used for classification
        out_path: optional PNG path
        title: optional figure title
        dpi: output resolution

    Returns:
        matplotlib Figure
    """
    check_palette(palette, breaks)
    if 'bin_index' not in gdf.columns:
        raise ValueError("'bin_index' column not found; classify first")

    gdf_plot = to_web_crs(gdf)
    colors = [color_of(b, palette) for b in gdf_plot['bin_index']]

    fig, ax = plt.subplots(figsize=(10, 10))
    gdf_plot.plot(ax=ax, color=colors, edgecolor='white', linewidth=0.2)
    ax.set_axis_off()
    if title:
        ax.set_title(title, fontsize=14)

    handles = [
        mpatches.Patch(facecolor=color, edgecolor='#999999', label=label)
        for label, color in zip(bin_labels(breaks), palette[:-1])
    ]
    handles.append(mpatches.Patch(facecolor=palette[-1], edgecolor='#999999', label='No data'))
    ax.legend(handles=handles, loc='lower right', fontsize=8, frameon=True)

    if out_path is not None:
        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_path, dpi=dpi, bbox_inches='tight')

    return fig
