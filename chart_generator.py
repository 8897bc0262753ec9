# Copyright 2019 getcarrier.io
# Licensed under the Apache License, Version 2.0

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

plt.rcParams.update({'font.size': 14})


def _setup_chart_style(ax, x_max, y_max, datapoints):
    """Configure common chart styling."""
    plt.xlim(0, x_max + 1)
    plt.ylim(0, y_max + y_max * 0.15)
    ax.grid(color="#E3E3E3")
    ax.set_xlabel(datapoints['x_axis'])
    ax.set_ylabel(datapoints['y_axis'])
    ax.set_xticks(datapoints['values'])
    ax.set_xticklabels(datapoints.get('labels', [str(dp) for dp in datapoints['values']]), rotation=30)

    for spine in ['bottom']:
        ax.spines[spine].set_color('#E3E3E3')
    for spine in ['top', 'right', 'left']:
        ax.spines[spine].set_color('#ffffff')


def _annotate_values(ax, values, x_coords, y_offset_pct=0.05):
    """Add value annotations above data points."""
    y_max = max(values) if values else 0
    for index, value in enumerate(values):
        ax.annotate(str(value), xy=(x_coords[index], value + y_max * y_offset_pct))


def _plot_metrics(ax, datapoints, metrics_config):
    """Plot metrics that have data and return max values."""
    y_max = 0
    x_max = max(datapoints['values'])
    plotted = []

    for metric, label in metrics_config:
        if datapoints.get(metric):
            y_max = max(max(datapoints[metric]), y_max)
            ax.plot(datapoints['values'], datapoints[metric], linewidth=2, label=label)
            plotted.append(metric)

    for metric in plotted:
        _annotate_values(ax, datapoints[metric], datapoints['values'])

    if plotted:
        ax.legend(loc='upper left')

    return x_max, y_max


def metrics_trend_chart(datapoints):
    """Generate Core Web Vitals timing trend chart across stored runs."""
    fig, ax = plt.subplots(figsize=(datapoints['width'], datapoints['height'] * 1.5),
                           dpi=72, facecolor='w')

    metrics_config = [('fcp', 'FCP'), ('lcp', 'LCP'), ('tbt', 'TBT')]
    x_max, y_max = _plot_metrics(ax, datapoints, metrics_config)
    _setup_chart_style(ax, x_max, y_max, datapoints)
    ax.set_title(datapoints['title'])

    fig.savefig(datapoints['path_to_save'], bbox_inches='tight')
    plt.close(fig)
