import plotly.express as px
import pandas as pd

def export_mode_comparison(rows, path: str):
    if not rows:
        with open(path, "w") as f:
            f.write("<h1>Mode Comparison</h1><p>No data to display.</p>")
        return

    df = pd.DataFrame(rows)
    # Keep only rows with usable counters
    df['accesses'] = pd.to_numeric(df['accesses'], errors='coerce')
    df = df.dropna(subset=['accesses'])

    df = df.melt(
        id_vars=['mode'],
        value_vars=['hits', 'misses', 'forced_evictions'],
        var_name='counter',
        value_name='count',
    )

    fig = px.bar(
        df,
        x="mode",
        y="count",
        color="counter",
        barmode="group",
        title="Lease Cache Simulation: Mode Comparison",
        labels={"mode": "Mode", "count": "Accesses", "counter": "Counter"}
    )

    fig.update_layout(
        font=dict(family="Courier New, monospace", size=12),
        legend_title="Counter"
    )

    fig.write_html(path, include_plotlyjs="cdn", full_html=True)

def export_mode_comparison_ascii(rows):
    if not rows:
        return "No results."

    width = 60
    chart = "Miss Ratio by Mode (ASCII Bar Chart)\n"
    chart += "" + ("-" * 90) + "\n"

    for row in rows:
        ratio = row.get('miss_ratio', 0.0)
        bar = '#' * int(round(ratio * width))
        chart += f"{row['mode']:>10} |{bar:<{width}}| {ratio:.4f}  forced={row.get('forced_evictions', 0)}\n"

    chart += "" + ("-" * 90) + "\n"
    return chart
