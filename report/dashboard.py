"""Outlier dashboard report builder (HTML required, PDF best effort)."""

from __future__ import annotations

import argparse
import html
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import matplotlib.pyplot as plt
import pandas as pd
import yaml
from matplotlib.backends.backend_pdf import PdfPages

LOGGER = logging.getLogger("report.dashboard")

REQUIRED_SECTIONS = [
    "Detection method",
    "Data coverage",
    "Sector summary",
    "Top outliers",
    "Charts",
]

SIGNIFICANCE_COLORS = {"Moderate": "#f2c14e", "Strong": "#f78154", "Extreme": "#b4436c"}


def _load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        cfg = yaml.safe_load(handle)
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a mapping: {path}")
    return cfg


def _require_file(path: Path, label: str) -> Path:
    if not path.exists():
        raise FileNotFoundError(f"Missing required artifact '{label}': {path}")
    return path


def _read_json(path: Path) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def assemble_report_context(report_cfg: Dict[str, Any]) -> Dict[str, Any]:
    paths = report_cfg.get("paths", {})

    summary_path = _require_file(
        Path(paths.get("detection_summary", "outputs/detection/detection_summary.json")), "detection_summary"
    )
    outliers_path = _require_file(
        Path(paths.get("outlier_report", "outputs/detection/outlier_report.parquet")), "outlier_report"
    )
    coverage_path = _require_file(
        Path(paths.get("coverage_report", "outputs/data/metadata/coverage_report.parquet")), "coverage_report"
    )

    summary = _read_json(summary_path)
    outliers = pd.read_parquet(outliers_path).sort_values("composite_score", ascending=False)
    coverage = pd.read_parquet(coverage_path)

    top_n = int(report_cfg.get("report", {}).get("top_n", 20))

    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "title": report_cfg.get("report", {}).get("title", "Sector Outlier Report"),
        "author": report_cfg.get("branding", {}).get("author", "Research"),
        "method": report_cfg.get("sections", {}).get(
            "method",
            "Each stock is scored against its sector peers using z-scores of price change, P/E, P/B and "
            "volume ratio, combined as a weighted root-mean-square; stocks at or above the threshold are flagged.",
        ),
        "summary": summary,
        "sectors": pd.DataFrame(summary.get("by_sector", [])),
        "outliers": outliers,
        "top_outliers": outliers.head(top_n),
        "coverage": coverage,
    }


def _save_sector_chart(sectors: pd.DataFrame, path: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 3.8))
    if not sectors.empty:
        ax.bar(sectors["sector_name"], sectors["outlier_count"], color="#1f77b4")
        ax.tick_params(axis="x", labelrotation=45)
    ax.set_title("Outliers by Sector")
    ax.set_ylabel("Outliers")
    ax.grid(axis="y", alpha=0.2)
    fig.tight_layout()
    fig.savefig(path, dpi=140)
    plt.close(fig)


def _save_significance_chart(by_significance: Dict[str, int], path: Path) -> None:
    labels = list(SIGNIFICANCE_COLORS)
    counts = [int(by_significance.get(label, 0)) for label in labels]

    fig, ax = plt.subplots(figsize=(8, 3.8))
    ax.bar(labels, counts, color=[SIGNIFICANCE_COLORS[label] for label in labels])
    ax.set_title("Significance Breakdown")
    ax.set_ylabel("Outliers")
    ax.grid(axis="y", alpha=0.2)
    fig.tight_layout()
    fig.savefig(path, dpi=140)
    plt.close(fig)


def _save_score_chart(outliers: pd.DataFrame, threshold: float, path: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 3.8))
    if not outliers.empty:
        ax.hist(outliers["composite_score"], bins=10, color="#2ca02c", alpha=0.7)
    ax.axvline(threshold, color="#d62728", linestyle="--", label=f"threshold {threshold:.2f}")
    ax.set_title("Composite Score Distribution (flagged)")
    ax.set_xlabel("Composite score")
    ax.set_ylabel("Stocks")
    ax.legend(loc="best")
    ax.grid(alpha=0.2)
    fig.tight_layout()
    fig.savefig(path, dpi=140)
    plt.close(fig)


def generate_charts(context: Dict[str, Any], output_dir: Path) -> Dict[str, str]:
    assets_dir = output_dir / "assets"
    assets_dir.mkdir(parents=True, exist_ok=True)

    sector_path = assets_dir / "outliers_by_sector.png"
    significance_path = assets_dir / "significance_breakdown.png"
    score_path = assets_dir / "composite_scores.png"

    _save_sector_chart(context["sectors"], sector_path)
    _save_significance_chart(context["summary"].get("by_significance", {}), significance_path)
    _save_score_chart(context["outliers"], float(context["summary"].get("threshold", 0.0)), score_path)

    return {
        "sectors": str(sector_path.relative_to(output_dir)),
        "significance": str(significance_path.relative_to(output_dir)),
        "scores": str(score_path.relative_to(output_dir)),
    }


def _fmt(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return "N/A"
    if isinstance(value, float):
        return f"{value:.2f}"
    return html.escape(str(value))


def _table_rows(frame: pd.DataFrame, columns: list[str]) -> str:
    rows = []
    for record in frame.to_dict(orient="records"):
        cells = "".join(f"<td>{_fmt(record.get(col))}</td>" for col in columns)
        rows.append(f"      <tr>{cells}</tr>")
    return "\n".join(rows)


def render_html(context: Dict[str, Any], charts: Dict[str, str], output_path: Path) -> None:
    summary = context["summary"]
    totals = summary.get("totals", {})

    sector_cols = ["sector_name", "sector_symbol", "stock_count", "outlier_count", "evaluated"]
    outlier_cols = ["symbol", "name", "sector_name", "composite_score", "outlier_type", "significance_level"]
    coverage_cols = ["sector_id", "stock_count", "pe_available", "pb_available", "volume_ratio_available", "eligible"]

    page = f"""<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <title>{html.escape(context['title'])}</title>
  <style>
    body {{ font-family: 'Georgia', serif; margin: 24px; color: #14213d; }}
    h1, h2 {{ color: #0b2545; }}
    table {{ border-collapse: collapse; width: 100%; margin-bottom: 18px; }}
    th, td {{ border: 1px solid #d9d9d9; padding: 8px; text-align: left; }}
    th {{ background: #f2f5f9; }}
    .meta {{ color: #4b5563; font-size: 0.92rem; }}
    .grid {{ display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }}
    img {{ max-width: 100%; border: 1px solid #ddd; }}
    .section {{ margin-top: 22px; }}
  </style>
</head>
<body>
  <h1>{html.escape(context['title'])}</h1>
  <p class=\"meta\">Generated: {context['generated_at_utc']} | Author: {html.escape(context['author'])}</p>

  <h2>Detection method</h2>
  <p>{html.escape(context['method'])}</p>
  <table>
    <tr><th>Setting</th><th>Value</th></tr>
    <tr><td>Universe</td><td>{_fmt(summary.get('universe'))}</td></tr>
    <tr><td>Threshold</td><td>{_fmt(summary.get('threshold'))}</td></tr>
    <tr><td>Stocks</td><td>{_fmt(totals.get('stocks'))}</td></tr>
    <tr><td>Sectors evaluated</td><td>{_fmt(totals.get('sectors_evaluated'))} / {_fmt(totals.get('sectors'))}</td></tr>
    <tr><td>Outliers</td><td>{_fmt(totals.get('outliers'))}</td></tr>
  </table>

  <div class=\"section\">
    <h2>Data coverage</h2>
    <table>
      <tr>{''.join(f'<th>{c}</th>' for c in coverage_cols)}</tr>
{_table_rows(context['coverage'], coverage_cols)}
    </table>
  </div>

  <div class=\"section\">
    <h2>Sector summary</h2>
    <table>
      <tr>{''.join(f'<th>{c}</th>' for c in sector_cols)}</tr>
{_table_rows(context['sectors'], sector_cols)}
    </table>
  </div>

  <div class=\"section\">
    <h2>Top outliers</h2>
    <table>
      <tr>{''.join(f'<th>{c}</th>' for c in outlier_cols)}</tr>
{_table_rows(context['top_outliers'], outlier_cols)}
    </table>
  </div>

  <div class=\"section\">
    <h2>Charts</h2>
    <div class=\"grid\">
      <div><h3>By sector</h3><img src=\"{charts['sectors']}\" alt=\"outliers by sector\"/></div>
      <div><h3>Significance</h3><img src=\"{charts['significance']}\" alt=\"significance breakdown\"/></div>
      <div><h3>Scores</h3><img src=\"{charts['scores']}\" alt=\"composite score distribution\"/></div>
    </div>
  </div>
</body>
</html>
"""
    output_path.write_text(page, encoding="utf-8")


def render_pdf_best_effort(context: Dict[str, Any], charts: Dict[str, str], output_dir: Path) -> Dict[str, Any]:
    pdf_path = output_dir / "latest_report.pdf"
    limitation = None
    summary = context["summary"]
    totals = summary.get("totals", {})
    try:
        with PdfPages(pdf_path) as pdf:
            fig, ax = plt.subplots(figsize=(11, 8.5))
            ax.axis("off")
            ax.text(0.01, 0.95, context["title"], fontsize=16, fontweight="bold")
            ax.text(0.01, 0.90, "Detection method", fontsize=12)
            ax.text(0.01, 0.86, context["method"], fontsize=10, wrap=True)
            ax.text(0.01, 0.78, f"Universe: {_fmt(summary.get('universe'))}")
            ax.text(0.01, 0.75, f"Threshold: {_fmt(summary.get('threshold'))}")
            ax.text(0.01, 0.72, f"Outliers: {_fmt(totals.get('outliers'))}")
            pdf.savefig(fig)
            plt.close(fig)

            for key in ["sectors", "significance", "scores"]:
                fig, ax = plt.subplots(figsize=(11, 8.5))
                ax.axis("off")
                img = plt.imread(output_dir / charts[key])
                ax.imshow(img)
                ax.set_title(key.capitalize())
                pdf.savefig(fig)
                plt.close(fig)

        return {"pdf_generated": True, "pdf_path": str(pdf_path), "limitation": limitation}
    except Exception as exc:  # best effort
        limitation = f"PDF export failed: {exc}"
        LOGGER.warning(limitation)
        return {"pdf_generated": False, "pdf_path": str(pdf_path), "limitation": limitation}


def build_report(report_config_path: str) -> Dict[str, Any]:
    cfg = _load_yaml(report_config_path)
    out_dir = Path(cfg.get("report", {}).get("output_dir", "outputs/reports"))
    out_dir.mkdir(parents=True, exist_ok=True)

    context = assemble_report_context(cfg)
    charts = generate_charts(context, out_dir)

    html_path = out_dir / "latest_report.html"
    render_html(context, charts, html_path)

    pdf_info = render_pdf_best_effort(context, charts, out_dir)

    build_info = {
        "html_path": str(html_path),
        "charts": charts,
        **pdf_info,
    }

    meta_path = out_dir / "report_build.json"
    meta_path.write_text(json.dumps(build_info, indent=2, sort_keys=True), encoding="utf-8")
    LOGGER.info("Report HTML written to %s", html_path)
    if pdf_info["pdf_generated"]:
        LOGGER.info("Report PDF written to %s", pdf_info["pdf_path"])
    else:
        LOGGER.warning("Report PDF not generated. Limitation recorded in report_build.json")

    return build_info


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build sector outlier dashboard report")
    parser.add_argument("--report-config", default="config/report.yaml", help="Report config path")
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    build_report(args.report_config)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
