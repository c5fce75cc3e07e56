"""Rendering of analysis results into summary, console text and HTML."""

from dataclasses import dataclass, field
from decimal import Decimal
from html import escape
from typing import Dict, Any, List, Optional, Sequence
import structlog

from inflation_tracker.models.analysis import AnalysisResult, SellPressureSummary
from inflation_tracker.utils.amounts import short_address
from inflation_tracker.utils.time import HOURS_PER_DAY, format_timestamp

logger = structlog.get_logger(__name__)

HIGH_PRESSURE_PERCENT = 40
LOW_PRESSURE_PERCENT = 20
RISING_TREND_PERCENT = 35
FALLING_TREND_PERCENT = 25
MANY_QUICK_SELLERS = 20
CONSOLE_TOP_N = 5
RULE = "═" * 70


def _percent_of(part: Decimal, whole: Decimal) -> float:
    return round(float(part / whole * 100), 1) if whole > 0 else 0.0


@dataclass
class RenderedReport:
    """A report in structured, console and HTML form."""
    report_type: str
    generated_at: int
    period: Dict[str, int]
    summary: Dict[str, Any]
    details: Dict[str, Any]
    trends: Dict[str, Any]
    recommendations: List[Dict[str, str]] = field(default_factory=list)
    text: str = ""
    html: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.report_type,
            "generated_at": format_timestamp(self.generated_at),
            "period": dict(self.period),
            "summary": self.summary,
            "details": self.details,
            "trends": self.trends,
            "recommendations": list(self.recommendations),
        }


class Reporter:
    """
    Builds reports from a stored AnalysisResult.

    Rendering reads nothing but the result itself, so a report generated
    later from a saved analysis is identical to one generated right away.
    """

    def __init__(self, token_symbol: str = "DOT"):
        self.token_symbol = token_symbol
        self.logger = logger.bind(component="reporter")

    def render(self, result: AnalysisResult, report_type: str = "daily") -> RenderedReport:
        """Render `result` into a RenderedReport."""
        summary = self.build_summary(result)
        details = self.build_details(result)
        trends = self.build_trends(result)
        recommendations = self.build_recommendations(result)

        report = RenderedReport(
            report_type=report_type,
            generated_at=result.timestamp,
            period=result.period.to_dict(),
            summary=summary,
            details=details,
            trends=trends,
            recommendations=recommendations,
        )
        report.text = self.render_text(result, summary)
        report.html = self.render_html(result, summary, recommendations)

        self.logger.info("Rendered report",
                         report_type=report_type,
                         period_end=result.timestamp,
                         alerts=len(result.patterns))
        return report

    # Structured sections

    def headline(self, summary: SellPressureSummary) -> str:
        pressure = float(summary.sell_pressure_percent)
        if pressure > HIGH_PRESSURE_PERCENT:
            return f"⚠️ HIGH SELL PRESSURE: {pressure:.1f}% of rewards sent to exchanges"
        if pressure < LOW_PRESSURE_PERCENT:
            return f"✅ LOW SELL PRESSURE: Only {pressure:.1f}% of rewards sent to exchanges"
        return f"📊 NORMAL ACTIVITY: {pressure:.1f}% sell pressure detected"

    def trend(self, summary: SellPressureSummary) -> Dict[str, str]:
        """Classify the pressure level of a single period."""
        # TODO: compare against load_historical_analyses() once enough history is stored
        pressure = float(summary.sell_pressure_percent)
        if pressure > RISING_TREND_PERCENT:
            return {"direction": "increasing", "sentiment": "negative"}
        if pressure < FALLING_TREND_PERCENT:
            return {"direction": "decreasing", "sentiment": "positive"}
        return {"direction": "stable", "sentiment": "neutral"}

    def build_summary(self, result: AnalysisResult) -> Dict[str, Any]:
        summary = result.summary
        return {
            "headline": self.headline(summary),
            "key_metrics": summary.to_dict(),
            "trend": self.trend(summary),
            "alerts": [p.to_dict() for p in result.patterns],
        }

    def build_details(self, result: AnalysisResult) -> Dict[str, Any]:
        exchange_flow = result.summary.exchange_flow
        top_sellers = []
        for seller in result.top_sellers:
            entry = seller.to_dict()
            entry["percent_of_total"] = _percent_of(seller.amount, exchange_flow)
            top_sellers.append(entry)

        return {
            "top_sellers": top_sellers,
            "top_holders": [h.to_dict() for h in result.top_holders],
            "exchange_breakdown": self.exchange_breakdown(result),
            "hourly_activity": self.hourly_activity(result),
        }

    def exchange_breakdown(self, result: AnalysisResult) -> Dict[str, Dict[str, Any]]:
        """Deposits per venue with their share of total exchange flow."""
        return {
            venue.venue_name: {
                "deposits": float(venue.deposits),
                "count": venue.count,
                "percentage": _percent_of(venue.deposits, result.summary.exchange_flow),
            }
            for venue in result.venue_breakdown
        }

    def hourly_activity(self, result: AnalysisResult) -> List[Dict[str, Any]]:
        trend = result.cumulative_trend
        return [
            {
                "hour": hour,
                "rewards": float(result.hourly_rewards[hour]),
                "exchange_flow": float(result.hourly_exchange_flows[hour]),
                "sell_pressure": float(trend[hour].pressure) if hour < len(trend) else 0.0,
            }
            for hour in range(HOURS_PER_DAY)
        ]

    @staticmethod
    def peak_hour(hourly: Sequence[Decimal]) -> Optional[int]:
        """Hour with the largest total, earliest on ties; None when all are zero."""
        best = None
        for hour, value in enumerate(hourly):
            if value > 0 and (best is None or value > hourly[best]):
                best = hour
        return best

    def build_trends(self, result: AnalysisResult) -> Dict[str, Any]:
        return {
            "peak_reward_hour": self.peak_hour(result.hourly_rewards),
            "peak_exchange_hour": self.peak_hour(result.hourly_exchange_flows),
            "sell_pressure_progression": [t.to_dict() for t in result.cumulative_trend],
        }

    def build_recommendations(self, result: AnalysisResult) -> List[Dict[str, str]]:
        summary = result.summary
        recommendations = []

        if summary.sell_pressure_percent > HIGH_PRESSURE_PERCENT:
            recommendations.append({
                "type": "warning",
                "message": "High sell pressure detected. Consider monitoring for potential price impact.",
                "action": "Track exchange order books for large sell walls",
            })

        if summary.quick_sellers > MANY_QUICK_SELLERS:
            recommendations.append({
                "type": "info",
                "message": f"{summary.quick_sellers} addresses are immediately selling rewards",
                "action": "Investigate if these are automated selling bots",
            })

        if result.patterns:
            recommendations.append({
                "type": "alert",
                "message": f"{len(result.patterns)} suspicious patterns detected",
                "action": "Review pattern details for potential market manipulation",
            })

        return recommendations

    # Text and HTML

    def _amount(self, value: Decimal) -> str:
        return f"{float(value):,.2f} {self.token_symbol}"

    def render_text(self, result: AnalysisResult, summary: Dict[str, Any]) -> str:
        s = result.summary
        lines = [
            RULE,
            "POLKADOT INFLATION ANALYSIS".center(70),
            f"{format_timestamp(result.period.start)} -> {format_timestamp(result.period.end)}".center(70),
            RULE,
            summary["headline"],
            "",
            "KEY METRICS:",
            f"- Total Rewards: {self._amount(s.total_rewards)}",
            f"- Sent to Exchanges: {self._amount(s.exchange_flow)}",
            f"- Sell Pressure: {float(s.sell_pressure_percent):.1f}%",
            f"- Quick Sellers: {s.quick_sellers}",
            f"- Holders: {s.holders}",
        ]

        if result.patterns:
            lines += ["", "ALERTS:"]
            lines += [f"- [{p.severity.upper()}] {p.description}" for p in result.patterns]

        lines += ["", "TOP SELLERS:"]
        for seller in result.top_sellers[:CONSOLE_TOP_N]:
            quick = " (Quick Sell)" if seller.quick_sell else ""
            lines.append(f"- {short_address(seller.address)}: {self._amount(seller.amount)}{quick}")

        lines += ["", "TOP HOLDERS:"]
        for holder in result.top_holders[:CONSOLE_TOP_N]:
            lines.append(f"- {short_address(holder.address)}: {self._amount(holder.rewards)}")

        lines.append(RULE)
        return "\n".join(lines)

    def _table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
        if not rows:
            return "<p>No data available</p>"
        head = "".join(f"<th>{escape(h)}</th>" for h in headers)
        body = "".join(
            "<tr>" + "".join(f"<td>{escape(cell)}</td>" for cell in row) + "</tr>"
            for row in rows
        )
        return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"

    def render_html(self, result: AnalysisResult, summary: Dict[str, Any],
                    recommendations: Sequence[Dict[str, str]]) -> str:
        s = result.summary
        metrics = [
            (self._amount(s.total_rewards), f"Total Rewards ({result.period.hours:g}h)"),
            (self._amount(s.exchange_flow), "Sent to Exchanges"),
            (f"{float(s.sell_pressure_percent):.1f}%", "Sell Pressure"),
            (str(s.quick_sellers), "Quick Sellers"),
            (str(s.holders), "Holders"),
        ]
        metrics_html = "".join(
            f'<div class="metric"><div class="metric-value">{escape(value)}</div>'
            f'<div class="metric-label">{escape(label)}</div></div>'
            for value, label in metrics
        )

        alerts_html = ""
        if result.patterns:
            alerts_html = "<h2>Alerts</h2>" + "".join(
                f'<div class="alert alert-{"warning" if p.severity == "high" else "info"}">'
                f"<strong>{escape(p.kind)}:</strong> {escape(p.description)}</div>"
                for p in result.patterns
            )

        recommendations_html = ""
        if recommendations:
            recommendations_html = "<h2>Recommendations</h2><ul>" + "".join(
                f"<li>{escape(r['message'])} <em>{escape(r['action'])}</em></li>" for r in recommendations
            ) + "</ul>"

        sellers = self._table(
            ["Address", "Amount", "Quick Sell"],
            [(short_address(e.address), self._amount(e.amount), "✓" if e.quick_sell else "")
             for e in result.top_sellers],
        )
        holders = self._table(
            ["Address", "Rewards"],
            [(short_address(e.address), self._amount(e.rewards)) for e in result.top_holders],
        )
        venues = self._table(
            ["Exchange", "Deposits", "Count"],
            [(v.venue_name, self._amount(v.deposits), str(v.count)) for v in result.venue_breakdown],
        )

        generated = escape(format_timestamp(result.timestamp))
        return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Polkadot Inflation Analysis - {generated}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 20px; background: #f5f5f5; }}
    .container {{ max-width: 1200px; margin: 0 auto; background: white; padding: 30px; border-radius: 10px; }}
    h1 {{ color: #E6007A; }}
    .metric {{ display: inline-block; margin: 10px 20px; padding: 15px; background: #f9f9f9; border-radius: 5px; }}
    .metric-value {{ font-size: 24px; font-weight: bold; color: #E6007A; }}
    .metric-label {{ color: #666; font-size: 14px; }}
    table {{ width: 100%; border-collapse: collapse; margin: 20px 0; }}
    th, td {{ padding: 10px; text-align: left; border-bottom: 1px solid #ddd; }}
    .alert {{ padding: 15px; margin: 10px 0; border-radius: 5px; }}
    .alert-warning {{ background: #fff3cd; border: 1px solid #ffeaa7; }}
    .alert-info {{ background: #d1ecf1; border: 1px solid #bee5eb; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Polkadot Inflation Analysis Report</h1>
    <p>Period end: {generated}</p>
    <p>{escape(summary["headline"])}</p>
    <h2>Summary</h2>
    <div class="metrics">{metrics_html}</div>
    {alerts_html}
    {recommendations_html}
    <h2>Top Sellers</h2>
    {sellers}
    <h2>Top Holders</h2>
    {holders}
    <h2>Exchange Breakdown</h2>
    {venues}
  </div>
</body>
</html>
"""
