from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import CATEGORY_ORDER, AnalysisResult, Category, ScanReport, RiskLevel

_TITLES = {
    Category.tools: "Tools",
    Category.prompts: "Prompts",
    Category.resources: "Resources",
}

_RISK_STYLE = {RiskLevel.high.value: "bold red", RiskLevel.medium.value: "yellow"}


def describe_analysis(analysis: Optional[AnalysisResult]) -> str:
    if analysis is None:
        return "[dim]not analyzed[/dim]"
    if analysis.error is not None:
        return f"[yellow]analysis error: {escape(analysis.error)}[/yellow]"
    lines = []
    det = analysis.detection
    if det is not None and det.is_injection:
        risk = escape(det.risk_level or RiskLevel.high.value)
        style = _RISK_STYLE.get(risk, "bold red")
        lines.append(f"[{style}]INJECTION DETECTED (confidence {det.confidence:.2f}) - {risk} RISK[/{style}]")
    elif det is not None:
        lines.append(f"[green]no injection (confidence {det.confidence:.2f})[/green]")
    code = analysis.code_detection
    if code is not None and code.is_code:
        detail = escape(" ".join(p for p in (code.reason, code.pattern) if p))
        lines.append(f"[bold red]BANNED CODE/SECRET DETECTED (confidence {code.confidence:.2f}) - {detail}[/bold red]")
    elif code is not None:
        lines.append(f"[green]no banned code (confidence {code.confidence:.2f})[/green]")
    return "\n".join(lines)


def render_text(report: ScanReport, console: Console) -> None:
    result = report.result
    console.rule(f"MCP injection scan: {result.target}")
    if result.server_info:
        info = result.server_info
        console.print(escape(f"Server: {info.get('name', '?')} {info.get('version', '')}"))

    for category in CATEGORY_ORDER:
        items = result.items(category)
        if not items:
            continue
        table = Table(title=_TITLES[category])
        table.add_column("#", justify="right")
        table.add_column("Name")
        if category is Category.resources:
            table.add_column("URI")
        table.add_column("Description")
        table.add_column("Analysis")
        analyses = report.category_analyses(category)
        for i, (item, analysis) in enumerate(zip(items, analyses), start=1):
            row = [str(i), escape(item.name)]
            if category is Category.resources:
                row.append(escape(item.uri or ""))
            row.extend([escape(item.description), describe_analysis(analysis)])
            table.add_row(*row)
        console.print(table)

    if result.is_empty:
        console.print("[red]No tools, prompts, or resources found.[/red]")
    for name, error in result.listing_errors.items():
        console.print(f"[yellow]Listing {name} failed: {escape(error)}[/yellow]")
    console.print(f"Summary: {report.summary}")


def render_json(report: ScanReport) -> str:
    return report.model_dump_json(indent=2)
