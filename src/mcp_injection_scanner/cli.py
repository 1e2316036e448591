from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console

from .analysis import Analyzer
from .config import DEFAULT_ANALYZER_URL, DEFAULT_SCAN_TIMEOUT, ScanConfig
from .errors import ConfigurationError, HandshakeError, ScanTimeoutError
from .log import configure_logging
from .models import ScanReport, ScanResult
from .report import render_json, render_text
from .scanner import Scanner


console = Console()


@click.group()
def main() -> None:
    """Scan MCP servers for prompt injections in tool, prompt and resource descriptions."""


@main.command("scan")
@click.option("--url", "--http-url", "url", required=True, help="URL of the MCP server exposed via HTTP")
@click.option("--timeout", type=float, default=DEFAULT_SCAN_TIMEOUT, show_default=True, help="Deadline in seconds for the whole scan")
@click.option("--analyzer-url", default=DEFAULT_ANALYZER_URL, show_default=True, help="Prompt-injection analysis endpoint")
@click.option("--no-analysis", is_flag=True, default=False, help="Only list tools, prompts and resources")
@click.option("--parallel", is_flag=True, default=False, help="List the three categories concurrently")
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text")
@click.option("--output", type=click.Path(dir_okay=False), help="Write report to file")
@click.option("--session-id", help="Pre-supplied session id to include in Mcp-Session-Id header")
@click.option("--fail-on-injection", is_flag=True, default=False, help="Exit 1 when any item is flagged")
@click.option("--verbose", is_flag=True, default=False, help="Debug logging of every request and response")
def scan_cmd(url: str, timeout: float, analyzer_url: str, no_analysis: bool, parallel: bool, fmt: str, output: Optional[str], session_id: Optional[str], fail_on_injection: bool, verbose: bool) -> None:
    configure_logging("DEBUG" if verbose else "INFO")
    try:
        config = ScanConfig.build(
            url=url,
            timeout=timeout,
            analyzer_url=analyzer_url,
            analysis_enabled=not no_analysis,
            parallel=parallel,
            session_id=session_id,
        )
    except ConfigurationError as e:
        raise click.ClickException(f"invalid configuration: {e}")

    reports: List[ScanReport] = []
    scanner = Scanner(on_result=lambda result: reports.append(build_report(result, config)))
    try:
        scanner.scan(config)
    except (HandshakeError, ScanTimeoutError, ConfigurationError) as e:
        raise click.ClickException(f"Error scanning MCP server: {e}")
    report = reports[0]

    if fmt == "json":
        out = render_json(report)
        if output:
            Path(output).write_text(out)
            console.print(f"Wrote JSON report to {output}")
        else:
            click.echo(out)
    else:
        if output:
            file_console = Console(record=True, width=160)
            with file_console.capture():
                render_text(report, file_console)
            Path(output).write_text(file_console.export_text())
            console.print(f"Wrote report to {output}")
        else:
            render_text(report, console)

    if fail_on_injection and any(a.flagged for a in report.analyses):
        console.print("[red]Scan flagged suspicious descriptions[/red]")
        sys.exit(1)


def build_report(result: ScanResult, config: ScanConfig) -> ScanReport:
    if not config.analysis_enabled or result.is_empty:
        return ScanReport(result=result)
    with Analyzer(config.analyzer_url) as analyzer:
        analyses = analyzer.analyze_all(result.all_items())
    return ScanReport(result=result, analyses=analyses)
