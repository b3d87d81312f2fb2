"""
Financial Report RAG CLI

Command-line interface for the Financial Report RAG system.
Provides commands for filing ingestion, retrieval, financial facts and
report generation.
"""

import asyncio
import json
import logging
from pathlib import Path

import click

from .core import FinancialReportRAG
from .exceptions import FinancialReportRAGError

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(package_name="financial-report-rag")
def cli():
    """Financial Report RAG - Filing-grounded financial analysis reports"""
    pass


@cli.command()
@click.argument('ticker')
@click.option('--lang',
              '-L',
              type=click.Choice(['en', 'zh'], case_sensitive=False),
              default='en',
              help='Report language')
@click.option('--model', '-m', help='Model to use (see `models`)')
@click.option('--stream',
              'stream_events',
              is_flag=True,
              help='Print every event as a JSON line')
@click.option('--output',
              '-o',
              type=click.Path(),
              help='Output file path for the report')
def analyze(ticker, lang, model, stream_events, output):
    """Generate a financial analysis report for TICKER"""

    if not stream_events:
        click.echo(f"📈 Analyzing {ticker.upper()} ({lang})...")

    system = FinancialReportRAG()
    try:
        terminal = asyncio.run(
            _run_analysis(system, ticker, lang, model, stream_events))
    finally:
        system.close()

    if terminal.event == "error":
        raise click.ClickException(terminal.data["message"])

    report = terminal.data.to_dict()
    metadata = report.get("metadata", {})

    if output:
        Path(output).write_text(json.dumps(report, indent=2,
                                           ensure_ascii=False),
                                encoding="utf-8")
        if not stream_events:
            click.echo(f"\n💾 Report saved to: {output}")

    if stream_events:
        return

    click.echo(f"\n✅ Report generated by {metadata.get('modelName')}"
               f" ({metadata.get('evidenceMode')})")
    if metadata.get('fallbackUsed'):
        click.echo("⚠️  Fallback model was used")
    for warning in metadata.get('warnings', [])[:5]:
        click.echo(f"  - {warning}")

    if not output:
        click.echo(json.dumps(report, indent=2, ensure_ascii=False))


async def _run_analysis(system, ticker, lang, model, stream_events):
    terminal = None
    async for event in system.analyze_stream(ticker, lang, model):
        if stream_events:
            click.echo(json.dumps(event.to_dict(), ensure_ascii=False))
        elif event.event == "progress":
            click.echo(f"⏳ {event.data['message']}")
        if event.is_terminal:
            terminal = event
    return terminal


@cli.command()
@click.argument('ticker')
def ingest(ticker):
    """Download and index the latest annual filing of TICKER"""

    click.echo(f"📄 Ingesting latest filing for {ticker.upper()}...")

    system = FinancialReportRAG()
    try:
        stored = asyncio.run(system.ingest_company(ticker))
    except FinancialReportRAGError as e:
        click.echo(f"❌ {e}")
        raise click.ClickException(str(e))
    finally:
        system.close()

    if stored:
        click.echo(f"✅ Stored {stored} passages")
    else:
        click.echo("✅ Company already indexed, nothing to do")


@cli.command()
@click.argument('ticker')
@click.argument('query')
@click.option('--limit',
              '-l',
              type=int,
              default=5,
              help='Number of results to return')
def search(ticker, query, limit):
    """Search the indexed filing of TICKER"""

    click.echo(f"🔍 Searching {ticker.upper()} for: {query}")

    system = FinancialReportRAG()
    try:
        results = asyncio.run(system.search(ticker, query, limit))
    finally:
        system.close()

    if not results:
        click.echo("No matching passages found.")
        return

    click.echo(f"\n📋 Results:")
    for i, result in enumerate(results, 1):
        click.echo(f"\n{i}. score {result.score:.3f}")
        click.echo(f"   {result.text[:300]}")


@cli.command()
@click.argument('ticker')
def facts(ticker):
    """Show the latest financial facts of TICKER"""

    system = FinancialReportRAG()
    try:
        result = system.get_financial_facts(ticker)
    finally:
        system.close()

    if result is None:
        raise click.ClickException(
            f"No financial data available for {ticker.upper()}")

    click.echo(f"📊 {result.company_name} ({result.ticker}) - {result.period}")
    click.echo(json.dumps(result.to_prompt_dict(), indent=2))


@cli.command()
@click.argument('ticker')
def history(ticker):
    """Show historical margins of TICKER"""

    system = FinancialReportRAG()
    try:
        points = system.get_historical_data(ticker)
    finally:
        system.close()

    if not points:
        click.echo(f"No historical data available for {ticker.upper()}")
        return

    click.echo(f"📅 Historical margins for {ticker.upper()}:")
    for point in points:
        click.echo(json.dumps(point.to_dict()))


@cli.command()
@click.argument('ticker')
def filing(ticker):
    """Preview the cleaned latest annual filing of TICKER"""

    system = FinancialReportRAG()
    try:
        preview = system.get_filing_preview(ticker)
    except FinancialReportRAGError as e:
        click.echo(f"❌ {e}")
        raise click.ClickException(str(e))
    finally:
        system.close()

    click.echo(preview)


@cli.command()
def models():
    """List the available models"""

    system = FinancialReportRAG()
    try:
        available = system.available_models()
        default = system.default_model
    finally:
        system.close()

    click.echo("🤖 Available models:")
    for name in available:
        marker = " (default)" if name == default else ""
        click.echo(f"  - {name}{marker}")


@cli.command()
def status():
    """Show system status"""

    click.echo("📊 Financial Report RAG System Status")

    system = FinancialReportRAG()
    try:
        stats = system.get_system_status()
    finally:
        system.close()

    if 'error' in stats:
        click.echo(f"⚠️  {stats['error']}")

    click.echo(f"\n🤖 Models: {', '.join(stats['models'])}")
    click.echo(f"Default model: {stats['default_model']}")
    click.echo(f"Facts provider: {stats['facts_provider']}")
    click.echo(f"Embedding provider: {stats['embedding_provider']}")

    companies = stats.get('indexed_companies', {})
    click.echo(f"\n🏢 Indexed companies: {len(companies)}")
    for company, count in sorted(companies.items()):
        click.echo(f"  {company}: {count} passages")


@cli.command()
def examples():
    """Show usage examples"""

    click.echo("📚 Financial Report RAG Usage Examples\n")

    examples = [
        ("Analyze a company", "financial-rag analyze AAPL"),
        ("Chinese report with a given model", "financial-rag analyze AAPL --lang zh --model gemini"),
        ("Stream events as JSON lines", "financial-rag analyze MSFT --stream"),
        ("Ingest a filing", "financial-rag ingest TSLA"),
        ("Search a filing", "financial-rag search AAPL 'revenue drivers'"),
        ("Show financial facts", "financial-rag facts AAPL"),
        ("Show historical margins", "financial-rag history AAPL"),
        ("Preview a filing", "financial-rag filing AAPL"),
        ("List models", "financial-rag models"),
        ("Check status", "financial-rag status"),
    ]

    for description, command in examples:
        click.echo(f"• {description}:")
        click.echo(f"  {command}\n")


if __name__ == '__main__':
    cli()
