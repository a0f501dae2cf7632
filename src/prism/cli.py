"""CLI entry point for Prism."""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import load_config, DEFAULT_CONFIG
from .errors import PrismError

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--collection", "-C", "collection_id", default=None, help="Collection to work on")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, collection_id, verbose):
    """Prism - derive not-not insights from your document collections."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["collection_id"] = collection_id
    config = _get_config(ctx)
    _setup_logging("DEBUG" if verbose else config.get("log_level", "INFO"))


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _get_config(ctx) -> dict:
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _get_collection(ctx) -> str:
    return ctx.obj.get("collection_id") or _get_config(ctx).get("default_collection", "default")


def _get_store(ctx):
    if "store" not in ctx.obj:
        from .storage import get_document_store
        ctx.obj["store"] = get_document_store(_get_config(ctx))
    return ctx.obj["store"]


def _get_embedder(ctx):
    if "embedder" not in ctx.obj:
        from .embeddings.embedder import get_embedder
        ctx.obj["embedder"] = get_embedder(_get_config(ctx))
    return ctx.obj["embedder"]


def _get_generator(ctx):
    """Build the not-not generator. Raises ConfigError without an API key."""
    from .enrichment.extractor import PatternExtractor
    from .enrichment.llm import get_text_generator
    from .generation.orchestrator import NotNotGenerator

    config = _get_config(ctx)
    if "text_generator" not in ctx.obj:
        ctx.obj["text_generator"] = get_text_generator(config)
    extractor = PatternExtractor.from_config(ctx.obj["text_generator"], config)
    return NotNotGenerator.from_config(extractor, config)


def _print_candidates(title: str, records) -> None:
    table = Table(title=title)
    table.add_column("Title", style="cyan")
    table.add_column("Confidence", justify="right", style="green")
    table.add_column("Docs", justify="right")
    table.add_column("Algorithm", style="dim")
    for r in records:
        table.add_row(r.title, f"{r.confidence:.2f}", str(len(r.document_ids)), r.metadata.get("algorithm", ""))
    console.print(table)


@cli.command()
@click.option("--path", default=None, help="Custom data path")
@click.pass_context
def init(ctx, path):
    """Initialize the Prism data directory and configuration."""
    import yaml

    base = Path(path).expanduser().resolve() if path else Path("~/.prism").expanduser()
    console.print(f"[bold green]Initializing Prism at {base}[/]")

    for d in ["ingest", "chroma"]:
        (base / d).mkdir(parents=True, exist_ok=True)

    config_file = base / "config.yaml"
    if not config_file.exists():
        cfg = {k: v for k, v in DEFAULT_CONFIG.items()}
        cfg["data_path"] = str(base)
        cfg["ingest_path"] = str(base / "ingest")
        cfg["chroma_path"] = str(base / "chroma")
        header = (
            "# API keys (or set ANTHROPIC_API_KEY / OPENAI_API_KEY env vars)\n"
            "# anthropic_api_key: sk-ant-your-key-here\n"
            "# openai_api_key: sk-your-key-here\n\n"
            "# generation.mode: cluster (needs generation.min_documents embedded docs)\n"
            "#                  or document (each document analysed on its own)\n\n"
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ Prism initialized![/]")
    console.print(f"  Drop files in: {base / 'ingest'}")
    console.print("  Run: prism add")


@cli.command()
@click.argument("path", required=False)
@click.option("--generate/--no-generate", default=False, help="Generate not-nots for newly embedded documents")
@click.pass_context
def add(ctx, path, generate):
    """Add files from the ingest directory or a specific path to a collection."""
    from .generation.scheduler import GenerationScheduler
    from .ingest.processor import ingest_documents, process_directory, process_file

    config = _get_config(ctx)
    collection_id = _get_collection(ctx)
    target = Path(path) if path else Path(config["ingest_path"])

    if target.is_file():
        doc = process_file(target, collection_id)
        docs = [doc] if doc else []
    elif target.is_dir():
        docs = process_directory(target, collection_id)
    else:
        console.print(f"[red]Path not found: {target}[/]")
        return

    if not docs:
        console.print("[yellow]No files to process.[/]")
        return

    try:
        embedder = _get_embedder(ctx)
    except PrismError as e:
        console.print(f"[yellow]{e} Storing without embeddings.[/]")
        embedder = None

    store = _get_store(ctx)
    console.print(f"[blue]Adding {len(docs)} document(s) to '{collection_id}'...[/]")
    events = asyncio.run(ingest_documents(docs, store, embedder))
    console.print(f"[green]✓ Stored {len(docs)} document(s), embedded {len(events)}[/]")

    if generate and events:
        try:
            generator = _get_generator(ctx)
        except PrismError as e:
            console.print(f"[red]{e}[/]")
            return
        scheduler = GenerationScheduler(store, generator, supersede=config["generation"].get("supersede", True))
        for event in events:
            scheduler.publish(event)
        saved = asyncio.run(scheduler.drain())
        console.print(f"[green]✓ Saved {saved} not-not(s)[/]")


@cli.command()
@click.pass_context
def embed(ctx):
    """Embed documents in the collection that have no embedding yet."""
    from .embeddings.embedder import embed_document

    collection_id = _get_collection(ctx)
    store = _get_store(ctx)
    missing = [d for d in store.list_documents(collection_id) if not d.has_embedding]
    if not missing:
        console.print("[green]All documents are embedded.[/]")
        return

    try:
        embedder = _get_embedder(ctx)
    except PrismError as e:
        console.print(f"[red]{e}[/]")
        return

    async def _embed_all() -> int:
        count = 0
        for doc in missing:
            if await embed_document(doc, embedder):
                store.update_embedding(doc.id, doc.embedding)
                count += 1
        return count

    count = asyncio.run(_embed_all())
    console.print(f"[green]✓ Embedded {count}/{len(missing)} document(s)[/]")


@cli.command()
@click.argument("document_id")
@click.option("--n", "-n", default=5, help="Number of results")
@click.pass_context
def similar(ctx, document_id, n):
    """List the documents most similar to a document."""
    store = _get_store(ctx)
    doc = store.get_document(document_id)
    if doc is None or not doc.has_embedding:
        console.print(f"[red]No embedded document with ID {document_id}[/]")
        return

    results = [r for r in store.similar_documents(doc.collection_id, doc.embedding, n_results=n + 1) if r[0].id != doc.id]

    table = Table(title=f"Similar to '{doc.title}'")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Preview", max_width=60)
    for i, (other, score) in enumerate(results[:n], 1):
        table.add_row(str(i), other.title, f"{score:.3f}", other.text[:80].replace("\n", " "))
    console.print(table)


@cli.command()
@click.pass_context
def cluster(ctx):
    """Cluster the collection's embedded documents and show the groups."""
    from .clustering.cluster import run_clustering
    from .clustering.relationships import extract_relationships

    config = _get_config(ctx)
    store = _get_store(ctx)
    docs = store.list_documents(_get_collection(ctx))

    console.print("[blue]Running clustering...[/]")
    try:
        clusters = run_clustering(docs, config)
    except PrismError as e:
        console.print(f"[red]{e}[/]")
        return

    if not clusters:
        console.print("[yellow]No clusters met the minimum size.[/]")
        return

    console.print(f"[green]✓ Found {len(clusters)} cluster(s)[/]")
    for c in clusters:
        console.print(f"  Cluster {c.cluster_index}: {c.size} documents (coherence {c.average_similarity:.3f})")
        for d in c.documents:
            console.print(f"    → {d.title}")

    relationships = extract_relationships(clusters)
    console.print(f"\n[green]✓ Found {len(relationships)} relationship(s)[/]")
    titles = {d.id: d.title for d in docs}
    for r in relationships[:10]:
        console.print(f"  {titles.get(r.doc_a, r.doc_a)} ↔ {titles.get(r.doc_b, r.doc_b)} (score: {r.score:.3f})")


@cli.command()
@click.option("--force", is_flag=True, help="Run even if no documents were added since the last run")
@click.pass_context
def generate(ctx, force):
    """Generate not-nots for the whole collection."""
    from .generation.status import collection_status

    config = _get_config(ctx)
    gen_cfg = config["generation"]
    collection_id = _get_collection(ctx)
    store = _get_store(ctx)
    docs = store.list_documents(collection_id)

    status = collection_status(store, collection_id, gen_cfg.get("min_documents", 5))
    if not force and status.eligible and not status.generation_needed:
        console.print("[yellow]No new documents since the last generation. Use --force to run anyway.[/]")
        return

    try:
        generator = _get_generator(ctx)
        console.print(f"[blue]Generating not-nots for {len(docs)} document(s) ({generator.mode} mode)...[/]")
        candidates = asyncio.run(generator.generate_for_collection(docs))
        records = store.save_not_nots(collection_id, candidates, supersede=gen_cfg.get("supersede", True))
    except PrismError as e:
        console.print(f"[red]{e}[/]")
        return

    stats = generator.last_stats
    console.print(f"[green]✓ Generated {len(records)} not-not(s)[/] [dim]({stats.units_total} unit(s), {stats.units_failed} failed, {stats.units_malformed} malformed)[/]")
    if records:
        _print_candidates("Not-nots", records)


@cli.command("generate-doc")
@click.argument("document_id")
@click.pass_context
def generate_doc(ctx, document_id):
    """Generate not-nots for a single document."""
    config = _get_config(ctx)
    store = _get_store(ctx)
    doc = store.get_document(document_id)
    if doc is None:
        console.print(f"[red]Document not found: {document_id}[/]")
        return

    try:
        generator = _get_generator(ctx)
        candidates = asyncio.run(generator.generate_for_document(doc))
        records = store.save_not_nots(doc.collection_id, candidates, supersede=config["generation"].get("supersede", True))
    except Exception as e:
        console.print(f"[red]Failed to analyze '{doc.title}': {e}[/]")
        return

    console.print(f"[green]✓ Generated {len(records)} not-not(s) for '{doc.title}'[/]")
    if records:
        _print_candidates("Not-nots", records)


@cli.command()
@click.pass_context
def status(ctx):
    """Show whether the collection is eligible for, and needs, generation."""
    from .generation.status import collection_status

    config = _get_config(ctx)
    collection_id = _get_collection(ctx)
    store = _get_store(ctx)
    docs = store.list_documents(collection_id)
    s = collection_status(store, collection_id, config["generation"].get("min_documents", 5))

    console.print(f"\n[bold]📊 Collection '{collection_id}'[/]")
    console.print(f"  Documents: {s.document_count} ({sum(1 for d in docs if d.has_embedding)} embedded)")
    console.print(f"  Eligible: {'yes' if s.eligible else 'no'}")
    console.print(f"  Generation needed: {'yes' if s.generation_needed else 'no'}")
    console.print(f"  Last generation: {s.last_generation_at.isoformat() if s.last_generation_at else 'never'}")
    if s.last_generation_metadata:
        params = s.last_generation_metadata.get("generation_params", {})
        console.print(
            f"  Last run: {s.last_generation_metadata.get('algorithm', 'unknown')}"
            f" with {params.get('model', 'unknown')}"
        )


@cli.command("list")
@click.pass_context
def list_not_nots(ctx):
    """List the collection's not-nots."""
    store = _get_store(ctx)
    records = store.list_not_nots(_get_collection(ctx))
    if not records:
        console.print("[yellow]No not-nots yet. Run 'prism generate'.[/]")
        return

    for r in records:
        console.print(f"[bold cyan]{r.title}[/] [dim]({r.id}, {r.confidence:.2f})[/]")
        console.print(f"  {r.description}")


@cli.command()
@click.argument("not_not_id")
@click.pass_context
def delete(ctx, not_not_id):
    """Delete a not-not."""
    if _get_store(ctx).delete_not_not(not_not_id):
        console.print(f"[green]✓ Deleted {not_not_id}[/]")
    else:
        console.print(f"[red]Not-not not found: {not_not_id}[/]")


@cli.command()
@click.option("--generate/--no-generate", default=True, help="Generate not-nots for new documents (default: on)")
@click.option("--debounce", default=5.0, help="Seconds to wait after last change before processing")
@click.pass_context
def watch(ctx, generate, debounce):
    """Watch the ingest directory and add new files to the collection."""
    from .watcher import FileWatcher

    config = _get_config(ctx)
    generator = None
    if generate:
        try:
            generator = _get_generator(ctx)
        except PrismError as e:
            console.print(f"[yellow]{e} Watching without generation.[/]")

    try:
        embedder = _get_embedder(ctx)
    except PrismError as e:
        console.print(f"[red]{e}[/]")
        return

    watcher = FileWatcher(config, _get_collection(ctx), _get_store(ctx), embedder, generator=generator, debounce=debounce)
    watcher.run()


if __name__ == "__main__":
    cli()
