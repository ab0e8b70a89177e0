"""
Knowledge Base Chat CLI - Main entry point.

Commands:
- config: Show effective settings
- ingest: Load text/CSV files and ingest them into the vector store
- ask: Answer a single question against the knowledge base
- chat: Interactive chat with an evaluation-mode toggle
- stats: Show vector store counts
- reset: Delete all vectors in the namespace
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from kb_chat.agents.completion import OpenAIChatCompletion
from kb_chat.config import Settings, get_settings, validate_api_key
from kb_chat.errors import KBChatError
from kb_chat.evaluation.questions import GeneratedQuestionProvider
from kb_chat.evaluation.state import EvaluationStateMachine
from kb_chat.models.knowledge import KnowledgeBase
from kb_chat.monitoring.logging import ComponentLogger
from kb_chat.monitoring.tracing import shutdown_tracing
from kb_chat.rag.config import RAGConfig
from kb_chat.rag.embeddings import HashingEmbeddingProvider, OpenAIEmbeddingProvider
from kb_chat.rag.ingest import IngestResult, KnowledgeIngester
from kb_chat.rag.loader import (
    build_knowledge_base,
    load_csv_file,
    load_text_file,
    summarize_knowledge_base,
)
from kb_chat.rag.retriever import ContextRetriever
from kb_chat.rag.vector_store import ChromaVectorStore
from kb_chat.services.assistant import KnowledgeAssistant
from kb_chat.services.session import ChatSession
from kb_chat.utils.logging import setup_logging

app = typer.Typer(
    name="kb-chat",
    help="Knowledge Base Chat - grounded Q&A and AI readiness evaluation",
    add_completion=False,
)

console = Console()
logger = logging.getLogger(__name__)


class Components:
    """Pipeline objects shared by the commands of one CLI invocation."""

    def __init__(self, settings: Settings, offline: bool = False, generated_questions: bool = False):
        self.settings = settings
        self.rag_config = RAGConfig.from_env()
        self.monitor = ComponentLogger()

        if offline:
            self.embedder = HashingEmbeddingProvider(settings.embedding_dimensions)
        else:
            self.embedder = OpenAIEmbeddingProvider(
                api_key=settings.openai_api_key,
                model=settings.embedding_model,
                dimensions=settings.embedding_dimensions,
                timeout=settings.request_timeout,
            )

        self.store = ChromaVectorStore(
            collection_name=settings.collection_name,
            path=settings.chroma_path,
        )
        self.store.connect()

        self.ingester = KnowledgeIngester(self.embedder, self.store, self.rag_config, self.monitor)
        self.retriever = ContextRetriever(self.embedder, self.store, self.rag_config, self.monitor)
        self.completion = OpenAIChatCompletion(
            api_key=settings.openai_api_key,
            timeout=settings.request_timeout,
        )

        question_provider = None
        if generated_questions:
            question_provider = GeneratedQuestionProvider(
                self.completion,
                model=settings.chat_model,
                context_lookup=self.retriever.get_context,
            )
        self.assistant = KnowledgeAssistant(
            self.retriever,
            self.completion,
            evaluator=EvaluationStateMachine(
                question_provider=question_provider,
                monitor=self.monitor,
            ),
            settings=settings,
            monitor=self.monitor,
        )


def _load_knowledge_base(text_file: Optional[Path], csv_file: Optional[Path]) -> KnowledgeBase:
    if text_file is None and csv_file is None:
        rprint("[red]Provide a text file, a --csv file, or both[/red]")
        raise typer.Exit(1)
    try:
        text_content = load_text_file(text_file) if text_file else None
        rows = load_csv_file(csv_file) if csv_file else None
    except FileNotFoundError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)
    return build_knowledge_base(text_content, rows)


def _build_components(offline: bool, generated_questions: bool = False) -> Components:
    settings = get_settings()
    if not offline:
        key_error = validate_api_key(settings.openai_api_key)
        if key_error:
            rprint(f"[red]{key_error}[/red]")
            rprint("Set KB_OPENAI_API_KEY or use --offline for local embeddings.")
            raise typer.Exit(1)
    try:
        return Components(settings, offline=offline, generated_questions=generated_questions)
    except KBChatError as e:
        rprint(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _ingest(components: Components, knowledge_base: KnowledgeBase) -> IngestResult:
    try:
        with console.status("Ingesting knowledge base..."):
            result = components.ingester.ingest(knowledge_base)
    except KBChatError as e:
        rprint(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _print_ingest_summary(knowledge_base, result)
    return result


def _print_ingest_summary(knowledge_base: KnowledgeBase, result: IngestResult) -> None:
    console.print(f"\n[dim]{summarize_knowledge_base(knowledge_base)}[/dim]")
    console.print("\n[bold]Ingestion Summary[/bold]")

    stats_table = Table(show_header=False)
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Count", style="green")

    stats_table.add_row("Total chunks", str(result.total_count))
    stats_table.add_row("Vectors upserted", str(result.success_count))
    stats_table.add_row("Failed batches", str(result.failed_batches))
    stats_table.add_row("Chunks replayed", str(result.retried_chunks))
    console.print(stats_table)

    if not result.complete:
        rprint(
            f"[yellow]Partial ingestion: {result.total_count - result.success_count} "
            f"chunks were not persisted[/yellow]"
        )


# Callback for global options
@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Knowledge Base Chat CLI."""
    load_dotenv()
    level = "DEBUG" if debug else ("INFO" if verbose else get_settings().log_level)
    setup_logging(level)
    ctx.call_on_close(shutdown_tracing)


@app.command()
def config():
    """Show current configuration."""
    settings = get_settings()
    rag_config = RAGConfig.from_env()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("OpenAI API key", settings.masked_api_key or "[red]not set[/red]")
    table.add_row("Chat model", settings.chat_model)
    table.add_row("Embedding model", settings.embedding_model)
    table.add_row("Embedding dimensions", str(settings.embedding_dimensions))
    table.add_row("Temperature", str(settings.temperature))
    table.add_row("Max tokens", str(settings.max_tokens))
    table.add_row("Chroma path", settings.chroma_path or "(in-memory)")
    table.add_row("Collection", settings.collection_name)
    table.add_row("Text chunk size", str(rag_config.text_chunk_size))
    table.add_row("Batch size", f"{rag_config.batch_size} (min {rag_config.min_batch_size})")
    table.add_row("Top K", str(rag_config.top_k))
    table.add_row("Max context length", str(rag_config.max_context_length))

    console.print(table)

    for error in rag_config.validate():
        rprint(f"[red]Config error:[/red] {error}")


@app.command()
def ingest(
    text_file: Optional[Path] = typer.Argument(None, help="Plain-text knowledge file"),
    csv_file: Optional[Path] = typer.Option(None, "--csv", help="CSV knowledge file"),
    offline: bool = typer.Option(False, "--offline", help="Use local hashing embeddings"),
):
    """Ingest text and/or CSV files into the vector store."""
    knowledge_base = _load_knowledge_base(text_file, csv_file)
    components = _build_components(offline)
    _ingest(components, knowledge_base)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    text_file: Optional[Path] = typer.Option(None, "--text", help="Plain-text knowledge file"),
    csv_file: Optional[Path] = typer.Option(None, "--csv", help="CSV knowledge file"),
    offline: bool = typer.Option(False, "--offline", help="Use local hashing embeddings"),
):
    """Answer one question against the knowledge base.

    Files given here are ingested first; otherwise the persisted collection is used.
    """
    components = _build_components(offline)
    session = ChatSession(api_key=components.settings.openai_api_key)

    if text_file or csv_file:
        knowledge_base = _load_knowledge_base(text_file, csv_file)
        _ingest(components, knowledge_base)
    else:
        knowledge_base = KnowledgeBase(is_loaded=components.store.stats()["total_vector_count"] > 0)
    session.set_knowledge_base(knowledge_base)

    with console.status("Thinking..."):
        reply = components.assistant.answer(session, question)
    console.print(reply)


@app.command()
def chat(
    text_file: Optional[Path] = typer.Option(None, "--text", help="Plain-text knowledge file"),
    csv_file: Optional[Path] = typer.Option(None, "--csv", help="CSV knowledge file"),
    offline: bool = typer.Option(False, "--offline", help="Use local hashing embeddings"),
    generated_questions: bool = typer.Option(
        False, "--generated-questions", help="Let the model tailor evaluation questions"
    ),
    evaluate: bool = typer.Option(False, "--evaluate", help="Start in evaluation mode"),
):
    """Interactive chat. Type /eval to toggle evaluation mode, /quit to exit."""
    components = _build_components(offline, generated_questions)
    session = ChatSession(api_key=components.settings.openai_api_key)

    if text_file or csv_file:
        knowledge_base = _load_knowledge_base(text_file, csv_file)
        _ingest(components, knowledge_base)
    else:
        knowledge_base = KnowledgeBase(is_loaded=components.store.stats()["total_vector_count"] > 0)
    session.set_knowledge_base(knowledge_base)
    session.toggle_evaluation_mode(evaluate)

    rprint("[bold]Knowledge Base Chat[/bold] - /eval toggles evaluation mode, /quit exits")
    while True:
        mode = "eval" if session.evaluation_mode else "chat"
        prompt = console.input(f"\n[bold cyan]{mode}>[/bold cyan] ").strip()
        if not prompt:
            continue
        if prompt in ("/quit", "/exit"):
            break
        if prompt == "/eval":
            enabled = session.toggle_evaluation_mode(not session.evaluation_mode)
            state = "on" if enabled else "off"
            rprint(f"[yellow]Evaluation mode {state}[/yellow]")
            continue

        with console.status("Thinking..."):
            reply = components.assistant.answer(session, prompt)
        console.print(reply)


@app.command()
def stats(
    offline: bool = typer.Option(True, "--offline/--online", help="Skip API key checks"),
):
    """Show vector store counts."""
    components = _build_components(offline)
    count = components.store.stats()["total_vector_count"]
    rprint(f"[bold]{components.settings.collection_name}[/bold]: {count} vectors")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete all vectors in the namespace."""
    components = _build_components(offline=True)
    if not yes:
        typer.confirm(
            f"Delete all vectors in {components.settings.collection_name}?", abort=True
        )
    try:
        components.store.delete_all()
    except KBChatError as e:
        rprint(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    rprint("[green]All vectors deleted[/green]")


if __name__ == "__main__":
    app()
