"""Flight Deck - a TUI for ingesting a document and questioning it."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.message import Message
from textual.widgets import (
    Button,
    DataTable,
    DirectoryTree,
    Footer,
    Header,
    Input,
    Label,
    Log,
    Rule,
    Select,
    Static,
)

from citerag.config import Settings
from citerag.errors import CiteRagError
from citerag.grounding import GroundingStats, summarize_queries
from citerag.grounding.metrics import CITATIONS_TARGET, HALLUCINATION_TARGET
from citerag.models import QueryResult
from citerag.pipeline import RagPipeline
from citerag.utils import read_text_file


@dataclass
class DeckStats:
    """State shown in the stats panel."""

    status: str = "idle"
    document_id: str = ""
    filename: str = ""
    chunk_count: int = 0
    questions: int = 0
    last_faithfulness: float | None = None
    grounding: GroundingStats | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed(self) -> str:
        if not self.start_time:
            return "00:00"
        end = self.end_time or datetime.now()
        minutes, seconds = divmod(int((end - self.start_time).total_seconds()), 60)
        return f"{minutes:02d}:{seconds:02d}"


class StatsPanel(Static):
    """Document and query statistics."""

    def compose(self) -> ComposeResult:
        yield Static(id="stats-content")

    def on_mount(self) -> None:
        self.update_display(DeckStats())

    def update_display(self, stats: DeckStats) -> None:
        content = self.query_one("#stats-content", Static)
        status_color = {
            "idle": "dim",
            "loading": "yellow",
            "ingesting": "green",
            "answering": "green",
            "ready": "cyan",
            "error": "red",
        }.get(stats.status, "white")
        faith = (
            "[dim]--[/]"
            if stats.last_faithfulness is None
            else f"[yellow]{stats.last_faithfulness:.2f}[/]"
        )
        doc_id = stats.document_id[:8] or "--"
        g = stats.grounding
        if g is None:
            aggregate = "  [dim]no questions yet[/]"
        else:
            halluc = "green" if g.meets_hallucination_target else "yellow"
            cites = "green" if g.meets_citation_target else "yellow"
            aggregate = (
                f"  Avg faith     [cyan]{g.avg_faithfulness:.1%}[/]\n"
                f"  Halluc. rate  [{halluc}]{g.hallucination_rate:.1%}[/] [dim]< {HALLUCINATION_TARGET:.0%}[/]\n"
                f"  Advanced      [blue]{g.advanced_count}[/] [dim]({g.advanced_share:.0%})[/]\n"
                f"  Cites/answer  [{cites}]{g.avg_citations:.1f}[/] [dim]>= {CITATIONS_TARGET:g}[/]"
            )

        content.update(f"""[b]STATUS[/b]  [{status_color}]{stats.status.upper()}[/]

[b]TIME[/b]    {stats.elapsed}

[b]DOCUMENT[/b]
  Id          [cyan]{doc_id}[/]
  File        [blue]{stats.filename or '--'}[/]
  Chunks      [magenta]{stats.chunk_count:,}[/]

[b]GROUNDING[/b]
  Questions     [green]{stats.questions:,}[/]
  Faithfulness  {faith}
{aggregate}""")


class SourcesTable(DataTable):
    """Retrieved chunks for the last answer."""

    def on_mount(self) -> None:
        self.add_columns("Rank", "Score", "Section", "Text")
        self.cursor_type = "row"

    def show(self, result: QueryResult) -> None:
        self.clear()
        for rc in result.retrieved_chunks:
            section = rc.section_title
            if len(section) > 24:
                section = section[:21] + "..."
            text = rc.text[:60].replace("\n", " ")
            self.add_row(str(rc.rank), f"{rc.score:.4f}", section, text)


class FlightDeck(App):
    """The citerag Flight Deck - ingestion and question answering TUI."""

    # Messages for thread-safe communication
    class StatsUpdated(Message):
        def __init__(self, stats: DeckStats) -> None:
            self.stats = stats
            super().__init__()

    class LogMessage(Message):
        def __init__(self, message: str) -> None:
            self.message = message
            super().__init__()

    class Answered(Message):
        def __init__(self, result: QueryResult) -> None:
            self.result = result
            super().__init__()

    CSS = """
    Screen {
        background: $surface;
    }

    #main-container {
        layout: horizontal;
        height: 100%;
    }

    #left-panel {
        width: 38;
        background: $surface-darken-1;
        border-right: solid $primary-darken-2;
        padding: 1;
    }

    #center-panel {
        width: 1fr;
        padding: 1;
    }

    #right-panel {
        width: 30;
        background: $surface-darken-1;
        border-left: solid $primary-darken-2;
        padding: 1;
    }

    StatsPanel {
        height: auto;
        padding: 1;
        background: $surface-darken-2;
        border: round $primary;
        margin-bottom: 1;
    }

    .action-buttons {
        layout: horizontal;
        height: 3;
        margin-bottom: 1;
    }

    .action-buttons Button {
        margin-right: 1;
    }

    #answer {
        height: auto;
        min-height: 5;
        padding: 1;
        border: round $accent;
        margin-bottom: 1;
    }

    SourcesTable {
        height: 1fr;
        border: round $primary-darken-1;
    }

    #log-panel {
        height: 10;
        border: round $primary-darken-2;
        background: $surface-darken-2;
    }

    .section-title {
        text-style: bold;
        color: $text;
        margin-bottom: 1;
    }

    DirectoryTree {
        height: 100%;
        border: round $primary-darken-1;
        background: $surface-darken-2;
    }
    """

    BINDINGS = [
        Binding("i", "ingest", "Ingest", show=True),
        Binding("c", "clear", "Clear", show=True),
        Binding("q", "quit", "Quit", show=True),
    ]

    TITLE = "citerag Flight Deck"
    SUB_TITLE = "Grounded QA Console"

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.settings = settings or Settings.from_env()
        self.pipeline: RagPipeline | None = None
        self.stats = DeckStats()

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container(id="main-container"):
            with Vertical(id="left-panel"):
                yield Label("MISSION CONTROL", classes="section-title")
                yield StatsPanel()
                yield Label("Document Path")
                yield Input(placeholder="Enter a .txt or .md path...", id="source-input")
                with Horizontal(classes="action-buttons"):
                    yield Button("INGEST", id="ingest-btn", variant="success")
                    yield Button("Clear", id="clear-btn", variant="warning")
                yield Rule()
                yield Label("Question")
                yield Input(placeholder="Ask about the document...", id="question-input")
                yield Select(
                    [("advanced", "advanced"), ("basic", "basic")],
                    value=self.settings.prompt_mode,
                    allow_blank=False,
                    id="mode-select",
                )
                with Horizontal(classes="action-buttons"):
                    yield Button("ASK", id="ask-btn", variant="primary")

            with Vertical(id="center-panel"):
                yield Label("ANSWER", classes="section-title")
                yield Static("[dim]No question asked yet[/]", id="answer")
                yield Label("SOURCES", classes="section-title")
                yield SourcesTable(id="sources")
                yield Rule()
                yield Label("SYSTEM LOG", classes="section-title")
                yield Log(id="log-panel", highlight=True, auto_scroll=True)

            with Vertical(id="right-panel"):
                yield Label("FILE BROWSER", classes="section-title")
                yield DirectoryTree(Path.cwd(), id="dir-tree")

        yield Footer()

    def on_mount(self) -> None:
        self._log("Flight Deck initialized")
        self._log(f"Database: {self.settings.db_path}")
        self._log("Pick a text file and press INGEST, then ASK")

    def _log(self, message: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.query_one("#log-panel", Log).write_line(f"[{timestamp}] {message}")

    def _publish(self, **changes) -> None:
        """Update stats from a worker thread and notify the UI."""
        self.stats = replace(self.stats, **changes)
        self.post_message(self.StatsUpdated(self.stats))

    # Message handlers for thread-safe updates
    def on_flight_deck_stats_updated(self, event: StatsUpdated) -> None:
        self.query_one(StatsPanel).update_display(event.stats)

    def on_flight_deck_log_message(self, event: LogMessage) -> None:
        self._log(event.message)

    def on_flight_deck_answered(self, event: Answered) -> None:
        result = event.result
        label = "[yellow](extractive fallback)[/]\n" if result.used_fallback else ""
        self.query_one("#answer", Static).update(label + result.answer)
        self.query_one("#sources", SourcesTable).show(result)

    def on_directory_tree_file_selected(self, event: DirectoryTree.FileSelected) -> None:
        self.query_one("#source-input", Input).value = str(event.path)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "ingest-btn":
            self.action_ingest()
        elif event.button.id == "ask-btn":
            self.action_ask()
        elif event.button.id == "clear-btn":
            self.action_clear()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "question-input":
            self.action_ask()

    def action_clear(self) -> None:
        self.stats = DeckStats()
        self.query_one(StatsPanel).update_display(self.stats)
        self.query_one("#answer", Static).update("[dim]No question asked yet[/]")
        self.query_one("#sources", SourcesTable).clear()
        self.query_one("#log-panel", Log).clear()
        self._log("Cleared - ready for a new document")

    def action_ingest(self) -> None:
        source = self.query_one("#source-input", Input).value.strip()
        if not source:
            self._log("[red]ERROR: No document path specified[/]")
            return
        self.run_ingest(source)

    def action_ask(self) -> None:
        question = self.query_one("#question-input", Input).value.strip()
        if not self.stats.document_id or self.stats.status == "error":
            self._log("[red]ERROR: Ingest a document first[/]")
            return
        if not question:
            self._log("[red]ERROR: Question is empty[/]")
            return
        mode = str(self.query_one("#mode-select", Select).value)
        self.run_ask(self.stats.document_id, question, mode)

    def _ensure_pipeline(self) -> RagPipeline:
        if self.pipeline is None:
            self.post_message(self.LogMessage("Loading embedding model..."))
            self.pipeline = RagPipeline.from_settings(self.settings)
        return self.pipeline

    @work(exclusive=True, thread=True)
    def run_ingest(self, source: str) -> None:
        """Ingest a document in a background thread."""
        self._publish(status="loading", start_time=datetime.now(), end_time=None)
        try:
            text, filename = read_text_file(source)
            pipeline = self._ensure_pipeline()
            document_id = f"{Path(filename).stem}-{datetime.now():%Y%m%d%H%M%S}"
            self._publish(status="ingesting", document_id=document_id, filename=filename)
            self.post_message(self.LogMessage(f"Ingesting {filename} as {document_id}"))
            result = pipeline.process_document(document_id, text, filename)
        except CiteRagError as exc:
            self._publish(status="error", end_time=datetime.now())
            self.post_message(self.LogMessage(f"[red]ERROR: {exc}[/]"))
            return

        self._publish(
            status="ready",
            chunk_count=result["chunk_count"],
            questions=0,
            last_faithfulness=None,
            grounding=None,
            end_time=datetime.now(),
        )
        self.post_message(
            self.LogMessage(f"[cyan]COMPLETE: {result['chunk_count']} chunks[/]")
        )

    @work(exclusive=True, thread=True)
    def run_ask(self, document_id: str, question: str, mode: str) -> None:
        """Answer a question in a background thread."""
        self._publish(status="answering", start_time=datetime.now(), end_time=None)
        self.post_message(self.LogMessage(f"Asking ({mode}): {question}"))
        try:
            pipeline = self._ensure_pipeline()
            result = pipeline.answer_query(
                document_id, question, prompt_mode=mode, top_k=self.settings.top_k
            )
        except CiteRagError as exc:
            self._publish(status="ready", end_time=datetime.now())
            self.post_message(self.LogMessage(f"[red]ERROR: {exc}[/]"))
            return

        grounding = summarize_queries(pipeline.repository.list_queries(document_id))
        self._publish(
            status="ready",
            questions=grounding.query_count if grounding else self.stats.questions + 1,
            last_faithfulness=result.faithfulness_score,
            grounding=grounding,
            end_time=datetime.now(),
        )
        self.post_message(self.Answered(result))
        self.post_message(
            self.LogMessage(
                f"Citations: {', '.join(result.citations) or '-'}  "
                f"faithfulness {result.faithfulness_score:.2f}"
            )
        )


def main(settings: Settings | None = None) -> None:
    """Run the Flight Deck TUI."""
    app = FlightDeck(settings)
    app.run()


if __name__ == "__main__":
    main()
