import logging
from typing import Optional

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from vulnpath.__version__ import __version__
from vulnpath.core.loader import LoadError, load_report
from vulnpath.core.model import DependencyRecord, Report
from vulnpath.core.paths import path_severity

HIGH_SEVERITY = 7.0


def severity_color(score: float) -> str:
    if score >= 9.0:
        return "bold red"
    if score >= HIGH_SEVERITY:
        return "red"
    if score >= 4.0:
        return "yellow"
    return "green"


def format_details(record: DependencyRecord, exposure: int = 0) -> str:
    tags = ", ".join(record.type_labels) or "_none_"
    score = record.highest_cvss_score
    interval = record.release_interval_days

    lines = [
        f"- **Types**: {tags}",
        f"- **Highest CVSS score**: {score if score >= 0 else 'not vulnerable'}",
        f"- **Release interval**: {f'{interval} days' if interval >= 0 else 'unknown'}",
    ]
    if exposure:
        lines.append(f"- **Reached by**: {exposure} path(s)")
    return "\n".join(lines)


class DependencyScreen(ModalScreen):
    """Modal showing the classification of a single dependency."""

    DEFAULT_CSS = """
    DependencyScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 70%;
        height: 60%;
        border: heavy $primary;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $primary;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, name: str, record: DependencyRecord, exposure: int) -> None:
        super().__init__()
        self.dep_name = name
        self.record = record
        self.exposure = exposure

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"{escape(self.dep_name)}", id="title"),
            VerticalScroll(Markdown(format_details(self.record, self.exposure)), id="content-scroll"),
            Button("Close (Esc)", variant="primary", id="close-btn"),
            id="dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


class ReportApp(App):
    TITLE = "vulnpath"
    SUB_TITLE = f"v{__version__}"

    DEFAULT_CSS = """
    Screen { layout: vertical; }

    #info-bar {
        height: 3;
        dock: top;
        background: $surface;
        border-bottom: solid $primary;
        align: left middle;
        padding: 0 1;
    }

    .info-label {
        width: auto;
        height: 1;
        padding: 0 2;
        color: $text;
    }

    #tree-container {
        height: 1fr;
        border: none;
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }

    #loading-container { height: 100%; align: center middle; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("space", "toggle_node", "Toggle"),
        Binding("v", "toggle_filter", "High Only"),
    ]

    show_only_high: bool = False

    def __init__(self, report_path: str) -> None:
        super().__init__()
        self.report_path = report_path
        self.report: Optional[Report] = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label("[b]Paths:[/b] [blue]0[/]", id="lbl-paths", classes="info-label")
            yield Label("[b]Dependencies:[/b] [blue]0[/]", id="lbl-deps", classes="info-label")
            yield Label("[b]Vulnerable:[/b] [red]0[/]", id="lbl-vuln", classes="info-label")

        with Container(id="main-area"):
            with Container(id="loading-container"):
                yield LoadingIndicator()
                yield Label("Loading report...", id="status-label")

            with Container(id="tree-container"):
                yield Tree("Paths", id="path-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree-container").display = False
        self.load()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#path-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#path-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#path-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#path-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def action_toggle_node(self) -> None:
        tree = self.query_one("#path-tree")
        if tree.cursor_node:
            tree.cursor_node.toggle()

    def action_toggle_filter(self) -> None:
        self.show_only_high = not self.show_only_high
        msg = f"Showing paths with CVSS >= {HIGH_SEVERITY}." if self.show_only_high else "Showing all paths."
        self.notify(msg, severity="warning" if self.show_only_high else "information")
        if self.report:
            self.render_report(self.report)

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        name = event.node.data
        if not self.report or not isinstance(name, str):
            return
        record = self.report.dependencies.get(name)
        if record is None:
            self.notify(f"No classification for {name}.", severity="warning")
            return
        self.push_screen(DependencyScreen(name, record, self.report.vulnerability_exposure.get(name, 0)))

    # --- LOGIC ---

    def show_error(self, message: str) -> None:
        self.query_one("#status-label").update(f"[bold red]Fatal Error:[/]\n{escape(message)}")
        self.query_one("LoadingIndicator").display = False

    @work(thread=False)
    async def load(self) -> None:
        try:
            self.report = load_report(self.report_path)
        except LoadError as e:
            logging.exception("Failed to load report:")
            self.show_error(str(e))
            return
        self.render_report(self.report)

    def _dependency_label(self, name: str) -> str:
        record = self.report.dependencies.get(name)
        safe_name = escape(name)
        if record is None:
            return f"[dim]{safe_name}[/]"

        tags = f" [dim]({', '.join(record.type_labels)})[/]" if record.type_labels else ""
        if record.vulnerable:
            color = severity_color(record.highest_cvss_score)
            return f"[{color}](!) {safe_name}[/] [{color}]CVSS {record.highest_cvss_score}[/]{tags}"
        return f"(•) {safe_name}{tags}"

    def render_report(self, report: Report) -> None:
        vulnerable = [n for n, r in report.dependencies.items() if r.vulnerable]
        self.query_one("#lbl-paths", Label).update(f"[b]Paths:[/b] [blue]{len(report.paths)}[/]")
        self.query_one("#lbl-deps", Label).update(f"[b]Dependencies:[/b] [blue]{len(report.dependencies)}[/]")
        self.query_one("#lbl-vuln", Label).update(f"[b]Vulnerable:[/b] [red]{len(vulnerable)}[/]")

        tree = self.query_one("#path-tree")
        tree.clear()
        tree.root.label = f"📂 {escape(self.report_path)}"
        tree.root.expand()

        for path in report.paths:
            score = path_severity(path, report.dependencies)
            if self.show_only_high and score < HIGH_SEVERITY:
                continue

            color = severity_color(score)
            label = f"[{color}]{score:.1f}[/] {escape(' > '.join(path))}"
            path_node = tree.root.add(label, expand=False)
            for name in path:
                path_node.add_leaf(self._dependency_label(name), data=name)

        self.query_one("#loading-container").display = False
        self.query_one("#tree-container").display = True
        tree.focus()
