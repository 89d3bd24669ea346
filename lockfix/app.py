from typing import Any, Dict, List, Optional, Set

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, Markdown, Tree

from lockfix.__version__ import __version__
from lockfix.core.model import AuditReport, DependencyNode

MAX_DEPTH = 8


class AdvisoryScreen(ModalScreen):
    """Modal listing the advisories that reach one package."""

    DEFAULT_CSS = """
    AdvisoryScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 85%;
        height: 85%;
        border: heavy $error;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $error;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
        overflow-y: auto;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, package_name: str, version: str, advisories: List[Dict[str, Any]]) -> None:
        super().__init__()
        self.pkg_name = package_name
        self.pkg_ver = version
        self.advisories = advisories

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[!] {escape(self.pkg_name)} v{escape(self.pkg_ver)}", id="title"),
            VerticalScroll(Markdown(build_advisory_markdown(self.advisories)), id="content-scroll"),
            Button("Close (Esc)", variant="error", id="close-btn"),
            id="dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


def build_advisory_markdown(advisories: List[Dict[str, Any]]) -> str:
    md_output = []

    for advisory in advisories:
        aid = advisory.get("id", "Unknown ID")
        title = advisory.get("title") or "Untitled advisory"
        severity = advisory.get("severity", "unknown")

        md_output.append(f"# (X) {title}\n")
        md_output.append(f"**Advisory {aid}** | severity: **{severity}**\n")
        if advisory.get("vulnerable_versions"):
            md_output.append(f"- Vulnerable: `{advisory['vulnerable_versions']}`")
        if advisory.get("patched_versions"):
            md_output.append(f"- Patched: `{advisory['patched_versions']}`\n")
        md_output.append(f"{advisory.get('overview', '_No overview provided._')}\n")
        if advisory.get("recommendation"):
            md_output.append(f"### Recommendation\n\n{advisory['recommendation']}\n")
        if advisory.get("url"):
            md_output.append(f"- **More info**: [{advisory['url']}]({advisory['url']})")

        md_output.append("\n---\n")

    if not md_output:
        return "No advisory data found."

    return "\n".join(md_output)


def node_label(node: DependencyNode, cycle: bool = False) -> str:
    safe_name = escape(node.name)
    safe_ver = escape(node.version)

    child_count = len(node.requires or ())
    count_suffix = f" [dim]↳[/] {child_count}" if child_count and not cycle else ""
    if cycle:
        safe_ver += " ⟳"
    dev_suffix = " [dim](dev)[/]" if node.dev else ""

    if node.vulnerable:
        safe_info = escape(node.vuln_summary)
        return f"[bold red](!) {safe_name}[/] [dim]{safe_ver}[/] [red]({safe_info})[/]{dev_suffix}{count_suffix}"
    if not node.version:
        return f"[blue](-) {safe_name}[/]{dev_suffix}{count_suffix}"
    return f"[green](•) {safe_name} [dim]{safe_ver}[/]{dev_suffix}{count_suffix}"


def has_vulnerable_descendant(node: DependencyNode, seen: Optional[Set[int]] = None) -> bool:
    seen = set() if seen is None else seen
    if id(node) in seen:
        return False
    seen.add(id(node))
    if node.vulnerable:
        return True
    return any(has_vulnerable_descendant(child, seen) for child in node.requires or ())


class ReportApp(App):
    """Browses the lockfile tree with the audited vulnerable packages flagged."""

    TITLE = "lockfix"
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
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("v", "toggle_filter", "Vuln Only"),
    ]

    show_only_vulnerable: bool = False

    def __init__(self, root: DependencyNode, report: AuditReport, total_pkgs: int = 0) -> None:
        super().__init__()
        self.root_node = root
        self.report = report
        self.total_pkgs = total_pkgs

    def compose(self) -> ComposeResult:
        counts = self.report.vulnerabilities
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label(f"[b]Project:[/b] [cyan]{escape(self.root_node.name)}[/]", classes="info-label")
            yield Label(f"[b]Packages:[/b] [blue]{self.total_pkgs}[/]", classes="info-label")
            yield Label(f"[b]Vulns:[/b] [red]{self.report.vulnerability_count()}[/]", classes="info-label")
            yield Label(
                f"[b]Critical/High:[/b] [red]{counts.get('critical', 0)}/{counts.get('high', 0)}[/]",
                classes="info-label",
            )
            yield Label(f"[b]Actions:[/b] [yellow]{len(self.report.actions)}[/]", classes="info-label")

        with Container(id="tree-container"):
            yield Tree("Root", id="dep-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.render_tree()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#dep-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#dep-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#dep-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#dep-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        node_data = event.node.data
        if node_data and node_data.vulnerable:
            self.push_screen(AdvisoryScreen(node_data.name, node_data.version, node_data.vuln_details))

    def action_toggle_filter(self) -> None:
        self.show_only_vulnerable = not self.show_only_vulnerable
        msg = "Showing vulnerable paths only." if self.show_only_vulnerable else "Showing all packages."
        self.notify(msg, severity="warning" if self.show_only_vulnerable else "information")
        self.render_tree()

    def render_tree(self) -> None:
        tree = self.query_one("#dep-tree")
        tree.clear()
        tree.root.data = self.root_node
        tree.root.label = f"📂 {escape(self.root_node.name)}"
        tree.root.expand()

        def add_nodes(tree_node, data_node, ancestors):
            if len(ancestors) > MAX_DEPTH:
                return
            for child in data_node.requires or ():
                if self.show_only_vulnerable and not has_vulnerable_descendant(child):
                    continue

                # Shared nodes may depend on an ancestor; stop at the back edge
                if id(child) in ancestors:
                    tree_node.add_leaf(node_label(child, cycle=True), data=child)
                    continue

                new_node = tree_node.add(node_label(child), expand=self.show_only_vulnerable, data=child)
                add_nodes(new_node, child, ancestors | {id(child)})

        add_nodes(tree.root, self.root_node, {id(self.root_node)})
        tree.focus()
