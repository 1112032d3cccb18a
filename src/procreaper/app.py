"""procreaper - Textual application."""

from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Input, Label

from procreaper.core import TaskReaper
from procreaper.logging import configure
from procreaper.models import KillResult, ProcessSnapshot

APP_TITLE = "procreaper"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_cpu_time(seconds: float) -> str:
    """Format CPU seconds as H:MM:SS.s"""
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours}:{minutes:02d}:{secs:04.1f}"


class PromptScreen(ModalScreen[str | None]):
    """Modal asking for one line of text. Dismisses with None on escape."""

    DEFAULT_CSS = """
    PromptScreen {
        align: center middle;
    }

    PromptScreen > Vertical {
        width: 70;
        height: auto;
        padding: 1 2;
        border: thick $primary;
        background: $surface;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, prompt: str, placeholder: str = "") -> None:
        super().__init__()
        self._prompt = prompt
        self._placeholder = placeholder

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(self._prompt),
            Input(placeholder=self._placeholder, id="prompt-input"),
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._rows: dict[int, ProcessSnapshot] = {}

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("Name", key="name", width=24)
        table.add_column("PID", key="pid", width=8)
        table.add_column("Memory", key="memory", width=8)
        table.add_column("Base", key="base", width=5)
        table.add_column("Priority", key="priority", width=13)
        table.add_column("User CPU", key="user", width=12)
        table.add_column("Kernel CPU", key="kernel", width=12)
        table.add_column("Total CPU", key="total", width=12)
        table.add_column("Paged sys", key="paged_system", width=9)
        table.add_column("Paged", key="paged", width=8)
        table.add_column("Private", key="private", width=8)

    @property
    def process_count(self) -> int:
        """Number of rows currently shown."""
        return len(self._rows)

    def update_processes(self, processes: list[ProcessSnapshot]) -> None:
        """Replace the table contents with a new snapshot collection."""
        table = self.query_one("#process-table", DataTable)
        cursor_row = table.cursor_row

        table.clear()
        self._rows = {}
        for proc in processes:
            self._rows[proc.pid] = proc
            table.add_row(
                proc.name[:24],
                str(proc.pid),
                format_bytes(proc.physical_memory),
                str(proc.base_priority),
                proc.priority_class.name.replace("_", " ").title(),
                format_cpu_time(proc.user_cpu_time),
                format_cpu_time(proc.privileged_cpu_time),
                format_cpu_time(proc.total_cpu_time),
                format_bytes(proc.paged_system_memory),
                format_bytes(proc.paged_memory),
                format_bytes(proc.private_memory),
                key=str(proc.pid),
            )

        if table.row_count:
            table.move_cursor(row=min(cursor_row, table.row_count - 1))

    def selected(self) -> ProcessSnapshot | None:
        """Snapshot under the cursor, if any."""
        table = self.query_one("#process-table", DataTable)
        if not table.row_count:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._rows.get(int(row_key.value))


class ProcReaperApp(App):
    """Main procreaper application."""

    TITLE = APP_TITLE
    SUB_TITLE = "Cleaning stopped"

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("k", "kill", "Kill"),
        ("s", "start_process", "Start process"),
        ("c", "toggle_cleaning", "Start/stop cleaning"),
    ]

    def __init__(self, reaper: TaskReaper | None = None) -> None:
        """Initialize the ProcReaperApp."""
        super().__init__()
        self._reaper = reaper or TaskReaper()
        self._update_queue: Queue[list[ProcessSnapshot] | KillResult | str] = Queue()

    @property
    def reaper(self) -> TaskReaper:
        """Engine the app drives."""
        return self._reaper

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Wire the reaper to the update queue and start it."""
        # Background threads only ever put into the queue
        self._reaper.subscribe_snapshots(self._update_queue.put)
        self._reaper.subscribe_results(self._update_queue.put)
        self._reaper.subscribe_warnings(self._update_queue.put)
        self._reaper.start()
        self._reaper.refresh()
        self._update_cleaning_status()
        self.call_after_refresh(self._check_for_updates)
        self.set_interval(self._reaper.config.tui.drain_interval, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain background updates and apply them on the UI thread."""
        snapshots = None
        while True:
            try:
                item = self._update_queue.get_nowait()
            except Empty:
                break

            if isinstance(item, KillResult):
                self._notify_kill(item)
            elif isinstance(item, str):
                self.notify(item, severity="warning")
            else:
                snapshots = item

        # Only the newest collection matters
        if snapshots is not None:
            self.query_one(ProcessTable).update_processes(snapshots)

        reading = self._reaper.usage.take()
        if reading is not None:
            self.title = reading.text

    def _notify_kill(self, result: KillResult) -> None:
        severity = "error" if result.reason else "information"
        self.notify(result.message, title=APP_TITLE, severity=severity)

    def _update_cleaning_status(self) -> None:
        config = self._reaper.scheduler.config
        if config is None:
            self.sub_title = "Cleaning stopped"
        else:
            self.sub_title = f"Cleaning every {config.interval_seconds}s"

    def action_refresh(self) -> None:
        """Rebuild the process list."""
        self._reaper.refresh()
        self._check_for_updates()

    def action_kill(self) -> None:
        """Kill the process under the cursor."""
        selected = self.query_one(ProcessTable).selected()
        if selected is None:
            return
        self._notify_kill(self._reaper.kill_selected(selected.name, selected.pid))
        self._check_for_updates()

    def action_start_process(self) -> None:
        """Ask for an executable path and launch it."""

        def start(path: str | None) -> None:
            if not path or not path.strip():
                return
            result = self._reaper.spawn(path)
            self.notify(result.message, severity="information" if result.ok else "error")
            self._check_for_updates()

        self.push_screen(PromptScreen("Enter process path", "/usr/bin/..."), start)

    def action_toggle_cleaning(self) -> None:
        """Stop cleaning, or ask for exclusions and start it."""
        if self._reaper.reclamation_enabled:
            self._reaper.set_reclamation(False)
            self._update_cleaning_status()
            return

        def enable(raw: str | None) -> None:
            if raw is None:
                return
            self._reaper.set_reclamation(True, exclusion_names_raw=raw)
            self._update_cleaning_status()

        self.push_screen(
            PromptScreen(
                "Enter names of the processes which won't be killed separated by semicolons",
                "name1;name2",
            ),
            enable,
        )

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._reaper.close()
        self.exit()


def run_app(reaper: TaskReaper | None = None) -> None:
    """Run the application until the user quits. Logs go to the log file."""
    reaper = reaper or TaskReaper()
    configure(reaper.config, source="tui")
    ProcReaperApp(reaper).run()
