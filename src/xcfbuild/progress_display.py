"""Rich-based live progress display for directory builds.

Renders one line per scheme, updated as BuildEvents arrive:

    ReactiveCocoa-Mac   Done      ✓ 1 product  41.2s
    ReactiveCocoa-iOS   Building  ⠹ 0 products
    ReactiveCocoaTests  Skipped

Thread-safe: events may be delivered from any thread while the display
renders in the background.
"""

import threading
import time
from enum import Enum
from typing import Any, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .xcode.orchestrator import BuildEvent, BuildEventKind

# Braille spinner frames for schemes being built
_SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


class SchemeState(Enum):
    """Display state of one scheme."""

    WAITING = "waiting"
    BUILDING = "building"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


class _SchemeDisplayState:
    """Internal state for a single scheme's display line."""

    __slots__ = ("name", "project", "state", "products", "detail", "elapsed", "start_time")

    def __init__(self, name: str, project: str) -> None:
        self.name = name
        self.project = project
        self.state = SchemeState.WAITING
        self.products: list[str] = []
        self.detail: str = ""
        self.elapsed: float = 0.0
        self.start_time: Optional[float] = None

    def update_elapsed(self) -> None:
        if self.start_time is not None:
            self.elapsed = time.monotonic() - self.start_time


class BuildProgressDisplay:
    """Live table of schemes and their build state.

    Implements ProgressCallback, so it can be passed straight to
    build_in_directory().

    Args:
        console: Rich Console instance for rendering. If None, creates a new one.
        title: Header line, e.g. the directory being built.
        refresh_per_second: Display refresh rate.
    """

    def __init__(self, console: Optional[Console] = None, title: str = "", refresh_per_second: int = 10) -> None:
        self._console = console if console is not None else Console()
        self._title = title
        self._refresh_per_second = refresh_per_second
        self._states: dict[str, _SchemeDisplayState] = {}
        self._order: list[str] = []
        self._lock = threading.Lock()
        self._live: Optional[Live] = None

    def _state_for(self, scheme: str, project: str) -> _SchemeDisplayState:
        state = self._states.get(scheme)
        if state is None:
            state = _SchemeDisplayState(scheme, project)
            self._states[scheme] = state
            self._order.append(scheme)
        return state

    def on_event(self, event: BuildEvent) -> None:
        """Record a build event. Thread-safe."""
        with self._lock:
            state = self._state_for(event.scheme, str(event.project))

            if event.kind is BuildEventKind.SCHEME_SKIPPED:
                state.state = SchemeState.SKIPPED
            elif event.kind is BuildEventKind.SCHEME_STARTED:
                state.state = SchemeState.BUILDING
                state.start_time = time.monotonic()
            elif event.kind is BuildEventKind.PRODUCT_BUILT:
                if event.product is not None:
                    state.products.append(event.product.name)
            elif event.kind is BuildEventKind.SCHEME_FINISHED:
                state.state = SchemeState.DONE

            state.update_elapsed()
        self.update()

    def mark_failed(self, scheme: str, message: str) -> None:
        """Show a scheme as failed with the given message. Thread-safe."""
        with self._lock:
            state = self._state_for(scheme, "")
            state.state = SchemeState.FAILED
            state.detail = message.splitlines()[0] if message else ""
            state.update_elapsed()
        self.update()

    def start(self) -> None:
        """Start the live display."""
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=False,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display after a final render."""
        if self._live is not None:
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None

    def update(self) -> None:
        """Force a display refresh."""
        if self._live is not None:
            self._live.update(self._render_display())

    def _render_display(self) -> Group:
        header = Text(f"\n{self._title}\n", style="bold") if self._title else Text("")
        return Group(header, self._render_table(), self._render_footer())

    def _render_table(self) -> Table:
        table = Table(
            show_header=False,
            show_edge=False,
            show_lines=False,
            box=None,
            padding=(0, 1),
            expand=False,
        )
        table.add_column("Scheme", style="bold", no_wrap=True, min_width=24)
        table.add_column("State", no_wrap=True, min_width=10)
        table.add_column("Status", no_wrap=True, min_width=30)

        with self._lock:
            for name in self._order:
                state = self._states[name]
                table.add_row(self._format_name(state), self._format_state(state), self._format_status(state))

        return table

    def _render_footer(self) -> Text:
        with self._lock:
            total = len(self._states)
            counts = {kind: 0 for kind in SchemeState}
            for state in self._states.values():
                counts[state.state] += 1

        parts = [f"{total} schemes"]
        for kind in (SchemeState.BUILDING, SchemeState.DONE, SchemeState.SKIPPED, SchemeState.FAILED):
            if counts[kind]:
                parts.append(f"{counts[kind]} {kind.value}")
        return Text(f"\n  {', '.join(parts)}", style="dim")

    def _format_name(self, state: _SchemeDisplayState) -> Text:
        styles = {
            SchemeState.WAITING: "dim",
            SchemeState.BUILDING: "bold cyan",
            SchemeState.DONE: "green",
            SchemeState.SKIPPED: "dim",
            SchemeState.FAILED: "red",
        }
        return Text(state.name, style=styles[state.state])

    def _format_state(self, state: _SchemeDisplayState) -> Text:
        labels = {
            SchemeState.WAITING: ("Waiting", "dim"),
            SchemeState.BUILDING: ("Building", "blue"),
            SchemeState.DONE: ("Done", "green"),
            SchemeState.SKIPPED: ("Skipped", "dim"),
            SchemeState.FAILED: ("Failed", "red bold"),
        }
        label, style = labels[state.state]
        return Text(label, style=style)

    def _format_status(self, state: _SchemeDisplayState) -> Text:
        count = len(state.products)
        products = f"{count} product{'s' if count != 1 else ''}"

        if state.state is SchemeState.BUILDING:
            spinner = _SPINNER_FRAMES[int(time.monotonic() * 8) % len(_SPINNER_FRAMES)]
            return Text(f"{spinner} {products}", style="blue")
        if state.state is SchemeState.DONE:
            return Text(f"✓ {products}  {state.elapsed:.1f}s", style="green")
        if state.state is SchemeState.FAILED:
            return Text(f"✗ {state.detail or 'Error'}", style="red")
        return Text("")

    def get_snapshot(self) -> list[dict[str, Any]]:
        """Get a snapshot of current display states for testing.

        Returns:
            List of dicts with scheme display state information.
        """
        with self._lock:
            return [
                {
                    "scheme": state.name,
                    "project": state.project,
                    "state": state.state,
                    "products": list(state.products),
                    "detail": state.detail,
                    "elapsed": state.elapsed,
                }
                for state in (self._states[name] for name in self._order)
            ]

    def __enter__(self) -> "BuildProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
