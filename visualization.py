"""
visualization.py - Telemetry Window for the Hover Cascade
Hover Cascade - Flight Control Stack

A small tkinter window showing:
- Attitude indicator (pitch / roll horizon)
- Heading indicator (yaw compass)
- Target and measured readouts for every axis
- Engine state

The window runs on its own thread and pulls TelemetryData snapshots from a
bounded queue at ~20Hz, so the control loop never blocks on drawing.
"""

import logging
import math
import queue
import threading
import tkinter as tk
from tkinter import ttk
from typing import List, Optional

from engine_state import EngineState
from telemetry import TelemetryData

logger = logging.getLogger(__name__)

BACKGROUND = "#1a1a2e"
REFRESH_MS = 50


class AttitudeIndicator(tk.Canvas):
    """Artificial horizon driven by pitch and roll (degrees)."""

    def __init__(self, parent, size: int = 160, **kwargs):
        super().__init__(
            parent, width=size, height=size, bg="black", highlightthickness=1, **kwargs
        )
        self.size = size
        self.center = size // 2
        self.pitch = 0.0
        self.roll = 0.0
        self._draw()

    def _draw(self):
        self.delete("all")
        c = self.center
        half = self.size  # long enough to cover the corners when banked

        roll_rad = math.radians(self.roll)
        offset = self.pitch * 2.0  # pixels per degree

        # Horizon endpoints, rotated by roll and shifted by pitch
        dx, dy = half * math.cos(roll_rad), half * math.sin(roll_rad)
        nx, ny = half * math.sin(roll_rad), half * math.cos(roll_rad)
        x1, y1 = c - dx, c + offset - dy
        x2, y2 = c + dx, c + offset + dy

        self.create_polygon(
            x1, y1, x2, y2, x2 - nx, y2 - ny, x1 - nx, y1 - ny, fill="#0066CC"
        )
        self.create_polygon(
            x1, y1, x2, y2, x2 + nx, y2 + ny, x1 + nx, y1 + ny, fill="#664400"
        )
        self.create_line(x1, y1, x2, y2, fill="white", width=2)

        # Fixed aircraft reference
        self.create_line(c - 30, c, c - 10, c, fill="yellow", width=3)
        self.create_line(c + 10, c, c + 30, c, fill="yellow", width=3)
        self.create_oval(c - 4, c - 4, c + 4, c + 4, outline="yellow", width=2)

        self.create_text(
            c,
            self.size - 10,
            text=f"P {self.pitch:+.1f}°  R {self.roll:+.1f}°",
            fill="white",
            font=("Consolas", 9),
        )

    def update_attitude(self, pitch: float, roll: float):
        """Update displayed attitude (degrees)."""
        self.pitch = max(-90.0, min(90.0, pitch))
        self.roll = max(-90.0, min(90.0, roll))
        self._draw()


class HeadingIndicator(tk.Canvas):
    """Compass showing yaw (degrees)."""

    def __init__(self, parent, size: int = 160, **kwargs):
        super().__init__(
            parent, width=size, height=size, bg="black", highlightthickness=1, **kwargs
        )
        self.size = size
        self.center = size // 2
        self.heading = 0.0
        self._draw()

    def _draw(self):
        self.delete("all")
        c = self.center
        radius = self.size // 2 - 15

        self.create_oval(c - radius, c - radius, c + radius, c + radius, outline="white", width=2)

        for label, angle in (("N", 0), ("E", 90), ("S", 180), ("W", 270)):
            a = math.radians(angle - self.heading)
            self.create_text(
                c + (radius - 12) * math.sin(a),
                c - (radius - 12) * math.cos(a),
                text=label,
                fill="red" if label == "N" else "white",
                font=("Arial", 10, "bold"),
            )

        for i in range(0, 360, 30):
            a = math.radians(i - self.heading)
            inner = radius - (10 if i % 90 == 0 else 5)
            self.create_line(
                c + inner * math.sin(a),
                c - inner * math.cos(a),
                c + radius * math.sin(a),
                c - radius * math.cos(a),
                fill="white",
            )

        self.create_polygon(
            c, c - 20, c - 8, c + 10, c, c + 5, c + 8, c + 10, fill="yellow", outline="white"
        )
        self.create_text(
            c, self.size - 8, text=f"HDG: {self.heading:.0f}°", fill="white", font=("Consolas", 9)
        )

    def update_heading(self, heading: float):
        """Update displayed heading (degrees, 0-360)."""
        self.heading = heading % 360
        self._draw()


class VisualizationGUI:
    """
    Telemetry window.

    The GUI runs in a separate thread and receives telemetry from the
    control loop through a thread-safe queue.
    """

    def __init__(self, title: str = "Hover Cascade"):
        self.title = title
        self.root: Optional[tk.Tk] = None

        self.telemetry_queue: queue.Queue = queue.Queue(maxsize=10)

        self.running = False
        self.gui_thread: Optional[threading.Thread] = None

        self.attitude_indicator: Optional[AttitudeIndicator] = None
        self.heading_indicator: Optional[HeadingIndicator] = None
        self.engine_label: Optional[ttk.Label] = None
        self.readout_labels: List[ttk.Label] = []

    def _create_gui(self):
        self.root = tk.Tk()
        self.root.title(self.title)
        self.root.configure(bg=BACKGROUND)

        style = ttk.Style()
        style.theme_use("clam")
        style.configure("TFrame", background=BACKGROUND)
        style.configure("TLabel", background=BACKGROUND, foreground="white")
        style.configure("Header.TLabel", font=("Arial", 12, "bold"))
        style.configure("Data.TLabel", font=("Consolas", 11))

        main_frame = ttk.Frame(self.root, padding=10)
        main_frame.pack(fill=tk.BOTH, expand=True)

        instruments = ttk.Frame(main_frame)
        instruments.pack(side=tk.LEFT, fill=tk.Y, padx=(0, 10))
        self.attitude_indicator = AttitudeIndicator(instruments)
        self.attitude_indicator.pack(pady=5)
        self.heading_indicator = HeadingIndicator(instruments)
        self.heading_indicator.pack(pady=5)

        readouts = ttk.Frame(main_frame)
        readouts.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        ttk.Label(readouts, text="TELEMETRY", style="Header.TLabel").pack(anchor=tk.W)

        self.engine_label = ttk.Label(readouts, text="ENGINE OFF", style="Header.TLabel")
        self.engine_label.pack(anchor=tk.W, pady=(5, 10))

        for line in TelemetryData().lines()[1:]:
            label = ttk.Label(readouts, text=line, style="Data.TLabel")
            label.pack(anchor=tk.W)
            self.readout_labels.append(label)

        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _apply(self, data: TelemetryData):
        if self.engine_label:
            on = data.engine_state is EngineState.ON
            self.engine_label.configure(
                text="ENGINE ON" if on else "ENGINE OFF",
                foreground="green" if on else "red",
            )
        for label, line in zip(self.readout_labels, data.lines()[1:]):
            label.configure(text=line)
        if self.attitude_indicator:
            self.attitude_indicator.update_attitude(data.pitch, data.roll)
        if self.heading_indicator:
            self.heading_indicator.update_heading(data.yaw)

    def _update_gui(self):
        """Drain the queue and redraw with the newest snapshot."""
        latest: Optional[TelemetryData] = None
        while True:
            try:
                latest = self.telemetry_queue.get_nowait()
            except queue.Empty:
                break
        if latest is not None:
            self._apply(latest)

        if self.running and self.root:
            self.root.after(REFRESH_MS, self._update_gui)

    def update_telemetry(self, data: TelemetryData):
        """
        Queue a telemetry snapshot (thread-safe).

        When the queue is full the oldest snapshot is dropped.
        """
        try:
            self.telemetry_queue.put_nowait(data)
        except queue.Full:
            try:
                self.telemetry_queue.get_nowait()
            except queue.Empty:
                pass
            self.telemetry_queue.put_nowait(data)

    def _on_close(self):
        self.running = False
        if self.root:
            self.root.quit()
            self.root.destroy()
            self.root = None

    def _run_gui(self):
        self._create_gui()
        if self.root:
            self.root.after(REFRESH_MS, self._update_gui)
            self.root.mainloop()

    def start(self):
        """Start the GUI in a separate thread."""
        self.running = True
        self.gui_thread = threading.Thread(target=self._run_gui, daemon=True)
        self.gui_thread.start()

    def stop(self):
        """Stop the GUI."""
        self.running = False
        if self.root:
            try:
                self.root.after(0, self._on_close)
            except (RuntimeError, tk.TclError) as exc:
                logger.debug("GUI already closed: %s", exc)

    def is_running(self) -> bool:
        return self.running
