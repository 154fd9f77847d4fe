"""Status bar component."""

import tkinter as tk
from tkinter import ttk


class StatusBar(ttk.Frame):
    """Status bar showing workflow state, item count and calibration."""

    def __init__(self, parent):
        super().__init__(parent, padding=5)
        self._build_ui()

    def _build_ui(self):
        self.status_var = tk.StringVar(value="Ready")
        ttk.Label(self, textvariable=self.status_var).pack(side='left', padx=(0, 10))

        self.items_var = tk.StringVar(value="Items: 0")
        ttk.Label(self, textvariable=self.items_var).pack(side='left', padx=(0, 10))

        ttk.Separator(self, orient='vertical').pack(side='left', fill='y', padx=5)

        self.scale_var = tk.StringVar(value="Scale: uncalibrated")
        ttk.Label(self, textvariable=self.scale_var).pack(side='left', padx=(0, 10))

        ttk.Separator(self, orient='vertical').pack(side='left', fill='y', padx=5)

        self.model_var = tk.StringVar(value="Model: --")
        ttk.Label(self, textvariable=self.model_var).pack(side='left')

    def set_status(self, status: str):
        self.status_var.set(status)

    def set_item_count(self, count: int):
        self.items_var.set(f"Items: {count}")

    def set_scale(self, pixels_per_mm):
        if pixels_per_mm is None:
            self.scale_var.set("Scale: uncalibrated")
        else:
            self.scale_var.set(f"Scale: {pixels_per_mm:.2f} px/mm")

    def set_model_info(self, model_name: str, latency_ms: int = None):
        """Show the model used for the last run and how long it took."""
        text = f"Model: {model_name}"
        if latency_ms is not None:
            text += f" ({latency_ms} ms)"
        self.model_var.set(text)
