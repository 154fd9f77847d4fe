"""Main application window."""

import tkinter as tk
from tkinter import ttk, messagebox, filedialog
import threading
import logging

from ..config.settings import Config, save_config
from ..core.constants import APP_NAME, SUPPORTED_IMAGE_FORMATS
from ..core.entities import AppState, ModelMode
from ..core.exceptions import ApplicationError, ImageLoadError
from ..services.export_service import export_csv
from ..services.segmentation_service import SegmentationService
from ..services.session import AnnotationSession
from .components.annotation_canvas import AnnotationCanvas
from .components.annotation_controller import AnnotationController
from .components.status_bar import StatusBar

logger = logging.getLogger(__name__)

_IMAGE_FILETYPES = [("Images", " ".join(f"*{ext}" for ext in SUPPORTED_IMAGE_FORMATS)), ("All files", "*.*")]

_STATE_MESSAGES = {
    AppState.SETUP: "Enter the batch item name to begin",
    AppState.IDLE: "Load a batch image and run the analysis",
    AppState.PROCESSING: "Analyzing batch...",
    AppState.REVIEW: "Click an item to inspect it",
    AppState.CALIBRATING: "Click the two ends of the reference object",
}


class MainWindow:
    """Main application window."""

    def __init__(self, root: tk.Tk, config: Config, config_path: str = "config.json"):
        self.root = root
        self.config = config
        self.config_path = config_path

        self.segmentation_service = SegmentationService(
            api_key=config.gemini_api_key,
            models={mode: config.model_name_for(mode) for mode in ModelMode},
            temperature=config.gemini_temperature,
            timeout=config.gemini_timeout,
        )

        controller = AnnotationController(
            on_error=self._show_canvas_error,
            container_width=config.container_width,
        )
        self.session = AnnotationSession(
            controller,
            reference_length_mm=config.reference_length_mm,
            model_mode=config.get_model_mode(),
        )
        self.session.on_change = self._refresh
        controller.set_display(show_masks=config.show_masks, show_boxes=config.show_boxes)

        self._setup_window()
        self._build_ui()

        if config.item_name:
            self.item_name_var.set(config.item_name)
        if not self.segmentation_service.get_connection_status()["has_api_key"]:
            self.status_bar.set_model_info("no API key (set GEMINI_API_KEY)")
        self._refresh()

    def _setup_window(self):
        self.root.title(APP_NAME)
        self.root.geometry("1200x820")
        self.root.grid_rowconfigure(1, weight=1)
        self.root.grid_columnconfigure(0, weight=1)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _build_ui(self):
        self._build_toolbar()
        self._build_workspace()
        self.status_bar = StatusBar(self.root)
        self.status_bar.grid(row=2, column=0, columnspan=2, sticky='ew')

    # ------------------------------------------------------------------ UI

    def _build_toolbar(self):
        bar = ttk.Frame(self.root, padding=(6, 6))
        bar.grid(row=0, column=0, columnspan=2, sticky='ew')

        ttk.Label(bar, text="Item:").pack(side='left')
        self.item_name_var = tk.StringVar()
        ttk.Entry(bar, textvariable=self.item_name_var, width=18).pack(side='left', padx=(2, 4))
        self.start_button = ttk.Button(bar, text="Start", command=self.start_workspace)
        self.start_button.pack(side='left', padx=(0, 8))

        self.load_batch_button = ttk.Button(bar, text="Load Batch...", command=self.load_batch_image)
        self.load_batch_button.pack(side='left', padx=2)
        self.load_sample_button = ttk.Button(bar, text="Load Sample...", command=self.load_sample_image)
        self.load_sample_button.pack(side='left', padx=2)

        self.mode_var = tk.StringVar(value=self.session.model_mode.value)
        ttk.Radiobutton(bar, text="Precision", value=ModelMode.PRECISION.value,
                        variable=self.mode_var, command=self._on_mode_change).pack(side='left', padx=(8, 0))
        ttk.Radiobutton(bar, text="Fast", value=ModelMode.FAST.value,
                        variable=self.mode_var, command=self._on_mode_change).pack(side='left')

        self.analyze_button = ttk.Button(bar, text="Analyze", command=self.analyze)
        self.analyze_button.pack(side='left', padx=8)

        ttk.Separator(bar, orient='vertical').pack(side='left', fill='y', padx=6)

        scene = self.session.controller.scene
        self.show_masks_var = tk.BooleanVar(value=scene.display.show_masks)
        self.show_boxes_var = tk.BooleanVar(value=scene.display.show_boxes)
        ttk.Checkbutton(bar, text="Masks", variable=self.show_masks_var,
                        command=self._on_display_change).pack(side='left')
        ttk.Checkbutton(bar, text="Boxes", variable=self.show_boxes_var,
                        command=self._on_display_change).pack(side='left')

        ttk.Separator(bar, orient='vertical').pack(side='left', fill='y', padx=6)

        ttk.Label(bar, text="Ref (mm):").pack(side='left')
        self.reference_var = tk.StringVar(value=f"{self.session.reference_length_mm:g}")
        ttk.Entry(bar, textvariable=self.reference_var, width=6).pack(side='left', padx=2)
        self.calibrate_button = ttk.Button(bar, text="Calibrate", command=self.toggle_calibration)
        self.calibrate_button.pack(side='left', padx=2)

        ttk.Separator(bar, orient='vertical').pack(side='left', fill='y', padx=6)

        self.edit_var = tk.BooleanVar(value=False)
        self.edit_button = ttk.Checkbutton(bar, text="Refine Segments", variable=self.edit_var,
                                           command=self._on_edit_toggle)
        self.edit_button.pack(side='left')
        self.clear_mask_button = ttk.Button(bar, text="Clear Mask", command=self.clear_mask)
        self.clear_mask_button.pack(side='left', padx=2)

        self.export_button = ttk.Button(bar, text="Export CSV", command=self.export_report)
        self.export_button.pack(side='right')

    def _build_workspace(self):
        canvas_frame = ttk.Frame(self.root)
        canvas_frame.grid(row=1, column=0, sticky='nsew', padx=(6, 3), pady=4)
        canvas_frame.grid_rowconfigure(0, weight=1)
        canvas_frame.grid_columnconfigure(0, weight=1)

        self.canvas = AnnotationCanvas(canvas_frame, controller=self.session.controller)
        self.canvas.grid(row=0, column=0, sticky='nsew')
        scrollbar = ttk.Scrollbar(canvas_frame, orient='vertical', command=self.canvas.yview)
        scrollbar.grid(row=0, column=1, sticky='ns')
        self.canvas.configure(yscrollcommand=scrollbar.set)

        detail = ttk.LabelFrame(self.root, text="Selected Item", padding=8)
        detail.grid(row=1, column=1, sticky='ns', padx=(3, 6), pady=4)
        self.detail_vars = {}
        for row, (key, label) in enumerate([
            ('index', "Item"), ('label', "Label"), ('confidence', "Confidence"),
            ('area', "Area (px)"), ('width', "Width (mm)"), ('height', "Height (mm)"),
            ('points', "Mask points"),
        ]):
            ttk.Label(detail, text=f"{label}:").grid(row=row, column=0, sticky='w', pady=1)
            var = tk.StringVar(value="--")
            ttk.Label(detail, textvariable=var, width=16).grid(row=row, column=1, sticky='w', pady=1)
            self.detail_vars[key] = var

        ttk.Separator(detail, orient='horizontal').grid(row=8, column=0, columnspan=2, sticky='ew', pady=8)
        self.summary_var = tk.StringVar(value="")
        ttk.Label(detail, textvariable=self.summary_var, justify='left').grid(
            row=9, column=0, columnspan=2, sticky='w')

    # ------------------------------------------------------------- actions

    def start_workspace(self):
        self.session.set_item_name(self.item_name_var.get())
        try:
            self.session.start_workspace()
        except ApplicationError as e:
            messagebox.showwarning(APP_NAME, str(e))

    def load_batch_image(self):
        path = filedialog.askopenfilename(title="Select batch image", filetypes=_IMAGE_FILETYPES)
        if path:
            self.session.load_batch_image(path)

    def load_sample_image(self):
        path = filedialog.askopenfilename(title="Select single-item sample image", filetypes=_IMAGE_FILETYPES)
        if not path:
            return
        try:
            self.session.load_sample_image(path)
            self.status_bar.set_status("Sample image loaded")
        except ImageLoadError as e:
            messagebox.showerror(APP_NAME, str(e))

    def analyze(self):
        self.session.set_item_name(self.item_name_var.get())
        try:
            self.session.begin_analysis()
        except ApplicationError as e:
            messagebox.showwarning(APP_NAME, str(e))
            return

        image = self.session.batch_image
        metadata = self.session.metadata
        mode = self.session.model_mode
        threading.Thread(target=self._analysis_worker, args=(image, metadata, mode), daemon=True).start()

    def _analysis_worker(self, image, metadata, mode):
        try:
            result = self.segmentation_service.analyze_items(image, metadata, mode)
        except ApplicationError as e:
            self.root.after(0, self._on_analysis_failed, str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error during analysis")
            self.root.after(0, self._on_analysis_failed, f"Unexpected error: {e}")
            return
        self.root.after(0, self._on_analysis_done, result)

    def _on_analysis_done(self, result):
        self.session.complete_analysis(result)
        if result.performance:
            self.status_bar.set_model_info(result.performance.model_name, result.performance.latency_ms)

    def _on_analysis_failed(self, message: str):
        self.session.fail_analysis(message)
        messagebox.showerror(APP_NAME, f"Analysis failed:\n{message}")

    def toggle_calibration(self):
        if self.session.controller.is_calibrating:
            self.session.cancel_calibration()
            return
        try:
            self.session.set_reference_length(float(self.reference_var.get()))
            self.session.start_calibration()
        except ValueError:
            messagebox.showwarning(APP_NAME, "Reference length must be a number")
        except ApplicationError as e:
            messagebox.showwarning(APP_NAME, str(e))

    def clear_mask(self):
        if not self.session.clear_selected_mask():
            self.status_bar.set_status("Select an item first")

    def export_report(self):
        result = self.session.result
        if result is None:
            messagebox.showinfo(APP_NAME, "Run an analysis before exporting")
            return
        try:
            path = export_csv(result, self.session.metadata.name, self.config.results_export_dir)
        except ApplicationError as e:
            messagebox.showerror(APP_NAME, str(e))
            return
        self.status_bar.set_status(f"Report saved to {path}")

    def _on_mode_change(self):
        self.session.model_mode = ModelMode(self.mode_var.get())

    def _on_display_change(self):
        self.session.controller.set_display(show_masks=self.show_masks_var.get(),
                                            show_boxes=self.show_boxes_var.get())

    def _on_edit_toggle(self):
        self.session.set_edit_mode(self.edit_var.get())

    def _show_canvas_error(self, message: str):
        messagebox.showerror(APP_NAME, message)

    # ------------------------------------------------------------ refresh

    def _refresh(self):
        session = self.session
        state = session.state
        working = state is not AppState.SETUP
        busy = state is AppState.PROCESSING

        def enable(widget, flag):
            widget.state(['!disabled'] if flag else ['disabled'])

        enable(self.start_button, not working)
        enable(self.load_batch_button, working and not busy)
        enable(self.load_sample_button, not busy)
        enable(self.analyze_button, working and session.has_image and not busy)
        enable(self.calibrate_button, session.has_image and not busy)
        enable(self.edit_button, session.result is not None and not busy)
        enable(self.clear_mask_button, session.selected_item() is not None and not busy)
        enable(self.export_button, session.result is not None and not busy)
        self.calibrate_button.configure(text="Cancel" if state is AppState.CALIBRATING else "Calibrate")

        self.status_bar.set_status(session.last_error or _STATE_MESSAGES[state])
        self.status_bar.set_item_count(len(session.controller.items))
        self.status_bar.set_scale(session.pixels_per_mm)
        self._refresh_details()

    def _refresh_details(self):
        item = self.session.selected_item()
        if item is None:
            for var in self.detail_vars.values():
                var.set("--")
        else:
            values = {
                'index': f"#{self.session.selected_item_index() + 1}",
                'label': item.label or self.session.metadata.name,
                'confidence': f"{item.confidence:.1%}",
                'area': f"{item.area_px:.0f}",
                'width': "--" if item.width_mm is None else f"{item.width_mm:.2f}",
                'height': "--" if item.height_mm is None else f"{item.height_mm:.2f}",
                'points': str(len(item.mask)),
            }
            for key, value in values.items():
                self.detail_vars[key].set(value)

        result = self.session.result
        if result is None:
            self.summary_var.set("")
        else:
            summary = result.summary
            self.summary_var.set(
                f"Total items: {summary.total_count}\n"
                f"Mean confidence: {summary.average_confidence:.1%}\n"
                f"Total area: {summary.total_area_px:.0f} px"
            )

    def _on_close(self):
        self.config.item_name = self.session.metadata.name
        self.config.model_mode = self.session.model_mode.value
        display = self.session.controller.scene.display
        self.config.show_masks = display.show_masks
        self.config.show_boxes = display.show_boxes
        self.config.reference_length_mm = self.session.reference_length_mm
        save_config(self.config, self.config_path)
        self.root.destroy()
