"""Tkinter based desktop application for the sales pipeline dashboard."""
from __future__ import annotations

import logging
import os
import queue
import tkinter as tk
from concurrent.futures import Future
from pathlib import Path
from tkinter import filedialog, messagebox, ttk
from typing import Callable, Dict, List, Optional

from ..config import CONFIG_ENV_VAR, ConfigurationError, load_settings
from ..daterange import DateRange
from ..data import LeadDataService, OperationResult
from ..exporters import export_leads, export_report
from ..factory import build_service, build_staff_directory
from ..metrics import compute_metrics, filter_leads
from ..models import Lead, LeadOrigin, Qualification
from ..staff import StaffDirectory
from ..stores.memory import InMemoryLeadStore
from .logic import (
    DASHBOARD_PREVIEW_ROWS,
    DETAIL_FIELDS,
    LEAD_TABLE_COLUMNS,
    LEAD_TABLE_HEADINGS,
    RANGE_CHOICES,
    field_display_value,
    filter_preview,
    lead_row,
    parse_field_value,
    parse_intake_form,
    report_lines,
    summary_cards,
)

LOGGER = logging.getLogger(__name__)

_RANGES: Dict[str, DateRange] = dict(RANGE_CHOICES)


def _build_lead_tree(parent: tk.Misc, *, height: int = 12) -> ttk.Treeview:
    tree = ttk.Treeview(parent, columns=LEAD_TABLE_COLUMNS, show="headings", height=height)
    for column, heading in zip(LEAD_TABLE_COLUMNS, LEAD_TABLE_HEADINGS):
        tree.heading(column, text=heading)
        tree.column(column, anchor="w", width=260 if column == "lead" else 90)
    tree.tag_configure("closed", background="#E8F5E9")
    return tree


def _fill_lead_tree(tree: ttk.Treeview, leads: List[Lead]) -> None:
    tree.delete(*tree.get_children())
    for lead in leads:
        tags = ("closed",) if lead.bought else ()
        tree.insert("", "end", iid=lead.id, values=lead_row(lead), tags=tags)


class IntakeDialog(tk.Toplevel):
    """Modal form used to register a new lead."""

    TEXT_FIELDS = (
        ("name", "Full name *"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("country", "Country"),
        ("call_date", "Call date (YYYY-MM-DD)"),
        ("value", "Estimated value"),
        ("website", "Website"),
        ("decision_maker", "Decision maker"),
        ("main_problem", "Main problem"),
        ("notes", "Notes"),
    )

    def __init__(self, master: tk.Misc, on_submit: Callable[[Dict[str, object]], None]) -> None:
        super().__init__(master)
        self.title("New lead")
        self.transient(master)
        self._on_submit = on_submit
        self.variables: Dict[str, tk.StringVar] = {}

        frame = ttk.Frame(self, padding=12)
        frame.pack(fill="both", expand=True)
        frame.columnconfigure(1, weight=1)

        row = 0
        for key, label in self.TEXT_FIELDS:
            ttk.Label(frame, text=label).grid(row=row, column=0, sticky="w", padx=4, pady=3)
            variable = tk.StringVar()
            ttk.Entry(frame, textvariable=variable, width=36).grid(row=row, column=1, sticky="ew", padx=4, pady=3)
            self.variables[key] = variable
            row += 1

        for key, label, choices, default in (
            ("qualification", "Qualification", [item.value for item in Qualification], Qualification.LEVEL1.value),
            ("origin", "Origin", [item.value for item in LeadOrigin], LeadOrigin.TIKTOK.value),
        ):
            ttk.Label(frame, text=label).grid(row=row, column=0, sticky="w", padx=4, pady=3)
            variable = tk.StringVar(value=default)
            ttk.Combobox(frame, textvariable=variable, values=choices, state="readonly").grid(
                row=row, column=1, sticky="ew", padx=4, pady=3
            )
            self.variables[key] = variable
            row += 1

        buttons = ttk.Frame(frame)
        buttons.grid(row=row, column=0, columnspan=2, sticky="e", pady=(8, 0))
        ttk.Button(buttons, text="Cancel", command=self.destroy).pack(side="left", padx=(0, 4))
        ttk.Button(buttons, text="Create", command=self.submit).pack(side="left")

    def submit(self) -> None:
        try:
            draft = parse_intake_form({key: variable.get() for key, variable in self.variables.items()})
        except ValueError as exc:
            messagebox.showwarning("Invalid lead", str(exc), parent=self)
            return
        self._on_submit(draft)
        self.destroy()


class LeadDetailDialog(tk.Toplevel):
    """Editable view of a single lead with the advisory actions."""

    def __init__(self, master: tk.Misc, app: "DashboardApp", lead: Lead) -> None:
        super().__init__(master)
        self.app = app
        self.lead_id = lead.id
        self.title(lead.name)
        self.transient(master)
        self.protocol("WM_DELETE_WINDOW", self.close)
        self.variables: Dict[str, tk.Variable] = {}

        container = ttk.Frame(self, padding=12)
        container.pack(fill="both", expand=True)
        container.columnconfigure(1, weight=1)
        container.columnconfigure(3, weight=1)

        header = " · ".join(filter(None, [lead.name, lead.email, lead.country]))
        ttk.Label(container, text=header, font=("TkDefaultFont", 11, "bold")).grid(
            row=0, column=0, columnspan=4, sticky="w", pady=(0, 8)
        )

        for index, spec in enumerate(DETAIL_FIELDS):
            row, column = 1 + index // 2, (index % 2) * 2
            ttk.Label(container, text=spec.label).grid(row=row, column=column, sticky="w", padx=4, pady=2)
            if spec.kind == "bool":
                variable: tk.Variable = tk.BooleanVar()
                widget: tk.Widget = ttk.Checkbutton(container, variable=variable)
            elif spec.kind == "choice":
                variable = tk.StringVar()
                widget = ttk.Combobox(container, textvariable=variable, values=("",) + spec.choices, state="readonly")
            else:
                variable = tk.StringVar()
                widget = ttk.Entry(container, textvariable=variable)
            widget.grid(row=row, column=column + 1, sticky="ew", padx=4, pady=2)
            self.variables[spec.name] = variable

        next_row = 2 + len(DETAIL_FIELDS) // 2
        actions = ttk.Frame(container)
        actions.grid(row=next_row, column=0, columnspan=4, sticky="ew", pady=(8, 4))
        ttk.Button(actions, text="Save", command=self.save).pack(side="left", padx=(0, 4))
        ttk.Button(actions, text="Analyse chat screenshot", command=self.analyse_chat).pack(side="left", padx=(0, 4))
        ttk.Button(actions, text="Closing strategy", command=self.strategy).pack(side="left", padx=(0, 4))
        ttk.Button(actions, text="Summary", command=self.summary).pack(side="left", padx=(0, 4))
        ttk.Button(actions, text="Delete", command=self.delete).pack(side="right")

        self.advice_text = tk.Text(container, height=10, wrap="word")
        self.advice_text.grid(row=next_row + 1, column=0, columnspan=4, sticky="nsew", padx=4, pady=4)
        container.rowconfigure(next_row + 1, weight=1)

        self.load(lead)

    def load(self, lead: Lead) -> None:
        for spec in DETAIL_FIELDS:
            self.variables[spec.name].set(field_display_value(lead, spec))
        self.show_text(lead.chat_analysis or "")

    def show_text(self, text: str) -> None:
        self.advice_text.delete("1.0", "end")
        self.advice_text.insert("1.0", text)

    def save(self) -> None:
        lead = self.app.service.get(self.lead_id)
        if lead is None:
            self.close()
            return
        changes: Dict[str, object] = {}
        try:
            for spec in DETAIL_FIELDS:
                value = parse_field_value(spec, self.variables[spec.name].get())
                if value != parse_field_value(spec, field_display_value(lead, spec)):
                    changes[spec.name] = value
        except ValueError as exc:
            messagebox.showwarning("Invalid value", str(exc), parent=self)
            return
        if not changes:
            return
        self.app.track("Update", self.app.service.update_fields(self.lead_id, changes))

    def analyse_chat(self) -> None:
        path = filedialog.askopenfilename(
            parent=self, filetypes=[("Images", "*.png *.jpg *.jpeg *.webp"), ("All files", "*.*")]
        )
        if not path:
            return
        self.show_text("Analysing screenshot...")
        self._advise(lambda: self.app.service.request_chat_analysis(self.lead_id, Path(path).read_bytes()))

    def strategy(self) -> None:
        self.show_text("Generating strategy...")
        self._advise(lambda: self.app.service.request_strategy(self.lead_id))

    def summary(self) -> None:
        self.show_text("Summarising...")
        self._advise(lambda: self.app.service.request_summary(self.lead_id))

    def _advise(self, start: Callable[[], "Future[str]"]) -> None:
        try:
            future = start()
        except (RuntimeError, KeyError) as exc:
            self.show_text(str(exc))
            return
        future.add_done_callback(lambda done: self.app.event_queue.put(("advice", self.lead_id, done)))

    def delete(self) -> None:
        if not messagebox.askyesno("Delete lead", "Delete this lead permanently?", parent=self):
            return
        self.app.track("Delete", self.app.service.delete(self.lead_id))

    def close(self) -> None:
        self.app.service.close_detail()


class DashboardApp:
    """Main application window."""

    def __init__(self, root: tk.Tk, service: Optional[LeadDataService] = None, staff: Optional[StaffDirectory] = None) -> None:
        self.root = root
        self.root.title("Sales Pipeline")
        self.root.geometry("1180x760")
        self.root.minsize(960, 640)

        self.event_queue: "queue.Queue[tuple]" = queue.Queue()
        self.staff = staff
        self.service = service or self._build_service()
        if self.staff is None:
            self.staff = StaffDirectory()
        self._unsubscribe = self.service.subscribe(lambda event: self.event_queue.put(("service", event)))
        self.intake_dialog: Optional[IntakeDialog] = None
        self.detail_dialog: Optional[LeadDetailDialog] = None

        self.search_var = tk.StringVar()
        self.search_var.trace_add("write", lambda *_: self.refresh())
        self.range_var = tk.StringVar(value="Month")
        self.report_range_var = tk.StringVar(value="Month")
        self.status_var = tk.StringVar(value="Idle")
        self.card_vars: List[tk.StringVar] = []

        self._build_layout()
        self.root.protocol("WM_DELETE_WINDOW", self.on_close)
        self.root.after(100, self._poll_queue)
        self.track("Fetch", self.service.fetch_all())

    # ------------------------------------------------------------------
    def _build_layout(self) -> None:
        container = ttk.Frame(self.root, padding=12)
        container.pack(fill="both", expand=True)
        container.columnconfigure(0, weight=1)
        container.rowconfigure(1, weight=1)

        toolbar = ttk.Frame(container)
        toolbar.grid(row=0, column=0, sticky="ew")
        toolbar.columnconfigure(1, weight=1)
        ttk.Label(toolbar, text="Search").grid(row=0, column=0, padx=(0, 8))
        ttk.Entry(toolbar, textvariable=self.search_var).grid(row=0, column=1, sticky="ew")
        range_box = ttk.Combobox(toolbar, textvariable=self.range_var, values=list(_RANGES), state="readonly", width=8)
        range_box.grid(row=0, column=2, padx=8)
        range_box.bind("<<ComboboxSelected>>", lambda _event: self.refresh())
        ttk.Button(toolbar, text="New lead", command=self.service.open_intake).grid(row=0, column=3, padx=(0, 4))
        ttk.Button(toolbar, text="Refresh", command=self.reload).grid(row=0, column=4, padx=(0, 4))
        ttk.Button(toolbar, text="Export", command=self.export).grid(row=0, column=5)

        notebook = ttk.Notebook(container)
        notebook.grid(row=1, column=0, sticky="nsew", pady=(12, 0))
        self._build_dashboard_tab(notebook)
        self._build_leads_tab(notebook)
        self._build_reports_tab(notebook)

        status = ttk.Frame(container)
        status.grid(row=2, column=0, sticky="ew", pady=(8, 0))
        status.columnconfigure(0, weight=1)
        ttk.Label(status, textvariable=self.status_var).grid(row=0, column=0, sticky="w")
        ttk.Button(status, text="Dismiss", command=self.service.clear_error).grid(row=0, column=1)

    def _build_dashboard_tab(self, notebook: ttk.Notebook) -> None:
        frame = ttk.Frame(notebook, padding=8)
        notebook.add(frame, text="Dashboard")
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(1, weight=1)

        cards = ttk.Frame(frame)
        cards.grid(row=0, column=0, sticky="ew")
        for index in range(4):
            cards.columnconfigure(index, weight=1)
            variable = tk.StringVar()
            card = ttk.LabelFrame(cards, text="")
            card.grid(row=0, column=index, sticky="ew", padx=4)
            ttk.Label(card, textvariable=variable, font=("TkDefaultFont", 14, "bold")).pack(padx=8, pady=8)
            self.card_vars.append(variable)
        self.card_frames = list(cards.winfo_children())

        agenda = ttk.LabelFrame(frame, text=f"Agenda (latest {DASHBOARD_PREVIEW_ROWS})")
        agenda.grid(row=1, column=0, sticky="nsew", pady=(12, 0))
        agenda.columnconfigure(0, weight=1)
        agenda.rowconfigure(0, weight=1)
        self.preview_tree = _build_lead_tree(agenda)
        self.preview_tree.grid(row=0, column=0, sticky="nsew", padx=4, pady=4)
        self.preview_tree.bind("<Double-1>", lambda _event: self._open_selected(self.preview_tree))

    def _build_leads_tab(self, notebook: ttk.Notebook) -> None:
        frame = ttk.Frame(notebook, padding=8)
        notebook.add(frame, text="Leads")
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(0, weight=1)
        self.leads_tree = _build_lead_tree(frame, height=20)
        self.leads_tree.grid(row=0, column=0, sticky="nsew")
        scroll = ttk.Scrollbar(frame, orient="vertical", command=self.leads_tree.yview)
        self.leads_tree.configure(yscrollcommand=scroll.set)
        scroll.grid(row=0, column=1, sticky="ns")
        self.leads_tree.bind("<Double-1>", lambda _event: self._open_selected(self.leads_tree))

    def _build_reports_tab(self, notebook: ttk.Notebook) -> None:
        frame = ttk.Frame(notebook, padding=8)
        notebook.add(frame, text="Reports")
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(1, weight=1)
        bar = ttk.Frame(frame)
        bar.grid(row=0, column=0, sticky="w")
        ttk.Label(bar, text="Period").pack(side="left", padx=(0, 8))
        box = ttk.Combobox(bar, textvariable=self.report_range_var, values=list(_RANGES), state="readonly", width=8)
        box.pack(side="left")
        box.bind("<<ComboboxSelected>>", lambda _event: self.refresh())
        ttk.Button(bar, text="Export report", command=self.export_report).pack(side="left", padx=(8, 0))
        self.report_text = tk.Text(frame, wrap="none", font=("TkFixedFont", 10))
        self.report_text.grid(row=1, column=0, sticky="nsew", pady=(8, 0))

    # ------------------------------------------------------------------
    def track(self, label: str, future: "Future[OperationResult]") -> None:
        future.add_done_callback(lambda done: self.event_queue.put(("result", label, done)))

    def reload(self) -> None:
        self.track("Fetch", self.service.fetch_all())

    def _open_selected(self, tree: ttk.Treeview) -> None:
        selection = tree.selection()
        if selection:
            self.service.open_detail(selection[0])

    # ------------------------------------------------------------------
    def refresh(self) -> None:
        leads = self.service.leads
        selector = _RANGES.get(self.range_var.get(), DateRange.this_month())
        metrics = compute_metrics(leads, selector, staff=self.staff)
        for frame, variable, (title, value, caption) in zip(self.card_frames, self.card_vars, summary_cards(metrics)):
            frame.configure(text=f"{title} · {caption}")
            variable.set(value)

        visible = filter_leads(leads, selector, self.search_var.get())
        _fill_lead_tree(self.preview_tree, filter_preview(visible))
        _fill_lead_tree(self.leads_tree, visible)

        report_selector = _RANGES.get(self.report_range_var.get(), DateRange.this_month())
        report = compute_metrics(leads, report_selector, staff=self.staff)
        self.report_text.delete("1.0", "end")
        self.report_text.insert("1.0", "\n".join(report_lines(report)))
        self._refresh_status()

    def _refresh_status(self) -> None:
        error = self.service.last_error
        if error is not None:
            self.status_var.set(f"{error.message} {error.detail}".strip())
        elif self.service.loading:
            self.status_var.set("Loading leads...")
        else:
            self.status_var.set(f"{len(self.service.leads)} leads loaded")

    def _sync_dialogs(self) -> None:
        if self.service.intake_open and self.intake_dialog is None:
            self.intake_dialog = IntakeDialog(self.root, self._create_lead)
            self.intake_dialog.bind("<Destroy>", self._intake_closed, add="+")

        lead_id = self.service.detail_lead_id
        if self.detail_dialog is not None and self.detail_dialog.lead_id != lead_id:
            dialog, self.detail_dialog = self.detail_dialog, None
            dialog.destroy()
        if lead_id and self.detail_dialog is None:
            lead = self.service.get(lead_id)
            if lead is not None:
                self.detail_dialog = LeadDetailDialog(self.root, self, lead)

    def _intake_closed(self, event: tk.Event) -> None:
        if event.widget is self.intake_dialog:
            self.intake_dialog = None
            self.service.intake_open = False

    def _create_lead(self, draft: Dict[str, object]) -> None:
        self.track("Create", self.service.create(draft))

    # ------------------------------------------------------------------
    def export(self) -> None:
        path = filedialog.asksaveasfilename(defaultextension=".csv", filetypes=[("CSV", "*.csv"), ("Excel", "*.xlsx")])
        if not path:
            return
        selector = _RANGES.get(self.range_var.get(), DateRange.this_month())
        try:
            export_leads(filter_leads(self.service.leads, selector, self.search_var.get()), path)
        except (OSError, ValueError) as exc:  # pragma: no cover - GUI surface
            messagebox.showerror("Export failed", str(exc))
            return
        messagebox.showinfo("Export complete", f"Leads exported to {path}")

    def export_report(self) -> None:
        path = filedialog.asksaveasfilename(defaultextension=".xlsx", filetypes=[("Excel", "*.xlsx"), ("CSV", "*.csv")])
        if not path:
            return
        selector = _RANGES.get(self.report_range_var.get(), DateRange.this_month())
        try:
            export_report(compute_metrics(self.service.leads, selector, staff=self.staff), path)
        except (OSError, ValueError) as exc:  # pragma: no cover - GUI surface
            messagebox.showerror("Export failed", str(exc))
            return
        messagebox.showinfo("Export complete", f"Report exported to {path}")

    # ------------------------------------------------------------------
    def _poll_queue(self) -> None:
        try:
            while True:
                event = self.event_queue.get_nowait()
                self._handle_event(event)
        except queue.Empty:
            pass
        finally:
            self.root.after(100, self._poll_queue)

    def _handle_event(self, event: tuple) -> None:
        kind = event[0]
        if kind == "service":
            _, name = event
            if name == "view":
                self._sync_dialogs()
            elif name in {"error", "loading"}:
                self._refresh_status()
            else:
                self.refresh()
        elif kind == "result":
            _, label, future = event
            exc = future.exception()
            if exc is not None:
                LOGGER.error("%s failed unexpectedly", label, exc_info=exc)
                messagebox.showerror(f"{label} failed", str(exc))
            elif future.result().reconciled:
                self.refresh()
        elif kind == "advice":
            _, lead_id, future = event
            dialog = self.detail_dialog
            if dialog is None or dialog.lead_id != lead_id:
                return
            exc = future.exception()
            dialog.show_text(str(exc) if exc is not None else future.result())

    # ------------------------------------------------------------------
    def on_close(self) -> None:
        self._unsubscribe()
        self.service.close()
        self.root.destroy()

    def _build_service(self) -> LeadDataService:
        config_path = os.environ.get(CONFIG_ENV_VAR)
        try:
            config = load_settings(config_path)
            if self.staff is None:
                self.staff = build_staff_directory(config)
            if config.get("store"):
                return build_service(config)
        except (ConfigurationError, FileNotFoundError, ValueError) as exc:
            messagebox.showwarning("Configuration error", f"Failed to load configuration: {exc}")
            config = {}
        LOGGER.warning("No lead store configured for UI - falling back to an in-memory store")
        return build_service(config, store=InMemoryLeadStore())


def main() -> None:
    root = tk.Tk()
    DashboardApp(root)
    root.mainloop()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
