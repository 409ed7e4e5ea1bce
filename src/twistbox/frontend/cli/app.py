"""Textual front end: pick a file, enter a passphrase, watch it encrypt."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Input, ProgressBar, Static

from twistbox.core.exceptions import TwistBoxError
from twistbox.frontend.cli.context import (
    AppContext,
    build_context,
    default_output_path,
    discard_output,
    is_encrypted_name,
)
from twistbox.security.lock import set_master_password, verify_master_password
from twistbox.security.worker import CryptoJob, Direction, Failed, Progress, Succeeded


class MasterPasswordModal(ModalScreen[Optional[str]]):
    """Unlock prompt, or a prompt to choose the master password on first run."""

    def __init__(self, setting: bool, message: str = ""):
        super().__init__()
        self.setting = setting
        self.message = message
        self.password_input = Input(placeholder="Password", password=True, id="master")

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(
                "Set Master Password" if self.setting else "Enter Master Password",
                classes="title",
            )
            yield self.password_input
            with Horizontal():
                yield Button("Set Password" if self.setting else "Unlock", id="ok", variant="primary")
                yield Button("Quit", id="quit")
            yield Static(self.message, id="lock-message")

    def on_mount(self) -> None:  # pragma: no cover
        self.password_input.focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "quit":
            self.dismiss(None)
        else:
            self.dismiss(self.password_input.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:  # pragma: no cover
        self.dismiss(self.password_input.value)


class OutputDirectoryModal(ModalScreen[Optional[str]]):
    def __init__(self, current: str):
        super().__init__()
        self.dir_input = Input(value=current, placeholder="Output directory", id="outdir")

    def compose(self) -> ComposeResult:  # pragma: no cover
        with Vertical(classes="dialog"):
            yield Static("Output Directory", classes="title")
            yield self.dir_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Save", id="ok", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "ok":
            self.dismiss(self.dir_input.value.strip() or None)
        else:
            self.dismiss(None)

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)


class TwistBoxApp(App):
    """Single-screen encrypt/decrypt front end driven by a worker process."""

    TITLE = "TwistBox"

    CSS = """
    #main { border: heavy $surface; padding: 1 2; }
    .title { padding: 1 1; text-style: bold; }
    .section-label { padding: 0 1; color: $text-muted; }
    #status { padding: 1 1; height: 3; color: $text-muted; }
    ModalScreen { align: center middle; background: rgba(0,0,0,0.45); }
    .dialog { width: 60%; height: auto; padding: 1; border: heavy $surface; background: $boost; }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("ctrl+s", "start", "Start"),
        ("ctrl+x", "cancel_job", "Cancel"),
        ("ctrl+o", "output_directory", "Output Dir"),
    ]

    def __init__(self, ctx: AppContext | None = None):
        self.ctx = ctx or build_context()
        super().__init__()
        self.job: CryptoJob | None = None
        self.passphrase_input: Input | None = None
        self.path_input: Input | None = None
        self.progress: ProgressBar | None = None
        self.status: Static | None = None
        self.status_text = ""
        self.progress_value = 0.0

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="main"):
            yield Static("Encrypt / Decrypt File", classes="title")
            yield Static("Passphrase", classes="section-label")
            self.passphrase_input = Input(placeholder="Passphrase", password=True, id="passphrase")
            yield self.passphrase_input
            yield Static("Input file", classes="section-label")
            self.path_input = Input(placeholder="/path/to/file", id="input_path")
            yield self.path_input
            with Horizontal():
                yield Button("Start", id="start", variant="primary")
                yield Button("Cancel", id="cancel")
            self.progress = ProgressBar(total=100, show_eta=False, id="progress")
            yield self.progress
            self.status = Static("", id="status")
            yield self.status
        yield Footer()

    def on_mount(self) -> None:
        if not self.ctx.unlocked:
            self._prompt_master_password()

    # ------------------------------------------------------------------
    # Master password gate
    # ------------------------------------------------------------------

    def _prompt_master_password(self, message: str = "") -> None:
        self.push_screen(
            MasterPasswordModal(setting=self.ctx.first_run, message=message),
            self._handle_master_password,
        )

    def _handle_master_password(self, password: Optional[str]) -> None:
        if password is None:
            self.exit()
            return
        if self.ctx.first_run:
            try:
                set_master_password(self.ctx.settings, password, iterations=self.ctx.settings.iterations)
            except ValueError as exc:
                self._prompt_master_password(str(exc))
                return
            self.ctx.first_run = False
        elif not verify_master_password(self.ctx.settings, password):
            self._prompt_master_password("Incorrect password.")
            return
        self.ctx.unlocked = True
        self._set_status(f"Output directory: {self.ctx.settings.output_directory}")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _set_status(self, text: str) -> None:
        self.status_text = text
        if self.status is not None:
            self.status.update(text)

    def _set_progress(self, fraction: float) -> None:
        self.progress_value = fraction
        if self.progress is not None:
            self.progress.update(progress=fraction * 100)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "start":
            self.action_start()
        elif event.button.id == "cancel":
            self.action_cancel_job()

    def action_start(self) -> None:
        if not self.ctx.unlocked:
            return
        if self.job is not None and not self.job.finished and not self.job.cancelled:
            self._set_status("An operation is already running.")
            return

        passphrase = self.passphrase_input.value
        raw_path = self.path_input.value.strip()
        if not raw_path or not passphrase:
            self._set_status("Please select a file and enter a passphrase.")
            return

        input_path = Path(raw_path).expanduser()
        direction = Direction.DECRYPT if is_encrypted_name(input_path) else Direction.ENCRYPT
        output_path = default_output_path(input_path, self.ctx.settings.output_directory)

        job = CryptoJob(
            direction,
            input_path,
            output_path,
            passphrase,
            chunk_size=self.ctx.settings.chunk_size,
            iterations=self.ctx.settings.iterations,
        )
        try:
            job.start()
        except TwistBoxError as exc:
            self._set_status(f"Error: {exc}")
            return

        self.job = job
        self._set_progress(0.0)
        self._set_status("Decrypting..." if direction == Direction.DECRYPT else "Encrypting...")
        self.run_worker(
            lambda: self._job_worker(job),
            name="crypto_job",
            exclusive=True,
            thread=True,
        )

    def _job_worker(self, job: CryptoJob):
        """Relay job events to the UI (runs in a thread)."""
        terminal = None
        for event in job.events():
            if isinstance(event, Progress):
                self.call_from_thread(self._set_progress, event.fraction)
            else:
                terminal = event
        return job, terminal

    def _abandon_job(self) -> bool:
        """Cancel a running job and remove its incomplete output."""
        if self.job is None or not self.job.cancel():
            return False
        discard_output(self.job.out_path)
        return True

    def action_cancel_job(self) -> None:
        if self._abandon_job():
            self._set_progress(0.0)
            self._set_status("Cancelled; the incomplete output was removed.")

    def action_output_directory(self) -> None:
        self.push_screen(
            OutputDirectoryModal(self.ctx.settings.output_directory),
            self._handle_output_directory,
        )

    def _handle_output_directory(self, directory: Optional[str]) -> None:
        if not directory:
            return
        try:
            self.ctx.settings.set_output_directory(directory)
        except OSError as exc:
            self._set_status(f"Error: {exc}")
            return
        self._set_status(f"Output directory: {self.ctx.settings.output_directory}")

    def on_unmount(self) -> None:
        # never leave a worker process behind
        self._abandon_job()

    def on_worker_state_changed(self, event) -> None:
        """Report the job outcome once the relay thread finishes."""
        if event.worker.name != "crypto_job" or not event.worker.is_finished:
            return
        result = event.worker.result
        if not result:
            return
        job, terminal = result
        if job is not self.job or terminal is None:
            return
        if isinstance(terminal, Succeeded):
            self._set_progress(1.0)
            verb = "Encryption" if job.direction == Direction.ENCRYPT else "Decryption"
            self._set_status(f"{verb} completed! Saved to {job.out_path}")
        elif isinstance(terminal, Failed):
            self._set_status(f"Error: {terminal.error}")
