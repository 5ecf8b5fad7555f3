"""Init command implementation."""

from ..config import write_config_template
from ..constants import CONFIG_FILE, SESSIONS_DIR_NAME
from ..core import get_runbook_dir
from ..output import get_output_context


def init() -> None:
    """Initialize runbook tracking in the current directory."""
    ctx = get_output_context()

    runbook_dir = get_runbook_dir()
    config_path = runbook_dir / CONFIG_FILE

    if ctx.dry_run:
        config_line = (
            f"Config already exists: {config_path}"
            if config_path.exists()
            else f"Create config: {config_path}"
        )
        ctx.dry_run_notice(
            "Would initialize runbook tracking:",
            [
                f"Create directory: {runbook_dir}",
                f"Create directory: {runbook_dir / SESSIONS_DIR_NAME}",
                config_line,
            ],
        )
        return

    runbook_dir.mkdir(exist_ok=True)
    (runbook_dir / SESSIONS_DIR_NAME).mkdir(exist_ok=True)

    if not config_path.exists():
        write_config_template(runbook_dir)
        ctx.print(f"[green]Created config template:[/green] {config_path}")
    else:
        ctx.print(f"[yellow]Config already exists:[/yellow] {config_path}")

    ctx.success("Runbook initialized", {"runbook_dir": str(runbook_dir)})
