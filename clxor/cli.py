import json as _json

import click
from rich.console import Console
from rich.table import Table

from . import config as _cfg
from .errors import ClxorError

console = Console()


@click.group()
def main():
    """clxor: OpenCL elementwise XOR dispatch-and-verify runner."""


@main.command()
def run():
    """Run the XOR pipeline on the preferred OpenCL device and verify it."""
    from .pipeline import run_pipeline

    try:
        result = run_pipeline(_cfg.RunConfig())
    except ClxorError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    sel = result.selection
    summary = result.report.summary()
    console.print(
        f"[bold cyan]Device:[/bold cyan] {sel.name} "
        f"({'GPU' if sel.is_gpu else 'CPU'}) on {sel.platform_name}"
    )
    table = Table(title=f"XOR over {result.n} elements (global {summary['global_size']}, local {summary['local_size']})")
    table.add_column("Loop")
    table.add_column("Iterations", justify="right")
    table.add_column("Mean (ms)", justify="right")
    table.add_column("Min (ms)", justify="right")
    table.add_column("Max (ms)", justify="right")
    for loop in ("dispatch", "readback"):
        s = summary[loop]
        if not s.get("iterations"):
            table.add_row(loop, "0", "-", "-", "-")
            continue
        table.add_row(
            loop,
            str(s["iterations"]),
            f"{s['mean'] * 1e3:.3f}",
            f"{s['min'] * 1e3:.3f}",
            f"{s['max'] * 1e3:.3f}",
        )
    console.print(table)
    console.print("[green]CPU and GPU results match.[/green]")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def devices(as_json: bool):
    """List OpenCL platforms/devices and the one the run would select."""
    from .hardware import describe_devices

    try:
        entries = describe_devices()
    except ClxorError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    if as_json:
        click.echo(_json.dumps([e.as_dict() for e in entries], indent=2))
        return
    if not entries:
        console.print("[yellow]No OpenCL devices found.[/yellow]")
        return
    table = Table(title="OpenCL devices")
    for col in ("Platform", "Device", "Name", "Kind", "Selected"):
        table.add_column(col)
    for e in entries:
        table.add_row(
            f"{e.platform_index}: {e.platform}",
            str(e.device_index),
            e.name,
            e.kind,
            "*" if e.selected else "",
        )
    console.print(table)


@main.group()
def config():
    """Inspect clxor configuration."""


@config.command("list")
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def config_list(as_json: bool):
    """List known CLXOR_* environment variables and their current values."""
    rows = _cfg.describe()
    if as_json:
        click.echo(_json.dumps(rows, indent=2, default=str))
        return
    table = Table(title="clxor configuration")
    for col in ("Name", "Category", "Current", "Default", "Description"):
        table.add_column(col)
    for r in rows:
        table.add_row(r["name"], r["category"], str(r["current"]), str(r["default"]), r["description"])
    console.print(table)
    consts = {
        "PROBLEM_SIZE": _cfg.PROBLEM_SIZE,
        "WORK_GROUP_SIZE": _cfg.WORK_GROUP_SIZE,
        "DISPATCH_ITERATIONS": _cfg.DISPATCH_ITERATIONS,
        "READBACK_ITERATIONS": _cfg.READBACK_ITERATIONS,
        "KERNEL_NAME": _cfg.KERNEL_NAME,
    }
    for k, v in consts.items():
        console.print(f"{k} = {v}")


if __name__ == "__main__":
    main()
