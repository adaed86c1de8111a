# dashboard.py

import argparse
import asyncio

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from datalayer.data_store import DataStore
from datalayer.remote_store import RemoteStore

console = Console()

STATUS_STYLES = {
    "healthy": "green", "online": "green", "completed": "green",
    "warning": "yellow", "in-progress": "yellow", "maintenance": "yellow",
    "critical": "red", "offline": "red", "cancelled": "red",
}


def styled(value: str) -> str:
    style = STATUS_STYLES.get(value)
    return f"[{style}]{value}[/{style}]" if style else value


def fields_table(store: DataStore) -> Table:
    table = Table(title="Fields")
    table.add_column("Name", style="cyan")
    table.add_column("Crop")
    table.add_column("Size (ac)", justify="right")
    table.add_column("Moisture", justify="right")
    table.add_column("Stage")
    table.add_column("Status")
    for field in store.fields:
        table.add_row(field.name, field.crop_type, f"{field.size:g}", f"{field.soil_moisture:.0f}%",
                      field.growth_stage, styled(field.status))
    return table


def tasks_table(store: DataStore) -> Table:
    table = Table(title="Tasks")
    table.add_column("Title", style="cyan", no_wrap=False)
    table.add_column("Field")
    table.add_column("Assigned To")
    table.add_column("Due")
    table.add_column("Priority")
    table.add_column("Status")
    for task in store.tasks:
        table.add_row(task.title, task.field_name, task.assigned_to_name, task.due_date or "-",
                      task.priority, styled(task.status))
    return table


def systems_table(store: DataStore) -> Table:
    table = Table(title="System Status")
    table.add_column("System", style="cyan")
    table.add_column("Status")
    table.add_column("Uptime")
    table.add_column("Last Checked")
    for system in store.system_status:
        table.add_row(system.name, styled(system.status), system.uptime or "-",
                      system.last_checked.strftime("%Y-%m-%d %H:%M") if system.last_checked else "-")
    return table


def render(store: DataStore):
    console.rule(f"[bold blue]Farm Dashboard[/bold blue] (refresh #{store.refresh_count})")
    if store.error:
        console.print(f"[bold red]Showing last known data, refresh failed: {store.error}[/bold red]")

    weather = store.weather_data
    if weather:
        console.print(f"[bold]Weather @ {weather.location}:[/bold] {weather.condition}, "
                      f"{weather.temperature:.0f}°C, humidity {weather.humidity:.0f}%, "
                      f"wind {weather.wind_speed:.0f} km/h")
        if store.weather_forecast:
            console.print("Forecast: " + " | ".join(
                f"{d.day} {d.temperature:.0f}°C {d.condition}" for d in store.weather_forecast))
    else:
        console.print("[dim]No weather data yet.[/dim]")

    console.print(fields_table(store))
    console.print(tasks_table(store))
    console.print(systems_table(store))

    summary = store.system_status_summary()
    console.print(f"Systems: {summary['online']}/{summary['total']} online, "
                  f"{summary['warning']} warning, {summary['offline']} offline, "
                  f"{summary['maintenance']} in maintenance")
    console.print(f"Unread notifications: {store.unread_count}")


async def run(watch: bool):
    remote = RemoteStore()
    try:
        async with DataStore(remote) as store:
            render(store)
            if watch:
                store.add_listener(render)
                console.print("[dim]Watching for changes, Ctrl+C to stop...[/dim]")
                await asyncio.Event().wait()
    finally:
        await remote.close()


def main():
    parser = argparse.ArgumentParser(description="Print the farm dashboard from the live data store.")
    parser.add_argument("--watch", action="store_true", help="Re-render on every change notification")
    args = parser.parse_args()
    try:
        asyncio.run(run(args.watch))
    except KeyboardInterrupt:
        console.print("\n[bold]Stopped.[/bold]")


if __name__ == "__main__":
    load_dotenv()
    main()
