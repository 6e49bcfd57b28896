"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging

import typer

from switchbotctl.api import Client
from switchbotctl.core.errors import ParameterError, SwitchBotError
from switchbotctl.core.model import OperationResult

app = typer.Typer(help="Scan and control SwitchBot BLE accessories")

_BOT_ACTIONS = {
    "press": "press",
    "on": "turn_on",
    "off": "turn_off",
    "up": "up",
    "down": "down",
}
_CURTAIN_ACTIONS = {
    "open": "open",
    "close": "close",
    "pause": "pause",
    "position": "run_to_pos",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _build_client() -> Client:
    client = Client()
    for warning in getattr(client, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return client


def _describe(result: OperationResult) -> str:
    target = result.target
    return f"{target.address or target.id} ({target.model_friendly_name})"


def _lookup_action(action: str, table: dict[str, str]) -> str:
    method = table.get(action.lower())
    if method is None:
        raise ParameterError(f"Unknown action '{action}'. Choose from: {', '.join(table)}")
    return method


@app.command("models")
def list_models() -> None:
    """List the accessory models the advertisement decoder understands."""
    try:
        client = _build_client()
        for info in client.list_models():
            typer.echo(f"{info.code}: {info.friendly_name} ({info.name})")
    except SwitchBotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan(
    duration: float | None = typer.Option(None, "--duration", help="Scan duration in seconds"),
    model: str | None = typer.Option(None, "--model", help="Only show this model code"),
    as_json: bool = typer.Option(False, "--json", help="Print advertisements as JSON"),
) -> None:
    """Scan for advertisements and print decoded device status."""
    try:
        client = _build_client()
        ads = client.scan(duration_s=duration, model=model)
        if as_json:
            typer.echo(json.dumps([ad.as_dict() for ad in ads], indent=2))
            return
        if not ads:
            typer.echo("No SwitchBot devices found")
            return
        for ad in ads:
            fields = ad.status.as_dict()
            for key in ("model", "model_name", "model_friendly_name"):
                fields.pop(key)
            details = " ".join(f"{key}={value}" for key, value in fields.items())
            typer.echo(f"{ad.address or ad.id} {ad.status.model_friendly_name} rssi={ad.rssi} {details}")
    except SwitchBotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("command")
def send_command(
    payload: str = typer.Argument(..., help="Command bytes as hex, e.g. 570100"),
    device: str | None = typer.Option(None, "--device", help="Address, alias, or partial name"),
    model: str | None = typer.Option(None, "--model", help="Model code"),
) -> None:
    """Send raw command bytes and print the device's response."""
    try:
        normalized = payload.strip().lower().replace(" ", "")
        try:
            data = bytes.fromhex(normalized)
        except ValueError:
            raise ParameterError(f"'{payload}' is not valid hex") from None
        if not data:
            raise ParameterError("Command payload must not be empty")

        client = _build_client()
        result = client.command(data, device_hint=device, model=model)
        typer.echo(
            f"Sent {result.payload_hex} to {result.target.address or result.target.id} "
            f"({result.target.model_friendly_name})"
        )
        typer.echo(f"response={result.response_hex}")
    except SwitchBotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("name")
def device_name(
    new_name: str | None = typer.Argument(None),
    device: str | None = typer.Option(None, "--device", help="Address, alias, or partial name"),
) -> None:
    """Read the device name, or set it when NEW_NAME is given."""
    try:
        client = _build_client()
        if new_name is None:
            typer.echo(client.read_device_name(device_hint=device))
            return
        client.set_device_name(new_name, device_hint=device)
        typer.echo(f"Renamed device to '{new_name}'")
    except SwitchBotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("bot")
def bot(
    action: str = typer.Argument(..., help="press, on, off, up or down"),
    device: str | None = typer.Option(None, "--device", help="Address, alias, or partial name"),
) -> None:
    """Operate a Bot (or Humidifier)."""
    try:
        method = _lookup_action(action, _BOT_ACTIONS)
        client = _build_client()
        result = client.operate(method, device_hint=device)
        typer.echo(f"{action} sent to {_describe(result)}")
    except SwitchBotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("curtain")
def curtain(
    action: str = typer.Argument(..., help="open, close, pause or position"),
    position: int | None = typer.Option(None, "--position", help="Target position 0-100 for 'position'"),
    device: str | None = typer.Option(None, "--device", help="Address, alias, or partial name"),
) -> None:
    """Operate a Curtain or Blind Tilt."""
    try:
        method = _lookup_action(action, _CURTAIN_ACTIONS)
        args: tuple[int, ...] = ()
        if method == "run_to_pos":
            if position is None:
                raise ParameterError("--position is required for the 'position' action")
            args = (position,)
        client = _build_client()
        result = client.operate(method, *args, device_hint=device)
        typer.echo(f"{action} sent to {_describe(result)}")
    except SwitchBotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
