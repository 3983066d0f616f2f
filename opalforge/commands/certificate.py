import json
import re
from typing import Optional
from urllib.parse import quote, unquote

import click
import httpx

from opalforge.config import settings

DEFAULT_SERVER_URL = f"http://{settings.host}:{settings.port}"

server_url_option = click.option(
    "--server-url",
    default=DEFAULT_SERVER_URL,
    show_default=True,
    help="Base URL of the OpalForge certificate service.",
)


def _error_detail(response: httpx.Response) -> str:
    """Extracts the server's error message, falling back to the raw body."""
    try:
        return response.json().get("message", response.text)
    except (json.JSONDecodeError, AttributeError):
        return response.text


def _attachment_filename(response: httpx.Response, fallback: str) -> str:
    disposition = response.headers.get("content-disposition", "")
    extended = re.search(r"filename\*=UTF-8''([^;]+)", disposition, re.IGNORECASE)
    if extended:
        return unquote(extended.group(1))
    match = re.search(r'filename="([^"]+)"', disposition)
    return match.group(1) if match else fallback


@click.group("certificate")
def certificate():
    """Issue, verify and download authenticity certificates"""
    pass


@certificate.command("issue")
@click.option("--cert-id", required=True, help="Unique identifier of the certificate.")
@click.option("--confidence", type=float, required=True, help="Authentication confidence in percent.")
@click.option("--timestamp", default=None, help="ISO 8601 issuance time. Defaults to now on the server.")
@click.option("--qr-payload", default=None, help="Data to encode in the QR code. Defaults to the verification URL.")
@server_url_option
def issue_certificate(cert_id: str, confidence: float, timestamp: Optional[str], qr_payload: Optional[str], server_url: str):
    """Creates a certificate on the server."""
    payload = {"certId": cert_id, "confidence": confidence}
    if timestamp:
        payload["timestamp"] = timestamp
    if qr_payload:
        payload["qrPayload"] = qr_payload

    api_endpoint = f"{server_url.rstrip('/')}/certificate"
    click.echo(f"Issuing certificate {cert_id} at {api_endpoint}...")

    try:
        response = httpx.post(api_endpoint, json=payload)
    except httpx.RequestError as e:
        click.echo(click.style(f"HTTP request error while issuing certificate: {e}", fg="red"), err=True)
        return

    click.echo(f"Response Status Code: {response.status_code}")
    if response.status_code == 201:
        click.echo(click.style(f"Certificate {cert_id} issued successfully!", fg="green"))
    elif response.status_code == 409:
        click.echo(click.style(f"Certificate {cert_id} already exists.", fg="yellow"))
    else:
        click.echo(click.style(f"Failed to issue certificate: {_error_detail(response)}", fg="red"))


@certificate.command("verify")
@click.option("--cert-id", required=True, help="Identifier of the certificate to verify.")
@click.option("--raw", is_flag=True, help="Print raw JSON output to stdout.")
@server_url_option
def verify_certificate(cert_id: str, raw: bool, server_url: str):
    """Fetches a certificate and prints it."""
    api_endpoint = f"{server_url.rstrip('/')}/certificate/{quote(cert_id, safe='')}"

    try:
        response = httpx.get(api_endpoint)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        message = f"Failed to verify certificate: HTTP {e.response.status_code}."
        message += f"\nDetails: {_error_detail(e.response)}"
        click.echo(click.style(message, fg="red"), err=True)
        return
    except httpx.RequestError as e:
        click.echo(click.style(f"Request error while verifying certificate at {api_endpoint}: {e}", fg="red"), err=True)
        return

    if raw:
        click.echo(response.text)
        return
    try:
        click.echo(json.dumps(json.loads(response.text), indent=2))
    except json.JSONDecodeError:
        click.echo(click.style("Response was not valid JSON for pretty printing:", fg="yellow"))
        click.echo(response.text)


@certificate.command("exists")
@click.option("--cert-id", required=True, help="Identifier of the certificate to look up.")
@server_url_option
@click.pass_context
def certificate_exists(ctx: click.Context, cert_id: str, server_url: str):
    """Checks whether a certificate exists. Exits with status 1 when it does not."""
    api_endpoint = f"{server_url.rstrip('/')}/certificate/{quote(cert_id, safe='')}"

    try:
        response = httpx.head(api_endpoint)
    except httpx.RequestError as e:
        click.echo(click.style(f"Request error while checking certificate at {api_endpoint}: {e}", fg="red"), err=True)
        ctx.exit(2)

    if response.status_code == 200:
        click.echo(click.style(f"Certificate {cert_id} exists.", fg="green"))
    elif response.status_code == 404:
        click.echo(click.style(f"Certificate {cert_id} not found.", fg="yellow"))
        ctx.exit(1)
    else:
        click.echo(click.style(f"Unexpected response: HTTP {response.status_code}.", fg="red"), err=True)
        ctx.exit(2)


@certificate.command("pdf")
@click.option("--cert-id", required=True, help="Identifier of the certificate to render.")
@click.option("--qr-data", default=None, help="Override the data encoded in the QR code.")
@click.option("--confidence", type=float, default=None, help="Override the confidence printed on the certificate.")
@click.option(
    "--output",
    "-o",
    "output_file",
    type=click.Path(dir_okay=False, writable=True),
    help="Where to save the PDF. Defaults to the filename suggested by the server.",
)
@server_url_option
def download_pdf(cert_id: str, qr_data: Optional[str], confidence: Optional[float], output_file: Optional[str], server_url: str):
    """Downloads the rendered PDF certificate."""
    api_endpoint = f"{server_url.rstrip('/')}/certificate/{quote(cert_id, safe='')}/pdf"
    params = {}
    if qr_data:
        params["qrData"] = qr_data
    if confidence is not None:
        params["confidence"] = confidence

    try:
        response = httpx.get(api_endpoint, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        message = f"Failed to render certificate: HTTP {e.response.status_code}."
        message += f"\nDetails: {_error_detail(e.response)}"
        click.echo(click.style(message, fg="red"), err=True)
        return
    except httpx.RequestError as e:
        click.echo(click.style(f"Request error while rendering certificate at {api_endpoint}: {e}", fg="red"), err=True)
        return

    output_file = output_file or _attachment_filename(response, f"OpalForge_{cert_id}.pdf")
    with open(output_file, "wb") as f:
        f.write(response.content)
    click.echo(click.style(f"Certificate PDF saved to {output_file}", fg="green"))


@certificate.command("qr")
@click.option("--cert-id", required=True, help="Identifier of the certificate.")
@click.option(
    "--output",
    "-o",
    "output_file",
    type=click.Path(dir_okay=False, writable=True),
    help="Where to save the PNG. Defaults to '<cert-id>.png'.",
)
@server_url_option
def download_qr(cert_id: str, output_file: Optional[str], server_url: str):
    """Downloads the verification QR code as a PNG."""
    api_endpoint = f"{server_url.rstrip('/')}/qr/{quote(cert_id, safe='')}"

    try:
        response = httpx.get(api_endpoint)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        click.echo(click.style(f"Failed to fetch QR code: HTTP {e.response.status_code}.", fg="red"), err=True)
        return
    except httpx.RequestError as e:
        click.echo(click.style(f"Request error while fetching QR code from {api_endpoint}: {e}", fg="red"), err=True)
        return

    output_file = output_file or f"{cert_id}.png"
    with open(output_file, "wb") as f:
        f.write(response.content)
    click.echo(click.style(f"QR code saved to {output_file}", fg="green"))
