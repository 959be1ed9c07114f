# Overview: Interactive terminal scanner (console script "zonecount-scan").

# Commands Legend:
# - zonecount-scan --url http://127.0.0.1:5000 --email ana@acme.test
#   Log in, pick a zone and count, then scan (or type) one code per line.
# - zonecount-scan --serial ...
#   Serial-number mode: serials are staged in their own list and uploaded
#   as serial numbers.
# - zonecount-scan --check-products ...
#   Refuse codes that are not in the product master ("EAN not found").
#
# Inside the loop:
#   :list          show the staged list (newest first)
#   :del <code>    remove one staged code
#   :clear         empty the staged list
#   :upload        upload the staged list
#   :quit          leave (staged scans stay on disk)

import logging
from pathlib import Path

import click

from .client import ApiClient, ApiError
from .stager import KIND_EAN, KIND_SERIAL, DuplicateScanError, OfflineError, ScanStager
from .store import JsonFileStore


DEFAULT_STORE_PATH = Path.home() / ".zonecount" / "staged_scans.json"


def _bell() -> None:
    click.echo("\a", nl=False)


def _choose_zone(zones: list) -> dict:
    by_name = {z["name"].upper(): z for z in zones}
    by_id = {str(z["id"]): z for z in zones}
    while True:
        answer = click.prompt("Zone (name or id)").strip()
        zone = by_name.get(answer.upper()) or by_id.get(answer)
        if zone:
            return zone
        click.echo(f"FAIL Unknown zone: {answer}")


def _print_list(stager: ScanStager) -> None:
    if not len(stager):
        click.echo("(no staged scans)")
        return
    for i, entry in enumerate(stager.entries):
        click.echo(f"{i:>4}  {entry.code:<30} {entry.scanned_at}")
    click.echo(f"{len(stager)} staged")


def _upload(stager: ScanStager, api: ApiClient, serial: bool) -> None:
    if serial:
        def uploader(batch):
            return api.submit_serials([b["code"] for b in batch], stager.zone_id, stager.count_number)
    else:
        uploader = api.submit_batch

    try:
        result = stager.submit(uploader)
    except ValueError as e:
        click.echo(f"WARN  {e}")
        return
    except ApiError as e:
        click.echo(f"FAIL Upload rejected: {e.message}")
        for err in e.errors:
            click.echo(f"   - {err}")
        return

    if result.deferred:
        click.echo("WARN  Server unreachable. Scans kept locally, run :upload again later.")
    else:
        click.echo(f"PASS Uploaded {result.uploaded} scans.")


@click.command("zonecount-scan")
@click.option("--url", envvar="ZONECOUNT_URL", default="http://127.0.0.1:5000", show_default=True, help="API base URL")
@click.option("--email", prompt=True, help="Login e-mail")
@click.option("--password", prompt=True, hide_input=True, help="Password")
@click.option("--company-id", type=int, default=None, help="Company to log into")
@click.option("--count", "count_number", type=click.IntRange(1, 3), prompt="Count number (1-3)", help="Count pass")
@click.option("--store-path", type=click.Path(dir_okay=False, path_type=Path), default=DEFAULT_STORE_PATH,
              show_default=True, help="File holding staged scans")
@click.option("--serial", is_flag=True, help="Upload codes as serial numbers")
@click.option("--check-products", is_flag=True, help="Reject codes missing from the product master")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def main(url, email, password, company_id, count_number, store_path, serial, check_products, verbose):
    """Stage scans per zone and count, then upload them as one batch."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s [%(name)s] %(message)s",
    )

    with ApiClient(url) as api:
        try:
            data = api.login(email, password, company_id=company_id)
            zones = api.list_zones()
        except OfflineError as e:
            raise click.ClickException(f"Server unreachable: {e}")
        except ApiError as e:
            raise click.ClickException(e.message)

        click.echo(f"PASS Logged in as {data['user']['name']} (company {api.company_id})")
        if not zones:
            raise click.ClickException("No zones defined. Ask an administrator to create them.")

        zone = _choose_zone(zones)
        stager = ScanStager(JsonFileStore(store_path), alert=_bell, kind=KIND_SERIAL if serial else KIND_EAN)
        stager.select(zone["id"], count_number)
        click.echo(f"Zone {zone['name']}, count {count_number}: {len(stager)} scans already staged.")

        while True:
            line = click.prompt(">", default="", show_default=False).strip()
            if not line:
                continue

            if line == ":quit":
                if len(stager):
                    click.echo(f"WARN  {len(stager)} scans stay staged for the next session.")
                break
            if line == ":list":
                _print_list(stager)
            elif line == ":clear":
                if click.confirm(f"Discard {len(stager)} staged scans?"):
                    stager.clear()
            elif line == ":upload":
                _upload(stager, api, serial)
            elif line.startswith(":del"):
                code = line[len(":del"):].strip()
                try:
                    stager.remove(code=code)
                    click.echo(f"Removed {code}")
                except (KeyError, ValueError):
                    click.echo(f"FAIL {code or '(empty)'} is not staged")
            elif line.startswith(":"):
                click.echo(f"FAIL Unknown command: {line}")
            else:
                if check_products:
                    try:
                        product = api.lookup_product(line)
                    except OfflineError:
                        product = {}
                        click.echo("WARN  Offline, product check skipped")
                    if product is None:
                        _bell()
                        click.echo(f"FAIL EAN not found: {line}")
                        continue
                try:
                    stager.add(line)
                except DuplicateScanError as e:
                    click.echo(f"FAIL {e}")
                    continue
                click.echo(f"{line}  ({len(stager)} staged)")


if __name__ == "__main__":
    main()
