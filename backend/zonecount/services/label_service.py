# Overview: QR zone labels for printing.

from __future__ import annotations

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_H

from ..records import ZoneRecord
from .permission_service import Principal
from .zone_service import zones_in_range


def generate_qr_image(data: str, box_size: int = 8, border: int = 4):
    # Level H: labels on racks get scuffed, 30% of the code may be lost
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    if hasattr(image, "get_image"):
        image = image.get_image()
    return image


def qr_png_data_url(data: str) -> str:
    image = generate_qr_image(data)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def zone_label(zone: ZoneRecord) -> dict:
    """Printable label: the QR payload is the zone name, nothing else."""
    return {
        "zone_id": zone.id,
        "name": zone.name,
        "description": zone.description,
        "qr_png": qr_png_data_url(zone.name),
    }


def zone_labels(principal: Principal, from_id: int, to_id: int, repo=None) -> list[dict]:
    return [zone_label(z) for z in zones_in_range(principal, from_id, to_id, repo=repo)]
