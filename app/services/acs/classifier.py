"""Device class heuristic for ACS inventory.

TR-069 carries no signal that says "this is an OLT", so the class is
inferred from manufacturer/model strings. Precedence:

1. manufacturer contains a known OLT vendor substring -> OLT
2. model contains "olt" -> OLT
3. neither manufacturer nor model present -> Unknown
4. anything else -> ONU
"""

from __future__ import annotations

from app.models.acs import DeviceClass

OLT_VENDOR_SUBSTRINGS: tuple[str, ...] = ("huawei", "zte", "nokia")
OLT_MODEL_SUBSTRING = "olt"


def classify_device(manufacturer: str | None, model: str | None) -> DeviceClass:
    vendor = (manufacturer or "").strip().lower()
    product = (model or "").strip().lower()
    if vendor and any(name in vendor for name in OLT_VENDOR_SUBSTRINGS):
        return DeviceClass.olt
    if OLT_MODEL_SUBSTRING in product:
        return DeviceClass.olt
    if not vendor and not product:
        return DeviceClass.unknown
    return DeviceClass.onu


def classify_remote(device) -> DeviceClass:
    """Classify a RemoteDevice document."""
    return classify_device(device.manufacturer, device.model)


def effective_class(device_class: DeviceClass) -> DeviceClass:
    """Class used where only OLT/ONU behaviour exists; Unknown acts as ONU."""
    if device_class == DeviceClass.olt:
        return DeviceClass.olt
    return DeviceClass.onu


def matches_filter(device_class: DeviceClass, device_type: str) -> bool:
    """Apply an ``all``/``olt``/``onu`` filter."""
    if device_type == "all":
        return True
    return effective_class(device_class).value == device_type
