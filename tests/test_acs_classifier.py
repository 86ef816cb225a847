import pytest

from app.models.acs import DeviceClass
from app.services.acs.classifier import classify_device, effective_class, matches_filter


@pytest.mark.parametrize(
    ("manufacturer", "model", "expected"),
    [
        ("Huawei Technologies", "HG8245H", DeviceClass.olt),
        ("ZTE", None, DeviceClass.olt),
        ("NOKIA", "G-240W", DeviceClass.olt),
        ("Acme", "GPON-OLT-16", DeviceClass.olt),
        (None, "mini olt", DeviceClass.olt),
        (None, None, DeviceClass.unknown),
        ("  ", "", DeviceClass.unknown),
        ("FiberHome", "AN5506", DeviceClass.onu),
        ("TP-Link", None, DeviceClass.onu),
    ],
)
def test_classify_device(manufacturer, model, expected):
    assert classify_device(manufacturer, model) == expected


def test_vendor_match_takes_precedence_over_model():
    assert classify_device("Huawei", "EchoLife ONT") == DeviceClass.olt


def test_unknown_behaves_as_onu():
    assert effective_class(DeviceClass.unknown) == DeviceClass.onu
    assert effective_class(DeviceClass.olt) == DeviceClass.olt


def test_matches_filter():
    assert matches_filter(DeviceClass.olt, "all")
    assert matches_filter(DeviceClass.olt, "olt")
    assert not matches_filter(DeviceClass.olt, "onu")
    assert matches_filter(DeviceClass.unknown, "onu")
    assert not matches_filter(DeviceClass.unknown, "olt")
