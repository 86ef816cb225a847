import os

# Point the application engine at SQLite before any app module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("ACS_MONITOR_MAX_CONCURRENCY", "1")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.db import Base
from app.schemas.acs import MonitoringConfigCreate, ParameterThresholdCreate
from app.services.acs.configs import MonitoringConfigs
from app.services.acs.alerts import ParameterThresholds
from app.services.acs.store import MonitoringStore
from app.websocket.broadcaster import InMemoryBroadcaster
from tests.mocks import (
    ACS_BASE_URL,
    OLT_ID,
    ONU_ID,
    PROCESSOR_LOAD_PATH,
    TEMPERATURE_PATH,
    FakeACS,
    minutes_ago,
)


@pytest.fixture()
def engine(tmp_path):
    # File-backed so every store session gets its own connection.
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'acs.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(session_factory):
    return MonitoringStore(session_factory)


@pytest.fixture()
def broadcaster():
    return InMemoryBroadcaster()


@pytest.fixture()
def events(broadcaster):
    """Queue receiving everything published on the monitoring channel."""
    return broadcaster.subscribe()


@pytest.fixture()
def fake_acs():
    return FakeACS()


@pytest.fixture()
def acs_client(fake_acs):
    return fake_acs.client()


@pytest.fixture()
def fleet(fake_acs):
    """One online Huawei OLT and one offline ONU."""
    fake_acs.add_device(
        OLT_ID,
        serial_number="HWTC0001",
        manufacturer="Huawei",
        product_id="MA5800",
        last_inform=minutes_ago(1),
        uptime=302400,
        parameters={
            "InternetGatewayDevice.DeviceInfo.SoftwareVersion": "v2.3.1",
            "InternetGatewayDevice.DeviceInfo.HardwareVersion": "HW-A",
            "InternetGatewayDevice.DeviceInfo.ModelName": "Huawei MA5800",
            "InternetGatewayDevice.ManagementServer.ConnectionRequestURL": "http://10.0.0.5:7547/acs",
            "InternetGatewayDevice.LANDevice.1.Hosts.HostNumberOfEntries": "12",
            PROCESSOR_LOAD_PATH: "35",
            TEMPERATURE_PATH: "82",
        },
    )
    fake_acs.add_device(
        ONU_ID,
        serial_number="ALCL0001",
        manufacturer="FiberHome",
        product_id="HG8245",
        last_inform=minutes_ago(30),
        parameters={
            "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANIPConnection.1.ExternalIPAddress": "100.64.0.9",
            "InternetGatewayDevice.DeviceInfo.X_CT-COM_ReceivePower": "-27.5",
        },
    )
    return fake_acs


@pytest.fixture()
def monitoring_config(db_session):
    return MonitoringConfigs.create(
        db_session,
        MonitoringConfigCreate(name="Primary ACS", base_url=ACS_BASE_URL),
    )


@pytest.fixture()
def inactive_config(db_session):
    return MonitoringConfigs.create(
        db_session,
        MonitoringConfigCreate(name="Retired ACS", base_url=ACS_BASE_URL, is_active=False),
    )


@pytest.fixture()
def temperature_threshold(db_session):
    return ParameterThresholds.create(
        db_session,
        ParameterThresholdCreate(
            parameter_path=TEMPERATURE_PATH,
            condition="greater_than",
            threshold_value=70,
            severity="critical",
        ),
    )
