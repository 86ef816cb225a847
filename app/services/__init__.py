"""Service package: the GenieACS client and the ACS telemetry services."""
