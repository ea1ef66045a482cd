"""Prometheus exporter for LYWSD03MMC BLE thermometers."""
