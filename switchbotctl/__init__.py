"""SwitchBot BLE accessory driver: advertisement decoding and GATT sessions."""

__version__ = "0.1.0"
