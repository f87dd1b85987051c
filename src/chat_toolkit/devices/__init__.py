from chat_toolkit.devices.registry import DeviceRegistry

__all__ = ["DeviceRegistry"]
