from azure_chat.network.monitor import ConnectivityMonitor, probe_platform

__all__ = ["ConnectivityMonitor", "probe_platform"]
