from azure_chat.storage.backends import JsonFileStorage, KeyValueStorage, MemoryStorage
from azure_chat.storage.store import ChatStorage

__all__ = ["ChatStorage", "JsonFileStorage", "KeyValueStorage", "MemoryStorage"]
