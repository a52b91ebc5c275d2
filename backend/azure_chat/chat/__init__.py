from azure_chat.chat.manager import SessionManager
from azure_chat.chat.state import ChatState

__all__ = ["ChatState", "SessionManager"]
