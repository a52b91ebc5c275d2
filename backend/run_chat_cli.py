"""Terminal chat client driving the session manager.

Run from the backend directory:
    python run_chat_cli.py

Commands:
    /new [model]     start a new session
    /list            list stored sessions
    /load <id>       switch to a stored session
    /model <id>      change the model of the current session
    /delete <id>     delete a session
    /export <file>   write every session to a JSON file
    /import <file>   import sessions from a JSON file
    /quit            exit
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add backend directory to path
backend_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(backend_dir))

from azure_chat.chat import ChatState, SessionManager
from azure_chat.completion import AzureOpenAIClient
from azure_chat.config import settings
from azure_chat.errors import ChatError
from azure_chat.models.catalog import MODELS
from azure_chat.network import ConnectivityMonitor
from azure_chat.storage import ChatStorage

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.FileHandler("chat_cli.log")],
)

logger = logging.getLogger(__name__)


def _render_state(state: ChatState) -> None:
    if state.error:
        print(f"! {state.error}")


async def _handle_command(manager: SessionManager, storage: ChatStorage, line: str) -> bool:
    """Run a slash command; returns False when the client should exit."""
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    if command == "/quit":
        return False
    if command == "/new":
        session_id = manager.create_session(arg or settings.default_model)
        print(f"Started session {session_id}")
    elif command == "/list":
        for entry in manager.state.sessions:
            print(f"  {entry.id}  {entry.title}  [{entry.model}]")
    elif command == "/load":
        if manager.load_session(arg) is None:
            print(f"No session {arg}")
        else:
            for message in manager.state.current_session.messages:
                print(f"{message.role}: {message.content}")
    elif command == "/model":
        manager.update_session_model(arg)
        print(f"Model set to {arg}")
    elif command == "/delete":
        manager.delete_session(arg)
    elif command == "/export":
        Path(arg).write_text(storage.export_all(), encoding="utf-8")
        print(f"Exported to {arg}")
    elif command == "/import":
        count = storage.import_all(Path(arg).read_text(encoding="utf-8"))
        manager.restore()
        print(f"Imported {count} session(s)")
    else:
        print(f"Unknown command {command}. Models: {', '.join(MODELS)}")
    return True


async def main():
    """Run the interactive chat loop."""
    storage = ChatStorage.from_settings(settings)
    client = AzureOpenAIClient.from_settings(settings)
    monitor = ConnectivityMonitor()
    manager = SessionManager(storage, client, monitor)
    manager.state.subscribe(_render_state)
    manager.restore()

    if manager.state.current_session is None:
        manager.create_session(settings.default_model)
    current = manager.state.current_session
    print(f"Session {current.id} ({current.title}, {current.model}). /quit to exit.")

    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                break
            if not line:
                continue
            try:
                if line.startswith("/"):
                    if not await _handle_command(manager, storage, line):
                        break
                    continue
                monitor.refresh()
                reply = await manager.send_message(line)
                if reply is not None:
                    print(reply.content)
                manager.clear_error()
            except (ChatError, OSError) as exc:
                logger.warning("Command failed: %s", exc)
                if manager.state.error != str(exc):
                    print(f"! {exc}")
                manager.clear_error()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal. Shutting down...")
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
