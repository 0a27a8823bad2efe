"""
CommandRegistry - named control commands for the step counter service

Bounded Context: Command registration and validation

Commands are registered explicitly at setup time; anything else arriving on
the command topic is rejected with the list of what is available.

Threading: registration and lookup share one lock, handlers run outside it.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Set

CommandHandler = Callable[[dict], None]


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""
    pass


@dataclass(frozen=True)
class RegisteredCommand:
    name: str
    handler: CommandHandler
    description: str


class CommandRegistry:
    """
    Registry for control commands.

    Example:
        registry = CommandRegistry()
        registry.register('unregister', service.handle_unregister, "Stop counting")

        try:
            registry.execute('unregister')
        except CommandNotAvailableError as e:
            print(f"Command not available: {e}")
    """

    def __init__(self):
        self._commands: Dict[str, RegisteredCommand] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: CommandHandler, description: str) -> None:
        """
        Register a command.

        Args:
            command: Command name (lowercase, no spaces)
            handler: Callable receiving the full command payload
            description: One line shown by the help command

        Raises:
            ValueError: If the name is malformed or already registered
        """
        if not command or command != command.lower() or " " in command:
            raise ValueError(f"Invalid command name: {command!r}")

        with self._lock:
            if command in self._commands:
                raise ValueError(f"Command '{command}' already registered")
            self._commands[command] = RegisteredCommand(command, handler, description)

    def execute(self, command: str, command_data: Optional[dict] = None) -> None:
        """
        Run the handler of a registered command.

        Args:
            command: Command name
            command_data: Full JSON payload (defaults to {"command": command})

        Raises:
            CommandNotAvailableError: If command not registered
        """
        with self._lock:
            registered = self._commands.get(command)
            available = sorted(self._commands)

        if registered is None:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(available)}"
            )

        registered.handler(command_data if command_data is not None else {'command': command})

    def is_available(self, command: str) -> bool:
        with self._lock:
            return command in self._commands

    @property
    def available_commands(self) -> Set[str]:
        with self._lock:
            return set(self._commands)

    def get_help(self) -> Dict[str, str]:
        """Command name → description, sorted by name."""
        with self._lock:
            return {
                name: self._commands[name].description
                for name in sorted(self._commands)
            }

    def count(self) -> int:
        with self._lock:
            return len(self._commands)
