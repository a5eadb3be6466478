"""Dev node supervisor - launches a local blockchain node for tests."""

from .config import (
    Config,
    DevNode,
    LaunchConfiguration,
    SupervisorSettings,
    find_config,
    load_config,
)
from .announcements import AnnouncementParser, ParserState
from .exceptions import (
    DevNodeError,
    ExecutableNotFound,
    InvalidConfiguration,
    KeyParseError,
    LaunchError,
    ProcessExited,
    SpawnIOError,
    StartupTimeout,
    TerminationFailure,
)
from .instance import RunningInstance
from .keys import KeyPair, secret_key_to_address
from .ports import find_free_port
from .supervisor import ProcessSupervisor, build_command

__all__ = [
    "Config",
    "DevNode",
    "LaunchConfiguration",
    "SupervisorSettings",
    "find_config",
    "load_config",
    "AnnouncementParser",
    "ParserState",
    "DevNodeError",
    "ExecutableNotFound",
    "InvalidConfiguration",
    "KeyParseError",
    "LaunchError",
    "ProcessExited",
    "SpawnIOError",
    "StartupTimeout",
    "TerminationFailure",
    "RunningInstance",
    "KeyPair",
    "secret_key_to_address",
    "find_free_port",
    "ProcessSupervisor",
    "build_command",
]
