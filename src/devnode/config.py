"""Launch configuration, supervisor settings, and TOML config files."""

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import InvalidConfiguration

if TYPE_CHECKING:
    from .instance import RunningInstance


class LaunchConfiguration(BaseModel, frozen=True):
    """How to start one node instance.

    Instances are immutable. Values set through ``DevNode`` are stored as given
    and only checked by ``validated()`` when the node is spawned.
    """

    port: int | None = Field(default=None, ge=1, le=65535)  # None = probe for one
    block_time: float | None = Field(default=None, gt=0)  # Seconds; None = on demand
    mnemonic: str | None = None
    fork: str | None = None  # URL, optionally suffixed with @<block>
    args: tuple[str, ...] = ()  # Appended after all generated flags

    @field_validator("fork")
    @classmethod
    def _check_fork(cls, value: str | None) -> str | None:
        if value is not None and not value.split("@", 1)[0].strip():
            raise ValueError("fork source must include an endpoint URL")
        return value

    def validated(self) -> "LaunchConfiguration":
        """Return a validated copy of this configuration.

        Raises:
            InvalidConfiguration: If any option is out of range.
        """
        try:
            return LaunchConfiguration.model_validate(self.model_dump())
        except ValidationError as e:
            raise InvalidConfiguration(str(e)) from e


class DevNode:
    """Fluent builder for a ``LaunchConfiguration``.

    Example::

        with DevNode().port(8545).block_time(1).spawn() as node:
            print(node.endpoint, node.addresses[0])
    """

    def __init__(self, config: LaunchConfiguration | None = None):
        self._config = config or LaunchConfiguration()

    def _with(self, **update) -> "DevNode":
        # model_copy skips validation so building never fails
        return DevNode(self._config.model_copy(update=update))

    def port(self, port: int) -> "DevNode":
        """Bind to this port instead of probing for a free one."""
        return self._with(port=port)

    def block_time(self, seconds: float) -> "DevNode":
        """Mine on a fixed interval instead of on demand."""
        return self._with(block_time=seconds)

    def mnemonic(self, phrase: str) -> "DevNode":
        """Derive accounts deterministically from this phrase."""
        return self._with(mnemonic=phrase)

    def fork(self, url: str, block: int | None = None) -> "DevNode":
        """Replay state from a remote endpoint, optionally pinned to a block."""
        return self._with(fork=url if block is None else f"{url}@{block}")

    def arg(self, arg: str) -> "DevNode":
        return self._with(args=(*self._config.args, arg))

    def args(self, args: Iterable[str]) -> "DevNode":
        return self._with(args=(*self._config.args, *args))

    def build(self) -> LaunchConfiguration:
        return self._config

    def spawn(self, settings: "SupervisorSettings | None" = None) -> "RunningInstance":
        """Build the configuration and launch it with a new supervisor."""
        from .supervisor import ProcessSupervisor

        return ProcessSupervisor(settings).spawn(self._config)


class SupervisorSettings(BaseModel):
    """Supervisor settings."""

    executable: str = "anvil"
    startup_timeout_ms: int = Field(default=5000, gt=0)
    stop_timeout_ms: int = Field(default=5000, gt=0)
    host: str = "localhost"  # Only used to format endpoints


class Config(BaseModel):
    """Complete dev node configuration."""

    supervisor: SupervisorSettings = Field(default_factory=SupervisorSettings)
    launch: LaunchConfiguration = Field(default_factory=LaunchConfiguration)


def load_config(config_path: Path) -> Config:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
        pydantic.ValidationError: If values are out of range.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return Config.model_validate(data)


def _configs_dir() -> Path:
    return Path(__file__).parent.parent.parent / "configs"


def find_config(name: str) -> Path:
    """Find a config file by name.

    A name containing a path separator or ending in .toml is used as a path.
    Otherwise it is looked up as configs/{name}.toml, then configs/{name}.

    Raises:
        FileNotFoundError: If config file is not found.
    """
    if "/" in name or name.endswith(".toml"):
        path = Path(name)
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {name}")

    configs_dir = _configs_dir()
    for candidate in (configs_dir / f"{name}.toml", configs_dir / name):
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Config '{name}' not found in {configs_dir}. "
        f"Available configs: {list_configs()}"
    )


def list_configs() -> list[str]:
    """List available config names."""
    configs_dir = _configs_dir()
    if not configs_dir.exists():
        return []
    return sorted(p.stem for p in configs_dir.glob("*.toml"))
