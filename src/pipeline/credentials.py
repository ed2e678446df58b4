"""Credential Pool: the ordered, read-only list of model API keys.

Loaded once from configuration. Nothing in the pipeline mutates it, so
concurrent invocations share one instance without locking.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from src.models.models import HealthReport, HealthStatus
from src.utils.config import Config, config as default_config


@dataclass(frozen=True)
class Credential:
    """An API secret and its ordinal position in the pool (0-based)."""

    secret: str
    position: int

    @property
    def masked(self) -> str:
        """Loggable form: keeps only the last four characters."""
        if len(self.secret) <= 4:
            return "****"
        return f"****{self.secret[-4:]}"

    def __repr__(self) -> str:
        return f"Credential(position={self.position}, secret={self.masked!r})"


class CredentialPool:
    """Immutable ordered collection of credentials."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        self._credentials = tuple(
            Credential(secret=secret, position=index) for index, secret in enumerate(secrets)
        )

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "CredentialPool":
        return cls((cfg or default_config).api_keys)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __bool__(self) -> bool:
        return bool(self._credentials)

    def health(self) -> HealthReport:
        """Report ``healthy`` iff the pool is non-empty. No network call is made."""
        status = HealthStatus.HEALTHY if self._credentials else HealthStatus.UNCONFIGURED
        return HealthReport(status=status, credentials=len(self._credentials))
