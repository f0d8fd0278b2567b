"""
Out-of-band exchange of PSBTs between coordinating parties.

Each party funds its own PSBT and hands it to the other, who joins both.
The hand-off is explicit so that ``join`` always knows which party a PSBT
came from, instead of reading an anonymous string from the environment.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from psbtcoord.config import Settings
from psbtcoord.errors import ConfigurationError


class PsbtHandoff(BaseModel):
    """A funded PSBT handed over by another party."""

    model_config = ConfigDict(frozen=True)

    party: str = Field(..., min_length=1)
    psbt: str = Field(..., min_length=1)

    @classmethod
    def from_value(cls, psbt: str, party: str = "counterparty") -> PsbtHandoff:
        return cls(party=party, psbt=psbt.strip())

    @classmethod
    def load(cls, path: Path) -> PsbtHandoff:
        """
        Load a hand-off file.

        The file is either the JSON written by :meth:`dump` or a bare PSBT
        string, in which case the party is taken from the file name.
        """
        if not path.is_file():
            raise ConfigurationError(f"Hand-off file not found: {path}")

        try:
            text = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read hand-off file {path}: {e}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = {"party": path.stem, "psbt": text}

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid hand-off file {path}: {e}") from e

    def dump(self, path: Path) -> None:
        path.write_text(self.model_dump_json(indent=2) + "\n")
        logger.info(f"Wrote PSBT hand-off for party '{self.party}' to {path}")


def resolve_counterparty(
    settings: Settings | None = None,
    psbt: str | None = None,
    path: Path | None = None,
) -> PsbtHandoff:
    """
    Find the counterparty PSBT to join.

    Priority:
    1. explicit ``psbt`` value
    2. hand-off file at ``path``
    3. ``COUNTERPARTY_PSBT`` configuration value

    Raises:
        ConfigurationError: If no source provides a PSBT
    """
    if psbt:
        return PsbtHandoff.from_value(psbt)
    if path is not None:
        return PsbtHandoff.load(path)
    if settings is not None and settings.counterparty_psbt.strip():
        return PsbtHandoff.from_value(settings.counterparty_psbt)
    raise ConfigurationError(
        "Counterparty PSBT required. Use --counterparty-psbt, --counterparty-file "
        "or COUNTERPARTY_PSBT"
    )
