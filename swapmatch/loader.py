"""Load raw store rows (e.g. a JSON export) into the datastore, validating each one."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from swapmatch.logger import log
from swapmatch.models import PreferredDate, Profile, Shift, SwapRequest, UserSkillsets
from swapmatch.store import SwapStore

SECTIONS: dict[str, type[BaseModel]] = {
    "shifts": Shift,
    "swap_requests": SwapRequest,
    "preferred_dates": PreferredDate,
    "profiles": Profile,
    "skillsets": UserSkillsets,
}


def load_fixture(store: SwapStore, payload: Mapping[str, Any]) -> dict[str, int]:
    """
    Validate every row of every known section and write them in one batch.
    A malformed row raises pydantic.ValidationError and nothing is written.
    """
    records = []
    counts: dict[str, int] = {}
    for section, model in SECTIONS.items():
        rows = payload.get(section) or []
        records.extend(model.model_validate(row) for row in rows)
        counts[section] = len(rows)

    store.put(*records)
    log.info(
        "Loaded " + ", ".join(f"{n} {section}" for section, n in counts.items())
    )
    return counts


def load_fixture_file(store: SwapStore, path: str | Path) -> dict[str, int]:
    with open(path, "r") as f:
        return load_fixture(store, json.load(f))
