from typing import Any

import pytest

from helpers import ScriptedAdapter, ScriptedCompleteAdapter


@pytest.fixture
def scripted_adapter():
    """Factory for adapters that replay the given turns."""

    def factory(*turns: Any, complete: bool = False) -> ScriptedAdapter:
        cls = ScriptedCompleteAdapter if complete else ScriptedAdapter
        return cls(list(turns))

    return factory
