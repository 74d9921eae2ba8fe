from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from infrastructure.executable import Executable


@dataclass
class Call:
    args: List[str]
    stdin: Optional[bytes]
    env: Dict[str, str]
    timeout: Optional[float]


@dataclass
class FakeExecutable(Executable):
    """Records helm invocations instead of running them"""
    output: bytes = b""
    error: Optional[Exception] = None
    calls: List[Call] = field(default_factory=list)

    async def execute(self, *args, stdin=None, env=None, timeout=None):
        self.calls.append(Call(list(args), stdin, dict(env or {}), timeout))
        if self.error is not None:
            raise self.error
        return self.output

    @property
    def last(self) -> Call:
        return self.calls[-1]


@pytest.fixture
def executable() -> FakeExecutable:
    return FakeExecutable()
