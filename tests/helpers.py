"""Shared key material, listings and fakes for Keywarden tests."""

from collections import deque
from typing import Deque, List, Sequence, Tuple

from keywarden.keys.errors import ToolInvocationError
from keywarden.keys.tools import CommandResult


PUPPET_FPR = "6F6B15509CF8E59E6E469F327F438280EF8D349F"
PUPPET_SUB_FPR = "E1B03AF38CB0C3E6A0D77BFBA3A48C4A90E4E0DE"
DEBIAN_FPR = "630239CC130E1A7FD81A27B140976EAF437D05B5"

SAMPLE_LISTING = (
    "tru::1:1471554630:0:3:1:5\n"
    "pub:-:4096:1:7F438280EF8D349F:1471554630:1629234630::-:::scSC::::::23::0:\n"
    f"fpr:::::::::{PUPPET_FPR}:\n"
    "uid:-::::1471554630::A7B0B2F3A4A1FAA6A5C5E5BE21D97E1F7E1B5CE4::"
    "Puppet, Inc. Release Key <release@puppet.com>::::::::::0:\n"
    "sub:-:4096:1:A3A48C4A90E4E0DE:1471554630:1629234630:::::e::::::23:\n"
    f"fpr:::::::::{PUPPET_SUB_FPR}:\n"
    "pub:-:1024:17:40976EAF437D05B5:1095016255:::-:::scSC:::::::::\n"
    f"fpr:::::::::{DEBIAN_FPR}:\n"
)

LIST_PREFIX = ["apt-key", "adv", "--list-keys"]


def colon_listing(*keys: Tuple[str, str], size: int = 4096, created: int = 1500000000) -> str:
    """Build a colon listing from (fingerprint, algorithm code) pairs."""
    lines = []
    for fingerprint, algorithm in keys:
        lines.append(f"pub:-:{size}:{algorithm}:{fingerprint[-16:]}:{created}:::-:::scSC:")
        lines.append(f"fpr:::::::::{fingerprint}:")
    return "\n".join(lines) + "\n"


class FakeRunner:
    """Scripted stand-in for CommandRunner.

    Responses are registered against an argument prefix. When several
    results are queued for a prefix they are returned in order, and the last
    one repeats.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self._responses: List[Tuple[List[str], Deque[CommandResult]]] = []

    def respond(self, prefix: Sequence[str], *results: CommandResult) -> "FakeRunner":
        self._responses.insert(0, (list(prefix), deque(results)))
        return self

    def respond_listing(self, *listings: str) -> "FakeRunner":
        results = [CommandResult(args=[], returncode=0, stdout=l.encode()) for l in listings]
        return self.respond(LIST_PREFIX, *results)

    def run(self, args: Sequence[str], check: bool = True) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        result = CommandResult(args=args, returncode=0)
        for prefix, queue in self._responses:
            if args[:len(prefix)] == prefix:
                result = queue.popleft() if len(queue) > 1 else queue[0]
                break
        if check and not result.ok:
            raise ToolInvocationError(args, result.returncode, result.error_text)
        return result

    def calls_to(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if c[:len(prefix)] == list(prefix)]


def gpg_output(*fingerprints: str) -> CommandResult:
    """gpg --with-colons output for key material holding the given primary keys."""
    return CommandResult(
        args=[], returncode=0, stdout=colon_listing(*[(f, "1") for f in fingerprints]).encode()
    )


class RecordingReporter:
    def __init__(self):
        self.outcomes = []

    def report(self, outcome):
        self.outcomes.append(outcome)
