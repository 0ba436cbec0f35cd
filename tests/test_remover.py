"""Tests for repeated deletion until the short id is no longer listed."""
import pytest

from keywarden.keys.errors import RemovalError, ToolInvocationError
from keywarden.keys.records import DesiredEntry
from keywarden.keys.remover import KeyRemover, RemovalState
from keywarden.keys.tools import AptKeyTool, CommandResult

from helpers import DEBIAN_FPR, LIST_PREFIX, PUPPET_FPR, SAMPLE_LISTING, colon_listing


pytestmark = pytest.mark.core

# A second key whose fingerprint shares the Puppet short id
SHADOW_FPR = "0000000000000000000000000000AAAAEF8D349F"


class TestKeyRemover:
    def test_converges_after_one_deletion(self, runner, remover):
        runner.respond_listing("")
        result = remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))

        assert result.attempts == 1
        assert result.state == RemovalState.CONVERGED
        assert result.short_id == "EF8D349F"
        assert runner.calls_to("apt-key", "del") == [["apt-key", "del", "EF8D349F"]]

    def test_repeats_while_still_listed(self, runner, remover):
        runner.respond_listing(
            SAMPLE_LISTING,
            colon_listing((SHADOW_FPR, "1")),
            "",
        )
        result = remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))

        assert result.attempts == 3
        assert len(runner.calls_to("apt-key", "del")) == 3
        assert len(runner.calls_to(*LIST_PREFIX)) == 3

    def test_alternates_delete_and_check(self, runner, remover):
        runner.respond_listing(SAMPLE_LISTING, "")
        remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))
        verbs = [c[1] for c in runner.calls]
        assert verbs == ["del", "adv", "del", "adv"]

    def test_gives_up_at_max_attempts(self, runner, remover):
        runner.respond_listing(SAMPLE_LISTING)
        with pytest.raises(RemovalError) as exc_info:
            remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))

        assert exc_info.value.attempts == 5
        assert len(runner.calls_to("apt-key", "del")) == 5
        assert "still present after 5" in str(exc_info.value)

    def test_unreadable_listing_counts_as_converged(self, runner, remover):
        runner.respond(LIST_PREFIX, CommandResult(args=[], returncode=2, stderr=b"gpg: keyring locked"))
        result = remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))
        assert result.attempts == 1

    def test_other_short_ids_do_not_block(self, runner, remover):
        runner.respond_listing(colon_listing(("630239CC130E1A7FD81A27B140976EAF437D05B5", "17")))
        result = remover.delete(DesiredEntry(id="EF8D349F", presence="absent"))
        assert result.attempts == 1

    def test_matching_sub_key_keeps_deleting(self, runner, remover):
        sub_only = (
            "pub:-:1024:17:40976EAF437D05B5:1095016255:::-:::scSC:\n"
            f"fpr:::::::::{DEBIAN_FPR}:\n"
            "sub:-:4096:1:AAAABBBBEF8D349F:1471554630::::::e:\n"
            f"fpr:::::::::{SHADOW_FPR}:\n"
        )
        runner.respond_listing(sub_only, "")
        result = remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))
        assert result.attempts == 2

    def test_delete_failure_propagates(self, runner, remover):
        runner.respond(["apt-key", "del"], CommandResult(args=[], returncode=1, stderr=b"error"))
        with pytest.raises(ToolInvocationError):
            remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))
        assert runner.calls_to(*LIST_PREFIX) == []

    def test_noop_skips_check(self, runner):
        remover = KeyRemover(AptKeyTool(runner=runner, noop=True))
        result = remover.delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))
        assert result.attempts == 1
        assert runner.calls == []

    def test_max_attempts_must_be_positive(self, apt_key):
        with pytest.raises(ValueError):
            KeyRemover(apt_key, max_attempts=0)

    def test_single_attempt_budget(self, runner, apt_key):
        runner.respond_listing(SAMPLE_LISTING)
        with pytest.raises(RemovalError) as exc_info:
            KeyRemover(apt_key, max_attempts=1).delete(DesiredEntry(id=PUPPET_FPR, presence="absent"))
        assert exc_info.value.attempts == 1
