"""Pytest configuration and fixtures for Keywarden tests."""

import pytest

from keywarden.keys.installer import KeyInstaller
from keywarden.keys.reconciler import Reconciler
from keywarden.keys.remover import KeyRemover
from keywarden.keys.tools import AptKeyTool, GpgTool
from keywarden.keys.verifier import FingerprintVerifier

from helpers import FakeRunner, RecordingReporter


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def gpg_path(tmp_path):
    """An executable file standing in for /usr/bin/gpg."""
    path = tmp_path / "bin" / "gpg"
    path.parent.mkdir()
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def apt_key(runner):
    return AptKeyTool(runner=runner)


@pytest.fixture
def verifier(runner, gpg_path):
    return FingerprintVerifier(GpgTool(gpg_path, runner=runner))


@pytest.fixture
def installer(apt_key, verifier):
    return KeyInstaller(apt_key, verifier)


@pytest.fixture
def remover(apt_key):
    return KeyRemover(apt_key, max_attempts=5)


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def reconciler(apt_key, installer, remover, reporter):
    return Reconciler(apt_key, installer, remover, reporters=[reporter])
