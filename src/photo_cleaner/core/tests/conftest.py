"""Shared fixtures for core tests."""

import pytest

from ..models import ScanConfig
from .fakes import FakeAssetStore


@pytest.fixture
def store() -> FakeAssetStore:
    return FakeAssetStore()


@pytest.fixture
def config() -> ScanConfig:
    return ScanConfig(max_workers=2)
