"""Regression tests for verification module imports."""

import importlib

import pytest


def test_verification_package_imports_without_browser_adapters() -> None:
    module = importlib.import_module("lead_acquisition.verification")

    assert module.VerificationChain is not None
    assert "TruePeopleSearchVerifier" not in module.__all__


def test_true_people_search_module_imports_with_playwright() -> None:
    """Ensure the browser adapter imports when playwright is available."""

    pytest.importorskip("playwright", reason="Playwright is required for verifier import test")
    module = importlib.import_module("lead_acquisition.verification.true_people_search")
    assert module.TruePeopleSearchVerifier is not None
