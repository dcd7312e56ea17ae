"""
Verify every module in the package imports without errors.
"""

import importlib
import pkgutil

import pytest

import crescendo


def find_modules():
    """All module names under the crescendo package."""
    return sorted(
        name
        for _, name, _ in pkgutil.walk_packages(crescendo.__path__, prefix="crescendo.")
    )


@pytest.mark.parametrize("module_name", find_modules())
def test_import(module_name):
    assert importlib.import_module(module_name)


def test_version():
    assert crescendo.__version__ == "0.1.0"
