"""
Unit tests for __init__.py files

Checks that package exports resolve and that importing the packages has no
side effects beyond defining them.
"""

import importlib

import pytest


class TestPgsliceInit:
    """Test src/pgslice/__init__.py"""

    def test_version_attribute_exists(self):
        import pgslice

        assert isinstance(pgslice.__version__, str)
        assert pgslice.__version__ == "0.1.0"

    def test_all_exports_resolve(self):
        """Test that every name in __all__ is defined"""
        # Arrange & Act
        import pgslice

        # Assert
        for name in pgslice.__all__:
            assert hasattr(pgslice, name), name

    def test_errors_share_base_class(self):
        import pgslice

        for name in pgslice.__all__:
            if name.endswith("Error"):
                assert issubclass(getattr(pgslice, name), pgslice.PgsliceError)


class TestUtilsInit:
    """Test src/utils/__init__.py and its subpackages"""

    def test_all_lists_subpackages(self):
        import utils

        assert utils.__all__ == ["db_pool", "logging", "metrics", "tracing"]

    @pytest.mark.parametrize("name", ["db_pool", "logging", "metrics", "tracing"])
    def test_subpackage_exports_resolve(self, name):
        """Test that each subpackage imports and exposes its __all__"""
        # Arrange & Act
        module = importlib.import_module(f"utils.{name}")

        # Assert
        for export in module.__all__:
            assert hasattr(module, export), f"utils.{name}.{export}"
