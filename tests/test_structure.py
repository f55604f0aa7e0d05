"""
Structure lint tests.
Verify that every component follows the models / ports / component layout.
"""

import importlib
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE = PROJECT_ROOT / "travelweb"

COMPONENTS = ["tracker", "ingestion", "estimator"]


class TestProjectStructure:
    """Verify the package skeleton."""

    def test_core_directories_exist(self) -> None:
        assert (PACKAGE / "core" / "ports").is_dir()
        assert (PACKAGE / "domain").is_dir()
        assert (PACKAGE / "adapters").is_dir()
        assert (PACKAGE / "api" / "routes").is_dir()

    def test_tests_structure_exists(self) -> None:
        assert (PROJECT_ROOT / "tests" / "unit").is_dir()
        assert (PROJECT_ROOT / "tests" / "integration").is_dir()
        assert (PROJECT_ROOT / "tests" / "regression").is_dir()

    def test_rules_file_present(self) -> None:
        assert (PROJECT_ROOT / "rules.yaml").is_file()

    @pytest.mark.parametrize("name", COMPONENTS)
    def test_component_layout(self, name: str) -> None:
        component = PACKAGE / "components" / name
        for module in ("__init__.py", "models.py", "ports.py", "component.py"):
            assert (component / module).is_file(), f"{name} is missing {module}"
        assert (component / "tests" / "test_unit.py").is_file()

    @pytest.mark.parametrize("name", COMPONENTS)
    def test_component_exports_are_importable(self, name: str) -> None:
        module = importlib.import_module(f"travelweb.components.{name}")
        for export in module.__all__:
            assert hasattr(module, export), f"{name}.__all__ lists missing {export}"
