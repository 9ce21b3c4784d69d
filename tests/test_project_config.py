"""
Test project configuration and setup validity.
"""

import importlib
import sys
from pathlib import Path

import pytest
import toml

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture(scope="module")
def pyproject():
    with open(PROJECT_ROOT / "pyproject.toml") as f:
        return toml.load(f)


class TestProjectConfiguration:
    """Test that project configuration files are valid and consistent."""

    def test_pyproject_sections(self, pyproject):
        """Test that pyproject.toml has a build system and PEP 621 metadata."""
        assert "build-system" in pyproject, "Missing [build-system] section"
        assert "project" in pyproject, "Missing [project] section"
        assert isinstance(
            pyproject["project"]["dependencies"], list
        ), "project.dependencies must be a list, not a dict"

    def test_dependencies_format(self, pyproject):
        """Test that dependencies are in correct PEP 621 format."""
        for dep in pyproject["project"]["dependencies"]:
            assert isinstance(dep, str), f"Dependency {dep} must be a string"
            assert (
                ">" in dep or "=" in dep or "[" in dep
            ), f"Dependency {dep} doesn't look like a valid requirement specifier"

    def test_backends_declared(self, pyproject):
        """Test every modelling backend is a declared dependency."""
        names = {
            dep.split(">")[0].split("=")[0].split("[")[0].strip()
            for dep in pyproject["project"]["dependencies"]
        }
        for required in ("statsmodels", "pmdarima", "pymc", "gpytorch", "torch", "polars"):
            assert required in names, f"{required} missing from project.dependencies"

    def test_test_extra(self, pyproject):
        """Test pytest is available through the test extra."""
        extras = pyproject["project"]["optional-dependencies"]
        assert any(dep.startswith("pytest") for dep in extras["test"])

    def test_no_duplicate_sections(self):
        """Test that there are no duplicate section headers."""
        sections = []
        for line in (PROJECT_ROOT / "pyproject.toml").read_text().split("\n"):
            if line.strip().startswith("[") and line.strip().endswith("]"):
                section = line.strip()
                if section in sections:
                    pytest.fail(f"Duplicate section found: {section}")
                sections.append(section)

    def test_python_version_consistency(self, pyproject):
        """Test that the running interpreter meets requires-python."""
        requires_python = pyproject["project"].get("requires-python", "")
        assert ">=" in requires_python, "requires-python should use >= specifier"

        major, minor = (int(v) for v in requires_python.replace(">=", "").strip().split("."))
        assert sys.version_info[:2] >= (major, minor)

    def test_package_name_valid(self, pyproject):
        """Test that package name follows Python naming conventions."""
        name = pyproject["project"]["name"]
        assert name.replace("-", "_").replace("_", "").isalnum()
        assert not name[0].isdigit()


class TestProjectImports:
    """Test that the package can be imported without errors."""

    def test_version(self):
        """Test the package exposes its version."""
        import sgpbench

        with open(PROJECT_ROOT / "pyproject.toml") as f:
            assert sgpbench.__version__ == toml.load(f)["project"]["version"]

    @pytest.mark.parametrize(
        "module_name",
        [
            "sgpbench.config",
            "sgpbench.data",
            "sgpbench.ml_models.gaussian_process",
            "sgpbench.modeling.forecasting",
            "sgpbench.modeling.forecasting.bayesian_arima",
            "sgpbench.modeling.forecasting.seasonal_gp",
            "sgpbench.reporting",
            "sgpbench.utils",
        ],
    )
    def test_submodules_importable(self, module_name):
        """Test that submodules can be imported."""
        importlib.import_module(module_name)
