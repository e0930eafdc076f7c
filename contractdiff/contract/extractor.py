"""
Contract extraction entry point.

Module: extractor
Purpose: pick an extraction strategy for a target and run it through the
shared ContractBuilder.
Dependencies: contractdiff.contract.syntax, contractdiff.contract.resolved

Either a complete Contract is returned or an error is raised; no partially
populated Contract ever escapes.
"""

from __future__ import annotations

from pathlib import Path

from contractdiff.contract.builder import ContractBuilder, ContractSource, ExtractorOptions
from contractdiff.contract.models import Contract
from contractdiff.contract.resolved import ImportedContractSource
from contractdiff.contract.syntax import SyntaxContractSource
from contractdiff.observability.logging import get_logger
from contractdiff.observability.telemetry import log_event, time_block

logger = get_logger(__name__)


class Extractor:
    """Builds Contracts from import paths or source directories."""

    def __init__(self, options: ExtractorOptions | None = None) -> None:
        self.options = options or ExtractorOptions()

    def extract_from_package(self, import_path: str) -> Contract:
        """
        Extract by importing ``import_path`` and inspecting the live objects.

        Raises:
            NoPackagesFoundError: the import path resolves to no module
            PackageErrors: the module or one of its submodules fails to import

        Side Effects:
            - Imports the package, executing its module-level code
        """
        return self._run(ImportedContractSource(import_path, self.options), "package")

    def extract_from_directory(self, path: str | Path) -> Contract:
        """
        Extract by parsing the ``.py`` files of one directory, without importing.

        Raises:
            InputError: ``path`` is not a directory
            NoSourceFilesFoundError: no eligible source file remains
            ParseError: one or more files fail to parse
        """
        return self._run(SyntaxContractSource(Path(path), self.options), "directory")

    def extract(self, target: str | Path) -> Contract:
        """Existing filesystem paths are parsed; anything else is imported."""
        if isinstance(target, Path) or Path(target).exists():
            return self.extract_from_directory(target)
        return self.extract_from_package(str(target))

    def _run(self, source: ContractSource, strategy: str) -> Contract:
        with time_block(f"extractor.{strategy}.latency"):
            package = source.load()
            builder = ContractBuilder(package, self.options)
            source.populate(builder)
            contract = builder.build()

        logger.debug(
            "Extracted contract for %s: %d interfaces, %d types, %d functions",
            contract.package_name,
            len(contract.interfaces),
            len(contract.types),
            len(contract.functions),
        )
        log_event(
            "contract.extracted",
            package=contract.package_name,
            strategy=strategy,
            variables=len(contract.variables),
            constants=len(contract.constants),
        )
        return contract
