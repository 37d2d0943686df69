"""In-memory collaborators shared by the test modules."""

import asyncio
from typing import Dict, List, Optional, Tuple

from solbundle.compiler.base import CompilationResult, Compiler
from solbundle.errors import RegistryError
from solbundle.registry.base import RegistryClient

OZ = "@openzeppelin/contracts"
OZ_UP = "@openzeppelin/contracts-upgradeable"


def oz_files(tag: str) -> Dict[str, str]:
    return {
        "package.json": '{"name": "@openzeppelin/contracts"}',
        "token/ERC20/ERC20.sol": f'import "./IERC20.sol";\ncontract ERC20 {{}} // {tag}\n',
        "token/ERC20/IERC20.sol": f"interface IERC20 {{}} // {tag}\n",
        "access/Ownable.sol": f"contract Ownable {{}} // {tag}\n",
    }


def default_packages() -> Dict[str, Dict[str, Dict[str, str]]]:
    return {
        OZ: {
            "4.8.3": oz_files("4.8.3"),
            "4.9.3": oz_files("4.9.3"),
            "5.0.2": oz_files("5.0.2"),
            "5.1.0-rc.0": oz_files("5.1.0-rc.0"),
        },
        OZ_UP: {
            "4.9.0": {
                "token/ERC1155/ERC1155Upgradeable.sol": "contract ERC1155Upgradeable {} // 4.9.0\n",
            },
            "5.0.0": {
                "token/ERC1155/ERC1155Upgradeable.sol": (
                    'import "@openzeppelin/contracts/token/ERC20/IERC20.sol";\n'
                    "contract ERC1155Upgradeable {} // 5.0.0\n"
                ),
            },
        },
    }


class FakeRegistry(RegistryClient):
    """Registry serving packages from a dict and recording every call."""

    def __init__(self, packages: Optional[Dict[str, Dict[str, Dict[str, str]]]] = None, delay: float = 0.0):
        self.packages = packages if packages is not None else default_packages()
        self.delay = delay
        self.version_calls: List[str] = []
        self.file_calls: List[Tuple[str, str]] = []
        self.fail_files = 0

    async def fetch_versions(self, package_name: str) -> List[str]:
        self.version_calls.append(package_name)
        if package_name not in self.packages:
            raise RegistryError(f"Package not found in registry: {package_name}", package=package_name, status_code=404)
        return list(self.packages[package_name])

    async def fetch_package_files(self, package_name: str, version: str) -> Dict[str, str]:
        self.file_calls.append((package_name, version))
        await asyncio.sleep(self.delay)
        if self.fail_files:
            self.fail_files -= 1
            raise RegistryError(f"Tarball download for {package_name}@{version} failed", package=package_name)
        try:
            return dict(self.packages[package_name][version])
        except KeyError:
            raise RegistryError(f"Version {version} of {package_name} is not published", package=package_name)


class RecordingCompiler(Compiler):
    """Compiler that records its inputs and returns a canned result."""

    def __init__(self, result=None):
        self.result = result if result is not None else CompilationResult(success=True)
        self.calls = []

    async def compile(self, sources, entry_path, context=None):
        self.calls.append((dict(sources), entry_path, context))
        return self.result
