"""
AUR RPC API Client - package metadata for updates without cloning
"""

import requests
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from repman import config
from repman.errors import AurError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AurPackage:
    name: str
    package_base: str
    version: str
    out_of_date: Optional[int] = None


class AURClient:
    """AUR RPC API client"""

    def __init__(self, base_url: str = config.AUR_RPC_URL, timeout: int = config.AUR_TIMEOUT):
        self.base_url = base_url
        self.timeout = timeout

    def get_multiple_packages(self, package_names: List[str]) -> Dict[str, AurPackage]:
        """
        Fetch multiple packages in a single request

        Args:
            package_names: List of package names

        Returns:
            Dictionary mapping package name to its AUR record; names unknown
            to the AUR are absent
        """
        if not package_names:
            return {}

        params = [("type", "info")] + [("arg[]", pkg) for pkg in package_names]

        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise AurError(f"AUR RPC request failed: {e}")
        except ValueError as e:
            raise AurError(f"AUR RPC returned invalid JSON: {e}")

        if data.get("type") == "error":
            raise AurError(f"AUR RPC error: {data.get('error', 'unknown error')}")

        results = {}
        for info in data.get("results", []):
            name = info.get("Name")
            if not name:
                continue
            package = AurPackage(
                name=name,
                package_base=info.get("PackageBase") or name,
                version=info.get("Version", ""),
                out_of_date=info.get("OutOfDate"),
            )
            if package.out_of_date:
                logger.warning(f"⚠️ {name} is flagged out-of-date in the AUR")
            results[name] = package

        logger.info(f"✅ Fetched metadata for {len(results)}/{len(package_names)} AUR packages")
        return results

    def get_package_info(self, package_name: str) -> Optional[AurPackage]:
        return self.get_multiple_packages([package_name]).get(package_name)
