"""Build, install and launch an app in one go."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from xcwarden.build import BuildEngine, BuildStrategy
from xcwarden.devices import DeviceResolver
from xcwarden.errors import BuildFailed
from xcwarden.models import BuildRequest

logger = logging.getLogger("xcwarden")

REQUIRED_SETTINGS = ("BUILT_PRODUCTS_DIR", "FULL_PRODUCT_NAME", "PRODUCT_BUNDLE_IDENTIFIER")


@dataclass(frozen=True)
class RunResult:
    app_path: str
    bundle_id: str
    target_id: str
    strategy: BuildStrategy

    def to_dict(self) -> dict:
        return {
            "app_path": self.app_path,
            "bundle_id": self.bundle_id,
            "target_udid": self.target_id,
            "build_strategy": self.strategy.value,
        }


def run_app(engine: BuildEngine, resolver: DeviceResolver, request: BuildRequest) -> RunResult:
    outcome = engine.build(request)
    outcome.raise_for_status()

    settings = engine.get_build_settings(request)
    missing = [key for key in REQUIRED_SETTINGS if not settings.get(key)]
    if missing:
        raise BuildFailed(f"Failed to retrieve build settings: missing {', '.join(missing)}")

    app_path = f"{settings['BUILT_PRODUCTS_DIR']}/{settings['FULL_PRODUCT_NAME']}"
    bundle_id = settings["PRODUCT_BUNDLE_IDENTIFIER"]

    udid = resolver.resolve_destination(request.destination)
    target = resolver.resolve_target(udid)

    resolver.install_app(target, app_path)
    resolver.launch_app(target, bundle_id)
    logger.info("Launched %s on %s", bundle_id, udid)

    return RunResult(app_path=app_path, bundle_id=bundle_id, target_id=udid, strategy=outcome.strategy)
