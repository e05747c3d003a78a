"""Extension manager: discovers and dispatches lifecycle hooks."""

import importlib
import inspect
import logging
import pkgutil

from extensions.base_extension import Extension

logger = logging.getLogger(__name__)

BUILTIN_PACKAGE = "extensions.builtin"


class ExtensionManager:
    """Discovers extension modules and dispatches hook calls."""

    def __init__(self, config):
        self.config = config
        self.extensions: list[Extension] = []

    def discover_extensions(self, package: str = BUILTIN_PACKAGE):
        """Import the builtin extension modules and register enabled extensions."""
        enabled_map = self.config.extensions.enabled_map
        pkg = importlib.import_module(package)

        for module_info in sorted(pkgutil.iter_modules(pkg.__path__), key=lambda m: m.name):
            if module_info.name.startswith("_"):
                continue
            module_name = f"{package}.{module_info.name}"
            try:
                module = importlib.import_module(module_name)
            except Exception as e:
                logger.warning("Failed to load %s: %s", module_name, e)
                continue
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if issubclass(obj, Extension) and obj is not Extension and obj.name:
                    if not enabled_map.get(obj.name, obj.enabled):
                        continue
                    self.register(obj(self.config))

    def register(self, extension: Extension):
        """Add an extension instance at the end of the dispatch order."""
        self.extensions.append(extension)

    async def dispatch(self, hook_name: str, **kwargs):
        """Call the matching hook on all enabled extensions.

        A failing hook is logged and does not affect the agent loop or the
        remaining extensions.
        """
        method_name = f"on_{hook_name}"

        for ext in self.extensions:
            if not ext.enabled:
                continue
            method = getattr(ext, method_name, None)
            if method is None:
                continue
            try:
                await method(**kwargs)
            except Exception as e:
                logger.warning("Extension '%s' hook '%s' error: %s", ext.name, hook_name, e)
