import importlib.util
import itertools
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def incrf(start: int = 1):
    """Infinite counter, used where ids must never repeat."""
    return itertools.count(start)


def load_module(script_path: Path, module_name: str = "module"):
    script_path = Path(script_path)
    search_locations = None
    if script_path.name == "__init__.py":
        # Load as a package so relative imports inside it keep working
        search_locations = [str(script_path.parent)]
    spec = importlib.util.spec_from_file_location(
        module_name, str(script_path), submodule_search_locations=search_locations
    )
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {script_path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    logger.debug(f"Loaded {module_name} from {script_path}")
    return module
