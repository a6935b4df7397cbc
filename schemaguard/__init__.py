import importlib

mod = "schemaguard"
class LazyLoader:
    """
    Lazy loader for the schemaguard functions to keep the import light.
    """
    def __init__(self, mappings):
        self._modules = {}
        self._mappings = mappings

    def _load_module(self, module_name):
        if module_name not in self._modules:
            self._modules[module_name] = importlib.import_module(module_name)
        return self._modules[module_name]

    def __getattr__(self, item):
        if item in self._mappings:
            module_name, attr_name = self._mappings[item]
            module = self._load_module(module_name)
            return getattr(module, attr_name)
        else:
            return self._load_module(f"{mod}.{item}")

# Define the public names and their corresponding module paths
_mappings = {
    "load_schema": (f"{mod}.schemaloader", "load_schema"),
    "SchemaLoader": (f"{mod}.schemaloader", "SchemaLoader"),
    "LoaderConfig": (f"{mod}.config", "LoaderConfig"),
    "Validator": (f"{mod}.validator", "Validator"),
    "validation_error": (f"{mod}.validator", "validation_error"),
    "LoadError": (f"{mod}.errors", "LoadError"),
    "ValidationError": (f"{mod}.errors", "ValidationError"),
    "Pointer": (f"{mod}.pointer", "Pointer"),
    "DocumentResolver": (f"{mod}.resolver", "DocumentResolver"),
}

_lazy_loader = LazyLoader(_mappings)

def __getattr__(name):
    return getattr(_lazy_loader, name)
