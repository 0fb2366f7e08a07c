class MesClassesError(Exception):
    """Base class for domain errors raised by mesclasses."""


class NotFoundError(MesClassesError):
    pass


class CopyConflictError(MesClassesError):
    """A class with the same name already exists in the target cycle."""

    def __init__(self, class_name: str, target_cycle_id: str):
        self.class_name = class_name
        self.target_cycle_id = target_cycle_id
        super().__init__(f"Class '{class_name}' already exists in cycle '{target_cycle_id}'")


class MissingMappingError(MesClassesError):
    """Generic import commit without an id column."""


class InvalidImportFile(MesClassesError):
    pass


class UnsupportedFormatError(MesClassesError):
    """The document viewer cannot render this file; offer a raw download instead."""
