from __future__ import annotations


class DynaconnPyError(Exception):
    pass


class DefinitionError(DynaconnPyError, ValueError):
    pass


class DuplicateKeyError(DefinitionError):
    def __init__(self, *, model: str, key_type: str, existing: str, duplicate: str) -> None:
        super().__init__(
            f"{model}: only one {key_type} key is allowed (found {existing!r} and {duplicate!r})"
        )
        self.model = model
        self.key_type = key_type
        self.existing = existing
        self.duplicate = duplicate


class InvalidUUIDKeyError(DefinitionError):
    pass


class InvalidPrimaryKeyNameError(DefinitionError):
    pass


class MissingPrimaryKeyError(DefinitionError):
    pass


class DuplicateIndexError(DefinitionError):
    pass


class ValidationError(DynaconnPyError):
    pass


class MissingHashValueError(ValidationError):
    pass


class MissingRangeValueError(ValidationError):
    pass


class InputError(ValidationError):
    pass


class InvalidLimitError(InputError):
    pass


class InvalidOffsetError(InputError):
    pass


class StoreError(DynaconnPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class ConditionFailedError(StoreError):
    pass


class TableNotFoundError(StoreError):
    pass


class AmbiguityWarning(UserWarning):
    pass
