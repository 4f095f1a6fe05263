"""Exception hierarchy for retainly."""


class RetainlyError(Exception):
    """Base class for all retainly errors."""


class ParameterError(RetainlyError, ValueError):
    """A parameter set could not be constructed from the given values."""


class InvalidWeightCount(ParameterError):
    def __init__(self, count: int, expected: int):
        self.count = count
        self.expected = expected
        super().__init__(f"FSRS-4.5 requires exactly {expected} weights, got {count}")


class RetentionOutOfRange(ParameterError):
    def __init__(self, retention: float, low: float, high: float):
        self.retention = retention
        self.low = low
        self.high = high
        super().__init__(f"Desired retention must be between {low} and {high}, got {retention}")


class MalformedOverride(ParameterError):
    """
    A stored or user-supplied parameter payload could not be decoded.

    Only raised by the strict parser. The lenient decoder used during
    scheduling treats the same condition as "no override".
    """


class ItemNotFound(RetainlyError, LookupError):
    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class NonFiniteWeight(ParameterError):
    def __init__(self, index: int, value: float):
        self.index = index
        self.value = value
        super().__init__(f"Weight w{index} must be a finite number, got {value}")


class CategoryNotFound(RetainlyError, LookupError):
    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")
