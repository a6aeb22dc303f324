"""Exceptions for CIP error responses and for collections of errors."""

from __future__ import annotations

_GENERAL_TEXT: dict[int, str] = {
    0x00: " no error?  This shouldn't happen :/",
    0x01: " connection failure",
    0x02: " resource unavailable",
    0x03: " bad parameter, size > 12 or size greater than size of element.",
    0x04: " a syntax error was detected decoding the request path",
    0x05: " request path destination unknown: probably instance number is not present",
    0x06: " insufficient packet space: not enough room in the response buffer for all the data",
    0x07: " connection lost",
    0x08: " service is not supported for the object/instance",
    0x09: " could not write attribute data - possibly in valid or wrong type",
    0x0A: " attribute list error, generally attribute not supported. the status of the unsupported attribute is 0x14",
    0x13: " insufficient Request Data: Data too short for expected param",
    0x16: " object does not exist",
    0x1A: " routing failure: request too large",
    0x1B: " routing failure: response too large",
    0x1C: " attribute list shortage: the list of attribute numbers was too few for the number of attributes parameter",
    0x26: " the request path size received was shorter or longer than expected.",
}

_EXTENDED_TEXT: dict[tuple[int, int], str] = {
    (0x10, 0x2101): " device state conflict: keyswitch position: the requestor is changing force information in HARD RUN mode",
    (0x10, 0x2802): " device state conflict: safety status: the controller is in a state in which safety memory cannot be modified",
    (0xFF, 0x2104): "General Error: Offset is beyond end of the requested tag.",
    (0xFF, 0x2105): "General Error: Number of Elements or Byte Offset is beyond the end of the requested tag.",
    (0xFF, 0x2107): "General Error: Tag type used n request does not match the target tag's data type.",
}


class CIPError(Exception):
    """A CIP general status code with its extended status."""

    def __init__(self, code: int, extended: int = 0) -> None:
        self.code = int(code) & 0xFF
        self.extended = int(extended) & 0xFFFF
        super().__init__(self.code, self.extended)

    def __str__(self) -> str:
        prefix = f"error {self.code:X}{self.extended:X}: "
        text = _GENERAL_TEXT.get(self.code)
        if text is None:
            text = _EXTENDED_TEXT.get((self.code, self.extended), "Unknown Error")
        return prefix + text


class MultiError(Exception):
    """Several errors gathered into one exception."""

    def __init__(self, err: BaseException | None = None) -> None:
        super().__init__()
        self.errors: list[BaseException] = [] if err is None else [err]

    def add(self, err: BaseException) -> None:
        """Append another error."""
        self.errors.append(err)

    def matches(self, exc_type: type[BaseException]) -> bool:
        """Whether the first gathered error is of the given type."""
        return bool(self.errors) and isinstance(self.errors[0], exc_type)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)

    def __str__(self) -> str:
        return "".join(f": {err}" for err in self.errors)