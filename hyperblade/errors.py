from typing import Optional


class HyperbladeError(ValueError):
    """
    Base class for every compile failure.
    A failed construct aborts the whole compile; there is no partial output.
    """

    def __init__(self, message: str, fragment: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.fragment = fragment

    def __str__(self) -> str:
        if self.fragment:
            return f"Hyperblade Compile Error: {self.message}\n\nIn:\n{self.fragment}"
        return f"Hyperblade Compile Error: {self.message}"


class InvalidTarget(HyperbladeError):
    """A @use / xmlns target is not a dotted identifier path."""


class AliasConflict(HyperbladeError):
    """An alias is already bound to a different target."""


class UnboundAlias(HyperbladeError):
    """A macro, tag or directive references an alias that was never declared."""


class HandlerNotFound(HyperbladeError):
    """The resolved namespace + name has no registered handler."""


class ArityError(HyperbladeError):
    """A macro call does not satisfy the handler method's signature."""


class ConstructorArityError(ArityError):
    """A component or mixin constructor has the wrong shape."""


class InterpolationSyntaxError(HyperbladeError):
    """An interpolated attribute value reduced to an invalid Python expression."""
